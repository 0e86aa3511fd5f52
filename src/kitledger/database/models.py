"""Data models for inventory records and backend-computed summaries."""

from dataclasses import dataclass, fields
from typing import Any, Optional

PRODUCT_TYPES = ("base", "kit")

TXN_TYPES = ("purchase", "sale", "assembly_in", "assembly_out", "adjustment")


@dataclass
class Product:
    id: Optional[int] = None
    sku: str = ""
    name: str = ""
    type: str = "base"  # 'base' or 'kit'
    avg_cost: float = 0.0
    # Server-derived: avg_cost for base, sum of components for kits
    computed_cost: float = 0.0
    reorder_level: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_kit(self) -> bool:
        return self.type == "kit"

    @property
    def is_base(self) -> bool:
        return self.type == "base"

    @property
    def unit_cost(self) -> float:
        """Best known unit cost — computed cost, else the average cost."""
        return self.computed_cost or self.avg_cost or 0.0

    @property
    def display_name(self) -> str:
        return self.name or self.sku or "(Unnamed)"


@dataclass
class BillOfMaterialLine:
    id: Optional[int] = None
    kit_product_id: Optional[int] = None
    component_product_id: Optional[int] = None
    quantity: float = 1.0
    unit_of_measure: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class PurchaseOrder:
    id: Optional[int] = None
    vendor: str = ""
    date: str = ""
    freight_in: float = 0.0
    import_duty: float = 0.0
    other_charges: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def total_surcharges(self) -> float:
        return (self.freight_in or 0.0) + (self.import_duty or 0.0) \
            + (self.other_charges or 0.0)


@dataclass
class PurchaseOrderLine:
    id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    product_id: Optional[int] = None
    qty: float = 0.0
    unit_cost: float = 0.0
    freight_alloc: float = 0.0
    duty_alloc: float = 0.0
    other_alloc: float = 0.0
    landed_unit_cost: float = 0.0
    created_at: Optional[str] = None


@dataclass
class SalesOrder:
    id: Optional[int] = None
    customer: str = ""
    date: str = ""
    shipping_cost: float = 0.0
    comments: Optional[str] = None
    is_gift: bool = False
    # Both totals are filled in by the record-sale procedure
    total_price: float = 0.0
    total_cogs: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_recorded(self) -> bool:
        return bool(self.total_price or self.total_cogs)


@dataclass
class SalesOrderLine:
    id: Optional[int] = None
    sales_order_id: Optional[int] = None
    product_id: Optional[int] = None  # None for free-text lines
    description: str = ""
    qty: float = 0.0
    unit_price_override: float = 0.0
    created_at: Optional[str] = None

    @property
    def line_total(self) -> float:
        return (self.qty or 0.0) * (self.unit_price_override or 0.0)


@dataclass
class InventoryTransaction:
    id: Optional[int] = None
    product_id: Optional[int] = None
    change_qty: float = 0.0
    txn_type: str = "adjustment"
    reference_id: Optional[int] = None
    date: str = ""
    unit_cost: float = 0.0

    @property
    def extended_cost(self) -> float:
        return (self.change_qty or 0.0) * (self.unit_cost or 0.0)


@dataclass
class InventoryOnHand:
    product_id: Optional[int] = None
    sku: str = ""
    name: str = ""
    on_hand: float = 0.0
    avg_cost: float = 0.0
    reorder_level: int = 0


@dataclass
class LowStockAlert:
    product_id: Optional[int] = None
    sku: str = ""
    name: str = ""
    on_hand: float = 0.0
    avg_cost: float = 0.0
    reorder_level: int = 0

    @property
    def shortage(self) -> float:
        return (self.reorder_level or 0) - (self.on_hand or 0)


@dataclass
class Notification:
    id: Optional[int] = None
    product_id: Optional[int] = None
    on_hand: float = 0.0
    reorder_level: int = 0
    created_at: Optional[str] = None


@dataclass
class SalesOrderSummary:
    id: Optional[int] = None
    customer: str = ""
    date: str = ""
    total_revenue: float = 0.0
    total_cogs: float = 0.0
    shipping_expense: float = 0.0
    gross_profit: float = 0.0
    gross_margin_pct: float = 0.0
    units_sold: float = 0.0
    comments: Optional[str] = None
    is_gift: bool = False


@dataclass
class KpiSummary:
    """Inventory and sales KPIs aggregated client-side."""
    total_revenue: float = 0.0
    total_cogs: float = 0.0
    total_shipping: float = 0.0
    gross_profit: float = 0.0
    gross_margin_pct: float = 0.0
    inventory_value: float = 0.0
    inventory_turnover: float = 0.0
    low_stock_count: int = 0
    gift_count: int = 0
    gift_cogs: float = 0.0
    gift_shipping: float = 0.0


def from_record(model: type, record: dict[str, Any]):
    """Build a model from a backend record, ignoring unknown columns."""
    names = {f.name for f in fields(model) if f.init}
    return model(**{k: v for k, v in record.items() if k in names})


def to_record(instance) -> dict[str, Any]:
    """Flatten a model back into a plain record."""
    return {f.name: getattr(instance, f.name) for f in fields(instance)
            if f.init}
