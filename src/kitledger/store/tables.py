"""Logical table registry — how each store table maps onto the backend."""

from dataclasses import dataclass
from typing import Optional

from kitledger.config import Config
from kitledger.database.models import (
    BillOfMaterialLine,
    InventoryOnHand,
    InventoryTransaction,
    LowStockAlert,
    Notification,
    Product,
    PurchaseOrder,
    PurchaseOrderLine,
    SalesOrder,
    SalesOrderLine,
    SalesOrderSummary,
)

PRODUCTS = "products"
BILL_OF_MATERIALS = "bill_of_materials"
PURCHASE_ORDERS = "purchase_orders"
PURCHASE_ORDER_LINES = "purchase_order_lines"
SALES_ORDERS = "sales_orders"
SALES_ORDER_LINES = "sales_order_lines"
INVENTORY_TRANSACTIONS = "inventory_transactions"
INVENTORY_ON_HAND = "inventory_on_hand"
LOW_STOCK_ALERTS = "low_stock_alerts"
NOTIFICATIONS = "notifications"
SALES_ORDER_SUMMARY = "sales_order_summary"


@dataclass(frozen=True)
class TableSpec:
    """One logical table or view held (or fetched) by the store."""
    name: str
    model: type
    read_relation: str
    # None for read-only views
    write_relation: Optional[str] = None
    # Subscribed for change notifications
    live: bool = False
    # Held in the store and fetched by load_all
    cached: bool = True
    order_by: Optional[str] = "id"
    # Changes invalidate the server-computed product costs
    cost_dependent: bool = False

    @property
    def notify_relation(self) -> Optional[str]:
        """Relation whose change feed keeps this table live."""
        return self.write_relation if self.live else None


def _table(name: str, model: type, **kwargs) -> TableSpec:
    relation = Config.relation_name(name)
    kwargs.setdefault("read_relation", relation)
    kwargs.setdefault("write_relation", relation)
    kwargs.setdefault("live", True)
    return TableSpec(name=name, model=model, **kwargs)


def build_registry() -> dict[str, TableSpec]:
    """Build the registry from the current relation naming config."""
    specs = [
        # Reads the computed-cost view, writes the base table
        _table(PRODUCTS, Product,
               read_relation=Config.relation_name("products_with_cost"),
               cost_dependent=True),
        _table(BILL_OF_MATERIALS, BillOfMaterialLine, cost_dependent=True),
        _table(PURCHASE_ORDERS, PurchaseOrder),
        _table(PURCHASE_ORDER_LINES, PurchaseOrderLine),
        _table(SALES_ORDERS, SalesOrder),
        _table(SALES_ORDER_LINES, SalesOrderLine),
        _table(INVENTORY_TRANSACTIONS, InventoryTransaction),
        # Derived views, refreshed only after procedures or a full reload
        TableSpec(INVENTORY_ON_HAND, InventoryOnHand,
                  read_relation=Config.relation_name("on_hand"),
                  order_by=None),
        TableSpec(LOW_STOCK_ALERTS, LowStockAlert,
                  read_relation=LOW_STOCK_ALERTS, order_by=None),
        # Write-only from the client's point of view
        _table(NOTIFICATIONS, Notification, live=False, cached=False),
        # Fetched on demand by the sales analysis page
        TableSpec(SALES_ORDER_SUMMARY, SalesOrderSummary,
                  read_relation=SALES_ORDER_SUMMARY, cached=False,
                  order_by="date"),
    ]
    return {spec.name: spec for spec in specs}


DERIVED_VIEWS = (INVENTORY_ON_HAND, LOW_STOCK_ALERTS)
