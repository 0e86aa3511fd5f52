"""Column schemas and row builders for each dashboard table."""

from typing import Optional

from kitledger.store.entity_store import EntityStore
from kitledger.utils.formatters import (
    format_currency,
    format_percent,
    format_quantity,
    format_yes_no,
)
from kitledger.views.table_view import (
    Cell,
    Column,
    FilterKind,
    FilterOption,
    RenderRegistry,
    Row,
)

_YES_NO = (FilterOption("true", "Yes"), FilterOption("false", "No"))

PRODUCT_COLUMNS = [
    Column("sku", "SKU", sortable=True, filterable=True),
    Column("name", "Name", sortable=True, filterable=True),
    Column("type", "Type", sortable=True, filterable=True,
           filter_kind=FilterKind.SELECT,
           filter_options=(FilterOption("base", "Base"),
                           FilterOption("kit", "Kit"))),
    Column("computed_cost", "Unit Cost", sortable=True, render="currency"),
    Column("reorder_level", "Reorder Level", sortable=True),
]

BOM_COLUMNS = [
    Column("kit_sku", "Kit SKU", sortable=True, filterable=True),
    Column("component_sku", "Component SKU", sortable=True, filterable=True),
    Column("component_name", "Component Name", sortable=True,
           filterable=True),
    Column("quantity", "Quantity", sortable=True),
    Column("unit_of_measure", "Unit of Measure", sortable=True),
    Column("component_cost", "Unit Cost", sortable=True, render="currency"),
    Column("line_cost", "Line Cost", sortable=True, render="currency"),
]

PURCHASE_ORDER_COLUMNS = [
    Column("id", "ID", sortable=True, render="order_number"),
    Column("vendor", "Vendor", sortable=True, filterable=True),
    Column("date", "Date", sortable=True),
    Column("freight_in", "Freight In", sortable=True, render="currency"),
    Column("import_duty", "Import Duty", sortable=True, render="currency"),
    Column("other_charges", "Other Charges", sortable=True,
           render="currency"),
    Column("total_charges", "Total Charges", sortable=True,
           render="currency"),
]

SALES_ORDER_COLUMNS = [
    Column("id", "ID", sortable=True),
    Column("customer", "Customer", sortable=True, filterable=True),
    Column("date", "Date", sortable=True),
    Column("is_gift", "Gift?", sortable=True, filterable=True,
           filter_kind=FilterKind.SELECT, filter_options=_YES_NO,
           render="yes_no"),
    Column("shipping_cost", "Shipping Cost", sortable=True,
           render="currency"),
    Column("total_price", "Total Price", sortable=True, render="currency"),
    Column("total_cogs", "Total COGS", sortable=True, render="currency"),
    Column("gross_profit", "Gross Profit", sortable=True, render="currency"),
    Column("comments", "Comments"),
]

LEDGER_COLUMNS = [
    Column("date", "Date", sortable=True),
    Column("product_sku", "Product SKU", sortable=True, filterable=True),
    Column("product_name", "Product Name", sortable=True, filterable=True),
    Column("change_qty", "Change Qty", sortable=True, render="signed"),
    Column("txn_type", "Transaction Type", sortable=True, filterable=True,
           filter_kind=FilterKind.SELECT,
           filter_options=(
               FilterOption("purchase", "Purchase"),
               FilterOption("sale", "Sale"),
               FilterOption("assembly_in", "Assembly In"),
               FilterOption("assembly_out", "Assembly Out"),
               FilterOption("adjustment", "Adjustment"),
           )),
    Column("unit_cost", "Unit Cost", sortable=True, render="currency"),
    Column("reference_id", "Reference ID", sortable=True),
]

LOW_STOCK_COLUMNS = [
    Column("sku", "SKU", sortable=True, filterable=True),
    Column("name", "Product Name", sortable=True, filterable=True),
    Column("on_hand", "On Hand", sortable=True),
    Column("reorder_level", "Reorder Level", sortable=True),
    Column("shortage", "Shortage", sortable=True),
    Column("avg_cost", "Avg Cost", sortable=True, render="currency"),
]

SALES_ANALYSIS_COLUMNS = [
    Column("id", "Order ID", sortable=True),
    Column("customer", "Customer", sortable=True, filterable=True),
    Column("date", "Date", sortable=True),
    Column("is_gift_display", "Gift?", sortable=True, filterable=True,
           filter_kind=FilterKind.SELECT,
           filter_options=(FilterOption("Yes", "Yes"),
                           FilterOption("No", "No"))),
    Column("total_revenue", "Revenue", sortable=True, render="currency"),
    Column("total_cogs", "COGS", sortable=True, render="currency"),
    Column("shipping_expense", "Shipping Cost", sortable=True,
           render="currency"),
    Column("gross_profit", "Gross Profit", sortable=True, render="currency"),
    Column("gross_margin_pct", "Margin %", sortable=True, render="percent"),
    Column("units_sold", "Units", sortable=True),
    Column("comments", "Comments"),
]


def _currency(cell: Cell, row: Row) -> str:
    return "" if cell.is_null else format_currency(cell.value)


def _signed(cell: Cell, row: Row) -> str:
    if cell.is_null:
        return ""
    text = cell.text()
    return f"+{text}" if cell.value > 0 else text


def _on_hand(cell: Cell, row: Row) -> str:
    if cell.is_null:
        return ""
    return format_quantity(cell.value, row.value("reorder_level") or 0)


def default_renderers() -> RenderRegistry:
    """Render strategies shared by every dashboard table."""
    return RenderRegistry({
        "currency": _currency,
        "percent": lambda cell, row: format_percent(cell.value),
        "yes_no": lambda cell, row: format_yes_no(cell.value),
        "signed": _signed,
        "on_hand": _on_hand,
        "order_number": lambda cell, row: f"#{cell.text()}",
    })


# ── Row builders ──────────────────────────────────────────────


def product_rows(store: EntityStore) -> list[Row]:
    return [Row.from_entity(p) for p in store.products]


def bom_rows(store: EntityStore, kit_product_id: Optional[int] = None
             ) -> list[Row]:
    products = {p.id: p for p in store.products}
    rows = []
    for line in store.bill_of_materials:
        if kit_product_id is not None and line.kit_product_id != kit_product_id:
            continue
        kit = products.get(line.kit_product_id)
        component = products.get(line.component_product_id)
        cost = component.unit_cost if component else None
        rows.append(Row.from_entity(line, {
            "kit_sku": kit.sku if kit else None,
            "component_sku": component.sku if component else None,
            "component_name": component.name if component else None,
            "component_cost": cost,
            "line_cost": cost * line.quantity if cost is not None else None,
        }))
    return rows


def purchase_order_rows(store: EntityStore) -> list[Row]:
    return [Row.from_entity(po, {"total_charges": po.total_surcharges})
            for po in store.purchase_orders]


def sales_order_rows(store: EntityStore,
                     gifts: Optional[bool] = None) -> list[Row]:
    """Sales orders; ``gifts`` restricts to gift or non-gift orders."""
    rows = []
    for order in store.sales_orders:
        if gifts is not None and bool(order.is_gift) != gifts:
            continue
        profit = order.total_price - order.total_cogs - order.shipping_cost
        rows.append(Row.from_entity(order, {"gross_profit": profit}))
    return rows


def ledger_rows(store: EntityStore, start_date: str = "",
                end_date: str = "", product_id: Optional[int] = None,
                txn_type: str = "") -> list[Row]:
    """Inventory ledger enriched with product SKU and name."""
    products = {p.id: p for p in store.products}
    rows = []
    for txn in store.inventory_transactions:
        if start_date and txn.date < start_date:
            continue
        if end_date and txn.date > end_date:
            continue
        if product_id is not None and txn.product_id != product_id:
            continue
        if txn_type and txn.txn_type != txn_type:
            continue
        product = products.get(txn.product_id)
        rows.append(Row.from_entity(txn, {
            "product_sku": product.sku if product
            else f"Product {txn.product_id}",
            "product_name": product.name if product else "",
        }))
    return rows


def low_stock_rows(store: EntityStore) -> list[Row]:
    return [Row.from_entity(a, {"shortage": a.shortage})
            for a in store.low_stock_alerts]


def sales_summary_rows(summaries) -> list[Row]:
    return [Row.from_entity(s, {"is_gift_display": format_yes_no(s.is_gift)})
            for s in summaries]
