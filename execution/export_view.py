"""Standalone export script — write one dashboard table to CSV or XLSX."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kitledger.app import build_gateway
from kitledger.io.exporters import export_view_csv, export_view_xlsx
from kitledger.store.entity_store import EntityStore
from kitledger.views import columns as cols

VIEWS = {
    "products": (cols.PRODUCT_COLUMNS, cols.product_rows),
    "kits": (cols.BOM_COLUMNS, cols.bom_rows),
    "purchase_orders": (cols.PURCHASE_ORDER_COLUMNS, cols.purchase_order_rows),
    "sales_orders": (cols.SALES_ORDER_COLUMNS, cols.sales_order_rows),
    "ledger": (cols.LEDGER_COLUMNS, cols.ledger_rows),
    "low_stock": (cols.LOW_STOCK_COLUMNS, cols.low_stock_rows),
}


async def _export(view: str, filepath: str) -> int:
    columns, builder = VIEWS[view]
    gateway = build_gateway()
    try:
        store = EntityStore(gateway)
        await store.load_all()
        rows = builder(store)
    finally:
        await gateway.aclose()

    if filepath.lower().endswith(".xlsx"):
        return export_view_xlsx(columns, rows, filepath, title=view)
    return export_view_csv(columns, rows, filepath, cols.default_renderers())


def main():
    if len(sys.argv) < 3:
        print(f"Usage: python export_view.py <{'|'.join(VIEWS)}> <output.csv|.xlsx>")
        sys.exit(1)

    view = sys.argv[1].lower()
    filepath = sys.argv[2]
    if view not in VIEWS:
        print(f"Unknown view: {view}. Use one of: {', '.join(VIEWS)}.")
        sys.exit(1)

    count = asyncio.run(_export(view, filepath))
    print(f"Exported {count} {view} rows to {filepath}")


if __name__ == "__main__":
    main()
