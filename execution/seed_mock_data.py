"""Seed the local SQLite backend with mock data for development and demos.

Creates:
  - 8 base products (trail mix ingredients and packaging)
  - 2 kits built from them
  - 2 purchase orders with receipt transactions
  - 3 sales orders (one gift)

Run:
    python -m execution.seed_mock_data          (from project root)
    python execution/seed_mock_data.py          (direct)

WARNING: This script INSERTS data — run against a fresh DB to avoid
duplicates. Delete data/kitledger.db first for a clean start.
"""

import asyncio
import os
import sys

# Ensure project src is on the path
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, "src"))

from kitledger.config import Config
from kitledger.database.connection import DatabaseConnection
from kitledger.gateway.local import LocalGateway
from kitledger.services.kits import save_product
from kitledger.services.purchasing import create_purchase_order
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import (
    INVENTORY_TRANSACTIONS,
    PURCHASE_ORDER_LINES,
    SALES_ORDER_LINES,
    SALES_ORDERS,
)

BASE_PRODUCTS = [
    # sku, name, avg_cost, reorder_level
    ("ALM-1LB", "Almonds 1 lb", 4.20, 20),
    ("CSH-1LB", "Cashews 1 lb", 5.10, 20),
    ("RSN-1LB", "Raisins 1 lb", 1.80, 15),
    ("CHC-1LB", "Dark Chocolate Chips 1 lb", 3.25, 10),
    ("PEA-1LB", "Peanuts 1 lb", 1.60, 25),
    ("BAG-SM", "Resealable Bag Small", 0.12, 200),
    ("BAG-LG", "Resealable Bag Large", 0.18, 200),
    ("LBL-01", "Printed Label", 0.05, 300),
]

KITS = [
    ("KIT-CLASSIC", "Classic Trail Mix", [
        ("ALM-1LB", 0.25, "lb"), ("RSN-1LB", 0.25, "lb"),
        ("PEA-1LB", 0.5, "lb"), ("BAG-SM", 1, "ea"), ("LBL-01", 1, "ea"),
    ]),
    ("KIT-DELUXE", "Deluxe Trail Mix", [
        ("ALM-1LB", 0.5, "lb"), ("CSH-1LB", 0.5, "lb"),
        ("CHC-1LB", 0.25, "lb"), ("BAG-LG", 1, "ea"), ("LBL-01", 1, "ea"),
    ]),
]


async def seed(store: EntityStore):
    """Populate the backend through the same workflows the UI uses."""

    # ── 1. Base products ──────────────────────────────────────────
    print("Creating base products...")
    ids = {}
    for sku, name, cost, reorder in BASE_PRODUCTS:
        product = await save_product(store, {
            "sku": sku, "name": name, "type": "base",
            "avg_cost": cost, "reorder_level": reorder,
        })
        ids[sku] = product.id
    print(f"  → {len(BASE_PRODUCTS)} base products created")

    # ── 2. Kits ───────────────────────────────────────────────────
    print("Creating kits...")
    for sku, name, lines in KITS:
        product = await save_product(store, {
            "sku": sku, "name": name, "type": "kit", "reorder_level": 5,
        }, bom_lines=[
            {"component_product_id": ids[comp], "quantity": qty,
             "unit_of_measure": uom}
            for comp, qty, uom in lines
        ])
        ids[sku] = product.id
    print(f"  → {len(KITS)} kits created")

    # ── 3. Purchase orders ────────────────────────────────────────
    print("Creating purchase orders...")
    receipts = [
        ("Nut Wholesale Co", "2026-01-05", 45.0, 12.0,
         [("ALM-1LB", 40), ("CSH-1LB", 30), ("PEA-1LB", 60)]),
        ("PackRight Supply", "2026-01-08", 8.0, 0.0,
         [("BAG-SM", 500), ("BAG-LG", 300), ("LBL-01", 800),
          ("RSN-1LB", 25), ("CHC-1LB", 8)]),
    ]
    for vendor, date, freight, duty, lines in receipts:
        po = await create_purchase_order(store, {
            "vendor": vendor, "date": date,
            "freight_in": freight, "import_duty": duty,
        })
        for sku, qty in lines:
            cost = next(c for s, _n, c, _r in BASE_PRODUCTS if s == sku)
            await store.insert(PURCHASE_ORDER_LINES, {
                "purchase_order_id": po.id, "product_id": ids[sku],
                "qty": qty, "unit_cost": cost, "landed_unit_cost": cost,
            })
            await store.insert(INVENTORY_TRANSACTIONS, {
                "product_id": ids[sku], "change_qty": qty,
                "txn_type": "purchase", "reference_id": po.id,
                "date": date, "unit_cost": cost,
            })
    print(f"  → {len(receipts)} purchase orders received")

    # ── 4. Sales orders ───────────────────────────────────────────
    # Recorded directly: the sale procedure belongs to the backend
    print("Creating sales orders...")
    sales = [
        ("Green Valley Market", "2026-01-12", 9.5, False, "KIT-CLASSIC", 12, 8.99),
        ("Trailhead Outfitters", "2026-01-15", 12.0, False, "KIT-DELUXE", 10, 14.99),
        ("Community Food Drive", "2026-01-20", 0.0, True, "KIT-CLASSIC", 6, 0.0),
    ]
    for customer, date, shipping, gift, sku, qty, price in sales:
        order = await store.insert(SALES_ORDERS, {
            "customer": customer, "date": date, "shipping_cost": shipping,
            "is_gift": gift, "total_price": qty * price,
        })
        await store.insert(SALES_ORDER_LINES, {
            "sales_order_id": order.id, "product_id": ids[sku],
            "qty": qty, "unit_price_override": price,
        })
    print(f"  → {len(sales)} sales orders created")


async def _run(db_path):
    gateway = LocalGateway(DatabaseConnection(db_path))
    store = EntityStore(gateway)
    try:
        await store.load_all()
        await seed(store)
    finally:
        await gateway.aclose()


def main():
    db_path = Config.DATABASE_PATH
    print(f"Database: {db_path}")

    # Confirm if DB exists
    if os.path.exists(db_path):
        resp = input("Database already exists. Seed anyway? (y/N): ").strip().lower()
        if resp != "y":
            print("Aborted.")
            return

    db_path.parent.mkdir(parents=True, exist_ok=True)
    asyncio.run(_run(db_path))


if __name__ == "__main__":
    main()
