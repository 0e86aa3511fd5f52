"""Local backend schema: tables, computed views, and migrations."""

SCHEMA_VERSION = 2

# Each statement is a separate string to avoid executescript issues
_SCHEMA_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Products (base items and kits)
    """CREATE TABLE IF NOT EXISTS inventory_products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sku TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'base'
            CHECK (type IN ('base', 'kit')),
        avg_cost REAL NOT NULL DEFAULT 0.0 CHECK (avg_cost >= 0),
        reorder_level INTEGER NOT NULL DEFAULT 0
            CHECK (reorder_level >= 0),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Bill of materials: kit lines pointing at base components
    """CREATE TABLE IF NOT EXISTS inventory_bill_of_materials (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        kit_product_id INTEGER NOT NULL,
        component_product_id INTEGER NOT NULL,
        quantity REAL NOT NULL DEFAULT 1 CHECK (quantity > 0),
        unit_of_measure TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (kit_product_id)
            REFERENCES inventory_products(id) ON DELETE CASCADE,
        FOREIGN KEY (component_product_id)
            REFERENCES inventory_products(id) ON DELETE RESTRICT
    )""",

    # Purchase orders with landed-cost surcharges
    """CREATE TABLE IF NOT EXISTS inventory_purchase_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        vendor TEXT NOT NULL,
        date TEXT NOT NULL,
        freight_in REAL NOT NULL DEFAULT 0.0 CHECK (freight_in >= 0),
        import_duty REAL NOT NULL DEFAULT 0.0 CHECK (import_duty >= 0),
        other_charges REAL NOT NULL DEFAULT 0.0 CHECK (other_charges >= 0),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    """CREATE TABLE IF NOT EXISTS inventory_purchase_order_lines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        purchase_order_id INTEGER NOT NULL,
        product_id INTEGER NOT NULL,
        qty REAL NOT NULL DEFAULT 0,
        unit_cost REAL NOT NULL DEFAULT 0.0,
        freight_alloc REAL NOT NULL DEFAULT 0.0,
        duty_alloc REAL NOT NULL DEFAULT 0.0,
        other_alloc REAL NOT NULL DEFAULT 0.0,
        landed_unit_cost REAL NOT NULL DEFAULT 0.0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (purchase_order_id)
            REFERENCES inventory_purchase_orders(id) ON DELETE CASCADE,
        FOREIGN KEY (product_id)
            REFERENCES inventory_products(id) ON DELETE RESTRICT
    )""",

    # Sales orders: totals are filled in by the record-sale procedure
    """CREATE TABLE IF NOT EXISTS inventory_sales_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer TEXT NOT NULL,
        date TEXT NOT NULL,
        shipping_cost REAL NOT NULL DEFAULT 0.0,
        comments TEXT,
        is_gift INTEGER NOT NULL DEFAULT 0,
        total_price REAL NOT NULL DEFAULT 0.0,
        total_cogs REAL NOT NULL DEFAULT 0.0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    """CREATE TABLE IF NOT EXISTS inventory_sales_order_lines (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sales_order_id INTEGER NOT NULL,
        product_id INTEGER,
        description TEXT NOT NULL DEFAULT '',
        qty REAL NOT NULL DEFAULT 0,
        unit_price_override REAL NOT NULL DEFAULT 0.0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (sales_order_id)
            REFERENCES inventory_sales_orders(id) ON DELETE CASCADE,
        FOREIGN KEY (product_id)
            REFERENCES inventory_products(id) ON DELETE SET NULL
    )""",

    # Append-only ledger
    """CREATE TABLE IF NOT EXISTS inventory_inventory_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        product_id INTEGER NOT NULL,
        change_qty REAL NOT NULL,
        txn_type TEXT NOT NULL
            CHECK (txn_type IN ('purchase', 'sale', 'assembly_in',
                                'assembly_out', 'adjustment')),
        reference_id INTEGER,
        date TEXT NOT NULL DEFAULT (date('now')),
        unit_cost REAL NOT NULL DEFAULT 0.0,
        FOREIGN KEY (product_id)
            REFERENCES inventory_products(id) ON DELETE RESTRICT
    )""",

    # Indexes
    "CREATE INDEX IF NOT EXISTS idx_bom_kit ON inventory_bill_of_materials(kit_product_id)",
    "CREATE INDEX IF NOT EXISTS idx_bom_component ON inventory_bill_of_materials(component_product_id)",
    "CREATE INDEX IF NOT EXISTS idx_pol_order ON inventory_purchase_order_lines(purchase_order_id)",
    "CREATE INDEX IF NOT EXISTS idx_sol_order ON inventory_sales_order_lines(sales_order_id)",
    "CREATE INDEX IF NOT EXISTS idx_txn_product ON inventory_inventory_transactions(product_id)",

    # Timestamp triggers
    """CREATE TRIGGER IF NOT EXISTS update_products_timestamp
    AFTER UPDATE ON inventory_products
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE inventory_products SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END""",

    """CREATE TRIGGER IF NOT EXISTS update_bom_timestamp
    AFTER UPDATE ON inventory_bill_of_materials
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE inventory_bill_of_materials SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END""",

    """CREATE TRIGGER IF NOT EXISTS update_sales_orders_timestamp
    AFTER UPDATE ON inventory_sales_orders
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE inventory_sales_orders SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END""",

    # Computed views: kits only ever contain base components
    """CREATE VIEW IF NOT EXISTS inventory_products_with_cost AS
    SELECT p.*,
           CASE WHEN p.type = 'kit' THEN
               COALESCE((SELECT SUM(c.avg_cost * b.quantity)
                         FROM inventory_bill_of_materials b
                         JOIN inventory_products c
                           ON c.id = b.component_product_id
                         WHERE b.kit_product_id = p.id), 0)
           ELSE p.avg_cost END AS computed_cost
    FROM inventory_products p""",

    """CREATE VIEW IF NOT EXISTS inventory_on_hand AS
    SELECT p.id AS product_id, p.sku, p.name,
           COALESCE(SUM(t.change_qty), 0) AS on_hand,
           p.avg_cost, p.reorder_level
    FROM inventory_products p
    LEFT JOIN inventory_inventory_transactions t ON t.product_id = p.id
    GROUP BY p.id""",

    """CREATE VIEW IF NOT EXISTS low_stock_alerts AS
    SELECT * FROM inventory_on_hand
    WHERE reorder_level > 0 AND on_hand < reorder_level""",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (1)",
]


# ── Migration from v1 → v2 ──────────────────────────────────────
_MIGRATION_V2_STATEMENTS = [
    # Reorder reminders raised from the low-stock page
    """CREATE TABLE IF NOT EXISTS inventory_notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        product_id INTEGER NOT NULL,
        on_hand REAL NOT NULL DEFAULT 0,
        reorder_level INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (product_id)
            REFERENCES inventory_products(id) ON DELETE CASCADE
    )""",

    # Per-order profitability for the sales analysis page
    """CREATE VIEW IF NOT EXISTS sales_order_summary AS
    SELECT o.id, o.customer, o.date,
           o.total_price AS total_revenue,
           o.total_cogs,
           o.shipping_cost AS shipping_expense,
           o.total_price - o.total_cogs - o.shipping_cost AS gross_profit,
           CASE WHEN o.total_price > 0
                THEN (o.total_price - o.total_cogs - o.shipping_cost)
                     * 100.0 / o.total_price
                ELSE 0 END AS gross_margin_pct,
           COALESCE((SELECT SUM(l.qty) FROM inventory_sales_order_lines l
                     WHERE l.sales_order_id = o.id), 0) AS units_sold,
           o.comments, o.is_gift
    FROM inventory_sales_orders o""",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (2)",
]


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except Exception:
        return 0


def _migrate_v1_to_v2(conn):
    """Upgrade schema from v1 to v2."""
    for stmt in _MIGRATION_V2_STATEMENTS:
        conn.execute(stmt)


def initialize_database(db_connection):
    """Create all tables, views and triggers.

    On a fresh database, creates the full schema directly.
    On an existing database, applies migrations incrementally.
    """
    with db_connection.get_connection() as conn:
        conn.execute("PRAGMA foreign_keys = ON")

        version = _get_schema_version(conn)

        if version == 0:
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
            _migrate_v1_to_v2(conn)
        elif version < SCHEMA_VERSION:
            if version < 2:
                _migrate_v1_to_v2(conn)
