"""EntityStore — the session's single source of truth for table snapshots.

Every write, whether it comes from a direct call result or from a change
notification, goes through the same idempotent merge:

* insert  — upsert by id (replace in place when present, else append)
* update  — replace in place when present, otherwise ignored
* delete  — remove when present, otherwise ignored

Replacing merges the incoming fields over the held entity, so a row
echoed from a base table never wipes fields only its view computes
(e.g. a product's ``computed_cost``).
"""

import asyncio
import dataclasses
import logging
from typing import Any, Callable, Iterable, Optional

from kitledger.config import Config
from kitledger.database.models import from_record
from kitledger.gateway.base import (
    DataGateway,
    GatewayError,
    LoadError,
    ViewRefreshError,
)
from kitledger.store.tables import (
    BILL_OF_MATERIALS,
    DERIVED_VIEWS,
    INVENTORY_ON_HAND,
    INVENTORY_TRANSACTIONS,
    LOW_STOCK_ALERTS,
    PRODUCTS,
    PURCHASE_ORDER_LINES,
    PURCHASE_ORDERS,
    SALES_ORDER_LINES,
    SALES_ORDERS,
    TableSpec,
    build_registry,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class EntityStore:
    """Holds every cached table and mediates all mutations."""

    def __init__(self, gateway: DataGateway,
                 tables: Optional[dict[str, TableSpec]] = None):
        self.gateway = gateway
        self.tables = tables or build_registry()
        self._snapshots: dict[str, list] = {
            name: [] for name, spec in self.tables.items() if spec.cached
        }
        self._listeners: list[Listener] = []
        self.loading = False
        self.error: Optional[str] = None
        self.loaded = False
        # Changes merged while a bulk load is in flight
        self._replay: Optional[list[tuple]] = None

    # ── Table lookup ───────────────────────────────────────────

    def spec(self, table: str) -> TableSpec:
        try:
            return self.tables[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    def _writable(self, table: str) -> TableSpec:
        spec = self.spec(table)
        if spec.write_relation is None:
            raise ValueError(f"Table {table} is read-only")
        return spec

    def _cached(self, table: str) -> list:
        spec = self.spec(table)
        if not spec.cached:
            raise ValueError(f"Table {table} is not held in the store")
        return self._snapshots[table]

    # ── Read accessors ─────────────────────────────────────────

    def rows(self, table: str) -> tuple:
        """Current snapshot of a table, in store order."""
        return tuple(self._cached(table))

    def get(self, table: str, row_id: int):
        for entity in self._cached(table):
            if getattr(entity, "id", None) == row_id:
                return entity
        return None

    @property
    def products(self) -> tuple:
        return self.rows(PRODUCTS)

    @property
    def bill_of_materials(self) -> tuple:
        return self.rows(BILL_OF_MATERIALS)

    @property
    def purchase_orders(self) -> tuple:
        return self.rows(PURCHASE_ORDERS)

    @property
    def purchase_order_lines(self) -> tuple:
        return self.rows(PURCHASE_ORDER_LINES)

    @property
    def sales_orders(self) -> tuple:
        return self.rows(SALES_ORDERS)

    @property
    def sales_order_lines(self) -> tuple:
        return self.rows(SALES_ORDER_LINES)

    @property
    def inventory_transactions(self) -> tuple:
        return self.rows(INVENTORY_TRANSACTIONS)

    @property
    def inventory_on_hand(self) -> tuple:
        return self.rows(INVENTORY_ON_HAND)

    @property
    def low_stock_alerts(self) -> tuple:
        return self.rows(LOW_STOCK_ALERTS)

    def base_products(self) -> list:
        return [p for p in self.products if p.is_base]

    def bom_for_kit(self, kit_product_id: int) -> list:
        return [b for b in self.bill_of_materials
                if b.kit_product_id == kit_product_id]

    def lines_for_sale(self, sales_order_id: int) -> list:
        return [line for line in self.sales_order_lines
                if line.sales_order_id == sales_order_id]

    # ── View-state listeners ───────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(table)`` after any snapshot changes.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, table: str):
        for listener in list(self._listeners):
            listener(table)

    # ── Merge contract ─────────────────────────────────────────

    def _index_of(self, table: str, row_id: Any) -> int:
        for i, entity in enumerate(self._snapshots[table]):
            if getattr(entity, "id", None) == row_id:
                return i
        return -1

    def _hold_for_replay(self, op: str, table: str, arg):
        if self._replay is not None:
            self._replay.append((op, table, arg))

    def _merge(self, spec: TableSpec, existing, record: dict):
        known = {f.name for f in dataclasses.fields(spec.model) if f.init}
        changes = {k: v for k, v in record.items() if k in known}
        return dataclasses.replace(existing, **changes)

    def apply_insert(self, table: str, record: dict) -> bool:
        """Upsert ``record`` by id. Returns True if the snapshot changed."""
        self._hold_for_replay("apply_insert", table, record)
        spec = self.spec(table)
        rows = self._cached(table)
        idx = self._index_of(table, record.get("id"))
        if idx >= 0:
            merged = self._merge(spec, rows[idx], record)
            if merged == rows[idx]:
                return False
            rows[idx] = merged
        else:
            rows.append(from_record(spec.model, record))
        self._notify(table)
        return True

    def apply_update(self, table: str, record: dict) -> bool:
        """Replace the entity with ``record``'s id in place, if held."""
        self._hold_for_replay("apply_update", table, record)
        spec = self.spec(table)
        rows = self._cached(table)
        idx = self._index_of(table, record.get("id"))
        if idx < 0:
            return False
        merged = self._merge(spec, rows[idx], record)
        if merged == rows[idx]:
            return False
        rows[idx] = merged
        self._notify(table)
        return True

    def apply_delete(self, table: str, row_id: Any) -> bool:
        """Remove the entity with ``row_id``, if held."""
        self._hold_for_replay("apply_delete", table, row_id)
        rows = self._cached(table)
        idx = self._index_of(table, row_id)
        if idx < 0:
            return False
        del rows[idx]
        self._notify(table)
        return True

    def replace_all(self, table: str, records: Iterable):
        """Overwrite a whole snapshot with fresh records or entities."""
        spec = self.spec(table)
        self._cached(table)
        records = list(records)
        self._hold_for_replay("replace_all", table, records)
        self._snapshots[table] = [
            r if isinstance(r, spec.model) else from_record(spec.model, r)
            for r in records
        ]
        self._notify(table)

    # ── Loading ────────────────────────────────────────────────

    async def fetch(self, table: str) -> list:
        """Read a table or view from the backend without caching it."""
        spec = self.spec(table)
        records = await self.gateway.read(
            spec.read_relation, order_by=spec.order_by
        )
        return [from_record(spec.model, r) for r in records]

    async def _fetch_many(self, names: list[str]) -> list[list]:
        # First failure cancels the reads still in flight
        tasks = [asyncio.ensure_future(self.fetch(name)) for name in names]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def load_all(self):
        """Fetch every cached table and view in parallel.

        Either every snapshot is replaced or none is. On failure
        ``error`` holds the message and ``LoadError`` is raised.

        Changes merged while the reads are in flight are newer than what
        the reads return; they are replayed over the fresh snapshots.
        """
        names = list(self._snapshots)
        self.loading = True
        self.error = None
        self._replay = []
        try:
            results = await self._fetch_many(names)
        except GatewayError as e:
            self.error = e.message
            logger.error("Error fetching data: %s", e.message)
            raise LoadError(
                f"Failed to load {e.table or 'data'}: {e.message}",
                table=e.table,
            ) from e
        finally:
            self.loading = False
            replay, self._replay = self._replay, None

        for name, entities in zip(names, results):
            self._snapshots[name] = entities
        for op, table, arg in replay:
            getattr(self, op)(table, arg)
        if replay:
            logger.info("Replayed %d changes received during load",
                        len(replay))
        self.loaded = True
        for name in names:
            self._notify(name)
        logger.info("Loaded %d tables", len(names))

    async def refresh(self):
        """Full reload, same semantics as ``load_all``."""
        await self.load_all()

    async def refresh_products(self):
        """Re-read the computed-cost product view and overwrite products."""
        self.replace_all(PRODUCTS, await self.fetch(PRODUCTS))

    async def refresh_views(self):
        """Re-read the derived on-hand and low-stock views."""
        results = await self._fetch_many(list(DERIVED_VIEWS))
        for name, entities in zip(DERIVED_VIEWS, results):
            self.replace_all(name, entities)

    # ── Mutations ──────────────────────────────────────────────

    async def _refresh_costs_after_write(self, spec: TableSpec):
        """Re-read product costs when no change feed will prompt it.

        With a gateway that pushes changes the reconciler refreshes costs
        from the echoed event instead. A failed refresh is logged and the
        previous products snapshot kept, as for a background refresh.
        """
        if not spec.cost_dependent or self.gateway.pushes_changes:
            return
        try:
            await self.refresh_products()
        except GatewayError as e:
            logger.error("Error refreshing product costs: %s", e.message)

    async def insert(self, table: str, values: dict[str, Any]):
        """Insert a row remotely and merge the created entity."""
        spec = self._writable(table)
        record = await self.gateway.insert(spec.write_relation, values)
        if spec.cached:
            self.apply_insert(table, record)
            await self._refresh_costs_after_write(spec)
            return self.get(table, record.get("id"))
        return from_record(spec.model, record)

    async def update(self, table: str, row_id: int, values: dict[str, Any]):
        """Apply a partial update remotely and merge the result."""
        spec = self._writable(table)
        record = await self.gateway.update(spec.write_relation, row_id, values)
        if spec.cached:
            self.apply_update(table, record)
            await self._refresh_costs_after_write(spec)
            held = self.get(table, row_id)
            if held is not None:
                return held
        return from_record(spec.model, record)

    async def remove(self, table: str, row_id: int):
        """Delete a row remotely and drop it from the snapshot."""
        spec = self._writable(table)
        await self.gateway.delete(spec.write_relation, row_id)
        if spec.cached:
            self.apply_delete(table, row_id)
            await self._refresh_costs_after_write(spec)

    async def invoke_procedure(self, name: str, args: dict[str, Any]) -> Any:
        """Call a named procedure, then refresh the derived views.

        A failing procedure raises before any refresh, so nothing is
        committed. A failing refresh after a successful procedure raises
        ``ViewRefreshError``: the procedure's effects are committed, its
        return value is on ``result`` and ``table`` names the view.
        """
        logger.info("Invoking %s(%s)", name, args)
        result = await self.gateway.invoke(name, args)
        try:
            await self.refresh_views()
        except GatewayError as e:
            logger.error("%s succeeded but refreshing %s failed: %s",
                         name, e.table, e.message)
            raise ViewRefreshError(
                f"{name} succeeded but refreshing {e.table or 'views'} "
                f"failed: {e.message}",
                table=e.table, procedure=name, result=result,
            ) from e
        return result

    async def record_purchase_receipt(self, po_id: int) -> Any:
        return await self.invoke_procedure(
            Config.RECEIVE_PROCEDURE, {"po_id": po_id}
        )

    async def record_sale(self, sale_id: int) -> Any:
        return await self.invoke_procedure(
            Config.SALE_PROCEDURE, {"sale_id": sale_id}
        )

    # ── Lifecycle ──────────────────────────────────────────────

    def close(self):
        """Drop listeners and snapshots at the end of the session."""
        self._listeners.clear()
        for name in self._snapshots:
            self._snapshots[name] = []
        self.loaded = False
