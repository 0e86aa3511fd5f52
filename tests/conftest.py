"""Shared test fixtures."""

import asyncio
import copy
import os

import pytest

from kitledger.database.connection import DatabaseConnection
from kitledger.gateway.base import (
    DataGateway,
    GatewayError,
    HandlerRegistry,
    ProcedureError,
    RecordNotFoundError,
    change_payload,
)
from kitledger.gateway.local import LocalGateway
from kitledger.store.entity_store import EntityStore

# Qt widgets render without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeGateway(DataGateway):
    """In-memory gateway that records every call.

    ``tables`` maps relation -> list of records. ``aliases`` lets a view
    read through to a base relation (e.g. the computed-cost product view).
    Failures are injected through ``fail_reads`` / ``fail_writes``;
    relations in ``hang_reads`` block until cancelled and reads of a
    relation in ``gates`` wait for its event. Writes count as pushed
    changes unless a test turns ``pushes_changes`` off.
    """

    def __init__(self, tables=None, aliases=None):
        self.tables = {k: [dict(r) for r in v]
                       for k, v in (tables or {}).items()}
        self.aliases = dict(aliases or {})
        self.calls = []
        self.fail_reads: dict[str, GatewayError] = {}
        self.fail_writes: dict[str, GatewayError] = {}
        self.hang_reads: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.cancelled_reads: list[str] = []
        self.procedures = {}
        self.echo = False
        self.pushes_changes = True
        self.closed = False
        self._registry = HandlerRegistry()
        self._next_id = 1000

    def _rows(self, relation):
        return self.tables.setdefault(self.aliases.get(relation, relation), [])

    async def read(self, relation, order_by="id"):
        self.calls.append(("read", relation))
        if relation in self.hang_reads:
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                self.cancelled_reads.append(relation)
                raise
        if relation in self.gates:
            await self.gates[relation].wait()
        if relation in self.fail_reads:
            raise self.fail_reads[relation]
        await asyncio.sleep(0)
        return copy.deepcopy(self._rows(relation))

    def _check_write(self, relation):
        if relation in self.fail_writes:
            raise self.fail_writes[relation]

    async def insert(self, relation, values):
        self.calls.append(("insert", relation, dict(values)))
        self._check_write(relation)
        record = dict(values)
        if record.get("id") is None:
            self._next_id += 1
            record["id"] = self._next_id
        self._rows(relation).append(record)
        if self.echo:
            self.emit(relation, change_payload("INSERT", relation, new=record))
        return dict(record)

    async def update(self, relation, row_id, values):
        self.calls.append(("update", relation, row_id, dict(values)))
        self._check_write(relation)
        for record in self._rows(relation):
            if record["id"] == row_id:
                old = dict(record)
                record.update(values)
                if self.echo:
                    self.emit(relation, change_payload(
                        "UPDATE", relation, new=record, old=old))
                return dict(record)
        raise RecordNotFoundError(f"no row {row_id}", table=relation)

    async def delete(self, relation, row_id):
        self.calls.append(("delete", relation, row_id))
        self._check_write(relation)
        rows = self._rows(relation)
        for record in list(rows):
            if record["id"] == row_id:
                rows.remove(record)
                if self.echo:
                    self.emit(relation, change_payload(
                        "DELETE", relation, old=record))

    async def invoke(self, procedure, args):
        self.calls.append(("invoke", procedure, dict(args)))
        if procedure not in self.procedures:
            raise ProcedureError(f"Unknown procedure: {procedure}",
                                 procedure=procedure)
        result = self.procedures[procedure]
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(args)
        return result

    def subscribe(self, relation, handler):
        self.calls.append(("subscribe", relation))
        return self._registry.add(relation, handler)

    def unsubscribe(self, subscription):
        self.calls.append(("unsubscribe", subscription.relation))
        self._registry.remove(subscription)

    def subscriber_count(self, relation=None):
        return self._registry.count(relation)

    def emit(self, relation, payload):
        """Push a raw notification payload to subscribers of ``relation``."""
        self._registry.dispatch(relation, payload)

    async def aclose(self):
        self.closed = True

    def calls_of(self, kind):
        return [c for c in self.calls if c[0] == kind]


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide a database connection (schema created by the gateway)."""
    return DatabaseConnection(db_path)


@pytest.fixture
def local_gateway(db):
    """Provide an initialized local gateway."""
    return LocalGateway(db)


@pytest.fixture
def local_store(local_gateway):
    """Provide a store over the local gateway."""
    return EntityStore(local_gateway)


@pytest.fixture
def fake_gateway():
    """Provide an empty in-memory gateway."""
    return FakeGateway(aliases={
        "inventory_products_with_cost": "inventory_products",
    })


@pytest.fixture
def fake_store(fake_gateway):
    """Provide a store over the in-memory gateway."""
    return EntityStore(fake_gateway)


@pytest.fixture
def seeded_gateway(fake_gateway):
    """In-memory gateway holding a small kit catalogue."""
    fake_gateway.tables.update({
        "inventory_products": [
            {"id": 1, "sku": "ALM", "name": "Almonds", "type": "base",
             "avg_cost": 4.0, "computed_cost": 4.0, "reorder_level": 10},
            {"id": 2, "sku": "RSN", "name": "Raisins", "type": "base",
             "avg_cost": 2.0, "computed_cost": 2.0, "reorder_level": 5},
            {"id": 3, "sku": "KIT-1", "name": "Trail Mix", "type": "kit",
             "avg_cost": 0.0, "computed_cost": 5.0, "reorder_level": 0},
        ],
        "inventory_bill_of_materials": [
            {"id": 10, "kit_product_id": 3, "component_product_id": 1,
             "quantity": 0.5, "unit_of_measure": "lb"},
            {"id": 11, "kit_product_id": 3, "component_product_id": 2,
             "quantity": 1.5, "unit_of_measure": "lb"},
        ],
        "inventory_on_hand": [
            {"product_id": 1, "sku": "ALM", "name": "Almonds",
             "on_hand": 20, "avg_cost": 4.0, "reorder_level": 10},
            {"product_id": 2, "sku": "RSN", "name": "Raisins",
             "on_hand": 3, "avg_cost": 2.0, "reorder_level": 5},
            {"product_id": 3, "sku": "KIT-1", "name": "Trail Mix",
             "on_hand": 4, "avg_cost": 0.0, "reorder_level": 0},
        ],
        "low_stock_alerts": [
            {"product_id": 2, "sku": "RSN", "name": "Raisins",
             "on_hand": 3, "avg_cost": 2.0, "reorder_level": 5},
        ],
    })
    return fake_gateway


@pytest.fixture
def seeded_store(seeded_gateway):
    """A loaded store over ``seeded_gateway``."""
    store = EntityStore(seeded_gateway)
    asyncio.run(store.load_all())
    return store
