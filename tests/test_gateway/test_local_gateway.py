"""Tests for the in-process SQLite gateway."""

import asyncio

import pytest

from kitledger.gateway.base import (
    GatewayError,
    ProcedureError,
    RecordNotFoundError,
)

PRODUCTS = "inventory_products"


def _product(**overrides):
    values = {"sku": "ALM", "name": "Almonds", "type": "base",
              "avg_cost": 4.0, "reorder_level": 10}
    values.update(overrides)
    return values


class TestLocalReads:
    def test_read_empty_table(self, local_gateway):
        assert asyncio.run(local_gateway.read(PRODUCTS)) == []

    def test_read_ordered_by_id(self, local_gateway):
        async def scenario():
            await local_gateway.insert(PRODUCTS, _product(sku="B"))
            await local_gateway.insert(PRODUCTS, _product(sku="A"))
            return await local_gateway.read(PRODUCTS)
        rows = asyncio.run(scenario())
        assert [r["sku"] for r in rows] == ["B", "A"]

    def test_read_view_without_order(self, local_gateway):
        async def scenario():
            await local_gateway.insert(PRODUCTS, _product())
            return await local_gateway.read("inventory_on_hand",
                                            order_by=None)
        rows = asyncio.run(scenario())
        assert rows[0]["on_hand"] == 0

    def test_unknown_relation(self, local_gateway):
        with pytest.raises(GatewayError) as exc:
            asyncio.run(local_gateway.read("nope"))
        assert exc.value.table == "nope"

    def test_unknown_order_column(self, local_gateway):
        with pytest.raises(GatewayError):
            asyncio.run(local_gateway.read("inventory_on_hand"))


class TestLocalWrites:
    def test_insert_returns_created_row(self, local_gateway):
        row = asyncio.run(local_gateway.insert(PRODUCTS, _product()))
        assert row["id"] is not None
        assert row["sku"] == "ALM"
        assert row["created_at"] is not None

    def test_insert_bool_round_trip(self, local_gateway):
        row = asyncio.run(local_gateway.insert("inventory_sales_orders", {
            "customer": "Acme", "date": "2026-01-01", "is_gift": True,
        }))
        assert row["is_gift"] is True

    def test_insert_unknown_column(self, local_gateway):
        with pytest.raises(GatewayError, match="Unknown column"):
            asyncio.run(local_gateway.insert(PRODUCTS, _product(color="red")))

    def test_insert_constraint_violation(self, local_gateway):
        async def scenario():
            await local_gateway.insert(PRODUCTS, _product())
            await local_gateway.insert(PRODUCTS, _product())
        with pytest.raises(GatewayError) as exc:
            asyncio.run(scenario())
        assert exc.value.table == PRODUCTS

    def test_insert_into_view_rejected(self, local_gateway):
        with pytest.raises(GatewayError, match="read-only"):
            asyncio.run(local_gateway.insert("inventory_on_hand", {}))

    def test_update_applies_partial_change(self, local_gateway):
        async def scenario():
            row = await local_gateway.insert(PRODUCTS, _product())
            return await local_gateway.update(PRODUCTS, row["id"],
                                              {"name": "Roasted Almonds"})
        row = asyncio.run(scenario())
        assert row["name"] == "Roasted Almonds"
        assert row["sku"] == "ALM"

    def test_update_missing_id(self, local_gateway):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(local_gateway.update(PRODUCTS, 999, {"name": "x"}))

    def test_delete(self, local_gateway):
        async def scenario():
            row = await local_gateway.insert(PRODUCTS, _product())
            await local_gateway.delete(PRODUCTS, row["id"])
            return await local_gateway.read(PRODUCTS)
        assert asyncio.run(scenario()) == []

    def test_delete_missing_id_is_noop(self, local_gateway):
        asyncio.run(local_gateway.delete(PRODUCTS, 999))


class TestLocalNotifications:
    def test_pushes_changes(self, local_gateway):
        assert local_gateway.pushes_changes is True

    def test_writes_are_published(self, local_gateway):
        events = []
        local_gateway.subscribe(PRODUCTS, events.append)

        async def scenario():
            row = await local_gateway.insert(PRODUCTS, _product())
            await local_gateway.update(PRODUCTS, row["id"], {"name": "N"})
            await local_gateway.delete(PRODUCTS, row["id"])
        asyncio.run(scenario())

        assert [e["eventType"] for e in events] == [
            "INSERT", "UPDATE", "DELETE"]
        assert events[1]["old"]["name"] == "Almonds"
        assert events[1]["new"]["name"] == "N"
        assert events[2]["new"] == {}
        assert events[2]["old"]["sku"] == "ALM"

    def test_other_relations_not_notified(self, local_gateway):
        events = []
        local_gateway.subscribe("inventory_purchase_orders", events.append)
        asyncio.run(local_gateway.insert(PRODUCTS, _product()))
        assert events == []

    def test_unsubscribe(self, local_gateway):
        events = []
        sub = local_gateway.subscribe(PRODUCTS, events.append)
        local_gateway.unsubscribe(sub)
        asyncio.run(local_gateway.insert(PRODUCTS, _product()))
        assert events == []
        assert local_gateway.subscriber_count(PRODUCTS) == 0

    def test_failed_write_not_published(self, local_gateway):
        events = []
        local_gateway.subscribe(PRODUCTS, events.append)
        with pytest.raises(GatewayError):
            asyncio.run(local_gateway.update(PRODUCTS, 42, {"name": "x"}))
        assert events == []

    def test_subscribe_unknown_relation(self, local_gateway):
        with pytest.raises(GatewayError):
            local_gateway.subscribe("missing", print)


class TestLocalProcedures:
    def test_unknown_procedure(self, local_gateway):
        with pytest.raises(ProcedureError) as exc:
            asyncio.run(local_gateway.invoke("record_sale", {"sale_id": 1}))
        assert exc.value.procedure == "record_sale"

    def test_registered_procedure_receives_args(self, local_gateway):
        seen = {}

        def record_sale(gateway, sale_id):
            seen["gateway"] = gateway
            seen["sale_id"] = sale_id
            return {"ok": True}

        local_gateway.register_procedure("record_sale", record_sale)
        result = asyncio.run(local_gateway.invoke("record_sale",
                                                  {"sale_id": 7}))
        assert result == {"ok": True}
        assert seen == {"gateway": local_gateway, "sale_id": 7}

    def test_procedure_errors_translated(self, local_gateway):
        def broken(gateway, **args):
            raise ValueError("bad input")

        local_gateway.register_procedure("broken", broken)
        with pytest.raises(ProcedureError, match="bad input"):
            asyncio.run(local_gateway.invoke("broken", {}))

    def test_wrong_arguments(self, local_gateway):
        local_gateway.register_procedure("one_arg", lambda gw, po_id: po_id)
        with pytest.raises(ProcedureError):
            asyncio.run(local_gateway.invoke("one_arg", {"sale_id": 1}))
