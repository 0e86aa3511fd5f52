"""Tests for product and kit workflows."""

import asyncio

import pytest

from kitledger.gateway.base import GatewayError
from kitledger.io.validators import ValidationError
from kitledger.services.errors import CascadeError
from kitledger.services.kits import (
    delete_product,
    kit_cost_breakdown,
    save_product,
)
from kitledger.store.tables import BILL_OF_MATERIALS, PRODUCTS

BOM_RELATION = "inventory_bill_of_materials"
PRODUCT_RELATION = "inventory_products"


def _kit(**overrides):
    values = {"sku": "KIT-2", "name": "Snack Pack", "type": "kit",
              "avg_cost": 9.99, "reorder_level": 2}
    values.update(overrides)
    return values


def _writes(gateway):
    return [c for c in gateway.calls if c[0] in ("insert", "update", "delete")]


class TestSaveProduct:
    def test_create_base_product(self, fake_store, fake_gateway):
        product = asyncio.run(save_product(fake_store, {
            "sku": " CSH ", "name": "Cashews", "type": "base",
            "avg_cost": "6.5", "reorder_level": "4"}))
        assert product.sku == "CSH"
        assert product.avg_cost == 6.5
        assert product.reorder_level == 4
        assert fake_store.get(PRODUCTS, product.id) is product

    def test_base_product_ignores_bom_lines(self, seeded_store,
                                            seeded_gateway):
        asyncio.run(save_product(seeded_store, {
            "sku": "CSH", "name": "Cashews", "type": "base"},
            bom_lines=[{"component_product_id": 1, "quantity": 1}]))
        assert [c[1] for c in _writes(seeded_gateway)] == [PRODUCT_RELATION]

    def test_create_kit_zeroes_avg_cost(self, seeded_store, seeded_gateway):
        kit = asyncio.run(save_product(seeded_store, _kit(), bom_lines=[
            {"component_product_id": 1, "quantity": 2,
             "unit_of_measure": "oz"},
        ]))
        assert kit.avg_cost == 0.0
        inserted = seeded_gateway.calls_of("insert")
        assert inserted[0][2]["avg_cost"] == 0.0
        assert inserted[1][1] == BOM_RELATION
        assert inserted[1][2] == {
            "kit_product_id": kit.id, "component_product_id": 1,
            "quantity": 2.0, "unit_of_measure": "oz"}
        assert len(seeded_store.bom_for_kit(kit.id)) == 1

    def test_invalid_product_makes_no_calls(self, fake_store, fake_gateway):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(save_product(fake_store, {"sku": "", "name": ""}))
        assert "sku is required" in exc.value.errors
        assert fake_gateway.calls == []

    def test_invalid_bom_makes_no_calls(self, seeded_store, seeded_gateway):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(save_product(seeded_store, _kit(), bom_lines=[
                {"component_product_id": 3, "quantity": 1},
                {"component_product_id": 42, "quantity": 0},
            ]))
        errors = exc.value.errors
        assert any("is a kit" in e for e in errors)
        assert any("does not exist" in e for e in errors)
        assert _writes(seeded_gateway) == []

    def test_edit_replaces_all_bom_lines(self, seeded_store, seeded_gateway):
        asyncio.run(save_product(
            seeded_store,
            {"sku": "KIT-1", "name": "Trail Mix", "type": "kit"},
            bom_lines=[{"component_product_id": 2, "quantity": 3}],
            product_id=3,
        ))
        writes = _writes(seeded_gateway)
        assert [w[0] for w in writes] == [
            "update", "delete", "delete", "insert"]
        assert {w[2] for w in writes if w[0] == "delete"} == {10, 11}
        lines = seeded_store.bom_for_kit(3)
        assert [(b.component_product_id, b.quantity) for b in lines] == [
            (2, 3.0)]

    def test_edit_to_base_drops_bom(self, seeded_store):
        asyncio.run(save_product(
            seeded_store,
            {"sku": "KIT-1", "name": "Trail Mix", "type": "base"},
            bom_lines=[{"component_product_id": 2, "quantity": 3}],
            product_id=3,
        ))
        assert seeded_store.bom_for_kit(3) == []
        assert seeded_store.get(PRODUCTS, 3).type == "base"

    def test_first_step_failure_raises_original(self, fake_store,
                                                fake_gateway):
        error = GatewayError("boom", table=PRODUCT_RELATION)
        fake_gateway.fail_writes[PRODUCT_RELATION] = error
        with pytest.raises(GatewayError) as exc:
            asyncio.run(save_product(fake_store, _kit(type="base")))
        assert exc.value is error

    def test_bom_failure_raises_cascade_error(self, seeded_store,
                                              seeded_gateway):
        seeded_gateway.fail_writes[BOM_RELATION] = GatewayError(
            "bom down", table=BOM_RELATION)
        with pytest.raises(CascadeError) as exc:
            asyncio.run(save_product(seeded_store, _kit(), bom_lines=[
                {"component_product_id": 1, "quantity": 1}]))
        err = exc.value
        assert err.step == "insert BOM line 1"
        assert err.completed == ["save product KIT-2"]
        assert isinstance(err.cause, GatewayError)
        # The product insert stays committed
        assert any(p.sku == "KIT-2" for p in seeded_store.products)


class TestDeleteProduct:
    def test_deletes_lines_before_product(self, seeded_store,
                                          seeded_gateway):
        asyncio.run(delete_product(seeded_store, 3))
        deletes = seeded_gateway.calls_of("delete")
        assert [d[1] for d in deletes] == [
            BOM_RELATION, BOM_RELATION, PRODUCT_RELATION]
        assert seeded_store.get(PRODUCTS, 3) is None
        assert seeded_store.rows(BILL_OF_MATERIALS) == ()

    def test_base_product_single_delete(self, seeded_store, seeded_gateway):
        asyncio.run(delete_product(seeded_store, 1))
        assert len(seeded_gateway.calls_of("delete")) == 1

    def test_product_delete_failure_after_lines(self, seeded_store,
                                                seeded_gateway):
        seeded_gateway.fail_writes[PRODUCT_RELATION] = GatewayError("fk")
        with pytest.raises(CascadeError) as exc:
            asyncio.run(delete_product(seeded_store, 3))
        assert exc.value.completed == [
            "delete BOM line 10", "delete BOM line 11"]


class TestKitCostBreakdown:
    def test_breakdown(self, seeded_store):
        rows = kit_cost_breakdown(seeded_store, 3)
        assert [(c.sku, qty, cost) for c, qty, cost in rows] == [
            ("ALM", 0.5, 2.0), ("RSN", 1.5, 3.0)]
        assert sum(cost for _, _, cost in rows) == \
            seeded_store.get(PRODUCTS, 3).computed_cost

    def test_unknown_kit(self, seeded_store):
        assert kit_cost_breakdown(seeded_store, 99) == []
