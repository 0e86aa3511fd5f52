"""Tests for dataclass model properties and record conversion."""

from kitledger.database.models import (
    LowStockAlert,
    Product,
    PurchaseOrder,
    SalesOrder,
    SalesOrderLine,
    InventoryTransaction,
    from_record,
    to_record,
)


class TestProductProperties:
    def test_kit_and_base_flags(self):
        assert Product(type="kit").is_kit is True
        assert Product(type="kit").is_base is False
        assert Product(type="base").is_base is True

    def test_unit_cost_prefers_computed(self):
        p = Product(avg_cost=3.0, computed_cost=4.5)
        assert p.unit_cost == 4.5

    def test_unit_cost_falls_back_to_avg(self):
        p = Product(avg_cost=3.0, computed_cost=0.0)
        assert p.unit_cost == 3.0

    def test_unit_cost_handles_nulls(self):
        p = Product(avg_cost=None, computed_cost=None)
        assert p.unit_cost == 0.0

    def test_display_name(self):
        assert Product(name="Almonds", sku="ALM").display_name == "Almonds"
        assert Product(name="", sku="ALM").display_name == "ALM"
        assert Product().display_name == "(Unnamed)"


class TestOrderProperties:
    def test_total_surcharges(self):
        po = PurchaseOrder(freight_in=10, import_duty=2.5, other_charges=1)
        assert po.total_surcharges == 13.5

    def test_sale_is_recorded(self):
        assert SalesOrder().is_recorded is False
        assert SalesOrder(total_price=12.0).is_recorded is True

    def test_line_total(self):
        assert SalesOrderLine(qty=3, unit_price_override=2.5).line_total == 7.5

    def test_extended_cost_signed(self):
        txn = InventoryTransaction(change_qty=-2, unit_cost=4.0)
        assert txn.extended_cost == -8.0

    def test_shortage(self):
        alert = LowStockAlert(on_hand=3, reorder_level=10)
        assert alert.shortage == 7


class TestRecordConversion:
    def test_from_record_ignores_unknown_columns(self):
        p = from_record(Product, {"id": 1, "sku": "A", "extra": "x"})
        assert p.id == 1
        assert p.sku == "A"
        assert not hasattr(p, "extra")

    def test_from_record_keeps_defaults(self):
        p = from_record(Product, {"id": 2})
        assert p.type == "base"
        assert p.computed_cost == 0.0

    def test_to_record(self):
        record = to_record(Product(id=5, sku="B", name="Bolt"))
        assert record["id"] == 5
        assert record["sku"] == "B"
        assert "unit_cost" not in record
