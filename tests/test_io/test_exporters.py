"""Tests for CSV and XLSX export of table projections."""

import csv

from openpyxl import load_workbook

from kitledger.io.exporters import export_view_csv, export_view_xlsx
from kitledger.views.columns import default_renderers
from kitledger.views.table_view import Column, Row

COLUMNS = [
    Column("sku", "SKU"),
    Column("computed_cost", "Unit Cost", render="currency"),
    Column("is_gift", "Gift?", render="yes_no"),
]

ROWS = [
    Row({"sku": "ALM", "computed_cost": 4.0, "is_gift": False}),
    Row({"sku": "KIT-1", "computed_cost": 1234.5, "is_gift": True}),
]


def _read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestExportCsv:
    def test_writes_rendered_rows(self, tmp_path):
        path = tmp_path / "products.csv"
        count = export_view_csv(COLUMNS, ROWS, path, default_renderers())
        assert count == 2
        assert _read_csv(path) == [
            ["SKU", "Unit Cost", "Gift?"],
            ["ALM", "$4.00", "No"],
            ["KIT-1", "$1,234.50", "Yes"],
        ]

    def test_default_renderers_use_cell_text(self, tmp_path):
        path = tmp_path / "plain.csv"
        export_view_csv(COLUMNS, ROWS, path)
        assert _read_csv(path)[1] == ["ALM", "4", "false"]

    def test_empty_rows_header_only(self, tmp_path):
        path = tmp_path / "empty.csv"
        assert export_view_csv(COLUMNS, [], path) == 0
        assert _read_csv(path) == [["SKU", "Unit Cost", "Gift?"]]

    def test_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "a" / "b" / "out.csv"
        export_view_csv(COLUMNS, ROWS, str(path))
        assert path.exists()


class TestExportXlsx:
    def test_writes_raw_values(self, tmp_path):
        path = tmp_path / "products.xlsx"
        count = export_view_xlsx(COLUMNS, ROWS, path, title="Products")
        assert count == 2

        wb = load_workbook(path)
        ws = wb.active
        assert ws.title == "Products"
        values = [list(r) for r in ws.iter_rows(values_only=True)]
        assert values == [
            ["SKU", "Unit Cost", "Gift?"],
            ["ALM", 4.0, False],
            ["KIT-1", 1234.5, True],
        ]

    def test_long_title_truncated(self, tmp_path):
        path = tmp_path / "long.xlsx"
        export_view_xlsx(COLUMNS, [], path, title="X" * 40)
        assert load_workbook(path).active.title == "X" * 31

    def test_column_widths_fitted(self, tmp_path):
        path = tmp_path / "w.xlsx"
        export_view_xlsx(COLUMNS, ROWS, path)
        ws = load_workbook(path).active
        assert ws.column_dimensions["A"].width == len("KIT-1") + 2
