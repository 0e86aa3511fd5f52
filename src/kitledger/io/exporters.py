"""CSV and Excel (XLSX) export of a table projection."""

import csv
from pathlib import Path
from typing import Iterable, Optional

from openpyxl import Workbook

from kitledger.views.table_view import Column, RenderRegistry, Row


def export_view_csv(columns: Iterable[Column], rows: Iterable[Row],
                    filepath: str | Path,
                    renderers: Optional[RenderRegistry] = None) -> int:
    """Write the rows as displayed, column labels as header.

    Returns the number of rows written.
    """
    columns = list(columns)
    renderers = renderers or RenderRegistry()
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    rendered = renderers.render_rows(columns, rows)
    with open(filepath, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([c.label for c in columns])
        writer.writerows(rendered)
    return len(rendered)


def export_view_xlsx(columns: Iterable[Column], rows: Iterable[Row],
                     filepath: str | Path, title: str = "Export") -> int:
    """Write raw cell values to a workbook so numbers stay numeric.

    Returns the number of rows written.
    """
    columns = list(columns)
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    # Excel caps sheet titles at 31 chars
    ws.title = title[:31]
    ws.append([c.label for c in columns])

    count = 0
    for row in rows:
        ws.append([row.value(c.key) for c in columns])
        count += 1

    # Auto-fit column widths (approximate)
    for col in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)

    wb.save(filepath)
    return count
