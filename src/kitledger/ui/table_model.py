"""Qt item model over a table projection."""

from typing import Any, Iterable, Optional

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt

from kitledger.views.table_view import (
    Column,
    RenderRegistry,
    Row,
    SortDirection,
    TableQuery,
    project,
)


class ProjectionTableModel(QAbstractTableModel):
    """Read-only model showing ``project(columns, rows, query)``.

    The projection is recomputed whenever rows or the query change.
    """

    def __init__(self, columns: Iterable[Column],
                 renderers: Optional[RenderRegistry] = None, parent=None):
        super().__init__(parent)
        self.columns = list(columns)
        self.renderers = renderers or RenderRegistry()
        self.query = TableQuery()
        self._rows: list[Row] = []
        self._projection: list[Row] = []

    # ── Data in ────────────────────────────────────────────────

    def set_rows(self, rows: Iterable[Row]):
        self._rows = list(rows)
        self._reproject()

    def set_search(self, term: str):
        self.query.search = term
        self._reproject()

    def set_filter(self, key: str, value: str):
        self.query.set_filter(key, value)
        self._reproject()

    def clear_filters(self):
        self.query.clear_filters()
        self._reproject()

    def toggle_sort_column(self, section: int):
        """Header click handler; ignored for non-sortable columns."""
        if not 0 <= section < len(self.columns):
            return
        column = self.columns[section]
        if not column.sortable:
            return
        self.query.toggle_sort(column.key)
        self._reproject()
        self.headerDataChanged.emit(
            Qt.Horizontal, 0, len(self.columns) - 1
        )

    def _reproject(self):
        self.beginResetModel()
        self._projection = project(self.columns, self._rows, self.query)
        self.endResetModel()

    # ── Data out ───────────────────────────────────────────────

    @property
    def projection(self) -> list[Row]:
        return list(self._projection)

    def row_at(self, row: int) -> Optional[Row]:
        if 0 <= row < len(self._projection):
            return self._projection[row]
        return None

    def rowCount(self, parent=QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return len(self._projection)

    def columnCount(self, parent=QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return len(self.columns)

    def data(self, index: QModelIndex, role=Qt.DisplayRole) -> Any:
        if not index.isValid():
            return None
        row = self._projection[index.row()]
        column = self.columns[index.column()]
        if role == Qt.DisplayRole:
            return self.renderers.render_cell(column, row)
        if role == Qt.UserRole:
            return row.value(column.key)
        return None

    def headerData(self, section: int, orientation, role=Qt.DisplayRole):
        if role != Qt.DisplayRole:
            return None
        if orientation != Qt.Horizontal:
            return str(section + 1)
        column = self.columns[section]
        sort = self.query.sort
        if sort is not None and sort.key == column.key:
            arrow = "▲" if sort.direction is SortDirection.ASC else "▼"
            return f"{column.label} {arrow}"
        return column.label
