"""Reusable data table: global search, per-column filters, sortable view."""

from typing import Iterable, Optional

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QHBoxLayout,
    QLineEdit,
    QPushButton,
    QTableView,
    QVBoxLayout,
    QWidget,
)

from kitledger.ui.table_model import ProjectionTableModel
from kitledger.views.table_view import (
    ALL,
    Column,
    FilterKind,
    RenderRegistry,
    Row,
)


class DataTableWidget(QWidget):
    """A table view over a projection with its search and filter inputs."""

    row_activated = Signal(object)

    def __init__(self, columns: Iterable[Column],
                 renderers: Optional[RenderRegistry] = None,
                 search_placeholder: str = "Search...", parent=None):
        super().__init__(parent)
        self.model = ProjectionTableModel(columns, renderers, self)
        self.filter_inputs: dict[str, QWidget] = {}
        self._setup_ui(search_placeholder)

    def _setup_ui(self, search_placeholder: str):
        layout = QVBoxLayout(self)

        # ── Search + filters ───────────────────────────────────
        toolbar = self._toolbar = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText(search_placeholder)
        self.search_input.textChanged.connect(self.model.set_search)
        toolbar.addWidget(self.search_input, 2)

        for column in self.model.columns:
            if not column.filterable:
                continue
            if column.filter_kind is FilterKind.SELECT:
                combo = QComboBox()
                combo.addItem("All", ALL)
                for option in column.filter_options:
                    combo.addItem(option.label, option.value)
                combo.currentIndexChanged.connect(
                    lambda _i, key=column.key, box=combo:
                        self.model.set_filter(key, box.currentData())
                )
                widget = combo
            else:
                line = QLineEdit()
                line.setPlaceholderText(column.label)
                line.textChanged.connect(
                    lambda text, key=column.key:
                        self.model.set_filter(key, text)
                )
                widget = line
            self.filter_inputs[column.key] = widget
            toolbar.addWidget(widget, 1)

        self.clear_btn = QPushButton("Clear")
        self.clear_btn.clicked.connect(self.clear_filters)
        toolbar.addWidget(self.clear_btn)
        layout.addLayout(toolbar)

        # ── Table ──────────────────────────────────────────────
        self.table = QTableView()
        self.table.setModel(self.model)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.setAlternatingRowColors(True)
        header = self.table.horizontalHeader()
        header.setStretchLastSection(True)
        header.setSectionsClickable(True)
        header.sectionClicked.connect(self.model.toggle_sort_column)
        self.table.doubleClicked.connect(self._on_activated)
        layout.addWidget(self.table)

    def add_action(self, text: str) -> QPushButton:
        """Append a button to the toolbar, after the filter inputs."""
        button = QPushButton(text)
        self._toolbar.addWidget(button)
        return button

    def set_rows(self, rows: Iterable[Row]):
        self.model.set_rows(rows)

    def clear_filters(self):
        """Reset the search box and every filter input to 'no filter'."""
        for widget in [self.search_input, *self.filter_inputs.values()]:
            widget.blockSignals(True)
        self.search_input.clear()
        for widget in self.filter_inputs.values():
            if isinstance(widget, QComboBox):
                widget.setCurrentIndex(0)
            else:
                widget.clear()
        for widget in [self.search_input, *self.filter_inputs.values()]:
            widget.blockSignals(False)
        self.model.clear_filters()

    def selected_row(self) -> Optional[Row]:
        rows = self.table.selectionModel().selectedRows()
        if rows:
            return self.model.row_at(rows[0].row())
        return None

    def _on_activated(self, index):
        row = self.model.row_at(index.row())
        if row is not None:
            self.row_activated.emit(row.source)
