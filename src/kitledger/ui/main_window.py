"""Main window — one DataTableWidget tab per store table plus a KPI bar."""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from PySide6.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from kitledger.config import Config
from kitledger.gateway.base import GatewayError, ViewRefreshError
from kitledger.io.exporters import export_view_csv, export_view_xlsx
from kitledger.services import analytics, kits, low_stock, purchasing
from kitledger.store.tables import (
    BILL_OF_MATERIALS,
    INVENTORY_TRANSACTIONS,
    LOW_STOCK_ALERTS,
    PRODUCTS,
    PURCHASE_ORDERS,
    SALES_ORDERS,
)
from kitledger.ui.data_table import DataTableWidget
from kitledger.utils.formatters import (
    format_currency,
    format_percent,
    format_quantity,
)
from kitledger.views import columns as cols

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """Dashboard shell; redraws a tab whenever its store table changes."""

    def __init__(self, session, loop: asyncio.AbstractEventLoop):
        super().__init__()
        self.session = session
        self.store = session.store
        self.loop = loop
        self.renderers = cols.default_renderers()
        # tab title -> (widget, row builder, store tables it reads)
        self._tabs: dict[str, tuple[DataTableWidget, Callable, set]] = {}
        self.setWindowTitle("KitLedger")
        self.resize(1200, 760)
        self._setup_ui()
        self._unsubscribe = self.store.subscribe(self._on_store_changed)
        self.refresh_all()

    def _setup_ui(self):
        central = QWidget()
        layout = QVBoxLayout(central)

        # ── KPI bar ────────────────────────────────────────────
        kpis = QHBoxLayout()
        self.value_label = QLabel()
        self.turnover_label = QLabel()
        self.low_stock_label = QLabel()
        self.margin_label = QLabel()
        for label in (self.value_label, self.turnover_label,
                      self.low_stock_label, self.margin_label):
            kpis.addWidget(label)
        kpis.addStretch()

        self.reload_btn = QPushButton("Reload")
        self.reload_btn.clicked.connect(self._on_reload)
        kpis.addWidget(self.reload_btn)
        self.export_btn = QPushButton("Export")
        self.export_btn.clicked.connect(self._on_export)
        kpis.addWidget(self.export_btn)
        layout.addLayout(kpis)

        # ── Tables ─────────────────────────────────────────────
        self.tabs = QTabWidget()
        products = self._add_tab("Products", cols.PRODUCT_COLUMNS,
                                 cols.product_rows, {PRODUCTS})
        products.row_activated.connect(self._on_product_activated)
        self._add_tab("Kits", cols.BOM_COLUMNS,
                      cols.bom_rows, {PRODUCTS, BILL_OF_MATERIALS})
        self.po_table = self._add_tab(
            "Purchase Orders", cols.PURCHASE_ORDER_COLUMNS,
            cols.purchase_order_rows, {PURCHASE_ORDERS},
        )
        self.receive_btn = self.po_table.add_action("Receive")
        self.receive_btn.clicked.connect(self._on_receive)
        self._add_tab("Sales Orders", cols.SALES_ORDER_COLUMNS,
                      cols.sales_order_rows, {SALES_ORDERS})
        self._add_tab("Inventory Ledger", cols.LEDGER_COLUMNS,
                      cols.ledger_rows, {PRODUCTS, INVENTORY_TRANSACTIONS})
        self.low_stock_table = self._add_tab(
            "Low Stock", cols.LOW_STOCK_COLUMNS,
            cols.low_stock_rows, {LOW_STOCK_ALERTS},
        )
        self.reminder_btn = self.low_stock_table.add_action("Send Reminder")
        self.reminder_btn.clicked.connect(self._on_send_reminder)
        self._add_sales_tab()
        layout.addWidget(self.tabs)

        self.setCentralWidget(central)

    def _add_tab(self, title: str, columns, builder, tables: set) -> DataTableWidget:
        widget = DataTableWidget(columns, self.renderers,
                                 search_placeholder=f"Search {title.lower()}...")
        self._tabs[title] = (widget, builder, tables)
        self.tabs.addTab(widget, title)
        return widget

    def _add_sales_tab(self):
        # Fed from the summary view, not from the store
        page = QWidget()
        page_layout = QVBoxLayout(page)
        self.sales_table = DataTableWidget(
            cols.SALES_ANALYSIS_COLUMNS, self.renderers,
            search_placeholder="Search sales...",
        )
        self.sales_table.model.modelReset.connect(self._refresh_sales_totals)
        page_layout.addWidget(self.sales_table)
        self.sales_totals_label = QLabel()
        page_layout.addWidget(self.sales_totals_label)
        self._tabs["Sales Analysis"] = (self.sales_table, None, set())
        self.tabs.addTab(page, "Sales Analysis")

    # ── Refresh ────────────────────────────────────────────────

    def refresh_all(self):
        for widget, builder, _tables in self._tabs.values():
            if builder is not None:
                widget.set_rows(builder(self.store))
        self._refresh_kpis()
        self.load_sales_kpis()

    def _on_store_changed(self, table: str):
        for widget, builder, tables in self._tabs.values():
            if table in tables:
                widget.set_rows(builder(self.store))
        self._refresh_kpis()

    def _refresh_kpis(self):
        kpi = analytics.kpi_summary(self.store, [])
        self.value_label.setText(
            f"Inventory value: {format_currency(kpi.inventory_value)}"
        )
        self.low_stock_label.setText(f"Low stock: {kpi.low_stock_count}")

    def load_sales_kpis(self):
        """Fetch the sales summary view for turnover and margin."""
        try:
            summaries = self.loop.run_until_complete(
                analytics.fetch_sales_summary(self.store)
            )
        except GatewayError as e:
            logger.error("Error loading sales summary: %s", e.message)
            return
        self.sales_table.set_rows(cols.sales_summary_rows(summaries))
        kpi = analytics.kpi_summary(self.store, summaries)
        self.turnover_label.setText(
            f"Turnover: {kpi.inventory_turnover:.2f}"
        )
        self.margin_label.setText(
            f"Margin: {format_percent(kpi.gross_margin_pct)}"
        )

    def _refresh_sales_totals(self):
        """Totals over the sales rows currently visible in the table."""
        visible = [row.source for row in self.sales_table.model.projection]
        totals = analytics.sales_totals(visible)
        self.sales_totals_label.setText(
            f"Revenue: {format_currency(totals['total_revenue'])}   "
            f"COGS: {format_currency(totals['total_cogs'])}   "
            f"Shipping: {format_currency(totals['total_shipping'])}   "
            f"Gross profit: {format_currency(totals['gross_profit'])}   "
            f"Margin: {format_percent(totals['gross_margin_pct'])}"
        )

    def _on_reload(self):
        try:
            self.loop.run_until_complete(self.store.refresh())
            self.load_sales_kpis()
        except GatewayError as e:
            QMessageBox.warning(self, "Reload Failed", str(e))

    # ── Actions ────────────────────────────────────────────────

    def _on_product_activated(self, product):
        if not product.is_kit:
            return
        lines = [
            f"{component.sku}: {format_quantity(qty)} x "
            f"{format_currency(component.unit_cost)} = {format_currency(cost)}"
            for component, qty, cost in kits.kit_cost_breakdown(
                self.store, product.id)
        ]
        lines.append(f"Kit cost: {format_currency(product.computed_cost)}")
        QMessageBox.information(self, product.display_name, "\n".join(lines))

    def _on_receive(self):
        row = self.po_table.selected_row()
        if row is None:
            QMessageBox.information(self, "Receive",
                                    "Select a purchase order to receive.")
            return
        po = row.source
        reply = QMessageBox.question(
            self, "Receive",
            f"Receive purchase order #{po.id} from {po.vendor}?",
        )
        if reply != QMessageBox.Yes:
            return
        try:
            self.loop.run_until_complete(
                purchasing.receive_purchase_order(self.store, po.id)
            )
        except ViewRefreshError as e:
            QMessageBox.warning(
                self, "Receive",
                f"Purchase order #{po.id} was received, but the stock "
                f"views could not be refreshed. Use Reload.\n{e.message}",
            )
        except (GatewayError, ValueError) as e:
            QMessageBox.warning(self, "Receive Failed", str(e))

    def _on_send_reminder(self):
        row = self.low_stock_table.selected_row()
        if row is None:
            QMessageBox.information(self, "Send Reminder",
                                    "Select a low-stock product first.")
            return
        alert = row.source
        try:
            self.loop.run_until_complete(
                low_stock.send_reminder(self.store, alert)
            )
        except GatewayError as e:
            QMessageBox.warning(self, "Send Reminder Failed", str(e))
            return
        QMessageBox.information(self, "Send Reminder",
                                f"Reorder reminder sent for {alert.sku}.")

    # ── Export ─────────────────────────────────────────────────

    def _on_export(self):
        title = self.tabs.tabText(self.tabs.currentIndex())
        widget, _builder, _tables = self._tabs[title]
        default = Path(Config.EXPORT_DIRECTORY) / (
            title.lower().replace(" ", "_") + ".csv"
        )
        path, _ = QFileDialog.getSaveFileName(
            self, "Export", str(default),
            "CSV Files (*.csv);;Excel Files (*.xlsx)",
        )
        if not path:
            return
        rows = widget.model.projection
        columns = widget.model.columns
        if path.lower().endswith(".xlsx"):
            count = export_view_xlsx(columns, rows, path, title=title)
        else:
            count = export_view_csv(columns, rows, path, self.renderers)
        logger.info("Exported %d %s rows to %s", count, title, path)

    def closeEvent(self, event):
        self._unsubscribe()
        super().closeEvent(event)
