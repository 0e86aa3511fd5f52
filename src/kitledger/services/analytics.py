"""Dashboard KPIs and sales-analysis aggregates."""

import logging
from typing import Iterable

from kitledger.database.models import KpiSummary, SalesOrderSummary
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import SALES_ORDER_SUMMARY

logger = logging.getLogger(__name__)


def inventory_value(store: EntityStore) -> float:
    """Sum of on-hand quantity times the product's current unit cost."""
    products = {p.id: p for p in store.products}
    total = 0.0
    for row in store.inventory_on_hand:
        product = products.get(row.product_id)
        cost = product.unit_cost if product else row.avg_cost
        total += row.on_hand * (cost or 0)
    return total


def margin_pct(revenue: float, cogs: float, shipping: float = 0.0) -> float:
    if not revenue:
        return 0.0
    return (revenue - cogs - shipping) / revenue * 100


def sales_totals(summaries: Iterable[SalesOrderSummary]) -> dict[str, float]:
    """Totals for a set of sales summaries, including the margin %."""
    revenue = cogs = shipping = 0.0
    for s in summaries:
        revenue += s.total_revenue or 0
        cogs += s.total_cogs or 0
        shipping += s.shipping_expense or 0
    return {
        "total_revenue": revenue,
        "total_cogs": cogs,
        "total_shipping": shipping,
        "gross_profit": revenue - cogs - shipping,
        "gross_margin_pct": margin_pct(revenue, cogs, shipping),
    }


def filter_by_customer(summaries: Iterable[SalesOrderSummary],
                       customer: str = "") -> list[SalesOrderSummary]:
    """Case-insensitive substring match on the customer name."""
    needle = customer.strip().lower()
    if not needle:
        return list(summaries)
    return [s for s in summaries if needle in (s.customer or "").lower()]


async def fetch_sales_summary(store: EntityStore, start_date: str = "",
                              end_date: str = "") -> list[SalesOrderSummary]:
    """Read the per-order summary view, newest first.

    Dates are ISO strings; either bound may be empty.
    """
    summaries = await store.fetch(SALES_ORDER_SUMMARY)
    if start_date:
        summaries = [s for s in summaries if s.date >= start_date]
    if end_date:
        summaries = [s for s in summaries if s.date <= end_date]
    summaries.sort(key=lambda s: s.date, reverse=True)
    return summaries


def kpi_summary(store: EntityStore,
                summaries: Iterable[SalesOrderSummary]) -> KpiSummary:
    """Combine sales summaries with the store's inventory snapshots.

    Gift orders are reported separately and excluded from revenue,
    COGS and shipping totals.
    """
    sold, gifts = [], []
    for s in summaries:
        (gifts if s.is_gift else sold).append(s)
    totals = sales_totals(sold)
    value = inventory_value(store)
    turnover = totals["total_cogs"] / value if value else 0.0
    return KpiSummary(
        inventory_value=value,
        inventory_turnover=turnover,
        low_stock_count=len(store.low_stock_alerts),
        gift_count=len(gifts),
        gift_cogs=sum(g.total_cogs or 0 for g in gifts),
        gift_shipping=sum(g.shipping_expense or 0 for g in gifts),
        **totals,
    )
