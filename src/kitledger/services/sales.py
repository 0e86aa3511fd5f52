"""Sales order entry: insert the order, its lines, then record the sale."""

import logging

from kitledger.database.models import SalesOrder
from kitledger.gateway.base import GatewayError, ViewRefreshError
from kitledger.io.validators import ValidationError, validate_sales_order
from kitledger.services.errors import StepLog
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import SALES_ORDER_LINES, SALES_ORDERS

logger = logging.getLogger(__name__)


def apply_gift_rules(order: dict, lines: list[dict]
                     ) -> tuple[dict, list[dict]]:
    """Gift orders carry no shipping charge and no line prices."""
    if not order.get("is_gift"):
        return dict(order), [dict(line) for line in lines]
    order = dict(order, shipping_cost=0)
    lines = [dict(line, unit_price_override=0) for line in lines]
    return order, lines


def _order_payload(order: dict) -> dict:
    return {
        "customer": str(order.get("customer", "")).strip(),
        "date": order.get("date", ""),
        "shipping_cost": float(order.get("shipping_cost") or 0),
        "comments": order.get("comments") or None,
        "is_gift": bool(order.get("is_gift")),
        # Filled in by the record-sale procedure
        "total_price": 0,
        "total_cogs": 0,
    }


def _line_payload(sales_order_id: int, line: dict) -> dict:
    return {
        "sales_order_id": sales_order_id,
        # 0/None mean a free-text line
        "product_id": line.get("product_id") or None,
        "description": str(line.get("description", "") or ""),
        "qty": float(line.get("qty") or 0),
        "unit_price_override": float(line.get("unit_price_override") or 0),
    }


async def create_sale(store: EntityStore, order: dict,
                      lines: list[dict]) -> SalesOrder:
    """Create a sales order with its lines and record the sale.

    If any step after the order insert fails, the order stays with its
    zero totals and ``CascadeError`` is raised. Nothing is retried.
    When only the stock view refresh fails, the sale itself is listed
    as committed and the failed step is ``"refresh stock views"``.
    """
    order, lines = apply_gift_rules(order, lines)
    errors = validate_sales_order(order, lines)
    if errors:
        raise ValidationError(errors)

    log = StepLog()
    step = "insert sales order"
    try:
        sale = await store.insert(SALES_ORDERS, _order_payload(order))
    except GatewayError as e:
        log.fail(step, e)
    log.done(f"sales order {sale.id}")

    for num, line in enumerate(lines, start=1):
        step = f"insert sales line {num}"
        try:
            await store.insert(SALES_ORDER_LINES, _line_payload(sale.id, line))
        except GatewayError as e:
            log.fail(step, e)
        log.done(step)

    step = f"record sale {sale.id}"
    try:
        await store.record_sale(sale.id)
    except ViewRefreshError as e:
        log.done(step)
        log.fail("refresh stock views", e)
    except GatewayError as e:
        log.fail(step, e)
    log.done(step)

    logger.info("Recorded sale %s for %s", sale.id, sale.customer)
    return store.get(SALES_ORDERS, sale.id) or sale


def gift_orders(store: EntityStore, gifts: bool = True) -> list[SalesOrder]:
    return [o for o in store.sales_orders if bool(o.is_gift) == gifts]
