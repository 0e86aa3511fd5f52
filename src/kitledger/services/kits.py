"""Product and kit workflows.

Saving a kit replaces its bill of materials as a sequence of independent
calls (delete every old line, then insert the new ones). There is no
surrounding transaction: a failure part-way raises ``CascadeError``
listing the steps already committed.
"""

import logging
from typing import Optional

from kitledger.database.models import Product
from kitledger.gateway.base import GatewayError
from kitledger.io.validators import (
    ValidationError,
    validate_bom_lines,
    validate_product,
)
from kitledger.services.errors import StepLog
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import BILL_OF_MATERIALS, PRODUCTS

logger = logging.getLogger(__name__)


def _product_payload(values: dict) -> dict:
    product_type = values.get("type", "base")
    return {
        "sku": str(values.get("sku", "") or "").strip(),
        "name": str(values.get("name", "") or "").strip(),
        "type": product_type,
        # A kit's cost always comes from its components
        "avg_cost": float(values.get("avg_cost") or 0)
        if product_type == "base" else 0.0,
        "reorder_level": int(values.get("reorder_level") or 0),
    }


def _line_payload(kit_id: int, line: dict) -> dict:
    return {
        "kit_product_id": kit_id,
        "component_product_id": line["component_product_id"],
        "quantity": float(line["quantity"]),
        "unit_of_measure": str(line.get("unit_of_measure", "") or ""),
    }


async def save_product(store: EntityStore, values: dict,
                       bom_lines: Optional[list[dict]] = None,
                       product_id: Optional[int] = None) -> Product:
    """Create (``product_id`` None) or update a product and its BOM.

    Kit lines are validated against the store's products before any
    remote call. When editing, every existing BOM line of the product
    is deleted before the new lines are inserted.
    """
    errors = validate_product(values)
    if errors:
        raise ValidationError(errors)
    payload = _product_payload(values)
    is_kit = payload["type"] == "kit"
    lines = list(bom_lines or []) if is_kit else []
    if lines:
        products = {p.id: p for p in store.products}
        errors = validate_bom_lines(lines, products, kit_product_id=product_id)
        if errors:
            raise ValidationError(errors)

    log = StepLog()
    step = f"save product {payload['sku']}"
    try:
        if product_id is None:
            product = await store.insert(PRODUCTS, payload)
        else:
            product = await store.update(PRODUCTS, product_id, payload)
    except GatewayError as e:
        log.fail(step, e)
    log.done(step)

    if product_id is not None:
        for old in store.bom_for_kit(product_id):
            step = f"delete BOM line {old.id}"
            try:
                await store.remove(BILL_OF_MATERIALS, old.id)
            except GatewayError as e:
                log.fail(step, e)
            log.done(step)

    for num, line in enumerate(lines, start=1):
        step = f"insert BOM line {num}"
        try:
            await store.insert(BILL_OF_MATERIALS,
                               _line_payload(product.id, line))
        except GatewayError as e:
            log.fail(step, e)
        log.done(step)

    logger.info("Saved %s %s with %d BOM line(s)",
                payload["type"], payload["sku"], len(lines))
    return store.get(PRODUCTS, product.id) or product


async def delete_product(store: EntityStore, product_id: int):
    """Delete a product, removing its BOM lines first."""
    log = StepLog()
    for line in store.bom_for_kit(product_id):
        step = f"delete BOM line {line.id}"
        try:
            await store.remove(BILL_OF_MATERIALS, line.id)
        except GatewayError as e:
            log.fail(step, e)
        log.done(step)

    step = f"delete product {product_id}"
    try:
        await store.remove(PRODUCTS, product_id)
    except GatewayError as e:
        log.fail(step, e)


def kit_cost_breakdown(store: EntityStore, kit_product_id: int
                       ) -> list[tuple[Product, float, float]]:
    """(component, quantity, line cost) for each line of a kit.

    Uses the server-computed component costs already in the store; the
    kit's own total is always ``computed_cost`` from the backend.
    """
    products = {p.id: p for p in store.products}
    breakdown = []
    for line in store.bom_for_kit(kit_product_id):
        component = products.get(line.component_product_id)
        if component is None:
            continue
        breakdown.append(
            (component, line.quantity, component.unit_cost * line.quantity)
        )
    return breakdown
