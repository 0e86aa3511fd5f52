"""Purchase orders: creation and one-shot receipt."""

import logging
from typing import Any

from kitledger.database.models import PurchaseOrder
from kitledger.io.validators import ValidationError, validate_purchase_order
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import PURCHASE_ORDERS

logger = logging.getLogger(__name__)

SURCHARGES = ("freight_in", "import_duty", "other_charges")


async def create_purchase_order(store: EntityStore,
                                values: dict) -> PurchaseOrder:
    errors = validate_purchase_order(values)
    if errors:
        raise ValidationError(errors)
    payload = {
        "vendor": str(values["vendor"]).strip(),
        "date": values["date"],
    }
    for key in SURCHARGES:
        payload[key] = float(values.get(key) or 0)
    return await store.insert(PURCHASE_ORDERS, payload)


async def receive_purchase_order(store: EntityStore, po_id: int) -> Any:
    """Finalize a receipt; the backend allocates landed costs.

    ``ViewRefreshError`` means the receipt committed but the stock views
    are stale; receiving again would book the stock twice.
    """
    if store.get(PURCHASE_ORDERS, po_id) is None:
        raise ValueError(f"Unknown purchase order: {po_id}")
    result = await store.record_purchase_receipt(po_id)
    logger.info("Purchase order %s received", po_id)
    return result


def lines_for_order(store: EntityStore, po_id: int) -> list:
    return [line for line in store.purchase_order_lines
            if line.purchase_order_id == po_id]
