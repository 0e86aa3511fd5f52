"""Low-stock reminders."""

from kitledger.database.models import LowStockAlert, Notification
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import NOTIFICATIONS


def shortage(alert: LowStockAlert) -> float:
    """Units needed to get back up to the reorder level."""
    return alert.shortage


async def send_reminder(store: EntityStore,
                        alert: LowStockAlert) -> Notification:
    """Record a reorder reminder for the product behind ``alert``."""
    return await store.insert(NOTIFICATIONS, {
        "product_id": alert.product_id,
        "on_hand": alert.on_hand,
        "reorder_level": alert.reorder_level,
    })


def total_shortage_value(store: EntityStore) -> float:
    """Cost of restocking every alert up to its reorder level."""
    return sum(max(a.shortage, 0) * (a.avg_cost or 0)
               for a in store.low_stock_alerts)
