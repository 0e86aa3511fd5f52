"""ChangeReconciler — keeps store snapshots live from change notifications.

Events are applied in arrival order per table. Tables whose changes
invalidate server-computed product costs (products, bill of materials)
additionally trigger ``invalidate_product_costs``, which re-reads the
whole computed-cost product view; the client never propagates kit costs
itself.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from kitledger.gateway.base import DataGateway, GatewayError, Subscription
from kitledger.store.entity_store import EntityStore
from kitledger.store.tables import PRODUCTS

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class DecodeError(ValueError):
    """A notification payload could not be turned into a ChangeEvent."""


@dataclass(frozen=True)
class ChangeEvent:
    kind: EventKind
    table: str
    record: dict

    @property
    def row_id(self) -> Any:
        return self.record["id"]


def decode_event(table: str, payload: Any) -> ChangeEvent:
    """Decode one gateway payload for logical ``table``."""
    if not isinstance(payload, dict):
        raise DecodeError(f"payload is {type(payload).__name__}, not a mapping")
    raw_kind = payload.get("eventType")
    try:
        kind = EventKind(str(raw_kind).upper())
    except ValueError:
        raise DecodeError(f"unknown event type {raw_kind!r}") from None

    # Deletes only carry the old row
    key = "old" if kind is EventKind.DELETE else "new"
    record = payload.get(key)
    if not isinstance(record, dict):
        raise DecodeError(f"{kind.value} event without a '{key}' row")
    if record.get("id") is None:
        raise DecodeError(f"{kind.value} event row has no id")
    return ChangeEvent(kind=kind, table=table, record=dict(record))


class ChangeReconciler:
    """Subscribes to every live table and merges events into the store."""

    def __init__(self, store: EntityStore,
                 gateway: Optional[DataGateway] = None):
        self.store = store
        self.gateway = gateway or store.gateway
        self._subscriptions: list[Subscription] = []
        self._pending: set[asyncio.Task] = set()
        self._refresh_seq = 0
        self._applied_seq = 0
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return bool(self._subscriptions)

    # ── Lifecycle ──────────────────────────────────────────────

    def start(self):
        """Subscribe to every live table. Idempotent."""
        if self._subscriptions:
            return
        try:
            for spec in self.store.tables.values():
                if not spec.live:
                    continue
                handler = functools.partial(self.handle, spec.name)
                self._subscriptions.append(
                    self.gateway.subscribe(spec.notify_relation, handler)
                )
        except Exception:
            self.stop()
            raise
        logger.info("Subscribed to %d change feeds", len(self._subscriptions))

    def stop(self):
        """Release every subscription and cancel outstanding refreshes."""
        while self._subscriptions:
            self.gateway.unsubscribe(self._subscriptions.pop())
        for task in list(self._pending):
            task.cancel()

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.stop()

    # ── Event handling ─────────────────────────────────────────

    def handle(self, table: str, payload: Any):
        """Gateway callback: decode, then apply. Malformed events are dropped."""
        try:
            event = decode_event(table, payload)
        except DecodeError as e:
            self.dropped += 1
            logger.warning("Dropping malformed %s event: %s", table, e)
            return
        self.apply(event)

    def apply(self, event: ChangeEvent):
        """Merge one decoded event into the store."""
        if event.kind is EventKind.INSERT:
            self.store.apply_insert(event.table, event.record)
        elif event.kind is EventKind.UPDATE:
            self.store.apply_update(event.table, event.record)
        else:
            self.store.apply_delete(event.table, event.row_id)

        if self.store.spec(event.table).cost_dependent:
            self.invalidate_product_costs()

    # ── Cost invalidation ──────────────────────────────────────

    def invalidate_product_costs(self) -> Optional[asyncio.Task]:
        """Schedule a re-read of the computed-cost product view.

        Returns the scheduled task, or None when no event loop is
        running (costs stay stale until the next refresh).
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; product costs left stale")
            return None
        self._refresh_seq += 1
        task = loop.create_task(self._refresh_costs(self._refresh_seq))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _refresh_costs(self, seq: int):
        try:
            products = await self.store.fetch(PRODUCTS)
        except GatewayError as e:
            logger.error("Error refreshing product costs: %s", e.message)
            return
        # An older read finishing late must not overwrite a newer one
        if seq < self._applied_seq:
            return
        self._applied_seq = seq
        self.store.replace_all(PRODUCTS, products)

    async def drain(self):
        """Wait until every scheduled cost refresh has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
