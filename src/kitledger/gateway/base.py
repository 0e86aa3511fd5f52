"""Remote data gateway interface and its error taxonomy.

A gateway exposes table-like reads and writes, named procedures, and
per-relation change notifications. Notifications are delivered to
handlers as plain payload mappings::

    {"eventType": "INSERT" | "UPDATE" | "DELETE",
     "table": "<relation>",
     "new": {...},     # the row after the change (empty on DELETE)
     "old": {...}}     # the row before the change (at least its id)

Decoding these payloads is the reconciler's job, not the gateway's.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

ChangeHandler = Callable[[dict], None]


class GatewayError(Exception):
    """Base exception for any failing gateway call."""

    def __init__(self, message: str, table: Optional[str] = None,
                 procedure: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.table = table
        self.procedure = procedure


class RecordNotFoundError(GatewayError):
    """An update targeted an id that does not exist remotely."""


class ProcedureError(GatewayError):
    """A named procedure failed or is not known to the backend."""


class LoadError(GatewayError):
    """The initial bulk load failed; nothing was populated."""


class ViewRefreshError(GatewayError):
    """A procedure committed but re-reading the derived views failed.

    ``procedure`` names the committed procedure and ``result`` holds its
    return value; ``table`` names the view that could not be read. The
    views stay stale until the next refresh.
    """

    def __init__(self, message: str, table: Optional[str] = None,
                 procedure: Optional[str] = None, result: Any = None):
        super().__init__(message, table=table, procedure=procedure)
        self.result = result


_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class Subscription:
    """Opaque handle returned by ``subscribe`` and passed to ``unsubscribe``."""
    relation: str
    handler: ChangeHandler = field(compare=False, repr=False)
    handle_id: int = field(default_factory=lambda: next(_handle_ids))


def change_payload(kind: str, relation: str, new: Optional[dict] = None,
                   old: Optional[dict] = None) -> dict:
    """Build a notification payload in the shape handlers expect."""
    return {
        "eventType": kind,
        "table": relation,
        "new": dict(new or {}),
        "old": dict(old or {}),
    }


class HandlerRegistry:
    """Per-relation handler bookkeeping shared by concrete gateways."""

    def __init__(self):
        self._handlers: dict[str, list[Subscription]] = {}

    def add(self, relation: str, handler: ChangeHandler) -> Subscription:
        sub = Subscription(relation=relation, handler=handler)
        self._handlers.setdefault(relation, []).append(sub)
        return sub

    def remove(self, subscription: Subscription):
        subs = self._handlers.get(subscription.relation, [])
        self._handlers[subscription.relation] = [
            s for s in subs if s.handle_id != subscription.handle_id
        ]

    def handlers_for(self, relation: str) -> list[ChangeHandler]:
        return [s.handler for s in self._handlers.get(relation, [])]

    def count(self, relation: Optional[str] = None) -> int:
        if relation is not None:
            return len(self._handlers.get(relation, []))
        return sum(len(subs) for subs in self._handlers.values())

    def dispatch(self, relation: str, payload: dict):
        # Copy first: a handler may unsubscribe while we iterate
        for handler in list(self.handlers_for(relation)):
            handler(payload)


class DataGateway(ABC):
    """Everything the entity store needs from a data backend."""


    # True when every write is echoed back through ``subscribe`` handlers
    pushes_changes: bool = False

    @abstractmethod
    async def read(self, relation: str, order_by: Optional[str] = "id"
                   ) -> list[dict[str, Any]]:
        """Return every row of a table or view, ordered by ``order_by``."""

    @abstractmethod
    async def insert(self, relation: str, values: dict[str, Any]
                     ) -> dict[str, Any]:
        """Insert a row and return it with server-assigned fields."""

    @abstractmethod
    async def update(self, relation: str, row_id: int,
                     values: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update keyed by id and return the new row."""

    @abstractmethod
    async def delete(self, relation: str, row_id: int) -> None:
        """Delete a row keyed by id."""

    @abstractmethod
    async def invoke(self, procedure: str, args: dict[str, Any]) -> Any:
        """Call a named backend procedure with named arguments."""

    @abstractmethod
    def subscribe(self, relation: str, handler: ChangeHandler
                  ) -> Subscription:
        """Register ``handler`` for change payloads on ``relation``."""

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        """Release a handle returned by ``subscribe``."""

    async def aclose(self) -> None:
        """Release any held resources."""
