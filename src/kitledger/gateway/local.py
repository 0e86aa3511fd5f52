"""LocalGateway — an in-process SQLite backend with push notifications.

Every successful insert, update and delete is echoed to subscribers of
the written relation, the same way the managed backend's realtime feed
echoes writes. Named procedures are supplied by the host application
through ``register_procedure``; the gateway itself implements no
costing logic.
"""

import logging
import sqlite3
from typing import Any, Callable, Optional

from kitledger.database.connection import DatabaseConnection
from kitledger.database.schema import initialize_database
from kitledger.gateway.base import (
    ChangeHandler,
    DataGateway,
    GatewayError,
    HandlerRegistry,
    ProcedureError,
    RecordNotFoundError,
    Subscription,
    change_payload,
)

logger = logging.getLogger(__name__)

# SQLite has no boolean type; these columns round-trip as 0/1
_BOOLEAN_COLUMNS = {"is_gift"}

# Never writable from the client
_READ_ONLY_COLUMNS = {"id", "created_at"}

Procedure = Callable[..., Any]


class LocalGateway(DataGateway):
    """Data gateway over a local SQLite database.

    The async methods run their SQLite calls synchronously on the event
    loop thread: each read or write blocks the loop until it returns, so
    reads gathered in parallel execute one after another. The connection
    belongs to the thread that opened it (and an in-memory database is
    private to its connection), so the calls are not moved to a worker
    thread.
    """

    pushes_changes = True

    def __init__(self, db: DatabaseConnection, initialize: bool = True):
        self.db = db
        if initialize:
            initialize_database(db)
        self._registry = HandlerRegistry()
        self._procedures: dict[str, Procedure] = {}
        self._relations = self._load_relations()

    # ── Relations ──────────────────────────────────────────────

    def _load_relations(self) -> dict[str, str]:
        rows = self.db.execute(
            "SELECT name, type FROM sqlite_master "
            "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'"
        )
        return {r["name"]: r["type"] for r in rows}

    def _check_relation(self, relation: str, writable: bool = False):
        kind = self._relations.get(relation)
        if kind is None:
            raise GatewayError(f"Unknown relation: {relation}", table=relation)
        if writable and kind != "table":
            raise GatewayError(
                f"Relation {relation} is read-only", table=relation
            )

    def _columns(self, relation: str) -> set[str]:
        rows = self.db.execute(f"PRAGMA table_info({relation})")  # noqa: S608
        return {r["name"] for r in rows}

    @staticmethod
    def _to_record(row) -> dict[str, Any]:
        record = dict(row)
        for col in _BOOLEAN_COLUMNS & record.keys():
            if record[col] is not None:
                record[col] = bool(record[col])
        return record

    def _fetch_one(self, conn, relation: str, row_id: int
                   ) -> Optional[dict[str, Any]]:
        row = conn.execute(
            f"SELECT * FROM {relation} WHERE id = ?", (row_id,)  # noqa: S608
        ).fetchone()
        return self._to_record(row) if row else None

    def _clean_values(self, relation: str, values: dict[str, Any]
                      ) -> dict[str, Any]:
        known = self._columns(relation) - _READ_ONLY_COLUMNS
        unknown = set(values) - known - _READ_ONLY_COLUMNS
        if unknown:
            raise GatewayError(
                f"Unknown column(s) for {relation}: "
                f"{', '.join(sorted(unknown))}",
                table=relation,
            )
        return {k: v for k, v in values.items() if k in known}

    # ── Reads ──────────────────────────────────────────────────

    async def read(self, relation: str, order_by: Optional[str] = "id"
                   ) -> list[dict[str, Any]]:
        self._check_relation(relation)
        sql = f"SELECT * FROM {relation}"  # noqa: S608
        if order_by:
            if order_by not in self._columns(relation):
                raise GatewayError(
                    f"Cannot order {relation} by {order_by}", table=relation
                )
            sql += f" ORDER BY {order_by}"
        try:
            rows = self.db.execute(sql)
        except sqlite3.Error as e:
            raise GatewayError(str(e), table=relation) from e
        return [self._to_record(r) for r in rows]

    # ── Writes ─────────────────────────────────────────────────

    async def insert(self, relation: str, values: dict[str, Any]
                     ) -> dict[str, Any]:
        self._check_relation(relation, writable=True)
        clean = self._clean_values(relation, values)
        columns = list(clean)
        try:
            with self.db.get_connection() as conn:
                if columns:
                    placeholders = ", ".join("?" for _ in columns)
                    cursor = conn.execute(
                        f"INSERT INTO {relation} ({', '.join(columns)}) "  # noqa: S608
                        f"VALUES ({placeholders})",
                        tuple(clean[c] for c in columns),
                    )
                else:
                    cursor = conn.execute(
                        f"INSERT INTO {relation} DEFAULT VALUES"  # noqa: S608
                    )
                created = self._fetch_one(conn, relation, cursor.lastrowid)
        except sqlite3.Error as e:
            raise GatewayError(str(e), table=relation) from e

        self.publish(relation, "INSERT", new=created)
        return created

    async def update(self, relation: str, row_id: int,
                     values: dict[str, Any]) -> dict[str, Any]:
        self._check_relation(relation, writable=True)
        clean = self._clean_values(relation, values)
        try:
            with self.db.get_connection() as conn:
                before = self._fetch_one(conn, relation, row_id)
                if before is None:
                    raise RecordNotFoundError(
                        f"{relation} has no row with id {row_id}",
                        table=relation,
                    )
                if clean:
                    set_clause = ", ".join(f"{c} = ?" for c in clean)
                    conn.execute(
                        f"UPDATE {relation} SET {set_clause} WHERE id = ?",  # noqa: S608
                        tuple(clean.values()) + (row_id,),
                    )
                after = self._fetch_one(conn, relation, row_id)
        except sqlite3.Error as e:
            raise GatewayError(str(e), table=relation) from e

        self.publish(relation, "UPDATE", new=after, old=before)
        return after

    async def delete(self, relation: str, row_id: int) -> None:
        self._check_relation(relation, writable=True)
        try:
            with self.db.get_connection() as conn:
                before = self._fetch_one(conn, relation, row_id)
                conn.execute(
                    f"DELETE FROM {relation} WHERE id = ?", (row_id,)  # noqa: S608
                )
        except sqlite3.Error as e:
            raise GatewayError(str(e), table=relation) from e

        # Deleting an absent id succeeds silently, as with the managed backend
        if before is not None:
            self.publish(relation, "DELETE", old=before)

    # ── Procedures ─────────────────────────────────────────────

    def register_procedure(self, name: str, fn: Procedure):
        """Make ``fn(gateway, **args)`` callable as procedure ``name``."""
        self._procedures[name] = fn

    async def invoke(self, procedure: str, args: dict[str, Any]) -> Any:
        fn = self._procedures.get(procedure)
        if fn is None:
            raise ProcedureError(
                f"Unknown procedure: {procedure}", procedure=procedure
            )
        try:
            return fn(self, **args)
        except GatewayError:
            raise
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise ProcedureError(str(e), procedure=procedure) from e

    # ── Notifications ──────────────────────────────────────────

    def subscribe(self, relation: str, handler: ChangeHandler
                  ) -> Subscription:
        self._check_relation(relation)
        return self._registry.add(relation, handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._registry.remove(subscription)

    def subscriber_count(self, relation: Optional[str] = None) -> int:
        return self._registry.count(relation)

    def publish(self, relation: str, kind: str,
                new: Optional[dict] = None, old: Optional[dict] = None):
        """Push a change payload to every subscriber of ``relation``."""
        payload = change_payload(kind, relation, new=new, old=old)
        logger.debug("Publishing %s on %s", kind, relation)
        self._registry.dispatch(relation, payload)

    async def aclose(self) -> None:
        self.db.close()
