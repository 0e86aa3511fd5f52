"""RestGateway — talks to a PostgREST-style managed backend over HTTP.

Reads and writes map onto ``/rest/v1/<relation>``; procedures onto
``/rest/v1/rpc/<name>``. Realtime frames are received by whatever
transport the host runs and handed to ``deliver``, which routes each
change payload to the handlers subscribed for its relation. Without
such a transport (``realtime=False``, the default) no changes are
pushed, and the entity store re-reads product costs itself after
cost-affecting writes.
"""

import logging
from typing import Any, Optional

import httpx

from kitledger.config import Config
from kitledger.gateway.base import (
    ChangeHandler,
    DataGateway,
    GatewayError,
    HandlerRegistry,
    ProcedureError,
    RecordNotFoundError,
    Subscription,
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the server's error message out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "hint"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}: {response.text[:200]}"


class RestGateway(DataGateway):
    """Data gateway for a managed PostgREST/realtime backend."""

    def __init__(self, base_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 realtime: bool = False):
        base_url = (base_url or Config.BACKEND_URL).rstrip("/")
        if not base_url:
            raise GatewayError("No backend URL configured.")
        api_key = api_key if api_key is not None else Config.BACKEND_API_KEY
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers=headers,
            timeout=httpx.Timeout(timeout or Config.REQUEST_TIMEOUT),
            transport=transport,
        )
        self._registry = HandlerRegistry()
        # Set when a realtime transport feeds ``deliver``
        self.pushes_changes = realtime

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # ── HTTP plumbing ──────────────────────────────────────────

    async def _request(self, method: str, path: str, *,
                       table: Optional[str] = None,
                       procedure: Optional[str] = None,
                       **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise GatewayError(
                f"Connection error: {e}", table=table, procedure=procedure
            ) from e
        if response.is_error:
            error_cls = ProcedureError if procedure else GatewayError
            raise error_cls(
                _error_message(response), table=table, procedure=procedure
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    # ── Reads ──────────────────────────────────────────────────

    async def read(self, relation: str, order_by: Optional[str] = "id"
                   ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{order_by}.asc"
        response = await self._request(
            "GET", f"/{relation}", table=relation, params=params
        )
        return self._json(response) or []

    # ── Writes ─────────────────────────────────────────────────

    async def insert(self, relation: str, values: dict[str, Any]
                     ) -> dict[str, Any]:
        response = await self._request(
            "POST", f"/{relation}", table=relation, json=values,
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(response) or []
        if not rows:
            raise GatewayError(
                f"Insert into {relation} returned no row", table=relation
            )
        return rows[0]

    async def update(self, relation: str, row_id: int,
                     values: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "PATCH", f"/{relation}", table=relation, json=values,
            params={"id": f"eq.{row_id}"},
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(response) or []
        if not rows:
            raise RecordNotFoundError(
                f"{relation} has no row with id {row_id}", table=relation
            )
        return rows[0]

    async def delete(self, relation: str, row_id: int) -> None:
        await self._request(
            "DELETE", f"/{relation}", table=relation,
            params={"id": f"eq.{row_id}"},
        )

    async def invoke(self, procedure: str, args: dict[str, Any]) -> Any:
        response = await self._request(
            "POST", f"/rpc/{procedure}", procedure=procedure, json=args
        )
        return self._json(response)

    # ── Notifications ──────────────────────────────────────────

    def subscribe(self, relation: str, handler: ChangeHandler
                  ) -> Subscription:
        return self._registry.add(relation, handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        self._registry.remove(subscription)

    def subscriber_count(self, relation: Optional[str] = None) -> int:
        return self._registry.count(relation)

    def deliver(self, frame: Any):
        """Route one realtime frame to the handlers for its relation.

        Accepts either a bare change payload or a frame wrapping one
        under ``payload``/``data`` (the realtime wire envelope). Frames
        without a relation are dropped; payload validation is left to
        the subscribers.
        """
        payload = frame
        for key in ("payload", "data"):
            if isinstance(payload, dict) and isinstance(payload.get(key), dict):
                payload = payload[key]
        if not isinstance(payload, dict) or not payload.get("table"):
            logger.warning("Dropping realtime frame without a relation")
            return
        relation = payload["table"]
        # Realtime frames name rows "record"/"old_record" and kinds "type"
        normalized = {
            "eventType": payload.get("eventType", payload.get("type")),
            "table": relation,
            "new": payload.get("new", payload.get("record")) or {},
            "old": payload.get("old", payload.get("old_record")) or {},
        }
        self._registry.dispatch(relation, normalized)
