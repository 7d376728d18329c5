"""
NOPAS policy service client.

Thin async wrapper over the three endpoints the console uses:

    GET  /predefined   available default options (passed through untouched)
    GET  /state        the current PolicyDocument
    POST /update       replace the whole PolicyDocument

Every call returns an explicit ``Ok`` or ``Err`` instead of raising, so the
sync controller decides what a failure means for the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from nopas_console.policy.schema import PolicyDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    body: Any = None


@dataclass(frozen=True)
class Err:
    reason: str


TransportResult = Ok | Err


class NopasClient:
    """
    Async NOPAS REST client.

    Uses httpx for async HTTP. Paths are joined onto ``base_url``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response | Err:
        client = await self._ensure_client()
        try:
            resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("NOPAS %s %s failed: %s", method, path, exc)
            return Err(f"Policy service unreachable: {exc}")

        if resp.status_code >= 400:
            logger.error("NOPAS %s %s returned HTTP %d", method, path, resp.status_code)
            return Err(f"Policy service HTTP {resp.status_code}: {resp.text[:200]}")
        return resp

    async def _get_json(self, path: str) -> TransportResult:
        resp = await self._request("GET", path)
        if isinstance(resp, Err):
            return resp
        try:
            return Ok(resp.json())
        except ValueError as exc:
            return Err(f"Invalid JSON from policy service: {exc}")

    # ── Endpoints ──────────────────────────────────────────────

    async def get_predefined(self) -> TransportResult:
        """Fetch the list of available default options."""
        return await self._get_json("/predefined")

    async def get_state(self) -> TransportResult:
        """Fetch the current policy as a PolicyDocument."""
        result = await self._get_json("/state")
        if isinstance(result, Err):
            return result
        try:
            return Ok(PolicyDocument.model_validate(result.body))
        except ValidationError as exc:
            return Err(f"Malformed policy from policy service: {exc}")

    async def post_update(self, doc: PolicyDocument) -> TransportResult:
        """Replace the service's policy with ``doc``. The response body is ignored."""
        resp = await self._request("POST", "/update", json=doc.to_wire())
        if isinstance(resp, Err):
            return resp
        logger.info(
            "Policy update sent: %d resources, %d subpolicies",
            len(doc.resources),
            len(doc.subpolicies),
        )
        return Ok()
