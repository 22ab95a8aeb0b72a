from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ..config import Settings, settings as default_settings
from .base import IngestionSink, SinkDeliveryResult

log = logging.getLogger(__name__)


class CoreServiceSink(IngestionSink):
    """
    POSTs normalized listings to the core ingestion API.
    No retries here: a failed send leaves the ID unprocessed and it comes
    back on a later run.
    """

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cfg = cfg or default_settings
        self.url = cfg.INGEST_API_URL.rstrip("/") + "/properties/ingest"
        self.api_key = cfg.INGEST_API_KEY
        self.timeout_s = cfg.INGEST_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            log.warning("INGEST_API_KEY not set - sends to the core service will be unauthenticated")

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(self, payload: dict[str, Any]) -> SinkDeliveryResult:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        try:
            r = await self._http().post(self.url, content=body, headers=self._headers())
            if 200 <= r.status_code < 300:
                return SinkDeliveryResult(ok=True)
            return SinkDeliveryResult(ok=False, error=f"HTTP {r.status_code}: {r.text[:500]}")
        except httpx.HTTPError as e:
            return SinkDeliveryResult(ok=False, error=repr(e))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
