# sreality_crawler/adapters/clients/sreality_api.py
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ...config import Settings, settings as default_settings
from ...domain.parsing import get_nested, to_int
from ...domain.types import Category, DiscoveryPage, RetryPolicy, TransactionType
from ...errors import NormalizationError
from .http_resilience import Sleep, resilient_request

log = logging.getLogger(__name__)


def retry_policy_from(cfg: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(1, cfg.HTTP_RETRY_ATTEMPTS),
        initial_delay_ms=cfg.HTTP_RETRY_INITIAL_DELAY_MS,
        multiplier=cfg.HTTP_RETRY_MULTIPLIER,
        max_delay_ms=cfg.HTTP_RETRY_MAX_DELAY_MS,
        timeout_s=cfg.HTTP_TIMEOUT_S,
    )


def _json_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise NormalizationError(f"non-JSON response from {resp.request.url}: {e}") from e


class SrealityClient:
    """
    Portal JSON API: paginated search (IDs only) and per-listing detail.
    Returns raw-ish payloads; normalization happens in the domain layer.
    """

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._cfg = cfg or default_settings
        self._policy = retry_policy_from(self._cfg)
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "base_url": self._cfg.API_BASE_URL.rstrip("/"),
                "headers": {"User-Agent": self._cfg.USER_AGENT, "Accept": "application/json"},
                "timeout": httpx.Timeout(self._cfg.HTTP_TIMEOUT_S),
                "follow_redirects": True,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif self._cfg.PROXY_URL:
                kwargs["proxy"] = self._cfg.PROXY_URL
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SrealityClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def fetch_listing_ids(
        self,
        category: Category,
        transaction_type: TransactionType,
        *,
        locality: str | None = None,
        page: int = 1,
        per_page: int = 60,
    ) -> DiscoveryPage:
        params: dict[str, Any] = {
            "category_main_cb": category.code,
            "category_type_cb": transaction_type.code,
            "per_page": per_page,
            "page": page,
        }
        if locality:
            params["locality_region_id"] = locality

        log.debug("Fetching search page %s %s", "/cs/v2/estates", params)
        resp = await resilient_request(
            self._http(), "GET", "/cs/v2/estates", policy=self._policy, params=params, sleep=self._sleep
        )
        if resp is None:
            return DiscoveryPage(ids=(), total=0)

        data = _json_body(resp)
        if not isinstance(data, dict):
            raise NormalizationError("search response must be an object")

        estates = get_nested(data, "_embedded.estates") or []
        if not isinstance(estates, list):
            raise NormalizationError("_embedded.estates must be a list")

        ids = tuple(
            str(e["hash_id"])
            for e in estates
            if isinstance(e, dict) and e.get("hash_id") not in (None, "")
        )
        return DiscoveryPage(ids=ids, total=to_int(data.get("result_size")) or 0)

    async def fetch_detail(self, listing_id: str) -> dict[str, Any] | None:
        """Raw detail payload, or None when the portal says the listing is gone."""
        resp = await resilient_request(
            self._http(), "GET", f"/cs/v2/estates/{listing_id}", policy=self._policy, sleep=self._sleep
        )
        if resp is None:
            return None

        data = _json_body(resp)
        if not isinstance(data, dict):
            raise NormalizationError(f"detail response for {listing_id} must be an object")
        return data
