# sreality_crawler/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from ...domain.types import RetryPolicy
from ...errors import ExhaustedRetries, TransientNetworkError

log = logging.getLogger(__name__)

# Unambiguous "listing is gone": returned as None, never retried.
NOT_FOUND_STATUSES: frozenset[int] = frozenset({404, 410})

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay_ms(attempt: int, policy: RetryPolicy) -> int:
    """
    delay(attempt) = min(initial * multiplier^(attempt-1), max), attempts 1-indexed.
    Defaults give 1000, 2000, 4000, ... capped at 30000.
    """
    attempt = max(1, attempt)
    delay = policy.initial_delay_ms * (policy.multiplier ** (attempt - 1))
    return int(min(delay, policy.max_delay_ms))


def _classify(exc: httpx.HTTPError, url: str) -> TransientNetworkError:
    if isinstance(exc, httpx.TimeoutException):
        err = TransientNetworkError(f"timeout: {exc!r}", url=url)
    else:
        err = TransientNetworkError(f"transport error: {exc!r}", url=url)
    err.__cause__ = exc
    return err


async def resilient_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    policy: RetryPolicy,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response | None:
    """
    Bounded retry loop. Retries transport failures and any non-2xx status
    except 404/410, which come back as None. Each attempt gets its own
    timeout. Exhausting the attempts raises ExhaustedRetries chained to the
    last error.
    """
    last_exc: TransientNetworkError | None = None
    max_attempts = max(1, policy.max_attempts)

    for attempt in range(1, max_attempts + 1):
        try:
            resp = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                timeout=policy.timeout_s,
            )
        except (httpx.TimeoutException, httpx.TransportError) as e:
            last_exc = _classify(e, url)
        else:
            if resp.status_code in NOT_FOUND_STATUSES:
                return None
            if 200 <= resp.status_code < 300:
                return resp
            last_exc = TransientNetworkError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                url=url,
                status=resp.status_code,
            )

        if attempt >= max_attempts:
            break

        delay_ms = backoff_delay_ms(attempt, policy)
        log.warning(
            "Request failed (attempt %d/%d): %s. Retrying in %dms",
            attempt,
            max_attempts,
            last_exc,
            delay_ms,
        )
        await sleep(delay_ms / 1000.0)

    assert last_exc is not None
    raise ExhaustedRetries(url, max_attempts, last_exc) from last_exc
