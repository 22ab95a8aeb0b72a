import httpx
import pytest

from sreality_crawler.adapters.clients.http_resilience import backoff_delay_ms, resilient_request
from sreality_crawler.domain.types import RetryPolicy
from sreality_crawler.errors import ExhaustedRetries, TransientNetworkError


def _client(handler):
    return httpx.AsyncClient(base_url="https://api.test", transport=httpx.MockTransport(handler))


def test_backoff_schedule_doubles_and_caps():
    policy = RetryPolicy()
    assert [backoff_delay_ms(a, policy) for a in range(1, 7)] == [1000, 2000, 4000, 8000, 16000, 30000]


def test_backoff_respects_custom_policy():
    policy = RetryPolicy(initial_delay_ms=500, multiplier=3.0, max_delay_ms=5000)
    assert [backoff_delay_ms(a, policy) for a in (1, 2, 3, 4)] == [500, 1500, 4500, 5000]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 410])
async def test_not_found_is_sentinel_and_not_retried(status, fake_sleep, sleeps):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(status)

    async with _client(handler) as client:
        resp = await resilient_request(client, "GET", "/x", policy=RetryPolicy(), sleep=fake_sleep)

    assert resp is None
    assert len(calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_server_errors_are_retried_until_success(fake_sleep, sleeps):
    statuses = iter([500, 502, 200])

    def handler(request):
        status = next(statuses)
        return httpx.Response(status, json={"ok": status == 200})

    async with _client(handler) as client:
        resp = await resilient_request(client, "GET", "/x", policy=RetryPolicy(), sleep=fake_sleep)

    assert resp is not None
    assert resp.json() == {"ok": True}
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_surfaces_last_error(fake_sleep, sleeps):
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503, text="busy")

    async with _client(handler) as client:
        with pytest.raises(ExhaustedRetries) as ei:
            await resilient_request(client, "GET", "/x", policy=RetryPolicy(max_attempts=3), sleep=fake_sleep)

    err = ei.value
    assert isinstance(err, TransientNetworkError)
    assert err.attempts == 3
    assert err.status == 503
    assert isinstance(err.last_error, TransientNetworkError)
    assert err.__cause__ is err.last_error
    assert len(calls) == 3
    # no sleep after the final attempt
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_transport_errors_are_retried(fake_sleep, sleeps):
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        resp = await resilient_request(client, "GET", "/x", policy=RetryPolicy(), sleep=fake_sleep)

    assert resp is not None and resp.status_code == 200
    assert len(attempts) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_timeouts_exhaust_into_transient_error(fake_sleep):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(ExhaustedRetries) as ei:
            await resilient_request(client, "GET", "/x", policy=RetryPolicy(max_attempts=2), sleep=fake_sleep)

    assert "timeout" in str(ei.value.last_error)
    assert isinstance(ei.value.last_error.__cause__, httpx.ReadTimeout)


@pytest.mark.asyncio
async def test_zero_attempt_policy_still_makes_one_attempt(fake_sleep, sleeps):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(503)

    async with _client(handler) as client:
        with pytest.raises(ExhaustedRetries) as ei:
            await resilient_request(client, "GET", "/x", policy=RetryPolicy(max_attempts=0), sleep=fake_sleep)

    assert len(calls) == 1
    assert ei.value.attempts == 1
    assert sleeps == []
