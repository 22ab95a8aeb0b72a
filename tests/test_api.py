import httpx
import pytest

from sreality_crawler.entrypoints.fastapi_app import create_app
from sreality_crawler.models import JobRunStatus
from sreality_crawler.service_layer.jobruns import finish_job_success, start_job


def _client(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health(queue, cfg):
    async with _client(create_app(queue, cfg)) as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_stats_reports_queue_counts(queue, cfg):
    await queue.push_listing_ids(["a", "b", "c"])
    await queue.pop_listing_id(0)
    await queue.mark_processed("a")
    await queue.push_to_missing_queue(["b"])

    async with _client(create_app(queue, cfg)) as client:
        r = await client.get("/stats")

    assert r.status_code == 200
    assert r.json() == {
        "totalDiscovered": 3,
        "queueDepth": 2,
        "processedCount": 1,
        "failedCount": 0,
        "missingCount": 1,
    }


@pytest.mark.asyncio
async def test_runs_lists_newest_first(queue, cfg):
    async with queue.sessions() as session:
        first = await start_job(session, "discovery", {"transaction_type": "sale"})
        await finish_job_success(session, first, {"newIds": 5})
        await start_job(session, "worker", {"worker_id": "w1"})
        await session.commit()

    async with _client(create_app(queue, cfg)) as client:
        r = await client.get("/runs", params={"limit": 10})

    assert r.status_code == 200
    body = r.json()
    assert [run["job_name"] for run in body] == ["worker", "discovery"]
    assert body[0]["status"] == JobRunStatus.running.value
    assert body[1]["summary"] == {"newIds": 5}
    assert body[1]["meta"] == {"transaction_type": "sale"}


@pytest.mark.asyncio
async def test_api_key_guards_stats_and_runs(queue, cfg):
    cfg.API_KEY = "sekret"
    app = create_app(queue, cfg)

    async with _client(app) as client:
        assert (await client.get("/health")).status_code == 200
        assert (await client.get("/stats")).status_code == 401
        assert (await client.get("/runs", headers={"X-API-Key": "nope"})).status_code == 401
        assert (await client.get("/stats", headers={"X-API-Key": "sekret"})).status_code == 200


@pytest.mark.asyncio
async def test_runs_filter_by_job_name(queue, cfg):
    async with queue.sessions() as session:
        await start_job(session, "discovery")
        await start_job(session, "worker", {"worker_id": "w1"})
        await start_job(session, "worker", {"worker_id": "w2"})
        await session.commit()

    async with _client(create_app(queue, cfg)) as client:
        r = await client.get("/runs", params={"job_name": "worker", "limit": 1})

    body = r.json()
    assert len(body) == 1
    assert body[0]["meta"] == {"worker_id": "w2"}
