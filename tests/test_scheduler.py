import asyncio

import httpx
import pytest

from sreality_crawler.adapters.clients.sreality_api import SrealityClient
from sreality_crawler.domain.types import TransactionType
from sreality_crawler.jobs.scheduler import (
    DiscoveryTicker,
    build_scheduler,
    run_discovery_tick,
    scheduled_transaction_types,
)
from sreality_crawler.service_layer.coordinator import DiscoveryCoordinator


def test_scheduled_transaction_types(cfg):
    cfg.SCHED_TRANSACTION_TYPES = " rent, sale ,rent,castle,"
    assert scheduled_transaction_types(cfg) == [TransactionType.rent, TransactionType.sale]


def test_build_scheduler_registers_discovery_job(cfg):
    cfg.SCHED_DISCOVERY_INTERVAL_MINUTES = 90
    ticker = DiscoveryTicker(cfg)
    sched = build_scheduler(cfg, ticker=ticker)

    job = sched.get_job("discovery")
    assert job is not None
    assert job.trigger.interval.total_seconds() == 90 * 60
    assert job.func == ticker.tick


@pytest.mark.asyncio
async def test_discovery_tick_resets_cycle_once_and_covers_each_type(queue, cfg, delay, fake_sleep):
    seen_types = []

    def handler(request):
        seen_types.append(request.url.params["category_type_cb"])
        return httpx.Response(200, json={"result_size": 0, "_embedded": {"estates": []}})

    def factory(c):
        client = SrealityClient(c, transport=httpx.MockTransport(handler), sleep=fake_sleep)
        return DiscoveryCoordinator(queue, client, cfg=c, delay=delay)

    await queue.push_listing_ids(["stale"])
    summaries = await run_discovery_tick(cfg, factory=factory)

    assert [s["newIds"] for s in summaries] == [0, 0]
    # one cycle reset wiped the stale ID before the first type
    assert summaries[0]["totalDiscovered"] == 0
    # four categories per transaction type: sale (1) then rent (2)
    assert seen_types == ["1"] * 4 + ["2"] * 4


@pytest.mark.asyncio
async def test_stopping_ticker_halts_running_tick_and_drain_waits_for_it(queue, cfg, delay, fake_sleep):
    started = asyncio.Event()
    release = asyncio.Event()
    requests = []
    built = []

    async def handler(request):
        requests.append(request)
        started.set()
        await release.wait()
        # far more pages than one request covers
        return httpx.Response(200, json={"result_size": 5000, "_embedded": {"estates": [{"hash_id": 1}]}})

    def factory(c):
        client = SrealityClient(c, transport=httpx.MockTransport(handler), sleep=fake_sleep)
        coordinator = DiscoveryCoordinator(queue, client, cfg=c, delay=delay)
        built.append(coordinator)
        return coordinator

    ticker = DiscoveryTicker(cfg, factory=factory)
    tick = asyncio.create_task(ticker.tick())
    await asyncio.wait_for(started.wait(), timeout=5)
    assert ticker.running

    drain = asyncio.create_task(ticker.drain())
    await asyncio.sleep(0)
    assert not drain.done()

    ticker.stop()
    assert built[0].stopping
    release.set()

    summaries = await asyncio.wait_for(tick, timeout=5)
    await asyncio.wait_for(drain, timeout=5)

    # the in-flight page finished, nothing after it was requested
    assert len(requests) == 1
    assert len(summaries) == 1
    assert summaries[0]["stopped"] is True
    assert summaries[0]["newIds"] == 1
    assert not ticker.running

    # later ticks are no-ops once stopped
    assert await ticker.tick() == []
    assert len(built) == 1


@pytest.mark.asyncio
async def test_tick_releases_drain_when_coordinator_cannot_initialize(cfg, queue, delay, fake_sleep, monkeypatch):
    async def broken():
        raise RuntimeError("queue store unreachable")

    def factory(c):
        client = SrealityClient(c, transport=httpx.MockTransport(lambda r: httpx.Response(500)), sleep=fake_sleep)
        coordinator = DiscoveryCoordinator(queue, client, cfg=c, delay=delay)
        monkeypatch.setattr(coordinator, "initialize", broken)
        return coordinator

    ticker = DiscoveryTicker(cfg, factory=factory)

    assert await ticker.tick() == []
    assert not ticker.running
    await asyncio.wait_for(ticker.drain(), timeout=1)
