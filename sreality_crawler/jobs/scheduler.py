# sreality_crawler/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..bootstrap import build_coordinator
from ..config import Settings, settings as default_settings
from ..domain.types import TransactionType
from ..service_layer.coordinator import DiscoveryCoordinator
from ..service_layer.use_cases.crawl import run_discovery_use_case

log = logging.getLogger(__name__)

CoordinatorFactory = Callable[[Settings], DiscoveryCoordinator]


def scheduled_transaction_types(cfg: Settings) -> list[TransactionType]:
    """'sale,rent' -> [sale, rent]; unknown names are skipped with a warning."""
    out: list[TransactionType] = []
    for raw in cfg.SCHED_TRANSACTION_TYPES.split(","):
        name = raw.strip().lower()
        if not name:
            continue
        try:
            tx = TransactionType(name)
        except ValueError:
            log.warning("Ignoring unknown transaction type in SCHED_TRANSACTION_TYPES: %r", name)
            continue
        if tx not in out:
            out.append(tx)
    return out


class DiscoveryTicker:
    """
    Runs scheduled discovery ticks and lets shutdown reach the one in flight:
    stop() forwards to the active coordinator, drain() waits for it to close.
    """

    def __init__(self, cfg: Settings | None = None, *, factory: CoordinatorFactory = build_coordinator) -> None:
        self._cfg = cfg or default_settings
        self._factory = factory
        self._active: DiscoveryCoordinator | None = None
        self._stopping = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def running(self) -> bool:
        return not self._idle.is_set()

    def stop(self) -> None:
        self._stopping = True
        if self._active is not None:
            self._active.stop()

    async def drain(self) -> None:
        await self._idle.wait()

    async def tick(self) -> list[dict]:
        """
        One scheduled discovery pass over every configured transaction type.
        The crawl cycle is reset once per tick, before the first type.
        """
        if self._stopping:
            return []

        cfg = self._cfg
        coordinator = self._factory(cfg)
        self._idle.clear()
        self._active = coordinator
        summaries: list[dict] = []
        try:
            await coordinator.initialize()
            for i, tx in enumerate(scheduled_transaction_types(cfg)):
                if coordinator.stopping:
                    break
                summaries.append(
                    await run_discovery_use_case(
                        coordinator,
                        transaction_type=tx,
                        new_cycle=cfg.SCHED_NEW_CYCLE and i == 0,
                    )
                )
        except Exception:
            # keep the scheduler alive; the job_runs row carries the failure
            log.exception("Scheduled discovery failed")
        finally:
            try:
                await coordinator.close()
            finally:
                self._active = None
                self._idle.set()
        return summaries


async def run_discovery_tick(
    cfg: Settings | None = None,
    *,
    factory: CoordinatorFactory = build_coordinator,
) -> list[dict]:
    return await DiscoveryTicker(cfg, factory=factory).tick()


def build_scheduler(
    cfg: Settings | None = None,
    *,
    ticker: DiscoveryTicker | None = None,
    factory: CoordinatorFactory = build_coordinator,
    run_now: bool = False,
) -> AsyncIOScheduler:
    cfg = cfg or default_settings
    ticker = ticker or DiscoveryTicker(cfg, factory=factory)
    sched = AsyncIOScheduler()

    extra: dict = {}
    if run_now:
        # omitted entirely otherwise: next_run_time=None would add the job paused
        extra["next_run_time"] = datetime.now()

    sched.add_job(
        ticker.tick,
        "interval",
        minutes=cfg.SCHED_DISCOVERY_INTERVAL_MINUTES,
        id="discovery",
        max_instances=1,
        coalesce=True,
        **extra,
    )

    return sched
