# sreality_crawler/service_layer/use_cases/crawl.py
from __future__ import annotations

import logging
from typing import Any

from ...domain.types import ALL_CATEGORIES, Category, TransactionType
from ..coordinator import DiscoveryCoordinator
from ..jobruns import finish_job_fail, finish_job_success, start_job
from ..worker import DetailWorker

log = logging.getLogger(__name__)


async def run_discovery_use_case(
    coordinator: DiscoveryCoordinator,
    *,
    transaction_type: TransactionType | str,
    category: Category | str = ALL_CATEGORIES,
    new_cycle: bool = False,
    locality: str | None = None,
) -> dict[str, Any]:
    """
    One discovery run, recorded in job_runs.
    Summary = new IDs found this run + queue stats afterwards.
    """
    queue = coordinator.queue
    tx = TransactionType(transaction_type)
    cat_name = category.value if isinstance(category, Category) else category
    meta = {"transaction_type": tx.value, "category": cat_name, "new_cycle": new_cycle, "locality": locality}

    async with queue.sessions() as session:
        jr = await start_job(session, "discovery", meta)
        await session.commit()

        try:
            if new_cycle:
                await queue.start_new_cycle()
            new_ids = await coordinator.discover_all(tx, category, locality=locality)
            stats = await queue.get_stats()

            summary: dict[str, Any] = {"newIds": new_ids, "stopped": coordinator.stopping, **stats.as_dict()}
            await finish_job_success(session, jr, summary)
            await session.commit()
        except BaseException as e:
            # cancellation included: a run row must never be left "running"
            partial = {"newIds": coordinator.discovered, "stopped": coordinator.stopping}
            await finish_job_fail(session, jr, e, summary=partial)
            await session.commit()
            raise

    log.info("Discovery run %d finished: %s", jr.id, summary)
    return summary


async def run_worker_use_case(worker: DetailWorker) -> dict[str, Any]:
    """Drain the queue with one worker, recorded in job_runs."""
    queue = worker.queue

    async with queue.sessions() as session:
        jr = await start_job(session, "worker", {"worker_id": worker.worker_id})
        await session.commit()

        try:
            stats = await worker.start()
            summary: dict[str, Any] = {"workerId": worker.worker_id, **stats.as_dict()}
            await finish_job_success(session, jr, summary)
            await session.commit()
        except BaseException as e:
            await finish_job_fail(session, jr, e, summary={"workerId": worker.worker_id, **worker.stats.as_dict()})
            await session.commit()
            raise

    log.info("Worker run %d finished: %s", jr.id, summary)
    return summary
