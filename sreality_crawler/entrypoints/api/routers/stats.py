# sreality_crawler/entrypoints/api/routers/stats.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps import get_queue, require_api_key
from ....adapters.queue import SqlListingQueue
from ....schemas import JobRunOut, QueueStatsOut
from ....service_layer.jobruns import recent_runs

router = APIRouter(tags=["stats"], dependencies=[Depends(require_api_key)])


@router.get("/stats", response_model=QueueStatsOut)
async def queue_stats(queue: SqlListingQueue = Depends(get_queue)) -> QueueStatsOut:
    stats = await queue.get_stats()
    return QueueStatsOut(**stats.as_dict())


@router.get("/runs", response_model=list[JobRunOut])
async def job_runs(
    limit: int = Query(20, ge=1, le=200),
    job_name: str | None = Query(None, description="discovery | worker"),
    queue: SqlListingQueue = Depends(get_queue),
) -> list[JobRunOut]:
    async with queue.sessions() as session:
        rows = await recent_runs(session, limit=limit, job_name=job_name)
    return [JobRunOut.from_row(jr) for jr in rows]
