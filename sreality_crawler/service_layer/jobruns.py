# sreality_crawler/service_layer/jobruns.py
"""job_runs bookkeeping for coordinator/worker runs (one row per run)."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JobRun, JobRunStatus

_MAX_ERROR_LEN = 2000


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str)


async def start_job(session: AsyncSession, job_name: str, meta: dict[str, Any] | None = None) -> JobRun:
    jr = JobRun(
        job_name=job_name,
        started_at=datetime.utcnow(),
        status=JobRunStatus.running,
        meta_json=_dumps(meta or {}),
    )
    session.add(jr)
    await session.flush()
    return jr


async def finish_job_success(session: AsyncSession, jr: JobRun, summary: dict[str, Any]) -> None:
    jr.status = JobRunStatus.success
    jr.finished_at = datetime.utcnow()
    jr.summary_json = _dumps(summary)
    jr.error = None
    await session.flush()


async def finish_job_fail(
    session: AsyncSession,
    jr: JobRun,
    err: BaseException,
    summary: dict[str, Any] | None = None,
) -> None:
    """Partial counters go into the summary so a failed run never reads as empty."""
    jr.status = JobRunStatus.failed
    jr.finished_at = datetime.utcnow()
    jr.error = (str(err) or type(err).__name__)[:_MAX_ERROR_LEN]
    if summary is not None:
        jr.summary_json = _dumps(summary)
    await session.flush()


async def recent_runs(session: AsyncSession, limit: int = 20, job_name: str | None = None) -> list[JobRun]:
    stmt = select(JobRun)
    if job_name:
        stmt = stmt.where(JobRun.job_name == job_name)
    stmt = stmt.order_by(JobRun.id.desc()).limit(limit)
    return list((await session.execute(stmt)).scalars().all())
