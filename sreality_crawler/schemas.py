from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import JobRun


class QueueStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_discovered: int = Field(..., ge=0, alias="totalDiscovered")
    queue_depth: int = Field(..., ge=0, alias="queueDepth")
    processed_count: int = Field(..., ge=0, alias="processedCount")
    failed_count: int = Field(..., ge=0, alias="failedCount")
    missing_count: int = Field(0, ge=0, alias="missingCount")


class JobRunOut(BaseModel):
    id: int
    job_name: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    error: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, jr: JobRun) -> "JobRunOut":
        return cls(
            id=jr.id,
            job_name=jr.job_name,
            status=jr.status.value if hasattr(jr.status, "value") else str(jr.status),
            started_at=jr.started_at,
            finished_at=jr.finished_at,
            error=jr.error,
            meta=json.loads(jr.meta_json) if jr.meta_json else {},
            summary=json.loads(jr.summary_json) if jr.summary_json else {},
        )
