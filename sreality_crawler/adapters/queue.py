# sreality_crawler/adapters/queue.py
"""
Shared work queue + fingerprint store on SQLAlchemy asyncio.

Every row is namespaced by the queue name so several portals can share one
database. Only single-statement atomicity is relied upon: the pop is one
DELETE ... RETURNING, so two consumers never receive the same item.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import aliased

from ..config import Settings, settings as default_settings
from ..db import make_engine, make_session_factory
from ..domain.fingerprint import canonical_json, fingerprint
from ..domain.types import ListingDetail, QueueStats
from ..errors import CollaboratorUnavailable
from ..models import (
    Base,
    DiscoveredId,
    FailedId,
    ListingFingerprint,
    MissingId,
    ProcessedId,
    QueueItem,
)

log = logging.getLogger(__name__)

_MAX_ERROR_LEN = 2000


class ListingQueue(Protocol):
    async def initialize(self) -> None: ...
    async def push_listing_ids(self, ids: Iterable[str]) -> int: ...
    async def pop_listing_id(self, timeout_seconds: float) -> str | None: ...
    async def is_processed(self, listing_id: str) -> bool: ...
    async def mark_processed(self, listing_id: str) -> None: ...
    async def mark_failed(self, listing_id: str, error: str) -> None: ...
    async def push_to_missing_queue(self, ids: Iterable[str]) -> int: ...
    async def has_property_changed(self, listing_id: str, detail: ListingDetail) -> bool: ...
    async def store_property_snapshot(self, listing_id: str, detail: ListingDetail) -> str: ...
    async def get_stats(self) -> QueueStats: ...
    async def close(self) -> None: ...


class SqlListingQueue:
    def __init__(
        self,
        name: str | None = None,
        *,
        cfg: Settings | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._cfg = cfg or default_settings
        self.name = name or self._cfg.QUEUE_NAME
        self._owns_engine = engine is None
        self._engine = engine or make_engine(self._cfg.QUEUE_DB_URL)
        self.sessions = make_session_factory(self._engine)
        self._poll_interval_s = float(self._cfg.QUEUE_POLL_INTERVAL_S)

    @asynccontextmanager
    async def _tx(self) -> AsyncIterator[AsyncSession]:
        """One transaction; connectivity failures become CollaboratorUnavailable."""
        try:
            async with self.sessions() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError) as e:
            raise CollaboratorUnavailable(f"queue store unreachable: {e}") from e

    async def initialize(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (OperationalError, InterfaceError) as e:
            raise CollaboratorUnavailable(f"queue store unreachable: {e}") from e
        log.info("Queue %r initialized", self.name)

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()

    # -----------------------------
    # Discovery side
    # -----------------------------
    async def push_listing_ids(self, ids: Iterable[str]) -> int:
        """Enqueue IDs not seen before in this cycle. Returns how many were new."""
        unique = list(dict.fromkeys(str(i) for i in ids if i))
        if not unique:
            return 0

        async with self._tx() as session:
            known = set(
                (
                    await session.execute(
                        select(DiscoveredId.listing_id).where(
                            DiscoveredId.queue == self.name,
                            DiscoveredId.listing_id.in_(unique),
                        )
                    )
                ).scalars()
            )
            new_ids = [i for i in unique if i not in known]
            session.add_all([DiscoveredId(queue=self.name, listing_id=i) for i in new_ids])
            session.add_all([QueueItem(queue=self.name, listing_id=i) for i in new_ids])

        return len(new_ids)

    # -----------------------------
    # Worker side
    # -----------------------------
    async def _pop_once(self) -> str | None:
        # aliased so the subquery is not auto-correlated to the DELETE target
        pending = aliased(QueueItem)
        head = (
            select(func.min(pending.seq))
            .where(pending.queue == self.name)
            .scalar_subquery()
        )
        stmt = (
            delete(QueueItem)
            .where(QueueItem.queue == self.name, QueueItem.seq == head)
            .returning(QueueItem.listing_id)
            .execution_options(synchronize_session=False)
        )
        async with self._tx() as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def pop_listing_id(self, timeout_seconds: float) -> str | None:
        """Blocking pop: polls until an item arrives or the timeout expires."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(0.0, float(timeout_seconds))
        while True:
            listing_id = await self._pop_once()
            if listing_id is not None:
                return listing_id
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            await asyncio.sleep(min(self._poll_interval_s, remaining))

    async def _exists(self, model, listing_id: str) -> bool:
        async with self._tx() as session:
            found = await session.scalar(
                select(model.id).where(model.queue == self.name, model.listing_id == listing_id).limit(1)
            )
        return found is not None

    async def _insert_if_absent(self, model, listing_id: str) -> bool:
        try:
            async with self._tx() as session:
                found = await session.scalar(
                    select(model.id).where(model.queue == self.name, model.listing_id == listing_id).limit(1)
                )
                if found is not None:
                    return False
                session.add(model(queue=self.name, listing_id=listing_id))
        except IntegrityError:
            # lost a race with another consumer; the row exists either way
            return False
        return True

    async def is_processed(self, listing_id: str) -> bool:
        return await self._exists(ProcessedId, listing_id)

    async def mark_processed(self, listing_id: str) -> None:
        await self._insert_if_absent(ProcessedId, listing_id)
        async with self._tx() as session:
            await session.execute(
                delete(FailedId)
                .where(FailedId.queue == self.name, FailedId.listing_id == listing_id)
                .execution_options(synchronize_session=False)
            )

    async def mark_failed(self, listing_id: str, error: str) -> None:
        async with self._tx() as session:
            row = (
                await session.execute(
                    select(FailedId).where(FailedId.queue == self.name, FailedId.listing_id == listing_id)
                )
            ).scalars().first()
            if row is None:
                session.add(
                    FailedId(queue=self.name, listing_id=listing_id, attempts=1, last_error=error[:_MAX_ERROR_LEN])
                )
            else:
                row.attempts += 1
                row.last_error = error[:_MAX_ERROR_LEN]
                row.failed_at = datetime.utcnow()

    async def push_to_missing_queue(self, ids: Iterable[str]) -> int:
        added = 0
        for listing_id in dict.fromkeys(str(i) for i in ids if i):
            if await self._insert_if_absent(MissingId, listing_id):
                added += 1
        return added

    async def is_missing(self, listing_id: str) -> bool:
        return await self._exists(MissingId, listing_id)

    # -----------------------------
    # Fingerprints
    # -----------------------------
    async def get_fingerprint(self, listing_id: str) -> str | None:
        async with self._tx() as session:
            return await session.scalar(
                select(ListingFingerprint.digest).where(
                    ListingFingerprint.queue == self.name,
                    ListingFingerprint.listing_id == listing_id,
                )
            )

    async def has_property_changed(self, listing_id: str, detail: ListingDetail) -> bool:
        """No stored fingerprint counts as changed."""
        stored = await self.get_fingerprint(listing_id)
        return stored != fingerprint(detail)

    async def store_property_snapshot(self, listing_id: str, detail: ListingDetail) -> str:
        digest = fingerprint(detail)
        body = canonical_json(detail)
        async with self._tx() as session:
            row = (
                await session.execute(
                    select(ListingFingerprint).where(
                        ListingFingerprint.queue == self.name,
                        ListingFingerprint.listing_id == listing_id,
                    )
                )
            ).scalars().first()
            if row is None:
                session.add(
                    ListingFingerprint(queue=self.name, listing_id=listing_id, digest=digest, canonical_json=body)
                )
            else:
                row.digest = digest
                row.canonical_json = body
                row.updated_at = datetime.utcnow()
        return digest

    # -----------------------------
    # Maintenance
    # -----------------------------
    async def _count(self, session: AsyncSession, model) -> int:
        n = await session.scalar(select(func.count()).select_from(model).where(model.queue == self.name))
        return int(n or 0)

    async def get_stats(self) -> QueueStats:
        async with self._tx() as session:
            return QueueStats(
                total_discovered=await self._count(session, DiscoveredId),
                queue_depth=await self._count(session, QueueItem),
                processed_count=await self._count(session, ProcessedId),
                failed_count=await self._count(session, FailedId),
                missing_count=await self._count(session, MissingId),
            )

    async def start_new_cycle(self) -> None:
        """
        Forget discovery/processing state so the next discovery re-enqueues every
        live listing. Fingerprints and the missing quarantine survive.
        """
        async with self._tx() as session:
            for model in (QueueItem, DiscoveredId, ProcessedId, FailedId):
                await session.execute(
                    delete(model).where(model.queue == self.name).execution_options(synchronize_session=False)
                )
        log.info("Queue %r: new crawl cycle started", self.name)
