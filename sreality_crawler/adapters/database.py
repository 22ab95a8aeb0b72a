# sreality_crawler/adapters/database.py
from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import Settings
from ..db import make_engine, make_session_factory
from ..domain.fingerprint import listing_to_dict
from ..domain.types import ListingDetail
from ..errors import CollaboratorUnavailable
from ..models import ListingSnapshot, SnapshotBase

log = logging.getLogger(__name__)


class ScraperDatabase:
    """
    Durable history of changed listings. Optional: only built when
    SCRAPER_DB_URL is configured.
    """

    def __init__(self, url: str, *, portal: str, engine: AsyncEngine | None = None) -> None:
        self.portal = portal
        self._owns_engine = engine is None
        self._engine = engine or make_engine(url)
        self._sessions = make_session_factory(self._engine)

    async def initialize(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(SnapshotBase.metadata.create_all)
        except (OperationalError, InterfaceError) as e:
            raise CollaboratorUnavailable(f"snapshot database unreachable: {e}") from e
        log.info("Snapshot database initialized")

    async def store_snapshot(self, listing_id: str, detail: ListingDetail, checksum: str) -> bool:
        """Returns False when this exact (id, checksum) was already stored."""
        try:
            async with self._sessions() as session:
                async with session.begin():
                    existing = await session.scalar(
                        select(ListingSnapshot.id).where(
                            ListingSnapshot.portal == self.portal,
                            ListingSnapshot.portal_id == listing_id,
                            ListingSnapshot.checksum == checksum,
                        )
                    )
                    if existing is not None:
                        return False
                    session.add(
                        ListingSnapshot(
                            portal=self.portal,
                            portal_id=listing_id,
                            checksum=checksum,
                            data_json=json.dumps(listing_to_dict(detail), ensure_ascii=False),
                        )
                    )
        except IntegrityError:
            return False
        except (OperationalError, InterfaceError) as e:
            raise CollaboratorUnavailable(f"snapshot database unreachable: {e}") from e
        return True

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()


def build_database(cfg: Settings) -> ScraperDatabase | None:
    """Resolved once at startup; None disables snapshot persistence entirely."""
    if not cfg.SCRAPER_DB_URL:
        return None
    return ScraperDatabase(cfg.SCRAPER_DB_URL, portal=cfg.PORTAL)
