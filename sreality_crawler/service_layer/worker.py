# sreality_crawler/service_layer/worker.py
"""
Phase 2: detail fetching.

Consumes listing IDs from the shared queue one at a time, fetches the detail,
and forwards it to the ingestion sink only when its fingerprint changed.
Delivery is at-least-once: the fingerprint and the processed mark are written
only after the sink accepted the send.
"""
from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from enum import Enum

from ..adapters.clients.sreality_api import SrealityClient
from ..adapters.database import ScraperDatabase
from ..adapters.queue import ListingQueue
from ..config import Settings, settings as default_settings
from ..domain.normalize import normalize_detail
from ..domain.transform import build_ingest_payload
from ..domain.types import WorkerStats
from ..errors import IngestionError
from ..integrations.base import IngestionSink
from .pacing import Delay, random_delay

log = logging.getLogger(__name__)


class Outcome(str, Enum):
    changed = "changed"
    unchanged = "unchanged"
    skipped = "skipped"
    missing = "missing"


class DetailWorker:
    def __init__(
        self,
        queue: ListingQueue,
        client: SrealityClient,
        sink: IngestionSink,
        *,
        cfg: Settings | None = None,
        db: ScraperDatabase | None = None,
        worker_id: str | None = None,
        delay: Delay = random_delay,
    ) -> None:
        self.queue = queue
        self.client = client
        self.sink = sink
        self.db = db
        self._cfg = cfg or default_settings
        self._delay = delay
        self.worker_id = worker_id or f"worker-{os.getpid()}"
        self.stats = WorkerStats()
        self._stop = asyncio.Event()
        self.running = False

    async def initialize(self) -> None:
        await self.queue.initialize()
        if self.db is not None:
            await self.db.initialize()
        log.info("Worker %s initialized", self.worker_id)

    # -----------------------------
    # Per-ID processing
    # -----------------------------
    async def _handle(self, listing_id: str) -> Outcome:
        if await self.queue.is_processed(listing_id):
            return Outcome.skipped

        raw = await self.client.fetch_detail(listing_id)
        if raw is None:
            await self.queue.push_to_missing_queue([listing_id])
            return Outcome.missing

        detail = normalize_detail(raw, base_url=self._cfg.BASE_URL, fetched_at=datetime.now(timezone.utc))

        outcome = Outcome.unchanged
        if await self.queue.has_property_changed(listing_id, detail):
            payload = build_ingest_payload(detail, portal=self._cfg.PORTAL, country=self._cfg.COUNTRY)
            result = await self.sink.send(payload)
            if not result.ok:
                raise IngestionError(result.error or "ingestion sink rejected the listing")

            checksum = await self.queue.store_property_snapshot(listing_id, detail)
            if self.db is not None:
                await self.db.store_snapshot(listing_id, detail, checksum)
            outcome = Outcome.changed

        await self.queue.mark_processed(listing_id)
        return outcome

    async def process_listing(self, listing_id: str) -> bool:
        """
        True when the ID ended up processed (changed, unchanged or already done).
        Not-found and errors return False and leave the ID unprocessed.
        """
        tag = f"[{self.worker_id}]"
        try:
            outcome = await self._handle(listing_id)
        except Exception as e:
            self.stats.failed += 1
            log.error("%s Failed to process %s: %s", tag, listing_id, e)
            try:
                await self.queue.mark_failed(listing_id, f"{type(e).__name__}: {e}")
            except Exception as mark_err:
                log.error("%s Could not record failure for %s: %s", tag, listing_id, mark_err)
            return False

        if outcome is Outcome.missing:
            self.stats.failed += 1
            self.stats.missing += 1
            log.info("%s Property %s not found - queued for verification", tag, listing_id)
            return False

        self.stats.processed += 1
        if outcome is Outcome.changed:
            self.stats.changed += 1
            log.info("%s Processed %s (CHANGED)", tag, listing_id)
        elif outcome is Outcome.unchanged:
            self.stats.unchanged += 1
            log.debug("%s Processed %s (unchanged)", tag, listing_id)
        else:
            self.stats.skipped += 1
            log.debug("%s Skipping %s - already processed", tag, listing_id)
        return True

    # -----------------------------
    # Consume loop
    # -----------------------------
    def _log_progress(self, prefix: str) -> None:
        s = self.stats
        log.info(
            "[%s] %s: %d processed (%d changed, %d unchanged, %d skipped, %d failed, %d missing)",
            self.worker_id,
            prefix,
            s.processed,
            s.changed,
            s.unchanged,
            s.skipped,
            s.failed,
            s.missing,
        )

    async def start(self) -> WorkerStats:
        """
        Blocking consume loop. Ends after WORKER_MAX_EMPTY_POLLS consecutive
        empty polls, or when stop() was called (checked at the top of the loop
        and while sleeping; an in-flight ID always finishes).
        """
        cfg = self._cfg
        self.running = True
        log.info("[%s] Starting worker...", self.worker_id)

        empty_polls = 0
        last_progress = 0
        try:
            while not self._stop.is_set():
                try:
                    listing_id = await self.queue.pop_listing_id(cfg.WORKER_POP_TIMEOUT_S)
                except Exception as e:
                    log.error("[%s] Worker error: %s", self.worker_id, e)
                    await self._delay(cfg.WORKER_ERROR_DELAY_MIN_MS, cfg.WORKER_ERROR_DELAY_MAX_MS, self._stop)
                    continue

                if listing_id is None:
                    empty_polls += 1
                    if empty_polls >= cfg.WORKER_MAX_EMPTY_POLLS:
                        log.info("[%s] Queue empty after %d checks. Stopping.", self.worker_id, empty_polls)
                        break
                    log.info("[%s] Queue empty (%d/%d)", self.worker_id, empty_polls, cfg.WORKER_MAX_EMPTY_POLLS)
                    continue

                empty_polls = 0
                await self.process_listing(listing_id)

                await self._delay(cfg.REQUEST_DELAY_MS, cfg.REQUEST_DELAY_MS + cfg.REQUEST_DELAY_JITTER_MS, self._stop)

                every = cfg.WORKER_PROGRESS_EVERY
                processed = self.stats.processed
                if every > 0 and processed and processed % every == 0 and processed != last_progress:
                    last_progress = processed
                    self._log_progress("Progress")
        finally:
            self.running = False

        self._log_progress("Worker stopped")
        return self.stats

    def stop(self) -> None:
        """Request a graceful drain. Collaborators are closed by close()."""
        if not self._stop.is_set():
            log.info("[%s] Stopping worker...", self.worker_id)
        self._stop.set()

    async def close(self) -> None:
        await self.client.close()
        await self.sink.close()
        await self.queue.close()
        if self.db is not None:
            await self.db.close()
