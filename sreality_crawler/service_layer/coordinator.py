# sreality_crawler/service_layer/coordinator.py
"""
Phase 1: ID discovery.

Walks the portal search page by page for each requested category and pushes
newly seen listing IDs to the shared queue. No detail fetches, no sends.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from ..adapters.clients.sreality_api import SrealityClient
from ..adapters.database import ScraperDatabase
from ..adapters.queue import ListingQueue
from ..config import Settings, settings as default_settings
from ..domain.types import Category, TransactionType, categories_for
from ..errors import CrawlError
from .pacing import Delay, random_delay

log = logging.getLogger(__name__)


class DiscoveryCoordinator:
    def __init__(
        self,
        queue: ListingQueue,
        client: SrealityClient,
        *,
        cfg: Settings | None = None,
        db: ScraperDatabase | None = None,
        delay: Delay = random_delay,
    ) -> None:
        self.queue = queue
        self.client = client
        self.db = db
        self._cfg = cfg or default_settings
        self._delay = delay
        self._stop = asyncio.Event()
        # new IDs pushed by the current discover_all call, readable mid-run
        self.discovered = 0

    async def initialize(self) -> None:
        await self.queue.initialize()
        if self.db is not None:
            await self.db.initialize()
        log.info("Coordinator initialized")

    def stop(self) -> None:
        """Observed between pages and at sleep boundaries; the in-flight request finishes."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def discover_all(
        self,
        transaction_type: TransactionType | str,
        category: Category | str = "all",
        *,
        locality: str | None = None,
    ) -> int:
        tx = TransactionType(transaction_type)
        cats = categories_for(category)
        log.info("Starting discovery for %s - %s", tx.value, category if isinstance(category, str) else category.value)

        total_new = 0
        self.discovered = 0
        for cat in cats:
            if self._stop.is_set():
                break
            log.info("Discovering category %s (code %d)...", cat.value, cat.code)
            total_new += await self._discover_category(tx, cat, locality=locality, running_total=total_new)

        log.info("Discovery complete: %d new listings discovered", total_new)
        return total_new

    async def _discover_category(
        self,
        tx: TransactionType,
        cat: Category,
        *,
        locality: str | None,
        running_total: int,
    ) -> int:
        cfg = self._cfg
        page_size = cfg.PAGE_SIZE
        page = 1
        found = 0

        while not self._stop.is_set():
            try:
                result = await self.client.fetch_listing_ids(
                    cat, tx, locality=locality, page=page, per_page=page_size
                )
            except (CrawlError, httpx.HTTPError) as e:
                log.error("Error on page %d (%s/%s): %s", page, tx.value, cat.value, e)
                page += 1
                if page > cfg.MAX_DISCOVERY_PAGES:
                    log.warning("Page safety limit (%d) reached for %s, giving up", cfg.MAX_DISCOVERY_PAGES, cat.value)
                    break
                await self._delay(cfg.DISCOVERY_ERROR_DELAY_MIN_MS, cfg.DISCOVERY_ERROR_DELAY_MAX_MS, self._stop)
                continue

            if not result.ids:
                log.info("Page %d: no IDs, %s done", page, cat.value)
                break

            # queue failures are not page-local: let them end the crawl
            new_count = await self.queue.push_listing_ids(result.ids)
            found += new_count
            self.discovered += new_count
            log.info(
                "Page %d: Found %d IDs, %d new (Total discovered: %d)",
                page,
                len(result.ids),
                new_count,
                running_total + found,
            )

            if page >= result.expected_pages(page_size):
                break
            page += 1
            await self._delay(cfg.DISCOVERY_DELAY_MIN_MS, cfg.DISCOVERY_DELAY_MAX_MS, self._stop)

        return found

    async def close(self) -> None:
        await self.client.close()
        await self.queue.close()
        if self.db is not None:
            await self.db.close()
