# sreality_crawler/bootstrap.py
"""
Wiring. Optional collaborators (snapshot database) are resolved here once,
never re-checked by the components that receive them.
"""
from __future__ import annotations

from .adapters.clients.sreality_api import SrealityClient
from .adapters.database import build_database
from .adapters.queue import SqlListingQueue
from .config import Settings
from .integrations.core_service import CoreServiceSink
from .service_layer.coordinator import DiscoveryCoordinator
from .service_layer.worker import DetailWorker


def build_queue(cfg: Settings) -> SqlListingQueue:
    return SqlListingQueue(cfg.QUEUE_NAME, cfg=cfg)


def build_coordinator(cfg: Settings) -> DiscoveryCoordinator:
    return DiscoveryCoordinator(build_queue(cfg), SrealityClient(cfg), cfg=cfg, db=build_database(cfg))


def build_worker(cfg: Settings, worker_id: str | None = None) -> DetailWorker:
    return DetailWorker(
        build_queue(cfg),
        SrealityClient(cfg),
        CoreServiceSink(cfg),
        cfg=cfg,
        db=build_database(cfg),
        worker_id=worker_id or cfg.WORKER_ID,
    )
