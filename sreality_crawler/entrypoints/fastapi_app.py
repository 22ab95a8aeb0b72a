# sreality_crawler/entrypoints/fastapi_app.py
from __future__ import annotations

from fastapi import FastAPI

from ..adapters.queue import SqlListingQueue
from ..config import Settings, settings as default_settings
from .api.routers import health, stats


def create_app(queue: SqlListingQueue | None = None, cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or default_settings
    app = FastAPI(title="sreality crawler - status")

    app.state.settings = cfg
    app.state.queue = queue or SqlListingQueue(cfg.QUEUE_NAME, cfg=cfg)

    @app.on_event("startup")
    async def _startup() -> None:
        # creates the queue tables (and job_runs) if the crawl never ran here
        await app.state.queue.initialize()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.queue.close()

    # Routers
    app.include_router(health.router)
    app.include_router(stats.router)

    return app
