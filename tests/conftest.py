# tests/conftest.py
import copy

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from sreality_crawler.adapters.queue import SqlListingQueue
from sreality_crawler.config import Settings
from sreality_crawler.integrations.base import SinkDeliveryResult
from sreality_crawler.models import Base, SnapshotBase


DETAIL_PAYLOAD = {
    "hash_id": 123,
    "name": {"value": "Prodej bytu 2+kk 54 m²"},
    "price_czk": {"value_raw": 5400000, "value": "5 400 000 Kč"},
    "locality": {"value": "Praha 5, Smíchov"},
    "map": {"lat": 50.07, "lon": 14.40},
    "seo": {"category_main_cb": 1, "category_type_cb": 1},
    "text": {"value": "Světlý byt po rekonstrukci."},
    "items": [
        {"name": "Dispozice", "value": "2+kk"},
        {"name": "Užitná plocha", "value": "54"},
        {"name": "Vlastnictví", "value": "Osobní"},
        {"name": "Stavba", "value": "Cihlová"},
        {"name": "Stav objektu", "value": "Velmi dobrý"},
        {"name": "Podlaží", "value": "3. podlaží z 5"},
        {"name": "Balkón", "value": "4 m²"},
        {"name": "Sklep", "value": "Ano"},
        {"name": "Výtah", "value": True},
        {"name": "Energetická náročnost budovy", "value": "Třída C"},
    ],
    "_links": {"self": {"href": "/detail/prodej/byt/2+kk/praha-smichov/123"}},
    "_embedded": {
        "images": [
            {"_links": {"self": {"href": "https://img.sreality.test/1.jpg"}}},
            {"_links": {"dynamicDown": {"href": "https://img.sreality.test/2.jpg"}}},
        ]
    },
}


@pytest.fixture
def cfg():
    """Fast, isolated settings: no real hosts, no waiting."""
    return Settings(
        QUEUE_DB_URL="sqlite+aiosqlite:///:memory:",
        QUEUE_NAME="test",
        QUEUE_POLL_INTERVAL_S=0.01,
        SCRAPER_DB_URL=None,
        API_BASE_URL="https://api.sreality.test/api",
        BASE_URL="https://www.sreality.cz",
        INGEST_API_URL="https://core.test/api/v1",
        INGEST_API_KEY="test-key",
        PAGE_SIZE=60,
        MAX_DISCOVERY_PAGES=100,
        WORKER_POP_TIMEOUT_S=0,
        WORKER_MAX_EMPTY_POLLS=2,
        WORKER_PROGRESS_EVERY=10,
        HTTP_RETRY_ATTEMPTS=3,
        API_KEY=None,
    )


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(SnapshotBase.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def queue(engine, cfg):
    return SqlListingQueue("test", cfg=cfg, engine=engine)


@pytest.fixture
def detail_payload():
    def _make(**overrides):
        payload = copy.deepcopy(DETAIL_PAYLOAD)
        payload.update(overrides)
        return payload

    return _make


class RecordingDelay:
    """Stands in for random_delay: records the requested ranges, never sleeps."""

    def __init__(self):
        self.calls = []

    async def __call__(self, min_ms, max_ms, stop=None):
        self.calls.append((min_ms, max_ms))
        return 0.0


@pytest.fixture
def delay():
    return RecordingDelay()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return _sleep


class FakeSink:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []
        self.closed = False

    async def send(self, payload):
        self.sent.append(payload)
        if self.ok:
            return SinkDeliveryResult(ok=True)
        return SinkDeliveryResult(ok=False, error="HTTP 503: unavailable")

    async def close(self):
        self.closed = True


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def failing_sink():
    return FakeSink(ok=False)
