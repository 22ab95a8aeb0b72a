from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    LOG_LEVEL: str = "INFO"

    # --- Portal identity ---
    PORTAL: str = "sreality"
    COUNTRY: str = "czech"
    BASE_URL: str = "https://www.sreality.cz"
    API_BASE_URL: str = "https://www.sreality.cz/api"
    USER_AGENT: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # --- Ingestion sink (core service) ---
    INGEST_API_URL: str = "https://core.landomo.com/api/v1"
    INGEST_API_KEY: str | None = None
    INGEST_TIMEOUT_S: int = 30

    # --- Shared queue / fingerprint store ---
    QUEUE_DB_URL: str = "sqlite+aiosqlite:///./crawl_queue.db"
    QUEUE_NAME: str = "sreality"
    QUEUE_POLL_INTERVAL_S: float = 0.5

    # --- Optional snapshot database (unset = disabled) ---
    SCRAPER_DB_URL: str | None = None

    # --- Discovery ---
    PAGE_SIZE: int = 60
    MAX_DISCOVERY_PAGES: int = 100
    DISCOVERY_DELAY_MIN_MS: int = 2000
    DISCOVERY_DELAY_MAX_MS: int = 4000
    DISCOVERY_ERROR_DELAY_MIN_MS: int = 5000
    DISCOVERY_ERROR_DELAY_MAX_MS: int = 10000

    # --- Worker ---
    REQUEST_DELAY_MS: int = 2000
    REQUEST_DELAY_JITTER_MS: int = 2000
    WORKER_MAX_EMPTY_POLLS: int = 10
    WORKER_POP_TIMEOUT_S: int = 5
    WORKER_PROGRESS_EVERY: int = 10
    WORKER_ERROR_DELAY_MIN_MS: int = 5000
    WORKER_ERROR_DELAY_MAX_MS: int = 10000
    WORKER_ID: str | None = None

    # --- HTTP retry/backoff (shared by search and detail fetches) ---
    HTTP_TIMEOUT_S: float = 30.0
    HTTP_RETRY_ATTEMPTS: int = Field(3, ge=1)
    HTTP_RETRY_INITIAL_DELAY_MS: int = 1000
    HTTP_RETRY_MULTIPLIER: float = 2.0
    HTTP_RETRY_MAX_DELAY_MS: int = 30000

    # Single fixed proxy; no rotation
    PROXY_URL: str | None = None

    # --- Scheduler tuning ---
    SCHED_DISCOVERY_INTERVAL_MINUTES: int = 360
    SCHED_TRANSACTION_TYPES: str = "sale,rent"
    SCHED_NEW_CYCLE: bool = True

    # --- Status API auth ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None


settings = Settings()
