# scripts/init_db.py
import asyncio

from sreality_crawler.adapters.database import build_database
from sreality_crawler.bootstrap import build_queue
from sreality_crawler.config import settings


async def main() -> None:
    queue = build_queue(settings)
    await queue.initialize()
    await queue.close()
    print(f"OK: queue store ready at {settings.QUEUE_DB_URL} (idempotent).")

    db = build_database(settings)
    if db is None:
        print("SCRAPER_DB_URL not set - snapshot database disabled.")
        return
    await db.initialize()
    await db.close()
    print("OK: snapshot database ready (idempotent).")


if __name__ == "__main__":
    asyncio.run(main())
