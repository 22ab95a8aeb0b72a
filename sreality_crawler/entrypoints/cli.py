# sreality_crawler/entrypoints/cli.py
"""
Command surface.

  sreality-crawler coordinator [sale|rent] [category|all] [--new-cycle]
  sreality-crawler worker [--worker-id ID]
  sreality-crawler stats
  sreality-crawler schedule [--run-now]
  sreality-crawler serve [--host H] [--port P]

SIGINT/SIGTERM request a graceful drain (in-flight ID finishes, exit 0).
Unhandled failures exit 1.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from typing import Callable

import uvicorn

from ..bootstrap import build_coordinator, build_queue, build_worker
from ..config import Settings, settings as default_settings
from ..domain.types import ALL_CATEGORIES, Category, TransactionType
from ..errors import CollaboratorUnavailable
from ..jobs.scheduler import DiscoveryTicker, build_scheduler
from ..service_layer.use_cases.crawl import run_discovery_use_case, run_worker_use_case
from .fastapi_app import create_app

log = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _install_signal_handlers(stop: Callable[[], None]) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop)
        except NotImplementedError:
            # Windows: no loop signal handlers
            signal.signal(sig, lambda *_: stop())


def _print_json(obj: dict) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


async def _coordinator(args: argparse.Namespace, cfg: Settings) -> int:
    coordinator = build_coordinator(cfg)
    _install_signal_handlers(coordinator.stop)
    try:
        await coordinator.initialize()
        summary = await run_discovery_use_case(
            coordinator,
            transaction_type=args.transaction_type,
            category=args.category,
            new_cycle=args.new_cycle,
            locality=args.locality,
        )
    finally:
        await coordinator.close()

    _print_json(summary)
    return 0


async def _worker(args: argparse.Namespace, cfg: Settings) -> int:
    worker = build_worker(cfg, worker_id=args.worker_id)
    _install_signal_handlers(worker.stop)
    try:
        await worker.initialize()
        summary = await run_worker_use_case(worker)
    finally:
        await worker.close()

    _print_json(summary)
    return 0


async def _stats(args: argparse.Namespace, cfg: Settings) -> int:
    queue = build_queue(cfg)
    try:
        await queue.initialize()
        stats = await queue.get_stats()
    finally:
        await queue.close()

    _print_json(stats.as_dict())
    return 0


async def _schedule(args: argparse.Namespace, cfg: Settings) -> int:
    stop = asyncio.Event()
    ticker = DiscoveryTicker(cfg, factory=build_coordinator)

    def _request_stop() -> None:
        ticker.stop()
        stop.set()

    _install_signal_handlers(_request_stop)

    scheduler = build_scheduler(cfg, ticker=ticker, run_now=args.run_now)
    scheduler.start()
    log.info("Scheduler started (discovery every %d min)", cfg.SCHED_DISCOVERY_INTERVAL_MINUTES)
    try:
        await stop.wait()
    finally:
        ticker.stop()
        scheduler.shutdown(wait=False)
        if ticker.running:
            log.info("Waiting for the running discovery tick to finish...")
        await ticker.drain()
        log.info("Scheduler stopped")
    return 0


def _serve(args: argparse.Namespace, cfg: Settings) -> int:
    uvicorn.run(create_app(cfg=cfg), host=args.host, port=args.port, log_level=cfg.LOG_LEVEL.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="sreality-crawler", description="Two-phase sreality crawl pipeline")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("coordinator", help="Phase 1: discover listing IDs and enqueue them")
    p.add_argument(
        "transaction_type",
        nargs="?",
        default=TransactionType.rent.value,
        choices=[t.value for t in TransactionType],
    )
    p.add_argument(
        "category",
        nargs="?",
        default=ALL_CATEGORIES,
        choices=[c.value for c in Category] + [ALL_CATEGORIES],
    )
    p.add_argument("--new-cycle", action="store_true", help="Reset dedup/processed state before discovering")
    p.add_argument("--locality", default=None, help="Optional locality_region_id filter")
    p.set_defaults(handler=_coordinator)

    p = sub.add_parser("worker", help="Phase 2: fetch details for queued IDs")
    p.add_argument("--worker-id", default=None, help="Defaults to WORKER_ID or worker-<pid>")
    p.set_defaults(handler=_worker)

    p = sub.add_parser("stats", help="Print queue statistics")
    p.set_defaults(handler=_stats)

    p = sub.add_parser("schedule", help="Run discovery periodically until interrupted")
    p.add_argument("--run-now", action="store_true", help="Fire the first discovery immediately")
    p.set_defaults(handler=_schedule)

    p = sub.add_parser("serve", help="Run the status API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(handler=_serve)

    return ap


def main(argv: list[str] | None = None, cfg: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = cfg or default_settings
    _configure_logging(cfg.LOG_LEVEL)

    try:
        if args.command == "serve":
            return args.handler(args, cfg)
        return asyncio.run(args.handler(args, cfg))
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 0
    except CollaboratorUnavailable as e:
        log.error("Fatal: %s", e)
        return 1
    except Exception:
        log.exception("Fatal error")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
