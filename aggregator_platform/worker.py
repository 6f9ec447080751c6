"""Scheduled fetch-and-persist worker.

Run once (cron style)::

    python -m aggregator_platform.worker

or keep running and ingest every N seconds::

    python -m aggregator_platform.worker --interval 900
"""

from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from .config import AppSettings
from .logging import init_logging
from .services.ingestion_service import IngestionResult, IngestionService


async def run(service: IngestionService, interval: Optional[float]) -> List[IngestionResult]:
    results = await service.fetch_and_persist()
    while interval:
        await asyncio.sleep(interval)
        results = await service.fetch_and_persist()
    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch weather and news and persist them")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between runs; omit to run once (defaults to APP_INGEST_INTERVAL_S)",
    )
    args = parser.parse_args(argv)

    settings = AppSettings()
    log = init_logging(settings.log_level)
    interval = args.interval if args.interval is not None else settings.ingest_interval_s
    if interval is not None and interval <= 0:
        parser.error("--interval must be positive")

    service = IngestionService.from_settings(settings)
    log.info("worker_started", cities=settings.city_list, interval=interval)
    results = asyncio.run(run(service, interval))

    failed = [r for r in results if not r.success]
    for r in failed:
        log.warning("worker_item_failed", kind=r.kind, key=r.key, error=r.error)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
