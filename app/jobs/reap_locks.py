"""
Clears expired slot holds.

    python -m app.jobs.reap_locks          # one sweep (cron)
    python -m app.jobs.reap_locks --loop   # sweep every REAPER_INTERVAL_SECONDS
"""

from __future__ import annotations

import argparse
import time

from sqlalchemy.orm import configure_mappers

import app.db.base  # noqa: F401
from app.core.logging import configure_logging, get_logger
from app.core.settings import settings
from app.db.session import SessionLocal
from app.services.reservations import ReapResult, SlotReservationEngine

configure_mappers()

log = get_logger("jobs.reap_locks")


def run_once(batch_size: int | None = None) -> ReapResult:
    with SessionLocal() as db:
        return SlotReservationEngine(db).reap_expired_locks(batch_size=batch_size)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Release expired slot holds.")
    parser.add_argument("--loop", action="store_true", help="keep sweeping")
    parser.add_argument("--interval", type=int, default=settings.REAPER_INTERVAL_SECONDS)
    parser.add_argument("--batch-size", type=int, default=settings.REAPER_BATCH_SIZE)
    args = parser.parse_args(argv)

    configure_logging(json=settings.LOG_JSON, level=settings.LOG_LEVEL)

    while True:
        result = run_once(args.batch_size)
        # full batch: more work is likely left, run again right away
        if args.loop and result.records_touched >= args.batch_size:
            continue
        if not args.loop:
            break
        try:
            time.sleep(args.interval)
        except KeyboardInterrupt:
            log.info("reaper.stopped")
            break


if __name__ == "__main__":
    main()
