#!/usr/bin/env python3
"""
Reservation Expiry Scheduler - standalone loop, runs the expiry sweep on an interval
Usage: python scheduler.py [--once]

Use this instead of the in-process APScheduler job when the API runs with
SCHEDULER_ENABLED=false (e.g. several API workers, one sweeper).
Logs go to LOGS_PATH/expiry_sweeper.log (rotated) and the console.
"""

import argparse
import schedule
import time
from datetime import datetime
import logging
from logging.handlers import RotatingFileHandler
import os

from app.core import settings

logger = logging.getLogger("expiry_scheduler")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_dir: str = None) -> str:
    """Rotating file + console logging; returns the log file path"""
    log_dir = log_dir or settings.LOGS_PATH
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "expiry_sweeper.log")

    # 10MB x 5 files
    file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))

    # SQL echo would drown the sweep summaries
    for name in ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.basicConfig(level=logging.INFO, handlers=[file_handler, console_handler])
    return log_file


def run_sweep():
    """Expire stale reservations; a failed tick is retried on the next one"""
    from app.services.expiry_service import ExpirySweeper

    started = datetime.now()
    run = ExpirySweeper.run()
    elapsed = (datetime.now() - started).total_seconds()

    if run.status == "success":
        logger.info(f"Sweep done in {elapsed:.1f}s, expired={run.expired_count}")
    else:
        logger.error(f"Sweep failed after {elapsed:.1f}s: {run.error_message}")
    return run


def main():
    parser = argparse.ArgumentParser(description="Expire stale inventory reservations")
    parser.add_argument("--once", action="store_true", help="run a single sweep and exit")
    args = parser.parse_args()

    log_file = configure_logging()
    interval = settings.EXPIRY_SWEEP_INTERVAL_MINUTES

    # Catch up on anything that expired while we were down
    run = run_sweep()
    if args.once:
        return 0 if run.status == "success" else 1

    logger.info(
        f"{settings.APP_NAME} expiry scheduler: every {interval} min, "
        f"TTL {settings.RESERVATION_TTL_HOURS}h, logging to {log_file}"
    )
    schedule.every(interval).minutes.do(run_sweep)

    while True:
        schedule.run_pending()
        time.sleep(10)


if __name__ == "__main__":
    raise SystemExit(main())
