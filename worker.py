#!/usr/bin/env python
"""
Scheduled Job Runner

One-shot runner for hosts whose scheduler starts a process instead of
calling the HTTP cron endpoints. Each invocation runs one job and exits;
overlapping invocations are safe.

Run with:
    python worker.py reconcile
    python worker.py reminders
    python worker.py daily-digest
    python worker.py weekly-digest
    python worker.py prune-email-log
"""

import argparse
import asyncio
import logging
import sys
import time

from venue_backend.config import settings
from venue_backend.database import SessionLocal
from venue_backend.services.email_tracking import prune_email_log
from venue_backend.services.scheduled_jobs import run_auto_update, run_reminders, run_digest
from venue_backend.utils.errors import BookingServiceError, OperationTimeoutError
from venue_backend.utils.logging_config import setup_logging
from venue_backend.utils.timeouts import with_timeout

logger = logging.getLogger("worker")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RETRY = 75  # EX_TEMPFAIL: the scheduler should try again


async def run_job(job: str) -> dict:
    if job == "reconcile":
        # Opens its own sessions, one per thread
        run = await run_auto_update(SessionLocal)
        return run.result.to_dict()
    
    db = SessionLocal()
    try:
        if job == "reminders":
            return (await run_reminders(db)).to_dict()
        if job in ("daily-digest", "weekly-digest"):
            sent = await run_digest(db, job.split("-")[0])
            return {"sent": sent}
        if job == "prune-email-log":
            return {"deleted": prune_email_log(db)}
        raise ValueError(f"Unknown job: {job}")
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run one scheduled booking job")
    parser.add_argument(
        "job",
        choices=["reconcile", "reminders", "daily-digest", "weekly-digest", "prune-email-log"],
    )
    args = parser.parse_args(argv)
    
    setup_logging(level=settings.log_level, json_format=settings.log_json, include_uvicorn=False)
    start_time = time.time()
    
    try:
        result = asyncio.run(with_timeout(
            run_job(args.job), settings.cron_timeout_seconds, args.job, shield=args.job == "reconcile"
        ))
    except OperationTimeoutError:
        logger.error(f"Job {args.job} timed out")
        return EXIT_RETRY
    except BookingServiceError as e:
        logger.error(f"Job {args.job} failed: {e.code} {e.message}")
        return EXIT_FAILED
    
    logger.info(f"Job {args.job} finished in {time.time() - start_time:.2f}s: {result}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
