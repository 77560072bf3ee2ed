"""
Scheduled stuck-job sweep.

Every SWEEP_INTERVAL_SECONDS, scans all users' active jobs for ones whose
``updated_at`` is older than JOB_TIMEOUT_MINUTES and logs them. With
SWEEP_AUTO_CANCEL=true (or ``--auto-cancel``) the stuck jobs are cancelled
with the standard timeout reason.

Usage:
    kontexto-sweeper [--once] [--timeout MINUTES] [--auto-cancel]
"""

import argparse
import logging
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .core.config import settings
from .core.logging_config import setup_logging
from .database import SessionLocal
from .services.health_service import HealthService, SweepReport

logger = logging.getLogger("kontexto.sweeper")


def run_sweep(
    timeout_minutes: int,
    auto_cancel: bool,
    session_factory: Callable[[], Session] = SessionLocal,
) -> SweepReport:
    """Run one sweep in its own session."""
    db = session_factory()
    try:
        report = HealthService(db).sweep(timeout_minutes, auto_cancel=auto_cancel)
    finally:
        db.close()

    if report.stuck:
        logger.warning(
            "Sweep found %d stuck job(s); cancelled %d, failed to cancel %d",
            len(report.stuck), report.cancelled, report.failed,
            extra={"stuck": len(report.stuck), "cancelled": report.cancelled},
        )
    else:
        logger.info("Sweep found no stuck jobs")
    return report


def _parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kontexto-sweeper",
        description="Detect (and optionally cancel) analysis jobs stuck beyond a timeout.",
    )
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--timeout",
        type=int,
        default=settings.job_timeout_minutes,
        help="Minutes without an update before a job counts as stuck",
    )
    parser.add_argument(
        "--auto-cancel",
        action="store_true",
        default=settings.sweep_auto_cancel,
        help="Cancel stuck jobs instead of only reporting them",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.sweep_interval_seconds,
        help="Seconds between sweeps",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> None:
    """Sweep stuck jobs until interrupted."""
    args = _parse_args(argv)
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    if args.once:
        run_sweep(args.timeout, args.auto_cancel)
        return

    logger.info(
        "Sweeper started, every %ss (timeout=%sm, auto_cancel=%s)",
        args.interval, args.timeout, args.auto_cancel,
    )
    while True:
        try:
            run_sweep(args.timeout, args.auto_cancel)
            time.sleep(args.interval)
        except KeyboardInterrupt:
            logger.info("Sweeper shutting down")
            break
        except Exception:
            logger.exception("Sweep failed")
            time.sleep(args.interval)


if __name__ == "__main__":
    main()
