"""
One-shot job that pushes document expiration reminders.

Meant to be run once a day by an external scheduler (cron, Cloud Scheduler).
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from automate.config import LOG_DATE_FORMAT, LOG_FORMAT, get_settings
from automate.dependencies import build_services
from automate.errors import AutomateError
from automate.notifier import send_expiration_notifications

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="AutoMate expiration notifier")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Run as if today were this date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the notifications without sending them",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )

    try:
        services = build_services(settings)
        if services.push is None and not args.dry_run:
            logger.error("Firebase no inicializado; no se pueden enviar notificaciones.")
            return 1
        report = send_expiration_notifications(
            services.db, services.push, today=args.today, dry_run=args.dry_run
        )
    except AutomateError as exc:
        logger.exception("Error sendNotifications: %s", exc)
        return 1

    logger.info(
        "Scanned %d documents: %d notified, %d skipped, %d sent, %d failed",
        report.scanned,
        report.notified,
        report.skipped,
        report.sent,
        report.failed,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
