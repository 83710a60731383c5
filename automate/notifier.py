"""
Expiration notifier: pushes a reminder when a vehicle document expires in
exactly 30, 15 or 7 days.

Runs as a single sequential pass. A failure of the initial document query
propagates to the caller; problems with an individual document are logged
and that document is skipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from automate.db import DbClient, DocumentRecord
from automate.errors import ConfigurationError, PushError, StoreError
from automate.push import PushClient

logger = logging.getLogger(__name__)

WINDOW_DAYS = 30
TARGET_DAYS = (30, 15, 7)
NOTIFICATION_TITLE = "Recordatorio AutoMate"


@dataclass
class NotifierReport:
    scanned: int = 0
    notified: int = 0
    skipped: int = 0
    sent: int = 0
    failed: int = 0


def days_until(expiry: date, today: date) -> int:
    seconds = (expiry - today).total_seconds()
    return math.ceil(seconds / timedelta(days=1).total_seconds())


def notification_body(document_type: Optional[str], diff_days: int) -> str:
    return f"Tu {document_type} caduca en {diff_days} días."


def _owner_tokens(db: DbClient, doc: DocumentRecord) -> Optional[list[str]]:
    try:
        vehicle = db.get_vehicle(doc.vehicle_id)
    except StoreError as exc:
        logger.warning("No vehicle for doc %s: %s", doc.id, exc)
        return None
    if not vehicle or not vehicle.user_id:
        logger.warning("No vehicle for doc %s", doc.id)
        return None

    try:
        tokens = db.list_device_tokens(vehicle.user_id)
    except StoreError as exc:
        logger.warning("No devices for user %s: %s", vehicle.user_id, exc)
        return None
    return [token for token in tokens if token]


def send_expiration_notifications(
    db: DbClient,
    push: Optional[PushClient],
    today: Optional[date] = None,
    dry_run: bool = False,
) -> NotifierReport:
    if push is None and not dry_run:
        raise ConfigurationError("A push client is required unless dry_run is set")
    today = today or date.today()
    window_end = today + timedelta(days=WINDOW_DAYS)
    report = NotifierReport()

    docs = db.list_documents_expiring_between(today, window_end)
    logger.info(
        "Found %d documents expiring between %s and %s", len(docs), today, window_end
    )

    for doc in docs:
        report.scanned += 1
        diff_days = days_until(doc.expiry_date, today)
        if diff_days not in TARGET_DAYS:
            continue

        tokens = _owner_tokens(db, doc)
        if not tokens:
            report.skipped += 1
            continue

        body = notification_body(doc.document_type, diff_days)
        if dry_run:
            logger.info("[dry-run] %s -> %d tokens for doc %s", body, len(tokens), doc.id)
            report.notified += 1
            continue

        try:
            result = push.send_multicast(tokens, NOTIFICATION_TITLE, body)
        except PushError as exc:
            logger.error("Send failed for doc %s: %s", doc.id, exc)
            report.failed += len(tokens)
            continue

        report.notified += 1
        report.sent += result.success_count
        report.failed += result.failure_count
        logger.info(
            "Enviado %d/%d para doc %s (%s) - %dd",
            result.success_count,
            len(tokens),
            doc.id,
            doc.document_type,
            diff_days,
        )

    return report
