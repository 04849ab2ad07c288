"""Buyer report retention.

Reports live for IMPACT_REPORT_RETENTION_DAYS after generation. Read paths
already ignore expired rows; this nightly task soft-deletes them so list
queries and indexes stay small. Certificates are never expired here.
"""

from datetime import datetime

import structlog
from celery import shared_task
from sqlalchemy import update
from sqlalchemy.orm import Session

from echo_sprout.models.base import utcnow
from echo_sprout.models.reporting import BuyerImpactReportRecord

logger = structlog.get_logger()


def expire_reports(session: Session, now: datetime) -> int:
    """Soft-delete every live report whose ``expires_at`` is not after ``now``."""
    result = session.execute(
        update(BuyerImpactReportRecord)
        .where(
            BuyerImpactReportRecord.expires_at <= now,
            BuyerImpactReportRecord.is_deleted.is_(False),
        )
        .values(is_deleted=True, updated_at=now)
    )
    return result.rowcount or 0


@shared_task(name="expire_buyer_reports", bind=True, max_retries=1)  # type: ignore[misc]
def expire_buyer_reports(self) -> dict:  # type: ignore[misc]
    from echo_sprout.core.celery_db import get_celery_db_session

    now = utcnow()
    try:
        with get_celery_db_session() as session:
            expired = expire_reports(session, now)
    except Exception as exc:
        logger.error("buyer_report_expiry_failed", error=str(exc))
        raise self.retry(exc=exc, countdown=300)

    logger.info("buyer_reports_expired", count=expired, cutoff=now.isoformat())
    return {"expired": expired}
