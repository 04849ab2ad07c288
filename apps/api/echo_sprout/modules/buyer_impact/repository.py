"""Data access for the buyer impact engine.

Reads upstream rows with one batched query per collection and converts them
into the frozen engine records. Nothing outside this module sees ORM objects
from the marketplace tables.
"""

import uuid
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from echo_sprout.models.core import User
from echo_sprout.models.enums import BuyerReportType, PaymentStatus, ProjectType
from echo_sprout.models.marketplace import (
    ProgressUpdate,
    Project,
    ProjectMilestone,
    Purchase,
    SystemAlert,
)
from echo_sprout.models.reporting import BuyerImpactReportRecord, ImpactCertificateRecord
from echo_sprout.modules.buyer_impact.schemas import (
    AlertRecord,
    BuyerRecord,
    Measurement,
    MilestoneRecord,
    ProgressRecord,
    ProjectRecord,
    PurchaseRecord,
    ReportPeriod,
)

logger = structlog.get_logger()

UPDATES_PER_PROJECT = 5

_measurement_adapter: TypeAdapter = TypeAdapter(Measurement)

# Older progress rows were written with camelCase measurement keys
_MEASUREMENT_ALIASES = {
    "treesPlanted": "trees_planted",
    "energyGenerated": "energy_generated_kwh",
    "energy_generated": "energy_generated_kwh",
    "wasteProcessed": "waste_processed_tons",
    "waste_processed": "waste_processed_tons",
}


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalise aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def parse_measurement(project_type: ProjectType, data: dict[str, Any] | None):
    """Map free-form ``measurement_data`` onto the variant for ``project_type``.

    Returns None for missing or unrecognised shapes.
    """
    if not data:
        return None
    fields = {_MEASUREMENT_ALIASES.get(k, k): v for k, v in data.items()}
    fields["project_type"] = project_type.value
    try:
        return _measurement_adapter.validate_python(fields)
    except ValidationError:
        logger.debug("measurement_data_ignored", project_type=project_type.value)
        return None


# ── Row → record conversion ──────────────────────────────────────────────────


def purchase_record(row: Purchase) -> PurchaseRecord:
    return PurchaseRecord(
        id=row.id,
        buyer_id=row.buyer_id,
        project_id=row.project_id,
        credit_amount=float(row.credit_amount),
        unit_price=float(row.unit_price),
        total_amount=float(row.total_amount),
        created_at=as_utc(row.created_at),
    )


def project_record(row: Project) -> ProjectRecord:
    return ProjectRecord(
        id=row.id,
        title=row.title,
        description=row.description or "",
        creator_id=row.creator_id,
        project_type=row.project_type,
        status=row.status,
        country=row.location_country,
        region=row.location_region,
        latitude=row.latitude,
        longitude=row.longitude,
        budget=_to_float(row.budget),
        start_date=row.start_date,
        expected_completion_date=row.expected_completion_date,
        actual_completion_date=row.actual_completion_date,
        target_carbon_impact=row.target_carbon_impact,
        verification_status=row.verification_status,
        verification_completed_at=as_utc(row.verification_completed_at),
        created_at=as_utc(row.created_at),
    )


def progress_record(row: ProgressUpdate, project_type: ProjectType) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        description=row.description or "",
        update_type=row.update_type,
        carbon_impact_to_date=row.carbon_impact_to_date,
        progress_percentage=row.progress_percentage,
        reporting_date=as_utc(row.reporting_date),
        created_at=as_utc(row.created_at),
        measurement=parse_measurement(project_type, row.measurement_data),
    )


def milestone_record(row: ProjectMilestone) -> MilestoneRecord:
    return MilestoneRecord(
        id=row.id,
        project_id=row.project_id,
        milestone_type=row.milestone_type,
        title=row.title,
        description=row.description or "",
        planned_date=row.planned_date,
        actual_date=row.actual_date,
        status=row.status,
        delay_reason=row.delay_reason,
        sequence=row.sequence,
    )


def alert_record(row: SystemAlert) -> AlertRecord:
    return AlertRecord(
        id=row.id,
        project_id=row.project_id,
        severity=row.severity,
        message=row.message,
        is_resolved=row.is_resolved,
        resolved_at=as_utc(row.resolved_at),
        resolution_notes=row.resolution_notes,
        created_at=as_utc(row.created_at),
    )


# ── Upstream reads ───────────────────────────────────────────────────────────


async def load_buyer(db: AsyncSession, buyer_id: uuid.UUID) -> BuyerRecord | None:
    user = await db.get(User, buyer_id)
    if user is None or user.is_deleted:
        return None
    return BuyerRecord(id=user.id, name=user.full_name, email=user.email)


async def load_completed_purchases(
    db: AsyncSession,
    buyer_id: uuid.UUID,
    period: ReportPeriod | None = None,
    project_ids: Iterable[uuid.UUID] | None = None,
) -> list[PurchaseRecord]:
    stmt = select(Purchase).where(
        Purchase.buyer_id == buyer_id,
        Purchase.payment_status == PaymentStatus.COMPLETED,
        Purchase.is_deleted.is_(False),
    )
    if period is not None:
        if period.start_date:
            stmt = stmt.where(Purchase.created_at >= as_utc(period.start_date))
        if period.end_date:
            stmt = stmt.where(Purchase.created_at <= as_utc(period.end_date))
    if project_ids:
        stmt = stmt.where(Purchase.project_id.in_(list(project_ids)))
    stmt = stmt.order_by(Purchase.created_at, Purchase.id)

    result = await db.execute(stmt)
    return [purchase_record(row) for row in result.scalars().all()]


async def load_projects(
    db: AsyncSession, project_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, ProjectRecord]:
    """Load the given projects. Ids that do not resolve are simply absent."""
    ids = list(set(project_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(Project).where(Project.id.in_(ids), Project.is_deleted.is_(False))
    )
    return {row.id: project_record(row) for row in result.scalars().all()}


async def load_recent_updates(
    db: AsyncSession,
    projects: dict[uuid.UUID, ProjectRecord],
    per_project: int | None = UPDATES_PER_PROJECT,
) -> dict[uuid.UUID, list[ProgressRecord]]:
    """Latest ``per_project`` progress updates for each project, newest first.

    ``per_project=None`` keeps every update.
    """
    if not projects:
        return {}
    result = await db.execute(
        select(ProgressUpdate)
        .where(
            ProgressUpdate.project_id.in_(list(projects)),
            ProgressUpdate.is_deleted.is_(False),
        )
        .order_by(ProgressUpdate.created_at.desc(), ProgressUpdate.id.desc())
    )
    updates: dict[uuid.UUID, list[ProgressRecord]] = defaultdict(list)
    for row in result.scalars().all():
        bucket = updates[row.project_id]
        if per_project is None or len(bucket) < per_project:
            bucket.append(progress_record(row, projects[row.project_id].project_type))
    return dict(updates)


async def load_milestones(
    db: AsyncSession, project_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, list[MilestoneRecord]]:
    """Milestones per project in plan order."""
    ids = list(set(project_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(ProjectMilestone)
        .where(
            ProjectMilestone.project_id.in_(ids),
            ProjectMilestone.is_deleted.is_(False),
        )
        .order_by(
            ProjectMilestone.sequence,
            ProjectMilestone.planned_date,
            ProjectMilestone.id,
        )
    )
    milestones: dict[uuid.UUID, list[MilestoneRecord]] = defaultdict(list)
    for row in result.scalars().all():
        milestones[row.project_id].append(milestone_record(row))
    return dict(milestones)


async def load_alerts(
    db: AsyncSession,
    project_ids: Iterable[uuid.UUID],
    unresolved_only: bool = True,
) -> dict[uuid.UUID, list[AlertRecord]]:
    """Project alerts, newest first. Platform-wide alerts are never included."""
    ids = list(set(project_ids))
    if not ids:
        return {}
    stmt = select(SystemAlert).where(
        SystemAlert.project_id.in_(ids),
        SystemAlert.is_deleted.is_(False),
    )
    if unresolved_only:
        stmt = stmt.where(SystemAlert.is_resolved.is_(False))
    stmt = stmt.order_by(SystemAlert.created_at.desc(), SystemAlert.id.desc())

    result = await db.execute(stmt)
    alerts: dict[uuid.UUID, list[AlertRecord]] = defaultdict(list)
    for row in result.scalars().all():
        alerts[row.project_id].append(alert_record(row))
    return dict(alerts)


async def load_user_names(
    db: AsyncSession, user_ids: Iterable[uuid.UUID | None]
) -> dict[uuid.UUID, str]:
    ids = list({uid for uid in user_ids if uid is not None})
    if not ids:
        return {}
    result = await db.execute(
        select(User.id, User.full_name).where(User.id.in_(ids), User.is_deleted.is_(False))
    )
    return {row.id: row.full_name for row in result.all()}


# ── Report and certificate records ───────────────────────────────────────────


async def get_report_record(
    db: AsyncSession, report_uid: uuid.UUID, now: datetime
) -> BuyerImpactReportRecord | None:
    """Fetch a live report by its report id; expired or deleted rows are absent."""
    result = await db.execute(
        select(BuyerImpactReportRecord).where(
            BuyerImpactReportRecord.report_uid == report_uid,
            BuyerImpactReportRecord.is_deleted.is_(False),
        )
    )
    record = result.scalar_one_or_none()
    if record is None or as_utc(record.expires_at) <= now:
        return None
    return record


async def list_report_records(
    db: AsyncSession,
    buyer_id: uuid.UUID,
    now: datetime,
    report_type: BuyerReportType | None = None,
    limit: int = 20,
) -> list[BuyerImpactReportRecord]:
    stmt = select(BuyerImpactReportRecord).where(
        BuyerImpactReportRecord.buyer_id == buyer_id,
        BuyerImpactReportRecord.is_deleted.is_(False),
        BuyerImpactReportRecord.expires_at > now,
    )
    if report_type is not None:
        stmt = stmt.where(BuyerImpactReportRecord.report_type == report_type)
    stmt = stmt.order_by(BuyerImpactReportRecord.generated_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def add_report_record(
    db: AsyncSession, record: BuyerImpactReportRecord
) -> BuyerImpactReportRecord:
    db.add(record)
    await db.flush()
    return record


async def add_certificate_record(
    db: AsyncSession, record: ImpactCertificateRecord
) -> ImpactCertificateRecord:
    db.add(record)
    await db.flush()
    return record
