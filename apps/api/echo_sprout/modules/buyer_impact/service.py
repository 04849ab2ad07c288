"""Buyer impact service: report assembly, read-back, certificates, trends.

Every public coroutine checks buyer access before touching any buyer data
and raises PermissionError when the caller may not see it. Routers map
PermissionError → 403, LookupError → 404, ValueError → 422.
"""

import math
import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from echo_sprout.auth.rbac import ensure_buyer_access, is_staff
from echo_sprout.core.config import settings
from echo_sprout.models.base import utcnow
from echo_sprout.models.enums import BuyerReportStatus, BuyerReportType, ProjectStatus
from echo_sprout.models.reporting import BuyerImpactReportRecord, ImpactCertificateRecord
from echo_sprout.modules.buyer_impact import repository
from echo_sprout.modules.buyer_impact.aggregator import build_portfolio
from echo_sprout.modules.buyer_impact.benchmarks import compare_to_benchmarks
from echo_sprout.modules.buyer_impact.calculator import (
    calculate_sustainability_metrics,
    calculate_total_impact,
)
from echo_sprout.modules.buyer_impact.certificates import issue_certificates
from echo_sprout.modules.buyer_impact.constants import DEFAULT_CONSTANTS, ImpactConstants
from echo_sprout.modules.buyer_impact.recommendations import generate_recommendations
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerImpactReport,
    BuyerPortfolio,
    BuyerPortfolioSummary,
    BuyerRecord,
    BuyerReportListItem,
    GenerateBuyerReportRequest,
    GenerateBuyerReportResponse,
    ImpactCertificate,
    ImpactTrend,
    IssueCertificateRequest,
    ProgressRecord,
    ProjectRecord,
    ProjectTracking,
    ProjectTrackingDetail,
    PurchaseRecord,
    ReportGenerationMetadata,
    ReportPeriod,
    TrendForecast,
    TrendPoint,
)
from echo_sprout.modules.buyer_impact.summarizer import newest_first, summarize_projects
from echo_sprout.modules.buyer_impact.tracking import (
    estimated_offset,
    track_project,
    track_project_detail,
)
from echo_sprout.schemas.auth import CurrentUser

logger = structlog.get_logger()

UNKNOWN_BUYER = "Unknown Buyer"

REPORT_LIFECYCLE: tuple[BuyerReportStatus, ...] = (
    BuyerReportStatus.DRAFT,
    BuyerReportStatus.FINAL,
    BuyerReportStatus.CERTIFIED,
    BuyerReportStatus.ARCHIVED,
)
STAFF_ONLY_STATUSES = frozenset({BuyerReportStatus.CERTIFIED, BuyerReportStatus.ARCHIVED})

TREND_TIMEFRAMES: dict[str, int | None] = {
    "1m": 30,
    "3m": 90,
    "6m": 180,
    "1y": 365,
    "all": None,
}
TREND_METRICS = {
    "carbon_impact": ("Carbon Impact", lambda p: p.credit_amount),
    "investment": ("Investment", lambda p: p.total_amount),
}


# ── Helpers ───────────────────────────────────────────────────────────────────


def _label(enum_value: str) -> str:
    return enum_value.replace("_", " ").title()


def report_title(buyer_name: str, report_type: BuyerReportType, total_credits: float, period: ReportPeriod) -> str:
    if total_credits > 0:
        return f"{buyer_name} - {_label(report_type.value)} Report"
    return f"Buyer Impact Report - {period.label}"


def _can_read_report(caller: CurrentUser, record: BuyerImpactReportRecord) -> bool:
    return (
        record.generated_by == caller.user_id
        or record.buyer_id == caller.user_id
        or is_staff(caller)
    )


def _report_from_record(record: BuyerImpactReportRecord) -> BuyerImpactReport:
    report = BuyerImpactReport.model_validate(record.report_data)
    # The status column is authoritative after lifecycle moves
    return report.model_copy(update={"status": record.status})


def _certificate_record(
    buyer_id: uuid.UUID, issued_by: uuid.UUID, cert: ImpactCertificate
) -> ImpactCertificateRecord:
    return ImpactCertificateRecord(
        certificate_uid=cert.id,
        buyer_id=buyer_id,
        issued_by=issued_by,
        certificate_type=cert.type,
        serial_number=cert.metadata.serial_number,
        quantification=cert.quantification,
        unit=cert.unit,
        issue_date=cert.issue_date,
        valid_until=cert.valid_until,
        project_ids=[str(pid) for pid in cert.projects],
        certificate_data=cert.model_dump(mode="json"),
    )


# ── Report assembly (pure) ────────────────────────────────────────────────────


def assemble_report(
    buyer: BuyerRecord,
    purchases: Sequence[PurchaseRecord],
    projects: dict[uuid.UUID, ProjectRecord],
    updates: dict[uuid.UUID, list[ProgressRecord]],
    request: GenerateBuyerReportRequest,
    generated_by: str,
    now: datetime,
    report_id: uuid.UUID,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> BuyerImpactReport:
    """Run every engine stage over already-loaded inputs."""
    portfolio = build_portfolio(purchases, projects, constants)
    summaries = summarize_projects(purchases, projects, updates, now, constants)
    total_impact = calculate_total_impact(summaries, constants)

    certificates: list[ImpactCertificate] = []
    if request.include_certificates:
        certificates = issue_certificates(
            buyer.id, purchases, generated_by, now, constants=constants
        )

    comparisons = []
    if request.include_comparisons:
        comparisons = compare_to_benchmarks(portfolio, total_impact, constants)

    return BuyerImpactReport(
        id=report_id,
        buyer_id=buyer.id,
        buyer_name=buyer.name,
        report_type=request.report_type,
        report_period=request.report_period,
        portfolio=portfolio,
        projects=summaries,
        total_impact=total_impact,
        certificates=certificates,
        recommendations=generate_recommendations(portfolio, summaries),
        comparisons=comparisons,
        sustainability=calculate_sustainability_metrics(portfolio, total_impact),
        generated_at=now,
        generated_by=generated_by,
        status=BuyerReportStatus.FINAL,
    )


# ── Report generation ─────────────────────────────────────────────────────────


async def generate_buyer_impact_report(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    request: GenerateBuyerReportRequest,
    now: datetime | None = None,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> GenerateBuyerReportResponse:
    ensure_buyer_access(caller, buyer_id)
    now = now or utcnow()

    buyer = await repository.load_buyer(db, buyer_id)
    if buyer is None:
        buyer = BuyerRecord(id=buyer_id, name=UNKNOWN_BUYER, email="")

    project_filter = [request.project_id] if request.project_id else None
    purchases = await repository.load_completed_purchases(
        db, buyer_id, period=request.report_period, project_ids=project_filter
    )
    projects = await repository.load_projects(db, {p.project_id for p in purchases})
    updates = await repository.load_recent_updates(db, projects)

    report = assemble_report(
        buyer,
        purchases,
        projects,
        updates,
        request,
        generated_by=str(caller.user_id),
        now=now,
        report_id=uuid.uuid4(),
        constants=constants,
    )

    title = report_title(
        buyer.name, request.report_type, report.portfolio.total_credits_owned, request.report_period
    )
    expires_at = now + timedelta(days=settings.IMPACT_REPORT_RETENTION_DAYS)

    for cert in report.certificates:
        await repository.add_certificate_record(
            db, _certificate_record(buyer_id, caller.user_id, cert)
        )

    record = await repository.add_report_record(
        db,
        BuyerImpactReportRecord(
            report_uid=report.id,
            buyer_id=buyer_id,
            generated_by=caller.user_id,
            report_type=request.report_type,
            title=title,
            format=request.format,
            status=report.status,
            period_start=request.report_period.start_date,
            period_end=request.report_period.end_date,
            period_label=request.report_period.label,
            generated_at=now,
            expires_at=expires_at,
            report_data=report.model_dump(mode="json"),
        ),
    )

    logger.info(
        "buyer_report_generated",
        report_id=str(report.id),
        buyer_id=str(buyer_id),
        generated_by=str(caller.user_id),
        projects=len(report.projects),
        total_credits=report.portfolio.total_credits_owned,
    )

    return GenerateBuyerReportResponse(
        report_id=report.id,
        record_id=record.id,
        title=title,
        status=report.status,
        expires_at=expires_at,
        metadata=ReportGenerationMetadata(
            total_credits=report.portfolio.total_credits_owned,
            total_impact=report.total_impact.total_carbon_offset,
            project_count=len(report.projects),
        ),
    )


# ── Report read-back ──────────────────────────────────────────────────────────


async def get_buyer_impact_report(
    db: AsyncSession,
    caller: CurrentUser,
    report_id: uuid.UUID,
    now: datetime | None = None,
) -> BuyerImpactReport | None:
    record = await repository.get_report_record(db, report_id, now or utcnow())
    if record is None:
        return None
    if not _can_read_report(caller, record):
        raise PermissionError(f"Not authorized to view report {report_id}")
    return _report_from_record(record)


async def list_buyer_reports(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    report_type: BuyerReportType | None = None,
    limit: int = 20,
    now: datetime | None = None,
) -> list[BuyerReportListItem]:
    ensure_buyer_access(caller, buyer_id)
    records = await repository.list_report_records(
        db, buyer_id, now or utcnow(), report_type=report_type, limit=limit
    )
    return [
        BuyerReportListItem(
            id=r.id,
            report_id=r.report_uid,
            title=r.title,
            type=r.report_type,
            format=r.format,
            status=r.status,
            generated_at=repository.as_utc(r.generated_at),
            expires_at=repository.as_utc(r.expires_at),
        )
        for r in records
    ]


async def transition_report_status(
    db: AsyncSession,
    caller: CurrentUser,
    report_id: uuid.UUID,
    new_status: BuyerReportStatus,
    now: datetime | None = None,
) -> BuyerImpactReport:
    """Move a report exactly one step along draft → final → certified → archived."""
    record = await repository.get_report_record(db, report_id, now or utcnow())
    if record is None:
        raise LookupError(f"Report {report_id} not found")
    if not _can_read_report(caller, record):
        raise PermissionError(f"Not authorized to update report {report_id}")
    if new_status in STAFF_ONLY_STATUSES and not is_staff(caller):
        raise PermissionError(f"Only admins and verifiers may mark a report {new_status.value}")

    current = REPORT_LIFECYCLE.index(record.status)
    if current + 1 >= len(REPORT_LIFECYCLE) or REPORT_LIFECYCLE[current + 1] != new_status:
        raise ValueError(
            f"Cannot move report from {record.status.value} to {new_status.value}"
        )

    previous = record.status
    record.status = new_status
    await db.flush()

    logger.info(
        "buyer_report_status_changed",
        report_id=str(report_id),
        from_status=previous.value,
        to_status=new_status.value,
        changed_by=str(caller.user_id),
    )
    return _report_from_record(record)


# ── Portfolio ─────────────────────────────────────────────────────────────────


async def get_buyer_portfolio(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> BuyerPortfolio:
    ensure_buyer_access(caller, buyer_id)
    purchases = await repository.load_completed_purchases(db, buyer_id)
    projects = await repository.load_projects(db, {p.project_id for p in purchases})
    return build_portfolio(purchases, projects, constants)


async def get_buyer_portfolio_summary(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
) -> BuyerPortfolioSummary:
    """Lightweight totals for the buyer's project tracking view."""
    ensure_buyer_access(caller, buyer_id)
    purchases = await repository.load_completed_purchases(db, buyer_id)
    projects = await repository.load_projects(db, {p.project_id for p in purchases})
    updates = await repository.load_recent_updates(db, projects, per_project=1)
    open_alerts = await repository.load_alerts(db, projects)

    credits_by_project: dict[uuid.UUID, float] = defaultdict(float)
    for p in purchases:
        credits_by_project[p.project_id] += p.credit_amount

    offset = 0.0
    for project_id, credits in credits_by_project.items():
        latest = newest_first(updates.get(project_id, []))
        offset += estimated_offset(latest[0] if latest else None, credits)

    completed = sum(1 for p in projects.values() if p.status == ProjectStatus.COMPLETED)
    total_investment = math.fsum(p.total_amount for p in purchases)

    return BuyerPortfolioSummary(
        total_credits=math.fsum(p.credit_amount for p in purchases),
        total_investment=total_investment,
        total_carbon_offset=round(offset, 1),
        active_projects=len(projects) - completed,
        completed_projects=completed,
        projects_with_issues=sum(1 for pid in projects if open_alerts.get(pid)),
        total_projects=len(credits_by_project),
        average_investment=total_investment / len(purchases) if purchases else 0.0,
    )


# ── Project tracking ──────────────────────────────────────────────────────────


async def get_buyer_project_tracking(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
) -> list[ProjectTracking]:
    """One tracking card per project the buyer holds credits in, by first purchase."""
    ensure_buyer_access(caller, buyer_id)
    purchases = await repository.load_completed_purchases(db, buyer_id)

    by_project: dict[uuid.UUID, list[PurchaseRecord]] = defaultdict(list)
    for p in purchases:
        by_project[p.project_id].append(p)

    projects = await repository.load_projects(db, by_project)
    updates = await repository.load_recent_updates(db, projects)
    milestones = await repository.load_milestones(db, projects)
    open_alerts = await repository.load_alerts(db, projects)
    creators = await repository.load_user_names(db, (p.creator_id for p in projects.values()))

    cards = []
    # Purchases arrive oldest first, so dict order is first-purchase order
    for project_id, held in by_project.items():
        project = projects.get(project_id)
        if project is None:
            logger.warning("computation_degraded", project_id=str(project_id), reason="project_missing")
            continue
        cards.append(
            track_project(
                project,
                held,
                updates.get(project_id, []),
                milestones.get(project_id, []),
                open_alerts.get(project_id, []),
                creators.get(project.creator_id) if project.creator_id else None,
            )
        )
    return cards


async def get_project_tracking_detail(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    project_id: uuid.UUID,
) -> ProjectTrackingDetail:
    """Full tracking view of one project; the buyer must hold credits in it."""
    ensure_buyer_access(caller, buyer_id)
    purchases = await repository.load_completed_purchases(db, buyer_id, project_ids=[project_id])
    if not purchases:
        raise PermissionError(f"Buyer {buyer_id} has not purchased credits for project {project_id}")

    projects = await repository.load_projects(db, [project_id])
    project = projects.get(project_id)
    if project is None:
        raise LookupError(f"Project {project_id} not found")

    updates = await repository.load_recent_updates(db, projects, per_project=None)
    milestones = await repository.load_milestones(db, [project_id])
    alerts = await repository.load_alerts(db, [project_id], unresolved_only=False)
    creators = await repository.load_user_names(db, [project.creator_id])

    return track_project_detail(
        project,
        purchases,
        updates.get(project_id, []),
        milestones.get(project_id, []),
        alerts.get(project_id, []),
        creators.get(project.creator_id) if project.creator_id else None,
    )


# ── Certificates ──────────────────────────────────────────────────────────────


async def issue_impact_certificate(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    request: IssueCertificateRequest,
    now: datetime | None = None,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[ImpactCertificate]:
    """Issue a certificate over the buyer's completed purchases.

    Returns an empty list, and persists nothing, when no credits match.
    """
    ensure_buyer_access(caller, buyer_id)
    now = now or utcnow()

    purchases = await repository.load_completed_purchases(
        db, buyer_id, period=request.timeframe, project_ids=request.project_ids
    )
    certificates = issue_certificates(
        buyer_id,
        purchases,
        str(caller.user_id),
        now,
        certificate_type=request.certificate_type,
        project_ids=request.project_ids,
        period=request.timeframe,
        constants=constants,
    )

    for cert in certificates:
        await repository.add_certificate_record(
            db, _certificate_record(buyer_id, caller.user_id, cert)
        )
        logger.info(
            "impact_certificate_issued",
            buyer_id=str(buyer_id),
            serial_number=cert.metadata.serial_number,
            quantification=cert.quantification,
        )
    if not certificates:
        logger.info("impact_certificate_skipped", buyer_id=str(buyer_id), reason="no_credits")
    return certificates


# ── Trends ────────────────────────────────────────────────────────────────────


def _trend_direction(values: Sequence[float]) -> tuple[str, float]:
    """Compare the mean of the later half of the series with the earlier half."""
    if len(values) < 2:
        return "stable", 0.0
    mid = len(values) // 2
    earlier = math.fsum(values[:mid]) / mid
    later = math.fsum(values[mid:]) / (len(values) - mid)
    change = (later - earlier) / earlier * 100 if earlier else 0.0
    if change > 0:
        return "increasing", change
    if change < 0:
        return "decreasing", change
    return "stable", 0.0


def build_trends(
    purchases: Sequence[PurchaseRecord],
    timeframe: str,
    metrics: Sequence[str],
) -> list[ImpactTrend]:
    trends = []
    for key in metrics:
        label, read = TREND_METRICS[key]
        points = [TrendPoint(date=p.created_at, value=read(p)) for p in purchases]
        values = [pt.value for pt in points]
        direction, change = _trend_direction(values)
        recent = values[len(values) // 2:] or [0.0]
        baseline = math.fsum(recent) / len(recent)
        trends.append(
            ImpactTrend(
                metric=label,
                timeframe=timeframe,
                data=points,
                trend=direction,
                change_percent=change,
                forecast=TrendForecast(
                    next_period=baseline * (1 + change / 100),
                    confidence=0.8 if len(values) >= 4 else 0.5,
                ),
            )
        )
    return trends


async def get_buyer_impact_trends(
    db: AsyncSession,
    caller: CurrentUser,
    buyer_id: uuid.UUID,
    timeframe: str = "1y",
    metrics: Sequence[str] = ("carbon_impact",),
    now: datetime | None = None,
) -> list[ImpactTrend]:
    ensure_buyer_access(caller, buyer_id)
    if timeframe not in TREND_TIMEFRAMES:
        raise ValueError(f"Unknown timeframe {timeframe!r}; expected one of {sorted(TREND_TIMEFRAMES)}")
    unknown = [m for m in metrics if m not in TREND_METRICS]
    if unknown:
        raise ValueError(f"Unknown trend metrics: {', '.join(unknown)}")

    days = TREND_TIMEFRAMES[timeframe]
    period = None
    if days is not None:
        period = ReportPeriod(start_date=(now or utcnow()) - timedelta(days=days), label=timeframe)

    purchases = await repository.load_completed_purchases(db, buyer_id, period=period)
    return build_trends(purchases, timeframe, metrics)
