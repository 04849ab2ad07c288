"""Buyer impact reporting API router."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from echo_sprout.auth.dependencies import get_current_user
from echo_sprout.core.database import get_db
from echo_sprout.models.enums import BuyerReportType
from echo_sprout.modules.buyer_impact import service
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerImpactReport,
    BuyerPortfolio,
    BuyerPortfolioSummary,
    BuyerReportListItem,
    GenerateBuyerReportRequest,
    GenerateBuyerReportResponse,
    ImpactCertificate,
    ImpactTrend,
    IssueCertificateRequest,
    ProjectTracking,
    ProjectTrackingDetail,
    ReportStatusUpdate,
)
from echo_sprout.schemas.auth import CurrentUser


router = APIRouter(prefix="/buyer-impact", tags=["buyer-impact"])


def _forbidden(exc: PermissionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


# ── Reports ───────────────────────────────────────────────────────────────────


@router.post(
    "/{buyer_id}/reports",
    response_model=GenerateBuyerReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_report(
    buyer_id: uuid.UUID,
    body: GenerateBuyerReportRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Generate and store an impact report for the buyer."""
    try:
        return await service.generate_buyer_impact_report(db, current_user, buyer_id, body)
    except PermissionError as exc:
        raise _forbidden(exc)


@router.get("/{buyer_id}/reports", response_model=list[BuyerReportListItem])
async def list_reports(
    buyer_id: uuid.UUID,
    report_type: BuyerReportType | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.list_buyer_reports(
            db, current_user, buyer_id, report_type=report_type, limit=limit
        )
    except PermissionError as exc:
        raise _forbidden(exc)


@router.get("/reports/{report_id}", response_model=BuyerImpactReport)
async def get_report(
    report_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        report = await service.get_buyer_impact_report(db, current_user, report_id)
    except PermissionError as exc:
        raise _forbidden(exc)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.patch("/reports/{report_id}/status", response_model=BuyerImpactReport)
async def update_report_status(
    report_id: uuid.UUID,
    body: ReportStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Advance a report one step through its lifecycle."""
    try:
        return await service.transition_report_status(db, current_user, report_id, body.status)
    except PermissionError as exc:
        raise _forbidden(exc)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


# ── Portfolio ─────────────────────────────────────────────────────────────────


@router.get("/{buyer_id}/portfolio", response_model=BuyerPortfolio)
async def get_portfolio(
    buyer_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.get_buyer_portfolio(db, current_user, buyer_id)
    except PermissionError as exc:
        raise _forbidden(exc)


@router.get("/{buyer_id}/portfolio-summary", response_model=BuyerPortfolioSummary)
async def get_portfolio_summary(
    buyer_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.get_buyer_portfolio_summary(db, current_user, buyer_id)
    except PermissionError as exc:
        raise _forbidden(exc)


@router.get("/{buyer_id}/trends", response_model=list[ImpactTrend])
async def get_trends(
    buyer_id: uuid.UUID,
    timeframe: str = Query("1y"),
    metrics: list[str] = Query(["carbon_impact"]),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.get_buyer_impact_trends(
            db, current_user, buyer_id, timeframe=timeframe, metrics=metrics
        )
    except PermissionError as exc:
        raise _forbidden(exc)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


# ── Project tracking ──────────────────────────────────────────────────────────


@router.get("/{buyer_id}/tracking", response_model=list[ProjectTracking])
async def get_project_tracking(
    buyer_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tracking cards for every project the buyer holds credits in."""
    try:
        return await service.get_buyer_project_tracking(db, current_user, buyer_id)
    except PermissionError as exc:
        raise _forbidden(exc)


@router.get("/{buyer_id}/tracking/{project_id}", response_model=ProjectTrackingDetail)
async def get_project_tracking_detail(
    buyer_id: uuid.UUID,
    project_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.get_project_tracking_detail(db, current_user, buyer_id, project_id)
    except PermissionError as exc:
        raise _forbidden(exc)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# ── Certificates ──────────────────────────────────────────────────────────────


@router.post(
    "/{buyer_id}/certificates",
    response_model=list[ImpactCertificate],
    status_code=status.HTTP_201_CREATED,
)
async def issue_certificate(
    buyer_id: uuid.UUID,
    body: IssueCertificateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue an impact certificate; an empty list means no credits qualified."""
    try:
        return await service.issue_impact_certificate(db, current_user, buyer_id, body)
    except PermissionError as exc:
        raise _forbidden(exc)
