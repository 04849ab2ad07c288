"""Per-project impact summaries for the projects a buyer holds credits in."""

import math
import uuid
from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta

import structlog

from echo_sprout.models.enums import ProjectStatus
from echo_sprout.modules.buyer_impact.aggregator import UNKNOWN_LOCATION, project_risk_factors
from echo_sprout.modules.buyer_impact.constants import DEFAULT_CONSTANTS, ImpactConstants
from echo_sprout.modules.buyer_impact.schemas import (
    Coordinates,
    EnergyMeasurement,
    ImpactMetrics,
    ProgressRecord,
    ProjectFinancials,
    ProjectImpactSummary,
    ProjectLocation,
    ProjectProgress,
    ProjectRecord,
    ProjectTimeline,
    ProjectUpdate,
    PurchaseRecord,
    TreeMeasurement,
    VerificationSnapshot,
    WasteMeasurement,
)

logger = structlog.get_logger()

RECENT_UPDATES_LIMIT = 3

BENEFIT_TREES = "Trees Planted"
BENEFIT_ENERGY = "Energy Generated (kWh)"
BENEFIT_WASTE = "Waste Processed (tons)"


def display_date(update: ProgressRecord) -> datetime:
    return update.reporting_date or update.created_at


def newest_first(updates: Sequence[ProgressRecord]) -> list[ProgressRecord]:
    """Order by creation, the same order the repository cuts on.

    ``reporting_date`` can be backdated, so it is only used for display.
    """
    return sorted(updates, key=lambda u: (u.created_at, str(u.id)), reverse=True)


def additional_benefits(updates: Sequence[ProgressRecord]) -> dict[str, float]:
    """Read the measured co-benefits from the newest update that carries any."""
    for update in updates:
        m = update.measurement
        if isinstance(m, TreeMeasurement):
            return {BENEFIT_TREES: m.trees_planted}
        if isinstance(m, EnergyMeasurement):
            return {BENEFIT_ENERGY: m.energy_generated_kwh}
        if isinstance(m, WasteMeasurement):
            return {BENEFIT_WASTE: m.waste_processed_tons}
    return {}


def summarize_project(
    project: ProjectRecord,
    purchases: Sequence[PurchaseRecord],
    updates: Sequence[ProgressRecord],
    now: datetime,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> ProjectImpactSummary:
    """Summarise one project from the buyer's point of view.

    ``purchases`` must be non-empty and all reference ``project``.
    ``updates`` may arrive in any order.
    """
    ordered = newest_first(updates)
    latest = ordered[0] if ordered else None

    credits = math.fsum(p.credit_amount for p in purchases)
    investment = math.fsum(p.total_amount for p in purchases)

    coordinates = None
    if project.latitude is not None and project.longitude is not None:
        coordinates = Coordinates(latitude=project.latitude, longitude=project.longitude)

    return ProjectImpactSummary(
        project_id=project.id,
        project_name=project.title,
        project_type=project.project_type,
        credits_owned=credits,
        first_purchase_at=min(p.created_at for p in purchases),
        purchase_price=investment / credits if credits else 0.0,
        current_status=project.status,
        impact_metrics=ImpactMetrics(
            carbon_impact_to_date=(latest.carbon_impact_to_date or 0.0) if latest else 0.0,
            estimated_total_impact=project.target_carbon_impact or 0.0,
            additional_benefits=additional_benefits(ordered),
        ),
        progress=ProjectProgress(
            percentage=(latest.progress_percentage or 0.0) if latest else 0.0,
            on_track=project.status == ProjectStatus.ACTIVE,
        ),
        verification=VerificationSnapshot(
            last_verified=display_date(latest) if latest else None,
            verification_status=project.verification_status or "pending",
            next_verification=now + timedelta(days=constants.next_verification_days),
            certification_level="Gold Standard",
        ),
        location=ProjectLocation(
            country=project.country or UNKNOWN_LOCATION,
            region=project.region or UNKNOWN_LOCATION,
            coordinates=coordinates,
        ),
        timeline=ProjectTimeline(
            start_date=project.start_date,
            expected_completion=project.expected_completion_date,
            actual_completion=(
                project.actual_completion_date
                if project.status == ProjectStatus.COMPLETED
                else None
            ),
        ),
        financials=ProjectFinancials(total_investment=investment, current_value=investment),
        risk_factors=project_risk_factors(project),
        recent_updates=[
            ProjectUpdate(
                date=display_date(u),
                type=u.update_type.value,
                title=u.title,
                description=u.description,
            )
            for u in ordered[:RECENT_UPDATES_LIMIT]
        ],
    )


def summarize_projects(
    purchases: Sequence[PurchaseRecord],
    projects: Mapping[uuid.UUID, ProjectRecord],
    updates: Mapping[uuid.UUID, Sequence[ProgressRecord]],
    now: datetime,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[ProjectImpactSummary]:
    """Summarise every distinct project the purchases reference.

    Projects missing from ``projects`` are skipped; the rest of the report
    is still produced.
    """
    by_project: dict[uuid.UUID, list[PurchaseRecord]] = defaultdict(list)
    for purchase in purchases:
        by_project[purchase.project_id].append(purchase)

    ordered_ids = sorted(
        by_project,
        key=lambda pid: (min(p.created_at for p in by_project[pid]), str(pid)),
    )

    summaries = []
    for project_id in ordered_ids:
        project = projects.get(project_id)
        if project is None:
            logger.warning("computation_degraded", project_id=str(project_id), reason="project_missing")
            continue
        summaries.append(
            summarize_project(
                project,
                by_project[project_id],
                updates.get(project_id, ()),
                now,
                constants,
            )
        )
    return summaries
