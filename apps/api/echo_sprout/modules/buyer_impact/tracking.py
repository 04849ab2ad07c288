"""Buyer-side project tracking: purchase position, milestone progress,
recent updates and open alerts for each project a buyer holds credits in."""

import math
from collections.abc import Sequence
from typing import Any

from echo_sprout.models.enums import MilestoneStatus, ProjectStatus
from echo_sprout.modules.buyer_impact.aggregator import UNKNOWN_LOCATION
from echo_sprout.modules.buyer_impact.schemas import (
    AlertRecord,
    MilestoneRecord,
    ProgressRecord,
    ProjectLocation,
    ProjectRecord,
    ProjectTimeline,
    ProjectTracking,
    ProjectTrackingDetail,
    PurchaseInfo,
    PurchaseRecord,
    TrackingAlert,
    TrackingImpact,
    TrackingMilestone,
    TrackingStatus,
    TrackingUpdate,
    TrackingVerification,
)
from echo_sprout.modules.buyer_impact.summarizer import display_date, newest_first

# Offset estimate per credit when a project has not reported impact yet
ESTIMATED_OFFSET_PER_CREDIT = 1.5

TRACKING_UPDATES_LIMIT = 3

UNKNOWN_CREATOR = "Project Creator"
PHASE_COMPLETED = "Completed"
PHASE_IN_PROGRESS = "In Progress"
FINAL_MILESTONE = "Project Completion"

_OPEN_MILESTONE_STATUSES = frozenset({MilestoneStatus.PENDING, MilestoneStatus.IN_PROGRESS})


def estimated_offset(latest: ProgressRecord | None, credits: float) -> float:
    """Reported cumulative impact, or the per-credit estimate when none is reported."""
    if latest is not None and latest.carbon_impact_to_date:
        return latest.carbon_impact_to_date
    return credits * ESTIMATED_OFFSET_PER_CREDIT


def measurement_metrics(update: ProgressRecord | None) -> dict[str, float]:
    if update is None or update.measurement is None:
        return {}
    return update.measurement.model_dump(exclude={"project_type"})


def milestone_progress(milestones: Sequence[MilestoneRecord]) -> int:
    """Share of completed milestones as a whole percentage, halves rounded up."""
    if not milestones:
        return 0
    done = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED)
    return math.floor(done / len(milestones) * 100 + 0.5)


def next_milestone(milestones: Sequence[MilestoneRecord]) -> MilestoneRecord | None:
    return next((m for m in milestones if m.status in _OPEN_MILESTONE_STATUSES), None)


def current_phase(project: ProjectRecord, milestones: Sequence[MilestoneRecord]) -> str:
    if project.status == ProjectStatus.COMPLETED:
        return PHASE_COMPLETED
    running = next((m for m in milestones if m.status == MilestoneStatus.IN_PROGRESS), None)
    return running.title if running else PHASE_IN_PROGRESS


def _tracking_fields(
    project: ProjectRecord,
    purchases: Sequence[PurchaseRecord],
    updates: Sequence[ProgressRecord],
    milestones: Sequence[MilestoneRecord],
    alerts: Sequence[AlertRecord],
    creator_name: str | None,
    update_limit: int | None,
) -> dict[str, Any]:
    ordered_updates = newest_first(updates)
    latest = ordered_updates[0] if ordered_updates else None
    credits = math.fsum(p.credit_amount for p in purchases)
    upcoming = next_milestone(milestones)
    shown = ordered_updates if update_limit is None else ordered_updates[:update_limit]

    return {
        "project_id": project.id,
        "project_title": project.title,
        "project_type": project.project_type,
        "creator_name": creator_name or UNKNOWN_CREATOR,
        "location": ProjectLocation(
            country=project.country or UNKNOWN_LOCATION,
            region=project.region or UNKNOWN_LOCATION,
        ),
        "purchase_info": PurchaseInfo(
            credits_owned=credits,
            first_purchase_date=min(p.created_at for p in purchases),
            total_investment=math.fsum(p.total_amount for p in purchases),
        ),
        "current_status": TrackingStatus(
            overall_progress=milestone_progress(milestones),
            current_phase=current_phase(project, milestones),
            next_milestone=upcoming.title if upcoming else FINAL_MILESTONE,
            next_milestone_date=(
                upcoming.planned_date if upcoming else project.expected_completion_date
            ),
        ),
        "recent_updates": [
            TrackingUpdate(
                id=u.id,
                type=u.update_type,
                title=u.title,
                description=u.description,
                date=display_date(u),
                metrics=measurement_metrics(u),
            )
            for u in shown
        ],
        "impact": TrackingImpact(
            carbon_offset=estimated_offset(latest, credits),
            additional_metrics=measurement_metrics(latest),
        ),
        "alerts": [
            TrackingAlert(
                id=a.id,
                severity=a.severity,
                message=a.message,
                date=a.created_at,
                is_resolved=a.is_resolved,
                resolved_at=a.resolved_at,
                resolution_notes=a.resolution_notes,
            )
            for a in sorted(alerts, key=lambda a: (a.created_at, str(a.id)), reverse=True)
        ],
        "milestones": [
            TrackingMilestone(
                id=m.id,
                title=m.title,
                planned_date=m.planned_date,
                actual_date=m.actual_date,
                status=m.status,
                description=m.description,
                delay_reason=m.delay_reason,
            )
            for m in milestones
        ],
        "verification_status": TrackingVerification(
            status=project.verification_status or "pending",
            last_verified=project.verification_completed_at,
        ),
    }


def track_project(
    project: ProjectRecord,
    purchases: Sequence[PurchaseRecord],
    updates: Sequence[ProgressRecord],
    milestones: Sequence[MilestoneRecord],
    open_alerts: Sequence[AlertRecord],
    creator_name: str | None = None,
) -> ProjectTracking:
    """Tracking card for one project.

    ``purchases`` must be non-empty and all reference ``project``;
    ``milestones`` must already be in plan order.
    """
    return ProjectTracking(
        **_tracking_fields(
            project,
            purchases,
            updates,
            milestones,
            open_alerts,
            creator_name,
            update_limit=TRACKING_UPDATES_LIMIT,
        )
    )


def track_project_detail(
    project: ProjectRecord,
    purchases: Sequence[PurchaseRecord],
    updates: Sequence[ProgressRecord],
    milestones: Sequence[MilestoneRecord],
    alerts: Sequence[AlertRecord],
    creator_name: str | None = None,
) -> ProjectTrackingDetail:
    """Full tracking view: every update, resolved alerts included, plus timeline."""
    return ProjectTrackingDetail(
        **_tracking_fields(
            project, purchases, updates, milestones, alerts, creator_name, update_limit=None
        ),
        project_description=project.description,
        timeline=ProjectTimeline(
            start_date=project.start_date,
            expected_completion=project.expected_completion_date,
            actual_completion=project.actual_completion_date,
        ),
    )
