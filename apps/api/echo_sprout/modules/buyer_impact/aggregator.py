"""Portfolio aggregation: totals, breakdowns, risk and performance.

Pure functions over already-loaded records. Purchases whose project could
not be loaded still count toward the totals and are grouped under
``unknown`` so that breakdowns always add up to the portfolio total.
"""

import math
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from echo_sprout.models.enums import ProjectStatus
from echo_sprout.modules.buyer_impact.constants import (
    DEFAULT_CONSTANTS,
    NATURE_BASED_TYPES,
    PROJECT_TYPE_COUNT,
    ImpactConstants,
)
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerPortfolio,
    GeographicBreakdown,
    PerformanceMetric,
    PortfolioPerformance,
    ProjectRecord,
    ProjectRiskDistribution,
    ProjectTypeBreakdown,
    PurchaseRecord,
    RiskAssessment,
    TrendAnalysis,
    VintageBreakdown,
)

UNKNOWN_TYPE = "unknown"
UNKNOWN_LOCATION = "Unknown"

_ACTIVE_STATUSES = frozenset({ProjectStatus.ACTIVE, ProjectStatus.APPROVED})


@dataclass
class _Group:
    credits: float = 0.0
    investment: float = 0.0
    project_ids: set[uuid.UUID] = field(default_factory=set)

    def add(self, purchase: PurchaseRecord) -> None:
        self.credits += purchase.credit_amount
        self.investment += purchase.total_amount
        self.project_ids.add(purchase.project_id)


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def _safe_div(num: float, den: float) -> float:
    return num / den if den else 0.0


# ── Risk helpers ──────────────────────────────────────────────────────────────


def project_risk_factors(project: ProjectRecord) -> list[str]:
    factors = []
    if project.status == ProjectStatus.ACTIVE:
        factors.append("Project still in progress")
    if project.latitude is None or project.longitude is None:
        factors.append("Limited location verification")
    if project.project_type in NATURE_BASED_TYPES:
        factors.append("Subject to environmental risks")
    return factors


def risk_level_for_score(diversification_score: float) -> str:
    if diversification_score > 60:
        return "low"
    if diversification_score > 30:
        return "medium"
    return "high"


def _risk_distribution(projects: Sequence[ProjectRecord]) -> ProjectRiskDistribution:
    if not projects:
        return ProjectRiskDistribution()
    buckets = {"low": 0, "medium": 0, "high": 0}
    for project in projects:
        n = len(project_risk_factors(project))
        buckets["low" if n == 0 else "medium" if n == 1 else "high"] += 1
    total = len(projects)
    return ProjectRiskDistribution(
        low=_pct(buckets["low"], total),
        medium=_pct(buckets["medium"], total),
        high=_pct(buckets["high"], total),
    )


def calculate_risk_profile(
    purchases: Sequence[PurchaseRecord],
    projects: Mapping[uuid.UUID, ProjectRecord],
) -> RiskAssessment:
    held = [projects[pid] for pid in {p.project_id for p in purchases} if pid in projects]
    distinct_types = {p.project_type for p in held}
    distinct_regions = {(p.country, p.region) for p in held}

    score = min(len(distinct_types) / PROJECT_TYPE_COUNT, 1) * 100

    mitigation: list[str] = []
    if len(distinct_regions) > 1:
        mitigation.append("Geographic diversification")
    if len(distinct_types) > 1:
        mitigation.append("Project type variety")
    if any(p.verification_status == "verified" for p in held):
        mitigation.append("Verified carbon standards")

    advice: list[str] = []
    if purchases and len(distinct_types) < 3:
        advice.append("Consider adding more project types")
    if purchases and len(distinct_regions) < 2:
        advice.append("Increase geographic spread")

    return RiskAssessment(
        overall_risk=risk_level_for_score(score),
        diversification_score=score,
        project_risk_distribution=_risk_distribution(
            sorted(held, key=lambda p: str(p.id))
        ),
        mitigation_factors=mitigation,
        recommendations=advice,
    )


# ── Breakdowns ────────────────────────────────────────────────────────────────


def group_by_type(
    purchases: Sequence[PurchaseRecord],
    projects: Mapping[uuid.UUID, ProjectRecord],
) -> list[ProjectTypeBreakdown]:
    groups: dict[str, _Group] = {}
    for purchase in purchases:
        project = projects.get(purchase.project_id)
        key = project.project_type.value if project else UNKNOWN_TYPE
        groups.setdefault(key, _Group()).add(purchase)

    total = math.fsum(p.credit_amount for p in purchases)
    rows = [
        ProjectTypeBreakdown(
            type=key,
            project_count=len(g.project_ids),
            credits_owned=g.credits,
            total_investment=g.investment,
            average_impact=_safe_div(g.credits, len(g.project_ids)),
            percentage=_pct(g.credits, total),
        )
        for key, g in groups.items()
    ]
    return sorted(rows, key=lambda r: (-r.credits_owned, r.type))


def group_by_geography(
    purchases: Sequence[PurchaseRecord],
    projects: Mapping[uuid.UUID, ProjectRecord],
) -> list[GeographicBreakdown]:
    groups: dict[tuple[str, str], _Group] = {}
    for purchase in purchases:
        project = projects.get(purchase.project_id)
        country = (project.country if project else None) or UNKNOWN_LOCATION
        region = (project.region if project else None) or UNKNOWN_LOCATION
        groups.setdefault((country, region), _Group()).add(purchase)

    total = math.fsum(p.credit_amount for p in purchases)
    rows = [
        GeographicBreakdown(
            country=country,
            region=region,
            project_count=len(g.project_ids),
            credits_owned=g.credits,
            total_investment=g.investment,
            percentage=_pct(g.credits, total),
            impact=g.credits,
        )
        for (country, region), g in groups.items()
    ]
    return sorted(rows, key=lambda r: (-r.credits_owned, r.country, r.region))


def group_by_vintage(
    purchases: Sequence[PurchaseRecord],
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[VintageBreakdown]:
    """Vintage is the calendar year of the purchase, not of the project."""
    groups: dict[int, _Group] = {}
    for purchase in purchases:
        groups.setdefault(purchase.created_at.year, _Group()).add(purchase)

    total = math.fsum(p.credit_amount for p in purchases)
    return [
        VintageBreakdown(
            year=year,
            credits_owned=g.credits,
            project_count=len(g.project_ids),
            average_price=_safe_div(g.investment, g.credits),
            quality_score=constants.vintage_quality_score,
            percentage=_pct(g.credits, total),
        )
        for year, g in sorted(groups.items())
    ]


# ── Performance ───────────────────────────────────────────────────────────────


def calculate_performance(
    purchases: Sequence[PurchaseRecord],
    vintage: Sequence[VintageBreakdown],
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> PortfolioPerformance:
    total_credits = math.fsum(p.credit_amount for p in purchases)
    total_investment = math.fsum(p.total_amount for p in purchases)

    cost_per_credit = _safe_div(total_investment, total_credits)
    benchmark = constants.cost_per_credit_benchmark
    if not total_credits or cost_per_credit == benchmark:
        status = "meeting"
    elif cost_per_credit < benchmark:
        status = "outperforming"
    else:
        status = "underperforming"

    trends: list[TrendAnalysis] = []
    if len(vintage) >= 2:
        prev, last = vintage[-2], vintage[-1]
        change = _pct(last.credits_owned - prev.credits_owned, prev.credits_owned)
        if change > 0:
            direction = "increasing"
        elif change < 0:
            direction = "decreasing"
        else:
            direction = "stable"
        trends.append(
            TrendAnalysis(
                metric="Credits Acquired",
                trend=direction,
                change_percent=change,
                timeframe=f"{prev.year}-{last.year}",
            )
        )

    return PortfolioPerformance(
        impact_efficiency=_safe_div(total_credits, total_investment) * 1000,
        performance_metrics=[
            PerformanceMetric(
                metric="Cost per Credit",
                value=cost_per_credit,
                unit="USD",
                benchmark=benchmark,
                status=status,
            )
        ],
        trends_analysis=trends,
    )


# ── Entry point ───────────────────────────────────────────────────────────────


def build_portfolio(
    purchases: Sequence[PurchaseRecord],
    projects: Mapping[uuid.UUID, ProjectRecord],
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> BuyerPortfolio:
    """Aggregate a buyer's completed purchases into a ``BuyerPortfolio``.

    ``projects`` holds whichever referenced projects could be loaded.
    """
    held_ids = {p.project_id for p in purchases}
    held = [projects[pid] for pid in held_ids if pid in projects]
    vintage = group_by_vintage(purchases, constants)

    return BuyerPortfolio(
        total_credits_owned=math.fsum(p.credit_amount for p in purchases),
        total_investment=math.fsum(p.total_amount for p in purchases),
        active_projects=sum(1 for p in held if p.status in _ACTIVE_STATUSES),
        completed_projects=sum(1 for p in held if p.status == ProjectStatus.COMPLETED),
        project_types=group_by_type(purchases, projects),
        geographic_distribution=group_by_geography(purchases, projects),
        vintage=vintage,
        risk_profile=calculate_risk_profile(purchases, projects),
        performance=calculate_performance(purchases, vintage, constants),
    )
