"""Buyer impact reporting schemas: engine input records, computed report
structures, and API request/response bodies."""

import uuid
from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from echo_sprout.models.enums import (
    AlertSeverity,
    BuyerReportStatus,
    BuyerReportType,
    CertificateType,
    MilestoneStatus,
    MilestoneType,
    ProgressUpdateType,
    ProjectStatus,
    ProjectType,
    ReportFormat,
)

RiskLevel = Literal["low", "medium", "high"]


# ── Engine input records ─────────────────────────────────────────────────────
# Snapshots of upstream rows. The engine never touches ORM objects.


class TreeMeasurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_type: Literal["reforestation", "mangrove_restoration"]
    trees_planted: float


class EnergyMeasurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_type: Literal["solar", "wind", "biogas"]
    energy_generated_kwh: float


class WasteMeasurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_type: Literal["waste_management"]
    waste_processed_tons: float


Measurement = Annotated[
    TreeMeasurement | EnergyMeasurement | WasteMeasurement,
    Field(discriminator="project_type"),
]


class PurchaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    buyer_id: uuid.UUID
    project_id: uuid.UUID
    credit_amount: float
    unit_price: float
    total_amount: float
    created_at: datetime


class ProjectRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    title: str
    description: str = ""
    creator_id: uuid.UUID | None = None
    project_type: ProjectType
    status: ProjectStatus
    country: str | None = None
    region: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    budget: float | None = None
    start_date: date | None = None
    expected_completion_date: date | None = None
    actual_completion_date: date | None = None
    target_carbon_impact: float | None = None
    verification_status: str | None = None
    verification_completed_at: datetime | None = None
    created_at: datetime


class ProgressRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    project_id: uuid.UUID
    title: str
    description: str = ""
    update_type: ProgressUpdateType = ProgressUpdateType.PROGRESS
    carbon_impact_to_date: float | None = None
    progress_percentage: float | None = None
    reporting_date: datetime | None = None
    created_at: datetime
    measurement: Measurement | None = None


class MilestoneRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    project_id: uuid.UUID
    milestone_type: MilestoneType
    title: str
    description: str = ""
    planned_date: date
    actual_date: date | None = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    delay_reason: str | None = None
    sequence: int = 0


class AlertRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    project_id: uuid.UUID
    severity: AlertSeverity
    message: str
    is_resolved: bool = False
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime


class BuyerRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    name: str
    email: str


# ── Portfolio ────────────────────────────────────────────────────────────────


class ProjectTypeBreakdown(BaseModel):
    type: str
    project_count: int
    credits_owned: float
    total_investment: float
    average_impact: float
    percentage: float


class GeographicBreakdown(BaseModel):
    country: str
    region: str
    project_count: int
    credits_owned: float
    total_investment: float
    percentage: float
    impact: float


class VintageBreakdown(BaseModel):
    year: int
    credits_owned: float
    project_count: int
    average_price: float
    quality_score: float
    percentage: float


class ProjectRiskDistribution(BaseModel):
    low: float = 0
    medium: float = 0
    high: float = 0


class RiskAssessment(BaseModel):
    overall_risk: RiskLevel
    diversification_score: float
    project_risk_distribution: ProjectRiskDistribution
    mitigation_factors: list[str]
    recommendations: list[str]


class PerformanceMetric(BaseModel):
    metric: str
    value: float
    unit: str
    benchmark: float
    status: Literal["outperforming", "meeting", "underperforming"]


class TrendAnalysis(BaseModel):
    metric: str
    trend: Literal["increasing", "decreasing", "stable"]
    change_percent: float
    timeframe: str


class PortfolioPerformance(BaseModel):
    total_return: float = 0
    annualized_return: float = 0
    impact_efficiency: float
    performance_metrics: list[PerformanceMetric]
    trends_analysis: list[TrendAnalysis]


class BuyerPortfolio(BaseModel):
    total_credits_owned: float
    total_investment: float
    active_projects: int
    completed_projects: int
    project_types: list[ProjectTypeBreakdown]
    geographic_distribution: list[GeographicBreakdown]
    vintage: list[VintageBreakdown]
    risk_profile: RiskAssessment
    performance: PortfolioPerformance


# ── Per-project summary ──────────────────────────────────────────────────────


class ImpactMetrics(BaseModel):
    carbon_impact_to_date: float
    estimated_total_impact: float
    additional_benefits: dict[str, float]


class ProjectProgress(BaseModel):
    percentage: float
    milestones_completed: int = 0
    total_milestones: int = 0
    on_track: bool


class VerificationSnapshot(BaseModel):
    last_verified: datetime | None
    verification_status: str
    next_verification: datetime
    certification_level: str


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class ProjectLocation(BaseModel):
    country: str
    region: str
    coordinates: Coordinates | None = None


class ProjectTimeline(BaseModel):
    start_date: date | None
    expected_completion: date | None
    actual_completion: date | None = None


class ProjectFinancials(BaseModel):
    total_investment: float
    current_value: float
    roi: float = 0
    payback_period: float = 0


class ProjectUpdate(BaseModel):
    date: datetime
    type: Literal["progress", "milestone", "issue", "achievement"] = "progress"
    title: str
    description: str
    impact: RiskLevel = "medium"


class ProjectImpactSummary(BaseModel):
    project_id: uuid.UUID
    project_name: str
    project_type: ProjectType
    credits_owned: float
    first_purchase_at: datetime
    purchase_price: float
    current_status: ProjectStatus
    impact_metrics: ImpactMetrics
    progress: ProjectProgress
    verification: VerificationSnapshot
    location: ProjectLocation
    timeline: ProjectTimeline
    financials: ProjectFinancials
    risk_factors: list[str]
    recent_updates: list[ProjectUpdate]


# ── Total impact ─────────────────────────────────────────────────────────────


class EquivalentMetrics(BaseModel):
    trees_planted: int
    cars_off_road: int
    homes_powered: int
    fuel_saved_gallons: int


class SDGContribution(BaseModel):
    goal: int
    title: str
    contribution: str
    carbon_offset: float
    project_count: int


class EnvironmentalBenefit(BaseModel):
    category: str
    description: str
    quantification: float
    unit: str
    verification: str


class SocialImpact(BaseModel):
    category: str
    description: str
    beneficiaries: int
    location: str
    projects_contributing: list[str]


class EconomicImpact(BaseModel):
    category: str
    description: str
    value: float
    currency: str
    local_economy_boost: float


class CumulativeImpact(BaseModel):
    total_projects: int
    total_investment: float
    total_carbon_offset: float
    timespan: int
    average_project_size: float
    impact_growth_rate: float


class TotalImpactSummary(BaseModel):
    total_carbon_offset: float
    equivalent_metrics: EquivalentMetrics
    sdg_contributions: list[SDGContribution]
    environmental_benefits: list[EnvironmentalBenefit]
    social_impact: list[SocialImpact]
    economic_impact: list[EconomicImpact]
    cumulative_impact: CumulativeImpact


# ── Certificates ─────────────────────────────────────────────────────────────


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime
    action: str
    actor: str
    details: str


class CertificateMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    serial_number: str
    issuer: str
    verifier: str
    methodology: str
    additional_certifications: tuple[str, ...]
    audit_trail: tuple[AuditEntry, ...]


class ImpactCertificate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    type: CertificateType
    title: str
    description: str
    quantification: float
    unit: str
    verification_standard: str
    issue_date: datetime
    valid_until: datetime
    projects: tuple[uuid.UUID, ...]
    metadata: CertificateMetadata


# ── Recommendations ──────────────────────────────────────────────────────────


class RecommendationStep(BaseModel):
    step: int
    action: str
    description: str
    timeframe: str
    resources: list[str]


class RecommendationImpact(BaseModel):
    risk_reduction: float
    impact_increase: float
    cost_implication: float


class BuyerRecommendation(BaseModel):
    id: uuid.UUID
    type: Literal[
        "diversification",
        "portfolio_optimization",
        "impact_enhancement",
        "risk_mitigation",
    ]
    priority: Literal["high", "medium", "low"]
    title: str
    description: str
    rationale: str
    expected_benefit: str
    implementation: list[RecommendationStep]
    impact: RecommendationImpact


# ── Benchmarks & sustainability ──────────────────────────────────────────────


class ImpactComparison(BaseModel):
    comparison_type: Literal["peer_buyers", "industry_average", "best_practice", "historical"]
    metric: str
    buyer_value: float
    benchmark_value: float
    percentile: float
    status: Literal["above_average", "average", "below_average"]
    insights: list[str]


class SustainabilityAlignment(BaseModel):
    paris_agreement: float
    sdgs: float
    corporate_goals: float


class ReportingFrameworks(BaseModel):
    ghg_protocol: bool
    tcfd: bool
    sasb: bool
    cdp: bool


class TransparencyScore(BaseModel):
    score: float
    public_disclosure: bool
    third_party_verification: bool


class SustainabilityMetrics(BaseModel):
    esg_score: float
    sustainability_rating: str
    alignment: SustainabilityAlignment
    reporting: ReportingFrameworks
    certifications: list[str]
    transparency: TransparencyScore


# ── Report aggregate ─────────────────────────────────────────────────────────


class ReportPeriod(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None
    label: str = "All time"

    @model_validator(mode="after")
    def _check_order(self) -> "ReportPeriod":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class BuyerImpactReport(BaseModel):
    id: uuid.UUID
    buyer_id: uuid.UUID
    buyer_name: str
    report_type: BuyerReportType
    report_period: ReportPeriod
    portfolio: BuyerPortfolio
    projects: list[ProjectImpactSummary]
    total_impact: TotalImpactSummary
    certificates: list[ImpactCertificate]
    recommendations: list[BuyerRecommendation]
    comparisons: list[ImpactComparison]
    sustainability: SustainabilityMetrics
    generated_at: datetime
    generated_by: str
    status: BuyerReportStatus


# ── API bodies ───────────────────────────────────────────────────────────────


class GenerateBuyerReportRequest(BaseModel):
    report_type: BuyerReportType = BuyerReportType.PORTFOLIO_OVERVIEW
    report_period: ReportPeriod = Field(default_factory=ReportPeriod)
    project_id: uuid.UUID | None = None
    include_comparisons: bool = True
    include_certificates: bool = True
    format: ReportFormat = ReportFormat.JSON


class ReportGenerationMetadata(BaseModel):
    total_credits: float
    total_impact: float
    project_count: int


class GenerateBuyerReportResponse(BaseModel):
    report_id: uuid.UUID
    record_id: uuid.UUID
    title: str
    status: BuyerReportStatus
    expires_at: datetime
    metadata: ReportGenerationMetadata


class BuyerReportListItem(BaseModel):
    id: uuid.UUID
    report_id: uuid.UUID
    title: str
    type: BuyerReportType
    format: ReportFormat
    status: BuyerReportStatus
    generated_at: datetime
    expires_at: datetime


class ReportStatusUpdate(BaseModel):
    status: BuyerReportStatus


class IssueCertificateRequest(BaseModel):
    certificate_type: CertificateType = CertificateType.CARBON_OFFSET
    project_ids: list[uuid.UUID] | None = None
    timeframe: ReportPeriod = Field(default_factory=ReportPeriod)


class TrendPoint(BaseModel):
    date: datetime
    value: float


class TrendForecast(BaseModel):
    next_period: float
    confidence: float


class ImpactTrend(BaseModel):
    metric: str
    timeframe: str
    data: list[TrendPoint]
    trend: Literal["increasing", "decreasing", "stable"]
    change_percent: float
    forecast: TrendForecast


class BuyerPortfolioSummary(BaseModel):
    total_credits: float
    total_investment: float
    total_carbon_offset: float
    active_projects: int
    completed_projects: int
    projects_with_issues: int
    total_projects: int
    average_investment: float


# ── Project tracking ─────────────────────────────────────────────────────────


class PurchaseInfo(BaseModel):
    credits_owned: float
    first_purchase_date: datetime
    total_investment: float


class TrackingStatus(BaseModel):
    overall_progress: int
    current_phase: str
    next_milestone: str
    next_milestone_date: date | None = None


class TrackingUpdate(BaseModel):
    id: uuid.UUID
    type: ProgressUpdateType
    title: str
    description: str
    date: datetime
    metrics: dict[str, float]


class TrackingImpact(BaseModel):
    carbon_offset: float
    additional_metrics: dict[str, float]


class TrackingAlert(BaseModel):
    id: uuid.UUID
    severity: AlertSeverity
    message: str
    date: datetime
    is_resolved: bool
    resolved_at: datetime | None = None
    resolution_notes: str | None = None


class TrackingMilestone(BaseModel):
    id: uuid.UUID
    title: str
    planned_date: date
    actual_date: date | None = None
    status: MilestoneStatus
    description: str
    delay_reason: str | None = None


class TrackingVerification(BaseModel):
    status: str
    last_verified: datetime | None = None
    next_verification: datetime | None = None


class ProjectTracking(BaseModel):
    project_id: uuid.UUID
    project_title: str
    project_type: ProjectType
    creator_name: str
    location: ProjectLocation
    purchase_info: PurchaseInfo
    current_status: TrackingStatus
    recent_updates: list[TrackingUpdate]
    impact: TrackingImpact
    alerts: list[TrackingAlert]
    milestones: list[TrackingMilestone]
    verification_status: TrackingVerification


class ProjectTrackingDetail(ProjectTracking):
    project_description: str
    timeline: ProjectTimeline
