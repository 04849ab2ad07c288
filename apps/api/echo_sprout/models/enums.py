"""PostgreSQL native enums for all domain models."""

import enum


# ── Core ─────────────────────────────────────────────────────────────────────


class UserRole(str, enum.Enum):
    PROJECT_CREATOR = "project_creator"
    CREDIT_BUYER = "credit_buyer"
    VERIFIER = "verifier"
    ADMIN = "admin"


# ── Marketplace ──────────────────────────────────────────────────────────────


class ProjectType(str, enum.Enum):
    REFORESTATION = "reforestation"
    SOLAR = "solar"
    WIND = "wind"
    BIOGAS = "biogas"
    WASTE_MANAGEMENT = "waste_management"
    MANGROVE_RESTORATION = "mangrove_restoration"


class ProjectStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ProgressUpdateType(str, enum.Enum):
    PROGRESS = "progress"
    MILESTONE = "milestone"
    ISSUE = "issue"
    ACHIEVEMENT = "achievement"


class MilestoneType(str, enum.Enum):
    SETUP = "setup"
    PROGRESS_25 = "progress_25"
    PROGRESS_50 = "progress_50"
    PROGRESS_75 = "progress_75"
    IMPACT_FIRST = "impact_first"
    VERIFICATION = "verification"
    COMPLETION = "completion"


class MilestoneStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    SKIPPED = "skipped"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ── Buyer impact reporting ───────────────────────────────────────────────────


class BuyerReportType(str, enum.Enum):
    PORTFOLIO_OVERVIEW = "portfolio_overview"
    INDIVIDUAL_PROJECT = "individual_project"
    IMPACT_CERTIFICATE = "impact_certificate"
    ANNUAL_SUMMARY = "annual_summary"


class BuyerReportStatus(str, enum.Enum):
    DRAFT = "draft"
    FINAL = "final"
    CERTIFIED = "certified"
    ARCHIVED = "archived"


class ReportFormat(str, enum.Enum):
    JSON = "json"
    PDF = "pdf"
    HTML = "html"
    CSV = "csv"


class CertificateType(str, enum.Enum):
    CARBON_OFFSET = "carbon_offset"
    BIODIVERSITY = "biodiversity"
    SOCIAL_IMPACT = "social_impact"
    SDG_CONTRIBUTION = "sdg_contribution"
