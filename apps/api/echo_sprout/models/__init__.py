"""SQLAlchemy models package; import all models so Base.metadata is populated."""

from echo_sprout.models.base import BaseModel, ModelMixin, TimestampedModel
from echo_sprout.models.core import User
from echo_sprout.models.enums import (
    AlertSeverity,
    BuyerReportStatus,
    BuyerReportType,
    CertificateType,
    MilestoneStatus,
    MilestoneType,
    PaymentStatus,
    ProgressUpdateType,
    ProjectStatus,
    ProjectType,
    ReportFormat,
    UserRole,
)
from echo_sprout.models.marketplace import (
    ProgressUpdate,
    Project,
    ProjectMilestone,
    Purchase,
    SystemAlert,
)
from echo_sprout.models.reporting import BuyerImpactReportRecord, ImpactCertificateRecord

__all__ = [
    "AlertSeverity",
    "BaseModel",
    "BuyerImpactReportRecord",
    "BuyerReportStatus",
    "BuyerReportType",
    "CertificateType",
    "ImpactCertificateRecord",
    "MilestoneStatus",
    "MilestoneType",
    "ModelMixin",
    "PaymentStatus",
    "ProgressUpdate",
    "ProgressUpdateType",
    "Project",
    "ProjectMilestone",
    "ProjectStatus",
    "ProjectType",
    "Purchase",
    "ReportFormat",
    "SystemAlert",
    "TimestampedModel",
    "User",
    "UserRole",
]
