"""Marketplace models: Project, Purchase, ProgressUpdate, ProjectMilestone, SystemAlert.

These tables are owned by the project and transaction workflows; the buyer
impact engine only reads them.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from echo_sprout.core.database import JSONType
from echo_sprout.models.base import BaseModel
from echo_sprout.models.enums import (
    AlertSeverity,
    MilestoneStatus,
    MilestoneType,
    PaymentStatus,
    ProgressUpdateType,
    ProjectStatus,
    ProjectType,
)


class Project(BaseModel):
    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_creator_id", "creator_id"),
        Index("ix_projects_status", "status"),
        Index("ix_projects_project_type", "project_type"),
    )

    creator_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_type: Mapped[ProjectType] = mapped_column(nullable=False)
    status: Mapped[ProjectStatus] = mapped_column(nullable=False, default=ProjectStatus.DRAFT)
    location_country: Mapped[str | None] = mapped_column(String(255))
    location_region: Mapped[str | None] = mapped_column(String(255))
    latitude: Mapped[float | None] = mapped_column()
    longitude: Mapped[float | None] = mapped_column()
    budget: Mapped[Decimal | None] = mapped_column()
    start_date: Mapped[date | None] = mapped_column(Date)
    expected_completion_date: Mapped[date | None] = mapped_column(Date)
    actual_completion_date: Mapped[date | None] = mapped_column(Date)
    target_carbon_impact: Mapped[float | None] = mapped_column()
    verification_status: Mapped[str | None] = mapped_column(String(50))
    verification_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    progress_updates: Mapped[list["ProgressUpdate"]] = relationship(back_populates="project")
    milestones: Mapped[list["ProjectMilestone"]] = relationship(back_populates="project")

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title!r}, type={self.project_type.value})>"


class Purchase(BaseModel):
    """A credit purchase. Only ``completed`` purchases count toward a portfolio."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_buyer_id", "buyer_id"),
        Index("ix_transactions_project_id", "project_id"),
        Index("ix_transactions_buyer_id_status", "buyer_id", "payment_status"),
    )

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="RESTRICT"), nullable=False
    )
    credit_amount: Mapped[float] = mapped_column(nullable=False)
    unit_price: Mapped[float] = mapped_column(nullable=False)
    total_amount: Mapped[float] = mapped_column(nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        nullable=False, default=PaymentStatus.PENDING
    )

    def __repr__(self) -> str:
        return f"<Purchase(id={self.id}, credits={self.credit_amount}, status={self.payment_status.value})>"


class ProgressUpdate(BaseModel):
    __tablename__ = "progress_updates"
    __table_args__ = (
        Index("ix_progress_updates_project_id", "project_id"),
        Index("ix_progress_updates_project_id_created_at", "project_id", "created_at"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    update_type: Mapped[ProgressUpdateType] = mapped_column(
        nullable=False, default=ProgressUpdateType.PROGRESS
    )
    carbon_impact_to_date: Mapped[float | None] = mapped_column()
    progress_percentage: Mapped[float | None] = mapped_column()
    reporting_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    measurement_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType)

    project: Mapped["Project"] = relationship(back_populates="progress_updates")

    def __repr__(self) -> str:
        return f"<ProgressUpdate(id={self.id}, project_id={self.project_id}, title={self.title!r})>"


class ProjectMilestone(BaseModel):
    """Planned checkpoint in a project's delivery plan, ordered by ``sequence``."""

    __tablename__ = "project_milestones"
    __table_args__ = (
        Index("ix_project_milestones_project_id_sequence", "project_id", "sequence"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    milestone_type: Mapped[MilestoneType] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    planned_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[MilestoneStatus] = mapped_column(
        nullable=False, default=MilestoneStatus.PENDING
    )
    delay_reason: Mapped[str | None] = mapped_column(Text)
    sequence: Mapped[int] = mapped_column(nullable=False, default=0)
    is_required: Mapped[bool] = mapped_column(nullable=False, default=True)

    project: Mapped["Project"] = relationship(back_populates="milestones")

    def __repr__(self) -> str:
        return f"<ProjectMilestone(id={self.id}, title={self.title!r}, status={self.status.value})>"


class SystemAlert(BaseModel):
    """Monitoring alert. ``project_id`` is None for platform-wide alerts."""

    __tablename__ = "system_alerts"
    __table_args__ = (
        Index("ix_system_alerts_project_id_is_resolved", "project_id", "is_resolved"),
    )

    project_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE")
    )
    alert_type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_resolved: Mapped[bool] = mapped_column(nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    resolution_notes: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<SystemAlert(id={self.id}, severity={self.severity.value}, resolved={self.is_resolved})>"
