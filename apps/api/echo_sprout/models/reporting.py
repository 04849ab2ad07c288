"""Buyer impact reporting models: BuyerImpactReportRecord, ImpactCertificateRecord."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from echo_sprout.core.database import JSONType
from echo_sprout.models.base import BaseModel, TimestampedModel
from echo_sprout.models.enums import (
    BuyerReportStatus,
    BuyerReportType,
    CertificateType,
    ReportFormat,
)


class BuyerImpactReportRecord(BaseModel):
    """A generated buyer impact report.

    ``report_data`` holds the full serialized report and is never rewritten;
    lifecycle moves only touch ``status``.
    """

    __tablename__ = "buyer_impact_reports"
    __table_args__ = (
        Index("ix_buyer_impact_reports_buyer_id", "buyer_id"),
        Index("ix_buyer_impact_reports_generated_by", "generated_by"),
        Index("ix_buyer_impact_reports_buyer_id_generated_at", "buyer_id", "generated_at"),
        Index("ix_buyer_impact_reports_report_uid", "report_uid", unique=True),
    )

    report_uid: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    generated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    report_type: Mapped[BuyerReportType] = mapped_column(nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    format: Mapped[ReportFormat] = mapped_column(nullable=False, default=ReportFormat.JSON)
    status: Mapped[BuyerReportStatus] = mapped_column(
        nullable=False, default=BuyerReportStatus.FINAL
    )
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    period_label: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    report_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    def __repr__(self) -> str:
        return f"<BuyerImpactReportRecord(id={self.id}, title={self.title!r}, status={self.status.value})>"


class ImpactCertificateRecord(TimestampedModel):
    """Issued certificate. Insert-only: corrections are new certificates."""

    __tablename__ = "impact_certificates"
    __table_args__ = (
        Index("ix_impact_certificates_buyer_id", "buyer_id"),
        Index("ix_impact_certificates_serial_number", "serial_number", unique=True),
    )

    certificate_uid: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    issued_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    certificate_type: Mapped[CertificateType] = mapped_column(nullable=False)
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantification: Mapped[float] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    project_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False)
    certificate_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    def __repr__(self) -> str:
        return f"<ImpactCertificateRecord(id={self.id}, serial={self.serial_number!r})>"
