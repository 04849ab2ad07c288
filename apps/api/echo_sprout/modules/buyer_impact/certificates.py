"""Impact certificate issuance.

Certificates are immutable once issued: the returned model is frozen and the
persisted row is insert-only.
"""

import math
import secrets
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta

from echo_sprout.models.enums import CertificateType
from echo_sprout.modules.buyer_impact.constants import DEFAULT_CONSTANTS, ImpactConstants
from echo_sprout.modules.buyer_impact.schemas import (
    AuditEntry,
    CertificateMetadata,
    ImpactCertificate,
    PurchaseRecord,
    ReportPeriod,
)

ISSUED_ACTION = "Certificate Issued"


def _random_token() -> str:
    return secrets.token_hex(4)


def make_serial_number(
    buyer_id: uuid.UUID,
    issued_at: datetime,
    token_factory: Callable[[], str] = _random_token,
) -> str:
    """EC-<epoch ms>-<buyer id tail>-<random hex>."""
    millis = int(issued_at.timestamp() * 1000)
    return f"EC-{millis}-{str(buyer_id)[-6:]}-{token_factory()}"


def certificate_title(certificate_type: CertificateType) -> str:
    return certificate_type.value.replace("_", " ").title() + " Certificate"


def eligible_purchases(
    purchases: Iterable[PurchaseRecord],
    project_ids: Iterable[uuid.UUID] | None = None,
    period: ReportPeriod | None = None,
) -> list[PurchaseRecord]:
    wanted = set(project_ids) if project_ids else None
    selected = []
    for p in purchases:
        if wanted is not None and p.project_id not in wanted:
            continue
        if period is not None:
            if period.start_date and p.created_at < period.start_date:
                continue
            if period.end_date and p.created_at > period.end_date:
                continue
        selected.append(p)
    return selected


def issue_certificate(
    buyer_id: uuid.UUID,
    purchases: Sequence[PurchaseRecord],
    certificate_type: CertificateType,
    issued_by: str,
    now: datetime,
    project_ids: Iterable[uuid.UUID] | None = None,
    period: ReportPeriod | None = None,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
    token_factory: Callable[[], str] = _random_token,
) -> ImpactCertificate | None:
    """Issue one certificate over the matching purchases.

    Returns None when the matching purchases carry no credits.
    """
    selected = eligible_purchases(purchases, project_ids, period)
    quantification = math.fsum(p.credit_amount for p in selected)
    if quantification <= 0:
        return None

    profile = constants.certificate
    serial = make_serial_number(buyer_id, now, token_factory)
    covered = tuple(sorted({p.project_id for p in selected}, key=str))

    return ImpactCertificate(
        id=uuid.uuid4(),
        type=certificate_type,
        title=certificate_title(certificate_type),
        description=(
            f"This certificate verifies the offset of {quantification:g} "
            f"{profile.unit} across {len(covered)} project(s)"
        ),
        quantification=quantification,
        unit=profile.unit,
        verification_standard=profile.verification_standard,
        issue_date=now,
        valid_until=now + timedelta(days=profile.validity_days),
        projects=covered,
        metadata=CertificateMetadata(
            serial_number=serial,
            issuer=profile.issuer,
            verifier=profile.verifier,
            methodology=profile.methodology,
            additional_certifications=profile.additional_certifications,
            audit_trail=(
                AuditEntry(
                    date=now,
                    action=ISSUED_ACTION,
                    actor=issued_by,
                    details=f"Issued {serial} for buyer {buyer_id}",
                ),
            ),
        ),
    )


def issue_certificates(
    buyer_id: uuid.UUID,
    purchases: Sequence[PurchaseRecord],
    issued_by: str,
    now: datetime,
    certificate_type: CertificateType = CertificateType.CARBON_OFFSET,
    project_ids: Iterable[uuid.UUID] | None = None,
    period: ReportPeriod | None = None,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[ImpactCertificate]:
    cert = issue_certificate(
        buyer_id,
        purchases,
        certificate_type,
        issued_by,
        now,
        project_ids=project_ids,
        period=period,
        constants=constants,
    )
    return [cert] if cert else []
