"""Buyer data access rule.

A caller may act on a buyer's purchases, portfolio, reports and certificates
when the caller IS that buyer, or when the caller holds a staff role that
audits buyer data (admin, verifier).
"""

import uuid

from echo_sprout.models.enums import UserRole
from echo_sprout.schemas.auth import CurrentUser

BUYER_DATA_STAFF_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.VERIFIER})


def is_staff(current_user: CurrentUser) -> bool:
    return current_user.role in BUYER_DATA_STAFF_ROLES


def can_access_buyer(current_user: CurrentUser, buyer_id: uuid.UUID) -> bool:
    """True when the caller is the buyer or has an admin/verifier role."""
    return current_user.user_id == buyer_id or is_staff(current_user)


def ensure_buyer_access(current_user: CurrentUser, buyer_id: uuid.UUID) -> None:
    """Raise PermissionError unless ``can_access_buyer`` holds."""
    if not can_access_buyer(current_user, buyer_id):
        raise PermissionError(f"Not authorized to access data for buyer {buyer_id}")
