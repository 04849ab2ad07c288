"""Auth package: dependencies, buyer access rule, Clerk integration."""

from echo_sprout.auth.dependencies import get_current_user
from echo_sprout.auth.rbac import can_access_buyer, ensure_buyer_access

__all__ = [
    "can_access_buyer",
    "ensure_buyer_access",
    "get_current_user",
]
