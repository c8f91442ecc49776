"""
RBAC Authorization - The facade every privileged operation calls first.

authorize() combines the account-status gate and the permission check into a
single decision. The status gate always runs first: a suspended admin cannot
act even though the admin role carries the permission.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.utils.rbac.permission_enum import AccountStatus
from src.utils.rbac.permissions import has_permission, is_account_active
from src.utils.rbac.registry import PermissionLike, RoleLike


class ErrorCode(str, Enum):
    """Stable, machine-readable decision codes exposed to clients."""
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    ACCOUNT_BANNED = "ACCOUNT_BANNED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    FORBIDDEN = "FORBIDDEN"
    INVALID_INPUT = "INVALID_INPUT"

    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    CANNOT_SUSPEND_ADMIN = "CANNOT_SUSPEND_ADMIN"
    CANNOT_SUSPEND_SUPER_ADMIN = "CANNOT_SUSPEND_SUPER_ADMIN"
    CANNOT_BAN_ADMIN = "CANNOT_BAN_ADMIN"
    CANNOT_BAN_SUPER_ADMIN = "CANNOT_BAN_SUPER_ADMIN"
    CANNOT_CHANGE_OWN_ROLE = "CANNOT_CHANGE_OWN_ROLE"

    APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
    APPLICATION_ALREADY_REVIEWED = "APPLICATION_ALREADY_REVIEWED"
    APPLICATION_ALREADY_PENDING = "APPLICATION_ALREADY_PENDING"
    ONLY_USERS_CAN_APPLY = "ONLY_USERS_CAN_APPLY"
    LISTING_NOT_FOUND = "LISTING_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    REVIEW_NOT_FOUND = "REVIEW_NOT_FOUND"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Result of an authorization check. Computed per call, never stored."""
    authorized: bool
    error: Optional[ErrorCode] = None

    def __bool__(self) -> bool:
        return self.authorized


AUTHORIZED = AuthorizationDecision(authorized=True)


def status_error(account_status) -> Optional[ErrorCode]:
    """Error code for an inactive account, or None when the account is active."""
    if is_account_active(account_status):
        return None
    if account_status == AccountStatus.SUSPENDED:
        return ErrorCode.ACCOUNT_SUSPENDED
    return ErrorCode.ACCOUNT_BANNED


def authorize(role: Optional[RoleLike], account_status, permission: PermissionLike) -> AuthorizationDecision:
    """
    Comprehensive authorization check: account status, then role permission.

    Args:
        role: Actor's role
        account_status: Actor's account status
        permission: Permission the operation requires

    Returns:
        AuthorizationDecision with ACCOUNT_SUSPENDED / ACCOUNT_BANNED /
        INSUFFICIENT_PERMISSIONS on denial
    """
    error = status_error(account_status)
    if error is not None:
        return AuthorizationDecision(authorized=False, error=error)

    if not has_permission(role, permission):
        return AuthorizationDecision(authorized=False, error=ErrorCode.INSUFFICIENT_PERMISSIONS)

    return AUTHORIZED
