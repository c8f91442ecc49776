"""
RBAC Permissions - Permission checking utilities

Pure evaluator functions (role -> permission membership, ownership, account
activity) plus a few helpers that read the current request's claims for
templates and UI hints. The request helpers are conveniences only; business
operations go through src.utils.rbac.authorization.
"""

from typing import Iterable, Optional

from flask import g, has_request_context

from src.utils.rbac.permission_enum import AccountStatus, Permission, Role
from src.utils.rbac.registry import (
    PermissionLike,
    RoleLike,
    coerce_role,
    get_permission_set,
    permission_value,
)


def has_permission(role: Optional[RoleLike], permission: PermissionLike) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: Role (or role name). Unknown roles have no permissions.
        permission: Permission string to check (e.g., 'order.create')

    Returns:
        True if the role's permission set contains the permission
    """
    return permission_value(permission) in get_permission_set(role)


def has_all_permissions(role: Optional[RoleLike], permissions: Iterable[PermissionLike]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def has_any_permission(role: Optional[RoleLike], permissions: Iterable[PermissionLike]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def is_account_active(status) -> bool:
    """True only for ACTIVE accounts; SUSPENDED, BANNED and unknown values are inactive."""
    try:
        return AccountStatus(status) is AccountStatus.ACTIVE
    except ValueError:
        return False


def can_access_resource(
    actor_id: str,
    resource_owner_id: str,
    actor_role: Optional[RoleLike],
    own_permission: PermissionLike,
    any_permission: PermissionLike,
) -> bool:
    """
    Check if an actor can act on a user-owned resource.

    A seller can edit their OWN listings (listing.editOwn) while an admin
    can edit ANY listing (listing.editAny). Holding the "any" permission
    grants access regardless of ownership.

    Args:
        actor_id: ID of the user making the request
        resource_owner_id: ID of the resource owner
        actor_role: Role of the user making the request
        own_permission: Permission for own resources
        any_permission: Permission for any resource

    Returns:
        True if access is granted
    """
    if has_permission(actor_role, any_permission):
        return True

    return is_owner(actor_id, resource_owner_id) and has_permission(actor_role, own_permission)


def is_owner(actor_id: str, resource_owner_id: str) -> bool:
    """Plain ownership check, no permissions involved."""
    return actor_id is not None and actor_id == resource_owner_id


# ─── Request-scoped helpers ─────────────────────────────────────────────────

def get_current_claims():
    """Claims attached to the current request by the perimeter gate, or None."""
    if not has_request_context():
        return None
    return getattr(g, "claims", None)


def current_user_can(permission: PermissionLike) -> bool:
    """
    Check a permission for the current request's user.

    Mirrors the authorization facade: inactive accounts can do nothing.
    """
    claims = get_current_claims()
    if claims is None or not is_account_active(claims.account_status):
        return False
    return has_permission(claims.role, permission)


def get_permission_context() -> dict:
    """
    Get a context dictionary with the major permission checks for templates.

    Returns:
        Dictionary with boolean flags used to show/hide UI elements
    """
    claims = get_current_claims()
    if claims is None:
        return {
            'is_authenticated': False,
            'user_role': None,
            'account_status': None,
            'can_create_listing': False,
            'can_create_order': False,
            'can_access_admin': False,
            'can_moderate_users': False,
            'can_manage_roles': False,
            'can_export_data': False,
            'is_seller': False,
            'is_admin': False,
        }

    role = coerce_role(claims.role)
    return {
        'is_authenticated': True,
        'user_role': role.value if role else None,
        'account_status': claims.account_status.value,
        'can_create_listing': current_user_can(Permission.Listing.CREATE),
        'can_create_order': current_user_can(Permission.Order.CREATE),
        'can_access_admin': current_user_can(Permission.Admin.ACCESS_DASHBOARD),
        'can_moderate_users': current_user_can(Permission.Moderation.SUSPEND_USERS),
        'can_manage_roles': current_user_can(Permission.Admin.CREATE_ADMINS),
        'can_export_data': current_user_can(Permission.Admin.EXPORT_DATA),
        'is_seller': role is Role.SELLER,
        'is_admin': role in (Role.ADMIN, Role.SUPER_ADMIN),
    }
