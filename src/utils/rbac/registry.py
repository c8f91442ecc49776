"""
RBAC Registry - Static role and permission tables

Each role's permission set is enumerated explicitly (seller = user + seller
extras, admin = seller + admin extras, ...) so every tier can be audited on
its own. The tables are built once at import time and are read-only; they
are safe to share across request workers without locking.
"""

from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple, Union

from src.utils.rbac.permission_enum import Permission, Role

PermissionLike = Union[str, Enum]
RoleLike = Union[str, Role]


# ─── Guest permissions (unauthenticated, reference only) ───────────────────

GUEST_PERMISSIONS: Tuple[str, ...] = (
    Permission.Auth.REGISTER.value,
    Permission.Auth.LOGIN.value,
    Permission.Auth.RESET_PASSWORD.value,
    Permission.Listing.BROWSE.value,
    Permission.Listing.VIEW_DETAIL.value,
)

USER_PERMISSIONS: Tuple[str, ...] = GUEST_PERMISSIONS + (
    Permission.Auth.LOGOUT.value,
    Permission.Profile.VIEW_OWN.value,
    Permission.Profile.EDIT_OWN.value,
    Permission.Profile.DELETE_OWN.value,
    Permission.Order.CREATE.value,
    Permission.Order.VIEW_OWN.value,
    Permission.Order.CANCEL_OWN.value,
    Permission.Order.REFUND_REQUEST.value,
    Permission.Review.CREATE.value,
    Permission.Review.EDIT_OWN.value,
    Permission.Review.DELETE_OWN.value,
    Permission.Moderation.REPORT_CONTENT.value,
    Permission.Messaging.SEND_TO_SELLER.value,
    Permission.Messaging.VIEW_CONVERSATIONS.value,
    Permission.Notification.RECEIVE.value,
)

SELLER_PERMISSIONS: Tuple[str, ...] = USER_PERMISSIONS + (
    Permission.Listing.CREATE.value,
    Permission.Listing.EDIT_OWN.value,
    Permission.Listing.DELETE_OWN.value,
    Permission.Listing.VIEW_ANALYTICS_OWN.value,
    Permission.Order.UPDATE_STATUS_OWN.value,
    Permission.Messaging.SEND_TO_BUYER.value,
)

ADMIN_PERMISSIONS: Tuple[str, ...] = SELLER_PERMISSIONS + (
    Permission.Profile.VIEW_ANY.value,
    Permission.Profile.EDIT_ANY.value,
    Permission.Listing.EDIT_ANY.value,
    Permission.Listing.DELETE_ANY.value,
    Permission.Listing.VIEW_ANALYTICS_ALL.value,
    Permission.Listing.MANAGE_CATEGORIES.value,
    Permission.Order.VIEW_ALL.value,
    Permission.Order.CANCEL_ANY.value,
    Permission.Order.UPDATE_STATUS_ANY.value,
    Permission.Order.REFUND_PROCESS.value,
    Permission.Review.MODERATE_ANY.value,
    Permission.Moderation.REVIEW_REPORTS.value,
    Permission.Moderation.APPROVE_SELLERS.value,
    Permission.Moderation.SUSPEND_USERS.value,
    Permission.Moderation.VIEW_AUDIT_LOGS.value,
    Permission.Admin.ACCESS_DASHBOARD.value,
    Permission.Admin.VIEW_ANALYTICS.value,
    Permission.Admin.MANAGE_USERS.value,
    Permission.Notification.SEND_PLATFORM_WIDE.value,
)

SUPER_ADMIN_PERMISSIONS: Tuple[str, ...] = ADMIN_PERMISSIONS + (
    Permission.Admin.CREATE_ADMINS.value,
    Permission.Admin.SYSTEM_CONFIG.value,
    Permission.Admin.EXPORT_DATA.value,
    Permission.Admin.MANAGE_RBAC.value,
)

ROLE_PERMISSIONS: Mapping[Role, Tuple[str, ...]] = MappingProxyType({
    Role.USER: USER_PERMISSIONS,
    Role.SELLER: SELLER_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.SUPER_ADMIN: SUPER_ADMIN_PERMISSIONS,
})

# Membership lookups go through frozensets; ROLE_PERMISSIONS keeps declaration order.
_ROLE_PERMISSION_SETS: Mapping[Role, frozenset] = MappingProxyType({
    role: frozenset(perms) for role, perms in ROLE_PERMISSIONS.items()
})

ROLE_HIERARCHY: Mapping[Role, int] = MappingProxyType({
    Role.USER: 1,
    Role.SELLER: 2,
    Role.ADMIN: 3,
    Role.SUPER_ADMIN: 4,
})

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType({
    Role.USER: "User",
    Role.SELLER: "Seller",
    Role.ADMIN: "Admin",
    Role.SUPER_ADMIN: "Super Admin",
})

# Lowest to highest
ALL_ROLES: Tuple[Role, ...] = tuple(sorted(ROLE_HIERARCHY, key=ROLE_HIERARCHY.get))


def coerce_role(role: Optional[RoleLike]) -> Optional[Role]:
    """Map a role name (or Role) onto the Role enum; unknown values give None."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def permission_value(permission: PermissionLike) -> str:
    """Plain string form of a permission (Enum members hash by name, not value)."""
    if isinstance(permission, Enum):
        return permission.value
    return permission


def get_permissions_for_role(role: RoleLike) -> Tuple[str, ...]:
    """
    Get all permissions granted to a role, in declaration order.

    Args:
        role: Role (or role name)

    Returns:
        Tuple of permission strings, empty if the role is unknown
    """
    resolved = coerce_role(role)
    if resolved is None:
        return ()
    return ROLE_PERMISSIONS[resolved]


def get_permission_set(role: RoleLike) -> frozenset:
    resolved = coerce_role(role)
    if resolved is None:
        return frozenset()
    return _ROLE_PERMISSION_SETS[resolved]


def get_guest_permissions() -> Tuple[str, ...]:
    return GUEST_PERMISSIONS


def has_minimum_role(actual_role: RoleLike, required_role: RoleLike) -> bool:
    """
    Check if a role meets the minimum required role level.

    Uses the hierarchy USER < SELLER < ADMIN < SUPER_ADMIN. Unknown actual
    roles never qualify; an unknown required role is never met.
    """
    actual = coerce_role(actual_role)
    required = coerce_role(required_role)
    if actual is None or required is None:
        return False
    return ROLE_HIERARCHY[actual] >= ROLE_HIERARCHY[required]


def is_one_of_roles(role: RoleLike, allowed_roles: Iterable[RoleLike]) -> bool:
    resolved = coerce_role(role)
    if resolved is None:
        return False
    return resolved in {coerce_role(r) for r in allowed_roles}


def get_role_display_name(role: RoleLike) -> str:
    resolved = coerce_role(role)
    if resolved is None:
        return str(role)
    return ROLE_DISPLAY_NAMES[resolved]


def get_roles_with_permission(permission: PermissionLike) -> list:
    """
    Get all roles that grant a specific permission, lowest first.

    Useful for error messages ("You need role X or Y to do this").
    """
    value = permission_value(permission)
    return [role for role in ALL_ROLES if value in _ROLE_PERMISSION_SETS[role]]
