"""
RBAC (Role-Based Access Control) Module for MarketGate

This module provides authentication and authorization functionality including:
- Static role-to-permission registry and pure evaluator functions
- The authorization facade (account-status gate + permission check)
- Session claims, the session issuer and the claims refresh protocol
- The perimeter route gate and Flask route protection decorators
- Audit logging for security events

Usage:
    from src.utils.rbac import require_permission, authorize, Permission

    @app.route('/api/admin/export')
    @require_permission(Permission.Admin.EXPORT_DATA)
    def export():
        ...
"""

from src.utils.rbac.permission_enum import AccountStatus, Permission, Role
from src.utils.rbac.registry import (
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    get_guest_permissions,
    get_permissions_for_role,
    get_role_display_name,
    get_roles_with_permission,
    has_minimum_role,
    is_one_of_roles,
)
from src.utils.rbac.permissions import (
    can_access_resource,
    current_user_can,
    get_permission_context,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_account_active,
    is_owner,
)
from src.utils.rbac.authorization import (
    AuthorizationDecision,
    ErrorCode,
    authorize,
    status_error,
)
from src.utils.rbac.claims import ClaimsCodec, SessionClaims
from src.utils.rbac.issuer import RefreshTrigger, SessionIssuer
from src.utils.rbac.route_gate import DEFAULT_ROUTE_RULES, RouteRule, evaluate_request
from src.utils.rbac.decorators import (
    install_perimeter_gate,
    require_any_permission,
    require_authenticated,
    require_permission,
)

__all__ = [
    # Enums
    'AccountStatus',
    'Permission',
    'Role',
    # Registry
    'ROLE_HIERARCHY',
    'ROLE_PERMISSIONS',
    'get_guest_permissions',
    'get_permissions_for_role',
    'get_role_display_name',
    'get_roles_with_permission',
    'has_minimum_role',
    'is_one_of_roles',
    # Evaluator
    'can_access_resource',
    'current_user_can',
    'get_permission_context',
    'has_all_permissions',
    'has_any_permission',
    'has_permission',
    'is_account_active',
    'is_owner',
    # Authorization
    'AuthorizationDecision',
    'ErrorCode',
    'authorize',
    'status_error',
    # Sessions
    'ClaimsCodec',
    'SessionClaims',
    'RefreshTrigger',
    'SessionIssuer',
    # Perimeter
    'DEFAULT_ROUTE_RULES',
    'RouteRule',
    'evaluate_request',
    # Decorators
    'install_perimeter_gate',
    'require_any_permission',
    'require_authenticated',
    'require_permission',
]
