"""
Perimeter route gate - coarse, route-level access control.

evaluate_request() is a pure function of (path, claims) and knows nothing
about Flask; src.utils.rbac.decorators wraps it for the web app. The gate
only checks role membership. Ownership checks stay with the business
operations.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Sequence
from urllib.parse import urlencode

from src.utils.rbac.permission_enum import AccountStatus, Role

# ─── Fixed routes ───────────────────────────────────────────────────────────

LOGIN_ROUTE = "/auth/login"
SUSPENDED_ROUTE = "/suspended"
BANNED_ROUTE = "/banned"
FORBIDDEN_ROUTE = "/forbidden"
SIGN_OUT_PREFIX = "/api/auth"
API_PREFIX = "/api/"

ADMIN_LANDING = "/dashboard/admin"
SELLER_LANDING = "/dashboard/seller"
USER_LANDING = "/dashboard/user"

# Authenticated users are sent away from these
AUTH_ROUTES = re.compile(r"^/auth/(login|register|reset-password)(/|$)")

# The gate only looks at requests under these prefixes
GATED_PREFIXES = (
    "/dashboard",
    "/api/admin",
    "/api/seller",
    "/api/user",
    "/auth",
)

_ANY_ROLE = frozenset(Role)
_SELLER_AND_UP = frozenset({Role.SELLER, Role.ADMIN, Role.SUPER_ADMIN})
_ADMINS = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class GateAction(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    FORBID = "forbid"


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    location: Optional[str] = None
    status_code: int = 200
    body: Optional[Dict[str, Any]] = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(action=GateAction.ALLOW)

    @classmethod
    def redirect(cls, location: str) -> "GateDecision":
        return cls(action=GateAction.REDIRECT, location=location, status_code=302)

    @classmethod
    def forbid(cls, status_code: int, error: str, message: str) -> "GateDecision":
        return cls(
            action=GateAction.FORBID,
            status_code=status_code,
            body={"error": error, "message": message},
        )


@dataclass(frozen=True)
class RouteRule:
    """A protected path pattern and the roles allowed through it."""
    pattern: "re.Pattern"
    allowed_roles: FrozenSet[Role]
    redirect_to: str

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


def _rule(prefix: str, allowed_roles: FrozenSet[Role], redirect_to: str) -> RouteRule:
    return RouteRule(
        pattern=re.compile(rf"^{re.escape(prefix)}(/|$)"),
        allowed_roles=allowed_roles,
        redirect_to=redirect_to,
    )


# Checked in order, first match wins.
DEFAULT_ROUTE_RULES: Sequence[RouteRule] = (
    _rule("/dashboard/admin", _ADMINS, FORBIDDEN_ROUTE),
    _rule("/api/admin", _ADMINS, FORBIDDEN_ROUTE),
    _rule("/dashboard/seller", _SELLER_AND_UP, FORBIDDEN_ROUTE),
    _rule("/api/seller", _SELLER_AND_UP, FORBIDDEN_ROUTE),
    _rule("/dashboard/user", _ANY_ROLE, LOGIN_ROUTE),
    _rule("/api/user", _ANY_ROLE, LOGIN_ROUTE),
)


def landing_route_for_role(role: Optional[Role]) -> str:
    if role in (Role.SUPER_ADMIN, Role.ADMIN):
        return ADMIN_LANDING
    if role is Role.SELLER:
        return SELLER_LANDING
    return USER_LANDING


def login_redirect(callback_path: str) -> str:
    return f"{LOGIN_ROUTE}?{urlencode({'callbackUrl': callback_path}, safe='/')}"


def is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIX)


def is_gated_path(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in GATED_PREFIXES)


def _status_confinement(path: str, status: AccountStatus) -> Optional[GateDecision]:
    if status is AccountStatus.SUSPENDED:
        target = SUSPENDED_ROUTE
    elif status is AccountStatus.BANNED:
        target = BANNED_ROUTE
    else:
        return None

    if path.startswith(target) or path.startswith(SIGN_OUT_PREFIX):
        return None
    return GateDecision.redirect(target)


def evaluate_request(path: str, claims=None, rules: Sequence[RouteRule] = DEFAULT_ROUTE_RULES) -> GateDecision:
    """
    Decide what to do with a request before any handler runs.

    Args:
        path: Request path (no query string)
        claims: SessionClaims for the request, or None when unauthenticated
        rules: Ordered route rules; the first matching rule decides

    Returns:
        GateDecision to allow, redirect or forbid the request
    """
    if not is_gated_path(path):
        return GateDecision.allow()

    if claims is not None:
        confined = _status_confinement(path, claims.account_status)
        if confined is not None:
            return confined

        if AUTH_ROUTES.search(path):
            return GateDecision.redirect(landing_route_for_role(claims.role))

    for rule in rules:
        if not rule.matches(path):
            continue

        if claims is None:
            if is_api_path(path):
                return GateDecision.forbid(401, "UNAUTHENTICATED", "Authentication required")
            return GateDecision.redirect(login_redirect(path))

        if claims.role not in rule.allowed_roles:
            if is_api_path(path):
                return GateDecision.forbid(403, "FORBIDDEN", "Insufficient permissions")
            return GateDecision.redirect(f"{rule.redirect_to}?error=insufficient_permissions")

        # first match wins
        break

    return GateDecision.allow()
