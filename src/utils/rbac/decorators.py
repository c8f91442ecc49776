"""
RBAC Decorators - Flask adapter for the perimeter gate and route protection

install_perimeter_gate() registers a before_request hook that loads the
request's claims, refreshes them when due and applies the pure route gate.
require_permission / require_authenticated protect individual endpoints
through the authorization facade.
"""

from functools import wraps
from typing import Callable, List, Optional, Sequence, Union

from flask import Flask, g, jsonify, redirect, request, session

from src.utils.rbac.audit import log_gate_decision, log_permission_check
from src.utils.rbac.authorization import ErrorCode, authorize
from src.utils.rbac.claims import SessionClaims
from src.utils.rbac.issuer import RefreshTrigger, SessionIssuer
from src.utils.rbac.permissions import get_current_claims
from src.utils.rbac.registry import get_roles_with_permission, permission_value
from src.utils.rbac.route_gate import (
    BANNED_ROUTE,
    DEFAULT_ROUTE_RULES,
    FORBIDDEN_ROUTE,
    SUSPENDED_ROUTE,
    GateAction,
    RouteRule,
    evaluate_request,
    is_api_path,
    login_redirect,
)

TOKEN_SESSION_KEY = 'claims_token'
TOKEN_RESPONSE_HEADER = 'X-Session-Token'


def _bearer_token() -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def is_authenticated() -> bool:
    return get_current_claims() is not None


def _uses_cookie_session() -> bool:
    """Bearer-authenticated requests never read or write the cookie session."""
    return not getattr(g, 'bearer_auth', False)


def start_session(issuer: SessionIssuer, claims: SessionClaims) -> str:
    """Store freshly minted claims for the current client and return the token."""
    token = issuer.encode(claims)
    if _uses_cookie_session():
        session[TOKEN_SESSION_KEY] = token
        session.permanent = True
    g.claims = claims
    g.refreshed_token = token
    return token


def end_session() -> None:
    if _uses_cookie_session():
        session.pop(TOKEN_SESSION_KEY, None)
    g.claims = None
    g.refreshed_token = None


def refresh_current_session(issuer: SessionIssuer, trigger: RefreshTrigger) -> Optional[SessionClaims]:
    """
    Re-derive the current request's claims from the account store.

    Clears the session when the refresh fails (expired claims or the subject
    no longer exists).
    """
    claims = get_current_claims()
    if claims is None:
        return None

    refreshed = issuer.refresh_claims(claims, trigger)
    if refreshed is None:
        end_session()
        return None

    start_session(issuer, refreshed)
    return refreshed


def _load_request_claims(issuer: SessionIssuer) -> None:
    g.claims = None
    g.refreshed_token = None
    g.bearer_auth = False

    token = _bearer_token()
    if token:
        g.bearer_auth = True
    else:
        token = session.get(TOKEN_SESSION_KEY)

    if not token:
        return

    claims = issuer.decode(token)
    if claims is None:
        end_session()
        return

    g.claims = claims
    if issuer.needs_refresh(claims):
        refresh_current_session(issuer, RefreshTrigger.INTERVAL)


def install_perimeter_gate(
    app: Flask,
    issuer: SessionIssuer,
    rules: Sequence[RouteRule] = DEFAULT_ROUTE_RULES,
) -> None:
    """
    Run the perimeter gate before every request.

    Args:
        app: Flask application
        issuer: SessionIssuer used to decode and refresh claims
        rules: Ordered route rules (first match wins)
    """

    @app.before_request
    def perimeter_gate():
        if request.endpoint == 'static':
            return None

        _load_request_claims(issuer)
        claims = get_current_claims()
        decision = evaluate_request(request.path, claims, rules)

        if decision.action is GateAction.ALLOW:
            return None

        user = claims.subject_id if claims else 'anonymous'
        if decision.action is GateAction.REDIRECT:
            log_gate_decision(user, request.path, 'redirect', decision.location)
            return redirect(decision.location)

        log_gate_decision(user, request.path, f'forbid {decision.status_code}')
        return jsonify(decision.body), decision.status_code

    @app.after_request
    def attach_refreshed_token(response):
        token = getattr(g, 'refreshed_token', None)
        if token and getattr(g, 'bearer_auth', False):
            response.headers[TOKEN_RESPONSE_HEADER] = token
        return response


def _unauthenticated_response(endpoint: Optional[str], permission: str):
    log_permission_check(
        user='anonymous',
        permission=permission,
        granted=False,
        endpoint=endpoint,
        error=ErrorCode.UNAUTHENTICATED.value,
    )

    if request.is_json or is_api_path(request.path):
        return jsonify({
            'error': ErrorCode.UNAUTHENTICATED.value,
            'message': 'Please log in to access this resource',
        }), 401

    return redirect(login_redirect(request.path))


def _denied_response(error: ErrorCode, permissions: List[str]):
    if request.is_json or is_api_path(request.path):
        roles = set()
        for perm in permissions:
            roles.update(r.value for r in get_roles_with_permission(perm))
        return jsonify({
            'error': error.value,
            'required_permissions': permissions,
            'roles_with_permission': sorted(roles),
        }), 403

    if error is ErrorCode.ACCOUNT_SUSPENDED:
        return redirect(SUSPENDED_ROUTE)
    if error is ErrorCode.ACCOUNT_BANNED:
        return redirect(BANNED_ROUTE)
    return redirect(f"{FORBIDDEN_ROUTE}?error=insufficient_permissions")


def require_authenticated(f: Callable) -> Callable:
    """
    Decorator that requires user to be authenticated.

    Does NOT check for specific permissions, only that valid claims exist.

    Usage:
        @app.route('/profile')
        @require_authenticated
        def profile():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return _unauthenticated_response(request.endpoint, 'authenticated')
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission: Union[str, List[str]]) -> Callable:
    """
    Decorator that requires specific permission(s) to access a route.

    If a list of permissions is provided, user must have ALL of them. The
    account-status gate runs before any permission check.

    Usage:
        @app.route('/api/admin/export')
        @require_permission(Permission.Admin.EXPORT_DATA)
        def export():
            ...
    """
    required = [permission] if not isinstance(permission, (list, tuple)) else list(permission)
    required_permissions = [permission_value(p) for p in required]

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            claims = get_current_claims()
            if claims is None:
                return _unauthenticated_response(request.endpoint, ','.join(required_permissions))

            for perm in required_permissions:
                decision = authorize(claims.role, claims.account_status, perm)
                if not decision.authorized:
                    log_permission_check(
                        user=claims.subject_id,
                        permission=','.join(required_permissions),
                        granted=False,
                        endpoint=request.endpoint,
                        role=claims.role,
                        error=decision.error.value,
                    )
                    return _denied_response(decision.error, required_permissions)

            log_permission_check(
                user=claims.subject_id,
                permission=','.join(required_permissions),
                granted=True,
                endpoint=request.endpoint,
                role=claims.role,
            )
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_any_permission(permissions: List[str]) -> Callable:
    """
    Decorator that requires ANY ONE of the specified permissions.

    Usage:
        @app.route('/api/orders/<order_id>')
        @require_any_permission([Permission.Order.VIEW_OWN, Permission.Order.VIEW_ALL])
        def view_order(order_id):
            ...
    """
    candidate_permissions = [permission_value(p) for p in permissions]
    label = f"any({','.join(candidate_permissions)})"

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            claims = get_current_claims()
            if claims is None:
                return _unauthenticated_response(request.endpoint, label)

            decisions = [authorize(claims.role, claims.account_status, p) for p in candidate_permissions]
            if not any(d.authorized for d in decisions):
                # status errors are identical across decisions; otherwise insufficient permissions
                error = decisions[0].error if decisions else ErrorCode.INSUFFICIENT_PERMISSIONS
                log_permission_check(
                    user=claims.subject_id,
                    permission=label,
                    granted=False,
                    endpoint=request.endpoint,
                    role=claims.role,
                    error=error.value,
                )
                return _denied_response(error, candidate_permissions)

            log_permission_check(
                user=claims.subject_id,
                permission=label,
                granted=True,
                endpoint=request.endpoint,
                role=claims.role,
            )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
