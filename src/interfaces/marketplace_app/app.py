import os
import secrets
from datetime import datetime, timedelta
from typing import Optional

from flask import Flask, jsonify, redirect, render_template, request

from src.marketplace.actions import ActionResult, AdminActions, SellerActions, SuperAdminActions
from src.utils.config_access import ConfigNotReadyError, get_full_config, load_config
from src.utils.env import read_secret
from src.utils.logging import get_logger
from src.utils.password import BcryptVerifier
from src.utils.postgres_service_factory import PostgresServiceFactory
from src.utils.rbac.audit import log_authentication_event
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.claims import ClaimsCodec
from src.utils.rbac.decorators import (
    end_session,
    install_perimeter_gate,
    refresh_current_session,
    require_authenticated,
    require_permission,
    start_session,
)
from src.utils.rbac.issuer import RefreshTrigger, SessionIssuer
from src.utils.rbac.permission_enum import Permission
from src.utils.rbac.permissions import get_current_claims, get_permission_context
from src.utils.rbac.registry import get_permissions_for_role, get_role_display_name
from src.utils.rbac.route_gate import (
    BANNED_ROUTE,
    SUSPENDED_ROUTE,
    landing_route_for_role,
)

logger = get_logger(__name__)

TEMPLATE_FOLDER = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

_STATUS_BY_ERROR = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.APPLICATION_NOT_FOUND: 404,
    ErrorCode.LISTING_NOT_FOUND: 404,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.REVIEW_NOT_FOUND: 404,
    ErrorCode.APPLICATION_ALREADY_REVIEWED: 409,
    ErrorCode.APPLICATION_ALREADY_PENDING: 409,
    ErrorCode.EMAIL_ALREADY_REGISTERED: 409,
}

STATUS_MESSAGES = {
    ErrorCode.INVALID_CREDENTIALS: "Invalid email or password.",
    ErrorCode.ACCOUNT_SUSPENDED: "Your account is suspended.",
    ErrorCode.ACCOUNT_BANNED: "Your account has been banned.",
}


def http_status_for(error: ErrorCode) -> int:
    """Decision codes not listed map to 403 (account state, permissions, domain rules)."""
    return _STATUS_BY_ERROR.get(error, 403)


def action_response(result: ActionResult):
    if result.success:
        return jsonify(result.to_dict()), 200
    return jsonify(result.to_dict()), http_status_for(result.error)


def _safe_callback(url: Optional[str]) -> Optional[str]:
    """Only same-site relative paths are followed after sign-in."""
    if url and url.startswith("/") and not url.startswith("//") and "\\" not in url:
        return url
    return None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FlaskAppWrapper(object):

    def __init__(self, app, services, signing_key: Optional[str] = None, **configs):
        logger.info("Entering FlaskAppWrapper")
        self.app = app
        self.configs(**configs)
        self.config = get_full_config()
        self.auth_config = self.config["auth"]
        self.services_config = self.config["services"]
        self.marketplace_app_config = self.services_config["marketplace_app"]

        secret_key = read_secret("FLASK_APP_SECRET_KEY")
        if not secret_key:
            logger.warning("FLASK_APP_SECRET_KEY not found, generating a random secret key")
            secret_key = secrets.token_hex(32)
        self.app.secret_key = secret_key

        self.app.config['SESSION_COOKIE_HTTPONLY'] = True
        self.app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
        self.app.config['SESSION_COOKIE_SECURE'] = bool(self.auth_config.get('session_cookie_secure', False))
        self.app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(seconds=self.auth_config['claims_max_age_seconds'])

        # system of record
        self.accounts = services.account_service
        self.audit_log = services.audit_log_service
        self.invalidations = services.token_invalidation_service
        self.applications = services.seller_application_service

        codec = ClaimsCodec(
            secret_key=signing_key or read_secret("CLAIMS_SIGNING_KEY"),
            algorithm=self.auth_config.get('jwt_algorithm', 'HS256'),
        )
        self.issuer = SessionIssuer(
            account_store=self.accounts,
            codec=codec,
            verifier=BcryptVerifier(),
            max_age_seconds=self.auth_config['claims_max_age_seconds'],
            refresh_interval_seconds=self.auth_config['claims_refresh_interval_seconds'],
        )
        self.admin_actions = AdminActions(self.accounts, self.audit_log, self.invalidations, self.applications)
        self.super_admin_actions = SuperAdminActions(self.accounts, self.audit_log, self.invalidations)
        self.seller_actions = SellerActions(self.accounts, self.applications)

        install_perimeter_gate(self.app, self.issuer)
        self.app.context_processor(get_permission_context)
        logger.info(
            f"Claims max age: {self.issuer.max_age_seconds}s, "
            f"refresh interval: {self.issuer.refresh_interval_seconds}s"
        )

        # public endpoints
        self.add_endpoint('/health', 'health', self.health)
        self.add_endpoint('/', 'index', self.index)
        self.add_endpoint('/suspended', 'suspended', self.suspended)
        self.add_endpoint('/banned', 'banned', self.banned)
        self.add_endpoint('/forbidden', 'forbidden', self.forbidden)

        # authentication endpoints
        logger.info("Adding authentication endpoints")
        self.add_endpoint('/auth/login', 'login', self.login, methods=['GET', 'POST'])
        self.add_endpoint('/auth/register', 'register', self.register, methods=['GET', 'POST'])
        self.add_endpoint('/auth/reset-password', 'reset_password', self.reset_password)
        self.add_endpoint('/api/auth/signout', 'signout', self.signout, methods=['GET', 'POST'])
        self.add_endpoint('/api/auth/session', 'get_session', self.get_session)

        # dashboards
        self.add_endpoint('/dashboard/user', 'user_dashboard', require_authenticated(self.user_dashboard))
        self.add_endpoint('/dashboard/seller', 'seller_dashboard', require_permission(Permission.Listing.CREATE)(self.seller_dashboard))
        self.add_endpoint('/dashboard/admin', 'admin_dashboard', require_permission(Permission.Admin.ACCESS_DASHBOARD)(self.admin_dashboard))

        # admin API (actions re-read the actor and authorize themselves)
        logger.info("Adding admin API endpoints")
        self.add_endpoint('/api/admin/users', 'list_users', require_authenticated(self.list_users), methods=['GET'])
        self.add_endpoint('/api/admin/users/<user_id>/suspend', 'suspend_user', require_authenticated(self.suspend_user), methods=['POST'])
        self.add_endpoint('/api/admin/users/<user_id>/ban', 'ban_user', require_authenticated(self.ban_user), methods=['POST'])
        self.add_endpoint('/api/admin/users/<user_id>/reactivate', 'reactivate_user', require_authenticated(self.reactivate_user), methods=['POST'])
        self.add_endpoint('/api/admin/users/<user_id>/role', 'update_user_role', require_authenticated(self.update_user_role), methods=['POST'])
        self.add_endpoint('/api/admin/seller-applications', 'list_seller_applications', require_authenticated(self.list_seller_applications), methods=['GET'])
        self.add_endpoint('/api/admin/seller-applications/<application_id>/review', 'review_seller_application', require_authenticated(self.review_seller_application), methods=['POST'])
        self.add_endpoint('/api/admin/audit-logs', 'get_audit_logs', require_authenticated(self.get_audit_logs), methods=['GET'])
        self.add_endpoint('/api/admin/export', 'export_users_data', require_authenticated(self.export_users_data), methods=['GET'])

        self.add_endpoint('/api/user/me', 'get_me', require_authenticated(self.get_me), methods=['GET'])
        self.add_endpoint('/api/user/seller-application', 'submit_seller_application', require_authenticated(self.submit_seller_application), methods=['POST'])

    def configs(self, **configs):
        for config, value in configs.items():
            self.app.config[config.upper()] = value

    def add_endpoint(self, endpoint=None, endpoint_name=None, handler=None, methods=['GET'], *args, **kwargs):
        self.app.add_url_rule(endpoint, endpoint_name, handler, methods=methods, *args, **kwargs)

    def run(self, **kwargs):
        self.app.run(**kwargs)

    @staticmethod
    def _payload() -> dict:
        if request.is_json:
            return request.get_json(silent=True) or {}
        return request.form.to_dict()

    @staticmethod
    def _actor_id() -> str:
        return get_current_claims().subject_id

    # ─── Public pages ───────────────────────────────────────────────────────

    def health(self):
        return jsonify({"status": "OK"}), 200

    def index(self):
        claims = get_current_claims()
        if claims is not None:
            return redirect(landing_route_for_role(claims.role))
        return redirect('/auth/login')

    def suspended(self):
        return render_template('status.html', title='Account suspended',
                               message='Your account has been suspended. Contact support if you believe this is a mistake.')

    def banned(self):
        return render_template('status.html', title='Account banned',
                               message='Your account has been permanently banned.')

    def forbidden(self):
        return render_template('status.html', title='Access denied',
                               message='You do not have permission to view that page.'), 403

    # ─── Authentication ─────────────────────────────────────────────────────

    def login(self):
        """Credential sign-in. JSON clients get the token back; browsers get a session cookie."""
        if request.method == 'GET':
            return render_template('login.html', callback_url=request.args.get('callbackUrl', ''))

        data = self._payload()
        result = self.issuer.sign_in(data.get('email', ''), data.get('password', ''))

        if request.is_json:
            if not result.success:
                return jsonify({'error': result.error.value}), http_status_for(result.error)
            start_session(self.issuer, result.claims)
            return jsonify({
                'success': True,
                'token': result.token,
                'user': self._claims_view(result.claims),
            }), 200

        if not result.success:
            if result.error is ErrorCode.ACCOUNT_SUSPENDED:
                return redirect(SUSPENDED_ROUTE)
            if result.error is ErrorCode.ACCOUNT_BANNED:
                return redirect(BANNED_ROUTE)
            return render_template('login.html', error=STATUS_MESSAGES[result.error],
                                   callback_url=data.get('callbackUrl', '')), 401

        start_session(self.issuer, result.claims)
        target = _safe_callback(data.get('callbackUrl')) or landing_route_for_role(result.claims.role)
        return redirect(target)

    def register(self):
        if request.method == 'GET':
            return render_template('register.html')

        data = self._payload()
        account, error = self.issuer.register_account(
            email=(data.get('email') or '').strip(),
            display_name=data.get('name'),
            password=data.get('password', ''),
        )

        if error is not None:
            if request.is_json:
                return jsonify({'error': error.value}), http_status_for(error)
            message = 'That email is already registered.' if error is ErrorCode.EMAIL_ALREADY_REGISTERED else 'Please provide a valid email and password.'
            return render_template('register.html', error=message), http_status_for(error)

        log_authentication_event(account.id, 'register', True, 'credentials')
        if request.is_json:
            return jsonify({'success': True, 'user': account.to_public_dict()}), 201
        return redirect('/auth/login')

    def reset_password(self):
        return render_template('status.html', title='Reset password',
                               message='Password reset is handled by support. Please contact us.')

    def signout(self):
        claims = get_current_claims()
        end_session()
        if claims is not None:
            log_authentication_event(claims.subject_id, 'logout', True, 'session')
        if request.method == 'GET' and not request.is_json:
            return redirect('/auth/login')
        return jsonify({'success': True}), 200

    def get_session(self):
        """Current claims; ?update=1 re-derives them from the account store first."""
        claims = get_current_claims()
        if claims is not None and request.args.get('update') in ('1', 'true'):
            claims = refresh_current_session(self.issuer, RefreshTrigger.UPDATE)

        if claims is None:
            return jsonify({}), 200
        return jsonify({
            'user': self._claims_view(claims),
            'expires': claims.expires_at.isoformat(),
        }), 200

    @staticmethod
    def _claims_view(claims) -> dict:
        return {
            'id': claims.subject_id,
            'role': claims.role.value,
            'accountStatus': claims.account_status.value,
        }

    # ─── Dashboards ─────────────────────────────────────────────────────────

    def _dashboard(self, title: str):
        claims = get_current_claims()
        return render_template('dashboard.html', title=title,
                               role_name=get_role_display_name(claims.role))

    def user_dashboard(self):
        return self._dashboard('My account')

    def seller_dashboard(self):
        return self._dashboard('Seller dashboard')

    def admin_dashboard(self):
        return self._dashboard('Admin dashboard')

    # ─── Admin API ──────────────────────────────────────────────────────────

    def list_users(self):
        result = self.admin_actions.list_users(
            self._actor_id(),
            search=request.args.get('search'),
            role=request.args.get('role'),
            account_status=request.args.get('accountStatus'),
            page=request.args.get('page', 1, type=int),
            limit=request.args.get('limit', 20, type=int),
        )
        return action_response(result)

    def suspend_user(self, user_id):
        data = self._payload()
        try:
            expires_at = _parse_timestamp(data.get('expiresAt'))
        except ValueError:
            return action_response(ActionResult.fail(ErrorCode.INVALID_INPUT, {'expiresAt': 'Invalid timestamp'}))
        result = self.admin_actions.suspend_user(self._actor_id(), user_id, data.get('reason'), expires_at=expires_at)
        return action_response(result)

    def ban_user(self, user_id):
        data = self._payload()
        return action_response(self.admin_actions.ban_user(self._actor_id(), user_id, data.get('reason')))

    def reactivate_user(self, user_id):
        return action_response(self.admin_actions.reactivate_user(self._actor_id(), user_id))

    def update_user_role(self, user_id):
        data = self._payload()
        return action_response(self.super_admin_actions.update_user_role(self._actor_id(), user_id, data.get('role')))

    def review_seller_application(self, application_id):
        data = self._payload()
        result = self.admin_actions.review_seller_application(
            self._actor_id(),
            application_id,
            data.get('action'),
            rejection_reason=data.get('rejectionReason'),
        )
        return action_response(result)

    def list_seller_applications(self):
        result = self.admin_actions.list_seller_applications(
            self._actor_id(),
            status=request.args.get('status'),
            page=request.args.get('page', 1, type=int),
            limit=request.args.get('limit', 20, type=int),
        )
        return action_response(result)

    def get_audit_logs(self):
        result = self.super_admin_actions.get_audit_logs(
            self._actor_id(),
            action=request.args.get('action'),
            target_type=request.args.get('targetType'),
            page=request.args.get('page', 1, type=int),
            limit=request.args.get('limit', 50, type=int),
        )
        return action_response(result)

    def export_users_data(self):
        return action_response(self.super_admin_actions.export_users_data(self._actor_id()))

    # ─── User API ───────────────────────────────────────────────────────────

    def get_me(self):
        claims = get_current_claims()
        account = self.accounts.find_account_by_id(claims.subject_id)
        if account is None:
            return jsonify({'error': ErrorCode.USER_NOT_FOUND.value}), 404
        return jsonify({
            'user': account.to_public_dict(),
            'permissions': list(get_permissions_for_role(account.role)),
        }), 200

    def submit_seller_application(self):
        data = self._payload()
        result = self.seller_actions.submit_seller_application(
            self._actor_id(),
            data.get('businessName'),
            business_description=data.get('businessDescription'),
        )
        if result.success:
            return jsonify(result.to_dict()), 201
        return action_response(result)


def create_app(services=None, config_path: Optional[str] = None, signing_key: Optional[str] = None, **configs) -> FlaskAppWrapper:
    """
    Build the marketplace web app.

    Args:
        services: Object exposing account_service, audit_log_service,
                  token_invalidation_service and seller_application_service.
                  Defaults to a PostgresServiceFactory built from the config.
        config_path: YAML config to load (when no config is loaded yet, or to replace it)
        signing_key: Claims signing key; defaults to the CLAIMS_SIGNING_KEY secret
    """
    try:
        if config_path:
            load_config(config_path)
        else:
            get_full_config()
    except ConfigNotReadyError:
        load_config()

    if services is None:
        services = PostgresServiceFactory.from_yaml_config(get_full_config())
        PostgresServiceFactory.set_instance(services)

    app = Flask(__name__, template_folder=TEMPLATE_FOLDER)
    return FlaskAppWrapper(app, services, signing_key=signing_key, **configs)
