"""
Tests for the marketplace Flask app: sign-in, the perimeter gate, claims
refresh and the admin API, using the Flask test client and in-memory stores.
"""
import pytest

from src.interfaces.marketplace_app.app import create_app, http_status_for
from src.utils.password import hash_password
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.decorators import TOKEN_RESPONSE_HEADER
from src.utils.rbac.permission_enum import AccountStatus, Permission, Role

SIGNING_KEY = "unit-test-signing-key-0123456789abcdef"
PASSWORD = "correct horse"


@pytest.fixture(scope="module")
def password_hash():
    return hash_password(PASSWORD, rounds=4)


@pytest.fixture
def wrapper(loaded_config, services, accounts, password_hash):
    for account_id, role in (
        ("root", Role.SUPER_ADMIN),
        ("admin", Role.ADMIN),
        ("admin2", Role.ADMIN),
        ("seller", Role.SELLER),
        ("buyer", Role.USER),
    ):
        accounts.add(account_id, role=role, password_hash=password_hash)
    accounts.add("banned", status=AccountStatus.BANNED, password_hash=password_hash)

    wrapper = create_app(services=services, signing_key=SIGNING_KEY, testing=True)
    return wrapper


@pytest.fixture
def app(wrapper):
    return wrapper.app


def _login(client, account_id):
    response = client.post("/auth/login", json={"email": f"{account_id}@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.get_json()
    return response.get_json()


class TestPublicRoutes:

    def test_health(self, app):
        response = app.test_client().get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "OK"}

    def test_login_page_renders(self, app):
        response = app.test_client().get("/auth/login?callbackUrl=/dashboard/seller")
        assert response.status_code == 200
        assert b"/dashboard/seller" in response.data

    def test_anonymous_session_is_empty(self, app):
        assert app.test_client().get("/api/auth/session").get_json() == {}

    def test_http_status_mapping(self):
        assert http_status_for(ErrorCode.UNAUTHENTICATED) == 401
        assert http_status_for(ErrorCode.USER_NOT_FOUND) == 404
        assert http_status_for(ErrorCode.CANNOT_BAN_ADMIN) == 403
        assert http_status_for(ErrorCode.APPLICATION_ALREADY_REVIEWED) == 409


class TestSignIn:

    def test_json_login_returns_token_and_user(self, app):
        body = _login(app.test_client(), "seller")
        assert body["success"] is True
        assert body["token"]
        assert body["user"] == {"id": "seller", "role": "SELLER", "accountStatus": "ACTIVE"}

    def test_wrong_password(self, app):
        response = app.test_client().post("/auth/login", json={"email": "seller@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.get_json() == {"error": "INVALID_CREDENTIALS"}

    def test_banned_account_refused(self, app):
        response = app.test_client().post("/auth/login", json={"email": "banned@example.com", "password": PASSWORD})
        assert response.status_code == 403
        assert response.get_json() == {"error": "ACCOUNT_BANNED"}

    def test_banned_form_login_redirects(self, app):
        response = app.test_client().post("/auth/login", data={"email": "banned@example.com", "password": PASSWORD})
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/banned")

    def test_form_login_follows_callback(self, app):
        response = app.test_client().post("/auth/login", data={
            "email": "admin@example.com",
            "password": PASSWORD,
            "callbackUrl": "/dashboard/admin",
        })
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/dashboard/admin")

    def test_form_login_ignores_offsite_callback(self, app):
        response = app.test_client().post("/auth/login", data={
            "email": "buyer@example.com",
            "password": PASSWORD,
            "callbackUrl": "//evil.example.com/",
        })
        assert response.headers["Location"].endswith("/dashboard/user")

    def test_signed_in_user_sent_away_from_login(self, app):
        client = app.test_client()
        _login(client, "seller")
        response = client.get("/auth/login")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/dashboard/seller")

    def test_register(self, app, accounts):
        response = app.test_client().post("/auth/register", json={
            "email": "new@example.com", "name": "New", "password": PASSWORD,
        })
        assert response.status_code == 201
        assert response.get_json()["user"]["role"] == "USER"

        duplicate = app.test_client().post("/auth/register", json={"email": "new@example.com", "password": PASSWORD})
        assert duplicate.status_code == 409

    def test_signout_clears_session(self, app):
        client = app.test_client()
        _login(client, "buyer")
        assert client.post("/api/auth/signout", json={}).status_code == 200
        assert client.get("/api/auth/session").get_json() == {}


class TestPerimeterGate:

    def test_anonymous_dashboard_redirects_to_login(self, app):
        response = app.test_client().get("/dashboard/admin/users")
        assert response.status_code == 302
        assert "/auth/login?callbackUrl=/dashboard/admin/users" in response.headers["Location"]

    def test_anonymous_admin_api_gets_401(self, app):
        response = app.test_client().get("/api/admin/users")
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHENTICATED"

    def test_seller_kept_out_of_admin_dashboard(self, app):
        client = app.test_client()
        _login(client, "seller")
        response = client.get("/dashboard/admin")
        assert response.status_code == 302
        assert "/forbidden?error=insufficient_permissions" in response.headers["Location"]

    def test_admin_reaches_admin_dashboard(self, app):
        client = app.test_client()
        _login(client, "admin")
        assert client.get("/dashboard/admin").status_code == 200

    def test_buyer_api_forbidden(self, app):
        client = app.test_client()
        _login(client, "buyer")
        response = client.get("/api/admin/users")
        assert response.status_code == 403
        assert response.get_json()["error"] == "FORBIDDEN"


class TestClaimsRefresh:

    def test_suspension_reaches_live_session(self, wrapper, app):
        buyer = app.test_client()
        _login(buyer, "buyer")
        assert buyer.get("/dashboard/user").status_code == 200

        admin = app.test_client()
        _login(admin, "admin")
        response = admin.post("/api/admin/users/buyer/suspend", json={"reason": "Chargeback fraud"})
        assert response.status_code == 200

        wrapper.issuer.refresh_interval_seconds = 0
        response = buyer.get("/dashboard/user")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/suspended")

    def test_update_trigger_picks_up_role_change(self, app, accounts):
        client = app.test_client()
        _login(client, "buyer")

        accounts.accounts["buyer"].role = Role.SELLER
        stale = client.get("/api/auth/session").get_json()
        fresh = client.get("/api/auth/session?update=1").get_json()

        assert stale["user"]["role"] == "USER"
        assert fresh["user"]["role"] == "SELLER"
        assert client.get("/dashboard/seller").status_code == 200

    def test_deleted_account_loses_session(self, wrapper, app, accounts):
        client = app.test_client()
        _login(client, "buyer")
        del accounts.accounts["buyer"]

        wrapper.issuer.refresh_interval_seconds = 0
        response = client.get("/dashboard/user")
        assert response.status_code == 302
        assert "/auth/login" in response.headers["Location"]


class TestBearerTokens:

    def test_bearer_token_reaches_user_api(self, app):
        token = _login(app.test_client(), "seller")["token"]

        response = app.test_client().get("/api/user/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        body = response.get_json()
        assert body["user"]["id"] == "seller"
        assert Permission.Listing.CREATE.value in body["permissions"]
        assert TOKEN_RESPONSE_HEADER not in response.headers

    def test_refreshed_token_returned_in_header(self, wrapper, app):
        token = _login(app.test_client(), "seller")["token"]
        wrapper.issuer.refresh_interval_seconds = 0

        response = app.test_client().get("/api/user/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.headers[TOKEN_RESPONSE_HEADER]

    def test_garbage_token_is_anonymous(self, app):
        response = app.test_client().get("/api/user/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_garbage_bearer_keeps_cookie_session(self, app):
        client = app.test_client()
        _login(client, "buyer")

        rejected = client.get("/api/user/me", headers={"Authorization": "Bearer not-a-jwt"})
        cookie = client.get("/api/user/me")

        assert rejected.status_code == 401
        assert cookie.status_code == 200
        assert cookie.get_json()["user"]["id"] == "buyer"

    def test_bearer_refresh_leaves_cookie_session_alone(self, wrapper, app):
        seller_token = _login(app.test_client(), "seller")["token"]
        client = app.test_client()
        _login(client, "buyer")
        wrapper.issuer.refresh_interval_seconds = 0

        response = client.get("/api/user/me", headers={"Authorization": f"Bearer {seller_token}"})

        assert response.get_json()["user"]["id"] == "seller"
        assert client.get("/api/auth/session").get_json()["user"]["id"] == "buyer"


class TestAdminApi:

    def test_admin_cannot_suspend_peer(self, app, accounts, audit_log):
        client = app.test_client()
        _login(client, "admin")

        response = client.post("/api/admin/users/admin2/suspend", json={"reason": "Repeated policy violations"})

        assert response.status_code == 403
        assert response.get_json() == {"error": "CANNOT_SUSPEND_ADMIN"}
        assert accounts.accounts["admin2"].account_status is AccountStatus.ACTIVE
        assert audit_log.records == []

    def test_suspend_with_expiry(self, app, accounts):
        client = app.test_client()
        _login(client, "admin")

        response = client.post("/api/admin/users/seller/suspend", json={
            "reason": "Chargeback fraud", "expiresAt": "2026-12-01T00:00:00Z",
        })

        assert response.status_code == 200
        assert accounts.accounts["seller"].suspension_expires_at.year == 2026

    def test_bad_expiry(self, app):
        client = app.test_client()
        _login(client, "admin")
        response = client.post("/api/admin/users/seller/suspend", json={
            "reason": "Chargeback fraud", "expiresAt": "next tuesday",
        })
        assert response.status_code == 400
        assert response.get_json()["details"] == {"expiresAt": "Invalid timestamp"}

    def test_list_users(self, app):
        client = app.test_client()
        _login(client, "admin")
        body = client.get("/api/admin/users?role=ADMIN").get_json()
        assert body["success"] is True
        assert body["data"]["pagination"]["total"] == 2

    def test_role_change_requires_super_admin(self, app, accounts):
        admin = app.test_client()
        _login(admin, "admin")
        assert admin.post("/api/admin/users/buyer/role", json={"role": "SELLER"}).status_code == 403

        root = app.test_client()
        _login(root, "root")
        assert root.post("/api/admin/users/buyer/role", json={"role": "SELLER"}).status_code == 200
        assert accounts.accounts["buyer"].role is Role.SELLER

    def test_missing_user(self, app):
        client = app.test_client()
        _login(client, "admin")
        response = client.post("/api/admin/users/ghost/ban", json={"reason": "Selling counterfeit goods"})
        assert response.status_code == 404

    def test_export_is_super_admin_only(self, app):
        admin = app.test_client()
        _login(admin, "admin")
        assert admin.get("/api/admin/export").status_code == 403

        root = app.test_client()
        _login(root, "root")
        assert len(root.get("/api/admin/export").get_json()["data"]["users"]) == 6


class TestSellerApplicationApi:

    def test_buyer_applies_and_admin_lists(self, app, applications):
        buyer = app.test_client()
        _login(buyer, "buyer")

        created = buyer.post("/api/user/seller-application", json={
            "businessName": "Corner Bakery", "businessDescription": "Bread and pastries",
        })
        duplicate = buyer.post("/api/user/seller-application", json={"businessName": "Corner Bakery"})

        assert created.status_code == 201
        assert created.get_json()["data"]["status"] == "PENDING"
        assert duplicate.status_code == 409
        assert duplicate.get_json() == {"error": "APPLICATION_ALREADY_PENDING"}

        admin = app.test_client()
        _login(admin, "admin")
        body = admin.get("/api/admin/seller-applications?status=PENDING").get_json()
        assert [a["userId"] for a in body["data"]["applications"]] == ["buyer"]
        assert body["data"]["pagination"]["total"] == 1

    def test_seller_cannot_apply(self, app):
        client = app.test_client()
        _login(client, "seller")
        response = client.post("/api/user/seller-application", json={"businessName": "Corner Bakery"})
        assert response.status_code == 403
        assert response.get_json() == {"error": "ONLY_USERS_CAN_APPLY"}

    def test_short_business_name(self, app):
        client = app.test_client()
        _login(client, "buyer")
        response = client.post("/api/user/seller-application", json={"businessName": "B"})
        assert response.status_code == 400
        assert "businessName" in response.get_json()["details"]

    def test_anonymous_cannot_apply(self, app):
        response = app.test_client().post("/api/user/seller-application", json={"businessName": "Corner Bakery"})
        assert response.status_code == 401
