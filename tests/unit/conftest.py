"""
Shared fixtures: in-memory stand-ins for the Postgres-backed services.

The fakes keep the same method signatures as AccountService,
AuditLogService, TokenInvalidationService and SellerApplicationService so
the issuer, the actions and the Flask app can run without a database.
"""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from src.utils.account_service import Account, AuditRecord, SellerApplication, TokenInvalidation
from src.utils.config_access import load_config, reset_config
from src.utils.rbac.permission_enum import AccountStatus, Role


class FakeAccountStore:

    def __init__(self, accounts=()):
        self.accounts = {a.id: a for a in accounts}
        self.status_updates = []
        self.role_updates = []
        self.lookups = []

    def add(self, account_id, role=Role.USER, status=AccountStatus.ACTIVE, email=None, password_hash=None):
        account = Account(
            id=account_id,
            email=email or f"{account_id}@example.com",
            role=role,
            account_status=status,
            display_name=account_id,
            password_hash=password_hash,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        self.accounts[account_id] = account
        return account

    def find_account_by_id(self, account_id):
        self.lookups.append(account_id)
        return self.accounts.get(account_id)

    def find_account_by_email(self, email):
        for account in self.accounts.values():
            if account.email.lower() == (email or "").lower():
                return account
        return None

    def create_account(self, email, display_name=None, password_hash=None, role=Role.USER,
                       account_status=AccountStatus.ACTIVE, account_id=None):
        account_id = account_id or f"acct-{len(self.accounts) + 1}"
        account = Account(
            id=account_id,
            email=email,
            display_name=display_name,
            password_hash=password_hash,
            role=Role(role),
            account_status=AccountStatus(account_status),
        )
        self.accounts[account_id] = account
        return account

    def update_account_status(self, account_id, status, reason=None, expires_at=None):
        self.status_updates.append((account_id, status, reason, expires_at))
        account = self.accounts[account_id]
        account.account_status = AccountStatus(status)
        account.suspension_reason = reason
        account.suspension_expires_at = expires_at

    def update_account_role(self, account_id, role):
        self.role_updates.append((account_id, role))
        self.accounts[account_id].role = Role(role)

    def list_accounts(self, search=None, role=None, account_status=None, limit=20, offset=0):
        matches = [
            a for a in self.accounts.values()
            if (role is None or a.role is role)
            and (account_status is None or a.account_status is account_status)
            and (not search or search.lower() in a.email.lower())
        ]
        end = None if limit is None else offset + limit
        return {"accounts": matches[offset:end], "total": len(matches)}


class FakeAuditLog:

    def __init__(self):
        self.records = []

    def append(self, actor_id, actor_role, action, target_type, target_id, metadata=None):
        record = AuditRecord(
            id=len(self.records) + 1,
            actor_id=actor_id,
            actor_role=getattr(actor_role, "value", actor_role),
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        self.records.append(record)
        return record

    def list_entries(self, actor_id=None, action=None, target_type=None, limit=50, offset=0):
        matches = [
            r for r in self.records
            if (actor_id is None or r.actor_id == actor_id)
            and (action is None or r.action == action)
            and (target_type is None or r.target_type == target_type)
        ]
        return {"entries": matches[offset:offset + limit], "total": len(matches)}


class FakeInvalidations:

    def __init__(self):
        self.records = []

    def append(self, user_id, reason):
        record = TokenInvalidation(user_id=user_id, reason=reason, id=len(self.records) + 1)
        self.records.append(record)
        return record


class FakeApplications:

    def __init__(self):
        self.applications = {}
        self.reviews = []

    def add(self, application_id, user_id, status="PENDING"):
        self.applications[application_id] = SellerApplication(
            id=application_id, user_id=user_id, business_name=f"{user_id} trading", status=status,
        )

    def get_application(self, application_id):
        return self.applications.get(application_id)

    def mark_reviewed(self, application_id, status, reviewed_by, rejection_reason=None):
        self.reviews.append((application_id, status, reviewed_by, rejection_reason))
        application = self.applications[application_id]
        application.status = status
        application.reviewed_by = reviewed_by
        application.rejection_reason = rejection_reason

    def find_pending_for_user(self, user_id):
        for application in self.applications.values():
            if application.user_id == user_id and application.status == "PENDING":
                return application
        return None

    def create_application(self, user_id, business_name, business_description=None, application_id=None):
        application_id = application_id or f"app-{len(self.applications) + 1}"
        application = SellerApplication(
            id=application_id,
            user_id=user_id,
            business_name=business_name,
            business_description=business_description,
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        self.applications[application_id] = application
        return application

    def list_applications(self, status=None, limit=20, offset=0):
        matching = [a for a in self.applications.values() if status is None or a.status == status]
        return {"applications": matching[offset:offset + limit], "total": len(matching)}


class PlainVerifier:
    """Credential verifier that stores passwords as 'plain:<password>'."""

    def verify(self, plaintext, hashed):
        return hashed == f"plain:{plaintext}"

    def hash(self, plaintext):
        if not plaintext:
            raise ValueError("Password cannot be empty")
        return f"plain:{plaintext}"


@pytest.fixture
def accounts():
    return FakeAccountStore()


@pytest.fixture
def audit_log():
    return FakeAuditLog()


@pytest.fixture
def invalidations():
    return FakeInvalidations()


@pytest.fixture
def applications():
    return FakeApplications()


@pytest.fixture
def verifier():
    return PlainVerifier()


@pytest.fixture
def services(accounts, audit_log, invalidations, applications):
    return SimpleNamespace(
        account_service=accounts,
        audit_log_service=audit_log,
        token_invalidation_service=invalidations,
        seller_application_service=applications,
    )


@pytest.fixture
def loaded_config(tmp_path):
    """Defaults only, independent of any configs/ directory in the working tree."""
    reset_config()
    config_file = tmp_path / "marketgate.yaml"
    config_file.write_text("name: marketgate-test\n")
    config = load_config(str(config_file))
    yield config
    reset_config()
