"""
Postgres-backed system of record for the authorization core.

- AccountService: account lookup and the status/role mutations
- AuditLogService: append-only audit records for privileged operations
- TokenInvalidationService: append-only "claims are stale" markers
- SellerApplicationService: seller applications (submission, listing, review)

Database errors are not caught here; callers see psycopg2 exceptions as-is.
"""

import json
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

import psycopg2.extensions
from psycopg2.extras import RealDictCursor

from src.utils.connection_pool import ConnectionPool
from src.utils.logging import get_logger
from src.utils.rbac.permission_enum import AccountStatus, Role
from src.utils.sql import (
    SQL_COUNT_ACCOUNTS,
    SQL_COUNT_AUDIT_LOGS,
    SQL_COUNT_SELLER_APPLICATIONS,
    SQL_GET_ACCOUNT_BY_EMAIL,
    SQL_GET_ACCOUNT_BY_ID,
    SQL_GET_PENDING_SELLER_APPLICATION,
    SQL_GET_SELLER_APPLICATION,
    SQL_INSERT_ACCOUNT,
    SQL_INSERT_AUDIT_LOG,
    SQL_INSERT_SELLER_APPLICATION,
    SQL_INSERT_TOKEN_INVALIDATION,
    SQL_LIST_ACCOUNTS,
    SQL_LIST_AUDIT_LOGS,
    SQL_LIST_SELLER_APPLICATIONS,
    SQL_REVIEW_SELLER_APPLICATION,
    SQL_UPDATE_ACCOUNT_ROLE,
    SQL_UPDATE_ACCOUNT_STATUS,
)

logger = get_logger(__name__)


@dataclass
class Account:
    """An account row, as far as the authorization core cares."""
    id: str
    email: str
    role: Role = Role.USER
    account_status: AccountStatus = AccountStatus.ACTIVE
    display_name: Optional[str] = None
    password_hash: Optional[str] = None
    suspension_reason: Optional[str] = None
    suspension_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_local_credential(self) -> bool:
        return bool(self.password_hash)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Account':
        return cls(
            id=row["id"],
            email=row["email"],
            display_name=row.get("display_name"),
            password_hash=row.get("password_hash"),
            role=Role(row["role"]),
            account_status=AccountStatus(row["account_status"]),
            suspension_reason=row.get("suspension_reason"),
            suspension_expires_at=row.get("suspension_expires_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Account fields safe to return to API clients (no credential hash)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.display_name,
            "role": self.role.value,
            "accountStatus": self.account_status.value,
            "suspensionReason": self.suspension_reason,
            "suspensionExpiresAt": self.suspension_expires_at.isoformat() if self.suspension_expires_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class AuditRecord:
    actor_id: str
    actor_role: str
    action: str
    target_type: str
    target_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'AuditRecord':
        metadata = row.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return cls(
            id=row.get("id"),
            actor_id=row["actor_id"],
            actor_role=row["actor_role"],
            action=row["action"],
            target_type=row["target_type"],
            target_id=row["target_id"],
            metadata=metadata,
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "actorId": self.actor_id,
            "actorRole": self.actor_role,
            "action": self.action,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "metadata": self.metadata,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class TokenInvalidation:
    user_id: str
    reason: str
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class SellerApplication:
    id: str
    user_id: str
    business_name: str
    business_description: Optional[str] = None
    status: str = "PENDING"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'SellerApplication':
        return cls(**{k: row.get(k) for k in (
            "id", "user_id", "business_name", "business_description", "status", "reviewed_by",
            "reviewed_at", "rejection_reason", "created_at",
        )})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessName": self.business_name,
            "businessDescription": self.business_description,
            "status": self.status,
            "reviewedBy": self.reviewed_by,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "rejectionReason": self.rejection_reason,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class _PostgresService:
    """Shared connection handling: commit on success, roll back on error."""

    def __init__(self, connection_pool: ConnectionPool):
        self._pool = connection_pool

    @contextmanager
    def _connect(self) -> Generator[psycopg2.extensions.connection, None, None]:
        conn = self._pool.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.release_connection(conn)


def _paginate_clause(limit: Optional[int], offset: int) -> str:
    if limit is None:
        return f" OFFSET {int(offset)}"
    return f" LIMIT {int(limit)} OFFSET {int(offset)}"


class AccountService(_PostgresService):
    """Account store: the authoritative source of role and account status."""

    def find_account_by_id(self, account_id: str) -> Optional[Account]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_GET_ACCOUNT_BY_ID, (account_id,))
                row = cur.fetchone()
        return Account.from_row(row) if row else None

    def find_account_by_email(self, email: str) -> Optional[Account]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_GET_ACCOUNT_BY_EMAIL, (email,))
                row = cur.fetchone()
        return Account.from_row(row) if row else None

    def create_account(
        self,
        email: str,
        display_name: Optional[str] = None,
        password_hash: Optional[str] = None,
        role: Role = Role.USER,
        account_status: AccountStatus = AccountStatus.ACTIVE,
        account_id: Optional[str] = None,
    ) -> Account:
        account_id = account_id or uuid.uuid4().hex
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_INSERT_ACCOUNT, (
                    account_id, email, display_name, password_hash,
                    Role(role).value, AccountStatus(account_status).value,
                ))
                row = cur.fetchone()
        logger.info(f"Created account {account_id} ({email}) with role {Role(role).value}")
        return Account.from_row(row)

    def update_account_status(
        self,
        account_id: str,
        status: AccountStatus,
        reason: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(SQL_UPDATE_ACCOUNT_STATUS, (
                    AccountStatus(status).value, reason, expires_at, account_id,
                ))
        logger.info(f"Account {account_id} status set to {AccountStatus(status).value}")

    def update_account_role(self, account_id: str, role: Role) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(SQL_UPDATE_ACCOUNT_ROLE, (Role(role).value, account_id))
        logger.info(f"Account {account_id} role set to {Role(role).value}")

    def list_accounts(
        self,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        account_status: Optional[AccountStatus] = None,
        limit: Optional[int] = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        List accounts with optional filters, newest first.

        Returns:
            Dict with 'accounts' (List[Account]) and 'total'
        """
        conditions: List[str] = []
        params: List[Any] = []
        if search:
            conditions.append("(email ILIKE %s OR display_name ILIKE %s)")
            params.extend([f"%{search}%", f"%{search}%"])
        if role:
            conditions.append("role = %s")
            params.append(Role(role).value)
        if account_status:
            conditions.append("account_status = %s")
            params.append(AccountStatus(account_status).value)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_COUNT_ACCOUNTS + where, params)
                total = cur.fetchone()["count"]
                cur.execute(
                    SQL_LIST_ACCOUNTS + where + " ORDER BY created_at DESC" + _paginate_clause(limit, offset),
                    params,
                )
                rows = cur.fetchall()

        return {
            "accounts": [Account.from_row(row) for row in rows],
            "total": total,
        }


class AuditLogService(_PostgresService):
    """Append-only audit sink. Records are never updated or deleted."""

    def append(
        self,
        actor_id: str,
        actor_role: str,
        action: str,
        target_type: str,
        target_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        payload = {k: v for k, v in (metadata or {}).items() if v is not None}
        role_value = actor_role.value if isinstance(actor_role, Role) else actor_role
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_INSERT_AUDIT_LOG, (
                    actor_id, role_value, action, target_type, target_id,
                    json.dumps(payload, default=str) if payload else None,
                ))
                row = cur.fetchone()
        return AuditRecord(
            id=row["id"],
            actor_id=actor_id,
            actor_role=role_value,
            action=action,
            target_type=target_type,
            target_id=target_id,
            metadata=payload,
            created_at=row["created_at"],
        )

    def list_entries(
        self,
        actor_id: Optional[str] = None,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
        limit: Optional[int] = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        conditions: List[str] = []
        params: List[Any] = []
        if actor_id:
            conditions.append("actor_id = %s")
            params.append(actor_id)
        if action:
            conditions.append("action = %s")
            params.append(action)
        if target_type:
            conditions.append("target_type = %s")
            params.append(target_type)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""

        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_COUNT_AUDIT_LOGS + where, params)
                total = cur.fetchone()["count"]
                cur.execute(
                    SQL_LIST_AUDIT_LOGS + where + " ORDER BY created_at DESC" + _paginate_clause(limit, offset),
                    params,
                )
                rows = cur.fetchall()

        return {
            "entries": [AuditRecord.from_row(row) for row in rows],
            "total": total,
        }


class TokenInvalidationService(_PostgresService):
    """Append-only invalidation markers consumed as hints by the claims refresh."""

    def append(self, user_id: str, reason: str) -> TokenInvalidation:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_INSERT_TOKEN_INVALIDATION, (user_id, reason))
                row = cur.fetchone()
        logger.info(f"Claims invalidated for {user_id}: {reason}")
        return TokenInvalidation(user_id=user_id, reason=reason, id=row["id"], created_at=row["created_at"])


class SellerApplicationService(_PostgresService):

    def get_application(self, application_id: str) -> Optional[SellerApplication]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_GET_SELLER_APPLICATION, (application_id,))
                row = cur.fetchone()
        return SellerApplication.from_row(row) if row else None

    def mark_reviewed(
        self,
        application_id: str,
        status: str,
        reviewed_by: str,
        rejection_reason: Optional[str] = None,
    ) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(SQL_REVIEW_SELLER_APPLICATION, (status, reviewed_by, rejection_reason, application_id))

    def find_pending_for_user(self, user_id: str) -> Optional[SellerApplication]:
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_GET_PENDING_SELLER_APPLICATION, (user_id,))
                row = cur.fetchone()
        return SellerApplication.from_row(row) if row else None

    def create_application(
        self,
        user_id: str,
        business_name: str,
        business_description: Optional[str] = None,
        application_id: Optional[str] = None,
    ) -> SellerApplication:
        application_id = application_id or uuid.uuid4().hex
        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_INSERT_SELLER_APPLICATION, (
                    application_id, user_id, business_name, business_description,
                ))
                row = cur.fetchone()
        logger.info(f"Seller application {application_id} submitted by {user_id}")
        return SellerApplication.from_row(row)

    def list_applications(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        List applications, newest first.

        Returns:
            Dict with 'applications' (List[SellerApplication]) and 'total'
        """
        where = " WHERE status = %s" if status else ""
        params: List[Any] = [status] if status else []

        with self._connect() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(SQL_COUNT_SELLER_APPLICATIONS + where, params)
                total = cur.fetchone()["count"]
                cur.execute(
                    SQL_LIST_SELLER_APPLICATIONS + where + " ORDER BY created_at DESC" + _paginate_clause(limit, offset),
                    params,
                )
                rows = cur.fetchall()

        return {
            "applications": [SellerApplication.from_row(row) for row in rows],
            "total": total,
        }
