"""
Admin operations: account moderation, seller applications, user listing.

Every mutating operation writes, in order: the account change, a claims
invalidation marker for the affected user, and one audit record. A rejected
operation writes nothing.
"""

import math
from datetime import datetime
from typing import Optional

from src.marketplace.actions.base import (
    ActionResult,
    PrivilegedOperations,
    invalid_input,
    validate_reason,
)
from src.utils.logging import get_logger
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.permission_enum import AccountStatus, Permission, Role

logger = get_logger(__name__)

USER_TARGET = "User"
SELLER_APPLICATION_TARGET = "SellerApplication"

REVIEW_APPROVE = "APPROVE"
REVIEW_REJECT = "REJECT"

APPLICATION_STATUSES = ("PENDING", "APPROVED", "REJECTED")

MAX_PAGE_SIZE = 100


def _peer_restriction(actor_role: Role, target_role: Role, admin_error: ErrorCode, super_admin_error: ErrorCode) -> Optional[ErrorCode]:
    """Admins cannot act on admins or super admins; super admins cannot act on super admins."""
    if actor_role is Role.ADMIN and target_role in (Role.ADMIN, Role.SUPER_ADMIN):
        return admin_error
    if actor_role is Role.SUPER_ADMIN and target_role is Role.SUPER_ADMIN:
        return super_admin_error
    return None


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def validate_page(page, limit) -> Optional[ActionResult]:
    if not isinstance(page, int) or page < 1:
        return invalid_input("page", "Page must be a positive integer")
    if not isinstance(limit, int) or limit < 1 or limit > MAX_PAGE_SIZE:
        return invalid_input("limit", f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    return None


class AdminActions(PrivilegedOperations):
    """
    Moderation operations available to ADMIN and SUPER_ADMIN.

    Args:
        account_store: AccountService (or compatible)
        audit_log: AuditLogService (append-only audit sink)
        invalidations: TokenInvalidationService (append-only invalidation sink)
        applications: SellerApplicationService
    """

    def __init__(self, account_store, audit_log, invalidations, applications=None):
        super().__init__(account_store)
        self.audit_log = audit_log
        self.invalidations = invalidations
        self.applications = applications

    def suspend_user(self, actor_id: str, user_id: str, reason: str, expires_at: Optional[datetime] = None) -> ActionResult:
        actor, failure = self._authorize_actor(actor_id, Permission.Moderation.SUSPEND_USERS, "suspend_user")
        if failure is not None:
            return failure

        problem = validate_reason(reason)
        if problem:
            return invalid_input("reason", problem)

        target = self.accounts.find_account_by_id(user_id)
        if target is None:
            return ActionResult.fail(ErrorCode.USER_NOT_FOUND)

        error = _peer_restriction(
            actor.role, target.role,
            ErrorCode.CANNOT_SUSPEND_ADMIN, ErrorCode.CANNOT_SUSPEND_SUPER_ADMIN,
        )
        if error:
            logger.warning(f"{actor.id} ({actor.role.value}) may not suspend {user_id} ({target.role.value})")
            return ActionResult.fail(error)

        reason = reason.strip()
        self.accounts.update_account_status(user_id, AccountStatus.SUSPENDED, reason=reason, expires_at=expires_at)
        self.invalidations.append(user_id, "account_suspended")
        self.audit_log.append(
            actor_id=actor.id,
            actor_role=actor.role,
            action="user.suspended",
            target_type=USER_TARGET,
            target_id=user_id,
            metadata={"reason": reason, "expiresAt": expires_at.isoformat() if expires_at else None},
        )
        return ActionResult.ok()

    def ban_user(self, actor_id: str, user_id: str, reason: str) -> ActionResult:
        actor, failure = self._authorize_actor(actor_id, Permission.Moderation.SUSPEND_USERS, "ban_user")
        if failure is not None:
            return failure

        problem = validate_reason(reason)
        if problem:
            return invalid_input("reason", problem)

        target = self.accounts.find_account_by_id(user_id)
        if target is None:
            return ActionResult.fail(ErrorCode.USER_NOT_FOUND)

        error = _peer_restriction(
            actor.role, target.role,
            ErrorCode.CANNOT_BAN_ADMIN, ErrorCode.CANNOT_BAN_SUPER_ADMIN,
        )
        if error:
            logger.warning(f"{actor.id} ({actor.role.value}) may not ban {user_id} ({target.role.value})")
            return ActionResult.fail(error)

        reason = reason.strip()
        self.accounts.update_account_status(user_id, AccountStatus.BANNED, reason=reason)
        self.invalidations.append(user_id, "account_banned")
        self.audit_log.append(
            actor_id=actor.id,
            actor_role=actor.role,
            action="user.banned",
            target_type=USER_TARGET,
            target_id=user_id,
            metadata={"reason": reason},
        )
        return ActionResult.ok()

    def reactivate_user(self, actor_id: str, user_id: str) -> ActionResult:
        actor, failure = self._authorize_actor(actor_id, Permission.Moderation.SUSPEND_USERS, "reactivate_user")
        if failure is not None:
            return failure

        if self.accounts.find_account_by_id(user_id) is None:
            return ActionResult.fail(ErrorCode.USER_NOT_FOUND)

        self.accounts.update_account_status(user_id, AccountStatus.ACTIVE, reason=None, expires_at=None)
        self.invalidations.append(user_id, "account_reactivated")
        self.audit_log.append(
            actor_id=actor.id,
            actor_role=actor.role,
            action="user.reactivated",
            target_type=USER_TARGET,
            target_id=user_id,
        )
        return ActionResult.ok()

    def review_seller_application(
        self,
        actor_id: str,
        application_id: str,
        action: str,
        rejection_reason: Optional[str] = None,
    ) -> ActionResult:
        """
        Approve or reject a pending seller application.

        Approval upgrades the applicant to SELLER and invalidates their claims
        so the new role shows up on the next refresh.
        """
        actor, failure = self._authorize_actor(actor_id, Permission.Moderation.APPROVE_SELLERS, "review_seller_application")
        if failure is not None:
            return failure

        action = (action or "").upper()
        if action not in (REVIEW_APPROVE, REVIEW_REJECT):
            return invalid_input("action", "Action must be APPROVE or REJECT")
        if rejection_reason and len(rejection_reason) > 500:
            return invalid_input("rejectionReason", "Reason must be at most 500 characters")

        application = self.applications.get_application(application_id)
        if application is None:
            return ActionResult.fail(ErrorCode.APPLICATION_NOT_FOUND)
        if application.status != "PENDING":
            return ActionResult.fail(ErrorCode.APPLICATION_ALREADY_REVIEWED)

        if action == REVIEW_APPROVE:
            self.applications.mark_reviewed(application_id, "APPROVED", reviewed_by=actor.id)
            self.accounts.update_account_role(application.user_id, Role.SELLER)
            self.invalidations.append(application.user_id, "role_upgraded_to_seller")
            self.audit_log.append(
                actor_id=actor.id,
                actor_role=actor.role,
                action="seller.approved",
                target_type=SELLER_APPLICATION_TARGET,
                target_id=application_id,
                metadata={"userId": application.user_id},
            )
        else:
            self.applications.mark_reviewed(
                application_id, "REJECTED", reviewed_by=actor.id, rejection_reason=rejection_reason,
            )
            self.audit_log.append(
                actor_id=actor.id,
                actor_role=actor.role,
                action="seller.rejected",
                target_type=SELLER_APPLICATION_TARGET,
                target_id=application_id,
                metadata={"userId": application.user_id, "reason": rejection_reason},
            )
        return ActionResult.ok()

    def list_seller_applications(
        self,
        actor_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ActionResult:
        _, failure = self._authorize_actor(actor_id, Permission.Moderation.APPROVE_SELLERS, "list_seller_applications")
        if failure is not None:
            return failure

        bad_page = validate_page(page, limit)
        if bad_page is not None:
            return bad_page

        status = status.upper() if status else None
        if status and status not in APPLICATION_STATUSES:
            return invalid_input("status", f"Unknown application status: {status}")

        result = self.applications.list_applications(status=status, limit=limit, offset=(page - 1) * limit)
        return ActionResult.ok({
            "applications": [application.to_dict() for application in result["applications"]],
            "pagination": paginate(page, limit, result["total"]),
        })

    def list_users(
        self,
        actor_id: str,
        search: Optional[str] = None,
        role: Optional[str] = None,
        account_status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ActionResult:
        _, failure = self._authorize_actor(actor_id, Permission.Admin.MANAGE_USERS, "list_users")
        if failure is not None:
            return failure

        bad_page = validate_page(page, limit)
        if bad_page is not None:
            return bad_page

        try:
            role_filter = Role(role) if role else None
        except ValueError:
            return invalid_input("role", f"Unknown role: {role}")
        try:
            status_filter = AccountStatus(account_status) if account_status else None
        except ValueError:
            return invalid_input("accountStatus", f"Unknown account status: {account_status}")

        result = self.accounts.list_accounts(
            search=search,
            role=role_filter,
            account_status=status_filter,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ActionResult.ok({
            "users": [account.to_public_dict() for account in result["accounts"]],
            "pagination": paginate(page, limit, result["total"]),
        })
