"""Super-admin operations: role management, audit log review, data export."""

from typing import Optional

from src.marketplace.actions.admin_actions import USER_TARGET, paginate, validate_page
from src.marketplace.actions.base import ActionResult, PrivilegedOperations, invalid_input
from src.utils.logging import get_logger
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.permission_enum import Permission, Role

logger = get_logger(__name__)


class SuperAdminActions(PrivilegedOperations):

    def __init__(self, account_store, audit_log, invalidations):
        super().__init__(account_store)
        self.audit_log = audit_log
        self.invalidations = invalidations

    def update_user_role(self, actor_id: str, user_id: str, role: str) -> ActionResult:
        """
        Change another account's role.

        Args:
            actor_id: Acting super admin
            user_id: Account whose role changes
            role: New role name

        Returns:
            ActionResult; CANNOT_CHANGE_OWN_ROLE when user_id is the actor
        """
        actor, failure = self._authorize_actor(actor_id, Permission.Admin.CREATE_ADMINS, "update_user_role")
        if failure is not None:
            return failure

        try:
            new_role = Role(role)
        except ValueError:
            return invalid_input("role", f"Unknown role: {role}")

        if user_id == actor.id:
            return ActionResult.fail(ErrorCode.CANNOT_CHANGE_OWN_ROLE)

        if self.accounts.find_account_by_id(user_id) is None:
            return ActionResult.fail(ErrorCode.USER_NOT_FOUND)

        self.accounts.update_account_role(user_id, new_role)
        self.invalidations.append(user_id, f"role_changed_to_{new_role.value}")
        self.audit_log.append(
            actor_id=actor.id,
            actor_role=actor.role,
            action="user.role_changed",
            target_type=USER_TARGET,
            target_id=user_id,
            metadata={"newRole": new_role.value},
        )
        return ActionResult.ok()

    def get_audit_logs(
        self,
        actor_id: str,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> ActionResult:
        actor, failure = self._authorize_actor(actor_id, Permission.Moderation.VIEW_AUDIT_LOGS, "get_audit_logs")
        if failure is not None:
            return failure

        bad_page = validate_page(page, limit)
        if bad_page is not None:
            return bad_page

        # Admins only see what they did themselves
        author_filter = actor.id if actor.role is Role.ADMIN else None

        result = self.audit_log.list_entries(
            actor_id=author_filter,
            action=action,
            target_type=target_type,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ActionResult.ok({
            "entries": [entry.to_dict() for entry in result["entries"]],
            "pagination": paginate(page, limit, result["total"]),
        })

    def export_users_data(self, actor_id: str) -> ActionResult:
        actor, failure = self._authorize_actor(actor_id, Permission.Admin.EXPORT_DATA, "export_users_data")
        if failure is not None:
            return failure

        result = self.accounts.list_accounts(limit=None)
        users = [account.to_public_dict() for account in result["accounts"]]

        self.audit_log.append(
            actor_id=actor.id,
            actor_role=actor.role,
            action="data.exported",
            target_type=USER_TARGET,
            target_id="all",
            metadata={"exportedCount": len(users)},
        )
        logger.info(f"{actor.id} exported {len(users)} accounts")
        return ActionResult.ok({"users": users})
