"""
Shared plumbing for business operations.

Every operation follows the same sequence: resolve the actor, authorize,
validate, then execute. The first failure is returned as an ActionResult and
nothing after it runs.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from src.utils.logging import get_logger
from src.utils.rbac.audit import log_permission_check
from src.utils.rbac.authorization import ErrorCode, authorize
from src.utils.rbac.registry import PermissionLike, permission_value

logger = get_logger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a business operation; error is a stable ErrorCode on failure."""
    success: bool
    error: Optional[ErrorCode] = None
    data: Any = None
    details: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ErrorCode, details: Optional[Dict[str, str]] = None) -> "ActionResult":
        return cls(success=False, error=error, details=details or {})

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            body: Dict[str, Any] = {"success": True}
            if self.data is not None:
                body["data"] = self.data
            return body
        body = {"error": self.error.value}
        if self.details:
            body["details"] = self.details
        return body


class PrivilegedOperations:
    """
    Base for operation groups that act on behalf of an authenticated actor.

    The actor's role and status are always re-read from the account store,
    never taken from claims, so a demotion or suspension applies immediately.
    """

    def __init__(self, account_store):
        self.accounts = account_store

    def _authorize_actor(self, actor_id: Optional[str], permission: PermissionLike, operation: str) -> Tuple[Optional[Any], Optional[ActionResult]]:
        """
        Returns:
            (actor account, None) when authorized, (None, failed ActionResult) otherwise
        """
        if not actor_id:
            return None, ActionResult.fail(ErrorCode.UNAUTHENTICATED)

        actor = self.accounts.find_account_by_id(actor_id)
        if actor is None:
            logger.warning(f"{operation}: actor {actor_id} no longer exists")
            return None, ActionResult.fail(ErrorCode.UNAUTHENTICATED)

        decision = authorize(actor.role, actor.account_status, permission)
        log_permission_check(
            user=actor.id,
            permission=permission_value(permission),
            granted=decision.authorized,
            endpoint=operation,
            role=actor.role,
            error=decision.error.value if decision.error else None,
        )
        if not decision.authorized:
            return None, ActionResult.fail(decision.error)
        return actor, None


def validate_reason(reason: Optional[str], min_length: int = 5, max_length: int = 500) -> Optional[str]:
    """Message describing why a free-text reason is invalid, or None if it is fine."""
    text = (reason or "").strip()
    if len(text) < min_length:
        return f"Reason must be at least {min_length} characters"
    if len(text) > max_length:
        return f"Reason must be at most {max_length} characters"
    return None


def invalid_input(field_name: str, message: Union[str, None]) -> ActionResult:
    return ActionResult.fail(ErrorCode.INVALID_INPUT, {field_name: message})
