"""
Ownership-scoped access to user-owned resources.

Each action on a user-owned resource has exactly one (own, any) permission
pair. Access is decided by can_access_resource after the account-status gate
and an owner lookup; a target that does not exist is reported as not found
before any permission is considered.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from src.marketplace.actions.base import ActionResult
from src.utils.logging import get_logger
from src.utils.rbac.audit import log_permission_check
from src.utils.rbac.authorization import ErrorCode, authorize, status_error
from src.utils.rbac.permission_enum import Permission
from src.utils.rbac.permissions import can_access_resource, is_owner

logger = get_logger(__name__)

# (resource kind, resource id) -> owner id, or None if the resource does not exist
OwnerLookup = Callable[[str, str], Optional[str]]

# An order has two owning parties; each action names the one it is checked against.
ORDER_BUYER = "order"
ORDER_SELLER = "order.seller"


@dataclass(frozen=True)
class ResourceAction:
    resource: str
    own_permission: str
    any_permission: str
    not_found: ErrorCode


def _action(resource: str, own, any_, not_found: ErrorCode) -> ResourceAction:
    return ResourceAction(resource, own.value, any_.value, not_found)


RESOURCE_ACTIONS: Mapping[str, ResourceAction] = MappingProxyType({
    "listing.edit": _action("listing", Permission.Listing.EDIT_OWN, Permission.Listing.EDIT_ANY, ErrorCode.LISTING_NOT_FOUND),
    "listing.delete": _action("listing", Permission.Listing.DELETE_OWN, Permission.Listing.DELETE_ANY, ErrorCode.LISTING_NOT_FOUND),
    "listing.viewAnalytics": _action("listing", Permission.Listing.VIEW_ANALYTICS_OWN, Permission.Listing.VIEW_ANALYTICS_ALL, ErrorCode.LISTING_NOT_FOUND),
    "order.view": _action(ORDER_BUYER, Permission.Order.VIEW_OWN, Permission.Order.VIEW_ALL, ErrorCode.ORDER_NOT_FOUND),
    "order.cancel": _action(ORDER_BUYER, Permission.Order.CANCEL_OWN, Permission.Order.CANCEL_ANY, ErrorCode.ORDER_NOT_FOUND),
    "order.updateStatus": _action(ORDER_SELLER, Permission.Order.UPDATE_STATUS_OWN, Permission.Order.UPDATE_STATUS_ANY, ErrorCode.ORDER_NOT_FOUND),
    "review.edit": _action("review", Permission.Review.EDIT_OWN, Permission.Review.MODERATE_ANY, ErrorCode.REVIEW_NOT_FOUND),
    "review.delete": _action("review", Permission.Review.DELETE_OWN, Permission.Review.MODERATE_ANY, ErrorCode.REVIEW_NOT_FOUND),
    "profile.view": _action("profile", Permission.Profile.VIEW_OWN, Permission.Profile.VIEW_ANY, ErrorCode.USER_NOT_FOUND),
    "profile.edit": _action("profile", Permission.Profile.EDIT_OWN, Permission.Profile.EDIT_ANY, ErrorCode.USER_NOT_FOUND),
})


class ResourceAccess:
    """
    Decide whether the holder of some claims may act on a specific resource.

    Args:
        owner_lookup: Resolves (resource kind, id) to the owning account id.
                      Orders are looked up as ORDER_BUYER (view, cancel,
                      refund) or ORDER_SELLER (status updates).
    """

    def __init__(self, owner_lookup: OwnerLookup):
        self.owner_lookup = owner_lookup

    def check(self, claims, action_name: str, resource_id: str) -> ActionResult:
        """
        Args:
            claims: SessionClaims of the caller, or None when unauthenticated
            action_name: Key into RESOURCE_ACTIONS, e.g. 'listing.edit'
            resource_id: Id of the target resource

        Returns:
            ActionResult.ok(owner id) when access is granted
        """
        action = RESOURCE_ACTIONS.get(action_name)
        if action is None:
            raise KeyError(f"Unknown resource action: {action_name}")

        if claims is None:
            return ActionResult.fail(ErrorCode.UNAUTHENTICATED)

        error = status_error(claims.account_status)
        if error is not None:
            return ActionResult.fail(error)

        owner_id = self.owner_lookup(action.resource, resource_id)
        if owner_id is None:
            return ActionResult.fail(action.not_found)

        granted = can_access_resource(
            claims.subject_id, owner_id, claims.role,
            action.own_permission, action.any_permission,
        )
        log_permission_check(
            user=claims.subject_id,
            permission=f"{action.own_permission}|{action.any_permission}",
            granted=granted,
            endpoint=action_name,
            role=claims.role,
            error=None if granted else ErrorCode.INSUFFICIENT_PERMISSIONS.value,
            extra={"resource_id": resource_id},
        )
        if not granted:
            return ActionResult.fail(ErrorCode.INSUFFICIENT_PERMISSIONS)
        return ActionResult.ok(owner_id)

    def check_refund_request(self, claims, order_id: str) -> ActionResult:
        """Only the buyer of an order may request a refund for it."""
        if claims is None:
            return ActionResult.fail(ErrorCode.UNAUTHENTICATED)

        decision = authorize(claims.role, claims.account_status, Permission.Order.REFUND_REQUEST)
        if not decision.authorized:
            return ActionResult.fail(decision.error)

        buyer_id = self.owner_lookup(ORDER_BUYER, order_id)
        if buyer_id is None:
            return ActionResult.fail(ErrorCode.ORDER_NOT_FOUND)

        if not is_owner(claims.subject_id, buyer_id):
            logger.warning(f"{claims.subject_id} requested a refund for order {order_id} they did not buy")
            return ActionResult.fail(ErrorCode.INSUFFICIENT_PERMISSIONS)
        return ActionResult.ok(buyer_id)
