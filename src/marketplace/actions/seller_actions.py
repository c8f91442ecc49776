"""Seller onboarding: a USER applies to become a SELLER."""

from typing import Optional

from src.marketplace.actions.base import ActionResult, PrivilegedOperations, invalid_input
from src.utils.logging import get_logger
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.permission_enum import Permission, Role

logger = get_logger(__name__)

BUSINESS_NAME_MIN = 2
BUSINESS_NAME_MAX = 200
BUSINESS_DESCRIPTION_MAX = 2000


class SellerActions(PrivilegedOperations):

    def __init__(self, account_store, applications):
        super().__init__(account_store)
        self.applications = applications

    def submit_seller_application(
        self,
        actor_id: str,
        business_name: str,
        business_description: Optional[str] = None,
    ) -> ActionResult:
        """
        File a seller application for the actor.

        Only plain USER accounts may apply, and only one application per user
        may be pending at a time. Approval happens in
        AdminActions.review_seller_application.

        Returns:
            ActionResult with the new application on success
        """
        actor, failure = self._authorize_actor(actor_id, Permission.Auth.LOGIN, "submit_seller_application")
        if failure is not None:
            return failure

        if actor.role is not Role.USER:
            return ActionResult.fail(ErrorCode.ONLY_USERS_CAN_APPLY)

        name = (business_name or "").strip()
        if len(name) < BUSINESS_NAME_MIN:
            return invalid_input("businessName", f"Business name must be at least {BUSINESS_NAME_MIN} characters")
        if len(name) > BUSINESS_NAME_MAX:
            return invalid_input("businessName", f"Business name must be at most {BUSINESS_NAME_MAX} characters")
        if business_description and len(business_description) > BUSINESS_DESCRIPTION_MAX:
            return invalid_input("businessDescription", f"Description must be at most {BUSINESS_DESCRIPTION_MAX} characters")

        if self.applications.find_pending_for_user(actor.id) is not None:
            return ActionResult.fail(ErrorCode.APPLICATION_ALREADY_PENDING)

        application = self.applications.create_application(
            user_id=actor.id,
            business_name=name,
            business_description=business_description,
        )
        return ActionResult.ok(application.to_dict())
