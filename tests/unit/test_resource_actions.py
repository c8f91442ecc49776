"""
Unit tests for ownership-scoped resource access.
"""
import pytest

from src.marketplace.actions import ResourceAccess
from src.marketplace.actions.resource_actions import ORDER_BUYER, ORDER_SELLER, RESOURCE_ACTIONS
from src.utils.rbac.authorization import ErrorCode
from src.utils.rbac.claims import SessionClaims
from src.utils.rbac.permission_enum import AccountStatus, Role

OWNERS = {
    ("listing", "lst-1"): "seller-1",
    (ORDER_BUYER, "ord-1"): "buyer-1",
    (ORDER_SELLER, "ord-1"): "seller-1",
    ("review", "rev-1"): "buyer-1",
    ("profile", "buyer-1"): "buyer-1",
}


def _claims(subject_id, role, status=AccountStatus.ACTIVE):
    return SessionClaims.create(subject_id, role, status)


@pytest.fixture
def access():
    return ResourceAccess(lambda kind, resource_id: OWNERS.get((kind, resource_id)))


class TestResourceAccess:

    def test_owner_edits_own_listing(self, access):
        result = access.check(_claims("seller-1", Role.SELLER), "listing.edit", "lst-1")
        assert result.success
        assert result.data == "seller-1"

    def test_other_seller_refused(self, access):
        result = access.check(_claims("seller-2", Role.SELLER), "listing.edit", "lst-1")
        assert result.error is ErrorCode.INSUFFICIENT_PERMISSIONS

    def test_admin_edits_any_listing(self, access):
        assert access.check(_claims("admin-1", Role.ADMIN), "listing.edit", "lst-1").success

    def test_missing_listing_reported_before_permission(self, access):
        result = access.check(_claims("buyer-1", Role.USER), "listing.delete", "lst-404")
        assert result.error is ErrorCode.LISTING_NOT_FOUND

    def test_suspended_owner_refused_before_lookup(self):
        lookups = []

        def lookup(kind, resource_id):
            lookups.append((kind, resource_id))
            return "seller-1"

        result = ResourceAccess(lookup).check(
            _claims("seller-1", Role.SELLER, AccountStatus.SUSPENDED), "listing.edit", "lst-1",
        )
        assert result.error is ErrorCode.ACCOUNT_SUSPENDED
        assert lookups == []

    def test_anonymous(self, access):
        assert access.check(None, "order.view", "ord-1").error is ErrorCode.UNAUTHENTICATED

    def test_review_moderation(self, access):
        assert access.check(_claims("buyer-1", Role.USER), "review.edit", "rev-1").success
        assert access.check(_claims("buyer-2", Role.USER), "review.edit", "rev-1").error is ErrorCode.INSUFFICIENT_PERMISSIONS
        assert access.check(_claims("admin-1", Role.ADMIN), "review.delete", "rev-1").success

    def test_profile_view(self, access):
        assert access.check(_claims("buyer-1", Role.USER), "profile.view", "buyer-1").success
        assert access.check(_claims("ghost", Role.ADMIN), "profile.view", "nobody").error is ErrorCode.USER_NOT_FOUND

    def test_seller_updates_status_but_cannot_cancel_buyer_order(self, access):
        seller = _claims("seller-1", Role.SELLER)

        assert access.check(seller, "order.updateStatus", "ord-1").success
        assert access.check(seller, "order.cancel", "ord-1").error is ErrorCode.INSUFFICIENT_PERMISSIONS
        assert access.check(seller, "order.view", "ord-1").error is ErrorCode.INSUFFICIENT_PERMISSIONS

    def test_buyer_cancels_but_cannot_update_status(self, access):
        buyer = _claims("buyer-1", Role.USER)

        assert access.check(buyer, "order.cancel", "ord-1").success
        assert access.check(buyer, "order.updateStatus", "ord-1").error is ErrorCode.INSUFFICIENT_PERMISSIONS

    def test_unknown_action(self, access):
        with pytest.raises(KeyError):
            access.check(_claims("buyer-1", Role.USER), "listing.teleport", "lst-1")

    def test_every_action_has_distinct_own_and_any(self):
        for name, action in RESOURCE_ACTIONS.items():
            assert action.own_permission != action.any_permission, name


class TestRefundRequest:

    def test_buyer_may_request_refund(self, access):
        assert access.check_refund_request(_claims("buyer-1", Role.USER), "ord-1").success

    def test_other_user_refused(self, access):
        assert access.check_refund_request(_claims("buyer-2", Role.USER), "ord-1").error is ErrorCode.INSUFFICIENT_PERMISSIONS

    def test_missing_order(self, access):
        assert access.check_refund_request(_claims("buyer-1", Role.USER), "ord-404").error is ErrorCode.ORDER_NOT_FOUND

    def test_banned_buyer(self, access):
        result = access.check_refund_request(_claims("buyer-1", Role.USER, AccountStatus.BANNED), "ord-1")
        assert result.error is ErrorCode.ACCOUNT_BANNED
