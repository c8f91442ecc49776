from src.marketplace.actions.base import ActionResult
from src.marketplace.actions.admin_actions import AdminActions
from src.marketplace.actions.resource_actions import ResourceAccess
from src.marketplace.actions.seller_actions import SellerActions
from src.marketplace.actions.super_admin_actions import SuperAdminActions

__all__ = [
    "ActionResult",
    "AdminActions",
    "ResourceAccess",
    "SellerActions",
    "SuperAdminActions",
]
