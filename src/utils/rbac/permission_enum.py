"""
RBAC Enums - Authoritative list of roles, account states and permission strings.

Permissions are grouped into nested enums by domain. Each inner class is a
str Enum, so members compare equal to their string values and can be used
anywhere a plain permission string is expected.

Usage:
    from src.utils.rbac.permission_enum import Permission, Role

    @require_permission(Permission.Order.CREATE)
    def create_order(): ...

    if has_permission(Role.SELLER, Permission.Listing.EDIT_OWN):
        ...
"""

from enum import Enum


class Role(str, Enum):
    """Actor roles, declared lowest to highest (see ROLE_HIERARCHY)."""
    USER = "USER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class AccountStatus(str, Enum):
    """Activity gate, independent of role. Only ACTIVE passes authorization."""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"


class Permission:
    """Namespace for all permission strings, grouped by domain."""

    class Auth(str, Enum):
        REGISTER = "auth.register"
        LOGIN = "auth.login"
        LOGOUT = "auth.logout"
        RESET_PASSWORD = "auth.resetPassword"

    class Profile(str, Enum):
        VIEW_OWN = "profile.viewOwn"
        EDIT_OWN = "profile.editOwn"
        DELETE_OWN = "profile.deleteOwn"
        VIEW_ANY = "profile.viewAny"
        EDIT_ANY = "profile.editAny"

    class Listing(str, Enum):
        BROWSE = "listing.browse"
        VIEW_DETAIL = "listing.viewDetail"
        CREATE = "listing.create"
        EDIT_OWN = "listing.editOwn"
        EDIT_ANY = "listing.editAny"
        DELETE_OWN = "listing.deleteOwn"
        DELETE_ANY = "listing.deleteAny"
        VIEW_ANALYTICS_OWN = "listing.viewAnalyticsOwn"
        VIEW_ANALYTICS_ALL = "listing.viewAnalyticsAll"
        MANAGE_CATEGORIES = "listing.manageCategories"

    class Order(str, Enum):
        CREATE = "order.create"
        VIEW_OWN = "order.viewOwn"
        VIEW_ALL = "order.viewAll"
        CANCEL_OWN = "order.cancelOwn"
        CANCEL_ANY = "order.cancelAny"
        UPDATE_STATUS_OWN = "order.updateStatusOwn"
        UPDATE_STATUS_ANY = "order.updateStatusAny"
        REFUND_REQUEST = "order.refundRequest"
        REFUND_PROCESS = "order.refundProcess"

    class Review(str, Enum):
        CREATE = "review.create"
        EDIT_OWN = "review.editOwn"
        DELETE_OWN = "review.deleteOwn"
        MODERATE_ANY = "review.moderateAny"

    class Moderation(str, Enum):
        REPORT_CONTENT = "moderation.reportContent"
        REVIEW_REPORTS = "moderation.reviewReports"
        APPROVE_SELLERS = "moderation.approveSellers"
        SUSPEND_USERS = "moderation.suspendUsers"
        VIEW_AUDIT_LOGS = "moderation.viewAuditLogs"

    class Admin(str, Enum):
        ACCESS_DASHBOARD = "admin.accessDashboard"
        VIEW_ANALYTICS = "admin.viewAnalytics"
        MANAGE_USERS = "admin.manageUsers"
        CREATE_ADMINS = "admin.createAdmins"
        SYSTEM_CONFIG = "admin.systemConfig"
        EXPORT_DATA = "admin.exportData"
        MANAGE_RBAC = "admin.manageRbac"

    class Messaging(str, Enum):
        SEND_TO_SELLER = "messaging.sendToSeller"
        SEND_TO_BUYER = "messaging.sendToBuyer"
        VIEW_CONVERSATIONS = "messaging.viewConversations"

    class Notification(str, Enum):
        RECEIVE = "notification.receive"
        SEND_PLATFORM_WIDE = "notification.sendPlatformWide"

    @classmethod
    def all(cls) -> tuple:
        """Every permission string, in declaration order."""
        groups = (
            cls.Auth, cls.Profile, cls.Listing, cls.Order, cls.Review,
            cls.Moderation, cls.Admin, cls.Messaging, cls.Notification,
        )
        return tuple(member.value for group in groups for member in group)
