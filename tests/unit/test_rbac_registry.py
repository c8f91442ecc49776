"""
Unit tests for the static role/permission tables and the pure evaluator.
"""
import itertools

import pytest

from src.utils.rbac.permission_enum import AccountStatus, Permission, Role
from src.utils.rbac.permissions import (
    can_access_resource,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_account_active,
    is_owner,
)
from src.utils.rbac.registry import (
    ALL_ROLES,
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    get_guest_permissions,
    get_permissions_for_role,
    get_role_display_name,
    get_roles_with_permission,
    has_minimum_role,
    is_one_of_roles,
)


class TestPermissionCatalogue:

    def test_catalogue_has_49_unique_tokens(self):
        all_permissions = Permission.all()
        assert len(all_permissions) == 49
        assert len(set(all_permissions)) == 49

    def test_every_role_permission_is_in_catalogue(self):
        catalogue = set(Permission.all())
        for role, permissions in ROLE_PERMISSIONS.items():
            assert set(permissions) <= catalogue, role

    def test_super_admin_holds_every_permission(self):
        assert set(get_permissions_for_role(Role.SUPER_ADMIN)) == set(Permission.all())

    def test_super_admin_extras(self):
        admin = set(get_permissions_for_role(Role.ADMIN))
        super_admin = set(get_permissions_for_role(Role.SUPER_ADMIN))
        assert super_admin - admin == {
            "admin.createAdmins", "admin.systemConfig", "admin.exportData", "admin.manageRbac",
        }

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            ROLE_PERMISSIONS[Role.USER] = ()


class TestRolePermissions:

    @pytest.mark.parametrize("role", list(Role))
    def test_has_permission_matches_membership(self, role):
        """hasPermission(r, p) agrees with p in getPermissionsForRole(r) for every pair."""
        granted = set(get_permissions_for_role(role))
        for permission in Permission.all():
            assert has_permission(role, permission) == (permission in granted)

    def test_enum_members_and_strings_are_interchangeable(self):
        assert has_permission(Role.SELLER, Permission.Listing.EDIT_OWN)
        assert has_permission("SELLER", "listing.editOwn")

    @pytest.mark.parametrize("lower,higher", [
        (Role.USER, Role.SELLER),
        (Role.SELLER, Role.ADMIN),
        (Role.ADMIN, Role.SUPER_ADMIN),
    ])
    def test_permission_sets_are_monotonic(self, lower, higher):
        assert set(get_permissions_for_role(lower)) <= set(get_permissions_for_role(higher))

    @pytest.mark.parametrize("role", list(Role))
    def test_guest_permissions_included_in_every_role(self, role):
        assert set(get_guest_permissions()) <= set(get_permissions_for_role(role))

    def test_user_cannot_create_listings(self):
        assert not has_permission(Role.USER, Permission.Listing.CREATE)
        assert has_permission(Role.SELLER, Permission.Listing.CREATE)

    def test_unknown_role_has_no_permissions(self):
        assert get_permissions_for_role("GUEST") == ()
        assert not has_permission("GUEST", Permission.Auth.LOGIN)
        assert not has_permission(None, Permission.Auth.LOGIN)

    def test_all_and_any(self):
        perms = [Permission.Order.CREATE, Permission.Admin.EXPORT_DATA]
        assert not has_all_permissions(Role.ADMIN, perms)
        assert has_any_permission(Role.ADMIN, perms)
        assert has_all_permissions(Role.SUPER_ADMIN, perms)

    def test_roles_with_permission_lowest_first(self):
        assert get_roles_with_permission(Permission.Listing.CREATE) == [
            Role.SELLER, Role.ADMIN, Role.SUPER_ADMIN,
        ]
        assert get_roles_with_permission("no.such.permission") == []


class TestRoleHierarchy:

    def test_all_roles_ordered(self):
        assert ALL_ROLES == (Role.USER, Role.SELLER, Role.ADMIN, Role.SUPER_ADMIN)

    @pytest.mark.parametrize("actual,required", list(itertools.product(Role, Role)))
    def test_has_minimum_role_follows_order(self, actual, required):
        expected = ROLE_HIERARCHY[actual] >= ROLE_HIERARCHY[required]
        assert has_minimum_role(actual, required) == expected

    def test_unknown_roles_never_qualify(self):
        assert not has_minimum_role("OWNER", Role.USER)
        assert not has_minimum_role(Role.SUPER_ADMIN, "OWNER")

    def test_is_one_of_roles(self):
        assert is_one_of_roles(Role.ADMIN, [Role.ADMIN, Role.SUPER_ADMIN])
        assert is_one_of_roles("SELLER", ["SELLER"])
        assert not is_one_of_roles(Role.USER, [Role.ADMIN])

    def test_display_names(self):
        assert get_role_display_name(Role.SUPER_ADMIN) == "Super Admin"
        assert get_role_display_name("USER") == "User"


class TestResourceAccess:

    def test_owner_with_own_permission(self):
        assert can_access_resource("u1", "u1", Role.SELLER, "listing.editOwn", "listing.editAny")

    def test_non_owner_without_any_permission(self):
        assert not can_access_resource("u1", "u2", Role.SELLER, "listing.editOwn", "listing.editAny")

    def test_any_permission_overrides_ownership(self):
        assert can_access_resource("u1", "u2", Role.ADMIN, "listing.editOwn", "listing.editAny")

    def test_owner_without_own_permission(self):
        assert not can_access_resource("u1", "u1", Role.USER, "listing.editOwn", "listing.editAny")

    def test_is_owner(self):
        assert is_owner("u1", "u1")
        assert not is_owner("u1", "u2")
        assert not is_owner(None, None)


class TestAccountActivity:

    def test_only_active_is_active(self):
        assert is_account_active(AccountStatus.ACTIVE)
        assert is_account_active("ACTIVE")
        assert not is_account_active(AccountStatus.SUSPENDED)
        assert not is_account_active(AccountStatus.BANNED)
        assert not is_account_active("DELETED")
