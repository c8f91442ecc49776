"""
Tests for the marketgate CLI commands that do not need a database.
"""
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from src.cli.cli_main import create_user, set_status, show_permissions
from src.utils.account_service import Account
from src.utils.rbac.permission_enum import AccountStatus, Role
from src.utils.rbac.registry import get_permissions_for_role


def test_show_permissions_lists_every_role():
    result = CliRunner().invoke(show_permissions, [])

    assert result.exit_code == 0
    assert "Guest (unauthenticated):" in result.output
    assert f"Super Admin ({len(get_permissions_for_role(Role.SUPER_ADMIN))} permissions):" in result.output
    assert "  admin.exportData" in result.output


def test_show_permissions_single_role():
    result = CliRunner().invoke(show_permissions, ["--role", "seller"])

    assert result.exit_code == 0
    assert result.output.startswith("Seller (")
    assert "Guest" not in result.output


def _factory(account=None):
    factory = MagicMock()
    factory.__enter__.return_value = factory
    factory.account_service.find_account_by_email.return_value = account
    return factory


@patch("src.cli.cli_main.setup_cli_logging", MagicMock())
@patch("src.cli.cli_main._services")
def test_set_status_records_invalidation(mock_services):
    account = Account(id="u1", email="u1@example.com", role=Role.USER, account_status=AccountStatus.ACTIVE)
    factory = _factory(account)
    mock_services.return_value = factory

    result = CliRunner().invoke(set_status, ["u1@example.com", "banned", "--reason", "fraud ring"])

    assert result.exit_code == 0, result.output
    factory.account_service.update_account_status.assert_called_once_with("u1", AccountStatus.BANNED, reason="fraud ring")
    factory.token_invalidation_service.append.assert_called_once_with("u1", "status_set_to_BANNED_by_operator")
    factory.audit_log_service.append.assert_called_once_with(
        actor_id="operator",
        actor_role="OPERATOR",
        action="user.banned",
        target_type="User",
        target_id="u1",
        metadata={"reason": "fraud ring", "source": "cli"},
    )
    assert "ACTIVE -> BANNED" in result.output


@patch("src.cli.cli_main.setup_cli_logging", MagicMock())
@patch("src.cli.cli_main._services")
def test_reactivation_is_audited(mock_services):
    account = Account(id="u1", email="u1@example.com", account_status=AccountStatus.SUSPENDED)
    factory = _factory(account)
    mock_services.return_value = factory

    result = CliRunner().invoke(set_status, ["u1@example.com", "ACTIVE", "--reason", "ignored"])

    assert result.exit_code == 0, result.output
    kwargs = factory.audit_log_service.append.call_args[1]
    assert kwargs["action"] == "user.reactivated"
    assert kwargs["metadata"]["reason"] is None


@patch("src.cli.cli_main.setup_cli_logging", MagicMock())
@patch("src.cli.cli_main._services")
def test_set_status_unknown_email(mock_services):
    mock_services.return_value = _factory(None)
    result = CliRunner().invoke(set_status, ["ghost@example.com", "ACTIVE"])
    assert result.exit_code != 0
    assert "No account with email" in result.output


@patch("src.cli.cli_main.setup_cli_logging", MagicMock())
@patch("src.cli.cli_main._services")
def test_create_user_without_password(mock_services):
    factory = _factory(None)
    factory.account_service.create_account.return_value = Account(
        id="new", email="sso@example.com", role=Role.SELLER,
    )
    mock_services.return_value = factory

    result = CliRunner().invoke(create_user, ["--email", "sso@example.com", "--role", "SELLER", "--no-password"])

    assert result.exit_code == 0, result.output
    kwargs = factory.account_service.create_account.call_args[1]
    assert kwargs["password_hash"] is None
    assert kwargs["role"] is Role.SELLER
    assert "Created Seller account new" in result.output


@patch("src.cli.cli_main.setup_cli_logging", MagicMock())
@patch("src.cli.cli_main._services")
def test_create_user_duplicate(mock_services):
    mock_services.return_value = _factory(Account(id="u1", email="taken@example.com"))
    result = CliRunner().invoke(create_user, ["--email", "taken@example.com", "--no-password"])
    assert result.exit_code != 0
    assert "already exists" in result.output
