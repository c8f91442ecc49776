import getpass
import traceback

import click
import psycopg2

from src.marketplace.actions.admin_actions import USER_TARGET
from src.utils.config_access import load_config
from src.utils.connection_pool import ConnectionPoolError
from src.utils.logging import get_logger, setup_cli_logging
from src.utils.password import hash_password
from src.utils.postgres_service_factory import PostgresServiceFactory
from src.utils.rbac.claims import ClaimsConfigError
from src.utils.rbac.permission_enum import AccountStatus, Role
from src.utils.rbac.registry import (
    ALL_ROLES,
    get_guest_permissions,
    get_permissions_for_role,
    get_role_display_name,
)

logger = get_logger(__name__)

ROLE_CHOICES = click.Choice([r.value for r in Role], case_sensitive=False)
STATUS_CHOICES = click.Choice([s.value for s in AccountStatus], case_sensitive=False)

# Audit identity for changes made from the command line
OPERATOR_ACTOR_ID = "operator"
OPERATOR_ROLE = "OPERATOR"

STATUS_AUDIT_ACTIONS = {
    AccountStatus.ACTIVE: "user.reactivated",
    AccountStatus.SUSPENDED: "user.suspended",
    AccountStatus.BANNED: "user.banned",
}


def _services(config_path):
    config = load_config(config_path)
    try:
        return PostgresServiceFactory.from_yaml_config(config)
    except ConnectionPoolError as e:
        raise click.ClickException(str(e))


@click.group()
def cli():
    pass


@click.command()
@click.option('--config', '-c', 'config_path', type=str, help="Path to .yaml marketgate configuration")
@click.option('--verbosity', '-v', type=int, default=3, help="Logging verbosity level (0-4)")
def init_db(config_path: str, verbosity: int):
    """Create the accounts, audit and invalidation tables"""
    setup_cli_logging(verbosity=verbosity)

    with _services(config_path) as services:
        try:
            services.initialize_schema()
        except psycopg2.Error as e:
            if verbosity >= 4:
                traceback.print_exc()
            raise click.ClickException(f"Failed to initialize schema: {e}")
    click.echo("Database schema is ready")


@click.command()
@click.option('--email', '-e', type=str, required=True, help="Email address of the new account")
@click.option('--name', '-n', 'display_name', type=str, help="Display name")
@click.option('--role', '-r', type=ROLE_CHOICES, default=Role.USER.value, show_default=True, help="Role of the new account")
@click.option('--password', '-p', type=str, help="Password (prompted when omitted)")
@click.option('--no-password', is_flag=True, help="Create an account without a local credential (external sign-in only)")
@click.option('--config', '-c', 'config_path', type=str, help="Path to .yaml marketgate configuration")
@click.option('--verbosity', '-v', type=int, default=3, help="Logging verbosity level (0-4)")
def create_user(email: str, display_name: str, role: str, password: str, no_password: bool, config_path: str, verbosity: int):
    """Create an ACTIVE account with the given role"""
    setup_cli_logging(verbosity=verbosity)

    password_hash = None
    if not no_password:
        if not password:
            password = getpass.getpass("Password: ")
        try:
            password_hash = hash_password(password)
        except ValueError as e:
            raise click.ClickException(str(e))

    with _services(config_path) as services:
        accounts = services.account_service
        if accounts.find_account_by_email(email) is not None:
            raise click.ClickException(f"An account with email {email} already exists")

        account = accounts.create_account(
            email=email,
            display_name=display_name,
            password_hash=password_hash,
            role=Role(role.upper()),
            account_status=AccountStatus.ACTIVE,
        )
    click.echo(f"Created {get_role_display_name(account.role)} account {account.id} ({account.email})")


@click.command()
@click.argument('email')
@click.argument('status', type=STATUS_CHOICES)
@click.option('--reason', type=str, help="Reason recorded on the account")
@click.option('--config', '-c', 'config_path', type=str, help="Path to .yaml marketgate configuration")
@click.option('--verbosity', '-v', type=int, default=3, help="Logging verbosity level (0-4)")
def set_status(email: str, status: str, reason: str, config_path: str, verbosity: int):
    """
    Set an account's status directly (operator break-glass).

    The change is recorded as a claims invalidation so live sessions pick it
    up on their next refresh, and as an audit record attributed to the operator.
    """
    setup_cli_logging(verbosity=verbosity)
    new_status = AccountStatus(status.upper())

    with _services(config_path) as services:
        account = services.account_service.find_account_by_email(email)
        if account is None:
            raise click.ClickException(f"No account with email {email}")

        services.account_service.update_account_status(
            account.id,
            new_status,
            reason=None if new_status is AccountStatus.ACTIVE else reason,
        )
        services.token_invalidation_service.append(account.id, f"status_set_to_{new_status.value}_by_operator")
        services.audit_log_service.append(
            actor_id=OPERATOR_ACTOR_ID,
            actor_role=OPERATOR_ROLE,
            action=STATUS_AUDIT_ACTIONS[new_status],
            target_type=USER_TARGET,
            target_id=account.id,
            metadata={"reason": reason if new_status is not AccountStatus.ACTIVE else None, "source": "cli"},
        )
    click.echo(f"{email}: {account.account_status.value} -> {new_status.value}")


@click.command()
@click.option('--role', '-r', type=ROLE_CHOICES, help="Only show this role")
def show_permissions(role: str):
    """Print the permissions granted to each role"""
    roles = [Role(role.upper())] if role else ALL_ROLES

    if not role:
        click.echo("Guest (unauthenticated):")
        for permission in get_guest_permissions():
            click.echo(f"  {permission}")
        click.echo()

    for r in roles:
        permissions = get_permissions_for_role(r)
        click.echo(f"{get_role_display_name(r)} ({len(permissions)} permissions):")
        for permission in permissions:
            click.echo(f"  {permission}")
        click.echo()


@click.command()
@click.option('--config', '-c', 'config_path', type=str, help="Path to .yaml marketgate configuration")
@click.option('--host', type=str, help="Bind address (defaults to services.marketplace_app.host)")
@click.option('--port', type=int, help="Port (defaults to services.marketplace_app.port)")
@click.option('--debug', is_flag=True, help="Run Flask in debug mode")
@click.option('--verbosity', '-v', type=int, default=3, help="Logging verbosity level (0-4)")
def serve(config_path: str, host: str, port: int, debug: bool, verbosity: int):
    """Run the marketplace web app"""
    # imported here so the other commands do not need the web stack configured
    from src.interfaces.marketplace_app.app import create_app

    setup_cli_logging(verbosity=verbosity)
    config = load_config(config_path)
    app_config = config["services"]["marketplace_app"]

    try:
        wrapper = create_app(config_path=config_path)
    except ClaimsConfigError as e:
        raise click.ClickException(str(e))

    wrapper.run(
        host=host or app_config["host"],
        port=port or app_config["port"],
        debug=debug,
    )


def main():
    """
    Entrypoint for marketgate cli tool implemented using Click.
    """
    cli.add_command(init_db)
    cli.add_command(create_user)
    cli.add_command(set_status)
    cli.add_command(show_permissions)
    cli.add_command(serve)
    cli()


if __name__ == '__main__':
    main()
