import click
from flask import current_app
from flask.cli import with_appcontext
from pymongo.errors import DuplicateKeyError

from .chain import get_chain, ChainError
from .config import missing_settings
from .validators import is_eth_address, password_problems

SETTING_GROUPS = {
    "database": ("MONGO_URI", "MONGO_DB_NAME", "JWT_SECRET_KEY"),
    "chain": ("RPC_URL", "ADMIN_PRIVATE_KEY", "VOTER_REGISTRY_ADDRESS", "VOTING_CONTRACT_ADDRESS"),
    "email": ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "EMAIL_FROM"),
    "sms": ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"),
}


@click.command("register-admin")
@click.argument("wallet")
@click.password_option()
@with_appcontext
def register_admin(wallet, password):
    """Create an admin account for WALLET."""
    from .routes.auth import create_admin

    if not is_eth_address(wallet):
        raise click.BadParameter("not an Ethereum address", param_hint="WALLET")
    problems = password_problems(password)
    if problems:
        raise click.UsageError("; ".join(problems))
    try:
        create_admin(wallet, password)
    except DuplicateKeyError:
        raise click.ClickException(f"Admin {wallet.lower()} already exists")
    click.echo(f"Admin {wallet.lower()} created")


@click.command("check-config")
@with_appcontext
def check_config():
    """Report which settings are present and check the RPC node."""
    for group, names in SETTING_GROUPS.items():
        missing = missing_settings(current_app.config, names)
        state = "ok" if not missing else "missing " + ", ".join(missing)
        click.echo(f"{group:10} {state}")

    chain = get_chain()
    if not chain.configured:
        click.echo("chain      not configured, skipping network check")
        return
    try:
        info = chain.network_info()
    except ChainError as e:
        raise click.ClickException(str(e))
    for key, value in info.items():
        click.echo(f"  {key}: {value}")


def register_commands(app):
    app.cli.add_command(register_admin)
    app.cli.add_command(check_config)
