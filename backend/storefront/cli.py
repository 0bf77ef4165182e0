# Overview: Flask CLI command groups for bootstrap, admin access, and inventory maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for managed schemas).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin access:
# - python -m flask admins create --name "Ops Lead" --email ops@storefront.local
#   Create an admin and print a bearer token.
# - python -m flask admins token --email ops@storefront.local
#   Issue a fresh bearer token for an existing admin.
#
# Inventory maintenance:
# - python -m flask inventory reconcile-alerts
#   Recompute every product's low-stock alert from current stock and the ledger.

import click
from flask.cli import with_appcontext

from .errors import BackofficeError
from .extensions import db
from .models import Admin
from .services import session_service, alert_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('admins')
def admins_group():
    """Back-office administrator access."""


@admins_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@with_appcontext
def create_admin(name, email):
    """Create an admin and print a bearer token."""
    try:
        admin = session_service.create_admin(name, email)
        _, token = session_service.create_session(admin.id)
    except BackofficeError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created admin {admin.name} <{admin.email}> (ID: {admin.id})")
    click.echo(f"TOKEN {token}")


@admins_group.command('token')
@click.option('--email', prompt=True, help='Login email')
@with_appcontext
def issue_token(email):
    """Issue a fresh bearer token for an existing admin."""
    admin = Admin.query.filter_by(email=email.strip().lower()).first()
    if admin is None:
        raise click.ClickException(f"No admin with email {email}")
    try:
        _, token = session_service.create_session(admin.id)
    except BackofficeError as e:
        raise click.ClickException(e.message)
    click.echo(f"TOKEN {token}")


@click.group('inventory')
def inventory_group():
    """Inventory maintenance commands."""


@inventory_group.command('reconcile-alerts')
@with_appcontext
def reconcile_alerts():
    """Recompute every product's low-stock alert."""
    result = alert_service.reconcile_all()
    click.echo(
        f"PASS Reconciled alerts: {result['alerts_touched']} touched, "
        f"{result['alerts_active']} active"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admins_group)
    app.cli.add_command(inventory_group)
