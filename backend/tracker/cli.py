# Overview: Flask CLI command groups for bootstrap, requesters, and maintenance.

# backend/tracker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables and print the configured admin/company settings.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Requester registry:
# - python -m flask requesters list
# - python -m flask requesters create --requester-id W-102 --name "Jane Doe" --password "secret"
# - python -m flask requesters delete --requester-id W-102
#
# Maintenance:
# - python -m flask maintenance purge-sessions
#   Delete expired and revoked session tokens.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Requester, Transaction, STATUS_PENDING
from .services import auth_service, session_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables (idempotent) and show the effective configuration."""
    click.echo("START Initializing material tracker...")
    db.create_all()

    transactions = db.session.query(Transaction).count()
    pending = db.session.query(Transaction).filter_by(approval_status=STATUS_PENDING).count()
    requesters = db.session.query(Requester).count()

    click.echo("PASS Tables ready")
    click.echo(f"   Company:      {current_app.config.get('COMPANY_NAME')}")
    click.echo(f"   Transactions: {transactions} ({pending} pending)")
    click.echo(f"   Requesters:   {requesters}")

    if current_app.config.get("ADMIN_PASSWORD") == "admin-change-me":
        click.echo("\nWARN ADMIN_PASSWORD is still the development default. Set it in the environment!")
    click.echo("")


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

    click.echo("PASS Database reset complete.")


@click.group('requesters')
def requesters_group():
    """Requester (worker login) registry."""


@requesters_group.command('list')
@with_appcontext
def list_requesters_cli():
    requesters = auth_service.list_requesters()
    if not requesters:
        click.echo("No requesters found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Requester ID':<20} {'Name':<30} {'Created'}")
    click.echo("="*70)
    for r in requesters:
        click.echo(f"{r.id:<5} {r.requester_id:<20} {r.name:<30} {str(r.created_at)[:19]}")
    click.echo("="*70 + "\n")


@requesters_group.command('create')
@click.option('--requester-id', prompt=True, help='Login ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_requester_cli(requester_id, name, password):
    try:
        requester = auth_service.create_requester(requester_id, name, password)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created requester: {requester.requester_id} ({requester.name})")


@requesters_group.command('delete')
@click.option('--requester-id', required=True)
@with_appcontext
def delete_requester_cli(requester_id):
    requester = db.session.query(Requester).filter_by(requester_id=requester_id).first()
    if not requester:
        click.echo(f"FAIL Requester '{requester_id}' not found")
        raise SystemExit(1)
    auth_service.delete_requester(requester.id)
    click.echo(f"PASS Deleted requester: {requester_id}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-sessions')
@with_appcontext
def purge_sessions_cli():
    """Delete expired and revoked session tokens."""
    deleted = session_service.purge_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(requesters_group)
    app.cli.add_command(maintenance_group)
