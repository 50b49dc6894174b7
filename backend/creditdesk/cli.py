# Overview: Flask CLI command groups for bootstrap, user management, agency import and maintenance.

# backend/creditdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-email admin@kushair.net]
#   Create all tables and a default admin user (idempotent).
#
# Users:
# - python -m flask users create --name "Jane Doe" --email jane@kushair.net --role staff --station JUB
#   Create a user (prompts for the password).
# - python -m flask users list
#   List all users with role, station and active status.
#
# Agencies:
# - python -m flask agencies import agencies.csv
#   Upsert agencies from a CSV with agency_id, agency_name[, contact_email, is_active] columns.
#
# Maintenance:
# - python -m flask sessions cleanup
#   Delete expired or revoked sessions older than 30 days.

import csv

import click
from flask.cli import with_appcontext

from .errors import CreditDeskError
from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLES
from .services.agency_service import AgencyDirectory
from .services.auth_service import create_user
from .services.session_service import cleanup_expired_sessions


DEFAULT_ADMIN_PASSWORD = "Password123"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@kushair.net', help='Email for the default admin')
@click.option('--admin-name', default='Administrator', help='Display name for the default admin')
@with_appcontext
def init_system(admin_email, admin_name):
    """
    Create tables and a default admin account.

    The admin password defaults to "Password123". Change it immediately
    in production via POST /api/v1/auth/change-password.
    """
    click.echo("START Initializing CreditDesk...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter(User.email == admin_email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.email}")
        return

    user = create_user(
        name=admin_name,
        email=admin_email,
        password=DEFAULT_ADMIN_PASSWORD,
        role=ROLE_ADMIN,
    )
    click.echo(f"PASS Created admin: {user.email} (password: {DEFAULT_ADMIN_PASSWORD})")
    click.echo("SECURITY Change this password before going live!")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name (printed on receipts)')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True)
@click.option('--station', default=None, help='Station code, e.g. JUB')
@with_appcontext
def create_user_cli(name, email, password, role, station):
    """
    Create a new user.

    Password must be 8+ characters with an uppercase letter, a lowercase
    letter and a digit.
    """
    try:
        user = create_user(
            name=name,
            email=email,
            password=password,
            role=role,
            station_code=station,
        )
    except CreditDeskError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<30} {'Role':<9} {'Station':<8} {'Active'}")
    click.echo("=" * 90)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.name:<25} {user.email:<30} {user.role:<9} "
            f"{user.station_code or '-':<8} {active_str}"
        )
    click.echo("=" * 90 + "\n")


@click.group('agencies')
def agencies_group():
    """Agency directory commands."""


@agencies_group.command('import')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@with_appcontext
def import_agencies(csv_file):
    """Upsert agencies from a CSV file; rows without a name or code are skipped."""
    rows = list(csv.DictReader(csv_file))
    result = AgencyDirectory(db.session).upsert_bulk(rows)
    click.echo(
        f"PASS Processed {result.processed} agencies "
        f"({result.inserted} new, {result.updated} updated, {result.skipped} skipped)"
    )


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(agencies_group)
    app.cli.add_command(sessions_group)
