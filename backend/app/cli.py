# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username clerk --password "Password123!" --role USER
#   Create a user (prompts if options are omitted).
# - python -m flask users create-admin --username admin --password "Password123!"
#   Create the first ADMIN (or promote an existing user of that name).
# - python -m flask users promote clerk
#   Give an existing user the ADMIN role.
#
# Edit request inspection:
# - python -m flask edit-requests list --status PENDING
#   List edit requests (PENDING, APPROVED, REJECTED or ALL).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, VALID_ROLES, ROLE_USER
from .services import auth_service
from .services import edit_request_ledger
from .services import session_service
from .services.auth_service import PasswordValidationError
from .validation import ValidationError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create-admin' next.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete session tokens that expired or were revoked more than 30 days ago."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} stale session tokens.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<25} {'Role':<8} {'Active':<8} {'Last Login'}")
    click.echo("="*70)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        last_login = to_utc_z(user.last_login_at) or "-"
        click.echo(f"{user.id:<5} {user.username:<25} {user.role:<8} {active_str:<8} {last_login}")

    click.echo("="*70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES), case_sensitive=False), default=ROLE_USER,
              show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(username, password, role)
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('create-admin')
@click.option('--username', default='admin', show_default=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(username, password):
    """Create the first ADMIN user; promotes the user if the name already exists."""
    try:
        user, created = auth_service.ensure_admin(username, password)
        if created:
            click.echo(f"PASS Created admin user: {user.username}")
        else:
            click.echo(f"PASS User {user.username} already exists; role is now {user.role}")
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")


@users_group.command('promote')
@click.argument('username')
@with_appcontext
def promote_user_cli(username):
    """Give an existing user the ADMIN role."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    auth_service.promote_user(user.id)
    click.echo(f"PASS User {user.username} promoted to admin")


@click.group('edit-requests')
def edit_requests_group():
    """Edit request inspection commands."""


@edit_requests_group.command('list')
@click.option('--status', default='PENDING', show_default=True,
              help='PENDING, APPROVED, REJECTED or ALL')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_edit_requests(status, limit):
    """List edit requests, newest first."""
    try:
        status = edit_request_ledger.normalize_status(status)
    except ValidationError as e:
        click.echo(f"FAIL {str(e)}")
        return

    rows, total = edit_request_ledger.list_requests(status=status, offset=0, limit=limit)
    if not rows:
        click.echo(f"No {status.lower()} edit requests.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Status':<10} {'Document':<40} {'Requested By':<16} {'Created'}")
    click.echo("="*100)

    for r in rows:
        document = f"{r.document_type}:{r.document_id}"
        requester = r.requested_by.username if r.requested_by else r.requested_by_id
        click.echo(f"{r.id:<6} {r.status:<10} {document:<40} {requester:<16} {to_utc_z(r.created_at)}")

    click.echo("="*100)
    click.echo(f"Showing {len(rows)} of {total}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(edit_requests_group)
