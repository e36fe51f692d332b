# Overview: Flask CLI command groups for bootstrap and order maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storefront (PowerShell: $env:FLASK_APP="storefront").
# - RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set or the app refuses to start.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; production uses `flask db upgrade`).
# - python -m flask system create-admin --email admin@store.local --password "Password123!"
#   Create the single administrator account. Idempotent: an existing admin is kept.
#
# User inspection:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users issue-token --email admin@store.local
#   Issue a bearer token for a user (developer convenience).
#
# Order maintenance:
# - python -m flask orders resend-notifications [--order ORD-20261018-ABCDEF1234] [--kind shipped]
#   Re-attempt notifications that were never delivered.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import order_service, session_service
from .services.auth_service import ensure_admin, PasswordValidationError
from .services.notification_service import NOTIFICATION_KINDS
from .validation import OrderDomainError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('create-admin')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--name', default='Administrator', help='Display name')
@with_appcontext
def create_admin(email, password, name):
    """
    Create the administrator account if none exists.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        admin, created = ensure_admin(email, password, name=name)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    if created:
        click.echo(f"PASS Created admin: {admin.email} (ID: {admin.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    else:
        click.echo(f"WARN  Admin already exists: {admin.email} (ID: {admin.id}), skipping...")


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with roles and active status."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<24} {'Email':<32} {'Role':<8} {'Active':<8}")
    click.echo("-" * 80)
    for user in users:
        click.echo(f"{user.id:<5} {user.name:<24} {(user.email or '-'):<32} {user.role:<8} {str(user.is_active):<8}")


@users_group.command('issue-token')
@click.option('--email', required=True, help='User email address')
@with_appcontext
def issue_token(email):
    """Issue a bearer token for a user (prints the plaintext token once)."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        raise SystemExit(1)

    try:
        session, token = session_service.create_session(user.id)
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    click.echo(f"PASS Token for {user.email} (role {user.role}), expires {session.expires_at.isoformat()}Z")
    click.echo(token)


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('resend-notifications')
@click.option('--order', 'order_number', default=None, help='Only this order number')
@click.option('--kind', type=click.Choice(list(NOTIFICATION_KINDS)), default=None, help='Only this notification kind')
@with_appcontext
def resend_notifications(order_number, kind):
    """Re-attempt notifications whose flags are not yet sent."""
    try:
        attempts = order_service.resend_notifications(order_number=order_number, kind=kind)
    except OrderDomainError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)

    if not attempts:
        click.echo("PASS Nothing to resend")
        return

    for attempt in attempts:
        marker = "PASS" if attempt["sent"] else "FAIL"
        click.echo(f"{marker} {attempt['order_number']} {attempt['kind']}")

    failed = sum(1 for attempt in attempts if not attempt["sent"])
    click.echo(f"\n{len(attempts) - failed} sent, {failed} failed")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(orders_group)
