# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/atelier/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent) and a first admin if no users exist.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role tailor] [--location "Unit 1"]
#   List staff users with role, location and active status.
# - python -m flask users create --email admin@atelier.local --name Admin --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .errors import AtelierError
from .extensions import db
from .models import User
from .permissions import ALL_ROLES
from .services.auth_service import create_user, PasswordValidationError


DEFAULT_ADMIN_EMAIL = "admin@atelier.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and bootstrap the first admin account."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()

    if db.session.query(User).count():
        click.echo("PASS Users already exist, skipping admin bootstrap.")
        return

    try:
        user = create_user(
            email=DEFAULT_ADMIN_EMAIL,
            password=DEFAULT_ADMIN_PASSWORD,
            name="Administrator",
            role="admin",
        )
    except AtelierError as e:
        click.echo(f"FAIL Failed to create admin: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   admin -> {DEFAULT_ADMIN_EMAIL} / {DEFAULT_ADMIN_PASSWORD}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to bootstrap an admin.")


@click.group('users')
def users_group():
    """Staff user inspection and bootstrap."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ALL_ROLES)), prompt=True, help='Role')
@click.option('--location', default=None, help='Workshop unit (default from config)')
@with_appcontext
def create_user_cli(email, name, password, role, location):
    """Create a staff user directly (bypasses the admin API)."""
    try:
        user = create_user(email=email, password=password, name=name, role=role, location=location)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except AtelierError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' at {user.location or '-'}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ALL_ROLES)), help='Filter by role')
@click.option('--location', help='Filter by location')
@with_appcontext
def list_users_cli(role, location):
    """List staff users."""
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if location:
        query = query.filter(User.location == location)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<20} {'Role':<9} {'Location':<14} {'Active'}")
    click.echo("="*90)
    for user in users:
        active_str = "yes" if user.is_active else "no"
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.name:<20} {user.role:<9} {user.location or '-':<14} {active_str}"
        )
    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
