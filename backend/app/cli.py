# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User bootstrap:
# - python -m flask users create --name "Store Admin" --email admin@stockroom.local --phone 0911000000 --password "Password123" --role Admin
#   Create a user of any role (prompts if options are omitted).
# - python -m flask users list
#   List all users with role and active status.
#
# Inventory inspection:
# - python -m flask inventory low-stock
#   Print items whose quantity is below their low-stock threshold.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .models.auth import VALID_ROLES
from .services.auth_service import create_user
from .services.inventory_service import list_low_stock_items


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    click.echo("START Initializing stockroom database...")
    db.create_all()
    click.echo("PASS Tables created. Create an Admin with 'python -m flask users create'.")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name (2-50 chars)')
@click.option('--email', prompt=True, help='Email address')
@click.option('--phone', prompt=True, help='Phone number (10 digits)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, phone, password, role):
    """
    Create a user of any role.

    HTTP registration only creates Employees; Admins and Managers are
    bootstrapped here.
    """
    try:
        user = create_user(name=name, email=email, phone=phone, password=password, role=role)
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.email:<40} {user.role:<10} {status}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """Print items below their low-stock threshold."""
    items = list_low_stock_items()
    if not items:
        click.echo("PASS No items below threshold.")
        return

    click.echo(f"WARN {len(items)} item(s) below threshold:")
    for item in items:
        click.echo(f"  #{item.id:<5} {item.name:<40} qty={item.quantity} threshold={item.low_stock_threshold}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
