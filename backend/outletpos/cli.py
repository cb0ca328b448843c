# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/outletpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--outlet "Maujajan Kopi Senopati"]
#   Idempotent bootstrap: creates tables, a default outlet, the default
#   platform channels, and an owner + cashier account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username kasir2 --name "Kasir 2" --role cashier --outlet-id 1
#   Create a user (prompts for the password).
# - python -m flask users list
#
# Draft carts:
# - python -m flask drafts reap
#   Delete draft carts older than DRAFT_CART_TTL_HOURS.
#
# Platform settings:
# - python -m flask settings set-markup GoFood 20
#   Set the markup percentage for a delivery channel.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Outlet, PlatformSetting, User
from .services import draft_service, pricing_service
from .services.auth_service import create_user
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--outlet', 'outlet_name', default='Outlet Utama', help='Default outlet name')
@click.option('--password', default='Password123', show_default=True, help='Password for the default accounts')
@with_appcontext
def init_system(outlet_name, password):
    """
    Initialize the system: tables, default outlet, channels, and users.

    Creates:
    - Default outlet (if none exists)
    - A 0% platform setting for each default delivery channel
    - Users: owner (role owner), kasir (role cashier at the default outlet)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing OutletPOS...")
    db.create_all()

    outlet = db.session.query(Outlet).order_by(Outlet.id).first()
    if not outlet:
        outlet = Outlet(name=outlet_name)
        db.session.add(outlet)
        db.session.commit()
        click.echo(f"PASS Created default outlet: {outlet.name} (ID: {outlet.id})")
    else:
        click.echo(f"PASS Using existing outlet: {outlet.name} (ID: {outlet.id})")

    for channel in pricing_service.DEFAULT_CHANNELS:
        if channel == pricing_service.IN_STORE_CHANNEL:
            continue
        if not db.session.query(PlatformSetting).filter_by(channel=channel).first():
            db.session.add(PlatformSetting(channel=channel, markup=0))
    db.session.commit()
    click.echo(f"PASS Order channels: {', '.join(pricing_service.get_order_channels())}")

    default_users = [
        ("owner", "Owner", "owner", None),
        ("kasir", "Kasir", "cashier", outlet.id),
    ]
    for username, name, role, outlet_id in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, name, password, role=role, outlet_id=outlet_id)
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except (ValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")

    click.echo("\nDONE OutletPOS initialized. Change the default passwords!")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['owner', 'cashier']), prompt=True, help='Role')
@click.option('--outlet-id', type=int, help='Outlet (required for cashiers)')
@with_appcontext
def create_user_cli(username, name, password, role, outlet_id):
    """
    Create a new user.

    Password: 8+ chars with at least one letter and one digit.
    """
    try:
        user = create_user(username, name, password, role=role, outlet_id=outlet_id)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role, outlet, and active status."""
    users = db.session.query(User).order_by(User.id).all()
    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Outlet':<8} {'Active':<8}")
    click.echo("="*80)
    for user in users:
        outlet = str(user.outlet_id) if user.outlet_id else "-"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {outlet:<8} {str(user.is_active):<8}")
    click.echo("="*80 + "\n")


@click.group('drafts')
def drafts_group():
    """Draft cart maintenance."""


@drafts_group.command('reap')
@with_appcontext
def reap_drafts_cli():
    """Delete draft carts older than DRAFT_CART_TTL_HOURS."""
    removed = draft_service.reap_expired()
    click.echo(f"Deleted {removed} expired draft carts.")


@click.group('settings')
def settings_group():
    """Platform settings commands."""


@settings_group.command('set-markup')
@click.argument('channel')
@click.argument('markup', type=float)
@with_appcontext
def set_markup_cli(channel, markup):
    """Set the markup percentage for a delivery channel."""
    try:
        settings = pricing_service.update_platform_settings({channel: {"markup": markup}})
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {channel} markup is now {settings[channel]['markup']}%")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(drafts_group)
    app.cli.add_command(settings_group)
