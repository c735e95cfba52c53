# Overview: Flask CLI command groups for bootstrap and inventory maintenance.

# backend/kelola/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--owner-email owner@kelola.local]
#   Idempotent bootstrap: creates tables if missing and an OWNER user; prints its token once.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --name "Kasir 1" --email kasir1@kelola.local --role STAFF
#   Create a user and print its bearer token.
# - python -m flask users list
#
# Inventory:
# - python -m flask inventory reconcile [--variant-id 12]
#   Compare stock against initial_stock + movements; exit code 1 on drift.
# - python -m flask inventory reorder
#   Print reorder suggestions, most urgent first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import KelolaError
from .models import User, UserRole
from .services import analytics_service, ledger_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--owner-name', default='Owner', help='Name of the bootstrap owner')
@click.option('--owner-email', default='owner@kelola.local', help='Email of the bootstrap owner')
@with_appcontext
def init_system(owner_name, owner_email):
    """
    Create missing tables and the first OWNER user.

    The owner's bearer token is printed once; it is stored only as a hash.
    """
    click.echo("START Initializing Kelola...")
    db.create_all()

    owner = db.session.query(User).filter_by(email=owner_email.lower()).first()
    if owner:
        click.echo(f"PASS Using existing owner: {owner.email} (ID: {owner.id})")
        return

    owner, token = user_service.create_user(owner_name, owner_email, UserRole.OWNER)
    click.echo(f"PASS Created owner: {owner.email} (ID: {owner.id})")
    click.echo(f"TOKEN {token}")
    click.echo("SECURITY Store this token now; it cannot be shown again.")


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
    """User management commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.STAFF.value)
@with_appcontext
def create_user_command(name, email, role):
    """Create a user and print its bearer token."""
    try:
        user, token = user_service.create_user(name, email, role)
    except KelolaError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {user.role.value} user {user.email} (ID: {user.id})")
    click.echo(f"TOKEN {token}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {active_str:<8} {user.role.value}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('reconcile')
@click.option('--variant-id', type=int, help='Check a single variant')
@with_appcontext
def reconcile(variant_id):
    """Report variants whose stock drifted from their movement history."""
    if variant_id:
        try:
            result = ledger_service.reconcile_variant(variant_id)
        except KelolaError as e:
            raise click.ClickException(str(e))
        drifted = [result] if result["drift"] else []
    else:
        drifted = ledger_service.reconcile_all()

    if not drifted:
        click.echo("PASS No drift found.")
        return

    for row in drifted:
        click.echo(
            f"FAIL variant {row['variant_id']}: expected {row['expected_stock']}, "
            f"actual {row['actual_stock']} (drift {row['drift']:+d})"
        )
    raise SystemExit(1)


@inventory_group.command('reorder')
@with_appcontext
def reorder():
    """Print reorder suggestions, most urgent first."""
    result = analytics_service.get_reorder_suggestions()
    suggestions = result["suggestions"]
    if not suggestions:
        click.echo("No variants at or below minimum stock.")
        return

    click.echo(f"{'Priority':<9} {'Variant':<40} {'Stock':>6} {'Min':>5} {'Order':>6} {'Days':>5}")
    for s in suggestions:
        click.echo(
            f"{s['priority']:<9} {s['display_name'][:40]:<40} {s['current_stock']:>6} "
            f"{s['min_stock']:>5} {s['suggested_quantity']:>6} {s['days_until_stockout']:>5}"
        )
    summary = result["summary"]
    click.echo(
        f"\n{summary['total_items']} items, {summary['urgent_items']} urgent, "
        f"estimated cost {summary['total_estimated_cost_cents']} cents"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
