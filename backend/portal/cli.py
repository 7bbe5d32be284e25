# Overview: Flask CLI command groups for bootstrap, staff and stock maintenance.

# backend/portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff:
# - python -m flask users create --name "Ann Lee" --email ann@example.com --role manager
# - python -m flask users create --name "Bo Chan" --email bo@example.com --manager-email ann@example.com
# - python -m flask users list
#
# Stock:
# - python -m flask stock create-item --name "Hoodie" --category Uniform --unit-cost 20 --threshold 5
# - python -m flask stock receive --item-id 1 --quantity 50 --date 2024-01-01
# - python -m flask stock low-stock-digest
#   Email the low-stock digest to LOW_STOCK_RECIPIENTS (or every admin).

import click
from flask.cli import with_appcontext

from .errors import PortalError
from .extensions import db
from .models.catalog import VALID_CATEGORIES
from .models.people import ROLE_EMPLOYEE, VALID_ROLES
from .services import inventory_service, profile_service


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_command():
    """Create tables that do not exist yet."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset.')
@with_appcontext
def reset_db_command(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('users')
def users_group():
    """Staff profile commands."""


@users_group.command('create')
@click.option('--name', 'full_name', required=True)
@click.option('--email', required=True)
@click.option('--role', type=click.Choice(VALID_ROLES), default=ROLE_EMPLOYEE, show_default=True)
@click.option('--branch', default=None)
@click.option('--cost-centre', default=None)
@click.option('--manager-email', default=None, help='Email of the reporting manager.')
@with_appcontext
def create_user_command(full_name, email, role, branch, cost_centre, manager_email):
    manager_id = None
    if manager_email:
        manager = profile_service.find_by_email(manager_email)
        if manager is None:
            raise click.ClickException(f"No profile with email {manager_email}")
        manager_id = manager.id

    try:
        profile = profile_service.create_profile(
            full_name=full_name,
            email=email,
            role=role,
            branch=branch,
            cost_centre=cost_centre,
            manager_id=manager_id,
        )
    except PortalError as e:
        raise click.ClickException(str(e))

    click.echo(f"Created {profile.role} {profile.email} (id={profile.id})")


@users_group.command('list')
@with_appcontext
def list_users_command():
    for p in profile_service.list_profiles():
        manager = f" manager_id={p.manager_id}" if p.manager_id else ""
        click.echo(f"{p.id:>4}  {p.role:<8}  {p.email:<32}  {p.full_name}{manager}")


@click.group('stock')
def stock_group():
    """Catalog and stock commands."""


@stock_group.command('create-item')
@click.option('--name', required=True)
@click.option('--category', type=click.Choice(VALID_CATEGORIES, case_sensitive=False), default=VALID_CATEGORIES[0])
@click.option('--size', default=None)
@click.option('--supplier', default=None)
@click.option('--unit-cost', default=None)
@click.option('--threshold', 'low_stock_threshold', default=None)
@with_appcontext
def create_item_command(name, category, size, supplier, unit_cost, low_stock_threshold):
    try:
        item = inventory_service.create_item({
            "name": name,
            "category": category,
            "size": size,
            "supplier": supplier,
            "unit_cost": unit_cost,
            "low_stock_threshold": low_stock_threshold,
        })
    except PortalError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created item {item.name} (id={item.id})")


@stock_group.command('receive')
@click.option('--item-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--date', 'received_date', required=True, help='YYYY-MM-DD')
@with_appcontext
def receive_command(item_id, quantity, received_date):
    try:
        inventory_service.receive_stock(item_id, quantity, received_date)
    except PortalError as e:
        raise click.ClickException(str(e))
    item = inventory_service.get_item(item_id)
    click.echo(f"{item.name}: balance now {item.stock_balance}")


@stock_group.command('low-stock-digest')
@with_appcontext
def low_stock_digest_command():
    items = inventory_service.send_low_stock_digest()
    if not items:
        click.echo("No low stock items.")
        return
    for item in items:
        click.echo(f"{item.name}: stock {item.stock_balance} (threshold {item.low_stock_threshold})")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
