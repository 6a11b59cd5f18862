# Overview: Flask CLI command groups for bootstrap, staff accounts and remote-order maintenance.

# backend/bingo_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and a default admin cashier.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cashier accounts:
# - python -m flask cashiers list
# - python -m flask cashiers create --username ana --full-name "Ana Torres" --password secret1 --admin
#
# Remote orders:
# - python -m flask orders pending
#   List pending Daviplata orders.
# - python -m flask orders expire --older-than 240
#   Cancel unclaimed pending orders older than N minutes (default REMOTE_ORDER_EXPIRY_MINUTES).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Cashier
from .models.cashiers import PERMISSION_FLAGS
from .services.auth_service import hash_password
from .services import remote_order_service


DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and a default administrator with every permission.

    SECURITY: Change the default password before the event!
    """
    click.echo("START Initializing Bingo POS...")
    db.create_all()

    admin = db.session.query(Cashier).filter_by(username=DEFAULT_ADMIN_USERNAME).first()
    if admin:
        click.echo(f"PASS Using existing administrator: {admin.username} (ID: {admin.id})")
        return

    admin = Cashier(
        username=DEFAULT_ADMIN_USERNAME,
        full_name="Administrator",
        password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
        **{flag: True for flag in PERMISSION_FLAGS},
    )
    db.session.add(admin)
    db.session.commit()
    click.echo(f"PASS Created administrator: {DEFAULT_ADMIN_USERNAME} / {DEFAULT_ADMIN_PASSWORD}")


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


@click.group('cashiers')
def cashiers_group():
    """Cashier account commands."""


@cashiers_group.command('list')
@with_appcontext
def list_cashiers():
    cashiers = db.session.query(Cashier).order_by(Cashier.id.asc()).all()
    if not cashiers:
        click.echo("No cashiers found.")
        return
    for c in cashiers:
        flags = [f for f in PERMISSION_FLAGS if getattr(c, f)]
        status = "active" if c.is_active else "inactive"
        click.echo(f"{c.id:>4}  {c.username:<16} {c.full_name:<24} {status:<8} {', '.join(flags) or '-'}")


@cashiers_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--admin', is_flag=True, help='Grant every permission')
@with_appcontext
def create_cashier_cli(username, full_name, password, admin):
    username = username.strip().lower()
    if len(password) < 6:
        raise click.ClickException("Password must be at least 6 characters long.")
    if db.session.query(Cashier).filter_by(username=username).first():
        raise click.ClickException(f"Username '{username}' already exists.")

    cashier = Cashier(
        username=username,
        full_name=full_name.strip(),
        password_hash=hash_password(password),
        **{flag: admin for flag in PERMISSION_FLAGS},
    )
    db.session.add(cashier)
    db.session.commit()
    click.echo(f"PASS Created cashier {cashier.username} (ID: {cashier.id})")


@click.group('orders')
def orders_group():
    """Remote (Daviplata) order maintenance."""


@orders_group.command('pending')
@with_appcontext
def list_pending_orders():
    orders = remote_order_service.list_pending()
    if not orders:
        click.echo("No pending orders.")
        return
    for o in orders:
        click.echo(f"{o.reference_code}  id={o.id:<5} total={o.total:<8} created={o.created_at:%Y-%m-%d %H:%M}")


@orders_group.command('expire')
@click.option('--older-than', 'older_than', type=int, default=None,
              help='Age in minutes (default REMOTE_ORDER_EXPIRY_MINUTES)')
@with_appcontext
def expire_orders(older_than):
    count = remote_order_service.expire_stale_orders(older_than)
    click.echo(f"PASS Cancelled {count} stale pending order(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cashiers_group)
    app.cli.add_command(orders_group)
