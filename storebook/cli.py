# Overview: Flask CLI command groups for bootstrap, users and sync.

# Commands Legend:
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storebook (PowerShell: $env:FLASK_APP="storebook"); Flask finds create_app().
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--with-samples]
#   Idempotent bootstrap: creates tables, the settings row and the admin user.
#   --with-samples also adds demo products, partners and accounts.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username clerk --password "Password123" --full-name "Front Clerk" --role employee
#   Create a user (prompts if options are omitted).
#
# Sync:
# - python -m flask sync run [--remote-url https://peer.example.com]
#   Run one two-way sync with the peer (defaults to Settings.remote_url).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Partner, Product, User
from .services.auth_service import USER_ROLES, PasswordValidationError, create_user
from .services.settings_service import get_settings
from .services.sync_client import SyncTransportError, run_two_way_sync
from .validation import ConflictError, ValidationError

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "password123"

SAMPLE_PRODUCTS = [
    {"name": "Wireless Mouse", "sku": "MS-001", "quantity": 50,
     "cost_price_cents": 1000, "selling_price_cents": 2500, "category": "Electronics"},
    {"name": "Mechanical Keyboard", "sku": "KB-002", "quantity": 20,
     "cost_price_cents": 4000, "selling_price_cents": 8999, "category": "Electronics"},
    {"name": "USB-C Cable", "sku": "CB-003", "quantity": 100,
     "cost_price_cents": 200, "selling_price_cents": 999, "category": "Accessories"},
]

SAMPLE_PARTNERS = [
    {"name": "Walk-in Customer", "type": "customer", "email": "guest@store.com"},
    {"name": "Tech Supplier Inc.", "type": "supplier", "email": "orders@techsupplier.com"},
]

SAMPLE_ACCOUNTS = [
    {"code": "1000", "name": "Cash", "type": "asset"},
    {"code": "2000", "name": "Accounts Payable", "type": "liability"},
    {"code": "3000", "name": "Owner's Equity", "type": "equity"},
    {"code": "4000", "name": "Sales Revenue", "type": "revenue"},
    {"code": "5000", "name": "Operating Expenses", "type": "expense"},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--with-samples', is_flag=True, help='Also create demo products, partners and accounts')
@with_appcontext
def init_system(with_samples):
    """
    Initialize Storebook: schema, settings row and admin user.

    Safe to run repeatedly; existing rows are left alone.

    SECURITY: the default admin password is password123. Change it in production!
    """
    click.echo("START Initializing Storebook...")

    db.create_all()
    settings = get_settings()
    click.echo(f"PASS Settings ready (store: {settings.store_name})")

    if db.session.query(User).count() == 0:
        create_user(
            username=DEFAULT_ADMIN_USERNAME,
            password=DEFAULT_ADMIN_PASSWORD,
            full_name="System Administrator",
            role="admin",
        )
        click.echo(f"PASS Created user: {DEFAULT_ADMIN_USERNAME} with role 'admin'")
    else:
        click.echo("WARN  Users already exist, skipping admin creation...")

    if with_samples:
        _seed_samples()

    click.echo("DONE Storebook initialized")


def _seed_samples() -> None:
    if db.session.query(Product).count() == 0:
        for data in SAMPLE_PRODUCTS:
            db.session.add(Product(**data))
        click.echo(f"PASS Created {len(SAMPLE_PRODUCTS)} sample products")
    else:
        click.echo("WARN  Products already exist, skipping samples...")

    if db.session.query(Partner).count() == 0:
        for data in SAMPLE_PARTNERS:
            db.session.add(Partner(**data))
        click.echo(f"PASS Created {len(SAMPLE_PARTNERS)} sample partners")

    existing_codes = {code for (code,) in db.session.query(Account.code).all()}
    added = 0
    for data in SAMPLE_ACCOUNTS:
        if data["code"] not in existing_codes:
            db.session.add(Account(balance_cents=0, **data))
            added += 1
    click.echo(f"PASS Created {added} sample accounts")

    db.session.commit()


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
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='employee', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, password, full_name, role):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(username=username, password=password, full_name=full_name, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ConflictError, ValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


@click.group('sync')
def sync_group():
    """Two-way sync with a peer instance."""


@sync_group.command('run')
@click.option('--remote-url', default=None, help='Peer base URL (defaults to Settings.remote_url)')
@with_appcontext
def run_sync_cli(remote_url):
    """Push local state to the peer, then apply the peer's state locally."""
    try:
        summary = run_two_way_sync(remote_url)
    except SyncTransportError as e:
        raise click.ClickException(f"Sync failed ({e.leg} leg): {e}")
    except ValidationError as e:
        raise click.ClickException(str(e))

    pushed = summary["pushed"]
    pulled = summary["pulled"]
    click.echo(f"PASS Synced with {summary['remote_url']}")
    click.echo(
        f"     pushed: {pushed['products']} products, {pushed['partners']} partners, "
        f"{pushed['transactions']} transactions"
    )
    click.echo(
        f"     pulled: {pulled['products']} products, {pulled['partners']} partners, "
        f"{pulled['transactions']} transactions"
    )
    conflicts = summary["conflicts"]["remote"] + summary["conflicts"]["local"]
    if conflicts:
        click.echo(f"WARN  {len(conflicts)} rows skipped:")
        for c in conflicts:
            click.echo(f"     {c.get('collection')}[{c.get('index')}] {c.get('key')}: {c.get('error')}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sync_group)
