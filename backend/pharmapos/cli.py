# Overview: Flask CLI command groups for bootstrap, stock inspection, and audit review.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Bootstrap:
# - python -m flask pharmacy init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask pharmacy seed --branch "Main"
#   Create a branch with a small set of sample stock.
#
# Stock inspection:
# - python -m flask stock list --branch-id 1
#   List stock items for a branch.
# - python -m flask stock add --branch-id 1 --name "Paracetamol 500mg" --price-cents 500 --quantity 100
#   Register a new stock item.
#
# Audit review:
# - python -m flask audit tail --branch-id 1 --limit 20
#   Show the most recent audit entries for a branch.

import click
from datetime import date
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch
from .errors import SaleTransactionError
from .services import inventory_service, audit_service


SAMPLE_STOCK = [
    # (name, category, price_cents, quantity)
    ("Paracetamol 500mg x24", "Analgesics", 500, 120),
    ("Amoxicillin 250mg x21", "Antibiotics", 1250, 40),
    ("Ibuprofen 200mg x16", "Analgesics", 650, 80),
    ("Oral Rehydration Salts", "Electrolytes", 150, 200),
    ("Cetirizine 10mg x10", "Antihistamines", 800, 60),
]


@click.group('pharmacy')
def pharmacy_group():
    """Database bootstrap commands."""


@pharmacy_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@pharmacy_group.command('seed')
@click.option('--branch', 'branch_name', default='Main', show_default=True, help='Branch name')
@click.option('--code', default=None, help='Optional short branch code')
@with_appcontext
def seed(branch_name, code):
    """
    Create a branch (if missing) and load sample stock into it.

    Idempotent for the branch itself; stock is only loaded into a branch
    that has none.
    """
    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if branch is None:
        branch = Branch(name=branch_name, code=code)
        db.session.add(branch)
        db.session.commit()
        click.echo(f"PASS Created branch '{branch.name}' (id={branch.id})")
    else:
        click.echo(f"INFO Branch '{branch.name}' already exists (id={branch.id})")

    if inventory_service.list_stock(db.session, branch_id=branch.id):
        click.echo("INFO Branch already has stock; skipping sample items.")
        return

    for name, category, price_cents, quantity in SAMPLE_STOCK:
        item = inventory_service.add_stock_item(
            db.session,
            branch_id=branch.id,
            name=name,
            category=category,
            unit_price_cents=price_cents,
            quantity=quantity,
        )
        click.echo(f"  + {item.name} (id={item.id}, qty={item.quantity_on_hand})")

    click.echo(f"PASS Seeded {len(SAMPLE_STOCK)} stock items.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('list')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@with_appcontext
def list_stock_cli(branch_id):
    """
    List stock items for a branch.

    Example:
        flask stock list --branch-id 1
    """
    items = inventory_service.list_stock(db.session, branch_id=branch_id)

    if not items:
        click.echo("No stock items found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Name':<35} {'Category':<16} {'Price':>10} {'On hand':>9} {'Expiry':>11}")
    click.echo("="*90)
    for item in items:
        price = f"{item.unit_price_cents / 100:.2f}"
        expiry = item.expiry_date.isoformat() if item.expiry_date else "-"
        click.echo(
            f"{item.id:<6} {item.name[:35]:<35} {(item.category or '-')[:16]:<16} "
            f"{price:>10} {item.quantity_on_hand:>9} {expiry:>11}"
        )
    click.echo("="*90 + "\n")


@stock_group.command('add')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@click.option('--name', required=True, help='Item name')
@click.option('--price-cents', type=int, required=True, help='Unit price in cents')
@click.option('--quantity', type=int, default=0, show_default=True, help='Opening quantity on hand')
@click.option('--category', default=None, help='Category')
@click.option('--barcode', default=None, help='Barcode')
@click.option('--expiry', type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help='Expiry date (YYYY-MM-DD)')
@with_appcontext
def add_stock_cli(branch_id, name, price_cents, quantity, category, barcode, expiry):
    """Register a new stock item in a branch."""
    expiry_date: date | None = expiry.date() if expiry else None
    try:
        item = inventory_service.add_stock_item(
            db.session,
            branch_id=branch_id,
            name=name,
            unit_price_cents=price_cents,
            quantity=quantity,
            category=category,
            barcode=barcode,
            expiry_date=expiry_date,
        )
    except SaleTransactionError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Added {item.name} (id={item.id}) with {item.quantity_on_hand} on hand")


@click.group('audit')
def audit_group():
    """Audit trail review commands."""


@audit_group.command('tail')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@click.option('--limit', type=int, default=20, show_default=True, help='Number of entries')
@click.option('--action-type', default=None, help='Filter by action type')
@with_appcontext
def audit_tail(branch_id, limit, action_type):
    """Show the most recent audit entries for a branch."""
    try:
        page = audit_service.list_audit_trail(
            db.session,
            branch_id=branch_id,
            action_type=action_type,
            limit=limit,
        )
    except SaleTransactionError as e:
        raise click.ClickException(str(e))

    if not page.items:
        click.echo("No audit entries found.")
        return

    for entry in page.items:
        click.echo(
            f"{entry.created_at:%Y-%m-%d %H:%M:%S}  #{entry.id:<6} user={entry.actor_user_id:<5} "
            f"{entry.action_type:<8} {entry.entity_type}:{entry.entity_id}  {entry.description}"
        )
    click.echo(f"\nShowing {len(page.items)} of {page.total} entries.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pharmacy_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(audit_group)
