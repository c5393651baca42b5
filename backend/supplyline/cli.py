# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/supplyline/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables and the order/delivery number counters (idempotent).
# - python -m flask system seed-demo
#   Seed an admin, a company with products, a shopkeeper and a delivery worker.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory maintenance:
# - python -m flask inventory retry-releases [--limit 200]
#   Apply stock releases that were queued because they could not be applied
#   when the order was rejected/cancelled.
#
# Sequences:
# - python -m flask sequences show
#   Print the next order and delivery numbers.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Product, NumberSequence
from .services import inventory_service, sequence_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


def _ensure_sequences() -> None:
    sequence_service.ensure_sequence(
        sequence_service.ORDER_SEQUENCE,
        int(current_app.config.get("ORDER_NUMBER_START", 1001)),
    )
    sequence_service.ensure_sequence(sequence_service.DELIVERY_SEQUENCE, 1)


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and number counters. Safe to re-run."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    _ensure_sequences()
    db.session.commit()
    click.echo("PASS Database initialized.")


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
    _ensure_sequences()
    db.session.commit()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Seed demo accounts and a small catalog. Existing rows (by email / name) are kept."""

    def ensure_account(email: str, **fields) -> Account:
        account = db.session.query(Account).filter_by(email=email).first()
        if account:
            click.echo(f"SKIP  {fields['role']:<16} {email} already exists (id={account.id})")
            return account
        account = Account(email=email, status="active", **fields)
        db.session.add(account)
        db.session.flush()
        click.echo(f"PASS {fields['role']:<16} {email} (id={account.id})")
        return account

    ensure_account("admin@supplyline.demo", name="Admin", role="admin")
    company = ensure_account(
        "orders@deshi-wholesale.demo",
        name="Rahim Uddin",
        role="company_rep",
        company_name="Deshi Wholesale",
        phone="01700000001",
        address="12 Tejgaon I/A",
        area="Tejgaon",
        city="Dhaka",
    )
    ensure_account(
        "shop@karim-store.demo",
        name="Karim Ahmed",
        role="shopkeeper",
        shop_name="Karim General Store",
        phone="01700000002",
        address="House 7, Road 3",
        area="Dhanmondi",
        city="Dhaka",
    )
    ensure_account(
        "rider@supplyline.demo",
        name="Sumon Mia",
        role="delivery_worker",
        phone="01700000003",
        area="Dhanmondi",
        city="Dhaka",
        assigned_areas=["Dhanmondi", "Mohammadpur"],
        availability="available",
        vehicle_type="motorcycle",
        vehicle_number="DHA-11-2233",
    )

    catalog = [
        ("Miniket Rice 25kg", "grains", 185000, "bag", 40),
        ("Soybean Oil 5L", "oil", 85000, "bottle", 60),
        ("Red Lentils 1kg", "pulses", 11000, "kg", 120),
        ("Sugar 1kg", "grocery", 13500, "kg", 100),
    ]
    for name, category, price_cents, unit, stock in catalog:
        exists = db.session.query(Product).filter_by(company_id=company.id, name=name).first()
        if exists:
            continue
        db.session.add(Product(
            company_id=company.id,
            name=name,
            category=category,
            price_cents=price_cents,
            unit=unit,
            stock_quantity=stock,
            is_active=True,
            is_available=True,
        ))
        click.echo(f"PASS product {name} ({stock} {unit})")

    _ensure_sequences()
    db.session.commit()
    click.echo("PASS Demo data ready.")


@click.group('inventory')
def inventory_group():
    """Inventory maintenance commands."""


@inventory_group.command('retry-releases')
@click.option('--limit', type=int, default=200, show_default=True, help='Maximum rows to process')
@with_appcontext
def retry_releases(limit):
    """Apply queued stock releases."""
    result = inventory_service.retry_pending_releases(limit=limit)
    click.echo(f"PASS applied={result['applied']} still_pending={result['pending']}")


@click.group('sequences')
def sequences_group():
    """Number counter inspection."""


@sequences_group.command('show')
@with_appcontext
def show_sequences():
    rows = db.session.query(NumberSequence).order_by(NumberSequence.name.asc()).all()
    if not rows:
        click.echo("No sequences yet. Run 'python -m flask system init-db'.")
        return
    for row in rows:
        if row.name == sequence_service.ORDER_SEQUENCE:
            upcoming = sequence_service.format_order_number(row.next_number)
        elif row.name == sequence_service.DELIVERY_SEQUENCE:
            upcoming = sequence_service.format_delivery_number(row.next_number)
        else:
            upcoming = str(row.next_number)
        click.echo(f"{row.name:<12} next={upcoming}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(sequences_group)
