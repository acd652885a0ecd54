# Overview: Flask CLI command groups for bootstrap, stock checks and settlement.

# backend/cafe/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to cafe (PowerShell: $env:FLASK_APP="cafe").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (no-op for tables that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create a small demo menu (Americano, Latte) with stocked ingredients.
#
# Stock inspection:
# - python -m flask stock low
#   List ingredients at or below their minimum quantity.
# - python -m flask stock verify
#   Replay the stock ledger and compare with stored levels; exits 1 on drift.
#
# Settlement:
# - python -m flask settlement pending
#   List pending settlement buckets by expected deposit date.
# - python -m flask settlement settle-date 2024-01-11 [--on 2024-01-11]
#   Mark every pending order expected on that date as settled.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import FulfillmentError
from .models import Ingredient
from .services import catalog_service, inventory_service, ledger, settlement_scheduler
from .time_utils import parse_iso_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


DEMO_INGREDIENTS = [
    # name, unit, opening stock, minimum
    ("Milk", "ml", 5000, 1000),
    ("Coffee Beans", "g", 1000, 200),
    ("Vanilla Syrup", "ml", 500, 100),
]

DEMO_ITEMS = [
    # name, price, {ingredient: quantity per unit}
    ("Americano", 4000, {"Coffee Beans": 18}),
    ("Latte", 4500, {"Coffee Beans": 18, "Milk": 150}),
    ("Vanilla Latte", 5000, {"Coffee Beans": 18, "Milk": 150, "Vanilla Syrup": 20}),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo ingredients, stock and menu items (idempotent by name)."""
    ingredients = {}
    for name, unit, opening, minimum in DEMO_INGREDIENTS:
        existing = db.session.query(Ingredient).filter_by(name=name).first()
        if existing:
            click.echo(f"WARN  Ingredient '{name}' already exists, skipping...")
            ingredients[name] = existing
            continue
        ingredient = catalog_service.create_ingredient(name=name, unit=unit, minimum_quantity=minimum)
        inventory_service.receive_stock(ingredient_id=ingredient.id, quantity=opening, note="demo opening stock")
        ingredients[name] = ingredient
        click.echo(f"PASS Created ingredient: {name} ({opening}{unit})")

    for item_name, price, recipe in DEMO_ITEMS:
        try:
            item = catalog_service.create_menu_item(name=item_name, price=price)
        except FulfillmentError as e:
            click.echo(f"WARN  {e.message}, skipping...")
            continue
        for ingredient_name, quantity in recipe.items():
            catalog_service.set_recipe_line(
                item_id=item.id,
                ingredient_id=ingredients[ingredient_name].id,
                required_quantity=quantity,
            )
        click.echo(f"PASS Created menu item: {item_name} ({price}) with {len(recipe)} recipe lines")

    click.echo("DONE Demo data ready.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('low')
@with_appcontext
def stock_low():
    """List ingredients at or below their minimum."""
    levels = inventory_service.low_stock_items()
    if not levels:
        click.echo("PASS No ingredients below minimum.")
        return
    for level in levels:
        click.echo(
            f"LOW  {level.ingredient.name}: {level.current_quantity:g}{level.ingredient.unit} "
            f"(minimum {level.minimum_quantity:g})"
        )


@stock_group.command('verify')
@with_appcontext
def stock_verify():
    """Replay the ledger for every ingredient and compare with the stored level."""
    drift = ledger().find_drift()
    if not drift:
        click.echo("PASS Stock levels match the ledger.")
        return
    for row in drift:
        click.echo(
            f"FAIL {row['ingredient_name']}: stored {row['stored']:g}, ledger replay {row['replayed']:g}"
        )
    sys.exit(1)


@click.group('settlement')
def settlement_group():
    """Deposit settlement commands."""


@settlement_group.command('pending')
@with_appcontext
def settlement_pending():
    """List pending settlement buckets."""
    buckets = settlement_scheduler().get_pending_settlement_buckets()
    if not buckets:
        click.echo("PASS Nothing pending.")
        return
    for bucket in buckets:
        click.echo(f"{bucket.date.isoformat()}  {len(bucket.orders):>4} orders  {bucket.total_amount:>12,}")
    click.echo(f"TOTAL {sum(b.total_amount for b in buckets):,}")


@settlement_group.command('settle-date')
@click.argument('bucket_date')
@click.option('--on', 'settled_on', default=None, help='Settlement date (YYYY-MM-DD), defaults to today')
@with_appcontext
def settlement_settle_date(bucket_date, settled_on):
    """Mark every pending order expected on BUCKET_DATE as settled."""
    try:
        day = parse_iso_date(bucket_date)
        on = parse_iso_date(settled_on) if settled_on else None
    except ValueError:
        raise click.BadParameter("dates must be YYYY-MM-DD")
    if day is None:
        raise click.BadParameter("bucket date is required")

    count = settlement_scheduler().mark_bucket_settled(day, on)
    click.echo(f"PASS Settled {count} orders for {day.isoformat()}.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(settlement_group)
