# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/filmstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the four stock pools at zero.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask db upgrade
#   Apply migrations instead of create_all (production databases).
#
# Stock:
# - python -m flask stock show
#   Print virgin/colored kg for every pool.
# - python -m flask stock adjust rawMaterial virgin 100 --description "Supplier delivery"
#   Admin addition to a pool.
#
# Prices:
# - python -m flask prices set virgin 1600
#   Set the catalog price (FCFA/kg) for a variant.
#
# Cash ledger outbox:
# - python -m flask cash-ledger pending
#   List notifications not yet delivered.
# - python -m flask cash-ledger dispatch --limit 50 [--requeue-failed]
#   Deliver pending notifications.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.stock import POOLS, FILM_TYPES
from .models.sales import NOTIFICATION_PENDING, NOTIFICATION_FAILED
from .services import stock_service, price_service, cash_ledger_service
from .services.stock_service import POOL_LABELS
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and initialize every stock pool at zero. Safe to re-run."""
    click.echo("START Initializing filmstock...")
    db.create_all()
    rows = stock_service.ensure_pools()
    click.echo(f"PASS {len(rows)} stock pools ready")
    click.echo("DONE")


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    stock_service.ensure_pools()
    click.echo("PASS Database reset complete")


@click.group('stock')
def stock_group():
    """Stock pool inspection and admin adjustments."""


@stock_group.command('show')
@with_appcontext
def show_stock():
    """Print current quantities (kg) per pool."""
    levels = stock_service.get_all_pools()
    click.echo(f"{'Pool':<20} {'Virgin':>10} {'Colored':>10}")
    for pool in POOLS:
        click.echo(f"{POOL_LABELS[pool]:<20} {levels[pool]['virgin']:>10} {levels[pool]['colored']:>10}")


@stock_group.command('adjust')
@click.argument('pool', type=click.Choice(POOLS))
@click.argument('film_type', type=click.Choice(FILM_TYPES))
@click.argument('delta', type=int)
@click.option('--description', default=None, help='History/transaction description')
@with_appcontext
def adjust_stock(pool, film_type, delta, description):
    """Add DELTA kg of FILM_TYPE to POOL."""
    try:
        row = stock_service.adjust(pool, film_type, delta, description=description)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {POOL_LABELS[pool]}: virgin={row.virgin} colored={row.colored}")


@click.group('prices')
def prices_group():
    """Price catalog commands."""


@prices_group.command('set')
@click.argument('film_type', type=click.Choice(FILM_TYPES))
@click.argument('price', type=int)
@with_appcontext
def set_price(film_type, price):
    """Set the catalog PRICE (FCFA/kg) for FILM_TYPE."""
    try:
        product = price_service.set_price(film_type, price)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {product.name}: {product.price} FCFA/kg")


@prices_group.command('show')
@with_appcontext
def show_prices():
    for film_type, info in price_service.get_prices().items():
        suffix = " (default)" if info["is_default"] else ""
        click.echo(f"{film_type:<10} {info['price']:>8} FCFA/kg{suffix}")


@click.group('cash-ledger')
def cash_ledger_group():
    """Cash ledger outbox commands."""


@cash_ledger_group.command('pending')
@click.option('--failed', is_flag=True, help='List FAILED rows instead of PENDING')
@click.option('--limit', default=100, type=int)
@with_appcontext
def list_pending(failed, limit):
    status = NOTIFICATION_FAILED if failed else NOTIFICATION_PENDING
    rows = cash_ledger_service.list_notifications(status=status, limit=limit)
    if not rows:
        click.echo(f"No {status} notifications")
        return
    for row in rows:
        click.echo(
            f"#{row.id} sale={row.sale_id} amount={row.amount} "
            f"attempts={row.attempts} error={row.last_error or '-'}"
        )


@cash_ledger_group.command('dispatch')
@click.option('--limit', default=50, type=int, help='Max notifications to deliver')
@click.option('--requeue-failed', is_flag=True, help='Reset FAILED rows to PENDING first')
@with_appcontext
def dispatch(limit, requeue_failed):
    """Deliver pending cash inflow notifications."""
    if requeue_failed:
        count = cash_ledger_service.requeue_failed()
        click.echo(f"PASS Requeued {count} failed notification(s)")
    try:
        result = cash_ledger_service.dispatch_pending(limit=limit)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS attempted={result['attempted']} sent={result['sent']} "
        f"failed={result['failed']} still_pending={result['pending']}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(prices_group)
    app.cli.add_command(cash_ledger_group)
