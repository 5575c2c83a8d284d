# Overview: Flask CLI command groups for bootstrap, issuance, redemption and stats.

# backend/qrewards/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "qrewards:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system hash-admin-secret
#   Print a bcrypt hash to use as ADMIN_PASSWORD.
#
# Tokens:
# - python -m flask tokens issue --product "Elite Reward Product" --batch BATCH2026JAN --count 100 --expiry 2026-12-31
#   Issue a batch of tokens.
# - python -m flask tokens export BATCH2026JAN
#   Print token id and redeem URL per line (feed to a QR renderer).
# - python -m flask tokens redeem <token>
#   Redeem a token from the console (support use).
# - python -m flask tokens stats
#   Dashboard and per-product statistics.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import issuance_service
from .services.admin_gate import hash_admin_secret
from .services.components import redemption_engine, reporter, token_store
from .services.errors import RewardTokenError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created")


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
    click.echo("PASS Database reset complete")


@system_group.command('hash-admin-secret')
@click.password_option('--secret', help='Admin secret to hash')
def hash_admin_secret_command(secret):
    """Print a bcrypt hash for ADMIN_PASSWORD."""
    click.echo(hash_admin_secret(secret))


@click.group('tokens')
def tokens_group():
    """Token issuance, export, redemption and statistics."""


@tokens_group.command('issue')
@click.option('--product', 'product_name', required=True, help='Product name')
@click.option('--batch', 'batch_id', required=True, help='Batch id')
@click.option('--count', type=int, default=100, show_default=True, help='Number of tokens')
@click.option('--expiry', default=None, help='Expiry date (ISO-8601, UTC)')
@with_appcontext
def issue_tokens(product_name, batch_id, count, expiry):
    """Issue a batch of tokens."""
    payload = {"product_name": product_name, "batch_id": batch_id, "count": count}
    if expiry:
        payload["expiry_date"] = expiry

    try:
        result = issuance_service.issue_batch_from_payload(
            token_store(), payload, max_batch_size=current_app.config["MAX_BATCH_SIZE"]
        )
    except (RewardTokenError, ValueError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {result['count']} tokens created for {result['product_name']} / {result['batch_id']}")


@tokens_group.command('export')
@click.argument('batch_id')
@with_appcontext
def export_tokens(batch_id):
    """Print "<token> <redeem_url>" for every token in a batch."""
    tokens = issuance_service.list_batch_tokens(
        token_store(), batch_id, base_url=current_app.config["PUBLIC_BASE_URL"]
    )
    if not tokens:
        raise click.ClickException(f"No tokens for batch {batch_id}")
    for t in tokens:
        click.echo(f"{t['token']} {t['redeem_url']}")


@tokens_group.command('redeem')
@click.argument('token_id')
@with_appcontext
def redeem_token(token_id):
    """Redeem one token."""
    try:
        result = redemption_engine().redeem(token_id)
    except RewardTokenError as e:
        raise click.ClickException(f"{e.code}: {e}")
    click.echo(f"PASS Redeemed {result.token_id} for {result.amount_cents}")


@tokens_group.command('stats')
@click.option('--batch', 'batch_id', default=None, help='Restrict dashboard to one batch')
@with_appcontext
def token_stats(batch_id):
    """Show dashboard and per-product statistics."""
    stats_reporter = reporter()
    stats = stats_reporter.dashboard_stats(batch_id=batch_id)
    click.echo(f"Issued:    {stats['total_issued']}")
    click.echo(f"Redeemed:  {stats['redeemed_count']}")
    click.echo(f"Remaining: {stats['remaining_count']}")
    click.echo(f"Paid:      {stats['total_reward_paid']}")

    products = stats_reporter.product_stats()
    if products:
        click.echo("\nProduct                          Total  Redeemed")
        for row in products:
            click.echo(f"{row['product_name'][:32]:<32} {row['total']:>6} {row['redeemed']:>9}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tokens_group)
