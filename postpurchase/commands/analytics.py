"""
CLI Commands for analytics maintenance.

These commands can be run manually or via cron jobs:

# Conversion rate repair (the scheduler also runs this nightly)
0 3 * * * cd /app && flask analytics repair-conversion-rates

# Impression usage for one shop
flask analytics impression-usage --shop store.myshopify.com
"""
import click
from flask.cli import with_appcontext

from ..services.analytics_service import AnalyticsService
from ..services.subscription_service import SubscriptionService


@click.group('analytics')
def analytics_cli():
    """Analytics maintenance commands."""
    pass


@analytics_cli.command('repair-conversion-rates')
@click.option('--shop', 'shop_domain', help='Limit to one shop domain (all shops if not specified)')
@with_appcontext
def repair_conversion_rates(shop_domain):
    """Recompute every stored conversion_rate from its counters."""
    fixed = AnalyticsService.repair_conversion_rates(shop_domain)
    scope = shop_domain or 'all shops'
    click.echo(f"Repaired {fixed} daily analytics rows ({scope})")


@analytics_cli.command('impression-usage')
@click.option('--shop', 'shop_domain', required=True, help='Shop domain')
@with_appcontext
def impression_usage(shop_domain):
    """Show this month's impressions against the plan ceiling."""
    subscription = SubscriptionService(shop_domain).get_canonical_subscription(include_external=False)
    limits = AnalyticsService(shop_domain).check_impression_limits(subscription)

    click.echo(f"Shop: {shop_domain}")
    click.echo(f"  Plan: {subscription.plan_name} ({subscription.source})")
    click.echo(f"  Impressions: {limits['totalImpressions']} / {limits['maxImpressions']}")
    click.echo(f"  Remaining: {limits['remainingImpressions']}")
    if limits['limitReached']:
        click.echo("  Limit reached: offers are hidden until next month or an upgrade")


def init_app(app):
    """Register analytics commands with the Flask app."""
    app.cli.add_command(analytics_cli)
