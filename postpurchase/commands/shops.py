"""
CLI Commands for shop administration.

flask shops register --domain store.myshopify.com --token shpat_xxx
flask shops list
"""
from datetime import datetime

import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models import Shop


@click.group('shops')
def shops_cli():
    """Shop administration commands."""
    pass


@shops_cli.command('register')
@click.option('--domain', required=True, help='Shop domain (store.myshopify.com)')
@click.option('--token', required=True, help='Admin API access token')
@click.option('--webhook-secret', default=None, help='Webhook signing secret')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def register_shop(domain, token, webhook_secret, name):
    """Store (or refresh) a shop's Shopify credentials."""
    shop = Shop.query.filter_by(shopify_domain=domain).first()
    created = shop is None
    if created:
        shop = Shop(shopify_domain=domain)
        db.session.add(shop)

    shop.access_token = token
    if webhook_secret:
        shop.webhook_secret = webhook_secret
    shop.shop_name = name or shop.shop_name or domain.replace('.myshopify.com', '').replace('-', ' ').title()
    shop.is_active = True
    shop.uninstalled_at = None
    if created:
        shop.installed_at = datetime.utcnow()

    db.session.commit()
    click.echo(f"{'Registered' if created else 'Updated'} shop {domain}")


@shops_cli.command('list')
@with_appcontext
def list_shops():
    """List installed shops."""
    shops = Shop.query.order_by(Shop.shopify_domain).all()
    if not shops:
        click.echo("No shops registered")
        return
    for shop in shops:
        state = 'active' if shop.is_active else 'inactive'
        creds = 'credentials' if shop.has_credentials else 'no credentials'
        click.echo(f"{shop.shopify_domain}  [{state}, {creds}]")


def init_app(app):
    """Register shop commands with the Flask app."""
    app.cli.add_command(shops_cli)
