"""
CLI Commands for PostPurchase Pro.

Usage:
    flask analytics repair-conversion-rates [--shop store.myshopify.com]
    flask analytics impression-usage --shop store.myshopify.com

    flask shops register --domain store.myshopify.com --token shpat_xxx
    flask shops list
"""
from .analytics import init_app as init_analytics_commands
from .shops import init_app as init_shop_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_analytics_commands(app)
    init_shop_commands(app)
