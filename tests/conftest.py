"""
Shared fixtures for PostPurchase Pro tests.

The ``app`` fixture keeps an application context pushed for the whole
test, so test code and requests made through ``client`` share one
database session.
"""
import time
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import jwt
import pytest

from postpurchase import create_app
from postpurchase.config import TestingConfig
from postpurchase.extensions import db as _db
from postpurchase.models import (
    Shop, Offer, TargetProduct, TriggerProduct, OfferStatus, DailyAnalytics
)

SHOP_DOMAIN = 'test-shop.myshopify.com'
OTHER_SHOP_DOMAIN = 'other-shop.myshopify.com'


def make_session_token(shop_domain: str = SHOP_DOMAIN, **claims) -> str:
    """Session token signed the way Shopify signs App Bridge/checkout tokens."""
    now = int(time.time())
    payload = {
        'iss': f'https://{shop_domain}/admin',
        'dest': f'https://{shop_domain}',
        'aud': TestingConfig.SHOPIFY_API_KEY,
        'sub': 'gid://shopify/User/1',
        'iat': now - 5,
        'nbf': now - 5,
        'exp': now + 300,
    }
    payload.update(claims)
    return jwt.encode(payload, TestingConfig.SHOPIFY_API_SECRET, algorithm='HS256')


def bearer_headers(shop_domain: str = SHOP_DOMAIN) -> dict:
    return {
        'Authorization': f'Bearer {make_session_token(shop_domain)}',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def app():
    """Application with a fresh in-memory database."""
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return _db.session


@pytest.fixture
def sample_shop(app):
    """Installed shop without Shopify credentials (no billing calls)."""
    shop = Shop(
        shopify_domain=SHOP_DOMAIN,
        shop_name='Test Shop',
        is_active=True,
        installed_at=datetime.utcnow(),
    )
    _db.session.add(shop)
    _db.session.commit()
    return shop


@pytest.fixture
def connected_shop(sample_shop):
    """Installed shop with an Admin API token, so billing calls are attempted."""
    sample_shop.access_token = 'shpat_test_token'
    _db.session.commit()
    return sample_shop


@pytest.fixture
def mock_billing():
    billing = MagicMock()
    billing.get_active_subscriptions.return_value = []
    return billing


@pytest.fixture
def auth_headers(sample_shop):
    return bearer_headers(sample_shop.shopify_domain)


@pytest.fixture
def checkout_headers(sample_shop):
    return bearer_headers(sample_shop.shopify_domain)


def _snapshot(ref, model):
    if isinstance(ref, tuple):
        product_id, variant_id = ref
    else:
        product_id, variant_id = ref, None
    return model(
        shopify_product_id=str(product_id),
        shopify_variant_id=str(variant_id) if variant_id else None,
        product_title=f'Product {product_id}',
        product_price='25.00',
    )


@pytest.fixture
def make_offer(app):
    """
    Offer factory.

    ``triggers`` and ``targets`` take product ids, or (product_id, variant_id)
    tuples for variant-specific triggers.
    """
    def _make(name='Test Offer', status=OfferStatus.ACTIVE, triggers=('1001',),
              targets=('2001',), shop_domain=SHOP_DOMAIN, **fields):
        fields.setdefault('discount_type', 'percentage')
        fields.setdefault('discount_value', Decimal('15'))
        offer = Offer(shop_domain=shop_domain, name=name, status=status, **fields)
        offer.trigger_products = [_snapshot(t, TriggerProduct) for t in triggers]
        offer.target_products = [_snapshot(t, TargetProduct) for t in targets]
        _db.session.add(offer)
        _db.session.commit()
        return offer

    return _make


@pytest.fixture
def add_daily(app):
    """Insert a daily analytics row directly."""
    def _add(day=None, offer_id='offer-1', shop_domain=SHOP_DOMAIN, **counters):
        row = DailyAnalytics(
            shop_domain=shop_domain,
            offer_id=offer_id,
            day=day or datetime.utcnow().date(),
            impressions=counters.get('impressions', 0),
            views=counters.get('views', 0),
            conversions=counters.get('conversions', 0),
            declines=counters.get('declines', 0),
            revenue=Decimal(str(counters.get('revenue', 0))),
            conversion_rate=counters.get('conversion_rate', 0.0),
        )
        _db.session.add(row)
        _db.session.commit()
        return row

    return _add


@pytest.fixture
def subscribe(app):
    """Put a shop on a plan by writing its local subscription row."""
    from postpurchase.services.subscription_service import SubscriptionService

    def _subscribe(plan_id, shop_domain=SHOP_DOMAIN, **kwargs):
        return SubscriptionService(shop_domain).upsert_local(plan_id, **kwargs)

    return _subscribe
