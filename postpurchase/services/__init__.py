"""
Business logic services for PostPurchase Pro.
"""
from .offer_service import OfferService
from .analytics_service import AnalyticsService
from .subscription_service import SubscriptionService, SubscriptionView
from .post_purchase import PostPurchaseService
from .shopify_billing import ShopifyBillingService

__all__ = [
    'OfferService',
    'AnalyticsService',
    'SubscriptionService',
    'SubscriptionView',
    'PostPurchaseService',
    'ShopifyBillingService',
]
