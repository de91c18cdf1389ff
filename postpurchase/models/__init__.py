"""
Database models for PostPurchase Pro.
Post-purchase upsell offers, plan subscriptions and offer analytics.
"""
from .shop import Shop
from .offer import Offer, TargetProduct, TriggerProduct, OfferStatus, DiscountType
from .subscription import Subscription
from .analytics import OfferEvent, DailyAnalytics, EventType

__all__ = [
    'Shop',
    # Offers
    'Offer',
    'TargetProduct',
    'TriggerProduct',
    'OfferStatus',
    'DiscountType',
    # Billing
    'Subscription',
    # Analytics
    'OfferEvent',
    'DailyAnalytics',
    'EventType',
]
