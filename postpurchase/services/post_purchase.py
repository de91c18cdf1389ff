"""
Post-purchase offer fetch.

Flow for one checkout request:
    shop check -> impression quota -> active-offer quota
    -> eligibility -> one impression per surfaced offer -> response

The checkout path reads the local subscription state only; the billing
webhook and the plan endpoints keep that row in sync with Shopify.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Iterable

from ..models import Shop, Offer, EventType
from ..utils.errors import ErrorCode
from ..utils.exceptions import PostPurchaseError
from .analytics_service import AnalyticsService
from .eligibility import resolve_eligible_offers, PurchasedItem
from .subscription_service import SubscriptionService
from .usage_gate import check_action, collect_usage, Action

logger = logging.getLogger(__name__)


class PostPurchaseService:
    """Builds the response for the checkout extension's offer request."""

    def __init__(self, shop_domain: str):
        self.shop_domain = shop_domain

    def fetch_offers(
        self,
        purchased_items: Iterable,
        context: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Returns a JSON-ready body whose ``status`` is the HTTP status:
        403 (shop inactive), 429 (quota reached, nothing recorded) or 200.
        """
        now = now or datetime.utcnow()
        context = context or {}

        shop = Shop.query.filter_by(shopify_domain=self.shop_domain).first()
        if shop is not None and not shop.is_active:
            return {
                'status': 403,
                'code': ErrorCode.SHOP_INACTIVE.value,
                'message': 'This shop is not active',
                'offers': [],
            }

        subscription = SubscriptionService(self.shop_domain).get_canonical_subscription(
            include_external=False
        )
        usage = collect_usage(self.shop_domain, now)

        show = check_action(Action.SHOW_OFFER, subscription, usage)
        if not show.allowed:
            logger.info(
                f"Impression limit reached for {self.shop_domain}: "
                f"{usage.month_impressions}/{subscription.max_impressions_monthly}"
            )
            return {
                'status': 429,
                'code': ErrorCode.LIMIT_REACHED.value,
                'message': show.message,
                'offers': [],
                'limitReached': True,
                'totalImpressions': usage.month_impressions,
                'maxImpressions': subscription.max_impressions_monthly,
                'remainingImpressions': 0,
            }

        # Strictly over: a shop exactly at its limit is still served
        if usage.active_offers > subscription.max_active_offers:
            logger.info(
                f"Active offer limit exceeded for {self.shop_domain}: "
                f"{usage.active_offers}/{subscription.max_active_offers}"
            )
            return {
                'status': 429,
                'code': ErrorCode.LIMIT_REACHED.value,
                'message': (
                    f"This shop has {usage.active_offers} active offers but the "
                    f"{subscription.plan_name} plan allows {subscription.max_active_offers}"
                ),
                'offers': [],
                'limitReached': True,
                'activeOffers': usage.active_offers,
                'maxActiveOffers': subscription.max_active_offers,
            }

        offers = resolve_eligible_offers(self.shop_domain, purchased_items, now)
        recorded = self._record_impressions(offers, context, now)

        remaining = subscription.max_impressions_monthly - usage.month_impressions - recorded
        return {
            'status': 200,
            'message': 'Offers fetched successfully',
            'offers': [offer.to_dict() for offer in offers],
            'remainingImpressions': max(0, remaining),
        }

    def _record_impressions(self, offers: List[Offer], context: Dict[str, Any], now: datetime) -> int:
        """One impression per surfaced offer. Failures are logged and skipped."""
        analytics = AnalyticsService(self.shop_domain)
        recorded = 0
        for offer in offers:
            try:
                analytics.record_event(
                    offer.id,
                    EventType.IMPRESSION,
                    customer_id=context.get('customerId'),
                    order_id=context.get('orderId'),
                    session_id=context.get('sessionId'),
                    user_agent=context.get('userAgent'),
                    referrer=context.get('referrer'),
                    event_data={'source': 'post_purchase'},
                    now=now,
                )
                recorded += 1
            except PostPurchaseError as e:
                # A stored event with a failed rollup still counts as shown
                if getattr(e, 'event', None) is not None:
                    recorded += 1
                logger.warning(f"Impression not recorded for offer {offer.id}: {e.message}")
        return recorded


def parse_purchased_items(raw) -> List[PurchasedItem]:
    """Purchased products from the checkout body; entries without a product id are dropped."""
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if isinstance(entry, dict):
            item = PurchasedItem.from_payload(entry)
            if item.product_id:
                items.append(item)
    return items
