"""
Subscription reconciliation and plan changes.

Two sources of truth exist for a shop's plan: the Shopify Billing
installation (authoritative when it reports an active subscription) and
the local ``subscriptions`` row (fallback). ``reconcile_subscription`` is
the pure merge of the two; ``SubscriptionService`` gathers its inputs and
performs plan transitions.

Plan transitions always talk to Shopify first. Local state is only
written after the external step succeeded.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from flask import current_app

from ..extensions import db
from ..models import Shop, Subscription
from ..utils.exceptions import ValidationError, ExternalServiceError
from .plan_catalog import (
    get_plan, is_valid_plan, is_billable_plan, match_plan_by_name, DEFAULT_PLAN_ID
)
from .shopify_billing import ShopifyBillingService, extract_price
from .usage_gate import check_action, collect_usage, GateDecision

logger = logging.getLogger(__name__)

BILLING_PERIOD_DAYS = 30
INACTIVE_BILLING_STATUSES = ('CANCELLED', 'DECLINED', 'EXPIRED', 'FROZEN')


# ==================== Canonical view ====================

@dataclass
class SubscriptionView:
    """
    The subscription the rest of the app reasons about.

    ``source`` is ``external`` (Shopify Billing), ``local`` (our row) or
    ``default`` (implicit free tier, nothing persisted).
    """
    shop_domain: str
    plan_id: str
    plan_name: str
    plan_price: Optional[float]
    max_active_offers: int
    max_impressions_monthly: int
    is_active: bool
    source: str
    shopify_subscription_id: Optional[str] = None
    charge_id: Optional[str] = None
    status: Optional[str] = None
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_local(cls, row: Subscription) -> 'SubscriptionView':
        return cls(
            shop_domain=row.shop_domain,
            plan_id=row.plan_id,
            plan_name=row.plan_name,
            plan_price=float(row.plan_price) if row.plan_price is not None else None,
            max_active_offers=row.max_active_offers,
            max_impressions_monthly=row.max_impressions_monthly,
            is_active=row.is_active,
            source='local',
            shopify_subscription_id=row.shopify_subscription_id,
            charge_id=row.charge_id,
            status='ACTIVE' if row.is_active else 'CANCELLED',
            started_at=row.started_at,
            expires_at=row.expires_at,
        )

    @classmethod
    def from_external(cls, shop_domain: str, external: Dict[str, Any]) -> 'SubscriptionView':
        plan = match_plan_by_name(external.get('name'))
        price = extract_price(external)
        status = external.get('status') or 'ACTIVE'
        return cls(
            shop_domain=shop_domain,
            plan_id=plan['id'],
            plan_name=plan['name'],
            plan_price=price if price is not None else plan['price'],
            max_active_offers=plan['max_active_offers'],
            max_impressions_monthly=plan['max_impressions_monthly'],
            is_active=status == 'ACTIVE',
            source='external',
            shopify_subscription_id=external.get('id'),
            status=status,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('started_at', 'expires_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


def default_for(shop_domain: str) -> SubscriptionView:
    """Implicit free tier for shops that never picked a plan."""
    plan = get_plan(DEFAULT_PLAN_ID)
    return SubscriptionView(
        shop_domain=shop_domain,
        plan_id=plan['id'],
        plan_name=plan['name'],
        plan_price=plan['price'],
        max_active_offers=plan['max_active_offers'],
        max_impressions_monthly=plan['max_impressions_monthly'],
        is_active=True,
        source='default',
    )


def reconcile_subscription(
    shop_domain: str,
    external_subscriptions: Optional[List[Dict[str, Any]]],
    local: Optional[Subscription]
) -> SubscriptionView:
    """
    Merge Shopify's active subscriptions with the local row.

    1. An active external subscription wins; its limits come from the
       catalog plan whose name it contains (starter when none does).
    2. Otherwise an active local row.
    3. Otherwise the free-tier default.
    """
    for external in external_subscriptions or []:
        if (external.get('status') or 'ACTIVE') == 'ACTIVE':
            return SubscriptionView.from_external(shop_domain, external)

    if local is not None and local.is_active:
        return SubscriptionView.from_local(local)

    return default_for(shop_domain)


# ==================== Service ====================

class SubscriptionService:
    """Plan state for one shop."""

    def __init__(self, shop_domain: str, billing: Optional[ShopifyBillingService] = None):
        self.shop_domain = shop_domain
        self._billing = billing

    @property
    def billing(self) -> Optional[ShopifyBillingService]:
        """Billing client built from the shop's stored credentials, if any."""
        if self._billing is None:
            shop = Shop.query.filter_by(shopify_domain=self.shop_domain).first()
            if shop and shop.has_credentials:
                self._billing = ShopifyBillingService.from_config(
                    shop.shopify_domain, shop.access_token, current_app.config
                )
        return self._billing

    def _require_billing(self) -> ShopifyBillingService:
        billing = self.billing
        if billing is None:
            raise ValidationError(
                'Shop is not connected to Shopify Billing', field='shop'
            )
        return billing

    # ==================== Reads ====================

    def get_local_subscription(self) -> Optional[Subscription]:
        return Subscription.query.filter_by(shop_domain=self.shop_domain).first()

    def get_canonical_subscription(self, include_external: bool = True) -> SubscriptionView:
        """
        Reconciled subscription.

        With ``include_external`` the billing API is asked for active
        subscriptions. If that call fails the local view is used and the
        failure is logged.
        """
        external = None
        if include_external and self.billing is not None:
            try:
                external = self.billing.get_active_subscriptions()
            except ExternalServiceError as e:
                logger.warning(
                    f"Could not load Shopify subscriptions for {self.shop_domain}, "
                    f"using local state: {e.message}"
                )
        return reconcile_subscription(self.shop_domain, external, self.get_local_subscription())

    def get_subscription_with_usage(self, include_external: bool = True) -> Dict[str, Any]:
        view = self.get_canonical_subscription(include_external)
        usage = collect_usage(self.shop_domain)
        plan = get_plan(view.plan_id)
        return {
            'subscription': view.to_dict(),
            'usage': {
                'active_offers_count': usage.active_offers,
                'can_create_more_offers': usage.active_offers < view.max_active_offers,
                'month_impressions_count': usage.month_impressions,
                'impressions_limit': view.max_impressions_monthly,
                'can_show_more_offers': usage.month_impressions < view.max_impressions_monthly,
                'plan_features': plan['features'],
                'plan_limitations': plan['limitations'],
            },
        }

    def check_action(self, action: str, include_external: bool = True) -> GateDecision:
        view = self.get_canonical_subscription(include_external)
        return check_action(action, view, collect_usage(self.shop_domain))

    # ==================== Transitions ====================

    def upsert_local(
        self,
        plan_id: str,
        shopify_subscription_id: Optional[str] = None,
        charge_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Subscription:
        """Write the local row from catalog values. Paid plans get an advisory 30-day expiry."""
        if not is_valid_plan(plan_id):
            raise ValidationError('Invalid plan ID provided', field='plan')

        plan = get_plan(plan_id)
        now = now or datetime.utcnow()

        row = self.get_local_subscription()
        if row is None:
            row = Subscription(shop_domain=self.shop_domain)
            db.session.add(row)

        row.plan_id = plan['id']
        row.plan_name = plan['name']
        row.plan_price = plan['price'] or 0
        row.max_active_offers = plan['max_active_offers']
        row.max_impressions_monthly = plan['max_impressions_monthly']
        row.is_active = True
        row.shopify_subscription_id = shopify_subscription_id
        row.charge_id = charge_id
        row.started_at = now
        row.expires_at = None if plan['id'] == DEFAULT_PLAN_ID else now + timedelta(days=BILLING_PERIOD_DAYS)
        row.updated_at = now

        db.session.commit()
        logger.info(f"Subscription for {self.shop_domain} set to {plan['id']}")
        return row

    def _cancel_external(self) -> List[str]:
        """Cancel every active Shopify subscription. Returns the cancelled ids."""
        billing = self.billing
        if billing is None:
            return []
        cancelled = []
        for external in billing.get_active_subscriptions():
            billing.cancel_subscription(external['id'])
            cancelled.append(external['id'])
        return cancelled

    def change_plan(self, plan_id: str, return_url: str = None) -> Dict[str, Any]:
        """
        Move the shop to ``plan_id``.

        Free: cancel Shopify subscriptions first, then write the free row.
        A failed cancellation propagates and nothing local changes.

        Paid: create the Shopify subscription and return its confirmation
        URL. Nothing is written locally until ``confirm_subscription``.
        """
        if not is_valid_plan(plan_id):
            raise ValidationError('Invalid plan ID provided', field='plan')

        if plan_id == DEFAULT_PLAN_ID:
            cancelled = self._cancel_external()
            row = self.upsert_local(DEFAULT_PLAN_ID)
            return {
                'status': 'deactivated',
                'message': 'Your subscription has been successfully deactivated',
                'cancelled_subscriptions': cancelled,
                'subscription': row.to_dict(),
            }

        if not is_billable_plan(plan_id):
            raise ValidationError(
                'Enterprise plan requires custom pricing. Please contact sales.', field='plan'
            )

        if not return_url:
            raise ValidationError('return_url is required for paid plans', field='return_url')

        plan = get_plan(plan_id)
        result = self._require_billing().create_subscription(
            plan_name=plan['name'],
            price=plan['price'],
            return_url=return_url,
            trial_days=plan['trial_days'],
        )
        logger.info(f"Created pending {plan_id} subscription for {self.shop_domain}")

        return {
            'status': 'pending',
            'message': 'Subscription created. Approve the charge to activate it.',
            'confirmation_url': result.get('confirmation_url'),
            'requires_approval': True,
            'subscription': result.get('subscription'),
        }

    def confirm_subscription(self, plan_id: str, charge_id: Optional[str] = None) -> Subscription:
        """
        Called when the merchant returns from the Shopify confirmation page.

        The approved subscription must be active on Shopify before the local
        row is written.
        """
        if not is_billable_plan(plan_id):
            raise ValidationError('Invalid plan ID provided', field='plan')

        plan = get_plan(plan_id)
        external = [
            s for s in self._require_billing().get_active_subscriptions()
            if (s.get('status') or 'ACTIVE') == 'ACTIVE'
        ]
        approved = next(
            (s for s in external if match_plan_by_name(s.get('name'))['id'] == plan['id']),
            None
        )
        if approved is None:
            raise ValidationError(
                'Subscription was not approved. Please try again.', field='plan'
            )

        return self.upsert_local(
            plan['id'],
            shopify_subscription_id=approved.get('id'),
            charge_id=charge_id,
        )

    def cancel(self) -> Dict[str, Any]:
        """
        Cancel on Shopify, then mark the local row inactive.

        No active Shopify subscription counts as already cancelled.
        """
        cancelled = self._cancel_external()

        row = self.get_local_subscription()
        if row is not None and row.is_active:
            row.is_active = False
            row.updated_at = datetime.utcnow()
            db.session.commit()

        if not cancelled:
            message = 'No active subscription found to cancel'
        else:
            message = 'Subscription cancelled successfully'
        logger.info(f"Cancelled subscription for {self.shop_domain} ({len(cancelled)} external)")

        return {
            'status': 'cancelled',
            'message': message,
            'cancelled_subscriptions': cancelled,
            'subscription': row.to_dict() if row else None,
        }

    def apply_billing_webhook(self, payload: Dict[str, Any]) -> Optional[Subscription]:
        """
        Handle APP_SUBSCRIPTIONS_UPDATE.

        ACTIVE writes the matched catalog plan; CANCELLED, DECLINED, EXPIRED
        and FROZEN mark the row inactive when it refers to that subscription.
        """
        app_subscription = payload.get('app_subscription') or {}
        subscription_id = app_subscription.get('admin_graphql_api_id')
        status = (app_subscription.get('status') or '').upper()
        name = app_subscription.get('name')

        if status == 'ACTIVE':
            plan = match_plan_by_name(name)
            return self.upsert_local(plan['id'], shopify_subscription_id=subscription_id)

        if status in INACTIVE_BILLING_STATUSES:
            row = self.get_local_subscription()
            if row is None:
                return None
            if row.shopify_subscription_id and subscription_id and row.shopify_subscription_id != subscription_id:
                logger.info(
                    f"Ignoring {status} for {subscription_id}: {self.shop_domain} is on "
                    f"{row.shopify_subscription_id}"
                )
                return row
            row.is_active = False
            row.updated_at = datetime.utcnow()
            db.session.commit()
            return row

        logger.info(f"Unhandled subscription status {status!r} for {self.shop_domain}")
        return self.get_local_subscription()
