"""
Subscription/usage gate.

``check_action`` is a pure function of a subscription view and a usage
snapshot. ``collect_usage`` runs the two shop-scoped aggregates that feed it.

Quota checks are best-effort: two concurrent activations competing for the
last slot may both pass.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func

from ..extensions import db
from ..models import OfferStatus, DailyAnalytics
from .offer_service import OfferService
from .plan_catalog import plan_has_feature


class Action:
    CREATE_OFFER = 'create_offer'
    SHOW_OFFER = 'show_offer'
    ACCESS_ANALYTICS = 'access_analytics'
    AB_TESTING = 'ab_testing'


@dataclass(frozen=True)
class UsageSnapshot:
    active_offers: int = 0
    month_impressions: int = 0


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    message: str

    def to_dict(self):
        return {'allowed': self.allowed, 'message': self.message}


def month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def check_action(action: str, subscription, usage: UsageSnapshot) -> GateDecision:
    """
    Decide whether ``action`` is allowed for this subscription and usage.

    ``subscription`` is anything exposing ``plan_id``, ``plan_name``,
    ``max_active_offers`` and ``max_impressions_monthly``. Unknown actions
    are allowed.
    """
    if action == Action.CREATE_OFFER:
        allowed = usage.active_offers < subscription.max_active_offers
        return GateDecision(
            allowed,
            'You can create more offers' if allowed else
            f"You've reached the maximum of {subscription.max_active_offers} active offers "
            f"for your {subscription.plan_name} plan"
        )

    if action == Action.SHOW_OFFER:
        allowed = usage.month_impressions < subscription.max_impressions_monthly
        return GateDecision(
            allowed,
            'You can show more offers' if allowed else
            f"You've reached the monthly limit of {subscription.max_impressions_monthly} impressions "
            f"for your {subscription.plan_name} plan"
        )

    if action == Action.ACCESS_ANALYTICS:
        allowed = plan_has_feature(subscription.plan_id, 'advanced_analytics')
        return GateDecision(
            allowed,
            'You have access to advanced analytics' if allowed else
            'Upgrade to Professional or Enterprise plan to access advanced analytics'
        )

    if action == Action.AB_TESTING:
        allowed = plan_has_feature(subscription.plan_id, 'ab_testing')
        return GateDecision(
            allowed,
            'A/B testing is available' if allowed else
            'Upgrade to Starter plan or higher to access A/B testing'
        )

    return GateDecision(True, 'Action allowed')


def apply_activation_quota(requested_status: str, decision: GateDecision) -> Tuple[str, bool]:
    """
    Downgrade a requested ``active`` status to ``paused`` when the
    create_offer gate denied it. Returns (final_status, downgraded).
    """
    if requested_status == OfferStatus.ACTIVE and not decision.allowed:
        return OfferStatus.PAUSED, True
    return requested_status, False


# ==================== Usage aggregates ====================

def month_impressions(shop_domain: str, now: Optional[datetime] = None) -> int:
    """Sum of daily impressions from the first of the month through today."""
    now = now or datetime.utcnow()
    total = (
        db.session.query(func.coalesce(func.sum(DailyAnalytics.impressions), 0))
        .filter(
            DailyAnalytics.shop_domain == shop_domain,
            DailyAnalytics.day >= month_start(now).date(),
            DailyAnalytics.day <= now.date(),
        )
        .scalar()
    )
    return int(total or 0)


def collect_usage(shop_domain: str, now: Optional[datetime] = None) -> UsageSnapshot:
    return UsageSnapshot(
        active_offers=OfferService(shop_domain).count_active_offers(),
        month_impressions=month_impressions(shop_domain, now),
    )
