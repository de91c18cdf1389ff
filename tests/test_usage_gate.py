"""
Tests for the subscription/usage gate.

Tests cover:
- Quota decisions at and around the plan ceilings
- Feature gates per plan
- Active -> paused downgrade on save
- Monthly impression aggregation window
"""
from datetime import datetime, date
from types import SimpleNamespace

import pytest

from postpurchase.models import OfferStatus
from postpurchase.services.usage_gate import (
    Action, UsageSnapshot, check_action, apply_activation_quota,
    month_start, month_impressions, collect_usage
)
from postpurchase.services.offer_service import OfferService
from conftest import SHOP_DOMAIN, OTHER_SHOP_DOMAIN


def plan_view(plan_id='free', plan_name='Free', max_active_offers=2, max_impressions_monthly=100):
    return SimpleNamespace(
        plan_id=plan_id,
        plan_name=plan_name,
        max_active_offers=max_active_offers,
        max_impressions_monthly=max_impressions_monthly,
    )


class TestCreateOfferGate:

    def test_allowed_below_limit(self):
        decision = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=1))
        assert decision.allowed
        assert decision.message == 'You can create more offers'

    def test_denied_exactly_at_limit(self):
        decision = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=2))
        assert not decision.allowed
        assert decision.message == (
            "You've reached the maximum of 2 active offers for your Free plan"
        )

    def test_denied_over_limit(self):
        decision = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=5))
        assert not decision.allowed


class TestShowOfferGate:

    def test_allowed_below_limit(self):
        decision = check_action(Action.SHOW_OFFER, plan_view(), UsageSnapshot(month_impressions=99))
        assert decision.allowed

    def test_denied_at_limit(self):
        decision = check_action(Action.SHOW_OFFER, plan_view(), UsageSnapshot(month_impressions=100))
        assert not decision.allowed
        assert '100 impressions' in decision.message


class TestFeatureGates:

    @pytest.mark.parametrize('plan_id,allowed', [
        ('free', False),
        ('starter', False),
        ('professional', True),
        ('enterprise', True),
    ])
    def test_access_analytics(self, plan_id, allowed):
        decision = check_action(Action.ACCESS_ANALYTICS, plan_view(plan_id=plan_id), UsageSnapshot())
        assert decision.allowed is allowed

    @pytest.mark.parametrize('plan_id,allowed', [
        ('free', False),
        ('starter', True),
        ('professional', True),
    ])
    def test_ab_testing(self, plan_id, allowed):
        decision = check_action(Action.AB_TESTING, plan_view(plan_id=plan_id), UsageSnapshot())
        assert decision.allowed is allowed

    def test_unknown_action_allowed(self):
        decision = check_action('export_csv', plan_view(), UsageSnapshot())
        assert decision.allowed
        assert decision.message == 'Action allowed'

    def test_decision_to_dict(self):
        decision = check_action('export_csv', plan_view(), UsageSnapshot())
        assert decision.to_dict() == {'allowed': True, 'message': 'Action allowed'}


class TestActivationQuota:

    def test_active_downgraded_when_denied(self):
        denied = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=2))
        assert apply_activation_quota(OfferStatus.ACTIVE, denied) == (OfferStatus.PAUSED, True)

    def test_active_kept_when_allowed(self):
        allowed = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=1))
        assert apply_activation_quota(OfferStatus.ACTIVE, allowed) == (OfferStatus.ACTIVE, False)

    def test_non_active_status_untouched(self):
        denied = check_action(Action.CREATE_OFFER, plan_view(), UsageSnapshot(active_offers=2))
        assert apply_activation_quota(OfferStatus.DRAFT, denied) == (OfferStatus.DRAFT, False)


class TestUsageAggregates:

    def test_month_start(self):
        assert month_start(datetime(2026, 3, 15, 12, 30)) == datetime(2026, 3, 1)

    def test_month_impressions_window(self, app, add_daily):
        now = datetime(2026, 3, 15, 12, 0)
        add_daily(day=date(2026, 3, 1), impressions=10)
        add_daily(day=date(2026, 3, 15), impressions=5, offer_id='offer-2')
        add_daily(day=date(2026, 2, 28), impressions=50)
        add_daily(day=date(2026, 3, 16), impressions=7)
        add_daily(day=date(2026, 3, 10), impressions=40, shop_domain=OTHER_SHOP_DOMAIN)

        assert month_impressions(SHOP_DOMAIN, now) == 15

    def test_month_impressions_empty(self, app):
        assert month_impressions(SHOP_DOMAIN) == 0

    def test_offer_counts(self, app, make_offer):
        offers = OfferService(SHOP_DOMAIN)
        assert offers.has_offers() is False

        make_offer(name='A')
        make_offer(name='B', status=OfferStatus.PAUSED)
        make_offer(name='C', shop_domain=OTHER_SHOP_DOMAIN)

        assert offers.has_offers() is True
        assert offers.count_offers() == 2
        assert offers.count_active_offers() == 1

    def test_collect_usage_counts_only_active_offers(self, app, make_offer):
        make_offer(name='Live')
        make_offer(name='Draft', status=OfferStatus.DRAFT)

        assert collect_usage(SHOP_DOMAIN).active_offers == 1

    def test_collect_usage(self, app, make_offer, add_daily):
        make_offer()
        add_daily(impressions=3)

        usage = collect_usage(SHOP_DOMAIN)
        assert usage == UsageSnapshot(active_offers=1, month_impressions=3)
