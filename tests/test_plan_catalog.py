"""
Tests for the plan catalog.
"""
from postpurchase.services.plan_catalog import (
    PLANS, get_plan, is_valid_plan, get_all_plans, get_paid_plans,
    is_billable_plan, match_plan_by_name, plan_has_feature
)


class TestPlanLookup:

    def test_all_plans_in_price_order(self):
        assert [p['id'] for p in get_all_plans()] == ['free', 'starter', 'professional', 'enterprise']

    def test_free_plan_limits(self):
        plan = get_plan('free')
        assert plan['max_active_offers'] == 2
        assert plan['max_impressions_monthly'] == 100
        assert plan['price'] == 0

    def test_paid_plan_limits(self):
        assert get_plan('starter')['max_active_offers'] == 10
        assert get_plan('starter')['max_impressions_monthly'] == 1000
        assert get_plan('starter')['trial_days'] == 5
        assert get_plan('professional')['max_active_offers'] == 50
        assert get_plan('professional')['max_impressions_monthly'] == 10000

    def test_enterprise_has_custom_pricing(self):
        assert get_plan('enterprise')['price'] is None
        assert get_plan('enterprise')['max_active_offers'] == 999999

    def test_unknown_plan_falls_back_to_free(self):
        assert get_plan('platinum')['id'] == 'free'
        assert get_plan(None)['id'] == 'free'

    def test_is_valid_plan(self):
        for plan_id in PLANS:
            assert is_valid_plan(plan_id)
        assert not is_valid_plan('platinum')
        assert not is_valid_plan(None)

    def test_billable_plans(self):
        assert [p['id'] for p in get_paid_plans()] == ['starter', 'professional']
        assert is_billable_plan('starter')
        assert not is_billable_plan('free')
        assert not is_billable_plan('enterprise')


class TestMatchPlanByName:

    def test_exact_name(self):
        assert match_plan_by_name('Professional')['id'] == 'professional'

    def test_name_contained_in_external_name(self):
        assert match_plan_by_name('PostPurchase Pro Starter')['id'] == 'starter'

    def test_unknown_name_maps_to_starter(self):
        assert match_plan_by_name('Legacy Gold')['id'] == 'starter'
        assert match_plan_by_name(None)['id'] == 'starter'


class TestPlanFeatures:

    def test_advanced_analytics(self):
        assert not plan_has_feature('free', 'advanced_analytics')
        assert not plan_has_feature('starter', 'advanced_analytics')
        assert plan_has_feature('professional', 'advanced_analytics')
        assert plan_has_feature('enterprise', 'advanced_analytics')

    def test_ab_testing(self):
        assert not plan_has_feature('free', 'ab_testing')
        assert plan_has_feature('starter', 'ab_testing')

    def test_unknown_feature(self):
        assert not plan_has_feature('enterprise', 'teleportation')
