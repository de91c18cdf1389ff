"""
PostPurchase Pro plan catalog.

Static subscription tiers with their numeric ceilings and feature flags.
Pure lookups, no state.
"""
from typing import Dict, List, Optional

DEFAULT_PLAN_ID = 'free'
FALLBACK_EXTERNAL_PLAN_ID = 'starter'

PLANS = {
    'free': {
        'id': 'free',
        'name': 'Free',
        'price': 0,
        'period': 'forever',
        'max_active_offers': 2,
        'max_impressions_monthly': 100,
        'trial_days': 0,
        'features': [
            'Up to 2 active offers',
            '100 offer impressions/month',
            'Basic analytics',
            'Email support',
        ],
        'limitations': [
            'Limited customization',
            'No A/B testing',
        ],
    },
    'starter': {
        'id': 'starter',
        'name': 'Starter',
        'price': 19,
        'period': '/month',
        'max_active_offers': 10,
        'max_impressions_monthly': 1000,
        'trial_days': 5,
        'popular': True,
        'features': [
            'Up to 10 active offers',
            '1,000 offer impressions/month',
            'Advanced analytics',
            'Priority email support',
            'Custom offer designs',
            'Basic A/B testing',
        ],
        'limitations': [],
    },
    'professional': {
        'id': 'professional',
        'name': 'Professional',
        'price': 49,
        'period': '/month',
        'max_active_offers': 50,
        'max_impressions_monthly': 10000,
        'trial_days': 0,
        'features': [
            'Up to 50 active offers',
            '10,000 offer impressions/month',
            'Advanced analytics & reports',
            'Priority support (24/7)',
            'Full customization',
            'Advanced A/B testing',
            'Audience segmentation',
            'API access',
        ],
        'limitations': [],
    },
    'enterprise': {
        'id': 'enterprise',
        'name': 'Enterprise',
        'price': None,  # Custom pricing
        'period': 'pricing',
        'max_active_offers': 999999,  # Unlimited
        'max_impressions_monthly': 999999,  # Unlimited
        'trial_days': 0,
        'contact_email': 'contact@1s.agency',
        'features': [
            'Unlimited active offers',
            'Unlimited impressions',
            'Custom analytics & reports',
            'Dedicated account manager',
            'White-label options',
            'Custom integrations',
            'SLA guarantee',
            'Advanced security features',
        ],
        'limitations': [],
    },
}

# Feature flags: which plans unlock which feature
PLAN_FEATURES = {
    'advanced_analytics': {'professional', 'enterprise'},
    'ab_testing': {'starter', 'professional', 'enterprise'},
}


def get_plan(plan_id: Optional[str]) -> Dict:
    """Get plan configuration. Unknown ids fall back to the free plan."""
    return PLANS.get(plan_id) or PLANS[DEFAULT_PLAN_ID]


def is_valid_plan(plan_id: Optional[str]) -> bool:
    return plan_id in PLANS


def get_all_plans() -> List[Dict]:
    """Get all plans, cheapest first."""
    return list(PLANS.values())


def get_paid_plans() -> List[Dict]:
    """Plans that can be bought through Shopify Billing (no free, no enterprise)."""
    return [p for p in PLANS.values() if p['id'] not in ('free', 'enterprise')]


def is_billable_plan(plan_id: str) -> bool:
    return any(p['id'] == plan_id for p in get_paid_plans())


def match_plan_by_name(external_name: Optional[str]) -> Dict:
    """
    Recover a catalog plan from a Shopify subscription name.

    The first catalog plan whose name is contained in ``external_name`` wins.
    Names that match nothing map to the starter plan.
    """
    if external_name:
        for plan in PLANS.values():
            if plan['name'] in external_name:
                return plan
    return PLANS[FALLBACK_EXTERNAL_PLAN_ID]


def plan_has_feature(plan_id: Optional[str], feature: str) -> bool:
    return plan_id in PLAN_FEATURES.get(feature, set())
