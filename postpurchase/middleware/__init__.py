"""
Middleware package for PostPurchase Pro.
"""
from .shop_auth import (
    require_shop_auth,
    require_checkout_auth,
    require_plan_feature,
    get_shop_from_request,
)
