"""
Billing API endpoints for PostPurchase Pro.
Handles plan selection via Shopify Billing API.
"""
import logging
from urllib.parse import urlencode
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware.shop_auth import require_shop_auth
from ..models import Shop
from ..services.plan_catalog import get_all_plans, get_plan, is_valid_plan
from ..services.subscription_service import SubscriptionService
from ..utils.errors import ErrorCode, error_response, exception_response, internal_error, not_found
from ..utils.exceptions import PostPurchaseError

logger = logging.getLogger(__name__)

billing_bp = Blueprint('billing', __name__)


def build_return_url(shop_domain: str, plan_id: str) -> str:
    """Where Shopify sends the merchant after approving or declining the charge."""
    plan = get_plan(plan_id)
    base_url = current_app.config.get('APP_URL', '').rstrip('/')
    params = urlencode({
        'shop': shop_domain,
        'plan': plan['id'],
        'planName': plan['name'],
        'price': plan['price'],
    })
    return f"{base_url}/api/billing/callback?{params}"


@billing_bp.route('/plans', methods=['GET'])
def list_plans():
    """
    List all available plans.

    Returns:
        List of plans with limits, features and pricing
    """
    return jsonify({
        'plans': get_all_plans(),
        'currency': 'USD',
        'billing_interval': 'monthly'
    })


@billing_bp.route('/subscription', methods=['GET'])
@require_shop_auth
def get_subscription():
    """Canonical subscription (Shopify first, then local row, then free) with usage."""
    try:
        return jsonify({'status': 200, **SubscriptionService(g.shop).get_subscription_with_usage()})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to get subscription', error=str(e))


@billing_bp.route('/subscribe', methods=['POST'])
@require_shop_auth
def subscribe():
    """
    Change plan.

    Request body:
        plan: Plan id (free, starter, professional)

    Returns:
        Paid plans: confirmation_url to redirect the merchant for approval.
        Free plan: status 'deactivated' once Shopify billing is cancelled.
    """
    data = request.get_json(silent=True) or {}
    plan_id = data.get('plan') or data.get('planId')

    if not is_valid_plan(plan_id):
        return error_response('Invalid plan ID provided', ErrorCode.VALIDATION_ERROR, 400, log_error=False)

    try:
        result = SubscriptionService(g.shop).change_plan(
            plan_id, return_url=build_return_url(g.shop, plan_id)
        )
        return jsonify({'status': 200, 'plan': plan_id, **result})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to change plan', error=str(e))


@billing_bp.route('/callback', methods=['GET'])
def billing_callback():
    """
    Handle redirect after merchant approves/declines the charge.

    Query params:
        shop: Shop domain
        plan: Plan id the charge was created for
        charge_id: Shopify charge ID (optional)

    Note: This is a Shopify redirect so session auth can't be used. The
    approval is verified against Shopify before anything is written.
    """
    shop_domain = request.args.get('shop')
    plan_id = request.args.get('plan')
    if not shop_domain or not plan_id:
        return error_response('Missing shop or plan', ErrorCode.MISSING_FIELD, 400, log_error=False)

    shop = Shop.query.filter_by(shopify_domain=shop_domain).first()
    if not shop:
        return not_found('Shop not found', ErrorCode.SHOP_NOT_FOUND)
    if not shop.is_active:
        return error_response('Shop is not active', ErrorCode.SHOP_INACTIVE, 403, log_error=False)

    try:
        row = SubscriptionService(shop_domain).confirm_subscription(
            plan_id, charge_id=request.args.get('charge_id')
        )
        logger.info(f"Confirmed {plan_id} subscription for {shop_domain}")
        return jsonify({
            'status': 200,
            'message': 'Subscription activated successfully',
            'subscription': row.to_dict(),
        })
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to confirm subscription', error=str(e))


@billing_bp.route('/cancel', methods=['POST'])
@require_shop_auth
def cancel_subscription():
    """Cancel on Shopify first, then locally."""
    try:
        return jsonify({'status': 200, **SubscriptionService(g.shop).cancel()})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to cancel subscription', error=str(e))


@billing_bp.route('/check-action', methods=['POST'])
@require_shop_auth
def check_action():
    """
    Gate decision for the admin UI.

    Request body:
        action: create_offer, show_offer, access_analytics, ab_testing
    """
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    if not action:
        return error_response('action is required', ErrorCode.MISSING_FIELD, 400, log_error=False)

    try:
        decision = SubscriptionService(g.shop).check_action(action)
        return jsonify({'status': 200, 'action': action, **decision.to_dict()})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to check action', error=str(e))
