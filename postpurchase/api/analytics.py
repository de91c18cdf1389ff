"""
Analytics API endpoints for the admin app.

Dashboard totals for every plan; per-offer time series for plans with
advanced analytics.
"""
import logging
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware.shop_auth import require_shop_auth, require_plan_feature
from ..services.analytics_service import AnalyticsService
from ..services.subscription_service import SubscriptionService
from ..services.usage_gate import Action
from ..utils.errors import ErrorCode, error_response, exception_response, internal_error
from ..utils.exceptions import PostPurchaseError
from .checkout import record_event_response

logger = logging.getLogger(__name__)

analytics_bp = Blueprint('analytics', __name__)

MAX_RANGE_DAYS = 365


def get_date_range() -> int:
    """dateRange query param in days, clamped to 1..365."""
    default = current_app.config.get('DEFAULT_ANALYTICS_RANGE_DAYS', 30)
    try:
        days = int(request.args.get('dateRange', default))
    except (TypeError, ValueError):
        days = default
    return max(1, min(days, MAX_RANGE_DAYS))


def _offer_series(offer_id: str, date_range: int):
    result = AnalyticsService(g.shop).get_offer_analytics(offer_id, date_range)
    return jsonify({'status': 200, 'offerId': offer_id, 'date_range': date_range, **result})


# ==================== DASHBOARD ====================

@analytics_bp.route('', methods=['GET'])
@require_shop_auth
def get_analytics():
    """
    Dashboard analytics, or one offer's series when ``offerId`` is given.

    Query params:
        dateRange: days to look back (default 30)
        offerId: optional offer id
    """
    date_range = get_date_range()
    offer_id = request.args.get('offerId')

    try:
        if offer_id:
            decision = SubscriptionService(g.shop).check_action(Action.ACCESS_ANALYTICS)
            if not decision.allowed:
                return error_response(decision.message, ErrorCode.UPGRADE_REQUIRED, 403, log_error=False)
            return _offer_series(offer_id, date_range)

        analytics = AnalyticsService(g.shop).get_dashboard_analytics(date_range)
        return jsonify({'status': 200, 'analytics': analytics})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        logger.exception(f"Failed to fetch analytics for {g.shop}")
        return internal_error('Failed to fetch analytics', error=str(e))


@analytics_bp.route('/offers/<offer_id>', methods=['GET'])
@require_shop_auth
@require_plan_feature(Action.ACCESS_ANALYTICS)
def get_offer_analytics(offer_id):
    """Daily rows and raw events for one offer, newest first."""
    try:
        return _offer_series(offer_id, get_date_range())
    except Exception as e:
        logger.exception(f"Failed to fetch analytics for offer {offer_id}")
        return internal_error('Failed to fetch offer analytics', error=str(e))


# ==================== RECORDING ====================

@analytics_bp.route('', methods=['POST'])
@require_shop_auth
def record_admin_event():
    """Record an event from the admin app (same body as /api/analytics/event)."""
    data = request.get_json(silent=True) or {}
    if not data.get('offerId'):
        return error_response('offerId is required', ErrorCode.MISSING_FIELD, 400, log_error=False)
    if not data.get('eventType'):
        return error_response('eventType is required', ErrorCode.MISSING_FIELD, 400, log_error=False)

    return record_event_response(g.shop, str(data['offerId']), data['eventType'], data)


# ==================== LIMITS ====================

@analytics_bp.route('/impression-limits', methods=['GET'])
@require_shop_auth
def impression_limits():
    """Current-month impressions against the plan's ceiling."""
    try:
        subscription = SubscriptionService(g.shop).get_canonical_subscription()
        limits = AnalyticsService(g.shop).check_impression_limits(subscription)
        return jsonify({'status': 200, **limits})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to check impression limits', error=str(e))
