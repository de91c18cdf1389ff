"""
Checkout extension endpoints.

The post-purchase extension calls these after an order completes:
- POST /api/offer                  offers for the purchased products
- POST /api/analytics/event        any funnel event (view/accept/decline/...)
- POST /api/analytics/decline      decline shortcut
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.shop_auth import require_checkout_auth
from ..models import EventType
from ..services.analytics_service import AnalyticsService, event_kwargs_from_payload
from ..services.post_purchase import PostPurchaseService, parse_purchased_items
from ..utils.errors import ErrorCode, error_response, exception_response, internal_error
from ..utils.exceptions import PostPurchaseError, AnalyticsRecordingError

checkout_bp = Blueprint('checkout', __name__)


def _checkout_shop(data: dict):
    """
    Shop for a checkout request: the body's shopDomain, which must agree
    with the session token's shop when both are present.

    Returns (shop_domain, error_response or None).
    """
    body_shop = data.get('shopDomain') or data.get('shopId')
    token_shop = g.token_shop
    if body_shop and token_shop and body_shop != token_shop:
        return None, error_response(
            'Shop does not match session token', ErrorCode.INVALID_TOKEN, 401,
            log_error=False, offers=[]
        )
    return body_shop or token_shop, None


@checkout_bp.route('/offer', methods=['POST'])
@require_checkout_auth
def fetch_offers():
    """
    Offers to show after checkout.

    Request body:
        shopDomain: Shop domain
        purchasedProducts: [{productId, variantId}] (numeric or gid ids)
        orderId, customerId, sessionId: optional context for impressions

    Returns:
        200 with offers and remainingImpressions,
        403 if the shop is inactive,
        429 with limit fields if a plan quota is exhausted
    """
    data = request.get_json(silent=True) or {}
    shop_domain, mismatch = _checkout_shop(data)
    if mismatch:
        return mismatch
    purchased = data.get('purchasedProducts')

    if not shop_domain or not isinstance(purchased, list):
        return error_response(
            'Invalid request body - need purchasedProducts and shopDomain',
            ErrorCode.MISSING_FIELD, 400, log_error=False, offers=[]
        )

    try:
        result = PostPurchaseService(shop_domain).fetch_offers(
            parse_purchased_items(purchased),
            context={
                'orderId': data.get('orderId'),
                'customerId': data.get('customerId'),
                'sessionId': data.get('sessionId'),
                'userAgent': request.headers.get('User-Agent'),
                'referrer': request.headers.get('Referer'),
            }
        )
        return jsonify(result), result['status']
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return error_response(
            'Internal server error', ErrorCode.INTERNAL_ERROR, 500, error=str(e), offers=[]
        )


def record_event_response(shop_domain: str, offer_id, event_type: str, data: dict):
    """
    Shared handler for event recording endpoints.

    200 with the stored event, including when only the daily rollup failed
    (``partial_failure`` is then set and ``error`` carries the detail).
    """
    try:
        event = AnalyticsService(shop_domain).record_event(
            offer_id, event_type, **event_kwargs_from_payload(data)
        )
    except AnalyticsRecordingError as e:
        return jsonify({
            'status': 200,
            'message': 'Event recorded, daily analytics update failed',
            'partial_failure': True,
            'error': str(e.original_error) if e.original_error else e.message,
            'event': e.event.to_dict() if e.event is not None else None,
        }), 200
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to record event', error=str(e))

    return jsonify({
        'status': 200,
        'message': 'Event recorded successfully',
        'event': event.to_dict(),
    }), 200


@checkout_bp.route('/analytics/event', methods=['POST'])
@require_checkout_auth
def record_event():
    """
    Record a funnel event from the checkout extension.

    Request body:
        shopDomain, offerId, eventType (required)
        customerId, orderId, productId, variantId, revenueAmount,
        discountAmount, sessionId, userAgent, ipAddress, referrer, eventData
    """
    data = request.get_json(silent=True) or {}
    shop_domain, mismatch = _checkout_shop(data)
    if mismatch:
        return mismatch
    if not shop_domain:
        return error_response('shopDomain is required', ErrorCode.MISSING_FIELD, 400, log_error=False)
    if not data.get('offerId'):
        return error_response('offerId is required', ErrorCode.MISSING_FIELD, 400, log_error=False)
    if not data.get('eventType'):
        return error_response('eventType is required', ErrorCode.MISSING_FIELD, 400, log_error=False)

    data.setdefault('userAgent', request.headers.get('User-Agent'))
    data.setdefault('ipAddress', request.remote_addr)
    return record_event_response(shop_domain, str(data['offerId']), data['eventType'], data)


@checkout_bp.route('/analytics/decline', methods=['POST'])
@require_checkout_auth
def record_decline():
    """Record a decline from the checkout extension."""
    data = request.get_json(silent=True) or {}
    shop_domain, mismatch = _checkout_shop(data)
    if mismatch:
        return mismatch
    if not shop_domain or not data.get('offerId'):
        return error_response(
            'Missing required fields: shopDomain and offerId',
            ErrorCode.MISSING_FIELD, 400, log_error=False
        )

    data.setdefault('userAgent', request.headers.get('User-Agent'))
    data.setdefault('ipAddress', request.remote_addr)
    return record_event_response(shop_domain, str(data['offerId']), EventType.DECLINE, data)
