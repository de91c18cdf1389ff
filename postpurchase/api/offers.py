"""
Offer management API for the admin app.

Saving an offer as ``active`` when the shop is already at its plan's
active-offer limit never fails: the offer is stored as ``paused`` and the
response carries a ``toast`` telling the merchant why.
"""
from flask import Blueprint, request, jsonify, g

from ..middleware.shop_auth import require_shop_auth
from ..models import OfferStatus
from ..services.offer_service import OfferService, parse_offer_payload
from ..services.subscription_service import SubscriptionService
from ..services.usage_gate import Action, apply_activation_quota
from ..utils.errors import ErrorCode, error_response, exception_response, internal_error
from ..utils.exceptions import PostPurchaseError

offers_bp = Blueprint('offers', __name__)

CREATED_PAUSED_TOAST = 'Offer created but set to paused due to plan limits. Upgrade to activate it.'
UPDATED_PAUSED_TOAST = 'Offer updated but set to paused due to plan limits. Upgrade to activate it.'


def _check_ab_testing(payload: dict, subscriptions: SubscriptionService):
    """A/B testing is a plan feature; refuse the save if it is not included."""
    if not payload.get('enable_ab_test'):
        return None
    decision = subscriptions.check_action(Action.AB_TESTING)
    if decision.allowed:
        return None
    return error_response(decision.message, ErrorCode.UPGRADE_REQUIRED, 403, log_error=False)


@offers_bp.route('', methods=['GET'])
@require_shop_auth
def list_offers():
    """List all offers for the shop, newest first."""
    try:
        offers = OfferService(g.shop).list_offers()
        return jsonify({
            'status': 200,
            'message': 'Offers fetched successfully',
            'offers': [o.to_dict() for o in offers],
        })
    except Exception as e:
        return internal_error('Failed to fetch offers', error=str(e))


@offers_bp.route('', methods=['POST'])
@require_shop_auth
def create_offer():
    """
    Create an offer.

    Request body (camelCase admin form):
        name, description, status, discountType, discountValue, offerTitle,
        offerDescription, buttonText, limitPerCustomer, totalLimit,
        expiryDate, scheduleStart, enableABTest,
        products (targets), purchasedProducts (triggers)
    """
    try:
        payload = parse_offer_payload(request.get_json(silent=True))
        subscriptions = SubscriptionService(g.shop)

        blocked = _check_ab_testing(payload, subscriptions)
        if blocked:
            return blocked

        downgraded = False
        if payload['status'] == OfferStatus.ACTIVE:
            decision = subscriptions.check_action(Action.CREATE_OFFER)
            payload['status'], downgraded = apply_activation_quota(payload['status'], decision)

        offer = OfferService(g.shop).create_offer(payload)

        body = {
            'status': 200,
            'message': 'Offer created successfully',
            'offer': offer.to_dict(),
        }
        if downgraded:
            body['toast'] = CREATED_PAUSED_TOAST
            body['downgraded'] = True
        return jsonify(body)

    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to create offer', error=str(e))


@offers_bp.route('/<offer_id>', methods=['GET'])
@require_shop_auth
def get_offer(offer_id):
    try:
        offer = OfferService(g.shop).get_offer(offer_id)
        decision = SubscriptionService(g.shop).check_action(Action.CREATE_OFFER)
        return jsonify({
            'status': 200,
            'message': 'Offer fetched successfully',
            'offer': offer.to_dict(),
            'canActivate': decision.allowed or offer.status == OfferStatus.ACTIVE,
            'limitMessage': None if decision.allowed else decision.message,
        })
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to fetch offer', error=str(e))


@offers_bp.route('/<offer_id>', methods=['PUT'])
@require_shop_auth
def update_offer(offer_id):
    """
    Replace an offer's content and both product sets.

    An offer that is already active keeps its slot; only a new activation
    is checked against the plan limit.
    """
    try:
        service = OfferService(g.shop)
        current = service.get_offer(offer_id)
        payload = parse_offer_payload(request.get_json(silent=True))
        subscriptions = SubscriptionService(g.shop)

        blocked = _check_ab_testing(payload, subscriptions)
        if blocked:
            return blocked

        downgraded = False
        if payload['status'] == OfferStatus.ACTIVE and current.status != OfferStatus.ACTIVE:
            decision = subscriptions.check_action(Action.CREATE_OFFER)
            payload['status'], downgraded = apply_activation_quota(payload['status'], decision)

        offer = service.update_offer(offer_id, payload)

        body = {
            'status': 200,
            'message': 'Offer updated successfully',
            'offer': offer.to_dict(),
        }
        if downgraded:
            body['toast'] = UPDATED_PAUSED_TOAST
            body['downgraded'] = True
        return jsonify(body)

    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to update offer', error=str(e))


@offers_bp.route('/<offer_id>/status', methods=['PATCH'])
@require_shop_auth
def update_offer_status(offer_id):
    """Toggle status from the offers list (no plan limit check)."""
    data = request.get_json(silent=True) or {}
    try:
        offer = OfferService(g.shop).update_offer_status(offer_id, data.get('status'))
        return jsonify({
            'status': 200,
            'message': 'Offer status updated successfully',
            'offer': offer.to_dict(include_products=False),
        })
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to update offer status', error=str(e))


@offers_bp.route('/<offer_id>', methods=['DELETE'])
@require_shop_auth
def delete_offer(offer_id):
    try:
        OfferService(g.shop).delete_offer(offer_id)
        return jsonify({'status': 200, 'message': 'Offer deleted successfully'})
    except PostPurchaseError as e:
        return exception_response(e)
    except Exception as e:
        return internal_error('Failed to delete offer', error=str(e))
