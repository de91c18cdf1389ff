"""
App lifecycle webhook handlers.
Handles app uninstallation and Shopify Billing subscription updates.
"""
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..models import Shop
from ..services.subscription_service import SubscriptionService
from ..utils.errors import ErrorCode, error_response
from . import verify_shopify_webhook_signature

app_lifecycle_bp = Blueprint('app_lifecycle', __name__)


def _signature_ok(shop: Shop) -> bool:
    if current_app.config.get('SHOPIFY_AUTH_DEV_MODE'):
        return True
    hmac_header = request.headers.get('X-Shopify-Hmac-SHA256', '')
    # webhook_secret may already be cleared on uninstall
    secret = shop.webhook_secret or current_app.config.get('SHOPIFY_API_SECRET')
    return verify_shopify_webhook_signature(request.get_data(), hmac_header, secret)


@app_lifecycle_bp.route('/app/uninstalled', methods=['POST'])
def handle_app_uninstalled():
    """
    Handle APP_UNINSTALLED webhook.

    Marks the shop inactive and clears its credentials. Offers and
    analytics are kept for a potential re-install.
    """
    shop_domain = request.headers.get('X-Shopify-Shop-Domain', '')
    current_app.logger.info(f'App uninstalled by {shop_domain}')

    shop = Shop.query.filter_by(shopify_domain=shop_domain).first()
    if not shop:
        return jsonify({'success': True, 'message': 'Shop not found'})

    if not _signature_ok(shop):
        return error_response('Invalid signature', ErrorCode.INVALID_SIGNATURE, 401)

    try:
        shop.is_active = False
        shop.uninstalled_at = datetime.utcnow()
        shop.access_token = None
        shop.webhook_secret = None

        # Shopify cancels app subscriptions on uninstall
        subscription = SubscriptionService(shop_domain).get_local_subscription()
        if subscription is not None:
            subscription.is_active = False

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Error processing app uninstalled webhook: {str(e)}')
        return error_response('Failed to process webhook', ErrorCode.INTERNAL_ERROR, 500, error=str(e))

    current_app.logger.info(f'Shop {shop_domain} marked as uninstalled')
    return jsonify({
        'success': True,
        'shop': shop_domain,
        'action': 'marked_uninstalled'
    })


@app_lifecycle_bp.route('/app-subscriptions/update', methods=['POST'])
def handle_subscription_update():
    """
    Handle APP_SUBSCRIPTIONS_UPDATE webhook.

    Keeps the local subscription row in step with Shopify Billing so the
    checkout path can rely on local state.
    """
    shop_domain = request.headers.get('X-Shopify-Shop-Domain', '')

    shop = Shop.query.filter_by(shopify_domain=shop_domain).first()
    if not shop:
        return jsonify({'success': True, 'message': 'Shop not found'})

    if not _signature_ok(shop):
        return error_response('Invalid signature', ErrorCode.INVALID_SIGNATURE, 401)

    payload = request.get_json(silent=True) or {}
    try:
        row = SubscriptionService(shop_domain).apply_billing_webhook(payload)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Error processing subscription webhook for {shop_domain}: {str(e)}')
        return error_response('Failed to process webhook', ErrorCode.INTERNAL_ERROR, 500, error=str(e))

    status = (payload.get('app_subscription') or {}).get('status')
    current_app.logger.info(f'Subscription update for {shop_domain}: {status}')
    return jsonify({
        'success': True,
        'shop': shop_domain,
        'subscription_status': status,
        'subscription': row.to_dict() if row else None,
    })
