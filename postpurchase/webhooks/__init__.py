"""
Webhook handlers for PostPurchase Pro.
Processes Shopify app lifecycle and billing webhooks.
"""
import hmac
import hashlib
import base64
from flask import current_app


def verify_shopify_webhook_signature(data: bytes, hmac_header: str, secret: str) -> bool:
    """
    Verify Shopify webhook HMAC-SHA256 signature.

    Args:
        data: Raw request body bytes
        hmac_header: The X-Shopify-Hmac-SHA256 header value
        secret: The webhook secret (per shop, or the app secret)

    Returns:
        True if signature is valid, False otherwise
    """
    if not secret:
        current_app.logger.warning('No webhook secret configured for verification')
        return False

    if not hmac_header:
        current_app.logger.warning('No HMAC header in webhook request')
        return False

    computed_hmac = base64.b64encode(
        hmac.new(secret.encode('utf-8'), data, hashlib.sha256).digest()
    ).decode('utf-8')

    return hmac.compare_digest(computed_hmac, hmac_header)
