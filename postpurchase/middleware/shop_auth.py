"""
Shop Authentication Middleware.

Admin requests come from the embedded app with a Shopify session token
(JWT signed with the app secret). Checkout requests come from the
post-purchase extension with a checkout session token.

Session tokens contain:
- iss: Shop admin URL (https://shop.myshopify.com/admin)
- dest: Shop URL
- aud: API key
- sub: Staff member GID (admin tokens)
- exp: Expiration time

In dev mode (SHOPIFY_AUTH_DEV_MODE) the shop may be passed as a ``shop``
query parameter or ``X-Shop-Domain`` header, and unknown shops are
auto-created.
"""
import logging
import jwt
from functools import wraps
from typing import Optional
from flask import request, g, current_app

from ..extensions import db
from ..models import Shop
from ..utils.errors import ErrorCode, error_response, unauthorized, forbidden, not_found

logger = logging.getLogger(__name__)


def is_dev_mode() -> bool:
    return bool(current_app.config.get('SHOPIFY_AUTH_DEV_MODE'))


def decode_session_token(token: str) -> Optional[dict]:
    """
    Decode and verify a Shopify session token.

    Args:
        token: JWT session token from App Bridge or the checkout extension

    Returns:
        Decoded token payload or None if invalid
    """
    if not token:
        return None

    api_key = current_app.config.get('SHOPIFY_API_KEY')
    try:
        return jwt.decode(
            token,
            current_app.config.get('SHOPIFY_API_SECRET'),
            algorithms=['HS256'],
            audience=api_key or None,
            options={
                'verify_aud': bool(api_key),
                'verify_exp': True,
            }
        )
    except jwt.ExpiredSignatureError:
        logger.info('[Auth] Session token expired')
        return None
    except jwt.InvalidAudienceError:
        logger.warning('[Auth] Invalid token audience')
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f'[Auth] Invalid token: {e}')
        return None


def get_shop_from_token(payload: dict) -> Optional[str]:
    """
    Extract shop domain from session token payload.

    Args:
        payload: Decoded JWT payload

    Returns:
        Shop domain (e.g., 'shop.myshopify.com')
    """
    for claim in ('dest', 'iss'):
        value = payload.get(claim, '')
        if value:
            value = value.replace('https://', '').replace('http://', '')
            return value.split('/')[0]
    return None


def _bearer_token() -> Optional[str]:
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return None


def get_shop_from_request() -> Optional[str]:
    """
    Get shop domain from the request.

    Priority:
    1. Session token in Authorization header
    2. shop query parameter (dev mode)
    3. X-Shop-Domain header (dev mode)
    """
    token = _bearer_token()
    if token:
        payload = decode_session_token(token)
        if payload:
            return get_shop_from_token(payload)
        return None

    if is_dev_mode():
        return request.args.get('shop') or request.headers.get('X-Shop-Domain')

    return None


def get_or_create_shop(shop_domain: str) -> Optional[Shop]:
    """
    Get the installed shop, auto-creating it in dev mode.
    """
    shop = Shop.query.filter_by(shopify_domain=shop_domain).first()

    if not shop and is_dev_mode():
        slug = shop_domain.replace('.myshopify.com', '').lower()
        shop = Shop(
            shopify_domain=shop_domain,
            shop_name=slug.replace('-', ' ').title(),
            is_active=True,
        )
        db.session.add(shop)
        db.session.commit()
        logger.info(f'[Auth] Auto-created dev shop for {shop_domain}')

    return shop


def require_shop_auth(f):
    """
    Decorator to require shop authentication for admin API endpoints.

    Sets g.shop (domain) and g.shop_record if authenticated.

    Usage:
        @require_shop_auth
        def my_endpoint():
            shop = g.shop
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        shop_domain = get_shop_from_request()

        if not shop_domain:
            if _bearer_token():
                return unauthorized('Invalid or expired session token', ErrorCode.INVALID_TOKEN)
            return unauthorized('Missing shop domain')

        shop = get_or_create_shop(shop_domain)
        if not shop:
            return not_found('This shop has not installed the app', ErrorCode.SHOP_NOT_FOUND)

        if not shop.is_active:
            return forbidden("This shop's access has been disabled")

        g.shop = shop.shopify_domain
        g.shop_record = shop
        return f(*args, **kwargs)

    return decorated_function


def require_checkout_auth(f):
    """
    Decorator for endpoints called by the checkout extension.

    Outside dev mode a valid session token is required. The token's shop
    is stored on g.token_shop so handlers can check it against the body.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.token_shop = None
        token = _bearer_token()

        if token:
            payload = decode_session_token(token)
            if not payload:
                return unauthorized('Invalid or expired session token', ErrorCode.INVALID_TOKEN)
            g.token_shop = get_shop_from_token(payload)
        elif not is_dev_mode():
            return unauthorized('Session token required')

        return f(*args, **kwargs)

    return decorated_function


def require_plan_feature(action: str):
    """
    Decorator to require a plan feature gate (e.g. 'access_analytics').

    Must be used after @require_shop_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from ..services.subscription_service import SubscriptionService

            decision = SubscriptionService(g.shop).check_action(action)
            if not decision.allowed:
                return error_response(
                    decision.message,
                    ErrorCode.UPGRADE_REQUIRED,
                    403,
                    log_error=False,
                    action=action
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
