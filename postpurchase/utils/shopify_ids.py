"""
Shopify identifier helpers.

Product and variant ids reach us in two shapes:
- plain numeric strings ('7982301298731'), as sent by the checkout extension
- global ids ('gid://shopify/Product/7982301298731'), as returned by the Admin API

Historical trigger rows were saved in both shapes, so comparisons always
accept either form on either side.
"""
from typing import Optional, Union

GID_PREFIX = 'gid://shopify/'

IdLike = Union[str, int, None]


def to_numeric_id(value: IdLike) -> Optional[str]:
    """
    Extract the numeric part of a Shopify id.

    Args:
        value: '123', 123 or 'gid://shopify/Product/123'

    Returns:
        '123', or None for empty input
    """
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    # Global ids may carry a query string (gid://shopify/Product/1?foo=bar)
    text = text.split('?', 1)[0]
    return text.rstrip('/').rsplit('/', 1)[-1]


def to_global_id(kind: str, value: IdLike) -> Optional[str]:
    """
    Build a global id ('gid://shopify/<kind>/<numeric>').

    Already-global ids are returned unchanged.
    """
    if value is None or str(value).strip() == '':
        return None

    text = str(value).strip()
    if text.startswith('gid://'):
        return text
    return f'{GID_PREFIX}{kind}/{to_numeric_id(text)}'


def is_global_id(value: IdLike) -> bool:
    return value is not None and str(value).startswith('gid://')


def matches_product_ref(stored_id: IdLike, candidate_id: IdLike) -> bool:
    """
    Compare two product/variant ids that may each be numeric or global.

    Matches on numeric equality, or on the stored id ending with
    '/<numeric candidate>'.
    """
    stored_numeric = to_numeric_id(stored_id)
    candidate_numeric = to_numeric_id(candidate_id)
    if not stored_numeric or not candidate_numeric:
        return False

    if stored_numeric == candidate_numeric:
        return True

    return str(stored_id).endswith(f'/{candidate_numeric}')
