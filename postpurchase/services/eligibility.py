"""
Eligibility resolution for the post-purchase offer fetch.

Given the line items of a just-completed order, return the offers that may
be shown. Resolution never records analytics; the caller decides whether
the offers are actually surfaced.
"""
from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional, Union, Dict

from ..models import Offer
from .offer_service import OfferService


class PurchasedItem(NamedTuple):
    product_id: str
    variant_id: Optional[str] = None

    @classmethod
    def from_payload(cls, item: Union['PurchasedItem', Dict]) -> 'PurchasedItem':
        """Accept checkout payload dicts (productId/variantId) or instances."""
        if isinstance(item, cls):
            return item
        product_id = item.get('productId') or item.get('product_id')
        variant_id = item.get('variantId') or item.get('variant_id')
        return cls(
            str(product_id) if product_id is not None else None,
            str(variant_id) if variant_id is not None else None,
        )


def resolve_eligible_offers(
    shop_domain: str,
    purchased_items: Iterable[Union[PurchasedItem, Dict]],
    now: Optional[datetime] = None
) -> List[Offer]:
    """
    Union of live offers triggered by any purchased item.

    Items are queried one after another. Duplicates are dropped by offer id,
    keeping the first occurrence. No items or no matches yields ``[]``.
    """
    now = now or datetime.utcnow()
    service = OfferService(shop_domain)

    seen = set()
    eligible = []
    for raw in purchased_items or []:
        item = PurchasedItem.from_payload(raw)
        if not item.product_id:
            continue
        for offer in service.find_offers_for_purchased_item(item.product_id, item.variant_id, now):
            if offer.id in seen:
                continue
            seen.add(offer.id)
            eligible.append(offer)

    return eligible
