"""
Offer service: CRUD for offers and their trigger/target product sets,
plus the eligibility query used by the post-purchase flow.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Dict, Any

from sqlalchemy import or_

from ..extensions import db
from ..models import Offer, TargetProduct, TriggerProduct, OfferStatus, DiscountType
from ..utils.exceptions import ValidationError, OfferNotFoundError
from ..utils.shopify_ids import to_numeric_id, matches_product_ref

logger = logging.getLogger(__name__)


def parse_datetime(value, field: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp from the admin form.

    Aware values are converted to naive UTC so they compare with utcnow().
    Empty values mean "not set".
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f'{field} must be an ISO-8601 date', field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_int(value, field: str, default: Optional[int] = None) -> Optional[int]:
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a whole number', field=field)


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def parse_product_snapshot(product: Dict[str, Any]) -> Dict[str, Any]:
    """Map one product from the admin resource picker to column values."""
    product_id = product.get('id') or product.get('productId')
    if not product_id:
        raise ValidationError('Each product needs an id', field='products')
    return {
        'shopify_product_id': str(product_id),
        'shopify_variant_id': str(product['variantId']) if product.get('variantId') else None,
        'product_title': product.get('title'),
        'variant_title': product.get('variantTitle'),
        'product_price': str(product.get('price') or '0'),
        'variant_price': str(product['variantPrice']) if product.get('variantPrice') is not None else None,
        'image_url': product.get('imageUrl'),
        'variants_count': _parse_int(product.get('variantsCount'), 'variantsCount', default=1),
    }


def parse_offer_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize the admin offer form (camelCase keys).

    Returns column values plus ``products`` (targets) and
    ``trigger_products`` lists of snapshot dicts.

    Raises:
        ValidationError: on any missing or invalid field
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Offer name is required', field='name')

    status = data.get('status') or OfferStatus.ACTIVE
    if status not in OfferStatus.ALL:
        raise ValidationError(
            "Invalid status. Must be 'active', 'paused', or 'draft'", field='status'
        )

    discount_type = data.get('discountType') or DiscountType.PERCENTAGE
    if discount_type not in DiscountType.ALL:
        raise ValidationError(
            "Invalid discount type. Must be 'percentage' or 'fixed'", field='discountType'
        )

    try:
        discount_value = Decimal(str(data.get('discountValue', 0) or 0))
    except InvalidOperation:
        raise ValidationError('Discount value must be a number', field='discountValue')
    if not discount_value.is_finite() or discount_value < 0:
        raise ValidationError('Discount value must be zero or more', field='discountValue')
    if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
        raise ValidationError('Percentage discount cannot exceed 100', field='discountValue')

    targets = data.get('products') or []
    triggers = data.get('purchasedProducts') or []
    if not isinstance(targets, list) or not isinstance(triggers, list):
        raise ValidationError('Products must be lists', field='products')

    return {
        'name': name,
        'description': data.get('description'),
        'status': status,
        'discount_type': discount_type,
        'discount_value': discount_value,
        'offer_title': data.get('offerTitle'),
        'offer_description': data.get('offerDescription'),
        'button_text': data.get('buttonText') or 'Add to Order',
        'limit_per_customer': _parse_int(data.get('limitPerCustomer'), 'limitPerCustomer', default=1) or 1,
        'total_limit': _parse_int(data.get('totalLimit'), 'totalLimit'),
        'expiry_date': parse_datetime(data.get('expiryDate'), 'expiryDate'),
        'schedule_start': parse_datetime(data.get('scheduleStart'), 'scheduleStart'),
        'enable_ab_test': _parse_bool(data.get('enableABTest', False)),
        'products': [parse_product_snapshot(p) for p in targets],
        'trigger_products': [parse_product_snapshot(p) for p in triggers],
    }


class OfferService:
    """Service for offer operations, scoped to one shop."""

    def __init__(self, shop_domain: str):
        self.shop_domain = shop_domain

    # ==================== Queries ====================

    def list_offers(self) -> List[Offer]:
        """All offers for the shop, newest first."""
        return (
            Offer.query
            .filter_by(shop_domain=self.shop_domain)
            .order_by(Offer.created_at.desc())
            .all()
        )

    def get_offer(self, offer_id: str) -> Offer:
        offer = Offer.query.filter_by(id=offer_id, shop_domain=self.shop_domain).first()
        if not offer:
            raise OfferNotFoundError(offer_id)
        return offer

    def has_offers(self) -> bool:
        return Offer.query.filter_by(shop_domain=self.shop_domain).first() is not None

    def count_offers(self) -> int:
        return Offer.query.filter_by(shop_domain=self.shop_domain).count()

    def count_active_offers(self) -> int:
        return Offer.query.filter_by(
            shop_domain=self.shop_domain, status=OfferStatus.ACTIVE
        ).count()

    def find_offers_for_purchased_item(
        self,
        product_id: str,
        variant_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Offer]:
        """
        Live offers with a trigger product matching the purchased item.

        The SQL filter narrows candidates by shop, status, the expiry and
        schedule window, and either stored encoding of the product id.
        The exact product/variant match is then done in Python with
        ``matches_product_ref`` so both encodings are honoured on both sides.
        A trigger with a variant id only matches that variant; a trigger
        without one matches any variant of the product.
        """
        numeric_id = to_numeric_id(product_id)
        if not numeric_id:
            return []
        now = now or datetime.utcnow()

        candidates = (
            Offer.query
            .join(Offer.trigger_products)
            .filter(
                Offer.shop_domain == self.shop_domain,
                Offer.status == OfferStatus.ACTIVE,
                or_(Offer.expiry_date.is_(None), Offer.expiry_date >= now),
                or_(Offer.schedule_start.is_(None), Offer.schedule_start <= now),
                or_(
                    TriggerProduct.shopify_product_id == numeric_id,
                    TriggerProduct.shopify_product_id.like(f'%/{numeric_id}'),
                ),
            )
            .order_by(Offer.created_at.desc())
            .distinct()
            .all()
        )

        return [
            offer for offer in candidates
            if any(self._trigger_matches(t, product_id, variant_id) for t in offer.trigger_products)
        ]

    @staticmethod
    def _trigger_matches(trigger: TriggerProduct, product_id: str, variant_id: Optional[str]) -> bool:
        if not matches_product_ref(trigger.shopify_product_id, product_id):
            return False
        if trigger.shopify_variant_id:
            return matches_product_ref(trigger.shopify_variant_id, variant_id)
        return True

    # ==================== Mutations ====================

    def create_offer(self, payload: Dict[str, Any]) -> Offer:
        """
        Create an offer from a parsed payload (see ``parse_offer_payload``).
        Quota handling is the caller's job; the status is stored as given.
        """
        values = dict(payload)
        targets = values.pop('products', [])
        triggers = values.pop('trigger_products', [])

        offer = Offer(shop_domain=self.shop_domain, **values)
        offer.target_products = [TargetProduct(**p) for p in targets]
        offer.trigger_products = [TriggerProduct(**p) for p in triggers]

        db.session.add(offer)
        db.session.commit()

        logger.info(f"Created offer {offer.id} for {self.shop_domain} (status={offer.status})")
        return offer

    def update_offer(self, offer_id: str, payload: Dict[str, Any]) -> Offer:
        """
        Replace an offer's content.

        Both product sets are deleted and recreated from the payload in the
        same transaction; children always mirror the last submitted form.
        """
        offer = self.get_offer(offer_id)
        values = dict(payload)
        targets = values.pop('products', [])
        triggers = values.pop('trigger_products', [])

        try:
            offer.target_products.clear()
            offer.trigger_products.clear()
            db.session.flush()

            for key, value in values.items():
                setattr(offer, key, value)
            offer.target_products = [TargetProduct(**p) for p in targets]
            offer.trigger_products = [TriggerProduct(**p) for p in triggers]

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Updated offer {offer.id} for {self.shop_domain} (status={offer.status})")
        return offer

    def update_offer_status(self, offer_id: str, status: str) -> Offer:
        """Direct status toggle from the offers list. No quota check."""
        if status not in OfferStatus.ALL:
            raise ValidationError(
                "Invalid status. Must be 'active', 'paused', or 'draft'", field='status'
            )
        offer = self.get_offer(offer_id)
        offer.status = status
        offer.updated_at = datetime.utcnow()
        db.session.commit()
        return offer

    def delete_offer(self, offer_id: str) -> None:
        """Delete an offer; its products go with it, analytics rows are kept."""
        offer = self.get_offer(offer_id)
        db.session.delete(offer)
        db.session.commit()
        logger.info(f"Deleted offer {offer_id} for {self.shop_domain}")
