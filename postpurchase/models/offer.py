"""
Offer models.

An offer owns two product sets:
- trigger products: a purchase of one of these makes the offer eligible
- target products: what the customer is offered at a discount

Product ids are stored as submitted (numeric or global id); matching
happens at read time, see ``utils.shopify_ids``.
"""
import uuid
from datetime import datetime
from sqlalchemy.orm import declared_attr

from ..extensions import db


class OfferStatus:
    ACTIVE = 'active'
    PAUSED = 'paused'
    DRAFT = 'draft'

    ALL = (ACTIVE, PAUSED, DRAFT)


class DiscountType:
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'

    ALL = (PERCENTAGE, FIXED)


class Offer(db.Model):
    """A configured post-purchase upsell."""
    __tablename__ = 'offers'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    shop_domain = db.Column(db.String(255), nullable=False, index=True)

    # Internal
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=OfferStatus.ACTIVE)

    # Discount terms
    discount_type = db.Column(db.String(20), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # Customer-facing copy
    offer_title = db.Column(db.String(255))
    offer_description = db.Column(db.Text)
    button_text = db.Column(db.String(100), default='Add to Order')

    # Limits and scheduling
    limit_per_customer = db.Column(db.Integer, default=1, nullable=False)
    total_limit = db.Column(db.Integer)
    expiry_date = db.Column(db.DateTime)
    schedule_start = db.Column(db.DateTime)
    enable_ab_test = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Product snapshots
    target_products = db.relationship(
        'TargetProduct', backref='offer', lazy='selectin',
        cascade='all, delete-orphan', order_by='TargetProduct.id'
    )
    trigger_products = db.relationship(
        'TriggerProduct', backref='offer', lazy='selectin',
        cascade='all, delete-orphan', order_by='TriggerProduct.id'
    )

    __table_args__ = (
        db.Index('idx_offers_shop_status', 'shop_domain', 'status'),
    )

    def __repr__(self):
        return f'<Offer {self.id} {self.name} ({self.status})>'

    def discount_title(self) -> str:
        value = float(self.discount_value or 0)
        if self.discount_type == DiscountType.PERCENTAGE:
            return f'{value:g}% off'
        return f'${value:.2f} off'

    def to_dict(self, include_products: bool = True):
        data = {
            'id': self.id,
            'shop_domain': self.shop_domain,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'discount_type': self.discount_type,
            'discount_value': float(self.discount_value or 0),
            'discount_title': self.discount_title(),
            'offer_title': self.offer_title,
            'offer_description': self.offer_description,
            'button_text': self.button_text,
            'limit_per_customer': self.limit_per_customer,
            'total_limit': self.total_limit,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
            'schedule_start': self.schedule_start.isoformat() if self.schedule_start else None,
            'enable_ab_test': self.enable_ab_test,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_products:
            data['products'] = [p.to_dict() for p in self.target_products]
            data['trigger_products'] = [p.to_dict() for p in self.trigger_products]
        return data


class ProductSnapshotMixin:
    """Denormalized copy of a Shopify product/variant at save time."""

    id = db.Column(db.Integer, primary_key=True)

    @declared_attr
    def offer_id(cls):
        return db.Column(
            db.String(36), db.ForeignKey('offers.id', ondelete='CASCADE'),
            nullable=False, index=True
        )

    shopify_product_id = db.Column(db.String(100), nullable=False, index=True)
    shopify_variant_id = db.Column(db.String(100))
    product_title = db.Column(db.String(255))
    variant_title = db.Column(db.String(255))
    product_price = db.Column(db.String(50), default='0')
    variant_price = db.Column(db.String(50))
    image_url = db.Column(db.Text)
    variants_count = db.Column(db.Integer, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'offer_id': self.offer_id,
            'shopify_product_id': self.shopify_product_id,
            'shopify_variant_id': self.shopify_variant_id,
            'product_title': self.product_title,
            'variant_title': self.variant_title,
            'product_price': self.product_price,
            'variant_price': self.variant_price,
            'image_url': self.image_url,
            'variants_count': self.variants_count,
        }


class TargetProduct(ProductSnapshotMixin, db.Model):
    """Product offered once the offer is shown."""
    __tablename__ = 'offer_target_products'

    def __repr__(self):
        return f'<TargetProduct {self.shopify_product_id} offer={self.offer_id}>'


class TriggerProduct(ProductSnapshotMixin, db.Model):
    """Purchased product that makes the offer eligible."""
    __tablename__ = 'offer_trigger_products'

    def __repr__(self):
        return f'<TriggerProduct {self.shopify_product_id} offer={self.offer_id}>'
