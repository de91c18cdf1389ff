"""
Offer analytics models.

OfferEvent is the append-only funnel log. DailyAnalytics is the per
(shop, offer, day) rollup that the recorder increments on every event.
"""
from datetime import datetime
from ..extensions import db


class EventType:
    IMPRESSION = 'impression'
    VIEW = 'view'
    ACCEPT = 'accept'
    DECLINE = 'decline'

    ALL = (IMPRESSION, VIEW, ACCEPT, DECLINE)


class OfferEvent(db.Model):
    """
    One funnel event. Written once, never updated or deleted.
    """
    __tablename__ = 'offer_events'

    id = db.Column(db.Integer, primary_key=True)
    shop_domain = db.Column(db.String(255), nullable=False, index=True)
    offer_id = db.Column(db.String(36), db.ForeignKey('offers.id', ondelete='SET NULL'), nullable=True, index=True)
    event_type = db.Column(db.String(20), nullable=False)

    # Order context
    customer_id = db.Column(db.String(100))
    order_id = db.Column(db.String(100))
    product_id = db.Column(db.String(100))
    variant_id = db.Column(db.String(100))
    revenue_amount = db.Column(db.Numeric(10, 2), default=0)
    discount_amount = db.Column(db.Numeric(10, 2), default=0)

    # Request context
    session_id = db.Column(db.String(100))
    user_agent = db.Column(db.String(500))
    ip_address = db.Column(db.String(64))
    referrer = db.Column(db.String(500))
    event_data = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        db.Index('idx_offer_events_shop_offer_created', 'shop_domain', 'offer_id', 'created_at'),
    )

    def __repr__(self):
        return f'<OfferEvent {self.id} {self.event_type} offer={self.offer_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'shop_domain': self.shop_domain,
            'offer_id': self.offer_id,
            'event_type': self.event_type,
            'customer_id': self.customer_id,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'revenue_amount': float(self.revenue_amount or 0),
            'discount_amount': float(self.discount_amount or 0),
            'session_id': self.session_id,
            'user_agent': self.user_agent,
            'ip_address': self.ip_address,
            'referrer': self.referrer,
            'event_data': self.event_data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class DailyAnalytics(db.Model):
    """
    Per-offer, per-day funnel counters.

    ``conversion_rate`` is derived from the counters and recomputed after
    every event; it is never written on its own.
    """
    __tablename__ = 'daily_analytics'

    id = db.Column(db.Integer, primary_key=True)
    shop_domain = db.Column(db.String(255), nullable=False, index=True)
    # No FK: rows outlive their offer and keep its id
    offer_id = db.Column(db.String(36), nullable=False, index=True)
    day = db.Column('date', db.Date, nullable=False, index=True)

    impressions = db.Column(db.Integer, nullable=False, default=0)
    views = db.Column(db.Integer, nullable=False, default=0)
    conversions = db.Column(db.Integer, nullable=False, default=0)
    declines = db.Column(db.Integer, nullable=False, default=0)
    revenue = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    conversion_rate = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('shop_domain', 'offer_id', 'date', name='uq_daily_analytics_shop_offer_date'),
        db.Index('idx_daily_analytics_shop_date', 'shop_domain', 'date'),
    )

    def __repr__(self):
        return f'<DailyAnalytics {self.shop_domain} offer={self.offer_id} {self.day}>'

    def to_dict(self):
        return {
            'id': self.id,
            'shop_domain': self.shop_domain,
            'offer_id': self.offer_id,
            'date': self.day.isoformat() if self.day else None,
            'impressions': self.impressions,
            'views': self.views,
            'conversions': self.conversions,
            'declines': self.declines,
            'revenue': float(self.revenue or 0),
            'conversion_rate': self.conversion_rate,
        }
