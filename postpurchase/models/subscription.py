"""
Local subscription record.

One row per shop. A missing row means the implicit free tier; the row is
only written on a real plan action (plan change, billing confirmation,
billing webhook).
"""
from datetime import datetime
from ..extensions import db


class Subscription(db.Model):
    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    shop_domain = db.Column(db.String(255), unique=True, nullable=False, index=True)

    # Plan snapshot (copied from the plan catalog when written)
    plan_id = db.Column(db.String(50), nullable=False, default='free')
    plan_name = db.Column(db.String(100), nullable=False, default='Free')
    plan_price = db.Column(db.Numeric(10, 2), default=0)
    max_active_offers = db.Column(db.Integer, nullable=False, default=2)
    max_impressions_monthly = db.Column(db.Integer, nullable=False, default=100)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Shopify Billing
    shopify_subscription_id = db.Column(db.String(255))  # gid://shopify/AppSubscription/...
    charge_id = db.Column(db.String(255))

    started_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)  # Advisory only
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Subscription {self.shop_domain} {self.plan_id} active={self.is_active}>'

    def to_dict(self):
        return {
            'id': self.id,
            'shop_domain': self.shop_domain,
            'plan_id': self.plan_id,
            'plan_name': self.plan_name,
            'plan_price': float(self.plan_price) if self.plan_price is not None else None,
            'max_active_offers': self.max_active_offers,
            'max_impressions_monthly': self.max_impressions_monthly,
            'is_active': self.is_active,
            'shopify_subscription_id': self.shopify_subscription_id,
            'charge_id': self.charge_id,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }
