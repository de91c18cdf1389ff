"""
Shop model: one row per app installation.
"""
from datetime import datetime
from ..extensions import db


class Shop(db.Model):
    """
    Shopify store that installed PostPurchase Pro.
    Offers, subscriptions and analytics are keyed by ``shopify_domain``.
    """
    __tablename__ = 'shops'

    id = db.Column(db.Integer, primary_key=True)
    shopify_domain = db.Column(db.String(255), unique=True, nullable=False, index=True)
    shop_name = db.Column(db.String(255))

    # Shopify integration
    access_token = db.Column(db.Text)
    webhook_secret = db.Column(db.String(100))
    scopes = db.Column(db.String(500))

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    installed_at = db.Column(db.DateTime, default=datetime.utcnow)
    uninstalled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Shop {self.shopify_domain}>'

    @property
    def has_credentials(self) -> bool:
        return bool(self.shopify_domain and self.access_token)

    def to_dict(self):
        return {
            'id': self.id,
            'shopify_domain': self.shopify_domain,
            'shop_name': self.shop_name,
            'is_active': self.is_active,
            'installed_at': self.installed_at.isoformat() if self.installed_at else None,
            'uninstalled_at': self.uninstalled_at.isoformat() if self.uninstalled_at else None,
        }
