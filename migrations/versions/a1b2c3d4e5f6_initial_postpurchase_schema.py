"""Initial schema: shops, offers, subscriptions and offer analytics.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def _product_snapshot_table(name):
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.String(36), nullable=False),
        sa.Column('shopify_product_id', sa.String(100), nullable=False),
        sa.Column('shopify_variant_id', sa.String(100), nullable=True),
        sa.Column('product_title', sa.String(255), nullable=True),
        sa.Column('variant_title', sa.String(255), nullable=True),
        sa.Column('product_price', sa.String(50), nullable=True),
        sa.Column('variant_price', sa.String(50), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('variants_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['offer_id'], ['offers.id'], ondelete='CASCADE'),
    )
    op.create_index(f'ix_{name}_offer_id', name, ['offer_id'])
    op.create_index(f'ix_{name}_shopify_product_id', name, ['shopify_product_id'])


def upgrade():
    """Create all PostPurchase Pro tables."""
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shopify_domain', sa.String(255), nullable=False),
        sa.Column('shop_name', sa.String(255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('webhook_secret', sa.String(100), nullable=True),
        sa.Column('scopes', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('installed_at', sa.DateTime(), nullable=True),
        sa.Column('uninstalled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shops_shopify_domain', 'shops', ['shopify_domain'], unique=True)

    op.create_table(
        'offers',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('shop_domain', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('offer_title', sa.String(255), nullable=True),
        sa.Column('offer_description', sa.Text(), nullable=True),
        sa.Column('button_text', sa.String(100), nullable=True),
        sa.Column('limit_per_customer', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_limit', sa.Integer(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('schedule_start', sa.DateTime(), nullable=True),
        sa.Column('enable_ab_test', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_offers_shop_domain', 'offers', ['shop_domain'])
    op.create_index('idx_offers_shop_status', 'offers', ['shop_domain', 'status'])

    _product_snapshot_table('offer_target_products')
    _product_snapshot_table('offer_trigger_products')

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_domain', sa.String(255), nullable=False),
        sa.Column('plan_id', sa.String(50), nullable=False, server_default='free'),
        sa.Column('plan_name', sa.String(100), nullable=False, server_default='Free'),
        sa.Column('plan_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('max_active_offers', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('max_impressions_monthly', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('shopify_subscription_id', sa.String(255), nullable=True),
        sa.Column('charge_id', sa.String(255), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_shop_domain', 'subscriptions', ['shop_domain'], unique=True)

    op.create_table(
        'offer_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_domain', sa.String(255), nullable=False),
        sa.Column('offer_id', sa.String(36), nullable=True),
        sa.Column('event_type', sa.String(20), nullable=False),
        sa.Column('customer_id', sa.String(100), nullable=True),
        sa.Column('order_id', sa.String(100), nullable=True),
        sa.Column('product_id', sa.String(100), nullable=True),
        sa.Column('variant_id', sa.String(100), nullable=True),
        sa.Column('revenue_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('session_id', sa.String(100), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('referrer', sa.String(500), nullable=True),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['offer_id'], ['offers.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_offer_events_shop_domain', 'offer_events', ['shop_domain'])
    op.create_index('ix_offer_events_offer_id', 'offer_events', ['offer_id'])
    op.create_index('ix_offer_events_created_at', 'offer_events', ['created_at'])
    op.create_index(
        'idx_offer_events_shop_offer_created', 'offer_events',
        ['shop_domain', 'offer_id', 'created_at']
    )

    op.create_table(
        'daily_analytics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_domain', sa.String(255), nullable=False),
        sa.Column('offer_id', sa.String(36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('impressions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('declines', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('revenue', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('conversion_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_domain', 'offer_id', 'date', name='uq_daily_analytics_shop_offer_date'),
    )
    op.create_index('ix_daily_analytics_shop_domain', 'daily_analytics', ['shop_domain'])
    op.create_index('ix_daily_analytics_offer_id', 'daily_analytics', ['offer_id'])
    op.create_index('ix_daily_analytics_date', 'daily_analytics', ['date'])
    op.create_index('idx_daily_analytics_shop_date', 'daily_analytics', ['shop_domain', 'date'])


def downgrade():
    """Drop all PostPurchase Pro tables."""
    op.drop_table('daily_analytics')
    op.drop_table('offer_events')
    op.drop_table('subscriptions')
    op.drop_table('offer_trigger_products')
    op.drop_table('offer_target_products')
    op.drop_table('offers')
    op.drop_table('shops')
