"""
Tests for the flask CLI commands.
"""
from postpurchase.models import Shop, DailyAnalytics
from conftest import SHOP_DOMAIN


class TestShopCommands:

    def test_register_new_shop(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'shops', 'register', '--domain', 'new-store.myshopify.com', '--token', 'shpat_abc'
        ])

        assert result.exit_code == 0
        assert 'Registered shop new-store.myshopify.com' in result.output
        shop = Shop.query.filter_by(shopify_domain='new-store.myshopify.com').one()
        assert shop.access_token == 'shpat_abc'
        assert shop.shop_name == 'New Store'

    def test_register_reactivates_existing(self, app, sample_shop, db_session):
        sample_shop.is_active = False
        db_session.commit()

        result = app.test_cli_runner().invoke(args=[
            'shops', 'register', '--domain', SHOP_DOMAIN, '--token', 'shpat_new'
        ])

        assert result.exit_code == 0
        assert 'Updated shop' in result.output
        db_session.expire_all()
        shop = Shop.query.filter_by(shopify_domain=SHOP_DOMAIN).one()
        assert shop.is_active is True
        assert shop.access_token == 'shpat_new'

    def test_list(self, app, connected_shop):
        result = app.test_cli_runner().invoke(args=['shops', 'list'])
        assert f'{SHOP_DOMAIN}  [active, credentials]' in result.output


class TestAnalyticsCommands:

    def test_repair_conversion_rates(self, app, add_daily, db_session):
        row = add_daily(views=1, conversions=1, conversion_rate=0.0)

        result = app.test_cli_runner().invoke(args=['analytics', 'repair-conversion-rates'])

        assert result.exit_code == 0
        assert 'Repaired 1 daily analytics rows (all shops)' in result.output
        db_session.expire_all()
        assert db_session.get(DailyAnalytics, row.id).conversion_rate == 50.0

    def test_impression_usage(self, app, sample_shop, add_daily):
        add_daily(impressions=100)

        result = app.test_cli_runner().invoke(args=['analytics', 'impression-usage', '--shop', SHOP_DOMAIN])

        assert result.exit_code == 0
        assert 'Impressions: 100 / 100' in result.output
        assert 'Limit reached' in result.output
