"""
Tests for post-purchase eligibility resolution.

Tests cover:
- Numeric and global product ids on either side of the match
- Variant-specific triggers
- Status, expiry and schedule filtering
- De-duplication across purchased items
"""
from datetime import datetime, timedelta

from postpurchase.models import OfferStatus
from postpurchase.services.eligibility import PurchasedItem, resolve_eligible_offers
from postpurchase.services.offer_service import OfferService
from conftest import SHOP_DOMAIN, OTHER_SHOP_DOMAIN


def resolve(*items, now=None):
    return resolve_eligible_offers(SHOP_DOMAIN, list(items), now)


class TestPurchasedItem:

    def test_from_checkout_payload(self):
        item = PurchasedItem.from_payload({'productId': 123, 'variantId': 456})
        assert item == PurchasedItem('123', '456')

    def test_from_snake_case_payload(self):
        assert PurchasedItem.from_payload({'product_id': '9'}) == PurchasedItem('9', None)

    def test_instance_passes_through(self):
        item = PurchasedItem('1', '2')
        assert PurchasedItem.from_payload(item) is item


class TestIdEncodings:

    def test_numeric_trigger_global_purchase(self, app, make_offer):
        offer = make_offer(triggers=('1001',))
        result = resolve(PurchasedItem('gid://shopify/Product/1001'))
        assert [o.id for o in result] == [offer.id]

    def test_global_trigger_numeric_purchase(self, app, make_offer):
        offer = make_offer(triggers=('gid://shopify/Product/1001',))
        result = resolve(PurchasedItem('1001'))
        assert [o.id for o in result] == [offer.id]

    def test_global_both_sides(self, app, make_offer):
        offer = make_offer(triggers=('gid://shopify/Product/1001',))
        result = resolve(PurchasedItem('gid://shopify/Product/1001'))
        assert [o.id for o in result] == [offer.id]

    def test_unrelated_product(self, app, make_offer):
        make_offer(triggers=('1001',))
        assert resolve(PurchasedItem('1002')) == []

    def test_id_suffix_does_not_match(self, app, make_offer):
        make_offer(triggers=('gid://shopify/Product/51001',))
        assert resolve(PurchasedItem('1001')) == []

    def test_offer_without_triggers_never_matches(self, app, make_offer):
        make_offer(triggers=())
        assert resolve(PurchasedItem('1001')) == []


class TestVariantTriggers:

    def test_variant_trigger_requires_that_variant(self, app, make_offer):
        offer = make_offer(triggers=(('1001', '555'),))

        assert [o.id for o in resolve(PurchasedItem('1001', 'gid://shopify/ProductVariant/555'))] == [offer.id]
        assert resolve(PurchasedItem('1001', '666')) == []
        assert resolve(PurchasedItem('1001')) == []

    def test_product_trigger_matches_any_variant(self, app, make_offer):
        offer = make_offer(triggers=('1001',))
        assert [o.id for o in resolve(PurchasedItem('1001', '777'))] == [offer.id]


class TestLiveFiltering:

    def test_paused_and_draft_excluded(self, app, make_offer):
        make_offer(status=OfferStatus.PAUSED)
        make_offer(status=OfferStatus.DRAFT)
        assert resolve(PurchasedItem('1001')) == []

    def test_expired_excluded(self, app, make_offer):
        make_offer(expiry_date=datetime.utcnow() - timedelta(days=1))
        assert resolve(PurchasedItem('1001')) == []

    def test_future_expiry_included(self, app, make_offer):
        offer = make_offer(expiry_date=datetime.utcnow() + timedelta(days=1))
        assert [o.id for o in resolve(PurchasedItem('1001'))] == [offer.id]

    def test_scheduled_in_future_excluded(self, app, make_offer):
        make_offer(schedule_start=datetime.utcnow() + timedelta(hours=2))
        assert resolve(PurchasedItem('1001')) == []

    def test_schedule_started_included(self, app, make_offer):
        offer = make_offer(schedule_start=datetime.utcnow() - timedelta(hours=2))
        assert [o.id for o in resolve(PurchasedItem('1001'))] == [offer.id]

    def test_other_shop_excluded(self, app, make_offer):
        make_offer(shop_domain=OTHER_SHOP_DOMAIN)
        assert resolve(PurchasedItem('1001')) == []


class TestResolution:

    def test_no_items(self, app, make_offer):
        make_offer()
        assert resolve() == []

    def test_duplicates_removed_across_items(self, app, make_offer):
        offer = make_offer(triggers=('1001', '1002'))
        result = resolve(PurchasedItem('1001'), PurchasedItem('gid://shopify/Product/1002'))
        assert [o.id for o in result] == [offer.id]

    def test_union_keeps_item_order(self, app, make_offer):
        first = make_offer(name='First', triggers=('1001',))
        second = make_offer(name='Second', triggers=('1002',))
        result = resolve(PurchasedItem('1002'), PurchasedItem('1001'))
        assert [o.id for o in result] == [second.id, first.id]

    def test_newest_first_for_one_item(self, app, make_offer):
        older = make_offer(name='Older', created_at=datetime.utcnow() - timedelta(days=3))
        newer = make_offer(name='Newer', created_at=datetime.utcnow() - timedelta(days=1))
        result = resolve(PurchasedItem('1001'))
        assert [o.id for o in result] == [newer.id, older.id]

    def test_offer_with_two_matching_triggers_returned_once(self, app, make_offer):
        offer = make_offer(triggers=('1001', 'gid://shopify/Product/1001'))
        result = OfferService(SHOP_DOMAIN).find_offers_for_purchased_item('1001')
        assert [o.id for o in result] == [offer.id]

    def test_payload_dicts_accepted(self, app, make_offer):
        offer = make_offer()
        result = resolve_eligible_offers(SHOP_DOMAIN, [{'productId': '1001'}, {'productId': None}])
        assert [o.id for o in result] == [offer.id]
