"""
Tests for the Offers API endpoints.

Tests cover:
- Authentication
- Offer CRUD with trigger/target product sets
- Active-offer quota: saves downgraded to paused with a toast
- A/B testing plan gate
"""
import json
from datetime import datetime, timedelta

from postpurchase.api.offers import CREATED_PAUSED_TOAST, UPDATED_PAUSED_TOAST
from postpurchase.models import Offer, OfferStatus, TriggerProduct, TargetProduct
from conftest import OTHER_SHOP_DOMAIN


def offer_form(**overrides):
    form = {
        'name': 'Socks with shoes',
        'description': 'Upsell socks after a shoe purchase',
        'status': 'active',
        'discountType': 'percentage',
        'discountValue': 20,
        'offerTitle': 'Complete the look',
        'offerDescription': 'Matching socks at 20% off',
        'buttonText': 'Add socks',
        'limitPerCustomer': 1,
        'products': [{
            'id': 'gid://shopify/Product/2001',
            'title': 'Crew Socks',
            'price': '12.00',
            'imageUrl': 'https://cdn.shopify.com/socks.png',
            'variantsCount': 3,
        }],
        'purchasedProducts': [{'id': '1001', 'title': 'Running Shoes'}],
    }
    form.update(overrides)
    return form


def send(client, method, url, headers, body=None):
    return client.open(url, method=method, headers=headers, data=json.dumps(body) if body is not None else None)


class TestOffersAuth:

    def test_requires_auth(self, client, sample_shop):
        assert client.get('/api/offers').status_code == 401

    def test_invalid_token(self, client, sample_shop):
        response = client.get('/api/offers', headers={'Authorization': 'Bearer broken'})
        assert response.status_code == 401
        assert response.get_json()['code'] == 'INVALID_TOKEN'

    def test_unknown_shop(self, client, app):
        from conftest import bearer_headers
        response = client.get('/api/offers', headers=bearer_headers('unknown.myshopify.com'))
        assert response.status_code == 404
        assert response.get_json()['code'] == 'SHOP_NOT_FOUND'

    def test_inactive_shop(self, client, auth_headers, sample_shop, db_session):
        sample_shop.is_active = False
        db_session.commit()
        assert client.get('/api/offers', headers=auth_headers).status_code == 403

    def test_shop_param_ignored_outside_dev_mode(self, client, sample_shop):
        response = client.get(f'/api/offers?shop={sample_shop.shopify_domain}')
        assert response.status_code == 401

    def test_shop_param_in_dev_mode(self, app, client, sample_shop):
        app.config['SHOPIFY_AUTH_DEV_MODE'] = True
        response = client.get('/api/offers', headers={'X-Shop-Domain': sample_shop.shopify_domain})
        assert response.status_code == 200


class TestCreateOffer:

    def test_create(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form())

        assert response.status_code == 200
        data = response.get_json()
        offer = data['offer']
        assert offer['status'] == 'active'
        assert offer['discount_value'] == 20.0
        assert offer['discount_title'] == '20% off'
        assert offer['products'][0]['shopify_product_id'] == 'gid://shopify/Product/2001'
        assert offer['products'][0]['variants_count'] == 3
        assert offer['trigger_products'][0]['shopify_product_id'] == '1001'
        assert 'toast' not in data

    def test_third_active_offer_saved_as_paused(self, client, auth_headers, make_offer):
        make_offer(name='One')
        make_offer(name='Two')

        response = send(client, 'POST', '/api/offers', auth_headers, offer_form())

        assert response.status_code == 200
        data = response.get_json()
        assert data['offer']['status'] == 'paused'
        assert data['toast'] == CREATED_PAUSED_TOAST
        assert data['downgraded'] is True
        assert Offer.query.filter_by(status=OfferStatus.ACTIVE).count() == 2

    def test_paused_offer_at_limit_no_toast(self, client, auth_headers, make_offer):
        make_offer(name='One')
        make_offer(name='Two')

        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(status='draft'))

        data = response.get_json()
        assert data['offer']['status'] == 'draft'
        assert 'toast' not in data

    def test_paid_plan_allows_more_active(self, client, auth_headers, make_offer, subscribe):
        subscribe('starter')
        make_offer(name='One')
        make_offer(name='Two')

        response = send(client, 'POST', '/api/offers', auth_headers, offer_form())
        assert response.get_json()['offer']['status'] == 'active'

    def test_name_required(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(name='  '))
        assert response.status_code == 400
        assert Offer.query.count() == 0

    def test_percentage_over_100(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(discountValue=150))
        assert response.status_code == 400

    def test_fixed_discount_over_100_allowed(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers,
                        offer_form(discountType='fixed', discountValue=150))
        assert response.status_code == 200
        assert response.get_json()['offer']['discount_title'] == '$150.00 off'

    def test_invalid_status(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(status='archived'))
        assert response.status_code == 400

    def test_invalid_expiry_date(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(expiryDate='next week'))
        assert response.status_code == 400

    def test_expiry_date_stored_as_utc(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers,
                        offer_form(expiryDate='2030-06-01T12:00:00+02:00'))
        assert response.get_json()['offer']['expiry_date'] == '2030-06-01T10:00:00'

    def test_ab_testing_needs_paid_plan(self, client, auth_headers):
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(enableABTest=True))
        assert response.status_code == 403
        assert response.get_json()['code'] == 'UPGRADE_REQUIRED'
        assert Offer.query.count() == 0

    def test_ab_testing_on_starter(self, client, auth_headers, subscribe):
        subscribe('starter')
        response = send(client, 'POST', '/api/offers', auth_headers, offer_form(enableABTest=True))
        assert response.status_code == 200
        assert response.get_json()['offer']['enable_ab_test'] is True


class TestReadOffers:

    def test_list_newest_first(self, client, auth_headers, make_offer):
        make_offer(name='Old', created_at=datetime.utcnow() - timedelta(days=2))
        make_offer(name='New', created_at=datetime.utcnow())
        make_offer(name='Elsewhere', shop_domain=OTHER_SHOP_DOMAIN)

        response = client.get('/api/offers', headers=auth_headers)

        assert response.status_code == 200
        assert [o['name'] for o in response.get_json()['offers']] == ['New', 'Old']

    def test_get_offer(self, client, auth_headers, make_offer):
        offer = make_offer()

        response = client.get(f'/api/offers/{offer.id}', headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['offer']['id'] == offer.id
        assert data['canActivate'] is True
        assert data['limitMessage'] is None

    def test_get_offer_at_limit(self, client, auth_headers, make_offer):
        make_offer(name='One')
        make_offer(name='Two')
        paused = make_offer(name='Paused', status=OfferStatus.PAUSED)

        data = client.get(f'/api/offers/{paused.id}', headers=auth_headers).get_json()

        assert data['canActivate'] is False
        assert 'maximum of 2 active offers' in data['limitMessage']

    def test_get_other_shops_offer(self, client, auth_headers, make_offer):
        offer = make_offer(shop_domain=OTHER_SHOP_DOMAIN)
        response = client.get(f'/api/offers/{offer.id}', headers=auth_headers)
        assert response.status_code == 404


class TestUpdateOffer:

    def test_replaces_product_sets(self, client, auth_headers, make_offer):
        offer = make_offer(triggers=('1001', '1002'), targets=('2001',))

        response = send(client, 'PUT', f'/api/offers/{offer.id}', auth_headers, offer_form(
            name='Renamed',
            purchasedProducts=[{'id': 'gid://shopify/Product/3001', 'variantId': '77'}],
            products=[{'id': '4001'}, {'id': '4002'}],
        ))

        assert response.status_code == 200
        data = response.get_json()['offer']
        assert data['name'] == 'Renamed'
        assert [t['shopify_product_id'] for t in data['trigger_products']] == ['gid://shopify/Product/3001']
        assert data['trigger_products'][0]['shopify_variant_id'] == '77'
        assert [p['shopify_product_id'] for p in data['products']] == ['4001', '4002']
        assert TriggerProduct.query.count() == 1
        assert TargetProduct.query.count() == 2

    def test_active_offer_keeps_slot_at_limit(self, client, auth_headers, make_offer):
        first = make_offer(name='One')
        make_offer(name='Two')

        response = send(client, 'PUT', f'/api/offers/{first.id}', auth_headers, offer_form(name='One v2'))

        data = response.get_json()
        assert data['offer']['status'] == 'active'
        assert 'toast' not in data

    def test_activation_at_limit_downgraded(self, client, auth_headers, make_offer):
        make_offer(name='One')
        make_offer(name='Two')
        paused = make_offer(name='Three', status=OfferStatus.PAUSED)

        response = send(client, 'PUT', f'/api/offers/{paused.id}', auth_headers, offer_form(status='active'))

        data = response.get_json()
        assert data['offer']['status'] == 'paused'
        assert data['toast'] == UPDATED_PAUSED_TOAST

    def test_update_missing_offer(self, client, auth_headers):
        response = send(client, 'PUT', '/api/offers/does-not-exist', auth_headers, offer_form())
        assert response.status_code == 404

    def test_invalid_update_keeps_offer(self, client, auth_headers, make_offer):
        offer = make_offer(name='Original')

        response = send(client, 'PUT', f'/api/offers/{offer.id}', auth_headers, offer_form(discountValue=-5))

        assert response.status_code == 400
        assert Offer.query.filter_by(id=offer.id).one().name == 'Original'
        assert TriggerProduct.query.count() == 1


class TestStatusAndDelete:

    def test_status_toggle_skips_quota(self, client, auth_headers, make_offer):
        make_offer(name='One')
        make_offer(name='Two')
        paused = make_offer(name='Three', status=OfferStatus.PAUSED)

        response = send(client, 'PATCH', f'/api/offers/{paused.id}/status', auth_headers, {'status': 'active'})

        assert response.status_code == 200
        assert response.get_json()['offer']['status'] == 'active'
        assert Offer.query.filter_by(status=OfferStatus.ACTIVE).count() == 3

    def test_invalid_status_toggle(self, client, auth_headers, make_offer):
        offer = make_offer()
        response = send(client, 'PATCH', f'/api/offers/{offer.id}/status', auth_headers, {'status': 'live'})
        assert response.status_code == 400

    def test_delete(self, client, auth_headers, make_offer):
        offer = make_offer()
        offer_id = offer.id

        response = send(client, 'DELETE', f'/api/offers/{offer_id}', auth_headers)

        assert response.status_code == 200
        assert client.get(f'/api/offers/{offer_id}', headers=auth_headers).status_code == 404
        assert TriggerProduct.query.count() == 0
        assert TargetProduct.query.count() == 0
