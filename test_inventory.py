"""
test_inventory.py — Stock adjustments, confirmation, logs and low stock.
Run: pytest test_inventory.py -v
"""
from decimal import Decimal

import pytest

from shopdesk import create_app, db
from shopdesk.catalog.models import Product, Variant, VariantSize
from shopdesk.inventory.models import InventoryLog
from shopdesk.utils.numbers import MAX_QUANTITY


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def make_variant(stock=50, low_stock=None):
    product = Product(name='Kurta', hsn=6211)
    variant = Variant(name='Maroon 40', barcode='KU40')
    variant.sizes.append(VariantSize(position=0, size='M', buying_price=Decimal('300'),
                                     selling_price=Decimal('450'), stock=stock))
    if low_stock is not None:
        variant.sizes.append(VariantSize(position=1, size='L', buying_price=Decimal('300'),
                                         selling_price=Decimal('450'), stock=low_stock))
    product.variants.append(variant)
    db.session.add(product)
    db.session.commit()
    return variant.id


def stock_of(variant_id, size='M'):
    db.session.expire_all()
    return db.session.get(Variant, variant_id).size_named(size).stock


# ── Adjust ────────────────────────────────────────────────────────

def test_small_change_applies_and_logs(client):
    vid = make_variant(stock=50)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'subtract', 'amount': 5, 'reason': 'Damaged'})
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'applied'
    assert stock_of(vid) == 45

    log = InventoryLog.query.one()
    assert (log.old_stock, log.new_stock, log.reason) == (50, 45, 'Damaged')


def test_exactly_half_is_not_large(client):
    vid = make_variant(stock=50)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'add', 'amount': 25})
    assert resp.status_code == 200
    assert stock_of(vid) == 75


def test_large_change_needs_confirmation(client):
    vid = make_variant(stock=50)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'add', 'amount': 51})
    assert resp.status_code == 202
    body = resp.get_json()
    assert body['status'] == 'pending_confirmation'
    assert body['adjustment']['new_stock'] == 101
    assert stock_of(vid) == 50
    assert InventoryLog.query.count() == 0

    resp = client.post('/inventory/stock/confirm')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'applied'
    assert stock_of(vid) == 101
    assert InventoryLog.query.one().reason == 'Manual Adjustment (confirmed)'

    # Nothing left to confirm
    assert client.post('/inventory/stock/confirm').status_code == 400


def test_absolute_limit_alone_triggers_confirmation(client):
    vid = make_variant(stock=1000)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'add', 'amount': 150})
    assert resp.status_code == 202


def test_cancel_leaves_stock_untouched(client):
    vid = make_variant(stock=50)
    client.post(f'/inventory/variants/{vid}/stock',
                json={'size': 'M', 'operation': 'set', 'amount': 500})
    resp = client.post('/inventory/stock/cancel')
    assert resp.get_json()['status'] == 'cancelled'
    assert stock_of(vid) == 50
    assert client.post('/inventory/stock/confirm').status_code == 400


def test_bad_requests(client):
    vid = make_variant()
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'double', 'amount': 'x'})
    assert resp.status_code == 400
    assert set(resp.get_json()['errors']) == {'operation', 'amount'}

    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'XXL', 'operation': 'add', 'amount': 1})
    assert resp.status_code == 404

    resp = client.post('/inventory/variants/999/stock',
                       json={'size': 'M', 'operation': 'add', 'amount': 1})
    assert resp.status_code == 404


# ── History / low stock ───────────────────────────────────────────

def test_logs_newest_first(client):
    vid = make_variant(stock=50)
    client.post(f'/inventory/variants/{vid}/stock', json={'size': 'M', 'operation': 'add', 'amount': 5})
    client.post(f'/inventory/variants/{vid}/stock', json={'size': 'M', 'operation': 'add', 'amount': 5})
    logs = client.get(f'/inventory/variants/{vid}/logs').get_json()['logs']
    assert [(l['old_stock'], l['new_stock']) for l in logs] == [(55, 60), (50, 55)]


def test_low_stock_lists_sizes_at_or_below_threshold(client):
    make_variant(stock=50, low_stock=5)
    data = client.get('/inventory/low-stock').get_json()
    assert data['threshold'] == 5
    assert [(i['size'], i['stock']) for i in data['items']] == [('L', 5)]

    data = client.get('/inventory/low-stock?threshold=60').get_json()
    assert [i['size'] for i in data['items']] == ['L', 'M']


def test_confirm_after_size_disappears_is_not_found(client):
    vid = make_variant(stock=10)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'set', 'amount': 200})
    assert resp.status_code == 202

    product_id = db.session.get(Variant, vid).product_id
    assert client.delete(f'/catalog/products/{product_id}').status_code == 200

    resp = client.post('/inventory/stock/confirm')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'not_found'
    # The stale request is dropped
    assert client.post('/inventory/stock/confirm').status_code == 400


def test_size_lookup_ignores_case(client):
    vid = make_variant(stock=50)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'm', 'operation': 'add', 'amount': 2})
    assert resp.status_code == 200
    assert resp.get_json()['adjustment']['size'] == 'M'
    assert stock_of(vid) == 52


def test_oversized_amount_is_rejected_or_clamped(client):
    vid = make_variant(stock=50)
    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'add', 'amount': '1e30'})
    assert resp.status_code == 400
    assert 'amount' in resp.get_json()['errors']

    resp = client.post(f'/inventory/variants/{vid}/stock',
                       json={'size': 'M', 'operation': 'set', 'amount': 10 ** 9})
    assert resp.status_code == 202
    assert resp.get_json()['adjustment']['new_stock'] == MAX_QUANTITY
