"""
test_main.py — Health check and dashboard counters.
Run: pytest test_main.py -v
"""
from decimal import Decimal

import pytest

from shopdesk import create_app, db
from shopdesk.catalog.models import Product, Variant, VariantSize
from shopdesk.customers.models import Customer
from shopdesk.purchasing.models import Supplier


@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['details']['db'] == 'ok'
    assert data['status'] in ('ok', 'warning')


def test_dashboard_counts_and_low_stock(client):
    product = Product(name='Blazer', hsn=6203)
    variant = Variant(name='Black 42')
    variant.sizes.append(VariantSize(position=0, size='42', buying_price=Decimal('1500'),
                                     selling_price=Decimal('2200'), stock=2))
    variant.sizes.append(VariantSize(position=1, size='44', buying_price=Decimal('1500'),
                                     selling_price=Decimal('2200'), stock=20))
    product.variants.append(variant)
    db.session.add_all([product, Supplier(name='Metro Textiles'),
                        Customer(name='Asha', phone='9800000001')])
    db.session.commit()

    data = client.get('/dashboard').get_json()
    assert data['counts']['products'] == 1
    assert data['counts']['variants'] == 1
    assert data['counts']['suppliers'] == 1
    assert data['counts']['customers'] == 1
    assert data['today'] == {'orders': 0, 'revenue': 0}
    assert [(r['variant'], r['size'], r['stock']) for r in data['low_stock']] == [('Black 42', '42', 2)]


def test_unknown_route_is_json_404(client):
    resp = client.get('/nowhere')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'not_found'
