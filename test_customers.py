from datetime import date

import pytest

from shopdesk import create_app, db
from shopdesk.customers.models import Customer
from shopdesk.orders.models import Order


@pytest.fixture
def client():
    app = create_app(config_name='testing')
    with app.test_client() as client:
        with app.app_context():
            db.create_all()
            yield client
            db.session.remove()
            db.drop_all()


def test_create_and_search_customer(client):
    # Create
    resp = client.post('/customers/create', json={
        'name': 'John Doe',
        'phone': '9876543210',
        'state_name': 'Maharashtra',
        'code': 27,
    })
    assert resp.status_code == 201
    data = resp.get_json()
    assert data['name'] == 'John Doe'
    assert data['code'] == 27

    # Search by phone fragment and by name
    data = client.get('/customers/search?q=9876').get_json()
    assert len(data) == 1
    assert data[0]['name'] == 'John Doe'
    assert client.get('/customers/search?q=john').get_json()[0]['phone'] == '9876543210'


def test_blank_search_returns_nothing(client):
    assert client.get('/customers/search?q=').get_json() == []


def test_name_and_phone_required(client):
    resp = client.post('/customers/create', json={'name': ''})
    assert resp.status_code == 400
    assert set(resp.get_json()['errors']) == {'name', 'phone'}


def test_duplicate_phone_rejected(client):
    client.post('/customers/create', json={'name': 'A', 'phone': '111'})
    resp = client.post('/customers/create', json={'name': 'B', 'phone': '111'})
    assert resp.status_code == 409
    assert Customer.query.count() == 1


def test_list_detail_and_edit(client):
    b = client.post('/customers/create', json={'name': 'Bina', 'phone': '222'}).get_json()
    a = client.post('/customers/create', json={'name': 'Anil', 'phone': '111'}).get_json()

    assert [c['name'] for c in client.get('/customers/').get_json()] == ['Anil', 'Bina']

    data = client.get(f"/customers/{a['id']}").get_json()
    assert data['phone'] == '111'
    assert data['orders'] == []
    assert client.get('/customers/999').status_code == 404

    resp = client.put(f"/customers/{a['id']}", json={'address': 'MG Road', 'code': 29})
    assert resp.status_code == 200
    data = resp.get_json()
    assert (data['name'], data['address'], data['code']) == ('Anil', 'MG Road', 29)

    # Phone must stay unique, name cannot be blanked
    assert client.put(f"/customers/{a['id']}", json={'phone': '222'}).status_code == 409
    resp = client.put(f"/customers/{b['id']}", json={'name': ''})
    assert resp.status_code == 400
    assert set(resp.get_json()['errors']) == {'name'}
    assert db.session.get(Customer, b['id']).name == 'Bina'


def test_delete_refused_while_orders_exist(client):
    kept = client.post('/customers/create', json={'name': 'Kiran', 'phone': '333'}).get_json()
    gone = client.post('/customers/create', json={'name': 'Gopal', 'phone': '444'}).get_json()
    db.session.add(Order(invoice_number='INV-20260101-0001', customer_id=kept['id'],
                         order_date=date(2026, 1, 1)))
    db.session.commit()

    resp = client.delete(f"/customers/{kept['id']}")
    assert resp.status_code == 409
    assert len(client.get(f"/customers/{kept['id']}").get_json()['orders']) == 1

    assert client.delete(f"/customers/{gone['id']}").status_code == 200
    assert Customer.query.count() == 1
