"""
test_purchasing.py — Suppliers, purchase drafts, saving and receiving.
Run: pytest test_purchasing.py -v
"""
from decimal import Decimal

import pytest
from sqlalchemy import update

from shopdesk import create_app, db
from shopdesk.catalog.models import Product, Variant, VariantSize
from shopdesk.inventory.models import InventoryLog
from shopdesk.purchasing.models import Supplier, PurchaseOrder, POStatus
from shopdesk.purchasing.routes import _get_po


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def make_supplier(name='Metro Textiles'):
    s = Supplier(name=name, phone='9900001111', gstin='27AAPFU0939F1ZV', code=27)
    db.session.add(s)
    db.session.commit()
    return s.id


def make_variant(supplier_id=None, product_name='T-Shirt', name='Navy Crew', stock=10):
    product = Product(name=product_name, hsn=6109)
    variant = Variant(name=name, supplier_id=supplier_id)
    for pos, size in enumerate(['M', 'L']):
        variant.sizes.append(VariantSize(position=pos, size=size, buying_price=Decimal('400'),
                                         selling_price=Decimal('560'), stock=stock))
    product.variants.append(variant)
    db.session.add(product)
    db.session.commit()
    return variant.id


def build_draft(client, supplier_id, variant_id, invoice_no='MT-101'):
    client.post('/purchasing/draft/items', json={'variant_id': variant_id, 'size': 'M', 'quantity': 5})
    client.patch(f'/purchasing/draft/items/{variant_id}/M', json={'discount': '10'})
    return client.put('/purchasing/draft', json={
        'tax':    {'type': 'cgst_sgst', 'cgst_rate': '2.5', 'sgst_rate': '2.5'},
        'header': {'supplier_id': supplier_id, 'invoice_no': invoice_no},
    })


def save_po(client, supplier_id, variant_id, invoice_no='MT-101'):
    build_draft(client, supplier_id, variant_id, invoice_no)
    resp = client.post('/purchasing/draft/save')
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


# ── Suppliers ─────────────────────────────────────────────────────

def test_supplier_create_list_edit(client):
    resp = client.post('/purchasing/suppliers', json={'name': 'Loom House', 'state': 'Gujarat', 'code': 24})
    assert resp.status_code == 201
    sid = resp.get_json()['id']

    resp = client.put(f'/purchasing/suppliers/{sid}', json={'name': 'Loom House Pvt', 'is_active': False})
    assert resp.get_json()['is_active'] is False

    assert client.get('/purchasing/suppliers').get_json() == []
    assert [s['name'] for s in client.get('/purchasing/suppliers?all=1').get_json()] == ['Loom House Pvt']


def test_supplier_requires_name(client):
    resp = client.post('/purchasing/suppliers', json={'name': ''})
    assert resp.status_code == 400
    assert 'name' in resp.get_json()['errors']


def test_supplier_variant_search_ignores_punctuation(client):
    sid = make_supplier()
    make_variant(supplier_id=sid)
    make_variant(supplier_id=None, product_name='Tshirt', name='Other Supplier')

    data = client.get(f'/purchasing/suppliers/{sid}/variants?q=tshirt navy').get_json()
    assert len(data) == 1
    assert data[0]['variant']['name'] == 'Navy Crew'

    assert len(client.get(f'/purchasing/suppliers/{sid}/variants').get_json()) == 1


# ── Draft ─────────────────────────────────────────────────────────

def test_draft_items_use_buying_price_and_recompute(client):
    sid = make_supplier()
    vid = make_variant(supplier_id=sid)

    resp = client.post('/purchasing/draft/items', json={'variant_id': vid, 'size': 'M'})
    assert resp.status_code == 201
    item = resp.get_json()['items'][0]
    assert (item['quantity'], item['unit_price']) == (1, '400.00')

    resp = client.post('/purchasing/draft/items', json={'variant_id': vid, 'size': 'M', 'quantity': 4})
    assert resp.get_json()['items'][0]['quantity'] == 5

    client.post('/purchasing/draft/items', json={'variant_id': vid, 'size': 'L'})
    resp = client.patch(f'/purchasing/draft/variants/{vid}/discount', json={'discount': '10'})
    data = resp.get_json()
    assert [i['discount_percent'] for i in data['items']] == ['10', '10']
    assert data['totals']['subtotal'] == '2160.00'

    resp = client.delete(f'/purchasing/draft/items/{vid}/L')
    assert resp.get_json()['totals']['subtotal'] == '1800.00'

    resp = client.patch(f'/purchasing/draft/items/{vid}/M', json={'quantity': 'abc'})
    assert resp.get_json()['items'][0]['quantity'] == 5


def test_draft_unknown_variant_is_404(client):
    resp = client.post('/purchasing/draft/items', json={'variant_id': 42, 'size': 'M'})
    assert resp.status_code == 404


def test_save_requires_supplier_invoice_and_items(client):
    resp = client.post('/purchasing/draft/save')
    assert resp.status_code == 400
    assert set(resp.get_json()['errors']) == {'supplier_id', 'invoice_no', 'items'}


def test_save_persists_totals_and_clears_draft(client):
    sid = make_supplier()
    vid = make_variant(supplier_id=sid)
    data = save_po(client, sid, vid)

    assert data['status'] == 'PENDING'
    assert data['subtotal'] == '1800.00'
    assert data['tax_amount'] == '90.00'
    assert data['total_amount'] == 1890
    assert data['igst'] is None and data['cgst'] == '2.50'
    assert data['items_summary']['total_quantity'] == 5

    assert client.get('/purchasing/draft').get_json()['items'] == []


# ── Approve ───────────────────────────────────────────────────────

def test_approve_receives_stock_once(client):
    sid = make_supplier()
    vid = make_variant(supplier_id=sid, stock=10)
    po_id = save_po(client, sid, vid)['id']

    resp = client.post(f'/purchasing/{po_id}/approve')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'RECEIVED'

    db.session.expire_all()
    assert db.session.get(Variant, vid).size_named('M').stock == 15
    log = InventoryLog.query.one()
    assert (log.old_stock, log.new_stock) == (10, 15)
    assert 'MT-101' in log.reason

    resp = client.post(f'/purchasing/{po_id}/approve')
    assert resp.status_code == 400
    db.session.expire_all()
    assert db.session.get(Variant, vid).size_named('M').stock == 15

    assert client.delete(f'/purchasing/{po_id}').status_code == 409


# ── List / summary / delete ───────────────────────────────────────

def test_list_filters_and_summary(client):
    metro = make_supplier('Metro Textiles')
    loom = make_supplier('Loom House')
    vid = make_variant(supplier_id=metro)
    first = save_po(client, metro, vid, 'MT-101')['id']
    save_po(client, loom, vid, 'LH-9')
    client.post(f'/purchasing/{first}/approve')

    assert [p['invoice_no'] for p in client.get('/purchasing/?q=loom').get_json()] == ['LH-9']
    assert [p['invoice_no'] for p in client.get('/purchasing/?q=mt-1').get_json()] == ['MT-101']
    assert [p['invoice_no'] for p in client.get('/purchasing/?status=received').get_json()] == ['MT-101']
    assert client.get('/purchasing/?status=lost').status_code == 400

    summary = client.get('/purchasing/summary').get_json()
    assert summary['total_purchases'] == 2
    assert summary['total_amount'] == 1890 * 2
    assert summary['total_items'] == 10
    assert summary['status_breakdown'] == {'RECEIVED': 1, 'PENDING': 1}
    assert [s['supplier'] for s in summary['supplier_breakdown']] == ['Loom House', 'Metro Textiles']


def test_delete_pending_purchase(client):
    sid = make_supplier()
    vid = make_variant(supplier_id=sid)
    po_id = save_po(client, sid, vid)['id']
    assert client.delete(f'/purchasing/{po_id}').status_code == 200
    assert PurchaseOrder.query.count() == 0
    assert client.get(f'/purchasing/{po_id}').status_code == 404


def test_approval_reads_current_status_under_lock(client):
    sid = make_supplier()
    vid = make_variant(supplier_id=sid, stock=10)
    po_id = save_po(client, sid, vid)['id']
    stale = db.session.get(PurchaseOrder, po_id)
    assert stale.status is POStatus.PENDING

    # Another worker receives the purchase behind this session's back
    db.session.execute(
        update(PurchaseOrder).where(PurchaseOrder.id == po_id).values(status=POStatus.RECEIVED),
        execution_options={'synchronize_session': False},
    )
    assert stale.status is POStatus.PENDING
    assert _get_po(po_id, lock=True).status is POStatus.RECEIVED

    resp = client.post(f'/purchasing/{po_id}/approve')
    assert resp.status_code == 400
    db.session.expire_all()
    assert db.session.get(Variant, vid).size_named('M').stock == 10
    assert InventoryLog.query.count() == 0
