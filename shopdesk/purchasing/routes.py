"""
shopdesk/purchasing/routes.py
-----------------------------
All routes for the Supplier & Purchase Order system.

Lifecycle of a purchase:
    draft (session) ──save──> PENDING | ORDERED ──approve──> RECEIVED
Approval adds every line's quantity to the matching variant size, with an
inventory log row per size, in one transaction.
"""
from datetime import date

from flask import request, jsonify, current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from shopdesk import db
from shopdesk.billing.draft import PURCHASE, load_draft, clear_draft
from shopdesk.billing.draft_routes import register_draft_routes
from shopdesk.billing.totals import Q
from shopdesk.catalog.models import Variant, VariantSize
from shopdesk.catalog.search import score_variant
from shopdesk.errors import Conflict, NotFound, PersistenceFailure, ValidationFailure
from shopdesk.inventory.models import record_stock_change
from shopdesk.purchasing import purchasing
from shopdesk.purchasing.models import Supplier, PurchaseOrder, PurchaseOrderItem, POStatus
from shopdesk.utils.numbers import to_int

register_draft_routes(purchasing, PURCHASE, 'buying_price')


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_supplier(supplier_id) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFound(f'Supplier {supplier_id} not found.')
    return supplier


def _get_po(po_id, lock: bool = False) -> PurchaseOrder:
    """The purchase order, or NotFound. `lock` re-reads the row FOR UPDATE."""
    if lock:
        po = (
            db.session.query(PurchaseOrder)
            .filter(PurchaseOrder.id == po_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
    else:
        po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFound(f'Purchase order {po_id} not found.')
    return po


# ── SUPPLIER ROUTES ───────────────────────────────────────────────

SUPPLIER_FIELDS = ('name', 'division', 'phone', 'address', 'gstin', 'pan', 'cin', 'state')


def _supplier_fields(data: dict) -> dict:
    """Validated supplier columns from a JSON body."""
    errors = {}
    name = str(data.get('name') or '').strip()
    if not name:
        errors['name'] = 'Supplier name is required.'
    code = to_int(data.get('code') if data.get('code') not in (None, '') else 0)
    if code is None or code < 0:
        errors['code'] = 'State code must be a non-negative whole number.'
    if errors:
        raise ValidationFailure(errors)

    fields = {f: (str(data.get(f) or '').strip() or None) for f in SUPPLIER_FIELDS}
    fields['name'] = name
    fields['code'] = code
    if 'is_active' in data:
        fields['is_active'] = bool(data['is_active'])
    return fields


@purchasing.route('/suppliers')
def suppliers():
    """List suppliers. ?all=1 includes inactive ones."""
    q = Supplier.query
    if request.args.get('all') != '1':
        q = q.filter(Supplier.is_active.is_(True))
    return jsonify([s.to_dict() for s in q.order_by(Supplier.name.asc()).all()])


@purchasing.route('/suppliers', methods=['POST'])
def new_supplier():
    supplier = Supplier(**_supplier_fields(_body()))
    db.session.add(supplier)
    db.session.commit()
    current_app.logger.info(f"Supplier created: {supplier.name}")
    return jsonify(supplier.to_dict()), 201


@purchasing.route('/suppliers/<int:supplier_id>', methods=['GET'])
def supplier_detail(supplier_id):
    return jsonify(_get_supplier(supplier_id).to_dict())


@purchasing.route('/suppliers/<int:supplier_id>', methods=['PUT'])
def edit_supplier(supplier_id):
    supplier = _get_supplier(supplier_id)
    for field, value in _supplier_fields(_body()).items():
        setattr(supplier, field, value)
    db.session.commit()
    current_app.logger.info(f"Supplier updated: {supplier.name}")
    return jsonify(supplier.to_dict())


@purchasing.route('/suppliers/<int:supplier_id>/variants')
def supplier_variants(supplier_id):
    """
    Variants supplied by one supplier, for the purchase entry screen.
    With ?q= they are ranked; punctuation is ignored on both sides, so
    "t-shirt" finds "T Shirt".
    """
    supplier = _get_supplier(supplier_id)
    query = request.args.get('q', '')

    variants = (
        Variant.query
        .filter(Variant.supplier_id == supplier.id)
        .order_by(Variant.product_id.asc(), Variant.id.asc())
        .all()
    )

    if query.strip():
        scored = [(score_variant(query, v.product, v, sanitize=True), v) for v in variants]
        scored = sorted([pair for pair in scored if pair[0] > 0], key=lambda p: p[0], reverse=True)
    else:
        scored = [(None, v) for v in variants]

    return jsonify([
        {
            'score':   score,
            'product': v.product.to_dict(with_variants=False),
            'variant': v.to_dict(),
        }
        for score, v in scored
    ])


# ── PURCHASE ORDER ROUTES ─────────────────────────────────────────

@purchasing.route('/draft/save', methods=['POST'])
def save_draft_po():
    """Turn the session draft into a PurchaseOrder and clear the draft."""
    draft = load_draft(PURCHASE)
    header = draft.header

    errors = {}
    supplier_id = to_int(header.get('supplier_id'))
    if supplier_id is None or db.session.get(Supplier, supplier_id) is None:
        errors['supplier_id'] = 'Select a valid supplier.'

    invoice_no = str(header.get('invoice_no') or '').strip()
    if not invoice_no:
        errors['invoice_no'] = 'Supplier invoice number is required.'

    purchase_date = date.today()
    if header.get('purchase_date'):
        try:
            purchase_date = date.fromisoformat(str(header['purchase_date']))
        except ValueError:
            errors['purchase_date'] = 'Invalid purchase date.'

    status = POStatus.PENDING
    if header.get('status'):
        try:
            status = POStatus(str(header['status']).upper())
        except ValueError:
            status = None
        if status not in (POStatus.PENDING, POStatus.ORDERED):
            errors['status'] = 'A new purchase can only be PENDING or ORDERED.'

    lines = [item for item in draft.items if item.quantity > 0]
    if not lines:
        errors['items'] = 'Add at least one item with a quantity.'
    if errors:
        raise ValidationFailure(errors)

    totals = draft.totals
    po = PurchaseOrder(
        invoice_no=invoice_no,
        purchase_date=purchase_date,
        supplier_id=supplier_id,
        status=status,
        notes=str(header.get('notes') or '').strip() or None,
        subtotal=totals.subtotal.quantize(Q),
        discount_type=draft.bill_discount.kind,
        discount=draft.bill_discount.value,
        taxable_amount=totals.taxable_amount.quantize(Q),
        tax_amount=totals.tax_amount.quantize(Q),
        rounding_off=totals.rounding_off.quantize(Q),
        total_amount=totals.total_amount,
        **draft.tax.as_columns(),
    )
    for item in lines:
        po.items.append(PurchaseOrderItem(
            variant_id=item.variant_id,
            size=item.size,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount_percent,
            total_price=item.line_total.quantize(Q),
        ))

    try:
        db.session.add(po)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Purchase save failed: {exc}")
        raise PersistenceFailure('Could not save the purchase order.') from exc

    clear_draft(PURCHASE)
    current_app.logger.info(
        f"Purchase saved: PO #{po.id} {po.invoice_no} supplier={supplier_id} total=₹{po.total_amount}"
    )
    return jsonify(po.to_dict()), 201


@purchasing.route('/')
def index():
    """List purchase orders. ?q= matches supplier name or invoice no, ?status= filters."""
    q_text = request.args.get('q', '').strip()
    status = request.args.get('status', '').strip().upper()

    query = PurchaseOrder.query.join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
    if q_text:
        like = f'%{q_text}%'
        query = query.filter(or_(Supplier.name.ilike(like), PurchaseOrder.invoice_no.ilike(like)))
    if status:
        try:
            query = query.filter(PurchaseOrder.status == POStatus(status))
        except ValueError:
            raise ValidationFailure({'status': f'Unknown status "{status}".'})

    pos = query.order_by(PurchaseOrder.purchase_date.desc(), PurchaseOrder.id.desc()).all()
    return jsonify([po.to_dict(with_items=False) for po in pos])


@purchasing.route('/summary')
def summary():
    """Totals across every purchase order, by status and by supplier."""
    total_purchases, total_amount = db.session.query(
        func.count(PurchaseOrder.id),
        func.coalesce(func.sum(PurchaseOrder.total_amount), 0),
    ).one()

    total_items = db.session.query(
        func.coalesce(func.sum(PurchaseOrderItem.quantity), 0)
    ).scalar()

    by_status = db.session.query(
        PurchaseOrder.status, func.count(PurchaseOrder.id)
    ).group_by(PurchaseOrder.status).all()

    by_supplier = db.session.query(
        Supplier.name,
        func.count(PurchaseOrder.id),
        func.coalesce(func.sum(PurchaseOrder.total_amount), 0),
    ).join(
        PurchaseOrder, PurchaseOrder.supplier_id == Supplier.id
    ).group_by(Supplier.id, Supplier.name).order_by(Supplier.name.asc()).all()

    return jsonify({
        'total_purchases':  total_purchases,
        'total_amount':     int(total_amount or 0),
        'total_items':      int(total_items or 0),
        'status_breakdown': {status.value: count for status, count in by_status},
        'supplier_breakdown': [
            {'supplier': name, 'purchases': count, 'amount': int(amount or 0)}
            for name, count, amount in by_supplier
        ],
    })


@purchasing.route('/<int:po_id>')
def po_detail(po_id):
    return jsonify(_get_po(po_id).to_dict())


@purchasing.route('/<int:po_id>', methods=['DELETE'])
def delete_po(po_id):
    po = _get_po(po_id, lock=True)
    if po.status is POStatus.RECEIVED:
        raise Conflict('A received purchase has already added stock and cannot be deleted.')
    db.session.delete(po)
    db.session.commit()
    current_app.logger.info(f"Purchase deleted: PO #{po_id}")
    return jsonify({'deleted': po_id})


@purchasing.route('/<int:po_id>/approve', methods=['POST'])
def approve_po(po_id):
    """
    Receive the goods: add each line's quantity to its variant size and mark
    the purchase RECEIVED. All lines succeed or none do.
    """
    po = _get_po(po_id, lock=True)
    if po.status is POStatus.RECEIVED:
        db.session.rollback()
        raise ValidationFailure({'status': 'Purchase order is already received.'})
    if po.status is POStatus.CANCELLED:
        db.session.rollback()
        raise ValidationFailure({'status': 'A cancelled purchase order cannot be approved.'})

    try:
        # Lock sizes in a deterministic order to avoid deadlocks
        for item in sorted(po.items, key=lambda i: (i.variant_id, i.size)):
            size_row = (
                db.session.query(VariantSize)
                .filter(VariantSize.variant_id == item.variant_id, VariantSize.size == item.size)
                .with_for_update()
                .first()
            )
            if size_row is None:
                raise ValueError(f'Variant {item.variant_id} no longer has size "{item.size}".')
            record_stock_change(size_row, size_row.stock + item.quantity,
                                f'Purchase Received (PO #{po.id} {po.invoice_no})')

        po.status = POStatus.RECEIVED
        db.session.commit()
    except ValueError as exc:
        db.session.rollback()
        current_app.logger.warning(f"Purchase approval rolled back for PO #{po_id}: {exc}")
        raise Conflict(str(exc))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Purchase approval failed for PO #{po_id}: {exc}")
        raise PersistenceFailure('Could not approve the purchase order.') from exc

    current_app.logger.info(
        f"Purchase approved: PO #{po.id} {po.invoice_no}, {po.total_quantity} units added"
    )
    return jsonify(po.to_dict())
