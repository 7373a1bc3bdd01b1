"""
shopdesk/orders/routes.py
-------------------------
Sales orders: session draft → saved order (invoice number issued) →
review → approved (stock deducted).

Every total stored on an Order is recomputed here from its lines with
billing.totals; client-sent totals are never trusted.
"""
from datetime import date

from flask import request, jsonify, current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from shopdesk import db
from shopdesk.billing.draft import ORDER, load_draft, clear_draft
from shopdesk.billing.draft_routes import register_draft_routes
from shopdesk.billing.invoice import generate_invoice_number
from shopdesk.billing.line_items import LineItem
from shopdesk.billing.totals import Q, Discount, compute_totals, parse_tax_config
from shopdesk.catalog.models import Variant, VariantSize
from shopdesk.customers.models import Customer
from shopdesk.errors import Conflict, NotFound, PersistenceFailure, ValidationFailure
from shopdesk.inventory.models import record_stock_change
from shopdesk.orders import orders
from shopdesk.orders.models import Order, OrderItem, OrderStatus
from shopdesk.utils.numbers import MAX_QUANTITY, non_negative, percentage, to_int

register_draft_routes(orders, ORDER, 'selling_price')


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_order(order_id, lock: bool = False) -> Order:
    if lock:
        order = (
            db.session.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
    else:
        order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound(f'Order {order_id} not found.')
    return order


def _parse_date(raw, field, errors):
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        errors[field] = 'Invalid date.'
        return None


def _apply_totals(order: Order, totals) -> None:
    order.subtotal       = totals.subtotal.quantize(Q)
    order.taxable_amount = totals.taxable_amount.quantize(Q)
    order.tax_amount     = totals.tax_amount.quantize(Q)
    order.rounding_off   = totals.rounding_off.quantize(Q)
    order.total_amount   = totals.total_amount


def _order_items(lines):
    return [
        OrderItem(
            variant_id=line.variant_id,
            size=line.size,
            quantity=line.quantity,
            rate=line.unit_price,
            discount=line.discount_percent,
            total=line.line_total.quantize(Q),
        )
        for line in lines
    ]


# ── SAVE DRAFT ────────────────────────────────────────────────────

@orders.route('/draft/save', methods=['POST'])
def save_draft_order():
    """Persist the session draft as a pending Order with a fresh invoice number."""
    draft = load_draft(ORDER)
    header = draft.header

    errors = {}
    customer_id = to_int(header.get('customer_id'))
    if customer_id is None or db.session.get(Customer, customer_id) is None:
        errors['customer_id'] = 'Select a valid customer.'
    order_date = _parse_date(header.get('order_date'), 'order_date', errors)
    lines = [item for item in draft.items if item.quantity > 0]
    if not lines:
        errors['items'] = 'Add at least one item with a quantity.'
    if errors:
        raise ValidationFailure(errors)

    try:
        order = Order(
            invoice_number=generate_invoice_number(db.session, order_date),
            customer_id=customer_id,
            order_date=order_date,
            status=OrderStatus.pending,
            notes=str(header.get('notes') or '').strip() or None,
            remarks=str(header.get('remarks') or '').strip() or None,
            discount_type=draft.bill_discount.kind,
            discount=draft.bill_discount.value,
            special_discount_type=draft.special_discount.kind,
            special_discount=draft.special_discount.value,
            **draft.tax.as_columns(),
        )
        _apply_totals(order, draft.totals)
        order.items = _order_items(lines)
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Order save failed: {exc}")
        raise PersistenceFailure('Could not save the order.') from exc

    clear_draft(ORDER)
    current_app.logger.info(
        f"Order saved: {order.invoice_number} customer={customer_id} total=₹{order.total_amount}"
    )
    return jsonify(order.to_dict()), 201


# ── LIST / DETAIL ─────────────────────────────────────────────────

@orders.route('/')
def index():
    """?q= matches invoice number, customer name or phone; ?status= filters."""
    q_text = request.args.get('q', '').strip()
    status = request.args.get('status', '').strip().lower()

    query = Order.query.join(Customer, Customer.id == Order.customer_id)
    if q_text:
        like = f'%{q_text}%'
        query = query.filter(or_(
            Order.invoice_number.ilike(like),
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
        ))
    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise ValidationFailure({'status': f'Unknown status "{status}".'})

    rows = query.order_by(Order.order_date.desc(), Order.id.desc()).all()
    return jsonify([o.to_dict(with_items=False) for o in rows])


@orders.route('/<int:order_id>')
def order_detail(order_id):
    return jsonify(_get_order(order_id).to_dict())


# ── EDIT ──────────────────────────────────────────────────────────

@orders.route('/<int:order_id>', methods=['PUT'])
def edit_order(order_id):
    """
    Replace lines, discounts, tax and notes of an order that is not yet
    approved, and re-price it.

    Body:
        items:            [{"variant_id", "size", "quantity", "rate"?, "discount"?}]
        bill_discount:    {"type", "value"}
        special_discount: {"type", "value"}
        tax:              {"type", ...rates}
        notes, remarks
    Keys left out keep their stored value.
    """
    order = _get_order(order_id, lock=True)
    if order.status is OrderStatus.approved:
        db.session.rollback()
        raise Conflict('An approved order cannot be edited.')

    data = _body()
    bill    = order.bill_discount
    special = order.special
    tax     = order.tax_config
    if 'bill_discount' in data:
        d = data.get('bill_discount') or {}
        bill = Discount.parse(d.get('type'), d.get('value'))
    if 'special_discount' in data:
        d = data.get('special_discount') or {}
        special = Discount.parse(d.get('type'), d.get('value'))
    if 'tax' in data:
        tax = parse_tax_config(data.get('tax'))

    if 'items' in data:
        lines = _lines_from_payload(order, data.get('items'))
    else:
        lines = [
            LineItem(variant_id=i.variant_id, size=i.size, quantity=i.quantity,
                     unit_price=non_negative(i.rate), discount_percent=percentage(i.discount))
            for i in order.items
        ]

    totals = compute_totals(lines, bill_discount=bill, tax=tax, special_discount=special)

    order.discount_type         = bill.kind
    order.discount              = bill.value
    order.special_discount_type = special.kind
    order.special_discount      = special.value
    for column, rate in tax.as_columns().items():
        setattr(order, column, rate)
    for field in ('notes', 'remarks'):
        if field in data:
            setattr(order, field, str(data.get(field) or '').strip() or None)
    _apply_totals(order, totals)
    if 'items' in data:
        order.items = _order_items(lines)

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Order edit failed for {order_id}: {exc}")
        raise PersistenceFailure('Could not save the order changes.') from exc
    current_app.logger.info(
        f"Order edited: {order.invoice_number} total=₹{order.total_amount}"
    )
    return jsonify(order.to_dict())


def _lines_from_payload(order: Order, rows):
    """Validated LineItems for an order edit. Missing rates fall back to the stored or catalog price."""
    if not isinstance(rows, list) or not rows:
        raise ValidationFailure({'items': 'An order needs at least one item.'})

    stored = {(i.variant_id, i.size): i for i in order.items}
    errors = {}
    lines = []
    seen = set()
    for idx, row in enumerate(rows):
        row = row if isinstance(row, dict) else {}
        variant_id = to_int(row.get('variant_id'))
        size = str(row.get('size') or '').strip()
        quantity = to_int(row.get('quantity'))

        variant = db.session.get(Variant, variant_id) if variant_id is not None else None
        size_row = variant.size_named(size) if variant else None
        if size_row is None:
            errors[f'items[{idx}]'] = f'Variant {variant_id} size "{size}" not found.'
            continue
        size = size_row.size
        if (variant_id, size) in seen:
            errors[f'items[{idx}]'] = 'Duplicate line for the same variant and size.'
            continue
        if quantity is None or not 0 < quantity <= MAX_QUANTITY:
            errors[f'items[{idx}].quantity'] = f'Quantity must be a whole number from 1 to {MAX_QUANTITY}.'
            continue
        seen.add((variant_id, size))

        rate = row.get('rate')
        if rate in (None, ''):
            previous = stored.get((variant_id, size))
            rate = previous.rate if previous else size_row.selling_price
        lines.append(LineItem(
            variant_id=variant_id,
            size=size,
            quantity=quantity,
            unit_price=non_negative(rate),
            discount_percent=percentage(row.get('discount')),
        ))

    if errors:
        raise ValidationFailure(errors)
    return lines


# ── DELETE ────────────────────────────────────────────────────────

@orders.route('/<int:order_id>', methods=['DELETE'])
def delete_order(order_id):
    order = _get_order(order_id, lock=True)
    if order.status is OrderStatus.approved:
        raise Conflict('An approved order has deducted stock and cannot be deleted.')
    invoice = order.invoice_number
    db.session.delete(order)
    db.session.commit()
    current_app.logger.info(f"Order deleted: {invoice}")
    return jsonify({'deleted': order_id})


# ── STATUS WORKFLOW ───────────────────────────────────────────────

@orders.route('/<int:order_id>/status', methods=['POST'])
def change_status(order_id):
    """
    Body: {"status": "review" | "approved" | "pending", "remarks"?}

    pending → review; review → approved or back to pending.
    Approval deducts every line from stock under row locks; if any size is
    short, nothing is deducted and the order stays in review.
    """
    order = _get_order(order_id, lock=True)
    data = _body()
    try:
        target = OrderStatus(str(data.get('status') or '').strip().lower())
    except ValueError:
        raise ValidationFailure({'status': 'Status must be one of: pending, review, approved.'})

    if not order.can_move_to(target):
        raise ValidationFailure(
            {'status': f'Cannot move an order from {order.status.value} to {target.value}.'}
        )

    if 'remarks' in data:
        order.remarks = str(data.get('remarks') or '').strip() or None

    if target is OrderStatus.approved:
        _approve(order)
    else:
        order.status = target
        db.session.commit()

    current_app.logger.info(f"Order {order.invoice_number} → {order.status.value}")
    return jsonify(order.to_dict())


def _approve(order: Order) -> None:
    """Deduct stock for every line, all-or-nothing, then mark approved."""
    try:
        # ── Lock size rows in a deterministic order ───────────────
        needed = {}
        for item in order.items:
            key = (item.variant_id, item.size)
            needed[key] = needed.get(key, 0) + item.quantity

        locked = {}
        for variant_id, size in sorted(needed):
            size_row = (
                db.session.query(VariantSize)
                .filter(VariantSize.variant_id == variant_id, VariantSize.size == size)
                .with_for_update()
                .first()
            )
            if size_row is None:
                raise ValueError(f'Variant {variant_id} no longer has size "{size}".')
            locked[(variant_id, size)] = size_row

        # ── Stock validation (all-or-nothing) ─────────────────────
        for key, quantity in needed.items():
            size_row = locked[key]
            if size_row.stock < quantity:
                raise ValueError(
                    f'Insufficient stock for "{size_row.variant.product.name} - '
                    f'{size_row.variant.name}" size {size_row.size}. '
                    f'Available: {size_row.stock}, required: {quantity}.'
                )

        # ── Deduct ────────────────────────────────────────────────
        for key, quantity in needed.items():
            size_row = locked[key]
            record_stock_change(size_row, size_row.stock - quantity,
                                f'Sale ({order.invoice_number})')

        order.status = OrderStatus.approved
        db.session.commit()
    except ValueError as exc:
        db.session.rollback()
        current_app.logger.warning(f"Approval rolled back for {order.invoice_number}: {exc}")
        raise Conflict(str(exc))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"Approval failed for {order.invoice_number}: {exc}")
        raise PersistenceFailure('Could not approve the order.') from exc
