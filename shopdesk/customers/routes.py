from flask import request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from shopdesk import db
from shopdesk.customers import customers
from shopdesk.customers.models import Customer
from shopdesk.errors import Conflict, NotFound, ValidationFailure
from shopdesk.utils.numbers import to_int

OPTIONAL_FIELDS = ('email', 'address', 'gstin', 'state_name')


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_customer(customer_id) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFound(f'Customer {customer_id} not found.')
    return customer


def _customer_fields(data: dict, partial: bool = False) -> dict:
    """
    Validated customer columns from a JSON body.
    With `partial`, only the keys present in `data` are checked and returned.
    """
    fields, errors = {}, {}

    for field, label in (('name', 'Name'), ('phone', 'Phone')):
        if partial and field not in data:
            continue
        value = str(data.get(field) or '').strip()
        if not value:
            errors[field] = f'{label} is required.'
        fields[field] = value

    if not partial or 'code' in data:
        code = to_int(data.get('code') if data.get('code') not in (None, '') else 0)
        if code is None or code < 0:
            errors['code'] = 'State code must be a non-negative whole number.'
        fields['code'] = code

    for field in OPTIONAL_FIELDS:
        if not partial or field in data:
            fields[field] = str(data.get(field) or '').strip() or None

    if errors:
        raise ValidationFailure(errors)
    return fields


def _check_phone_free(phone, customer_id=None):
    q = Customer.query.filter_by(phone=phone)
    if customer_id is not None:
        q = q.filter(Customer.id != customer_id)
    if q.first():
        raise Conflict('Customer with this phone already exists.')


def _commit():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict('Customer with this phone already exists.')


# ── LIST / SEARCH ─────────────────────────────────────────────────

@customers.route('/')
def index():
    rows = Customer.query.order_by(Customer.name.asc(), Customer.id.asc()).all()
    return jsonify([c.to_dict() for c in rows])


@customers.route('/search')
def search():
    q = request.args.get('q', '').strip()
    if not q:
        return jsonify([])

    # Search by phone or name
    results = Customer.query.filter(
        (Customer.phone.ilike(f'%{q}%')) |
        (Customer.name.ilike(f'%{q}%'))
    ).order_by(Customer.name.asc()).limit(10).all()

    return jsonify([c.to_dict() for c in results])


# ── CREATE ────────────────────────────────────────────────────────

@customers.route('/create', methods=['POST'])
def create():
    fields = _customer_fields(_body())
    _check_phone_free(fields['phone'])

    c = Customer(**fields)
    db.session.add(c)
    _commit()

    current_app.logger.info(f"Customer created: {c.name} ({c.phone})")
    result = c.to_dict()
    result['message'] = 'Customer created successfully'
    return jsonify(result), 201


# ── DETAIL / EDIT / DELETE ────────────────────────────────────────

@customers.route('/<int:customer_id>')
def detail(customer_id):
    """The customer plus their order history, newest first."""
    from shopdesk.orders.models import Order

    c = _get_customer(customer_id)
    history = c.orders.order_by(Order.order_date.desc(), Order.id.desc()).all()
    result = c.to_dict()
    result['orders'] = [o.to_dict(with_items=False) for o in history]
    return jsonify(result)


@customers.route('/<int:customer_id>', methods=['PUT'])
def edit(customer_id):
    c = _get_customer(customer_id)
    fields = _customer_fields(_body(), partial=True)
    if 'phone' in fields:
        _check_phone_free(fields['phone'], customer_id=c.id)

    for field, value in fields.items():
        setattr(c, field, value)
    _commit()

    current_app.logger.info(f"Customer updated: {c.id} {c.name}")
    return jsonify(c.to_dict())


@customers.route('/<int:customer_id>', methods=['DELETE'])
def delete(customer_id):
    c = _get_customer(customer_id)
    order_count = c.orders.count()
    if order_count:
        current_app.logger.warning(f"Refused delete of customer {customer_id}: {order_count} orders")
        raise Conflict(f'"{c.name}" has {order_count} order(s) and cannot be deleted.')

    name = c.name
    db.session.delete(c)
    db.session.commit()

    current_app.logger.info(f"Customer deleted: {customer_id} {name}")
    return jsonify({'deleted': customer_id})
