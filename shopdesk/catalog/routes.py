"""
shopdesk/catalog/routes.py
--------------------------
JSON routes for products, variants and their size lists.
"""
from flask import request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from shopdesk import db
from shopdesk.catalog import catalog
from shopdesk.catalog.models import Product, Variant, VariantSize
from shopdesk.catalog.search import SORT_KEYS, search_catalog
from shopdesk.catalog.validators import (
    validate_product_form, parse_product_form,
    validate_variant_form, validate_variant_sizes, parse_variant_sizes,
    validate_barcode,
)
from shopdesk.errors import Conflict, NotFound, ValidationFailure
from shopdesk.inventory.models import record_stock_change
from shopdesk.utils.numbers import to_int


# ── Helpers ───────────────────────────────────────────────────────────────────

def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f'Product {product_id} not found.')
    return product


def _all_products():
    return (
        Product.query
        .options(selectinload(Product.variants).selectinload(Variant.sizes))
        .order_by(Product.id.asc())
        .all()
    )


def _check_barcode_free(barcode, variant_id=None):
    if not barcode:
        return
    q = Variant.query.filter(Variant.barcode == barcode)
    if variant_id is not None:
        q = q.filter(Variant.id != variant_id)
    if q.first():
        raise Conflict(f'A variant with barcode "{barcode}" already exists.')


def _check_supplier(supplier_id):
    if supplier_id in (None, ''):
        return None
    from shopdesk.purchasing.models import Supplier
    sid = to_int(supplier_id)
    if sid is None or db.session.get(Supplier, sid) is None:
        raise ValidationFailure({'supplier_id': 'Supplier not found.'})
    return sid


def _build_variant(data: dict) -> Variant:
    """Validated Variant (not yet added to the session) with its sizes."""
    errors = validate_variant_form(data)
    if errors:
        raise ValidationFailure(errors)

    barcode = str(data.get('barcode') or '').strip() or None
    _check_barcode_free(barcode)

    variant = Variant(
        name=str(data.get('name')).strip(),
        barcode=barcode,
        supplier_id=_check_supplier(data.get('supplier_id')),
    )
    for row in parse_variant_sizes(data.get('sizes') or []):
        variant.sizes.append(VariantSize(**row))
    return variant


def _log_initial_stock(variant: Variant) -> None:
    """Opening stock of freshly flushed sizes goes into the inventory log."""
    for size_row in variant.sizes:
        if size_row.stock > 0:
            opening = size_row.stock
            size_row.stock = 0
            record_stock_change(size_row, opening, 'Initial Stock (Variant Created)')


# ── LIST / SEARCH ─────────────────────────────────────────────────────────────

@catalog.route('/products')
def products():
    """
    ?q=     non-empty → variant-level ranked hits
            empty     → whole products ordered by ?sort= (name|price|stock|hsn)
    ?order= asc | desc
    """
    query      = request.args.get('q', '')
    sort_key   = request.args.get('sort', 'name')
    descending = request.args.get('order', 'asc').lower() == 'desc'

    if sort_key not in SORT_KEYS:
        sort_key = 'name'

    mode, results = search_catalog(query, _all_products(), sort_key, descending)

    if mode == 'browse':
        return jsonify({
            'mode':    mode,
            'sort':    sort_key,
            'order':   'desc' if descending else 'asc',
            'results': [p.to_dict() for p in results],
        })

    return jsonify({
        'mode':    mode,
        'query':   query.strip(),
        'results': [
            {
                'score':   hit.score,
                'product': hit.product.to_dict(with_variants=False),
                'variant': hit.variant.to_dict(),
            }
            for hit in results
        ],
    })


# ── CREATE ────────────────────────────────────────────────────────────────────

@catalog.route('/products', methods=['POST'])
def create_product():
    """Create a product, optionally with its first variants."""
    data = _json_body()
    errors = validate_product_form(data)
    if errors:
        raise ValidationFailure(errors)

    variant_rows = data.get('variants') or []
    if not isinstance(variant_rows, list):
        raise ValidationFailure({'variants': 'Variants must be a list.'})

    product = Product(**parse_product_form(data))

    # Validate every variant before anything is added to the session
    variant_errors = {}
    built = []
    seen_barcodes = set()
    for i, row in enumerate(variant_rows):
        try:
            variant = _build_variant(row or {})
        except ValidationFailure as exc:
            variant_errors.update({f'variants[{i}].{k}': v for k, v in exc.errors.items()})
            continue
        if variant.barcode and variant.barcode in seen_barcodes:
            variant_errors[f'variants[{i}].barcode'] = 'Barcode repeats an earlier variant.'
            continue
        if variant.barcode:
            seen_barcodes.add(variant.barcode)
        built.append(variant)
    if variant_errors:
        raise ValidationFailure(variant_errors)

    product.variants.extend(built)
    try:
        db.session.add(product)
        db.session.flush()
        for variant in built:
            _log_initial_stock(variant)
        db.session.commit()
    except IntegrityError:
        # Another request claimed a barcode between the check and the commit
        db.session.rollback()
        raise Conflict('A variant with this barcode already exists.')

    current_app.logger.info(f"Product created: {product.name} ({len(built)} variants)")
    return jsonify(product.to_dict()), 201


@catalog.route('/products/<int:product_id>/variants', methods=['POST'])
def add_variant(product_id):
    product = _get_product(product_id)
    variant = _build_variant(_json_body())
    product.variants.append(variant)
    try:
        db.session.flush()
        _log_initial_stock(variant)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict('A variant with this barcode already exists.')

    current_app.logger.info(f"Variant added: {product.name} / {variant.name}")
    return jsonify(variant.to_dict()), 201


# ── READ / EDIT / DELETE ──────────────────────────────────────────────────────

@catalog.route('/products/<int:product_id>')
def product_detail(product_id):
    return jsonify(_get_product(product_id).to_dict())


@catalog.route('/products/<int:product_id>', methods=['PUT'])
def edit_product(product_id):
    """Update name / hsn. Variants and sizes have their own endpoints."""
    product = _get_product(product_id)
    data = _json_body()
    errors = validate_product_form(data)
    if errors:
        raise ValidationFailure(errors)

    for field, value in parse_product_form(data).items():
        setattr(product, field, value)
    db.session.commit()

    current_app.logger.info(f"Product updated: {product.id} {product.name}")
    return jsonify(product.to_dict())


@catalog.route('/products/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    """Hard delete, refused while any order or purchase line points at its variants."""
    from shopdesk.orders.models import OrderItem
    from shopdesk.purchasing.models import PurchaseOrderItem

    product = _get_product(product_id)
    variant_ids = [v.id for v in product.variants]
    if variant_ids:
        in_orders    = OrderItem.query.filter(OrderItem.variant_id.in_(variant_ids)).count()
        in_purchases = PurchaseOrderItem.query.filter(PurchaseOrderItem.variant_id.in_(variant_ids)).count()
        if in_orders or in_purchases:
            current_app.logger.warning(f"Refused delete of product {product_id}: still referenced")
            raise Conflict(
                f'"{product.name}" is used by {in_orders} order line(s) and '
                f'{in_purchases} purchase line(s) and cannot be deleted.'
            )

    name = product.name
    db.session.delete(product)
    db.session.commit()

    current_app.logger.info(f"Product deleted: {product_id} {name}")
    return jsonify({'deleted': product_id})


# ── SIZE LIST ─────────────────────────────────────────────────────────────────

@catalog.route('/variants/<int:variant_id>/sizes', methods=['PUT'])
def replace_sizes(variant_id):
    """
    Replace the whole size list of a variant.

    Rows are matched to existing sizes by name (case-insensitive): matched
    rows are updated in place, missing ones are deleted, new ones inserted.
    Every stock difference is written to the inventory log. The full list is
    validated first, so a duplicate size rejects the request with nothing
    written.
    """
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFound(f'Variant {variant_id} not found.')

    rows = _json_body().get('sizes')
    errors = validate_variant_sizes(rows)
    if errors:
        current_app.logger.warning(f"Size list rejected for variant {variant_id}: {errors}")
        raise ValidationFailure(errors)

    existing = {s.size.strip().casefold(): s for s in variant.sizes}
    kept = []
    for row in parse_variant_sizes(rows):
        size_row = existing.pop(row['size'].casefold(), None)
        if size_row is None:
            size_row = VariantSize(variant=variant, **dict(row, stock=0))
            db.session.add(size_row)
            db.session.flush()
        else:
            size_row.size          = row['size']
            size_row.position      = row['position']
            size_row.buying_price  = row['buying_price']
            size_row.selling_price = row['selling_price']
        if size_row.stock != row['stock']:
            record_stock_change(size_row, row['stock'], 'Size List Edited')
        kept.append(size_row)

    for removed in existing.values():
        variant.sizes.remove(removed)

    db.session.commit()
    current_app.logger.info(
        f"Sizes replaced for variant {variant_id}: {[s.size for s in kept]}"
    )
    return jsonify(variant.to_dict())


# ── VARIANT EDIT / BARCODE ────────────────────────────────────────────────────

def _get_variant(variant_id: int) -> Variant:
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFound(f'Variant {variant_id} not found.')
    return variant


def _commit_variant(variant: Variant) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f'A variant with barcode "{variant.barcode}" already exists.')


@catalog.route('/variants/<int:variant_id>', methods=['PUT'])
def edit_variant(variant_id):
    """Rename a variant, change its supplier or barcode. Keys left out stay as they are."""
    variant = _get_variant(variant_id)
    data = _json_body()

    errors = {}
    if 'name' in data:
        name = str(data.get('name') or '').strip()
        if not name:
            errors['name'] = 'Variant name is required.'
        elif len(name) > 200:
            errors['name'] = 'Variant name must be 200 characters or fewer.'
    if 'barcode' in data:
        errors.update(validate_barcode(data.get('barcode')))
    if errors:
        raise ValidationFailure(errors)

    if 'name' in data:
        variant.name = str(data['name']).strip()
    if 'supplier_id' in data:
        variant.supplier_id = _check_supplier(data.get('supplier_id'))
    if 'barcode' in data:
        barcode = str(data.get('barcode') or '').strip() or None
        _check_barcode_free(barcode, variant_id=variant.id)
        variant.barcode = barcode
    _commit_variant(variant)

    current_app.logger.info(f"Variant updated: {variant.id} {variant.name}")
    return jsonify(variant.to_dict())


@catalog.route('/variants/<int:variant_id>/barcode', methods=['PUT'])
def set_barcode(variant_id):
    """Body: {"barcode": "..."}. Replaces the variant's barcode."""
    variant = _get_variant(variant_id)
    raw = _json_body().get('barcode')
    errors = validate_barcode(raw, required=True)
    if errors:
        raise ValidationFailure(errors)

    barcode = str(raw).strip()
    _check_barcode_free(barcode, variant_id=variant.id)
    previous, variant.barcode = variant.barcode, barcode
    _commit_variant(variant)

    current_app.logger.info(f"Barcode changed for variant {variant.id}: {previous} -> {barcode}")
    return jsonify(variant.to_dict())


@catalog.route('/variants/<int:variant_id>/barcode', methods=['DELETE'])
def remove_barcode(variant_id):
    variant = _get_variant(variant_id)
    previous, variant.barcode = variant.barcode, None
    db.session.commit()

    current_app.logger.info(f"Barcode removed from variant {variant.id} (was {previous})")
    return jsonify(variant.to_dict())


# ── BARCODE LOOKUP ────────────────────────────────────────────────────────────

@catalog.route('/barcode/<code>')
def barcode_lookup(code):
    """Exact barcode → variant with its product (used by the scanner input)."""
    code = (code or '').strip()
    variant = Variant.query.filter_by(barcode=code).first() if code else None
    if variant is None:
        raise NotFound(f'No variant with barcode "{code}".')
    return jsonify({
        'product': variant.product.to_dict(with_variants=False),
        'variant': variant.to_dict(),
    })
