"""
shopdesk/billing/draft_routes.py
--------------------------------
The session-draft endpoints shared by purchasing and orders.

register_draft_routes(bp, kind, price_field) adds, under the blueprint:

    GET    /draft                                  current draft + totals
    PUT    /draft                                  discounts, tax, header fields
    DELETE /draft                                  abandon
    POST   /draft/items                            {"variant_id", "size", "quantity"?, "unit_price"?}
    PATCH  /draft/items/<variant_id>/<size>        {"quantity"?, "discount"?}
    DELETE /draft/items/<variant_id>/<size>
    PATCH  /draft/variants/<variant_id>/discount   {"discount"}

Every response is the full draft, totals already recomputed. Saving is
blueprint-specific and lives in each blueprint's routes.
"""
from flask import request, jsonify, current_app

from shopdesk import db
from shopdesk.billing.draft import load_draft, save_draft, clear_draft
from shopdesk.billing.line_items import find
from shopdesk.errors import NotFound, ValidationFailure
from shopdesk.utils.numbers import to_int


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(draft, status=200):
    save_draft(draft)
    return jsonify(draft.to_dict()), status


def register_draft_routes(bp, kind: str, price_field: str):
    """
    `price_field` is the VariantSize column used as the default rate:
    'buying_price' for purchases, 'selling_price' for sales.
    """
    from shopdesk.catalog.models import Variant

    def get_draft():
        return jsonify(load_draft(kind).to_dict())

    def configure_draft():
        draft = load_draft(kind)
        draft.configure(_body())
        return _respond(draft)

    def discard_draft():
        clear_draft(kind)
        current_app.logger.info(f"{kind.title()} draft discarded")
        return jsonify(load_draft(kind).to_dict())

    def add_item():
        data = _body()
        variant_id = to_int(data.get('variant_id'))
        size = str(data.get('size') or '').strip()
        if variant_id is None or not size:
            raise ValidationFailure({'item': 'variant_id and size are required.'})

        variant = db.session.get(Variant, variant_id)
        size_row = variant.size_named(size) if variant else None
        if size_row is None:
            raise NotFound(f'Variant {variant_id} size "{size}" not found.')

        draft = load_draft(kind)
        existing = find(draft.items, (variant_id, size_row.size))
        before = existing.quantity if existing else 0

        unit_price = data.get('unit_price')
        if unit_price in (None, ''):
            unit_price = getattr(size_row, price_field)
        draft.add(variant_id, size_row.size, unit_price,
                  label=f"{variant.product.name} - {variant.name}")

        # Optional explicit quantity: added on top of what was already there
        qty = to_int(data.get('quantity'))
        if qty is not None and qty > 0:
            draft.set_quantity(variant_id, size_row.size, before + qty)

        return _respond(draft, 201)

    def update_item(variant_id, size):
        data = _body()
        draft = load_draft(kind)
        if find(draft.items, (variant_id, size)) is None:
            raise NotFound(f'Item {variant_id}/{size} is not in the draft.')
        if 'quantity' in data:
            draft.set_quantity(variant_id, size, data['quantity'])
        if 'discount' in data:
            draft.set_discount(variant_id, size, data['discount'])
        return _respond(draft)

    def remove_item(variant_id, size):
        draft = load_draft(kind)
        draft.remove(variant_id, size)
        return _respond(draft)

    def variant_discount(variant_id):
        draft = load_draft(kind)
        draft.set_variant_discount(variant_id, _body().get('discount'))
        return _respond(draft)

    bp.add_url_rule('/draft', 'draft', get_draft, methods=['GET'])
    bp.add_url_rule('/draft', 'configure_draft', configure_draft, methods=['PUT'])
    bp.add_url_rule('/draft', 'discard_draft', discard_draft, methods=['DELETE'])
    bp.add_url_rule('/draft/items', 'add_draft_item', add_item, methods=['POST'])
    bp.add_url_rule('/draft/items/<int:variant_id>/<size>', 'update_draft_item',
                    update_item, methods=['PATCH'])
    bp.add_url_rule('/draft/items/<int:variant_id>/<size>', 'remove_draft_item',
                    remove_item, methods=['DELETE'])
    bp.add_url_rule('/draft/variants/<int:variant_id>/discount', 'draft_variant_discount',
                    variant_discount, methods=['PATCH'])
