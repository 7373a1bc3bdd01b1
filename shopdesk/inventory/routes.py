"""
shopdesk/inventory/routes.py
----------------------------
Stock adjustments with a confirmation step for large changes, the
inventory log and the low-stock list.

A large change is answered with 202 and parked in the session under
'pending_stock_adjustment' until /stock/confirm or /stock/cancel.
"""
from flask import request, jsonify, current_app, session

from shopdesk import db
from shopdesk.catalog.models import Product, Variant, VariantSize
from shopdesk.errors import NotFound, ValidationFailure
from shopdesk.inventory import inventory
from shopdesk.inventory.models import LOW_STOCK_THRESHOLD, InventoryLog, record_stock_change
from shopdesk.inventory.stock_guard import AdjustmentState, StockAdjustment

PENDING_KEY = 'pending_stock_adjustment'


def _size_row(variant_id: int, size: str) -> VariantSize:
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFound(f'Variant {variant_id} not found.')
    size_row = variant.size_named(size)
    if size_row is None:
        raise NotFound(f'Variant {variant_id} has no size "{size}".')
    return size_row


def _persist(reason: str):
    """persist(variant_id, size, new_stock) for StockAdjustment, committing with a log row."""
    def persist(variant_id, size, new_stock):
        size_row = _size_row(variant_id, size)
        try:
            record_stock_change(size_row, new_stock, reason)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    return persist


# ── ADJUST ────────────────────────────────────────────────────────────────────

@inventory.route('/variants/<int:variant_id>/stock', methods=['POST'])
def adjust_stock(variant_id):
    """
    Body: {"size": "M", "operation": "set|add|subtract", "amount": 10, "reason": "..."}
    200 → applied, 202 → large change waiting for /stock/confirm.
    """
    data = request.get_json(silent=True) or {}
    size = str(data.get('size') or '').strip()
    if not size:
        raise ValidationFailure({'size': 'Size is required.'})

    size_row = _size_row(variant_id, size)
    adjustment = StockAdjustment.build(
        variant_id, size_row.size,
        data.get('operation'), data.get('amount'),
        old_stock=size_row.stock,
        units=current_app.config.get('LARGE_STOCK_CHANGE_UNITS'),
        ratio=current_app.config.get('LARGE_STOCK_CHANGE_RATIO'),
    )
    reason = str(data.get('reason') or '').strip() or 'Manual Adjustment'

    state = adjustment.submit(_persist(reason))

    if state is AdjustmentState.PENDING_CONFIRMATION:
        pending = adjustment.to_dict()
        pending['reason'] = reason
        session[PENDING_KEY] = pending
        current_app.logger.info(
            f"Large stock change held for confirmation: variant {variant_id} "
            f"{size_row.size} {adjustment.old_stock} -> {adjustment.new_stock}"
        )
        return jsonify({
            'status':     state.value,
            'adjustment': adjustment.to_dict(),
            'message':    (f'Stock will change from {adjustment.old_stock} to '
                           f'{adjustment.new_stock} ({adjustment.change:+d}). Confirm to apply.'),
        }), 202

    current_app.logger.info(
        f"Stock adjusted: variant {variant_id} {size_row.size} "
        f"{adjustment.old_stock} -> {adjustment.new_stock} ({reason})"
    )
    return jsonify({'status': state.value, 'adjustment': adjustment.to_dict()})


def _pending_adjustment():
    data = session.get(PENDING_KEY)
    if not data:
        raise ValidationFailure({'state': 'No stock change is waiting for confirmation.'})
    return StockAdjustment.from_dict(data), data.get('reason') or 'Manual Adjustment'


@inventory.route('/stock/confirm', methods=['POST'])
def confirm_stock():
    adjustment, reason = _pending_adjustment()
    try:
        _size_row(adjustment.variant_id, adjustment.size)
    except NotFound:
        session.pop(PENDING_KEY, None)
        current_app.logger.warning(
            f"Pending stock change dropped: variant {adjustment.variant_id} "
            f"{adjustment.size} no longer exists"
        )
        raise
    try:
        state = adjustment.confirm(_persist(f'{reason} (confirmed)'))
    except Exception:
        current_app.logger.warning(
            f"Confirmed stock change failed for variant {adjustment.variant_id} {adjustment.size}"
        )
        raise
    session.pop(PENDING_KEY, None)

    current_app.logger.info(
        f"Stock adjusted (confirmed): variant {adjustment.variant_id} {adjustment.size} "
        f"{adjustment.old_stock} -> {adjustment.new_stock}"
    )
    return jsonify({'status': state.value, 'adjustment': adjustment.to_dict()})


@inventory.route('/stock/cancel', methods=['POST'])
def cancel_stock():
    adjustment, _ = _pending_adjustment()
    state = adjustment.cancel()
    session.pop(PENDING_KEY, None)
    current_app.logger.info(
        f"Stock change cancelled: variant {adjustment.variant_id} {adjustment.size}"
    )
    return jsonify({'status': state.value, 'adjustment': adjustment.to_dict()})


# ── HISTORY ───────────────────────────────────────────────────────────────────

@inventory.route('/variants/<int:variant_id>/logs')
def variant_logs(variant_id):
    """Inventory log for every size of one variant, newest first."""
    variant = db.session.get(Variant, variant_id)
    if variant is None:
        raise NotFound(f'Variant {variant_id} not found.')

    logs = (
        InventoryLog.query
        .join(VariantSize, VariantSize.id == InventoryLog.variant_size_id)
        .filter(VariantSize.variant_id == variant_id)
        .order_by(InventoryLog.timestamp.desc(), InventoryLog.id.desc())
        .limit(200)
        .all()
    )
    return jsonify({
        'variant': {'id': variant.id, 'name': variant.name},
        'logs':    [log.to_dict() for log in logs],
    })


@inventory.route('/low-stock')
def low_stock():
    """Sizes at or below ?threshold= (default LOW_STOCK_THRESHOLD)."""
    default   = current_app.config.get('LOW_STOCK_THRESHOLD', LOW_STOCK_THRESHOLD)
    threshold = request.args.get('threshold', default, type=int)

    rows = (
        db.session.query(VariantSize, Variant, Product)
        .join(Variant, Variant.id == VariantSize.variant_id)
        .join(Product, Product.id == Variant.product_id)
        .filter(VariantSize.stock <= threshold)
        .order_by(VariantSize.stock.asc(), Product.name.asc(), VariantSize.position.asc())
        .all()
    )
    return jsonify({
        'threshold': threshold,
        'items': [
            {
                'product_id': p.id,
                'product':    p.name,
                'variant_id': v.id,
                'variant':    v.name,
                'size':       s.size,
                'stock':      s.stock,
            }
            for s, v, p in rows
        ],
    })
