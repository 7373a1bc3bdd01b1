"""
shopdesk/main/routes.py
───────────────────────
Health check and the dashboard counters.
"""
import shutil
from datetime import date, datetime

from flask import current_app, jsonify
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from shopdesk import db
from shopdesk.main import main


@main.route("/health")
def health():
    """Health check for load balancers and monitoring."""
    status = "ok"
    failures = []

    # 1. DB Check
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        status = "error"
        failures.append(f"DB: {e}")
        current_app.logger.error(f"Health check failed (DB): {e}")

    # 2. Disk Check
    total, used, free = shutil.disk_usage("/")
    percent_free = (free / total) * 100 if total else 0
    if percent_free < 10:
        msg = f"Low Disk Space: {free // (2**30)}GB free ({percent_free:.1f}%)"
        failures.append(msg)
        current_app.logger.warning(msg)
        if status == "ok":
            status = "warning"

    response = {
        "status": status,
        "timestamp": datetime.utcnow().isoformat(),
        "details": {
            "db": "error" if status == "error" else "ok",
            "disk_free_gb": free // (2**30),
            "disk_free_percent": round(percent_free, 1),
        },
    }
    if failures:
        response["failures"] = failures

    return jsonify(response), 200 if status != "error" else 500


@main.route('/dashboard')
def dashboard():
    """Counters for the landing page plus the sizes that are running low."""
    from shopdesk.catalog.models import Product, Variant, VariantSize
    from shopdesk.purchasing.models import Supplier, PurchaseOrder, POStatus
    from shopdesk.customers.models import Customer
    from shopdesk.orders.models import Order, OrderStatus
    from shopdesk.inventory.models import LOW_STOCK_THRESHOLD

    threshold = current_app.config.get('LOW_STOCK_THRESHOLD', LOW_STOCK_THRESHOLD)
    today     = date.today()

    # ── Counts ────────────────────────────────────────────────────
    counts = {
        'products':          Product.query.count(),
        'variants':          Variant.query.count(),
        'suppliers':         Supplier.query.filter_by(is_active=True).count(),
        'customers':         Customer.query.count(),
        'pending_purchases': PurchaseOrder.query.filter(
            PurchaseOrder.status.in_([POStatus.PENDING, POStatus.ORDERED, POStatus.APPROVED])
        ).count(),
        'orders_in_review':  Order.query.filter_by(status=OrderStatus.review).count(),
    }

    # ── Today's sales (approved orders only) ──────────────────────
    today_agg = db.session.query(
        func.count(Order.id).label('order_count'),
        func.coalesce(func.sum(Order.total_amount), 0).label('revenue'),
    ).filter(
        Order.order_date == today,
        Order.status == OrderStatus.approved,
    ).first()

    # ── Low stock ─────────────────────────────────────────────────
    low_rows = (
        db.session.query(VariantSize, Variant, Product)
        .join(Variant, Variant.id == VariantSize.variant_id)
        .join(Product, Product.id == Variant.product_id)
        .filter(VariantSize.stock <= threshold)
        .order_by(VariantSize.stock.asc(), Product.name.asc())
        .limit(20)
        .all()
    )

    return jsonify({
        'counts': counts,
        'today': {
            'orders':  today_agg.order_count if today_agg else 0,
            'revenue': int(today_agg.revenue or 0) if today_agg else 0,
        },
        'low_stock_threshold': threshold,
        'low_stock': [
            {
                'product':    p.name,
                'variant':    v.name,
                'variant_id': v.id,
                'size':       s.size,
                'stock':      s.stock,
            }
            for s, v, p in low_rows
        ],
    })
