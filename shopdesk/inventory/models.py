from datetime import datetime

from shopdesk import db

# ── Default threshold — overridable with LOW_STOCK_THRESHOLD in config ──
LOW_STOCK_THRESHOLD = 5


class InventoryLog(db.Model):
    """
    Audit trail for stock changes on one variant size.
    Tracks old vs new stock and why it changed.
    """
    __tablename__ = 'inventory_logs'

    id              = db.Column(db.Integer, primary_key=True)
    variant_size_id = db.Column(db.Integer, db.ForeignKey('variant_sizes.id', ondelete='CASCADE'),
                                nullable=False, index=True)
    old_stock       = db.Column(db.Integer, nullable=False)
    new_stock       = db.Column(db.Integer, nullable=False)
    reason          = db.Column(db.String(255), nullable=False)
    timestamp       = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    # ── Relationships ─────────────────────────────────────────────
    variant_size = db.relationship(
        'VariantSize',
        backref=db.backref('logs', lazy='select', cascade='all, delete-orphan'),
    )

    def to_dict(self) -> dict:
        return {
            'id':        self.id,
            'size':      self.variant_size.size if self.variant_size else None,
            'old_stock': self.old_stock,
            'new_stock': self.new_stock,
            'reason':    self.reason,
            'timestamp': self.timestamp.isoformat(),
        }

    def __repr__(self):
        return f"<Log Size:{self.variant_size_id} {self.old_stock}->{self.new_stock} ({self.reason})>"


def record_stock_change(size_row, new_stock: int, reason: str) -> InventoryLog:
    """
    Set `size_row.stock` and add the matching InventoryLog to the session.
    The caller commits (or rolls back) both together.
    """
    log = InventoryLog(
        variant_size_id=size_row.id,
        old_stock=size_row.stock,
        new_stock=new_stock,
        reason=reason,
    )
    size_row.stock = new_stock
    db.session.add(log)
    return log
