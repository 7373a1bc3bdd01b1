from decimal import Decimal
from datetime import datetime

from shopdesk import db


class Product(db.Model):
    """A catalog product. Sellable configurations live on its variants."""
    __tablename__ = 'products'

    id         = db.Column(db.Integer, primary_key=True)
    name       = db.Column(db.String(200), nullable=False, index=True)
    hsn        = db.Column(db.Integer, nullable=False, default=0)       # tax classification code
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    # ── Relationships ─────────────────────────────────────────────
    variants = db.relationship('Variant', backref='product', lazy='select',
                               cascade='all, delete-orphan', order_by='Variant.id')

    __table_args__ = (
        db.CheckConstraint('hsn >= 0', name='check_hsn_non_negative'),
    )

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def total_stock(self) -> int:
        return sum(v.total_stock for v in self.variants)

    def to_dict(self, with_variants: bool = True) -> dict:
        data = {
            'id':          self.id,
            'name':        self.name,
            'hsn':         self.hsn,
            'total_stock': self.total_stock,
        }
        if with_variants:
            data['variants'] = [v.to_dict() for v in self.variants]
        return data

    def __repr__(self):
        return f"<Product {self.id} {self.name!r}>"


class Variant(db.Model):
    """
    A sellable configuration of a Product (style / colour / code),
    owning an ordered list of sizes.
    """
    __tablename__ = 'variants'

    id          = db.Column(db.Integer, primary_key=True)
    product_id  = db.Column(db.Integer, db.ForeignKey('products.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'), nullable=True, index=True)
    name        = db.Column(db.String(200), nullable=False)
    barcode     = db.Column(db.String(100), unique=True, nullable=True, index=True)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # ── Relationships ─────────────────────────────────────────────
    sizes    = db.relationship('VariantSize', backref='variant', lazy='select',
                               cascade='all, delete-orphan',
                               order_by='VariantSize.position')
    supplier = db.relationship('Supplier', lazy='select')

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def total_stock(self) -> int:
        return sum(s.stock for s in self.sizes)

    def size_named(self, size: str):
        """Return the VariantSize called `size` (trimmed, case-insensitive), or None."""
        wanted = str(size or '').strip().casefold()
        for s in self.sizes:
            if s.size.strip().casefold() == wanted:
                return s
        return None

    def to_dict(self) -> dict:
        return {
            'id':          self.id,
            'product_id':  self.product_id,
            'supplier_id': self.supplier_id,
            'name':        self.name,
            'barcode':     self.barcode,
            'sizes':       [s.to_dict() for s in self.sizes],
        }

    def __repr__(self):
        return f"<Variant {self.id} {self.name!r}>"


class VariantSize(db.Model):
    """Per-size prices and stock of one Variant."""
    __tablename__ = 'variant_sizes'

    id            = db.Column(db.Integer, primary_key=True)
    variant_id    = db.Column(db.Integer, db.ForeignKey('variants.id', ondelete='CASCADE'),
                              nullable=False, index=True)
    position      = db.Column(db.Integer, nullable=False, default=0)
    size          = db.Column(db.String(40), nullable=False)
    buying_price  = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    stock         = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('variant_id', 'size', name='uq_variant_size'),
        db.CheckConstraint('stock >= 0', name='check_size_stock_non_negative'),
        db.CheckConstraint('buying_price >= 0 AND selling_price >= 0', name='check_size_prices'),
    )

    def to_dict(self) -> dict:
        return {
            'size':          self.size,
            'buying_price':  str(Decimal(str(self.buying_price))),
            'selling_price': str(Decimal(str(self.selling_price))),
            'stock':         self.stock,
        }

    def __repr__(self):
        return f"<VariantSize V:{self.variant_id} {self.size!r} stock:{self.stock}>"
