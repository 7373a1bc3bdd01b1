"""
shopdesk/purchasing/models.py
-----------------------------
Models for the Supplier & Purchase Order system.

Tables:
  suppliers
  purchase_orders
  purchase_order_items
"""
import enum
from datetime import datetime, date
from decimal import Decimal

from shopdesk import db
from shopdesk.billing.totals import Discount, tax_config_from_columns


# ── Status Enum ───────────────────────────────────────────────────

class POStatus(enum.Enum):
    PENDING   = 'PENDING'
    ORDERED   = 'ORDERED'
    APPROVED  = 'APPROVED'
    RECEIVED  = 'RECEIVED'
    CANCELLED = 'CANCELLED'


# ── Supplier ──────────────────────────────────────────────────────

class Supplier(db.Model):
    """Vendor / supplier master record."""
    __tablename__ = 'suppliers'

    id         = db.Column(db.Integer, primary_key=True)
    name       = db.Column(db.String(200), nullable=False, index=True)
    division   = db.Column(db.String(120), nullable=True)
    phone      = db.Column(db.String(20),  nullable=True)
    address    = db.Column(db.Text,        nullable=True)
    gstin      = db.Column(db.String(20),  nullable=True)
    pan        = db.Column(db.String(12),  nullable=True)
    cin        = db.Column(db.String(25),  nullable=True)
    state      = db.Column(db.String(60),  nullable=True)
    code       = db.Column(db.Integer,      nullable=False, default=0)   # GST state code
    is_active  = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    purchase_orders = db.relationship('PurchaseOrder', backref='supplier', lazy='dynamic')
    variants        = db.relationship('Variant', lazy='select', viewonly=True)

    def to_dict(self) -> dict:
        return {
            'id':        self.id,
            'name':      self.name,
            'division':  self.division,
            'phone':     self.phone,
            'address':   self.address,
            'gstin':     self.gstin,
            'pan':       self.pan,
            'cin':       self.cin,
            'state':     self.state,
            'code':      self.code,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Supplier {self.name!r}>'


# ── Purchase Order ────────────────────────────────────────────────

class PurchaseOrder(db.Model):
    """A purchase invoice received from a supplier."""
    __tablename__ = 'purchase_orders'

    id             = db.Column(db.Integer, primary_key=True)
    invoice_no     = db.Column(db.String(60), nullable=False, index=True)
    purchase_date  = db.Column(db.Date, nullable=False, default=date.today)
    supplier_id    = db.Column(db.Integer, db.ForeignKey('suppliers.id'), nullable=False, index=True)
    status         = db.Column(db.Enum(POStatus), nullable=False, default=POStatus.PENDING, index=True)
    notes          = db.Column(db.Text, nullable=True)

    # Money snapshot — computed by billing.totals at save time
    subtotal       = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type  = db.Column(db.String(12), nullable=False, default='none')
    discount       = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    taxable_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    igst           = db.Column(db.Numeric(5, 2), nullable=True)    # rate %, NULL when split GST
    cgst           = db.Column(db.Numeric(5, 2), nullable=True)    # rate %, NULL when IGST
    sgst           = db.Column(db.Numeric(5, 2), nullable=True)
    tax_amount     = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    rounding_off   = db.Column(db.Numeric(4, 2), nullable=False, default=0)
    total_amount   = db.Column(db.Integer, nullable=False, default=0)   # whole rupees, rounded up

    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                               onupdate=datetime.utcnow)

    # Relationships
    items = db.relationship('PurchaseOrderItem', backref='purchase_order', order_by='PurchaseOrderItem.id',
                            cascade='all, delete-orphan', lazy='select')

    # ── Helpers ───────────────────────────────────────────────────
    @property
    def tax_config(self):
        return tax_config_from_columns(self.igst, self.cgst, self.sgst)

    @property
    def bill_discount(self) -> Discount:
        return Discount.parse(self.discount_type, self.discount)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, with_items: bool = True) -> dict:
        data = {
            'id':             self.id,
            'invoice_no':     self.invoice_no,
            'purchase_date':  self.purchase_date.isoformat(),
            'status':         self.status.value,
            'notes':          self.notes,
            'supplier':       {'id': self.supplier.id, 'name': self.supplier.name},
            'subtotal':       str(self.subtotal),
            'discount_type':  self.discount_type,
            'discount':       str(self.discount),
            'taxable_amount': str(self.taxable_amount),
            'igst':           None if self.igst is None else str(self.igst),
            'cgst':           None if self.cgst is None else str(self.cgst),
            'sgst':           None if self.sgst is None else str(self.sgst),
            'tax_amount':     str(self.tax_amount),
            'rounding_off':   str(self.rounding_off),
            'total_amount':   self.total_amount,
            'items_summary': {
                'total_items':      len(self.items),
                'total_quantity':   self.total_quantity,
                'unique_products':  len({i.variant.product_id for i in self.items}),
                'unique_variants':  len({i.variant_id for i in self.items}),
            },
        }
        if with_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f'<PO #{self.id} {self.invoice_no!r} {self.status.value}>'


# ── Purchase Order Item ───────────────────────────────────────────

class PurchaseOrderItem(db.Model):
    """A single variant-size line on a Purchase Order."""
    __tablename__ = 'purchase_order_items'

    id          = db.Column(db.Integer, primary_key=True)
    po_id       = db.Column(db.Integer, db.ForeignKey('purchase_orders.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    variant_id  = db.Column(db.Integer, db.ForeignKey('variants.id'), nullable=False)
    size        = db.Column(db.String(40), nullable=False)
    quantity    = db.Column(db.Integer, nullable=False)
    unit_price  = db.Column(db.Numeric(10, 2), nullable=False)
    discount    = db.Column(db.Numeric(5, 2), nullable=False, default=0)    # percent
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    # Relationships
    variant = db.relationship('Variant', lazy='select')

    def to_dict(self) -> dict:
        return {
            'variant_id':  self.variant_id,
            'variant':     self.variant.name,
            'product':     self.variant.product.name,
            'hsn':         self.variant.product.hsn,
            'size':        self.size,
            'quantity':    self.quantity,
            'unit_price':  str(Decimal(str(self.unit_price))),
            'discount':    str(Decimal(str(self.discount))),
            'total_price': str(Decimal(str(self.total_price))),
        }

    def __repr__(self):
        return f'<POItem PO:{self.po_id} V:{self.variant_id} {self.size} qty:{self.quantity}>'
