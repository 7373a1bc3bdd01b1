"""
shopdesk/orders/models.py
-------------------------
Sales orders and their line items.

Workflow:  pending ──> review ──> approved
                 ^         │
                 └─────────┘   (sent back for changes)

Stock is deducted only when an order is approved.
"""
import enum
from datetime import datetime, date
from decimal import Decimal

from shopdesk import db
from shopdesk.billing.totals import Discount, tax_config_from_columns


class OrderStatus(enum.Enum):
    pending  = 'pending'
    review   = 'review'
    approved = 'approved'


# Allowed transitions: current → {next, ...}
TRANSITIONS = {
    OrderStatus.pending:  {OrderStatus.review},
    OrderStatus.review:   {OrderStatus.approved, OrderStatus.pending},
    OrderStatus.approved: set(),
}


class Order(db.Model):
    """One sales invoice raised for a customer."""
    __tablename__ = 'orders'

    id                     = db.Column(db.Integer, primary_key=True)
    invoice_number         = db.Column(db.String(24), unique=True, nullable=False, index=True)
    customer_id            = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    order_date             = db.Column(db.Date, nullable=False, default=date.today)
    status                 = db.Column(db.Enum(OrderStatus), nullable=False,
                                       default=OrderStatus.pending, index=True)
    notes                  = db.Column(db.Text, nullable=True)
    remarks                = db.Column(db.Text, nullable=True)

    # Discounts as entered — amounts are re-derived by billing.totals
    discount_type          = db.Column(db.String(12), nullable=False, default='none')
    discount               = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    special_discount_type  = db.Column(db.String(12), nullable=False, default='none')
    special_discount       = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Tax rates %, NULL for the branch that is not active
    igst                   = db.Column(db.Numeric(5, 2), nullable=True)
    cgst                   = db.Column(db.Numeric(5, 2), nullable=True)
    sgst                   = db.Column(db.Numeric(5, 2), nullable=True)

    # Money snapshot
    subtotal               = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    taxable_amount         = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount             = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    rounding_off           = db.Column(db.Numeric(4, 2), nullable=False, default=0)
    total_amount           = db.Column(db.Integer, nullable=False, default=0)

    created_at             = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at             = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                                       onupdate=datetime.utcnow)

    # ── Relationships ─────────────────────────────────────────────
    items = db.relationship('OrderItem', backref='order', lazy='select', order_by='OrderItem.id',
                            cascade='all, delete-orphan')

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def bill_discount(self) -> Discount:
        return Discount.parse(self.discount_type, self.discount)

    @property
    def special(self) -> Discount:
        return Discount.parse(self.special_discount_type, self.special_discount)

    @property
    def tax_config(self):
        return tax_config_from_columns(self.igst, self.cgst, self.sgst)

    def can_move_to(self, status: OrderStatus) -> bool:
        return status in TRANSITIONS[self.status]

    def to_dict(self, with_items: bool = True) -> dict:
        data = {
            'id':               self.id,
            'invoice_number':   self.invoice_number,
            'customer':         {'id': self.customer.id, 'name': self.customer.name},
            'order_date':       self.order_date.isoformat(),
            'status':           self.status.value,
            'notes':            self.notes,
            'remarks':          self.remarks,
            'bill_discount':    self.bill_discount.to_dict(),
            'special_discount': self.special.to_dict(),
            'tax':              self.tax_config.to_dict(),
            'subtotal':         str(self.subtotal),
            'taxable_amount':   str(self.taxable_amount),
            'tax_amount':       str(self.tax_amount),
            'rounding_off':     str(self.rounding_off),
            'total_amount':     self.total_amount,
        }
        if with_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Order {self.invoice_number!r} {self.status.value} ₹{self.total_amount}>"


class OrderItem(db.Model):
    """
    One line inside an Order.
    Stores a snapshot of the rate at the time of sale —
    so later price edits don't alter issued invoices.
    """
    __tablename__ = 'order_items'

    id         = db.Column(db.Integer, primary_key=True)
    order_id   = db.Column(db.Integer, db.ForeignKey('orders.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey('variants.id'), nullable=False)
    size       = db.Column(db.String(40), nullable=False)
    quantity   = db.Column(db.Integer, nullable=False)
    rate       = db.Column(db.Numeric(10, 2), nullable=False)
    discount   = db.Column(db.Numeric(5, 2), nullable=False, default=0)   # percent
    total      = db.Column(db.Numeric(12, 2), nullable=False)

    # ── Relationship ──────────────────────────────────────────────
    variant = db.relationship('Variant', lazy='select')

    def to_dict(self) -> dict:
        size_row = self.variant.size_named(self.size)
        return {
            'variant_id':    self.variant_id,
            'product':       f"{self.variant.product.name} - {self.variant.name}",
            'hsn':           self.variant.product.hsn,
            'size':          self.size,
            'quantity':      self.quantity,
            'available_qty': size_row.stock if size_row else 0,
            'rate':          str(Decimal(str(self.rate))),
            'discount':      str(Decimal(str(self.discount))),
            'total':         str(Decimal(str(self.total))),
        }

    def __repr__(self):
        return f"<OrderItem order={self.order_id} variant={self.variant_id} {self.size} qty={self.quantity}>"
