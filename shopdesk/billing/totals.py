"""
shopdesk/billing/totals.py
--------------------------
Pure-Python money & tax calculator for purchase orders and sales orders.

    subtotal            Σ line_total
    − bill discount     percentage of subtotal, or flat amount
    − special discount  percentage of the remainder, or flat amount
    = taxable amount
    + tax               IGST, or CGST + SGST
    → total             rounded UP to the whole rupee

Discounts are always applied in that order: bill first, special second,
tax last. Every discount is clamped to what is left, so no amount is ever
negative.

No state, no DB, no Flask — same inputs always give the same OrderTotals.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING
from typing import Iterable, Optional, Union

from shopdesk.utils.numbers import ZERO, HUNDRED, clamp, non_negative, percentage, to_decimal


Q = Decimal('0.01')   # quantize target for storage / display

DISCOUNT_KINDS = ('percentage', 'amount', 'none')


# ── Discounts ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Discount:
    """A bill-level discount: `value` percent or `value` rupees."""
    kind:  str     = 'none'
    value: Decimal = ZERO

    @classmethod
    def parse(cls, kind, value) -> 'Discount':
        """Build from raw form values. Unknown kinds and bad numbers become no discount."""
        kind = (kind or 'none').strip().lower() if isinstance(kind, str) else 'none'
        if kind not in DISCOUNT_KINDS:
            kind = 'none'
        return cls(kind=kind, value=non_negative(value))

    def amount_off(self, base: Decimal) -> Decimal:
        """Rupee amount this discount takes off `base`, clamped to [0, base]."""
        if self.kind == 'percentage':
            off = base * self.value / HUNDRED
        elif self.kind == 'amount':
            off = self.value
        else:
            off = ZERO
        return clamp(off, low=ZERO, high=max(base, ZERO))

    def to_dict(self) -> dict:
        return {'type': self.kind, 'value': str(self.value)}


NO_DISCOUNT = Discount()


# ── Tax configuration ─────────────────────────────────────────────

@dataclass(frozen=True)
class IGST:
    """Inter-state: one integrated rate."""
    rate: Decimal = ZERO

    kind = 'igst'

    def tax_on(self, taxable: Decimal) -> dict:
        return {'igst': taxable * self.rate / HUNDRED, 'cgst': ZERO, 'sgst': ZERO}

    def as_columns(self) -> dict:
        return {'igst': self.rate, 'cgst': None, 'sgst': None}

    def to_dict(self) -> dict:
        return {'type': self.kind, 'igst_rate': str(self.rate)}


@dataclass(frozen=True)
class SplitGST:
    """Intra-state: central + state rate, both charged."""
    cgst_rate: Decimal = ZERO
    sgst_rate: Decimal = ZERO

    kind = 'cgst_sgst'

    def tax_on(self, taxable: Decimal) -> dict:
        return {
            'igst': ZERO,
            'cgst': taxable * self.cgst_rate / HUNDRED,
            'sgst': taxable * self.sgst_rate / HUNDRED,
        }

    def as_columns(self) -> dict:
        return {'igst': None, 'cgst': self.cgst_rate, 'sgst': self.sgst_rate}

    def to_dict(self) -> dict:
        return {
            'type':      self.kind,
            'cgst_rate': str(self.cgst_rate),
            'sgst_rate': str(self.sgst_rate),
        }


TaxConfig = Union[IGST, SplitGST]


def parse_tax_config(data: Optional[dict]) -> TaxConfig:
    """
    Build a TaxConfig from form/JSON data.

    Accepts {'type': 'igst', 'igst_rate': ...} or
            {'type': 'cgst_sgst' | 'sgst_cgst', 'cgst_rate': ..., 'sgst_rate': ...}.
    Only the fields of the selected branch are read; the other branch's
    rates are dropped rather than zeroed. Rates clamp to [0, 100].
    Anything unrecognised → IGST 0.
    """
    data = data or {}
    kind = str(data.get('type') or 'igst').strip().lower()
    if kind in ('cgst_sgst', 'sgst_cgst', 'split'):
        return SplitGST(
            cgst_rate=percentage(data.get('cgst_rate')),
            sgst_rate=percentage(data.get('sgst_rate')),
        )
    return IGST(rate=percentage(data.get('igst_rate')))


def tax_config_from_columns(igst, cgst, sgst) -> TaxConfig:
    """Rebuild a TaxConfig from stored rate columns (NULL = branch not active)."""
    if igst is None and (cgst is not None or sgst is not None):
        return SplitGST(cgst_rate=non_negative(cgst), sgst_rate=non_negative(sgst))
    return IGST(rate=non_negative(igst))


# ── Result ────────────────────────────────────────────────────────

@dataclass
class OrderTotals:
    """Every derived money figure for one order. Never set by hand."""
    subtotal:                Decimal = ZERO
    bill_discount_amount:    Decimal = ZERO
    after_bill_discount:     Decimal = ZERO
    special_discount_amount: Decimal = ZERO
    taxable_amount:          Decimal = ZERO
    igst_amount:             Decimal = ZERO
    cgst_amount:             Decimal = ZERO
    sgst_amount:             Decimal = ZERO
    tax_amount:              Decimal = ZERO
    rounding_off:            Decimal = ZERO
    total_amount:            int     = 0
    item_count:              int     = 0

    def to_dict(self) -> dict:
        """JSON-safe view, money quantized to paise."""
        return {
            'subtotal':                str(self.subtotal.quantize(Q)),
            'bill_discount_amount':    str(self.bill_discount_amount.quantize(Q)),
            'after_bill_discount':     str(self.after_bill_discount.quantize(Q)),
            'special_discount_amount': str(self.special_discount_amount.quantize(Q)),
            'taxable_amount':          str(self.taxable_amount.quantize(Q)),
            'igst_amount':             str(self.igst_amount.quantize(Q)),
            'cgst_amount':             str(self.cgst_amount.quantize(Q)),
            'sgst_amount':             str(self.sgst_amount.quantize(Q)),
            'tax_amount':              str(self.tax_amount.quantize(Q)),
            'rounding_off':            str(self.rounding_off.quantize(Q)),
            'total_amount':            self.total_amount,
            'item_count':              self.item_count,
        }


# ── Main public function ──────────────────────────────────────────

def subtotal(items: Iterable) -> Decimal:
    """Σ line_total over anything exposing a `line_total` Decimal."""
    return sum((to_decimal(item.line_total, ZERO) for item in items), ZERO)


def compute_totals(
    items: Iterable,
    bill_discount: Optional[Discount] = None,
    tax: Optional[TaxConfig] = None,
    special_discount: Optional[Discount] = None,
) -> OrderTotals:
    """
    Derive OrderTotals from line items, discounts and the active tax branch.

    Amounts are kept exact (no intermediate quantize) so that
    total_amount − rounding_off == taxable_amount + tax_amount holds exactly.
    """
    items            = list(items)
    bill_discount    = bill_discount or NO_DISCOUNT
    special_discount = special_discount or NO_DISCOUNT
    tax              = tax or IGST()

    sub = subtotal(items)

    bill_off   = bill_discount.amount_off(sub)
    after_bill = sub - bill_off

    special_off = special_discount.amount_off(after_bill)
    taxable     = after_bill - special_off

    parts      = tax.tax_on(taxable)
    tax_amount = parts['igst'] + parts['cgst'] + parts['sgst']

    gross   = taxable + tax_amount
    rounded = gross.to_integral_value(rounding=ROUND_CEILING)

    return OrderTotals(
        subtotal=sub,
        bill_discount_amount=bill_off,
        after_bill_discount=after_bill,
        special_discount_amount=special_off,
        taxable_amount=taxable,
        igst_amount=parts['igst'],
        cgst_amount=parts['cgst'],
        sgst_amount=parts['sgst'],
        tax_amount=tax_amount,
        rounding_off=rounded - gross,
        total_amount=int(rounded),
        item_count=len(items),
    )
