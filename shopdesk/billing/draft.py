"""
shopdesk/billing/draft.py
-------------------------
Session-held draft of a purchase order or sales order being built.

A Draft is an explicit context object: line items, the two bill-level
discounts, the active tax branch, free-form header fields, and the
OrderTotals derived from all of them. It is loaded from the Flask session
at the start of a request, mutated, recomputed, and saved back.

Session layout (one key per kind, e.g. 'draft:purchase'):
{
    "items":            [LineItem.to_dict(), ...],
    "bill_discount":    {"type": "percentage", "value": "10"},
    "special_discount": {"type": "none", "value": "0"},
    "tax":              {"type": "igst", "igst_rate": "18"},
    "header":           {"supplier_id": 3, "invoice_no": "A-17", ...}
}

Money is kept as strings in the session and converted to Decimal on load.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from flask import session

from shopdesk.billing import line_items as li
from shopdesk.billing.line_items import LineItem
from shopdesk.billing.totals import (
    Discount, IGST, OrderTotals, TaxConfig,
    compute_totals, parse_tax_config,
)


PURCHASE = 'purchase'
ORDER    = 'order'


def _session_key(kind: str) -> str:
    return f'draft:{kind}'


@dataclass
class Draft:
    kind:             str
    items:            List[LineItem] = field(default_factory=list)
    bill_discount:    Discount       = field(default_factory=Discount)
    special_discount: Discount       = field(default_factory=Discount)
    tax:              TaxConfig      = field(default_factory=IGST)
    header:           dict           = field(default_factory=dict)
    totals:           OrderTotals    = field(default_factory=OrderTotals)

    # ── Derivation ────────────────────────────────────────────────

    def recompute(self) -> OrderTotals:
        """Re-derive totals from current state. Call after every mutation."""
        self.totals = compute_totals(
            self.items,
            bill_discount=self.bill_discount,
            tax=self.tax,
            special_discount=self.special_discount,
        )
        return self.totals

    # ── Item operations (each ends in recompute) ──────────────────

    def add(self, variant_id: int, size: str, unit_price, label: str = '') -> OrderTotals:
        li.add_or_increment(self.items, variant_id, size, unit_price, label)
        return self.recompute()

    def set_quantity(self, variant_id: int, size: str, raw) -> OrderTotals:
        li.set_quantity(self.items, (variant_id, size), raw)
        return self.recompute()

    def set_discount(self, variant_id: int, size: str, raw) -> OrderTotals:
        li.set_discount(self.items, (variant_id, size), raw)
        return self.recompute()

    def set_variant_discount(self, variant_id: int, raw) -> OrderTotals:
        li.set_variant_discount(self.items, variant_id, raw)
        return self.recompute()

    def remove(self, variant_id: int, size: str) -> OrderTotals:
        li.remove(self.items, (variant_id, size))
        return self.recompute()

    # ── Bill-level settings ───────────────────────────────────────

    def configure(self, data: dict) -> OrderTotals:
        """
        Apply bill-level fields from a JSON body. Keys not present are left alone:
            bill_discount:    {"type", "value"}
            special_discount: {"type", "value"}
            tax:              {"type", "igst_rate" | "cgst_rate", "sgst_rate"}
            header:           {...}  merged into the existing header
        """
        if 'bill_discount' in data:
            d = data.get('bill_discount') or {}
            self.bill_discount = Discount.parse(d.get('type'), d.get('value'))
        if 'special_discount' in data:
            d = data.get('special_discount') or {}
            self.special_discount = Discount.parse(d.get('type'), d.get('value'))
        if 'tax' in data:
            self.tax = parse_tax_config(data.get('tax'))
        if isinstance(data.get('header'), dict):
            self.header.update(data['header'])
        return self.recompute()

    # ── Serialisation ─────────────────────────────────────────────

    def to_session(self) -> dict:
        return {
            'items':            [item.to_dict() for item in self.items],
            'bill_discount':    self.bill_discount.to_dict(),
            'special_discount': self.special_discount.to_dict(),
            'tax':              self.tax.to_dict(),
            'header':           dict(self.header),
        }

    def to_dict(self) -> dict:
        """Full JSON view returned by the draft endpoints."""
        data = self.to_session()
        data['kind']   = self.kind
        data['total_quantity'] = li.total_quantity(self.items)
        data['totals'] = self.totals.to_dict()
        return data

    @classmethod
    def from_session(cls, kind: str, data: Optional[dict]) -> 'Draft':
        data = data or {}
        bill = data.get('bill_discount') or {}
        special = data.get('special_discount') or {}
        draft = cls(
            kind=kind,
            items=[LineItem.from_dict(row) for row in data.get('items', [])],
            bill_discount=Discount.parse(bill.get('type'), bill.get('value')),
            special_discount=Discount.parse(special.get('type'), special.get('value')),
            tax=parse_tax_config(data.get('tax')),
            header=dict(data.get('header') or {}),
        )
        draft.recompute()
        return draft


# ── Session helpers ───────────────────────────────────────────────

def load_draft(kind: str) -> Draft:
    """Return the current draft of `kind` (empty if none)."""
    return Draft.from_session(kind, session.get(_session_key(kind)))


def save_draft(draft: Draft) -> None:
    session[_session_key(draft.kind)] = draft.to_session()
    session.modified = True


def clear_draft(kind: str) -> None:
    """Drop the draft after it has been saved or abandoned."""
    session.pop(_session_key(kind), None)
    session.modified = True
