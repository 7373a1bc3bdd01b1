"""
shopdesk/billing/line_items.py
------------------------------
Stateless helpers over an ordered list of LineItems (one purchase or one
sales order being built).

Items are keyed by (variant_id, size). Every helper mutates the list it is
given in place and returns it, so callers can chain or re-assign freely.

`line_total` is a property, not a stored field: it is derived from
quantity × unit_price × (1 − discount/100) every time it is read, so it can
never go stale after a mutation. Aggregate totals are NOT recomputed here —
the owner of the list calls recompute() afterwards (see billing/draft.py).
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from shopdesk.utils.numbers import ZERO, HUNDRED, MAX_QUANTITY, non_negative, percentage
from shopdesk.utils.numbers import quantity as parse_quantity


ItemKey = Tuple[int, str]


@dataclass
class LineItem:
    """One variant-size-quantity-price-discount row."""
    variant_id:       int
    size:             str
    quantity:         int     = 1
    unit_price:       Decimal = ZERO
    discount_percent: Decimal = ZERO
    label:            str     = ''

    @property
    def key(self) -> ItemKey:
        return (self.variant_id, self.size)

    @property
    def line_total(self) -> Decimal:
        return (
            Decimal(self.quantity)
            * self.unit_price
            * (1 - self.discount_percent / HUNDRED)
        )

    # ── Session (JSON) round-trip ─────────────────────────────────
    # Money is stored as str, never float, so it survives the JSON session.

    def to_dict(self) -> dict:
        return {
            'variant_id':       self.variant_id,
            'size':             self.size,
            'quantity':         self.quantity,
            'unit_price':       str(self.unit_price),
            'discount_percent': str(self.discount_percent),
            'line_total':       str(self.line_total.quantize(Decimal('0.01'))),
            'label':            self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LineItem':
        return cls(
            variant_id=int(data['variant_id']),
            size=str(data['size']),
            quantity=parse_quantity(data.get('quantity'), 1),
            unit_price=non_negative(data.get('unit_price')),
            discount_percent=percentage(data.get('discount_percent')),
            label=data.get('label', ''),
        )


def find(items: List[LineItem], key: ItemKey) -> Optional[LineItem]:
    """Return the item for `key`, or None. Sizes compare case-insensitively."""
    variant_id, size = key
    wanted = str(size).strip().casefold()
    for item in items:
        if item.variant_id == variant_id and item.size.strip().casefold() == wanted:
            return item
    return None


# ── Write ─────────────────────────────────────────────────────────

def add_or_increment(items: List[LineItem], variant_id: int, size: str,
                     unit_price, label: str = '') -> List[LineItem]:
    """
    Add one unit of (variant_id, size).
    If already present, increments quantity by 1; otherwise appends a new
    row with quantity 1, no discount and `unit_price` as the rate.
    """
    existing = find(items, (variant_id, size))
    if existing is not None:
        existing.quantity = min(existing.quantity + 1, MAX_QUANTITY)
    else:
        items.append(LineItem(
            variant_id=variant_id,
            size=size,
            quantity=1,
            unit_price=non_negative(unit_price),
            discount_percent=ZERO,
            label=label,
        ))
    return items


def set_quantity(items: List[LineItem], key: ItemKey, raw) -> List[LineItem]:
    """
    Set the quantity of one row.

    Negative numbers clamp to 0 and very large ones to MAX_QUANTITY.
    Anything that is not a whole number ("abc", "2.5", "1e30", None)
    leaves the previous quantity in place.
    """
    item = find(items, key)
    if item is None:
        return items
    item.quantity = parse_quantity(raw, default=item.quantity)
    return items


def set_discount(items: List[LineItem], key: ItemKey, raw) -> List[LineItem]:
    """Set a row's discount percentage, clamped to [0, 100]. Unparseable → unchanged."""
    item = find(items, key)
    if item is None:
        return items
    item.discount_percent = percentage(raw, default=item.discount_percent)
    return items


def set_variant_discount(items: List[LineItem], variant_id: int, raw) -> List[LineItem]:
    """Apply the same discount percentage to every size of one variant."""
    for item in items:
        if item.variant_id == variant_id:
            set_discount(items, item.key, raw)
    return items


def remove(items: List[LineItem], key: ItemKey) -> List[LineItem]:
    """Remove a row entirely. Unknown keys are ignored."""
    item = find(items, key)
    if item is not None:
        items.remove(item)
    return items


def total_quantity(items: List[LineItem]) -> int:
    return sum(item.quantity for item in items)

