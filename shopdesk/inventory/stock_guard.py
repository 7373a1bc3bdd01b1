"""
shopdesk/inventory/stock_guard.py
---------------------------------
Validate and preview a stock change on one variant size before it is
written, holding "large" changes for an explicit confirmation.

    DRAFT ──submit()──┬──> APPLIED                (small change, saved)
                      └──> PENDING_CONFIRMATION   (large change, nothing saved)
    PENDING_CONFIRMATION ──confirm()──> APPLIED
    PENDING_CONFIRMATION ──cancel()───> CANCELLED (nothing saved)

A change is large when the absolute difference exceeds 100 units, or the
relative difference exceeds 50 % of the old stock. Any move away from a
stock of 0 counts as a 100 % change.

Saving is delegated to a `persist(variant_id, size, new_stock)` callable.
If it raises, the adjustment goes back to the state it was in and a
PersistenceFailure carrying the original message is raised. APPLIED is
only reached after persist() returned.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from shopdesk.errors import PersistenceFailure, ValidationFailure
from shopdesk.utils.numbers import quantity, to_decimal


LARGE_CHANGE_UNITS = 100
LARGE_CHANGE_RATIO = Decimal('0.5')

Persist = Callable[[int, str, int], None]


class StockOperation(enum.Enum):
    SET      = 'set'
    ADD      = 'add'
    SUBTRACT = 'subtract'


class AdjustmentState(enum.Enum):
    DRAFT                = 'draft'
    PENDING_CONFIRMATION = 'pending_confirmation'
    APPLIED              = 'applied'
    CANCELLED            = 'cancelled'


# ── Pure rules ────────────────────────────────────────────────────

def compute_new_stock(old_stock: int, operation: StockOperation, amount: int) -> int:
    if operation is StockOperation.SET:
        return amount
    if operation is StockOperation.ADD:
        return old_stock + amount
    return max(0, old_stock - amount)


def is_large_change(old_stock: int, new_stock: int,
                    units: int = LARGE_CHANGE_UNITS,
                    ratio: Decimal = LARGE_CHANGE_RATIO) -> bool:
    """
    True when |new − old| > units, or |new − old| / old > ratio.
    Both comparisons are strict: exactly 50 % or exactly 100 units passes.
    """
    delta = abs(new_stock - old_stock)
    if delta > units:
        return True
    if old_stock > 0:
        return Decimal(delta) / Decimal(old_stock) > ratio
    return new_stock != 0


# ── Adjustment request ────────────────────────────────────────────

@dataclass
class StockAdjustment:
    variant_id: int
    size:       str
    operation:  StockOperation
    amount:     int
    old_stock:  int
    state:      AdjustmentState = AdjustmentState.DRAFT
    units:      int             = LARGE_CHANGE_UNITS
    ratio:      Decimal         = LARGE_CHANGE_RATIO

    @classmethod
    def build(cls, variant_id: int, size: str, operation, amount, old_stock: int,
              units: Optional[int] = None, ratio=None) -> 'StockAdjustment':
        """
        Parse raw request values into a DRAFT adjustment.

        Unknown operations and missing / non-integer amounts are rejected
        with ValidationFailure. Negative amounts clamp to 0, huge ones to MAX_QUANTITY.
        """
        errors = {}
        try:
            op = operation if isinstance(operation, StockOperation) \
                else StockOperation(str(operation or '').strip().lower())
        except ValueError:
            op = None
            errors['operation'] = 'Operation must be one of: set, add, subtract.'

        qty = quantity(amount)
        if qty is None:
            errors['amount'] = 'Amount must be a whole number.'

        if errors:
            raise ValidationFailure(errors)

        return cls(
            variant_id=variant_id,
            size=size,
            operation=op,
            amount=qty,
            old_stock=old_stock,
            units=LARGE_CHANGE_UNITS if units is None else int(units),
            ratio=LARGE_CHANGE_RATIO if ratio is None else to_decimal(ratio, LARGE_CHANGE_RATIO),
        )

    # ── Derived ───────────────────────────────────────────────────

    @property
    def new_stock(self) -> int:
        return compute_new_stock(self.old_stock, self.operation, self.amount)

    @property
    def change(self) -> int:
        return self.new_stock - self.old_stock

    @property
    def needs_confirmation(self) -> bool:
        return is_large_change(self.old_stock, self.new_stock, self.units, self.ratio)

    # ── Transitions ───────────────────────────────────────────────

    def submit(self, persist: Persist) -> AdjustmentState:
        """DRAFT → APPLIED, or DRAFT → PENDING_CONFIRMATION for a large change."""
        self._require(AdjustmentState.DRAFT, 'submit')
        if self.needs_confirmation:
            self.state = AdjustmentState.PENDING_CONFIRMATION
            return self.state
        return self._apply(persist)

    def confirm(self, persist: Persist) -> AdjustmentState:
        """PENDING_CONFIRMATION → APPLIED."""
        self._require(AdjustmentState.PENDING_CONFIRMATION, 'confirm')
        return self._apply(persist)

    def cancel(self) -> AdjustmentState:
        """Drop the request. Nothing is written."""
        if self.state in (AdjustmentState.APPLIED, AdjustmentState.CANCELLED):
            raise ValidationFailure(
                {'state': f'Cannot cancel an adjustment that is {self.state.value}.'}
            )
        self.state = AdjustmentState.CANCELLED
        return self.state

    def _apply(self, persist: Persist) -> AdjustmentState:
        previous = self.state
        try:
            persist(self.variant_id, self.size, self.new_stock)
        except Exception as exc:
            self.state = previous
            raise PersistenceFailure(str(exc) or exc.__class__.__name__) from exc
        self.state = AdjustmentState.APPLIED
        return self.state

    def _require(self, expected: AdjustmentState, action: str) -> None:
        if self.state is not expected:
            raise ValidationFailure(
                {'state': f'Cannot {action} an adjustment that is {self.state.value}.'}
            )

    # ── Session round-trip (pending requests only) ────────────────

    def to_dict(self) -> dict:
        return {
            'variant_id': self.variant_id,
            'size':       self.size,
            'operation':  self.operation.value,
            'amount':     self.amount,
            'old_stock':  self.old_stock,
            'new_stock':  self.new_stock,
            'change':     self.change,
            'state':      self.state.value,
            'units':      self.units,
            'ratio':      str(self.ratio),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StockAdjustment':
        return cls(
            variant_id=int(data['variant_id']),
            size=str(data['size']),
            operation=StockOperation(data['operation']),
            amount=int(data['amount']),
            old_stock=int(data['old_stock']),
            state=AdjustmentState(data.get('state', AdjustmentState.DRAFT.value)),
            units=int(data.get('units', LARGE_CHANGE_UNITS)),
            ratio=to_decimal(data.get('ratio'), LARGE_CHANGE_RATIO),
        )
