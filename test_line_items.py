"""
test_line_items.py — Line-item collection helpers and the session draft.
Run: pytest test_line_items.py -v
"""
from decimal import Decimal

import pytest

from shopdesk.billing import line_items as li
from shopdesk.billing.draft import Draft, ORDER, PURCHASE
from shopdesk.billing.line_items import LineItem
from shopdesk.billing.totals import compute_totals
from shopdesk.utils.numbers import MAX_QUANTITY


@pytest.fixture
def items():
    rows = []
    li.add_or_increment(rows, 1, 'M', '500', label='Shirt - Blue')
    li.add_or_increment(rows, 1, 'L', '520', label='Shirt - Blue')
    li.add_or_increment(rows, 2, 'M', '300', label='Tee - Black')
    return rows


def test_add_appends_then_increments(items):
    assert [i.key for i in items] == [(1, 'M'), (1, 'L'), (2, 'M')]
    li.add_or_increment(items, 1, 'M', '999')
    row = li.find(items, (1, 'M'))
    assert row.quantity == 2
    assert row.unit_price == Decimal('500')   # rate of the first add is kept
    assert len(items) == 3


def test_line_total_follows_quantity_and_discount(items):
    li.set_quantity(items, (1, 'M'), '3')
    li.set_discount(items, (1, 'M'), '10')
    assert li.find(items, (1, 'M')).line_total == Decimal('1350')


def test_set_quantity_clamps_and_ignores_garbage(items):
    li.set_quantity(items, (2, 'M'), '4')
    li.set_quantity(items, (2, 'M'), 'abc')
    assert li.find(items, (2, 'M')).quantity == 4
    li.set_quantity(items, (2, 'M'), '2.5')
    assert li.find(items, (2, 'M')).quantity == 4
    li.set_quantity(items, (2, 'M'), -3)
    assert li.find(items, (2, 'M')).quantity == 0


def test_set_discount_clamps_to_percentage_range(items):
    li.set_discount(items, (1, 'L'), '150')
    assert li.find(items, (1, 'L')).discount_percent == Decimal('100')
    li.set_discount(items, (1, 'L'), '-5')
    assert li.find(items, (1, 'L')).discount_percent == Decimal('0')
    li.set_discount(items, (1, 'L'), '12.5')
    li.set_discount(items, (1, 'L'), 'nan')
    assert li.find(items, (1, 'L')).discount_percent == Decimal('12.5')


def test_variant_discount_hits_every_size(items):
    li.set_variant_discount(items, 1, '20')
    assert li.find(items, (1, 'M')).discount_percent == Decimal('20')
    assert li.find(items, (1, 'L')).discount_percent == Decimal('20')
    assert li.find(items, (2, 'M')).discount_percent == Decimal('0')


def test_remove_and_unknown_keys(items):
    li.remove(items, (1, 'L'))
    li.remove(items, (9, 'XXL'))
    li.set_quantity(items, (9, 'XXL'), 5)
    assert [i.key for i in items] == [(1, 'M'), (2, 'M')]


def test_line_item_session_round_trip_keeps_decimals():
    item = LineItem(variant_id=4, size='S', quantity=2,
                    unit_price=Decimal('199.99'), discount_percent=Decimal('5'))
    restored = LineItem.from_dict(item.to_dict())
    assert restored == item


# ── Draft: explicit recompute after each mutation ─────────────────

def test_draft_totals_track_every_mutation():
    draft = Draft(kind=ORDER)
    draft.add(1, 'M', '1000')
    assert draft.totals.subtotal == Decimal('1000')

    draft.configure({
        'bill_discount':    {'type': 'percentage', 'value': '10'},
        'special_discount': {'type': 'amount', 'value': '5'},
        'tax':              {'type': 'igst', 'igst_rate': '18'},
    })
    assert draft.totals.total_amount == 1057

    draft.set_quantity(1, 'M', 2)
    assert draft.totals.subtotal == Decimal('2000')

    draft.remove(1, 'M')
    assert draft.totals.subtotal == Decimal('0')
    assert draft.totals.total_amount == 0


def test_draft_session_round_trip():
    draft = Draft(kind=PURCHASE)
    draft.add(3, 'XL', '250.50')
    draft.set_discount(3, 'XL', '10')
    draft.configure({'tax': {'type': 'cgst_sgst', 'cgst_rate': '2.5', 'sgst_rate': '2.5'},
                     'header': {'supplier_id': 7}})

    restored = Draft.from_session(PURCHASE, draft.to_session())
    assert restored.items == draft.items
    assert restored.tax == draft.tax
    assert restored.header == {'supplier_id': 7}
    assert restored.totals == draft.totals


def test_oversized_quantities_keep_totals_displayable(items):
    li.set_quantity(items, (2, 'M'), '4')
    li.set_quantity(items, (2, 'M'), '1e30')
    assert li.find(items, (2, 'M')).quantity == 4
    li.set_quantity(items, (2, 'M'), 10 ** 9)
    assert li.find(items, (2, 'M')).quantity == MAX_QUANTITY

    totals = compute_totals(items).to_dict()
    assert totals['total_amount'] == 500 + 520 + 300 * MAX_QUANTITY
    assert [row.to_dict()['quantity'] for row in items] == [1, 1, MAX_QUANTITY]


def test_session_values_are_bounded_on_restore():
    restored = LineItem.from_dict({'variant_id': 1, 'size': 'M',
                                   'quantity': '1e30', 'unit_price': '1e40'})
    assert restored.quantity == 1
    assert restored.unit_price == Decimal('0')


def test_sizes_match_without_case(items):
    li.set_quantity(items, (1, 'm'), '3')
    assert li.find(items, (1, 'M')).quantity == 3
    li.add_or_increment(items, 2, ' m ', '300')
    assert li.find(items, (2, 'M')).quantity == 2
    assert len(items) == 3
