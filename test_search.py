"""
test_search.py — Catalog search ranking and browse sorting.
Run: pytest test_search.py -v
"""
from decimal import Decimal
from types import SimpleNamespace as NS

from shopdesk.catalog.search import (
    min_buying_price, rank_variants, score_variant, search_catalog, sort_products,
)


def size(buying='100', stock=0):
    return NS(buying_price=Decimal(buying), stock=stock)


def variant(name, barcode=None, sizes=()):
    return NS(name=name, barcode=barcode, sizes=list(sizes))


def product(name, variants, hsn=0):
    return NS(name=name, variants=list(variants), hsn=hsn)


SHIRT = product('Shirt', [variant('Blue XL', 'SH001', [size('400', 3)]),
                          variant('White M', 'SH002', [size('350', 7)])], hsn=6205)
JEANS = product('Jeans', [variant('Blue Slim', '8901234', [size('900', 2), size('850', 1)])], hsn=6203)
TEE   = product('Tee', [variant('Black', None, [size('150', 20)])], hsn=6109)


# ── Scoring ───────────────────────────────────────────────────────

def test_all_words_present_scores_by_word_count():
    assert score_variant('blue shirt', SHIRT, SHIRT.variants[0]) == 70


def test_barcode_exact_and_partial():
    assert score_variant('8901234', JEANS, JEANS.variants[0]) == 100
    assert score_variant('0123', JEANS, JEANS.variants[0]) == 90


def test_name_rules_in_order():
    v = SHIRT.variants[0]
    assert score_variant('shirt blue xl', SHIRT, v) == 100
    assert score_variant('blue xl', SHIRT, v) == 90
    assert score_variant('shirt', SHIRT, v) == 85
    assert score_variant('shirt bl', SHIRT, v) == 80
    assert score_variant('blue', SHIRT, v) == 75


def test_missing_word_is_no_match():
    assert score_variant('red shirt', SHIRT, SHIRT.variants[0]) == 0


def test_sanitize_strips_punctuation():
    tshirt = product('T-Shirt', [variant('Navy')])
    assert score_variant('tshirt navy', tshirt, tshirt.variants[0]) == 0
    assert score_variant('tshirt navy', tshirt, tshirt.variants[0], sanitize=True) == 100


# ── Ranking ───────────────────────────────────────────────────────

def test_rank_flattens_to_variants_best_first():
    hits = rank_variants('blue', [SHIRT, JEANS, TEE])
    assert [(h.product.name, h.variant.name) for h in hits] == [
        ('Shirt', 'Blue XL'), ('Jeans', 'Blue Slim'),
    ]
    assert [h.score for h in hits] == [75, 75]   # ties keep catalog order


def test_barcode_match_outranks_name_match():
    named = product('8901234 Special', [variant('Gift')])
    hits = rank_variants('8901234', [named, JEANS])
    assert hits[0].variant is JEANS.variants[0]
    assert hits[0].score == 100


# ── Browse mode ───────────────────────────────────────────────────

def test_blank_query_browses_whole_products():
    mode, results = search_catalog('   ', [TEE, SHIRT, JEANS])
    assert mode == 'browse'
    assert [p.name for p in results] == ['Jeans', 'Shirt', 'Tee']


def test_sort_keys():
    catalog = [SHIRT, JEANS, TEE]
    assert [p.name for p in sort_products(catalog, 'price')] == ['Tee', 'Shirt', 'Jeans']
    assert [p.name for p in sort_products(catalog, 'stock', descending=True)] == ['Tee', 'Shirt', 'Jeans']
    assert [p.name for p in sort_products(catalog, 'hsn')] == ['Tee', 'Jeans', 'Shirt']
    assert [p.name for p in sort_products(catalog, 'bogus')] == ['Jeans', 'Shirt', 'Tee']


def test_min_buying_price_of_empty_product_is_zero():
    assert min_buying_price(product('Empty', [])) == Decimal('0')
    assert min_buying_price(JEANS) == Decimal('850')
