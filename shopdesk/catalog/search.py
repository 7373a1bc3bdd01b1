"""
shopdesk/catalog/search.py
--------------------------
Pure-Python search ranking for the product catalog.

Two modes, deliberately different in granularity:

    search  (query non-empty)  → one hit per matching VARIANT,
                                 ranked by score, best first
    browse  (query empty)      → whole PRODUCTS, ordered by the chosen
                                 sort key (name / price / stock / hsn)

Scoring (first rule that matches wins):

    barcode == query                              100
    barcode contains query                         90
    -- otherwise every query word must appear in "product variant" --
    "product variant" == query                    100
    variant name == query                          90
    product name == query                          85
    "product variant" starts with query            80
    variant name starts with query                 75
    product name starts with query                 70
    all words present                50 + min(10 × words, 40)

Works on anything shaped like the ORM models: products with `.name`,
`.hsn`, `.variants`; variants with `.name`, `.barcode`, `.sizes`; sizes
with `.buying_price`, `.stock`. No DB access happens here.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Sequence, Tuple

from shopdesk.utils.numbers import ZERO, to_decimal


SORT_KEYS = ('name', 'price', 'stock', 'hsn')

_SPECIAL = re.compile(r'[^a-z0-9\s]')


@dataclass
class SearchHit:
    """One (product, single variant) pair that matched the query."""
    product: Any
    variant: Any
    score:   int


# ── Normalisation ─────────────────────────────────────────────────

def _normalise(text, sanitize: bool = False) -> str:
    text = (text or '').lower()
    if sanitize:
        text = _SPECIAL.sub('', text)
    return text.strip()


def query_words(query: str) -> List[str]:
    """Lowercase, trim, split on whitespace; empty words dropped."""
    return [w for w in _normalise(query).split() if w]


# ── Scoring ───────────────────────────────────────────────────────

def score_variant(query: str, product, variant, sanitize: bool = False) -> int:
    """
    Score one (product, variant) pair against `query`. 0 means no match.
    `sanitize` strips everything except a-z, 0-9 and whitespace first.
    """
    q = _normalise(query, sanitize)
    if not q:
        return 0

    product_name = _normalise(product.name, sanitize)
    variant_name = _normalise(variant.name, sanitize)
    barcode      = _normalise(getattr(variant, 'barcode', None), sanitize)
    combined     = f"{product_name} {variant_name}".strip()

    if barcode and barcode == q:
        return 100
    if barcode and q in barcode:
        return 90

    words = q.split()
    if not all(word in combined for word in words):
        return 0

    if combined == q:
        return 100
    if variant_name == q:
        return 90
    if product_name == q:
        return 85
    if combined.startswith(q):
        return 80
    if variant_name.startswith(q):
        return 75
    if product_name.startswith(q):
        return 70
    return 50 + min(len(words) * 10, 40)


def rank_variants(query: str, products: Sequence, sanitize: bool = False) -> List[SearchHit]:
    """
    Flatten products into (product, variant) pairs, score each, drop the
    zeros and sort by score descending. sorted() is stable, so ties keep
    the original product / variant order.
    """
    hits = []
    for product in products:
        for variant in product.variants:
            score = score_variant(query, product, variant, sanitize)
            if score > 0:
                hits.append(SearchHit(product=product, variant=variant, score=score))
    return sorted(hits, key=lambda h: h.score, reverse=True)


# ── Browse mode ───────────────────────────────────────────────────

def min_buying_price(product) -> Decimal:
    """Cheapest buying price across every size of every variant (0 if none)."""
    prices = [
        to_decimal(size.buying_price, ZERO)
        for variant in product.variants
        for size in variant.sizes
    ]
    return min(prices) if prices else ZERO


def total_stock(product) -> int:
    """Sum of stock across every size of every variant."""
    return sum(size.stock for variant in product.variants for size in variant.sizes)


_SORTERS = {
    'name':  lambda p: (p.name or '').lower(),
    'price': min_buying_price,
    'stock': total_stock,
    'hsn':   lambda p: p.hsn or 0,
}


def sort_products(products: Sequence, sort_key: str = 'name', descending: bool = False) -> list:
    """Order whole products by `sort_key`. Unknown keys fall back to name."""
    key = _SORTERS.get(sort_key, _SORTERS['name'])
    return sorted(products, key=key, reverse=descending)


# ── Main public function ──────────────────────────────────────────

def search_catalog(query: str, products: Sequence, sort_key: str = 'name',
                   descending: bool = False, sanitize: bool = False) -> Tuple[str, list]:
    """
    Returns ('search', [SearchHit, ...]) for a non-empty query, or
            ('browse', [product, ...])   when the query is blank.
    """
    if not query_words(query):
        return 'browse', sort_products(products, sort_key, descending)
    return 'search', rank_variants(query, products, sanitize)
