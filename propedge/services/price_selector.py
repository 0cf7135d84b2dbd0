"""
Price Selector — best available price per side, and the top-N book list.

Line shopping works over every quoting book, minus any the user has
excluded (books they have no account with, or have been limited at).

best_quotes:
    Every quote at the maximum decimal price.  Several books can share the
    best price; all of them are returned.

rank_books:
    Deterministic presentation order for a "top-N books" strip:

      1. Every quote at the best price (book id order among ties).
      2. Books on the priority list, in priority-list order.
      3. Everything else by decimal price descending, then book id.

    If the reference book (normally the sharp book) quotes the side but
    falls outside the first N, it replaces the last slot so the sharp
    price is always visible.
"""

import logging
from typing import Iterable, List, Mapping, Optional, Sequence

from propedge.core.pricing_config import DEFAULT_PRIORITY_BOOKS, DEFAULT_TOP_N
from propedge.services.ledger import MarketSide, Quote, normalize_book_id, normalize_book_set

logger = logging.getLogger(__name__)


def eligible_quotes(
    side: MarketSide,
    excluded_books: Optional[Iterable[str]] = None,
    aliases: Optional[Mapping[str, str]] = None,
) -> List[Quote]:
    """Quotes from books not on the exclusion list, in book id order."""
    excluded = normalize_book_set(excluded_books, aliases)
    quotes = side.all_quotes()
    eligible = [q for q in quotes if q.book_id not in excluded]
    if quotes and not eligible:
        logger.warning(
            "Exclusion list %s removed every book quoting %s %s",
            sorted(excluded), side.side, side.line,
        )
    return eligible


def best_quotes(
    side: MarketSide,
    excluded_books: Optional[Iterable[str]] = None,
    aliases: Optional[Mapping[str, str]] = None,
) -> List[Quote]:
    """
    All quotes sharing the maximum decimal price.

    Prices are compared as canonical American integers, which order the
    same way as decimal odds but without float noise between books.
    Returns an empty list when no eligible book quotes the side.
    """
    eligible = eligible_quotes(side, excluded_books, aliases)
    if not eligible:
        return []
    best = max(eligible, key=lambda q: q.decimal_odds)
    return [q for q in eligible if q.price == best.price]


def rank_books(
    side: MarketSide,
    top_n: int = DEFAULT_TOP_N,
    priority_books: Sequence[str] = DEFAULT_PRIORITY_BOOKS,
    reference_book: Optional[str] = None,
    excluded_books: Optional[Iterable[str]] = None,
    aliases: Optional[Mapping[str, str]] = None,
) -> List[Quote]:
    """
    Top-N presentation list for one side.

    Args:
        side:           Quotes for one side of a market.
        top_n:          Slice length (≥ 1).
        priority_books: Books promoted directly after the best-price books.
        reference_book: Book forced into the last slot when it quotes the
                        side but misses the slice.  ``None`` disables this.
        excluded_books: Books never shown.

    Raises:
        ValueError: If ``top_n < 1``.
    """
    if top_n < 1:
        raise ValueError(f"top_n must be ≥ 1, got {top_n!r}.")

    eligible = eligible_quotes(side, excluded_books, aliases)
    if not eligible:
        return []

    best_price = max(eligible, key=lambda q: q.decimal_odds).price
    priority = [normalize_book_id(b, aliases) for b in priority_books]
    priority_rank = {book: idx for idx, book in enumerate(priority)}
    tail = len(priority)

    def _sort_key(quote: Quote):
        if quote.price == best_price:
            return (0, 0, 0.0, quote.book_id)
        if quote.book_id in priority_rank:
            return (1, priority_rank[quote.book_id], 0.0, quote.book_id)
        return (2, tail, -quote.decimal_odds, quote.book_id)

    ranked = sorted(eligible, key=_sort_key)
    shown = ranked[:top_n]

    reference = normalize_book_id(reference_book, aliases) if reference_book else ""
    if reference and all(q.book_id != reference for q in shown):
        forced = next((q for q in ranked if q.book_id == reference), None)
        if forced is not None:
            shown[-1] = forced
    return shown
