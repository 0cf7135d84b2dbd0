"""
Odds Ledger — normalises raw sportsbook quotes into comparable records.

Quote feeds deliver prices as ``int``, ``float``, ``str`` ("+120"), or
nothing at all, and any book may be missing from either side of a market.
This module is the boundary where that mess stops:

  read_price:
      Raw price → canonical American integer, or the ``UNAVAILABLE``
      sentinel.  Never raises.

  Quote / MarketSide:
      Immutable, fully-typed records.  A Quote always carries a valid
      price and its decimal odds; a quote with no usable price is never
      constructed.

  ingest_market:
      Flat feed rows (book, side, price, line, link, limit) for one market
      → one MarketSide per side.  Partial markets (only one side quoted)
      come back with an empty opposite side.

Book ids are normalised (trimmed, lower-cased, alias-mapped) so exclusion
lists and reference books compare reliably across feed spellings.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from propedge.core.odds_math import (
    american_to_decimal,
    canonical_american,
    is_valid_american,
    round_half_away,
)
from propedge.core.pricing_config import DEFAULT_BOOK_ALIASES

logger = logging.getLogger(__name__)

Side = Literal["over", "under", "yes", "no"]

OPPOSITE_SIDE: Dict[str, str] = {
    "over": "under",
    "under": "over",
    "yes": "no",
    "no": "yes",
}


class Unavailable:
    """Sentinel for a price that could not be read.

    Distinct from every legitimate price, including ``0`` and ``None``
    returned by other layers.
    """

    _instance: Optional["Unavailable"] = None

    def __new__(cls) -> "Unavailable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __bool__(self) -> bool:
        return False


UNAVAILABLE = Unavailable()

PriceReading = Union[int, Unavailable]


# ---------------------------------------------------------------------------
# Price and book normalisation
# ---------------------------------------------------------------------------

def read_price(raw: object) -> PriceReading:
    """
    Parse a raw feed price into a canonical American integer.

    Accepts ints, integral or fractional floats (rounded half away from
    zero), and strings such as ``"+120"`` or ``" -110 "``.  Returns
    ``UNAVAILABLE`` for ``None``, booleans, non-numeric strings, NaN/inf,
    zero, and magnitudes below 100.  Even money is returned as ``+100``.
    """
    if raw is None or isinstance(raw, bool):
        return UNAVAILABLE

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return UNAVAILABLE
        try:
            value = float(text)
        except ValueError:
            return UNAVAILABLE
    elif isinstance(raw, (int, float)):
        value = float(raw)
    else:
        return UNAVAILABLE

    # Checked before rounding: -99.5 is not even money.
    if not is_valid_american(value):
        return UNAVAILABLE

    return canonical_american(round_half_away(value))


def normalize_book_id(
    book_id: Optional[str],
    aliases: Optional[Mapping[str, str]] = None,
) -> str:
    """Trim, lower-case, and alias-map a sportsbook id."""
    if not book_id:
        return ""
    key = book_id.strip().lower()
    table = DEFAULT_BOOK_ALIASES if aliases is None else aliases
    return table.get(key, key)


def normalize_book_set(
    book_ids: Optional[Iterable[str]],
    aliases: Optional[Mapping[str, str]] = None,
) -> frozenset:
    """Normalise an exclusion / reference list into a frozenset of ids."""
    if not book_ids:
        return frozenset()
    return frozenset(
        normalized
        for normalized in (normalize_book_id(b, aliases) for b in book_ids)
        if normalized
    )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Quote:
    """One sportsbook's price on one side of one market."""

    book_id: str
    price: int
    decimal_odds: float
    line: Optional[float]
    link: Optional[str] = None
    limit: Optional[float] = None

    @classmethod
    def from_price(
        cls,
        book_id: str,
        price: int,
        line: Optional[float],
        link: Optional[str] = None,
        limit: Optional[float] = None,
    ) -> "Quote":
        """Build a quote from an already-validated American price."""
        price = canonical_american(price)
        return cls(
            book_id=book_id,
            price=price,
            decimal_odds=american_to_decimal(price),
            line=line,
            link=link,
            limit=limit,
        )

    def to_dict(self) -> dict:
        return {
            "book_id": self.book_id,
            "price": self.price,
            "decimal_odds": self.decimal_odds,
            "line": self.line,
            "link": self.link,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class MarketSide:
    """All quotes for one side of one market, unique by book id."""

    side: Side
    line: Optional[float]
    quotes: Mapping[str, Quote] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.quotes)

    def get(self, book_id: str) -> Optional[Quote]:
        return self.quotes.get(book_id)

    def all_quotes(self) -> List[Quote]:
        """Quotes in a deterministic order (book id)."""
        return [self.quotes[k] for k in sorted(self.quotes)]

    @property
    def opposite(self) -> str:
        return OPPOSITE_SIDE[self.side]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

def _read_line(raw: object) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _read_limit(raw: object) -> Optional[float]:
    value = _read_line(raw)
    if value is None or value <= 0:
        return None
    return value


def parse_quote(
    row: Mapping,
    aliases: Optional[Mapping[str, str]] = None,
) -> Optional[Quote]:
    """
    Build a Quote from one raw feed row, or ``None`` when it is unusable.

    Recognised keys: ``book`` (or ``bookId`` / ``book_id``), ``price``,
    ``line`` (or ``point``), ``link`` (or ``url``), ``limit``.
    """
    book_raw = row.get("book") or row.get("bookId") or row.get("book_id")
    book_id = normalize_book_id(book_raw, aliases)
    if not book_id:
        logger.debug("Dropping quote with no book id: %r", row)
        return None

    price = read_price(row.get("price"))
    if price is UNAVAILABLE:
        logger.debug("Dropping %s quote with unusable price %r", book_id, row.get("price"))
        return None

    line = _read_line(row.get("line", row.get("point")))
    return Quote.from_price(
        book_id=book_id,
        price=price,
        line=line,
        link=row.get("link") or row.get("url") or None,
        limit=_read_limit(row.get("limit")),
    )


def build_market_side(
    side: Side,
    line: Optional[float],
    quotes: Iterable[Quote],
) -> MarketSide:
    """
    Collect quotes for one side, enforcing the unique-book and same-line rules.

    Duplicate quotes for one book keep the better (higher decimal) price.
    Quotes posted at a different line than ``line`` are not comparable and
    are dropped.
    """
    by_book: Dict[str, Quote] = {}
    for quote in quotes:
        if line is not None and quote.line is not None and quote.line != line:
            logger.debug(
                "Dropping %s %s quote at line %s (market line %s)",
                quote.book_id, side, quote.line, line,
            )
            continue
        existing = by_book.get(quote.book_id)
        if existing is None or quote.decimal_odds > existing.decimal_odds:
            by_book[quote.book_id] = quote
    return MarketSide(side=side, line=line, quotes=by_book)


def ingest_market(
    rows: Iterable[Mapping],
    line: Optional[float],
    sides: Tuple[Side, Side] = ("over", "under"),
    aliases: Optional[Mapping[str, str]] = None,
) -> Tuple[MarketSide, MarketSide]:
    """
    Split flat feed rows for one market into its two sides.

    Each row must carry a ``side`` key matching one of ``sides``; rows for
    other sides are ignored.  Either returned side may be empty.
    """
    buckets: Dict[str, List[Quote]] = {sides[0]: [], sides[1]: []}
    dropped = 0
    total = 0

    for row in rows:
        total += 1
        side = str(row.get("side", "")).strip().lower()
        if side not in buckets:
            dropped += 1
            continue
        quote = parse_quote(row, aliases)
        if quote is None:
            dropped += 1
            continue
        buckets[side].append(quote)

    first = build_market_side(sides[0], line, buckets[sides[0]])
    second = build_market_side(sides[1], line, buckets[sides[1]])

    logger.debug(
        "Ingested market line=%s: %d rows, %d dropped, %s=%d books, %s=%d books",
        line, total, dropped, sides[0], len(first), sides[1], len(second),
    )
    return first, second
