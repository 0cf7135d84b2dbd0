"""
Edge / EV calculator — assembles one Opportunity per selection.

Pipeline for one side of one market::

    quotes ──► best price (exclusions honoured)
           ──► reference price (comparison mode, over ALL books)
           ──► fair probability (de-vig, proper → estimated → none)
           ──► edge%, EV%, Kelly fraction, grade

Comparison modes for the reference price
----------------------------------------
  book            One named book's price (typically Pinnacle).
  next_best       Second entry of every quote sorted by decimal odds,
                  descending.  A tie at the top gives edge 0.
  sharp_average   Arithmetic mean decimal price across the sharp books.
  market_average  Mean implied probability across every quoting book,
                  converted back to decimal.
  custom          Caller-supplied decimal price, or a weighted blend of
                  book implied probabilities.

Fair probability
----------------
When both sides have a reference price the pair is de-vigged ("proper").
Otherwise the best price on each side is used.  If only this side is
quoted, the estimate uses ``PricingConfig.estimated_margin``.  A negative
overround (arbitrage in the inputs) is reported as ``"none"``.

Formulas
--------
  edge%  = (best_decimal / reference_decimal − 1) × 100
  EV%    = (fair_probability × best_decimal − 1) × 100
  Kelly  = (best_decimal × fair_probability − 1) / (best_decimal − 1)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Tuple

from propedge.core.devig import (
    DEFAULT_DEVIG_METHODS,
    DevigMethod,
    DevigQuality,
    DevigResult,
    devig_multiple,
    devig_one_sided,
    devig_two_sided,
)
from propedge.core.kelly import StakeRecommendation, kelly_fraction, kelly_stake
from propedge.core.odds_math import decimal_to_american, probability_to_american
from propedge.core.pricing_config import DEFAULT_KELLY_PERCENT, PricingConfig
from propedge.services.ledger import MarketSide, Quote, normalize_book_id, normalize_book_set
from propedge.services.price_selector import best_quotes

logger = logging.getLogger(__name__)

ComparisonMode = Literal["book", "next_best", "sharp_average", "market_average", "custom"]

COMPARISON_MODES: Tuple[str, ...] = (
    "book",
    "next_best",
    "sharp_average",
    "market_average",
    "custom",
)


@dataclass(frozen=True)
class ReferenceSpec:
    """How the reference price for edge% is chosen.

    ``book_id`` is required for ``"book"`` mode.  ``sharp_books`` overrides
    the configured sharp set for ``"sharp_average"``.  ``"custom"`` mode
    takes either ``custom_decimal`` or ``weights`` (book id → weight).
    """

    mode: ComparisonMode = "next_best"
    book_id: Optional[str] = None
    sharp_books: Optional[frozenset] = None
    custom_decimal: Optional[float] = None
    weights: Optional[Mapping[str, float]] = None

    def __post_init__(self) -> None:
        if self.mode not in COMPARISON_MODES:
            raise ValueError(
                f"Unknown comparison mode {self.mode!r}; expected one of {COMPARISON_MODES}."
            )
        if self.mode == "book" and not self.book_id:
            raise ValueError("Comparison mode 'book' requires a book_id.")
        if self.mode == "custom" and self.custom_decimal is None and not self.weights:
            raise ValueError(
                "Comparison mode 'custom' requires custom_decimal or weights."
            )


# ---------------------------------------------------------------------------
# Reference prices
# ---------------------------------------------------------------------------

def blend_sharp_probability(
    side: MarketSide,
    weights: Mapping[str, float],
    aliases: Optional[Mapping[str, str]] = None,
) -> Optional[float]:
    """
    Weighted average of implied probabilities across the weighted books.

    Books without a quote or with a non-positive weight are skipped and
    the remaining weights renormalised.  ``None`` when nothing is left.
    """
    total_weight = 0.0
    weighted = 0.0
    for book, weight in weights.items():
        if weight is None or weight <= 0:
            continue
        quote = side.get(normalize_book_id(book, aliases))
        if quote is None:
            continue
        weighted += weight / quote.decimal_odds
        total_weight += weight
    if total_weight <= 0:
        return None
    return weighted / total_weight


def reference_decimal(
    side: MarketSide,
    reference: ReferenceSpec,
    config: Optional[PricingConfig] = None,
) -> Optional[float]:
    """Reference decimal price for ``side``, or ``None`` when unavailable."""
    config = config or PricingConfig.default()
    aliases = config.book_aliases
    quotes = side.all_quotes()
    if not quotes:
        return None

    if reference.mode == "book":
        quote = side.get(normalize_book_id(reference.book_id, aliases))
        return quote.decimal_odds if quote is not None else None

    if reference.mode == "next_best":
        ordered = sorted(quotes, key=lambda q: (-q.decimal_odds, q.book_id))
        return ordered[1].decimal_odds if len(ordered) >= 2 else None

    if reference.mode == "sharp_average":
        sharp = normalize_book_set(reference.sharp_books or config.sharp_books, aliases)
        prices = [q.decimal_odds for q in quotes if q.book_id in sharp]
        if not prices:
            return None
        return sum(prices) / len(prices)

    if reference.mode == "market_average":
        mean_prob = sum(1.0 / q.decimal_odds for q in quotes) / len(quotes)
        return 1.0 / mean_prob

    # custom
    if reference.custom_decimal is not None:
        value = reference.custom_decimal
        if not math.isfinite(value) or value <= 1.0:
            return None
        return value
    blended = blend_sharp_probability(side, reference.weights, aliases)
    if blended is None or not (0.0 < blended < 1.0):
        return None
    return 1.0 / blended


# ---------------------------------------------------------------------------
# Edge and EV
# ---------------------------------------------------------------------------

def _usable(decimal_odds: Optional[float]) -> bool:
    return decimal_odds is not None and math.isfinite(decimal_odds) and decimal_odds > 1.0


def edge_pct(best_decimal: Optional[float], ref_decimal: Optional[float]) -> Optional[float]:
    """Price advantage of the best price over the reference, in percent."""
    if not (_usable(best_decimal) and _usable(ref_decimal)):
        return None
    if best_decimal == ref_decimal:
        return 0.0
    return (best_decimal / ref_decimal - 1.0) * 100.0


def ev_pct(fair_probability: Optional[float], best_decimal: Optional[float]) -> Optional[float]:
    """Expected profit per unit staked, in percent.

    Example: fair 0.5 at +120 (2.20) → 10.0.
    """
    if fair_probability is None or not _usable(best_decimal):
        return None
    if not (0.0 < fair_probability < 1.0):
        return None
    return (fair_probability * best_decimal - 1.0) * 100.0


@dataclass(frozen=True)
class MultiMethodEV:
    """EV% under several de-vig methods.

    ``worst`` is the conservative value to display; ``best`` the most
    favourable.  Both are ``None`` when no method produced a fair price.
    """

    per_method: Dict[str, float]
    worst: Optional[float]
    best: Optional[float]
    worst_method: Optional[str] = None


def multi_method_ev(
    best_decimal: Optional[float],
    decimal_a: Optional[float],
    decimal_b: Optional[float],
    methods: Iterable[DevigMethod] = DEFAULT_DEVIG_METHODS,
) -> MultiMethodEV:
    """EV% of side A at ``best_decimal`` for each de-vig method."""
    per_method: Dict[str, float] = {}
    for method, result in devig_multiple(decimal_a, decimal_b, methods).items():
        ev = ev_pct(result.fair_prob_a, best_decimal)
        if ev is not None:
            per_method[method] = ev
    if not per_method:
        return MultiMethodEV(per_method={}, worst=None, best=None)
    worst_method = min(per_method, key=per_method.get)
    return MultiMethodEV(
        per_method=per_method,
        worst=per_method[worst_method],
        best=max(per_method.values()),
        worst_method=worst_method,
    )


# ---------------------------------------------------------------------------
# Opportunity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Opportunity:
    """Derived pricing view of one side of one market.

    ``best_price`` / ``best_decimal`` come from the eligible books (after
    exclusions); every book at that price is listed in ``best_book_ids``.
    ``fair_probability`` and ``fair_price`` are ``None`` when
    ``devig_method == "none"``.
    """

    side: str
    line: Optional[float]
    best_price: int
    best_decimal: float
    best_book_ids: Tuple[str, ...]
    reference_decimal: Optional[float]
    fair_probability: Optional[float]
    fair_price: Optional[int]
    edge_pct: Optional[float]
    ev_pct: Optional[float]
    devig_method: DevigQuality
    kelly_fraction: float
    grade: Optional[str] = None
    is_suspicious: bool = False
    market: Optional[str] = None
    quotes_at_best: Tuple[Quote, ...] = field(default_factory=tuple)
    default_kelly_percent: float = DEFAULT_KELLY_PERCENT

    @property
    def key(self) -> Tuple[Optional[str], str, Optional[float]]:
        """Selection identity used for de-duplication."""
        return (self.market, self.side, self.line)

    @property
    def reference_price(self) -> Optional[int]:
        if self.reference_decimal is None:
            return None
        return decimal_to_american(self.reference_decimal)

    def stake(
        self,
        bankroll: Optional[float],
        kelly_percent: Optional[float] = None,
        boost_percent: float = 0.0,
    ) -> StakeRecommendation:
        """
        Kelly stake at the best price for this opportunity.

        A missing ``kelly_percent`` falls back to the configured default
        the opportunity was priced with.
        """
        return kelly_stake(
            bankroll,
            self.best_decimal,
            self.fair_probability,
            kelly_percent=kelly_percent,
            boost_percent=boost_percent,
            default_kelly_percent=self.default_kelly_percent,
        )

    def to_dict(self) -> dict:
        return {
            "market": self.market,
            "side": self.side,
            "line": self.line,
            "best_price": self.best_price,
            "best_decimal": self.best_decimal,
            "best_book_ids": list(self.best_book_ids),
            "reference_price": self.reference_price,
            "reference_decimal": self.reference_decimal,
            "fair_probability": self.fair_probability,
            "fair_price": self.fair_price,
            "edge_pct": self.edge_pct,
            "ev_pct": self.ev_pct,
            "devig_method": self.devig_method,
            "kelly_fraction": self.kelly_fraction,
            "grade": self.grade,
            "is_suspicious": self.is_suspicious,
            "quotes_at_best": [q.to_dict() for q in self.quotes_at_best],
        }


def _top_decimal(side: Optional[MarketSide]) -> Optional[float]:
    if side is None or not side.quotes:
        return None
    return max(q.decimal_odds for q in side.quotes.values())


def fair_probability_for(
    side: MarketSide,
    opposite: Optional[MarketSide],
    reference: ReferenceSpec,
    method: DevigMethod = "multiplicative",
    config: Optional[PricingConfig] = None,
) -> DevigResult:
    """
    De-vig ``side`` against ``opposite``.

    Order of preference: reference prices on both sides, best market
    prices on both sides, one-sided estimate from this side's reference
    (or best) price.  A two-sided pair with negative overround is final
    and yields ``"none"``.
    """
    config = config or PricingConfig.default()
    ref_a = reference_decimal(side, reference, config)
    ref_b = reference_decimal(opposite, reference, config) if opposite is not None else None

    if ref_a is not None and ref_b is not None:
        pair = (ref_a, ref_b)
    else:
        pair = (_top_decimal(side), _top_decimal(opposite))

    if pair[0] is not None and pair[1] is not None:
        result = devig_two_sided(pair[0], pair[1], method)
        if result.quality == "none":
            logger.warning(
                "Negative overround %.4f on %s %s (%.4f / %.4f); no fair price",
                result.margin if result.margin is not None else float("nan"),
                side.side, side.line, pair[0], pair[1],
            )
        return result

    observed = ref_a if ref_a is not None else _top_decimal(side)
    return devig_one_sided(observed, config.estimated_margin)


def build_opportunity(
    side: MarketSide,
    opposite: Optional[MarketSide] = None,
    reference: Optional[ReferenceSpec] = None,
    excluded_books: Optional[Iterable[str]] = None,
    method: DevigMethod = "multiplicative",
    config: Optional[PricingConfig] = None,
    market: Optional[str] = None,
) -> Optional[Opportunity]:
    """
    Price one side of a market.

    Returns ``None`` when no eligible book quotes the side.
    """
    config = config or PricingConfig.default()
    reference = reference or ReferenceSpec()

    best = best_quotes(side, excluded_books, config.book_aliases)
    if not best:
        return None
    best_decimal = best[0].decimal_odds
    best_price = best[0].price

    ref_decimal = reference_decimal(side, reference, config)
    devig = fair_probability_for(side, opposite, reference, method, config)

    fair = devig.fair_prob_a if devig.success else None
    fair_price = probability_to_american(fair) if fair is not None else None
    edge = edge_pct(best_decimal, ref_decimal)
    ev = ev_pct(fair, best_decimal)

    suspicious = ev is not None and ev >= config.suspicious_ev_pct
    if suspicious:
        logger.warning(
            "Suspicious EV %.1f%% on %s %s %s at %+d (%s); check for a stale line",
            ev, market or "market", side.side, side.line, best_price,
            ",".join(q.book_id for q in best),
        )

    opportunity = Opportunity(
        side=side.side,
        line=side.line,
        best_price=best_price,
        best_decimal=best_decimal,
        best_book_ids=tuple(q.book_id for q in best),
        reference_decimal=ref_decimal,
        fair_probability=fair,
        fair_price=fair_price,
        edge_pct=edge,
        ev_pct=ev,
        devig_method=devig.quality,
        kelly_fraction=kelly_fraction(fair, best_decimal),
        grade=config.grade(ev if ev is not None else edge),
        is_suspicious=suspicious,
        market=market,
        quotes_at_best=tuple(best),
        default_kelly_percent=config.default_kelly_percent,
    )
    logger.debug(
        "Priced %s %s %s: best %+d edge=%s ev=%s devig=%s",
        market, side.side, side.line, best_price, edge, ev, devig.quality,
    )
    return opportunity


def rank_opportunities(opportunities: Iterable[Optional[Opportunity]]) -> List[Opportunity]:
    """
    Sort by edge% descending, one entry per selection.

    When a selection appears more than once the entry with the higher edge
    wins.  Opportunities without an edge sort last.
    """
    def _edge_key(opp: Opportunity) -> Tuple[int, float]:
        if opp.edge_pct is None:
            return (1, 0.0)
        return (0, -opp.edge_pct)

    total = 0
    by_key: Dict[tuple, Opportunity] = {}
    for opp in opportunities:
        if opp is None:
            continue
        total += 1
        existing = by_key.get(opp.key)
        if existing is None or _edge_key(opp) < _edge_key(existing):
            by_key[opp.key] = opp

    ranked = sorted(
        by_key.values(),
        key=lambda o: _edge_key(o) + (str(o.market), o.side, o.line if o.line is not None else 0.0),
    )
    logger.info(
        "Ranked %d opportunities (%d duplicates dropped)", len(ranked), total - len(ranked)
    )
    return ranked
