"""Kelly criterion sizing — the single source of truth for stake math.

All functions here are **pure**: no I/O, no logging.
Import from this module; never reimplement Kelly locally in services.

The functions cover the three sizing steps of the pricing pipeline:

1. :func:`kelly_fraction` — full Kelly for a win/loss bet at the best
   available price, given the de-vigged fair probability.
2. :func:`kelly_stake` — bankroll × full Kelly × user fraction-of-Kelly,
   with an optional sportsbook profit boost applied to the price first.
3. :func:`long_odds_stake_multiplier` — optional dampener for long
   underdog prices where fair-probability error dominates.

Design decisions
----------------
* **Never raise on feed data.**  The stake is recomputed on every slider
  drag and every quote refresh; degenerate inputs (no bankroll, price
  ≤ 1.0, probability outside ``(0, 1)``, missing fair price) produce a
  zero stake rather than an exception.
* **Fractional Kelly** is expressed as a *percent of full Kelly*
  (``kelly_percent = 25`` is quarter Kelly), the unit users configure.
* The full-Kelly fraction is clamped to ``[0, 1]``: a negative fraction
  means no edge; a fraction above 1 cannot occur with valid probabilities
  and is clipped.

Run tests with::

    pytest tests/test_kelly.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final, Optional

from propedge.core.odds_math import american_to_decimal, is_valid_american
from propedge.core.pricing_config import DEFAULT_KELLY_PERCENT

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Implied probability treated as "no discount" by the long-odds dampener.
_LONG_ODDS_ANCHOR_PROB: Final[float] = 0.45

#: Floor on the long-odds dampener.
_LONG_ODDS_MIN_MULTIPLIER: Final[float] = 0.35


@dataclass(frozen=True)
class StakeRecommendation:
    """Sizing output for one opportunity.

    Attributes:
        full_kelly: Full-Kelly bankroll fraction in ``[0, 1]``.
        applied_fraction: ``full_kelly × kelly_percent / 100``.
        stake: Currency amount to risk (``bankroll × applied_fraction``).
        effective_decimal: Decimal price used for sizing (boost applied),
            ``None`` when the inputs were degenerate.
    """

    full_kelly: float
    applied_fraction: float
    stake: float
    effective_decimal: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "full_kelly": self.full_kelly,
            "applied_fraction": self.applied_fraction,
            "stake": self.stake,
            "effective_decimal": self.effective_decimal,
        }


_ZERO_STAKE = StakeRecommendation(full_kelly=0.0, applied_fraction=0.0, stake=0.0)


# ---------------------------------------------------------------------------
# Full Kelly
# ---------------------------------------------------------------------------


def kelly_fraction(fair_probability: Optional[float], decimal_odds: Optional[float]) -> float:
    """Full-Kelly fraction of bankroll for a simple win/loss bet.

    With ``b = decimal_odds − 1`` the profit per unit and ``p`` the fair
    probability, Kelly (1956) gives::

        f*  =  (p · b − (1 − p)) / b  =  (p · d − 1) / (d − 1)

    Args:
        fair_probability: De-vigged win probability.
        decimal_odds: Best available decimal price.

    Returns:
        ``f*`` clamped to ``[0, 1]``.  Returns 0.0 when there is no edge
        (``p ≤ 1 / d``) and for any degenerate input.

    Examples::

        kelly_fraction(0.5, 2.20)     → 0.0833
        kelly_fraction(5 / 11, 2.5)   → 0.0909
        kelly_fraction(0.45, 1.909)   → 0.0     (negative EV)
    """
    if fair_probability is None or decimal_odds is None:
        return 0.0
    if not (math.isfinite(fair_probability) and math.isfinite(decimal_odds)):
        return 0.0
    if not (0.0 < fair_probability < 1.0) or decimal_odds <= 1.0:
        return 0.0

    full_kelly = (fair_probability * decimal_odds - 1.0) / (decimal_odds - 1.0)
    return min(max(full_kelly, 0.0), 1.0)


# ---------------------------------------------------------------------------
# Profit boosts
# ---------------------------------------------------------------------------


def apply_profit_boost(decimal_odds: float, boost_percent: float) -> float:
    """Increase the profit portion of a decimal price by ``boost_percent``.

    A 30% boost on 2.50 (+150) pays ``1.50 × 1.30 = 1.95`` profit, so the
    boosted price is 2.95 (+195).  Non-positive boosts return the price
    unchanged.
    """
    if boost_percent <= 0.0:
        return decimal_odds
    return 1.0 + (decimal_odds - 1.0) * (1.0 + boost_percent / 100.0)


# ---------------------------------------------------------------------------
# Stake
# ---------------------------------------------------------------------------


def kelly_stake(
    bankroll: Optional[float],
    decimal_odds: Optional[float],
    fair_probability: Optional[float],
    *,
    kelly_percent: Optional[float] = None,
    boost_percent: float = 0.0,
    default_kelly_percent: float = DEFAULT_KELLY_PERCENT,
) -> StakeRecommendation:
    """Recommended stake for one opportunity.

    ``stake = bankroll × kelly_fraction × kelly_percent / 100``

    Args:
        bankroll: User bankroll in currency units.
        decimal_odds: Best available decimal price (before any boost).
        fair_probability: De-vigged win probability; ``None`` when no fair
            price could be derived.
        kelly_percent: Fraction of full Kelly in percent.  Missing or
            non-positive values fall back to ``default_kelly_percent``.
        boost_percent: Optional sportsbook profit boost in percent.
        default_kelly_percent: The configured default, normally
            ``PricingConfig.default_kelly_percent``.

    Returns:
        A :class:`StakeRecommendation`.  Degenerate inputs yield a zero
        stake; this function never raises.

    Example (bankroll 1000, price 2.5, fair 5/11, quarter Kelly)::

        kelly_stake(1000, 2.5, 5 / 11).stake → 22.73
    """
    if bankroll is None or not math.isfinite(bankroll) or bankroll <= 0.0:
        return _ZERO_STAKE
    if decimal_odds is None or not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        return _ZERO_STAKE
    if fair_probability is None:
        return _ZERO_STAKE

    if kelly_percent is None or not math.isfinite(kelly_percent) or kelly_percent <= 0.0:
        kelly_percent = default_kelly_percent

    effective = apply_profit_boost(decimal_odds, boost_percent)
    full = kelly_fraction(fair_probability, effective)
    applied = full * kelly_percent / 100.0
    return StakeRecommendation(
        full_kelly=full,
        applied_fraction=applied,
        stake=bankroll * applied,
        effective_decimal=effective,
    )


def long_odds_stake_multiplier(american: Optional[int]) -> float:
    """Extra stake dampener for long underdog prices.

    Near-even and favourite prices are left alone (multiplier 1).  Longer
    prices scale by ``sqrt(implied / 0.45)``, floored at 0.35::

        long_odds_stake_multiplier(-150)  → 1.0
        long_odds_stake_multiplier(+200)  → 0.86
        long_odds_stake_multiplier(+2000) → 0.35
    """
    if american is None or not is_valid_american(american) or american <= 100:
        return 1.0
    implied = 1.0 / american_to_decimal(american)
    scaled = math.sqrt(implied / _LONG_ODDS_ANCHOR_PROB)
    return max(_LONG_ODDS_MIN_MULTIPLIER, min(1.0, scaled))
