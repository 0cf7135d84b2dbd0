"""Fundamental odds mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services.

Design decisions
----------------
* American odds are integers with magnitude ≥ 100.  Even money has two
  spellings (+100 / −100); both decode to decimal 2.0 and the canonical
  form used everywhere downstream is +100.
* Decimal → American rounds to the nearest integer with ties going away
  from zero, so ``decimal_to_american(american_to_decimal(a)) == a`` for
  every canonical American price ``a``.
* Conversions that would divide by zero or leave the valid domain raise
  ``ValueError``.  Callers that must never raise (EV, Kelly) guard first.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: American-odds magnitude floor.  Values below this are not representable
#: American prices and indicate a feed error.
MIN_ODDS_MAGNITUDE: Final[int] = 100

#: Canonical even-money price.
EVEN_MONEY: Final[int] = 100


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero.

    Python's built-in :func:`round` uses banker's rounding (``round(2.5) ==
    2``); prices and percentages in this project round the way a sportsbook
    display does::

        round_half_away(2.5)  →  3
        round_half_away(-2.5) → -3
        round_half_away(69.4) → 69
    """
    magnitude = math.floor(abs(value) + 0.5)
    return int(math.copysign(magnitude, value)) if magnitude else 0


def canonical_american(american: int) -> int:
    """Return the canonical spelling of an American price (−100 → +100)."""
    if american == -EVEN_MONEY:
        return EVEN_MONEY
    return american


def is_valid_american(american: int | float) -> bool:
    """True when ``american`` is a finite price with ``|american| ≥ 100``."""
    if isinstance(american, bool):
        return False
    try:
        value = float(american)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and abs(value) >= MIN_ODDS_MAGNITUDE


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def american_to_decimal(american: int | float) -> float:
    """Convert American odds to decimal (European) format.

    Decimal odds are the total payout per unit staked, stake included::

        american_to_decimal(-110) → 1.9091   (risk 110 to win 100)
        american_to_decimal(+120) → 2.2000   (risk 100 to win 120)

    Raises:
        ValueError: If ``|american| < 100``.
    """
    if not is_valid_american(american):
        raise ValueError(
            f"Invalid American odds {american!r}: magnitude must be ≥ 100."
        )
    if american < 0:
        return 1.0 + 100.0 / abs(american)
    return 1.0 + american / 100.0


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest canonical American integer.

    Inverse of :func:`american_to_decimal`.  Values ≥ 2.0 come back positive
    (underdog), values below 2.0 negative (favourite).

    Raises:
        ValueError: If ``decimal_odds ≤ 1.0`` (no payout) or not finite.
    """
    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        raise ValueError(
            f"Decimal odds {decimal_odds!r} must be finite and > 1.0."
        )
    if decimal_odds >= 2.0:
        return canonical_american(round_half_away((decimal_odds - 1.0) * 100.0))
    return canonical_american(round_half_away(-100.0 / (decimal_odds - 1.0)))


def implied_probability(american: int | float) -> float:
    """Raw implied probability from American odds (vig-inclusive).

    Examples::

        implied_probability(-110) → 0.5238
        implied_probability(+150) → 0.4000
    """
    return 1.0 / american_to_decimal(american)


def probability_to_decimal(probability: float) -> float:
    """Decimal odds that exactly pay out a fair bet at ``probability``.

    Raises:
        ValueError: If ``probability`` is not in ``(0, 1)``.
    """
    if not (0.0 < probability < 1.0):
        raise ValueError(f"probability must be in (0, 1), got {probability!r}.")
    return 1.0 / probability


def probability_to_american(probability: float) -> int:
    """American encoding of a fair probability.

    ``0.5`` maps to the canonical even-money price ``+100``; favourites come
    back negative::

        probability_to_american(0.5)    → +100
        probability_to_american(0.5238) → -110
        probability_to_american(0.4)    → +150
    """
    return decimal_to_american(probability_to_decimal(probability))
