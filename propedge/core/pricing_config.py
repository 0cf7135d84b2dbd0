"""Pricing policy configuration — every business constant in one place.

This module is the **registry** for constants that are policy rather than
mathematics: the overround assumed for one-sided de-vig, the sharp-book
set, the priority books shown in a top-N list, the EV grade table, and so
on.  Nowhere else in the codebase should these values be hard-coded.

:class:`PricingConfig` is a frozen dataclass.  :meth:`PricingConfig.default`
returns the documented defaults; :meth:`PricingConfig.from_env` applies
environment overrides (``.env`` files are honoured via ``python-dotenv``).

Typical usage::

    from propedge.core.pricing_config import PricingConfig

    cfg = PricingConfig.from_env()

    # Override a single constant for an A/B test:
    from dataclasses import replace
    wide = replace(cfg, estimated_margin=0.06)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Final, FrozenSet, Mapping, Optional, Tuple

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

#: Overround of a standard −110/−110 two-way market: 2 × 110/210 − 1.
STANDARD_MARKET_MARGIN: Final[float] = 2.0 * 110.0 / 210.0 - 1.0

#: Books treated as efficient price makers.
DEFAULT_SHARP_BOOKS: Final[FrozenSet[str]] = frozenset({"pinnacle", "circa"})

#: Books promoted in a top-N list right after the best-price books.
DEFAULT_PRIORITY_BOOKS: Final[Tuple[str, ...]] = (
    "fanduel",
    "draftkings",
    "betmgm",
    "caesars",
    "pinnacle",
)

#: Reference book forced into the last slot of a top-N list.
DEFAULT_REFERENCE_BOOK: Final[str] = "pinnacle"

#: Size of the top-N presentation list.
DEFAULT_TOP_N: Final[int] = 4

#: Quarter Kelly.
DEFAULT_KELLY_PERCENT: Final[float] = 25.0

#: Grade table, strongest first: (grade, minimum percent).  Anything below
#: the last threshold grades as :data:`FLOOR_GRADE`.
DEFAULT_GRADE_THRESHOLDS: Final[Tuple[Tuple[str, float], ...]] = (
    ("A", 10.0),
    ("B", 5.0),
    ("C", 2.0),
)
FLOOR_GRADE: Final[str] = "D"

#: EV% at or above which an opportunity is flagged as a probable data error
#: (stale line, wrong market mapping).
DEFAULT_SUSPICIOUS_EV_PCT: Final[float] = 15.0

#: Feed spellings → canonical book id.
DEFAULT_BOOK_ALIASES: Final[Dict[str, str]] = {
    "ballybet": "bally-bet",
    "sportsinteraction": "sports-interaction",
    "hardrockbet": "hard-rock",
    "hardrock": "hard-rock",
    "hard-rock-indiana": "hard-rock",
    "hardrockindiana": "hard-rock",
    "espnbet": "espn",
    "fanduel-yourway": "fanduelyourway",
    "fanduel_yourway": "fanduelyourway",
    "betmgm-michigan": "betmgm",
    "betmgm_michigan": "betmgm",
    "circasports": "circa",
}


def _split_books(raw: str) -> Tuple[str, ...]:
    return tuple(b.strip().lower() for b in raw.split(",") if b.strip())


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name}={raw!r} is not a number.") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name}={raw!r} is not an integer.") from None


@dataclass(frozen=True)
class PricingConfig:
    """Immutable bundle of pricing policy constants.

    Attributes:
        estimated_margin: Overround assumed when only one side of a market
            is quoted.  Default: the −110/−110 overround (≈ 4.76%).
        default_kelly_percent: Fraction of full Kelly used when the user has
            not configured one.
        sharp_books: Reference books for the ``sharp_average`` comparison.
        priority_books: Books promoted in a top-N list after best-price books.
        reference_book: Book forced into the last top-N slot when present.
        top_n: Length of the top-N presentation list.
        grade_thresholds: ``(grade, minimum_pct)`` pairs, strongest first.
        suspicious_ev_pct: EV% at or above which results are flagged.
        book_aliases: Feed spelling → canonical book id.
    """

    estimated_margin: float = STANDARD_MARKET_MARGIN
    default_kelly_percent: float = DEFAULT_KELLY_PERCENT
    sharp_books: FrozenSet[str] = DEFAULT_SHARP_BOOKS
    priority_books: Tuple[str, ...] = DEFAULT_PRIORITY_BOOKS
    reference_book: Optional[str] = DEFAULT_REFERENCE_BOOK
    top_n: int = DEFAULT_TOP_N
    grade_thresholds: Tuple[Tuple[str, float], ...] = DEFAULT_GRADE_THRESHOLDS
    suspicious_ev_pct: float = DEFAULT_SUSPICIOUS_EV_PCT
    book_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_BOOK_ALIASES)
    )

    def __post_init__(self) -> None:
        if self.estimated_margin < 0.0:
            raise ValueError(
                f"estimated_margin must be ≥ 0, got {self.estimated_margin!r}."
            )
        if self.default_kelly_percent <= 0.0:
            raise ValueError(
                f"default_kelly_percent must be > 0, got {self.default_kelly_percent!r}."
            )
        if self.top_n < 1:
            raise ValueError(f"top_n must be ≥ 1, got {self.top_n!r}.")
        minimums = [minimum for _, minimum in self.grade_thresholds]
        if minimums != sorted(minimums, reverse=True):
            raise ValueError(
                "grade_thresholds must be ordered strongest first "
                f"(descending minimums), got {self.grade_thresholds!r}."
            )

    @classmethod
    def default(cls) -> "PricingConfig":
        """Documented defaults with no environment lookup."""
        return cls()

    @classmethod
    def from_env(cls) -> "PricingConfig":
        """Defaults overridden by environment variables (and ``.env``).

        Recognised variables: ``ESTIMATED_MARKET_MARGIN``,
        ``DEFAULT_KELLY_PERCENT``, ``SHARP_BOOKS`` and ``PRIORITY_BOOKS``
        (comma separated), ``REFERENCE_BOOK`` (empty string disables the
        forced slot), ``TOP_N_BOOKS``, ``SUSPICIOUS_EV_PCT``.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        load_dotenv()

        sharp_raw = os.getenv("SHARP_BOOKS")
        priority_raw = os.getenv("PRIORITY_BOOKS")
        reference_raw = os.getenv("REFERENCE_BOOK")

        return cls(
            estimated_margin=_env_float("ESTIMATED_MARKET_MARGIN", STANDARD_MARKET_MARGIN),
            default_kelly_percent=_env_float("DEFAULT_KELLY_PERCENT", DEFAULT_KELLY_PERCENT),
            sharp_books=(
                frozenset(_split_books(sharp_raw)) if sharp_raw else DEFAULT_SHARP_BOOKS
            ),
            priority_books=(
                _split_books(priority_raw) if priority_raw else DEFAULT_PRIORITY_BOOKS
            ),
            reference_book=(
                DEFAULT_REFERENCE_BOOK
                if reference_raw is None
                else (reference_raw.strip().lower() or None)
            ),
            top_n=_env_int("TOP_N_BOOKS", DEFAULT_TOP_N),
            suspicious_ev_pct=_env_float("SUSPICIOUS_EV_PCT", DEFAULT_SUSPICIOUS_EV_PCT),
        )

    def grade(self, value_pct: Optional[float]) -> Optional[str]:
        """Grade a percentage against :attr:`grade_thresholds`.

        Returns ``None`` when there is nothing to grade.
        """
        if value_pct is None:
            return None
        for grade, minimum in self.grade_thresholds:
            if value_pct >= minimum:
                return grade
        return FLOOR_GRADE
