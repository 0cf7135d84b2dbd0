"""Vig removal — fair (no-vig) probabilities from sportsbook prices.

Every function here is **pure**: no I/O, no logging, no side effects.

Two regimes are supported:

1. **Proper** (two-sided) — both sides of one market were observed.  The
   default method is proportional normalisation::

       p1 = 1 / d1,  p2 = 1 / d2,  overround = p1 + p2 − 1
       fair1 = p1 / (p1 + p2)

   Four alternative two-sided methods are available for callers that want
   to correct for the favourite-longshot bias: ``additive``, ``power``,
   ``probit`` and ``shin``.

2. **Estimated** (one-sided) — only one side is quoted.  A typical market
   overround is assumed (a policy input, see
   :attr:`~propedge.core.pricing_config.PricingConfig.estimated_margin`) and
   shared equally between the observed and the unobserved side::

       fair = 1 / d − margin / 2

Results are tagged with a quality of ``"proper"``, ``"estimated"`` or
``"none"`` so consumers can display lower confidence for estimates.  A
negative overround means the two quotes are internally inconsistent (a
free-money arbitrage in the input) and is reported as ``"none"``.

Run tests with::

    pytest tests/test_devig.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Final, Iterable, Literal, Optional, Tuple

from scipy.stats import norm

DevigMethod = Literal["multiplicative", "additive", "power", "probit", "shin"]
DevigQuality = Literal["proper", "estimated", "none"]

#: Every supported two-sided method, in recommended order.
ALL_DEVIG_METHODS: Final[Tuple[DevigMethod, ...]] = (
    "multiplicative",
    "power",
    "additive",
    "probit",
    "shin",
)

#: Methods run by :func:`devig_multiple` when the caller does not choose.
DEFAULT_DEVIG_METHODS: Final[Tuple[DevigMethod, ...]] = ("power", "multiplicative")

#: Floating-point slack when testing ``overround < 0``.  A fair −150/+150
#: market sums to 0.9999999999999999, which is not an arbitrage.
_MARGIN_TOLERANCE: Final[float] = 1e-9

#: Clamp applied by the additive and probit methods before renormalising.
_PROB_FLOOR: Final[float] = 0.001
_PROB_CEIL: Final[float] = 0.999

#: Power method bisection bounds and tolerance.
_POWER_K_LOW: Final[float] = 0.1
_POWER_K_HIGH: Final[float] = 10.0
_POWER_TOL: Final[float] = 1e-12
_POWER_MAX_ITER: Final[int] = 200

#: Below this overround the probit shift is numerically meaningless and
#: the proportional answer is returned instead.
_PROBIT_MIN_MARGIN: Final[float] = 0.001

#: Shin constants (see :func:`_shin`).
_SHIN_SYMMETRY_TOL: Final[float] = 1e-3
_SHIN_INNER_TOL: Final[float] = 1e-10
_SHIN_MAX_ITER: Final[int] = 200


@dataclass(frozen=True)
class DevigResult:
    """Fair probabilities for one market.

    Attributes:
        quality: ``"proper"`` (both sides seen), ``"estimated"`` (one side
            plus an assumed margin) or ``"none"`` (no usable answer).
        method: Two-sided method used, or ``None`` for estimates / failures.
        fair_prob_a: Fair probability of side A, ``None`` when quality is
            ``"none"``.
        fair_prob_b: Fair probability of side B.  ``None`` for one-sided
            estimates.  For proper results ``fair_prob_a + fair_prob_b``
            is exactly 1.0.
        margin: Observed (proper) or assumed (estimated) overround.
    """

    quality: DevigQuality
    method: Optional[DevigMethod]
    fair_prob_a: Optional[float]
    fair_prob_b: Optional[float]
    margin: Optional[float]

    @property
    def success(self) -> bool:
        return self.quality != "none"


_NO_RESULT = DevigResult(
    quality="none", method=None, fair_prob_a=None, fair_prob_b=None, margin=None
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _usable_decimal(decimal_odds: Optional[float]) -> bool:
    return (
        decimal_odds is not None
        and math.isfinite(decimal_odds)
        and decimal_odds > 1.0
    )


def _unit_pair(prob_a: float, prob_b: float) -> Tuple[float, float]:
    """Normalise two positive weights so they sum to exactly 1.0.

    The larger share is computed by division and the smaller one as its
    complement.  For ``x ∈ [0.5, 1]`` the subtraction ``1 − x`` is exact,
    so ``x + (1 − x)`` is exactly 1.0 in binary floating point.
    """
    total = prob_a + prob_b
    share_a = prob_a / total
    share_b = prob_b / total
    if share_a >= share_b:
        return share_a, 1.0 - share_a
    return 1.0 - share_b, share_b


def _multiplicative(p_a: float, p_b: float) -> Tuple[float, float]:
    return _unit_pair(p_a, p_b)


def _additive(p_a: float, p_b: float) -> Tuple[float, float]:
    half_margin = (p_a + p_b - 1.0) / 2.0
    fair_a = min(max(p_a - half_margin, _PROB_FLOOR), _PROB_CEIL)
    fair_b = min(max(p_b - half_margin, _PROB_FLOOR), _PROB_CEIL)
    return _unit_pair(fair_a, fair_b)


def _power(p_a: float, p_b: float) -> Tuple[float, float]:
    """Find ``k`` with ``p_a**k + p_b**k == 1`` by bisection.

    The left side is strictly decreasing in ``k`` for probabilities in
    ``(0, 1)``, so the root is unique.
    """
    lo, hi = _POWER_K_LOW, _POWER_K_HIGH
    k = 1.0
    for _ in range(_POWER_MAX_ITER):
        k = (lo + hi) * 0.5
        total = p_a ** k + p_b ** k
        if abs(total - 1.0) < _POWER_TOL:
            break
        if total > 1.0:
            lo = k
        else:
            hi = k
    return _unit_pair(p_a ** k, p_b ** k)


def _probit(p_a: float, p_b: float) -> Tuple[float, float]:
    """Shift both normal quantiles by the same amount so the pair sums to 1.

    Since ``Φ(z) + Φ(−z) = 1`` the shift is ``k = (z_a + z_b) / 2``.
    """
    if abs(p_a + p_b - 1.0) < _PROBIT_MIN_MARGIN:
        return _unit_pair(p_a, p_b)

    z_a = float(norm.ppf(min(max(p_a, _PROB_FLOOR), _PROB_CEIL)))
    z_b = float(norm.ppf(min(max(p_b, _PROB_FLOOR), _PROB_CEIL)))
    shift = (z_a + z_b) / 2.0
    fair_a = float(norm.cdf(z_a - shift))
    fair_b = float(norm.cdf(z_b - shift))

    if not (0.0 < fair_a < 1.0 and 0.0 < fair_b < 1.0):
        return _unit_pair(p_a, p_b)
    return _unit_pair(fair_a, fair_b)


def _shin(p_a: float, p_b: float) -> Tuple[float, float]:
    """Shin (1993) two-outcome insider model.

    The stated implied probability satisfies::

        ω_i / K = (1 − z) · p_i  +  z · p_i² / Σ p_j²

    ``z`` is estimated from the overround via ``z = (K − 1) / (1 − Σ q_i²)``
    and ``p_a`` is then solved by bisection.  Near-symmetric markets
    short-circuit to proportional normalisation.
    """
    overround = p_a + p_b
    q_a = p_a / overround
    q_b = p_b / overround

    if overround <= 1.0 or abs(q_a - 0.5) < _SHIN_SYMMETRY_TOL:
        return _unit_pair(q_a, q_b)

    herfindahl = q_a ** 2 + q_b ** 2
    z = (overround - 1.0) / max(1.0 - herfindahl, 1e-10)
    z = max(0.0, min(z, 0.499))

    lo, hi = 1e-9, 1.0 - 1e-9
    for _ in range(_SHIN_MAX_ITER):
        mid = (lo + hi) * 0.5
        denom_sq = mid ** 2 + (1.0 - mid) ** 2
        if denom_sq < 1e-12:
            break
        shin_val = (1.0 - z) * mid + z * (mid ** 2) / denom_sq
        if shin_val < q_a:
            lo = mid
        else:
            hi = mid
        if (hi - lo) < _SHIN_INNER_TOL:
            break

    fair_a = (lo + hi) * 0.5
    return _unit_pair(fair_a, 1.0 - fair_a)


_METHODS = {
    "multiplicative": _multiplicative,
    "additive": _additive,
    "power": _power,
    "probit": _probit,
    "shin": _shin,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def overround(decimal_a: float, decimal_b: float) -> float:
    """Book margin of a two-sided market: ``1/d_a + 1/d_b − 1``.

    Example: −110/−110 (1.9091 each) → 0.0476.
    """
    return 1.0 / decimal_a + 1.0 / decimal_b - 1.0


def devig_two_sided(
    decimal_a: Optional[float],
    decimal_b: Optional[float],
    method: DevigMethod = "multiplicative",
) -> DevigResult:
    """Fair probabilities from both sides of one market.

    Args:
        decimal_a: Decimal odds for side A (e.g. the over).
        decimal_b: Decimal odds for side B (e.g. the under).
        method: Two-sided de-vig method.  Default proportional.

    Returns:
        A ``"proper"`` :class:`DevigResult`, or a ``"none"`` result when
        either price is unusable (missing, ≤ 1.0) or the overround is
        negative.

    Raises:
        ValueError: If ``method`` is not one of :data:`ALL_DEVIG_METHODS`.
    """
    solver = _METHODS.get(method)
    if solver is None:
        raise ValueError(
            f"Unknown de-vig method {method!r}; expected one of {ALL_DEVIG_METHODS}."
        )
    if not (_usable_decimal(decimal_a) and _usable_decimal(decimal_b)):
        return _NO_RESULT

    margin = overround(decimal_a, decimal_b)
    if margin < -_MARGIN_TOLERANCE:
        return DevigResult(
            quality="none", method=None, fair_prob_a=None, fair_prob_b=None, margin=margin
        )

    fair_a, fair_b = solver(1.0 / decimal_a, 1.0 / decimal_b)
    return DevigResult(
        quality="proper",
        method=method,
        fair_prob_a=fair_a,
        fair_prob_b=fair_b,
        margin=margin,
    )


def devig_one_sided(decimal_odds: Optional[float], assumed_margin: float) -> DevigResult:
    """Estimate a fair probability when only one side is quoted.

    The assumed overround is split equally between the two sides, so the
    observed side gives up half of it::

        fair = 1 / decimal_odds − assumed_margin / 2

    Args:
        decimal_odds: Decimal odds of the observed side.
        assumed_margin: Typical market overround (policy input, ≥ 0).

    Returns:
        An ``"estimated"`` result (``fair_prob_b`` is ``None``), or
        ``"none"`` when the price is unusable or the estimate leaves
        ``(0, 1)``.

    Raises:
        ValueError: If ``assumed_margin`` is negative.
    """
    if assumed_margin < 0.0:
        raise ValueError(f"assumed_margin must be ≥ 0, got {assumed_margin!r}.")
    if not _usable_decimal(decimal_odds):
        return _NO_RESULT

    fair = 1.0 / decimal_odds - assumed_margin / 2.0
    if not (0.0 < fair < 1.0):
        return _NO_RESULT
    return DevigResult(
        quality="estimated",
        method=None,
        fair_prob_a=fair,
        fair_prob_b=None,
        margin=assumed_margin,
    )


def devig_multiple(
    decimal_a: Optional[float],
    decimal_b: Optional[float],
    methods: Iterable[DevigMethod] = DEFAULT_DEVIG_METHODS,
) -> Dict[DevigMethod, DevigResult]:
    """Run several two-sided methods on the same market."""
    return {method: devig_two_sided(decimal_a, decimal_b, method) for method in methods}
