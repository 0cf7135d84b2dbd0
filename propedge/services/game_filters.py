"""
Range Filter Engine — AND-combined filters over a player's game log.

A FilterSpec holds:

  ranges         stat key → inclusive RangeFilter.  A stat with no entry is
                 unconstrained.
  quick_filters  categorical toggles: home / away / win / loss /
                 won_by / lost_by (margin ≥ ``margin_threshold``) /
                 primetime (nationally televised).
  days_rest      rest buckets 0, 1, 2, 3 (3 = three or more days).
  teammates      teammate id → "with" (teammate played) or "without"
                 (teammate inactive).

Every active constraint must hold for a record to pass.  A record missing
a stat that is range-filtered FAILS that filter, and likewise for missing
context (home/away, result, margin, rest, broadcast).

All operations are pure: they take a FilterSpec and return a new one.
When the record set changes (player switch, new games), call
:func:`reclamp_filters` so no range is left outside the stat's new domain.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Stat catalogue
# ---------------------------------------------------------------------------

BASE_STATS: Tuple[str, ...] = (
    "minutes",
    "usage_pct",
    "pts",
    "reb",
    "ast",
    "stl",
    "blk",
    "tov",
    "oreb",
    "dreb",
    "potential_reb",
    "passes",
    "fga",
    "fgm",
    "fg3a",
    "fg3m",
    "fta",
    "ftm",
    "plus_minus",
    "ts_pct",
    "efg_pct",
)

COMBO_STATS: Dict[str, Tuple[str, ...]] = {
    "pra": ("pts", "reb", "ast"),
    "pr": ("pts", "reb"),
    "pa": ("pts", "ast"),
    "ra": ("reb", "ast"),
    "bs": ("blk", "stl"),
}

ALL_STATS: Tuple[str, ...] = BASE_STATS + tuple(COMBO_STATS)

# Feed spellings accepted by GameRecord.from_dict
_STAT_ALIASES: Dict[str, str] = {
    "min": "minutes",
    "usg_pct": "usage_pct",
    "usage": "usage_pct",
    "points": "pts",
    "rebounds": "reb",
    "assists": "ast",
    "steals": "stl",
    "blocks": "blk",
    "turnovers": "tov",
    "threes_made": "fg3m",
    "threes_attempted": "fg3a",
    "fg3_made": "fg3m",
    "fg3_attempted": "fg3a",
    "potential_rebounds": "potential_reb",
}

QuickFilter = Literal["home", "away", "win", "loss", "won_by", "lost_by", "primetime"]

QUICK_FILTERS: Tuple[str, ...] = (
    "home", "away", "win", "loss", "won_by", "lost_by", "primetime",
)

# Activating a key clears every filter in its set.
QUICK_FILTER_EXCLUSIONS: Dict[str, FrozenSet[str]] = {
    "home": frozenset({"away"}),
    "away": frozenset({"home"}),
    "win": frozenset({"loss", "lost_by"}),
    "loss": frozenset({"win", "won_by"}),
    "won_by": frozenset({"loss", "lost_by"}),
    "lost_by": frozenset({"win", "won_by"}),
    "primetime": frozenset(),
}

DEFAULT_MARGIN_THRESHOLD = 10.0

DAYS_REST_BUCKETS: Tuple[int, ...] = (0, 1, 2, 3)

TeammateMode = Literal["with", "without"]

PRESETS: Tuple[str, ...] = ("low", "avg", "high")


def _check_stat(stat: str) -> None:
    if stat not in ALL_STATS:
        raise ValueError(f"Unknown stat {stat!r}; expected one of {ALL_STATS}.")


def _num(raw) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


# ---------------------------------------------------------------------------
# GameRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GameRecord:
    """One historical game for one player.

    ``margin`` is the team's signed point differential (positive in wins).
    ``teammates_out`` holds ids of teammates who were inactive that game.
    ``national_broadcast`` is ``True`` for nationally televised games.
    """

    game_date: Optional[str] = None
    opponent: Optional[str] = None
    is_home: Optional[bool] = None
    won: Optional[bool] = None
    margin: Optional[float] = None
    days_rest: Optional[int] = None
    teammates_out: FrozenSet[str] = frozenset()
    national_broadcast: Optional[bool] = None

    minutes: Optional[float] = None
    usage_pct: Optional[float] = None
    pts: Optional[float] = None
    reb: Optional[float] = None
    ast: Optional[float] = None
    stl: Optional[float] = None
    blk: Optional[float] = None
    tov: Optional[float] = None
    oreb: Optional[float] = None
    dreb: Optional[float] = None
    potential_reb: Optional[float] = None
    passes: Optional[float] = None
    fga: Optional[float] = None
    fgm: Optional[float] = None
    fg3a: Optional[float] = None
    fg3m: Optional[float] = None
    fta: Optional[float] = None
    ftm: Optional[float] = None
    plus_minus: Optional[float] = None
    ts_pct: Optional[float] = None
    efg_pct: Optional[float] = None

    def stat(self, key: str) -> Optional[float]:
        """Value of a base or combo stat; ``None`` if any component is missing."""
        _check_stat(key)
        parts = COMBO_STATS.get(key)
        if parts is None:
            return getattr(self, key)
        values = [getattr(self, p) for p in parts]
        if any(v is None for v in values):
            return None
        return float(sum(values))

    @classmethod
    def from_dict(cls, data: Mapping) -> "GameRecord":
        """
        Build a record from a stats-feed row.

        Stats that are missing or non-numeric become ``None``.  ``result``
        ("W"/"L") and ``home_away`` ("H"/"A") are accepted as alternatives
        to ``won`` and ``is_home``, and ``is_primetime`` to
        ``national_broadcast``.
        """
        stats: Dict[str, Optional[float]] = {}
        for raw_key, raw_value in data.items():
            key = _STAT_ALIASES.get(raw_key, raw_key)
            if key in BASE_STATS:
                stats[key] = _num(raw_value)

        is_home = data.get("is_home")
        if is_home is None and data.get("home_away") is not None:
            is_home = str(data["home_away"]).strip().upper().startswith("H")

        won = data.get("won")
        if won is None and data.get("result") is not None:
            result = str(data["result"]).strip().upper()
            won = True if result.startswith("W") else False if result.startswith("L") else None

        national = data.get("national_broadcast")
        if national is None:
            national = data.get("is_primetime")

        days_rest = _num(data.get("days_rest"))
        teammates = data.get("teammates_out") or ()

        return cls(
            game_date=data.get("game_date") or data.get("date"),
            opponent=data.get("opponent") or data.get("opponent_abbr"),
            is_home=bool(is_home) if is_home is not None else None,
            won=bool(won) if won is not None else None,
            margin=_num(data.get("margin")),
            days_rest=int(days_rest) if days_rest is not None and days_rest >= 0 else None,
            teammates_out=frozenset(str(t) for t in teammates),
            national_broadcast=bool(national) if national is not None else None,
            **stats,
        )


# ---------------------------------------------------------------------------
# Filter spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RangeFilter:
    """Inclusive ``[min, max]`` constraint on one stat."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ValueError(f"Range bounds must be finite, got [{self.min}, {self.max}].")
        if self.min > self.max:
            raise ValueError(f"Range min {self.min} exceeds max {self.max}.")

    def contains(self, value: Optional[float]) -> bool:
        return value is not None and self.min <= value <= self.max


@dataclass(frozen=True)
class FilterSpec:
    """Immutable set of active filters.  An empty spec passes every record."""

    ranges: Mapping[str, RangeFilter] = field(default_factory=dict)
    quick_filters: FrozenSet[str] = frozenset()
    margin_threshold: float = DEFAULT_MARGIN_THRESHOLD
    days_rest: FrozenSet[int] = frozenset()
    teammates: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for stat in self.ranges:
            _check_stat(stat)
        unknown = set(self.quick_filters) - set(QUICK_FILTERS)
        if unknown:
            raise ValueError(f"Unknown quick filters {sorted(unknown)}.")
        for name in self.quick_filters:
            clash = QUICK_FILTER_EXCLUSIONS[name] & self.quick_filters
            if clash:
                raise ValueError(
                    f"Quick filter {name!r} cannot be combined with {sorted(clash)}."
                )
        bad_rest = set(self.days_rest) - set(DAYS_REST_BUCKETS)
        if bad_rest:
            raise ValueError(
                f"Days-rest buckets must be in {DAYS_REST_BUCKETS}, got {sorted(bad_rest)}."
            )
        for teammate, mode in self.teammates.items():
            if mode not in ("with", "without"):
                raise ValueError(
                    f"Teammate filter for {teammate!r} must be 'with' or 'without', got {mode!r}."
                )
        if self.margin_threshold < 0:
            raise ValueError(f"margin_threshold must be ≥ 0, got {self.margin_threshold}.")

    @property
    def is_empty(self) -> bool:
        return not (self.ranges or self.quick_filters or self.days_rest or self.teammates)

    @property
    def active_count(self) -> int:
        return len(self.ranges) + len(self.quick_filters) + len(self.days_rest) + len(self.teammates)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def _quick_filter_matches(record: GameRecord, name: str, threshold: float) -> bool:
    if name == "home":
        return record.is_home is True
    if name == "away":
        return record.is_home is False
    if name == "win":
        return record.won is True
    if name == "loss":
        return record.won is False
    if name == "primetime":
        return record.national_broadcast is True
    if record.margin is None:
        return False
    if name == "won_by":
        return record.won is True and abs(record.margin) >= threshold
    return record.won is False and abs(record.margin) >= threshold


def matches(record: GameRecord, spec: FilterSpec) -> bool:
    """True when ``record`` satisfies every active constraint of ``spec``."""
    for stat, rng in spec.ranges.items():
        if not rng.contains(record.stat(stat)):
            return False

    for name in spec.quick_filters:
        if not _quick_filter_matches(record, name, spec.margin_threshold):
            return False

    if spec.days_rest:
        if record.days_rest is None:
            return False
        if min(record.days_rest, DAYS_REST_BUCKETS[-1]) not in spec.days_rest:
            return False

    for teammate, mode in spec.teammates.items():
        out = teammate in record.teammates_out
        if (mode == "without") != out:
            return False

    return True


def apply_filters(records: Sequence[GameRecord], spec: FilterSpec) -> List[GameRecord]:
    """Records passing ``spec``, in their original order."""
    if spec.is_empty:
        return list(records)
    return [r for r in records if matches(r, spec)]


# ---------------------------------------------------------------------------
# Spec transitions
# ---------------------------------------------------------------------------

def toggle_quick_filter(spec: FilterSpec, name: QuickFilter) -> FilterSpec:
    """Turn a quick filter on (clearing its exclusive partners) or off."""
    if name not in QUICK_FILTERS:
        raise ValueError(f"Unknown quick filter {name!r}; expected one of {QUICK_FILTERS}.")
    active = set(spec.quick_filters)
    if name in active:
        active.discard(name)
    else:
        active -= QUICK_FILTER_EXCLUSIONS[name]
        active.add(name)
    return replace(spec, quick_filters=frozenset(active))


def toggle_days_rest(spec: FilterSpec, bucket: int) -> FilterSpec:
    if bucket not in DAYS_REST_BUCKETS:
        raise ValueError(f"Days-rest bucket must be in {DAYS_REST_BUCKETS}, got {bucket!r}.")
    return replace(spec, days_rest=spec.days_rest ^ frozenset({bucket}))


def set_teammate_filter(spec: FilterSpec, teammate_id: str, mode: Optional[TeammateMode]) -> FilterSpec:
    """Set a teammate filter; ``mode=None`` removes it."""
    teammates = dict(spec.teammates)
    if mode is None:
        teammates.pop(str(teammate_id), None)
    else:
        teammates[str(teammate_id)] = mode
    return replace(spec, teammates=teammates)


def set_range(
    spec: FilterSpec,
    stat: str,
    min_value: Optional[float],
    max_value: Optional[float],
) -> FilterSpec:
    """Set (or with ``None`` bounds, clear) the range filter on ``stat``."""
    _check_stat(stat)
    ranges = dict(spec.ranges)
    if min_value is None or max_value is None:
        ranges.pop(stat, None)
    else:
        ranges[stat] = RangeFilter(float(min_value), float(max_value))
    return replace(spec, ranges=ranges)


def clear_filters(spec: FilterSpec) -> FilterSpec:
    """Empty spec that keeps the configured margin threshold."""
    return FilterSpec(margin_threshold=spec.margin_threshold)


# ---------------------------------------------------------------------------
# Domains
# ---------------------------------------------------------------------------

def stat_domain(records: Iterable[GameRecord], stat: str) -> Optional[Tuple[float, float]]:
    """``(min, max)`` of ``stat`` over records that have it, else ``None``."""
    _check_stat(stat)
    values = [v for v in (r.stat(stat) for r in records) if v is not None]
    if not values:
        return None
    return (min(values), max(values))


def stat_domains(
    records: Sequence[GameRecord],
    stats: Optional[Iterable[str]] = None,
) -> Dict[str, Tuple[float, float]]:
    """Slider bounds for each stat that is observed at least once."""
    domains: Dict[str, Tuple[float, float]] = {}
    for stat in stats if stats is not None else ALL_STATS:
        domain = stat_domain(records, stat)
        if domain is not None:
            domains[stat] = domain
    return domains


def reclamp_filters(spec: FilterSpec, records: Sequence[GameRecord]) -> FilterSpec:
    """
    Fit every range filter to the stat domains of a new record set.

    A range entirely outside the new domain (or on a stat the new records
    never report) is cleared; a partial overlap is clamped into the domain.
    An empty record set returns ``spec`` unchanged.
    """
    if not records or not spec.ranges:
        return spec

    ranges: Dict[str, RangeFilter] = {}
    for stat, rng in spec.ranges.items():
        domain = stat_domain(records, stat)
        if domain is None:
            logger.debug("Clearing %s filter: stat not present in new records", stat)
            continue
        lo, hi = domain
        if rng.max < lo or rng.min > hi:
            logger.debug(
                "Clearing %s filter [%s, %s]: outside domain [%s, %s]",
                stat, rng.min, rng.max, lo, hi,
            )
            continue
        ranges[stat] = RangeFilter(max(rng.min, lo), min(rng.max, hi))
    return replace(spec, ranges=ranges)


def preset_range(
    records: Sequence[GameRecord],
    stat: str,
    preset: str,
) -> Optional[RangeFilter]:
    """
    "low" / "avg" / "high" thirds of the stat's domain.

    Returns ``None`` when the stat is never observed.
    """
    if preset not in PRESETS:
        raise ValueError(f"Unknown preset {preset!r}; expected one of {PRESETS}.")
    domain = stat_domain(records, stat)
    if domain is None:
        return None
    lo, hi = domain
    third = (hi - lo) / 3.0
    if preset == "low":
        return RangeFilter(lo, lo + third)
    if preset == "avg":
        return RangeFilter(lo + third, lo + 2.0 * third)
    return RangeFilter(lo + 2.0 * third, hi)
