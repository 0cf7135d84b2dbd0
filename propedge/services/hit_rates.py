"""
Hit-Rate Aggregator — how often a player's stat cleared a line.

Records arrive newest-first and already filtered by the Range Filter
Engine.  A window selects which of them count:

  5 / 10 / 20 (any positive int)  the N most recent games
  "season"                        every game
  "h2h"                           every game against one opponent

``hits = count(stat ≥ line)`` and ``pct = round(100 × hits / total)``
(ties away from zero).  ``pct`` is ``None``, never 0, for an empty
window.  Games missing the stat are dropped before windowing, so "last 10"
means the last ten games that report it.

Every function is a pure function of its arguments; custom lines are
evaluated without touching the record sequence.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from propedge.core.odds_math import round_half_away
from propedge.services.game_filters import ALL_STATS, GameRecord

logger = logging.getLogger(__name__)

Window = Union[int, str]

SEASON = "season"
HEAD_TO_HEAD = "h2h"

#: Windows reported by :func:`hit_rate_summary`, keyed by display label.
SUMMARY_WINDOWS: Dict[str, Window] = {
    "l5": 5,
    "l10": 10,
    "l20": 20,
    "season": SEASON,
    "h2h": HEAD_TO_HEAD,
}

#: Prop market key → stat accessor.
MARKET_STATS: Dict[str, str] = {
    "player_points": "pts",
    "player_rebounds": "reb",
    "player_assists": "ast",
    "player_threes_made": "fg3m",
    "player_steals": "stl",
    "player_blocks": "blk",
    "player_turnovers": "tov",
    "player_points_rebounds_assists": "pra",
    "player_points_rebounds": "pr",
    "player_points_assists": "pa",
    "player_rebounds_assists": "ra",
    "player_blocks_steals": "bs",
}


def stat_for_market(market: str) -> str:
    """Stat key for a prop market, e.g. ``player_points`` → ``pts``."""
    try:
        return MARKET_STATS[market]
    except KeyError:
        raise ValueError(
            f"No stat mapping for market {market!r}; known markets: {sorted(MARKET_STATS)}."
        ) from None


@dataclass(frozen=True)
class HitRateWindow:
    """Hit-rate result for one window and line."""

    window: Window
    line: float
    hits: int
    total: int
    pct: Optional[int]
    average: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "window": self.window,
            "line": self.line,
            "hits": self.hits,
            "total": self.total,
            "pct": self.pct,
            "average": self.average,
        }


def _check_window(window: Window) -> None:
    if isinstance(window, bool):
        raise ValueError(f"Invalid window {window!r}.")
    if isinstance(window, int):
        if window <= 0:
            raise ValueError(f"Window size must be positive, got {window}.")
        return
    if window not in (SEASON, HEAD_TO_HEAD):
        raise ValueError(
            f"Invalid window {window!r}; expected a positive int, {SEASON!r} or {HEAD_TO_HEAD!r}."
        )


def _same_opponent(record: GameRecord, opponent: str) -> bool:
    return record.opponent is not None and record.opponent.strip().upper() == opponent


def window_values(
    records: Sequence[GameRecord],
    stat: str,
    window: Window,
    opponent: Optional[str] = None,
) -> List[float]:
    """Stat values that fall inside ``window``, newest first."""
    if stat not in ALL_STATS:
        raise ValueError(f"Unknown stat {stat!r}; expected one of {ALL_STATS}.")
    _check_window(window)
    if window == HEAD_TO_HEAD:
        if not opponent:
            raise ValueError("Head-to-head window requires an opponent.")
        target = opponent.strip().upper()
        records = [r for r in records if _same_opponent(r, target)]

    values = [v for v in (r.stat(stat) for r in records) if v is not None]
    if isinstance(window, int):
        return values[:window]
    return values


def compute_hit_rate(
    records: Sequence[GameRecord],
    stat: str,
    line: float,
    window: Window,
    opponent: Optional[str] = None,
) -> HitRateWindow:
    """
    Hit rate of ``stat ≥ line`` over one window.

    Raises:
        ValueError: For an unknown stat, a non-positive window size, or an
            ``"h2h"`` window without an opponent.
    """
    values = window_values(records, stat, window, opponent)
    total = len(values)
    if total == 0:
        return HitRateWindow(window=window, line=line, hits=0, total=0, pct=None, average=None)

    arr = np.asarray(values, dtype=float)
    hits = int(np.count_nonzero(arr >= line))
    return HitRateWindow(
        window=window,
        line=line,
        hits=hits,
        total=total,
        pct=round_half_away(100.0 * hits / total),
        average=float(np.mean(arr)),
    )


def hit_rate_summary(
    records: Sequence[GameRecord],
    stat: str,
    line: float,
    opponent: Optional[str] = None,
) -> Dict[str, HitRateWindow]:
    """
    L5 / L10 / L20 / season / H2H hit rates in one call.

    The ``"h2h"`` entry is omitted when no opponent is given.
    """
    summary: Dict[str, HitRateWindow] = {}
    for label, window in SUMMARY_WINDOWS.items():
        if window == HEAD_TO_HEAD and not opponent:
            continue
        summary[label] = compute_hit_rate(records, stat, line, window, opponent)
    logger.debug(
        "Hit-rate summary %s ≥ %s over %d games: %s",
        stat, line, len(records),
        {label: w.pct for label, w in summary.items()},
    )
    return summary


def alternate_lines(
    records: Sequence[GameRecord],
    stat: str,
    lines: Iterable[float],
    window: Window = SEASON,
    opponent: Optional[str] = None,
) -> List[HitRateWindow]:
    """Hit rate at each distinct line, ascending (alt-line matrix row)."""
    return [
        compute_hit_rate(records, stat, line, window, opponent)
        for line in sorted(set(lines))
    ]


def closest_line(available: Iterable[float], target: float) -> Optional[float]:
    """
    Line from ``available`` to display for ``target``.

    The exact line if offered, else the highest line below the target,
    else the lowest line offered.  ``None`` when nothing is offered.
    """
    lines = sorted(set(available))
    if not lines:
        return None
    if target in lines:
        return target
    below = [line for line in lines if line < target]
    if below:
        return below[-1]
    return lines[0]
