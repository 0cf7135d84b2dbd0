"""
Tests for windowed hit rates
Run with: pytest tests/test_hit_rates.py -v
"""

import pytest

from propedge.services.game_filters import GameRecord
from propedge.services.hit_rates import (
    MARKET_STATS,
    alternate_lines,
    closest_line,
    compute_hit_rate,
    hit_rate_summary,
    stat_for_market,
)


def _log(points, opponents=None):
    opponents = opponents or ["BOS"] * len(points)
    return [GameRecord(pts=p, opponent=o) for p, o in zip(points, opponents)]


# Newest first
TEN_GAMES = _log([25, 18, 30, 21, 22, 15, 27, 24, 19, 23])


class TestComputeHitRate:
    """Single-window hit rate"""

    def test_seven_of_ten(self):
        result = compute_hit_rate(TEN_GAMES, "pts", 20.5, 10)

        assert (result.hits, result.total, result.pct) == (7, 10, 70)

    def test_last_five_takes_most_recent(self):
        result = compute_hit_rate(TEN_GAMES, "pts", 20.5, 5)

        assert (result.hits, result.total, result.pct) == (4, 5, 80)

    def test_window_larger_than_log(self):
        result = compute_hit_rate(TEN_GAMES, "pts", 20.5, 20)

        assert result.total == 10

    def test_line_equal_counts_as_hit(self):
        result = compute_hit_rate(_log([20, 19]), "pts", 20, "season")

        assert result.hits == 1

    def test_empty_window_pct_is_none(self):
        result = compute_hit_rate([], "pts", 20.5, 10)

        assert result.total == 0
        assert result.pct is None
        assert result.average is None

    def test_pct_rounds_half_away(self):
        games = _log([30] * 5 + [10] * 3)

        assert compute_hit_rate(games, "pts", 20, "season").pct == 63

    def test_average(self):
        result = compute_hit_rate(_log([10, 20, 30]), "pts", 15, "season")

        assert result.average == pytest.approx(20.0)

    def test_missing_stat_skipped_before_window(self):
        games = [GameRecord(pts=None)] + _log([30, 10])

        result = compute_hit_rate(games, "pts", 20, 2)

        assert (result.hits, result.total) == (1, 2)

    def test_combo_stat(self):
        games = [GameRecord(pts=20, reb=5, ast=5), GameRecord(pts=10, reb=2, ast=1)]

        assert compute_hit_rate(games, "pra", 29.5, "season").hits == 1

    def test_idempotent_and_pure(self):
        snapshot = list(TEN_GAMES)
        first = compute_hit_rate(TEN_GAMES, "pts", 22.5, 10)
        custom = compute_hit_rate(TEN_GAMES, "pts", 26.5, 10)
        second = compute_hit_rate(TEN_GAMES, "pts", 22.5, 10)

        assert first == second
        assert custom.hits == 2
        assert TEN_GAMES == snapshot


class TestHeadToHead:
    """Head-to-head window"""

    def test_only_matching_opponent(self):
        games = _log([30, 10, 25, 5], ["NYK", "BOS", "nyk", "MIA"])

        result = compute_hit_rate(games, "pts", 20, "h2h", opponent="NYK")

        assert (result.hits, result.total, result.pct) == (2, 2, 100)

    def test_no_meetings(self):
        result = compute_hit_rate(TEN_GAMES, "pts", 20, "h2h", opponent="LAL")

        assert result.total == 0 and result.pct is None

    def test_requires_opponent(self):
        with pytest.raises(ValueError, match="opponent"):
            compute_hit_rate(TEN_GAMES, "pts", 20, "h2h")


class TestWindowValidation:
    """Caller errors"""

    @pytest.mark.parametrize("window", [0, -5, "month", True])
    def test_invalid_window(self, window):
        with pytest.raises(ValueError):
            compute_hit_rate(TEN_GAMES, "pts", 20, window)

    def test_unknown_stat(self):
        with pytest.raises(ValueError):
            compute_hit_rate([], "goals", 1, 5)


class TestSummary:
    """Multi-window summary"""

    def test_windows(self):
        summary = hit_rate_summary(TEN_GAMES, "pts", 20.5)

        assert set(summary) == {"l5", "l10", "l20", "season"}
        assert summary["l5"].pct == 80
        assert summary["l10"].pct == 70
        assert summary["season"].total == 10

    def test_includes_h2h_with_opponent(self):
        summary = hit_rate_summary(TEN_GAMES, "pts", 20.5, opponent="BOS")

        assert summary["h2h"].total == 10


class TestLines:
    """Alternate lines and line matching"""

    def test_alternate_lines_ascending(self):
        rows = alternate_lines(TEN_GAMES, "pts", [24.5, 19.5, 29.5, 19.5])

        assert [r.line for r in rows] == [19.5, 24.5, 29.5]
        assert [r.hits for r in rows] == [7, 3, 1]

    @pytest.mark.parametrize("available,target,expected", [
        ([19.5, 20.5, 21.5], 20.5, 20.5),
        ([19.5, 21.5], 20.5, 19.5),
        ([21.5, 22.5], 20.5, 21.5),
        ([], 20.5, None),
    ])
    def test_closest_line(self, available, target, expected):
        assert closest_line(available, target) == expected


class TestMarketStats:
    """Market key → stat mapping"""

    def test_known_markets(self):
        assert stat_for_market("player_points") == "pts"
        assert stat_for_market("player_points_rebounds_assists") == "pra"
        assert stat_for_market("player_blocks_steals") == "bs"

    def test_every_market_maps_to_a_stat(self):
        for stat in MARKET_STATS.values():
            assert GameRecord().stat(stat) is None

    def test_unknown_market(self):
        with pytest.raises(ValueError):
            stat_for_market("player_goals")
