"""
Tests for the game-log range filter engine
Run with: pytest tests/test_game_filters.py -v
"""

import pytest

from propedge.services.game_filters import (
    FilterSpec,
    GameRecord,
    RangeFilter,
    apply_filters,
    clear_filters,
    preset_range,
    reclamp_filters,
    set_range,
    set_teammate_filter,
    stat_domain,
    stat_domains,
    toggle_days_rest,
    toggle_quick_filter,
)


def _games(minutes):
    return [GameRecord(minutes=m, pts=float(i)) for i, m in enumerate(minutes)]


class TestGameRecord:
    """Record construction and stat access"""

    def test_combo_stats(self):
        game = GameRecord(pts=20, reb=8, ast=5, blk=2, stl=1)

        assert game.stat("pra") == 33
        assert game.stat("pr") == 28
        assert game.stat("pa") == 25
        assert game.stat("ra") == 13
        assert game.stat("bs") == 3

    def test_combo_missing_component(self):
        assert GameRecord(pts=20, reb=8).stat("pra") is None

    def test_unknown_stat_raises(self):
        with pytest.raises(ValueError, match="Unknown stat"):
            GameRecord().stat("goals")

    def test_from_dict(self):
        game = GameRecord.from_dict({
            "date": "2025-01-10",
            "opponent": "BOS",
            "home_away": "H",
            "result": "L",
            "margin": "-12",
            "days_rest": 1,
            "teammates_out": [201939, "1628369"],
            "min": "34.5",
            "points": 27,
            "reb": None,
            "fg3m": "n/a",
        })

        assert game.game_date == "2025-01-10"
        assert game.is_home is True
        assert game.won is False
        assert game.margin == -12.0
        assert game.days_rest == 1
        assert game.teammates_out == frozenset({"201939", "1628369"})
        assert game.minutes == 34.5
        assert game.pts == 27.0
        assert game.reb is None
        assert game.fg3m is None


class TestRangeFilters:
    """Numeric range constraints"""

    def test_minutes_range_inclusive(self):
        games = _games([25, 30, 35, 40, 45])
        spec = set_range(FilterSpec(), "minutes", 28, 40)

        passed = apply_filters(games, spec)

        assert [g.minutes for g in passed] == [30, 35, 40]

    def test_filters_and_combined(self):
        games = _games([25, 30, 35, 40, 45])
        spec = set_range(set_range(FilterSpec(), "minutes", 28, 45), "pts", 0, 2)

        assert [g.minutes for g in apply_filters(games, spec)] == [30, 35]

    def test_missing_stat_fails_filter(self):
        games = [GameRecord(minutes=30), GameRecord(minutes=None)]
        spec = set_range(FilterSpec(), "minutes", 0, 48)

        assert len(apply_filters(games, spec)) == 1

    def test_empty_spec_passes_everything(self):
        games = _games([10, 20])

        assert apply_filters(games, FilterSpec()) == games

    def test_order_preserved(self):
        games = _games([40, 30, 35])
        spec = set_range(FilterSpec(), "minutes", 30, 40)

        assert [g.minutes for g in apply_filters(games, spec)] == [40, 30, 35]

    def test_min_above_max_raises(self):
        with pytest.raises(ValueError):
            RangeFilter(40, 28)

    def test_unknown_stat_in_spec_raises(self):
        with pytest.raises(ValueError):
            FilterSpec(ranges={"goals": RangeFilter(0, 1)})

    def test_clear_range_with_none(self):
        spec = set_range(FilterSpec(), "minutes", 28, 40)

        assert set_range(spec, "minutes", None, None).ranges == {}

    def test_set_range_does_not_mutate(self):
        spec = FilterSpec()
        set_range(spec, "minutes", 28, 40)

        assert spec.ranges == {}


class TestQuickFilters:
    """Categorical toggles and mutual exclusion"""

    GAMES = [
        GameRecord(is_home=True, won=True, margin=15),
        GameRecord(is_home=False, won=True, margin=3),
        GameRecord(is_home=True, won=False, margin=-12),
        GameRecord(is_home=False, won=False, margin=-2),
        GameRecord(is_home=None, won=None, margin=None),
    ]

    @pytest.mark.parametrize("name,expected", [
        ("home", 2), ("away", 2), ("win", 2), ("loss", 2), ("won_by", 1), ("lost_by", 1),
    ])
    def test_single_toggle(self, name, expected):
        spec = toggle_quick_filter(FilterSpec(), name)

        assert len(apply_filters(self.GAMES, spec)) == expected

    @pytest.mark.parametrize("first,second", [
        ("home", "away"), ("win", "loss"), ("win", "lost_by"),
        ("loss", "won_by"), ("won_by", "lost_by"),
    ])
    def test_activating_partner_clears_pair(self, first, second):
        spec = toggle_quick_filter(toggle_quick_filter(FilterSpec(), first), second)

        assert second in spec.quick_filters
        assert first not in spec.quick_filters

    def test_toggle_off(self):
        spec = toggle_quick_filter(toggle_quick_filter(FilterSpec(), "home"), "home")

        assert spec.quick_filters == frozenset()

    def test_compatible_filters_combine(self):
        spec = toggle_quick_filter(toggle_quick_filter(FilterSpec(), "home"), "win")

        assert len(apply_filters(self.GAMES, spec)) == 1

    def test_margin_threshold(self):
        spec = FilterSpec(quick_filters=frozenset({"won_by"}), margin_threshold=3)

        assert len(apply_filters(self.GAMES, spec)) == 2

    def test_conflicting_spec_raises(self):
        with pytest.raises(ValueError):
            FilterSpec(quick_filters=frozenset({"home", "away"}))

    def test_unknown_toggle_raises(self):
        with pytest.raises(ValueError):
            toggle_quick_filter(FilterSpec(), "overtime")

    def test_primetime_requires_national_broadcast(self):
        games = [
            GameRecord(national_broadcast=True),
            GameRecord(national_broadcast=False),
            GameRecord(),
        ]
        spec = toggle_quick_filter(FilterSpec(), "primetime")

        assert apply_filters(games, spec) == [games[0]]

    def test_primetime_combines_with_every_toggle(self):
        spec = toggle_quick_filter(FilterSpec(), "primetime")
        for name in ("home", "win", "lost_by"):
            spec = toggle_quick_filter(spec, name)

        assert spec.quick_filters == frozenset({"primetime", "home", "lost_by"})

    def test_primetime_from_feed_row(self):
        assert GameRecord.from_dict({"is_primetime": True}).national_broadcast is True
        assert GameRecord.from_dict({}).national_broadcast is None


class TestDaysRestAndTeammates:
    """Rest buckets and teammate availability"""

    def test_days_rest_buckets(self):
        games = [GameRecord(days_rest=d) for d in (0, 1, 2, 3, 5, None)]
        spec = toggle_days_rest(toggle_days_rest(FilterSpec(), 0), 3)

        assert [g.days_rest for g in apply_filters(games, spec)] == [0, 3, 5]

    def test_days_rest_toggle_off(self):
        spec = toggle_days_rest(toggle_days_rest(FilterSpec(), 1), 1)

        assert spec.days_rest == frozenset()

    def test_invalid_bucket(self):
        with pytest.raises(ValueError):
            toggle_days_rest(FilterSpec(), 4)

    def test_with_and_without(self):
        games = [
            GameRecord(pts=1, teammates_out=frozenset({"23"})),
            GameRecord(pts=2, teammates_out=frozenset()),
        ]

        without = set_teammate_filter(FilterSpec(), "23", "without")
        with_ = set_teammate_filter(FilterSpec(), 23, "with")

        assert [g.pts for g in apply_filters(games, without)] == [1]
        assert [g.pts for g in apply_filters(games, with_)] == [2]
        assert set_teammate_filter(without, "23", None).teammates == {}

    def test_invalid_teammate_mode(self):
        with pytest.raises(ValueError):
            set_teammate_filter(FilterSpec(), "23", "maybe")

    def test_clear_filters_keeps_threshold(self):
        spec = toggle_quick_filter(FilterSpec(margin_threshold=5), "home")

        cleared = clear_filters(spec)

        assert cleared.is_empty
        assert cleared.margin_threshold == 5


class TestDomains:
    """Domain computation and reclamping"""

    def test_stat_domain_ignores_missing(self):
        games = [GameRecord(minutes=20), GameRecord(minutes=None), GameRecord(minutes=38)]

        assert stat_domain(games, "minutes") == (20, 38)
        assert stat_domain(games, "pts") is None

    def test_stat_domains(self):
        domains = stat_domains(_games([20, 30]), ["minutes", "pts", "reb"])

        assert domains == {"minutes": (20, 30), "pts": (0.0, 1.0)}

    def test_filter_outside_domain_cleared(self):
        spec = set_range(FilterSpec(), "minutes", 40, 48)

        result = reclamp_filters(spec, _games([10, 20, 30]))

        assert "minutes" not in result.ranges

    def test_partial_overlap_clamped(self):
        spec = set_range(FilterSpec(), "minutes", 25, 45)

        result = reclamp_filters(spec, _games([10, 20, 30, 35]))

        assert result.ranges["minutes"] == RangeFilter(25, 35)

    def test_unobserved_stat_cleared(self):
        spec = set_range(FilterSpec(), "usage_pct", 20, 30)

        assert reclamp_filters(spec, _games([30])).ranges == {}

    def test_empty_record_set_leaves_spec(self):
        spec = set_range(FilterSpec(), "minutes", 25, 45)

        assert reclamp_filters(spec, []) == spec

    def test_no_filter_outside_new_domain(self):
        spec = set_range(set_range(FilterSpec(), "minutes", 5, 50), "pts", 3, 100)
        records = _games([22, 31, 36, 18, 40])

        result = reclamp_filters(spec, records)

        for stat, rng in result.ranges.items():
            lo, hi = stat_domain(records, stat)
            assert lo <= rng.min <= rng.max <= hi

    def test_categorical_filters_survive_reclamp(self):
        spec = toggle_quick_filter(set_range(FilterSpec(), "minutes", 40, 48), "home")

        result = reclamp_filters(spec, _games([10]))

        assert result.quick_filters == frozenset({"home"})


class TestPresets:
    """Low / avg / high presets"""

    def test_thirds(self):
        games = _games([10, 40])

        assert preset_range(games, "minutes", "low") == RangeFilter(10, 20)
        assert preset_range(games, "minutes", "avg") == RangeFilter(20, 30)
        assert preset_range(games, "minutes", "high") == RangeFilter(30, 40)

    def test_unobserved(self):
        assert preset_range([GameRecord()], "minutes", "low") is None

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            preset_range(_games([10]), "minutes", "extreme")
