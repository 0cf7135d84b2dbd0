"""
Tests for quote ingestion and normalisation
Run with: pytest tests/test_ledger.py -v
"""

import pytest

from propedge.services.ledger import (
    UNAVAILABLE,
    MarketSide,
    Quote,
    build_market_side,
    ingest_market,
    normalize_book_id,
    normalize_book_set,
    parse_quote,
    read_price,
)


class TestReadPrice:
    """Raw feed price parsing"""

    @pytest.mark.parametrize("raw,expected", [
        (-110, -110),
        (120, 120),
        (120.0, 120),
        ("+120", 120),
        (" -110 ", -110),
        ("150.4", 150),
        (-100, 100),
        ("-100", 100),
        (-100.4, 100),
    ])
    def test_valid(self, raw, expected):
        assert read_price(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "  ", "abc", "N/A", 0, 0.0, "0", True, False,
        float("nan"), float("inf"), 50, -99, -99.5, 99.5, "-99.6", [], {},
    ])
    def test_unavailable(self, raw):
        assert read_price(raw) is UNAVAILABLE

    def test_sentinel_is_distinct_from_prices(self):
        assert UNAVAILABLE != 0
        assert UNAVAILABLE is not None
        assert not UNAVAILABLE
        assert repr(UNAVAILABLE) == "UNAVAILABLE"


class TestBookIds:
    """Book id normalisation"""

    def test_case_and_whitespace(self):
        assert normalize_book_id("  DraftKings ") == "draftkings"

    def test_aliases(self):
        assert normalize_book_id("HardRockBet") == "hard-rock"
        assert normalize_book_id("betmgm-michigan") == "betmgm"
        assert normalize_book_id("espnbet") == "espn"

    def test_custom_alias_table(self):
        assert normalize_book_id("PIN", {"pin": "pinnacle"}) == "pinnacle"

    def test_empty(self):
        assert normalize_book_id(None) == ""
        assert normalize_book_set(None) == frozenset()
        assert normalize_book_set(["FanDuel", "", "espnbet"]) == frozenset({"fanduel", "espn"})


class TestQuote:
    """Quote construction"""

    def test_decimal_matches_price(self):
        quote = Quote.from_price("fanduel", -110, 24.5)

        assert quote.decimal_odds == pytest.approx(1.909091, abs=1e-6)

    def test_parse_quote_row(self):
        quote = parse_quote({
            "book": "FanDuel", "price": "+125", "line": "24.5",
            "link": "https://example.test/bet", "limit": 500,
        })

        assert quote.book_id == "fanduel"
        assert quote.price == 125
        assert quote.line == 24.5
        assert quote.link == "https://example.test/bet"
        assert quote.limit == 500.0

    def test_parse_quote_drops_bad_price(self):
        assert parse_quote({"book": "fanduel", "price": None}) is None

    def test_parse_quote_drops_missing_book(self):
        assert parse_quote({"price": -110}) is None


class TestMarketSide:
    """Side assembly rules"""

    def test_duplicate_book_keeps_better_price(self):
        side = build_market_side("over", 24.5, [
            Quote.from_price("fanduel", -115, 24.5),
            Quote.from_price("fanduel", -105, 24.5),
        ])

        assert len(side) == 1
        assert side.get("fanduel").price == -105

    def test_different_line_dropped(self):
        side = build_market_side("over", 24.5, [
            Quote.from_price("fanduel", -110, 24.5),
            Quote.from_price("draftkings", +150, 25.5),
        ])

        assert set(side.quotes) == {"fanduel"}

    def test_opposite(self):
        assert MarketSide(side="over", line=1.5).opposite == "under"
        assert MarketSide(side="yes", line=None).opposite == "no"


class TestIngestMarket:
    """Flat feed rows → both sides"""

    def test_splits_sides_and_drops_bad_rows(self):
        rows = [
            {"book": "fanduel", "side": "over", "price": -110, "line": 24.5},
            {"book": "fanduel", "side": "under", "price": -110, "line": 24.5},
            {"book": "draftkings", "side": "over", "price": "+105", "line": 24.5},
            {"book": "draftkings", "side": "under", "price": None, "line": 24.5},
            {"book": "caesars", "side": "sideways", "price": -110, "line": 24.5},
            {"book": "betmgm", "side": "UNDER", "price": "abc"},
        ]

        over, under = ingest_market(rows, 24.5)

        assert over.side == "over" and under.side == "under"
        assert set(over.quotes) == {"fanduel", "draftkings"}
        assert set(under.quotes) == {"fanduel"}

    def test_partial_market(self):
        over, under = ingest_market(
            [{"book": "fanduel", "side": "over", "price": 120, "line": 0.5}], 0.5
        )

        assert len(over) == 1
        assert len(under) == 0

    def test_yes_no_market(self):
        yes, no = ingest_market(
            [{"book": "fanduel", "side": "yes", "price": 300}], None, sides=("yes", "no")
        )

        assert yes.get("fanduel").price == 300
        assert len(no) == 0

    def test_empty_feed(self):
        over, under = ingest_market([], 24.5)

        assert len(over) == 0 and len(under) == 0
