"""
Pydantic schemas for plain-data state that crosses the library boundary.

Filter selections, bankroll and custom lines are persisted by the client
between sessions and handed back as JSON.  These models validate that
round-tripped data and convert it to and from the immutable engine types,
so the engine never depends on live object identity.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from propedge.services.game_filters import (
    ALL_STATS,
    DAYS_REST_BUCKETS,
    DEFAULT_MARGIN_THRESHOLD,
    QUICK_FILTERS,
    FilterSpec,
    GameRecord,
    RangeFilter,
)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class RangePayload(BaseModel):
    """Inclusive stat range as stored by the client."""

    min: float = Field(..., allow_inf_nan=False)
    max: float = Field(..., allow_inf_nan=False)

    @model_validator(mode="after")
    def validate_order(self) -> "RangePayload":
        if self.min > self.max:
            raise ValueError(f"min={self.min} exceeds max={self.max}")
        return self


class FilterSpecPayload(BaseModel):
    """
    Serialized FilterSpec.

    ``ranges`` entries set to ``null`` are treated as "no constraint", the
    way a cleared slider is stored.
    """

    ranges: Dict[str, Optional[RangePayload]] = Field(default_factory=dict)
    quick_filters: List[str] = Field(default_factory=list)
    margin_threshold: float = Field(DEFAULT_MARGIN_THRESHOLD, ge=0, allow_inf_nan=False)
    days_rest: List[int] = Field(default_factory=list)
    teammates: Dict[str, Literal["with", "without"]] = Field(default_factory=dict)

    @field_validator("ranges")
    @classmethod
    def validate_stat_keys(cls, v: Dict[str, Optional[RangePayload]]) -> Dict[str, Optional[RangePayload]]:
        unknown = sorted(set(v) - set(ALL_STATS))
        if unknown:
            raise ValueError(f"Unknown stat keys: {unknown}")
        return v

    @field_validator("quick_filters")
    @classmethod
    def validate_quick_filters(cls, v: List[str]) -> List[str]:
        unknown = sorted(set(v) - set(QUICK_FILTERS))
        if unknown:
            raise ValueError(f"Unknown quick filters: {unknown}")
        return v

    @field_validator("days_rest")
    @classmethod
    def validate_days_rest(cls, v: List[int]) -> List[int]:
        bad = sorted(set(v) - set(DAYS_REST_BUCKETS))
        if bad:
            raise ValueError(f"Days-rest buckets must be in {DAYS_REST_BUCKETS}, got {bad}")
        return v

    def to_spec(self) -> FilterSpec:
        """Build the engine FilterSpec (raises ValueError on conflicting toggles)."""
        return FilterSpec(
            ranges={
                stat: RangeFilter(rng.min, rng.max)
                for stat, rng in self.ranges.items()
                if rng is not None
            },
            quick_filters=frozenset(self.quick_filters),
            margin_threshold=self.margin_threshold,
            days_rest=frozenset(self.days_rest),
            teammates=dict(self.teammates),
        )

    @classmethod
    def from_spec(cls, spec: FilterSpec) -> "FilterSpecPayload":
        return cls(
            ranges={
                stat: RangePayload(min=rng.min, max=rng.max)
                for stat, rng in sorted(spec.ranges.items())
            },
            quick_filters=sorted(spec.quick_filters),
            margin_threshold=spec.margin_threshold,
            days_rest=sorted(spec.days_rest),
            teammates=dict(spec.teammates),
        )


# ---------------------------------------------------------------------------
# Session settings
# ---------------------------------------------------------------------------

class SessionSettings(BaseModel):
    """User pricing preferences persisted between sessions."""

    bankroll: float = Field(0.0, ge=0, description="Bankroll in currency units")
    kelly_percent: float = Field(25.0, gt=0, le=100, description="Percent of full Kelly")
    boost_percent: float = Field(0.0, ge=0, description="Sportsbook profit boost")
    excluded_books: List[str] = Field(default_factory=list)
    custom_lines: Dict[str, float] = Field(
        default_factory=dict, description="Market key → user line"
    )
    filters: FilterSpecPayload = Field(default_factory=FilterSpecPayload)

    @field_validator("excluded_books")
    @classmethod
    def normalize_books(cls, v: List[str]) -> List[str]:
        return sorted({b.strip().lower() for b in v if b and b.strip()})

    model_config = {
        "json_schema_extra": {
            "example": {
                "bankroll": 1000.0,
                "kelly_percent": 25.0,
                "excluded_books": ["bovada"],
                "custom_lines": {"player_points": 24.5},
                "filters": {
                    "ranges": {"minutes": {"min": 28, "max": 40}},
                    "quick_filters": ["home"],
                },
            }
        }
    }


# ---------------------------------------------------------------------------
# Stats feed
# ---------------------------------------------------------------------------

class GameLogPayload(BaseModel):
    """
    One stats-feed game row.

    Unknown keys are ignored; stat values that are missing stay ``None``.
    """

    game_date: Optional[str] = None
    opponent: Optional[str] = None
    is_home: Optional[bool] = None
    won: Optional[bool] = None
    margin: Optional[float] = None
    days_rest: Optional[int] = Field(None, ge=0)
    teammates_out: List[str] = Field(default_factory=list)
    national_broadcast: Optional[bool] = None
    stats: Dict[str, Optional[float]] = Field(default_factory=dict)

    @field_validator("stats")
    @classmethod
    def validate_stats(cls, v: Dict[str, Optional[float]]) -> Dict[str, Optional[float]]:
        unknown = sorted(set(v) - set(ALL_STATS))
        if unknown:
            raise ValueError(f"Unknown stat keys: {unknown}")
        return v

    def to_record(self) -> GameRecord:
        """Engine record; combo stats in ``stats`` are derived, not stored."""
        row = {k: v for k, v in self.stats.items()}
        row.update(
            game_date=self.game_date,
            opponent=self.opponent,
            is_home=self.is_home,
            won=self.won,
            margin=self.margin,
            days_rest=self.days_rest,
            teammates_out=self.teammates_out,
            national_broadcast=self.national_broadcast,
        )
        return GameRecord.from_dict(row)
