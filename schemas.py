"""
schemas.py
==========
Value objects flowing in and out of the analytics engine.

Inputs (events, conversions, date ranges) come from the storage layer;
outputs (the analytics report, realtime snapshots) go to the presentation
layer. Every model is immutable and serializes with camelCase keys:

    report.model_dump(mode="json", by_alias=True)
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from exceptions import InvalidRangeError


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Enums ─────────────────────────────────────────────────────────────────────

class EventKind(str, Enum):
    VIEW = "view"
    CLICK = "click"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Horizon(str, Enum):
    WEEK = "week"
    MONTH = "month"


class InsightType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"


class Impact(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Inputs ────────────────────────────────────────────────────────────────────

Timestamp = Union[datetime, str, None]


class Event(CamelModel):
    """A page view or affiliate click. ``kind`` is kept raw so unknown kinds are ignored, not rejected."""

    timestamp: Timestamp
    kind: str
    product_id: Optional[str] = None
    product_title: Optional[str] = None
    referrer_domain: Optional[str] = None


class ConversionEvent(CamelModel):
    """A purchase attributed to a product."""

    timestamp: Timestamp
    product_id: Optional[str] = None
    order_value: float = Field(default=0.0, ge=0)

    @field_validator("order_value", mode="before")
    @classmethod
    def _missing_value_is_zero(cls, value):
        return 0.0 if value is None else value


class DateRange(CamelModel):
    """Inclusive range of calendar days (UTC)."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @classmethod
    def coerce(cls, value: Any) -> "DateRange":
        """
        Build a validated range from a ``DateRange``, a mapping with
        ``start``/``end`` or a ``(start, end)`` pair of dates, datetimes or
        ISO-8601 strings.

        Raises InvalidRangeError when either bound cannot be parsed or when
        ``start`` falls after ``end``.
        """
        if isinstance(value, DateRange):
            start, end = value.start, value.end
        elif isinstance(value, dict):
            start, end = value.get("start"), value.get("end")
        else:
            try:
                start, end = value
            except (TypeError, ValueError) as exc:
                raise InvalidRangeError(
                    "Date range must provide a start and an end", details={"value": repr(value)}
                ) from exc

        try:
            date_range = cls(start=_to_date(start), end=_to_date(end))
        except (TypeError, ValueError, ValidationError) as exc:
            raise InvalidRangeError(
                "Date range bounds must be ISO-8601 dates",
                details={"start": str(start), "end": str(end)},
            ) from exc

        if date_range.start > date_range.end:
            raise InvalidRangeError(
                "Date range start must not be after its end",
                details={"start": date_range.start.isoformat(), "end": date_range.end.isoformat()},
            )
        return date_range


def _to_date(value: Any) -> date:
    if value is None:
        raise ValueError("missing date")
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"unparseable date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date()


# ── Outputs ───────────────────────────────────────────────────────────────────

class DailyBucket(CamelModel):
    date: date
    clicks: int = 0
    views: int = 0
    conversions: int = 0
    revenue: float = 0.0


class Overview(CamelModel):
    total_clicks: int = 0
    total_views: int = 0
    total_conversions: int = 0
    total_revenue: float = 0.0
    conversion_rate: float = 0.0
    average_order_value: float = 0.0
    click_through_rate: float = 0.0
    revenue_growth: float = 0.0


class ProductStat(CamelModel):
    product_id: str
    name: str
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    conversion_rate: float = 0.0
    trend: Trend = Trend.STABLE


class TrafficSourceStat(CamelModel):
    source: str
    clicks: int
    percentage_of_total: float
    display_color: str


class Interval(CamelModel):
    lower: float = 0.0
    upper: float = 0.0


class PredictionIntervals(CamelModel):
    revenue: Interval = Interval()
    clicks: Interval = Interval()


class Prediction(CamelModel):
    next_week_revenue: int = 0
    next_week_clicks: int = 0
    next_month_revenue: int = 0
    next_month_clicks: int = 0
    confidence: float = Field(default=0.5, ge=0, le=1)
    trend: Trend = Trend.STABLE
    seasonal_factor: float = 1.0
    volatility: float = Field(default=0.5, ge=0, le=1)
    factors: List[str] = Field(default_factory=list)
    model_accuracy: float = 0.5
    intervals: PredictionIntervals = PredictionIntervals()
    sufficient_data: bool = True

    def for_horizon(self, horizon: Union[Horizon, str]) -> Tuple[int, int]:
        """(revenue, clicks) forecast for the given horizon."""
        if Horizon(horizon) is Horizon.WEEK:
            return self.next_week_revenue, self.next_week_clicks
        return self.next_month_revenue, self.next_month_clicks


class Insight(CamelModel):
    type: InsightType
    title: str
    description: str
    impact: Impact
    actionable: bool = True
    actions: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    metrics: Dict[str, float] = Field(default_factory=dict)


class AnalyticsReport(CamelModel):
    date_range: DateRange
    overview: Overview
    time_series: List[DailyBucket]
    top_products: List[ProductStat]
    traffic_sources: List[TrafficSourceStat]
    predictions: Prediction
    insights: List[Insight]


# ── Realtime ──────────────────────────────────────────────────────────────────

class WindowTotals(CamelModel):
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0


class HourTotals(CamelModel):
    clicks: int = 0


class RealtimeSnapshot(CamelModel):
    last_24_hours: WindowTotals = Field(alias="last24Hours")
    last_hour: HourTotals
    timestamp: datetime


class MetricChange(CamelModel):
    metric: str
    old_value: float
    new_value: float
    change_percent: float
    is_significant: bool = True
