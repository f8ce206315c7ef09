"""
analytics.py
============
Aggregations and KPIs over raw affiliate events.

Pipeline position:
- Daily buckets turn sparse, irregular events into a contiguous series
- Overview ratios summarize the whole period (and compare it to the one before)
- Rankings surface the products and referrers that drive revenue and traffic

Every function is pure: inputs are read, never mutated, and new objects are returned.
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional

import pandas as pd

from config import Settings, settings as default_settings
from forecasting import classify_series_trend
from schemas import (
    ConversionEvent,
    DailyBucket,
    DateRange,
    Event,
    EventKind,
    Overview,
    ProductStat,
    TrafficSourceStat,
)
from utils import clamp, pct, pct_change, safe_div, source_color

logger = logging.getLogger(__name__)

DIRECT_SOURCE = "Direct"

EVENT_COLUMNS = ["timestamp", "kind", "product_id", "product_title", "referrer_domain"]
CONVERSION_COLUMNS = ["timestamp", "product_id", "order_value"]


# ── 1. Event frames ───────────────────────────────────────────────────────────

def _parse_timestamps(values: pd.Series) -> pd.Series:
    """ISO-8601 strings or datetimes → UTC timestamps; anything unparseable becomes NaT."""
    return pd.to_datetime(values, utc=True, errors="coerce", format="ISO8601")


def _with_event_date(df: pd.DataFrame, date_range: DateRange) -> pd.DataFrame:
    """
    Adds the UTC calendar day of each row and keeps rows inside the range.
    Rows with bad timestamps or outside the range reflect upstream filtering,
    so they are dropped quietly.
    """
    df = df.copy()
    df["timestamp"] = _parse_timestamps(df["timestamp"])
    parsed = df.dropna(subset=["timestamp"])
    unparseable = len(df) - len(parsed)

    parsed = parsed.assign(
        event_date=parsed["timestamp"].dt.tz_convert("UTC").dt.tz_localize(None).dt.normalize()
    )
    in_range = parsed[
        parsed["event_date"].between(pd.Timestamp(date_range.start), pd.Timestamp(date_range.end))
    ]
    if unparseable or len(in_range) < len(parsed):
        logger.debug(
            "Skipped %d rows with unparseable timestamps and %d outside %s..%s",
            unparseable, len(parsed) - len(in_range), date_range.start, date_range.end,
        )
    return in_range


def events_frame(events: Iterable[Event], date_range: DateRange) -> pd.DataFrame:
    """Events as a DataFrame (input order preserved) restricted to ``date_range``."""
    df = pd.DataFrame(
        [[e.timestamp, e.kind, e.product_id, e.product_title, e.referrer_domain] for e in events],
        columns=EVENT_COLUMNS,
    )
    return _with_event_date(df, date_range)


def conversions_frame(conversions: Iterable[ConversionEvent], date_range: DateRange) -> pd.DataFrame:
    """Conversions as a DataFrame (input order preserved) restricted to ``date_range``."""
    df = pd.DataFrame(
        [[c.timestamp, c.product_id, float(c.order_value)] for c in conversions],
        columns=CONVERSION_COLUMNS,
    )
    df["order_value"] = df["order_value"].astype(float)
    return _with_event_date(df, date_range)


# ── 2. Daily aggregation ──────────────────────────────────────────────────────

def daily_frame(ev: pd.DataFrame, cv: pd.DataFrame, date_range: DateRange) -> pd.DataFrame:
    """
    One row per calendar day in the range, zero-filled.
    Columns: clicks, views, conversions, revenue (index = day).
    """
    days = pd.date_range(date_range.start, date_range.end, freq="D")

    def _daily(series: pd.Series) -> pd.Series:
        return series.reindex(days, fill_value=0)

    clicks = ev[ev["kind"] == EventKind.CLICK.value].groupby("event_date").size()
    views = ev[ev["kind"] == EventKind.VIEW.value].groupby("event_date").size()
    conversions = cv.groupby("event_date").size()
    revenue = cv.groupby("event_date")["order_value"].sum()

    return pd.DataFrame({
        "clicks":      _daily(clicks).astype(int),
        "views":       _daily(views).astype(int),
        "conversions": _daily(conversions).astype(int),
        "revenue":     _daily(revenue).astype(float),
    }, index=days)


def to_buckets(daily: pd.DataFrame) -> List[DailyBucket]:
    return [
        DailyBucket(
            date=day.date(),
            clicks=int(row.clicks),
            views=int(row.views),
            conversions=int(row.conversions),
            revenue=float(row.revenue),
        )
        for day, row in daily.iterrows()
    ]


def aggregate_daily(
    events: Iterable[Event],
    conversions: Iterable[ConversionEvent],
    date_range,
) -> List[DailyBucket]:
    """
    Buckets events and conversions into contiguous per-day totals.

    The result has exactly one bucket per calendar day of ``date_range``,
    sorted ascending. Days without activity are all-zero. Events of an
    unrecognized kind count toward nothing.

    Raises InvalidRangeError for an unparseable or inverted range.
    """
    date_range = DateRange.coerce(date_range)
    daily = daily_frame(
        events_frame(events, date_range), conversions_frame(conversions, date_range), date_range
    )
    logger.debug("Built %d daily buckets for %s..%s", len(daily), date_range.start, date_range.end)
    return to_buckets(daily)


# ── 3. Overview KPIs ──────────────────────────────────────────────────────────

def previous_period(date_range: DateRange) -> DateRange:
    """
    The equal-length window ending the day before ``date_range`` starts.
    Sliding, not calendar-aligned: a 7-day range is compared to the 7 days before it.
    """
    length = timedelta(days=date_range.days)
    return DateRange(start=date_range.start - length, end=date_range.end - length)


def previous_period_revenue(conversions: Iterable[ConversionEvent], date_range: DateRange) -> float:
    return sum(b.revenue for b in aggregate_daily([], conversions, previous_period(date_range)))


def compute_revenue_growth(
    conversions: Iterable[ConversionEvent],
    date_range,
) -> float:
    """
    % change of revenue versus the preceding equal-length period.
    0 when the preceding period had no revenue.
    """
    date_range = DateRange.coerce(date_range)
    conversions = list(conversions)
    current = sum(b.revenue for b in aggregate_daily([], conversions, date_range))
    return pct_change(current, previous_period_revenue(conversions, date_range))


def overview_from_frames(ev: pd.DataFrame, cv: pd.DataFrame, revenue_growth: float = 0.0) -> Overview:
    total_clicks = int((ev["kind"] == EventKind.CLICK.value).sum())
    total_views = int((ev["kind"] == EventKind.VIEW.value).sum())
    total_conversions = len(cv)
    total_revenue = float(cv["order_value"].sum())

    return Overview(
        total_clicks=total_clicks,
        total_views=total_views,
        total_conversions=total_conversions,
        total_revenue=total_revenue,
        # Conversions are an independent stream and can outnumber clicks.
        conversion_rate=clamp(pct(total_conversions, total_clicks), 0.0, 100.0),
        average_order_value=safe_div(total_revenue, total_conversions),
        click_through_rate=pct(total_clicks, total_views),
        revenue_growth=revenue_growth,
    )


def compute_overview(
    events: Iterable[Event],
    conversions: Iterable[ConversionEvent],
    date_range,
) -> Overview:
    """
    Period totals and ratios for dashboard cards.

    Conversion rate = conversions / clicks; CTR = clicks / views;
    AOV = revenue / conversions. Every ratio is 0 when its denominator is.
    """
    date_range = DateRange.coerce(date_range)
    conversions = list(conversions)
    return overview_from_frames(
        events_frame(events, date_range),
        conversions_frame(conversions, date_range),
        revenue_growth=compute_revenue_growth(conversions, date_range),
    )


# ── 4. Rankings ───────────────────────────────────────────────────────────────

def products_from_frames(
    ev: pd.DataFrame,
    cv: pd.DataFrame,
    date_range: DateRange,
    settings: Optional[Settings] = None,
) -> List[ProductStat]:
    """
    Top products by revenue.

    Products are registered by the events that mention them, in first-seen
    order; conversions for products never seen in an event are ignored.
    Ties on revenue keep first-seen order.
    """
    settings = settings or default_settings
    ev = ev.dropna(subset=["product_id"])
    if ev.empty:
        return []

    seen = ev.groupby("product_id", sort=False)
    products = pd.DataFrame({
        "name":   seen["product_title"].first(),
        "clicks": seen["kind"].apply(lambda kinds: int((kinds == EventKind.CLICK.value).sum())),
    })
    products["name"] = products["name"].fillna(pd.Series(products.index, index=products.index))

    sold = cv[cv["product_id"].isin(products.index)]
    by_product = sold.groupby("product_id")
    products["conversions"] = by_product.size().reindex(products.index, fill_value=0).astype(int)
    products["revenue"] = by_product["order_value"].sum().reindex(products.index, fill_value=0.0)

    top = (
        products.sort_values("revenue", ascending=False, kind="stable")
                .head(settings.TOP_PRODUCTS_LIMIT)
    )

    days = pd.date_range(date_range.start, date_range.end, freq="D")

    stats = []
    for product_id, row in top.iterrows():
        series = (
            sold[sold["product_id"] == product_id]
                .groupby("event_date")["order_value"].sum()
                .reindex(days, fill_value=0.0)
        )
        stats.append(ProductStat(
            product_id=str(product_id),
            name=str(row["name"]),
            clicks=int(row["clicks"]),
            conversions=int(row["conversions"]),
            revenue=float(row["revenue"]),
            conversion_rate=clamp(pct(row["conversions"], row["clicks"]), 0.0, 100.0),
            trend=classify_series_trend(series.tolist(), settings=settings),
        ))
    return stats


def compute_top_products(
    events: Iterable[Event],
    conversions: Iterable[ConversionEvent],
    date_range,
    settings: Optional[Settings] = None,
) -> List[ProductStat]:
    date_range = DateRange.coerce(date_range)
    return products_from_frames(
        events_frame(events, date_range),
        conversions_frame(conversions, date_range),
        date_range,
        settings=settings,
    )


def sources_from_frame(ev: pd.DataFrame, settings: Optional[Settings] = None) -> List[TrafficSourceStat]:
    """
    Top referrers by click volume; a missing referrer counts as "Direct".
    Ties keep first-seen order; colors follow rank position.
    """
    settings = settings or default_settings
    clicks = ev[ev["kind"] == EventKind.CLICK.value]
    total_clicks = len(clicks)
    if not total_clicks:
        return []

    sources = (
        clicks["referrer_domain"]
              .fillna(DIRECT_SOURCE)
              .replace("", DIRECT_SOURCE)
              .rename("source")
    )
    counts = (
        sources.groupby(sources, sort=False)
               .size()
               .sort_values(ascending=False, kind="stable")
               .head(settings.TRAFFIC_SOURCES_LIMIT)
    )
    return [
        TrafficSourceStat(
            source=str(source),
            clicks=int(count),
            percentage_of_total=pct(count, total_clicks),
            display_color=source_color(rank),
        )
        for rank, (source, count) in enumerate(counts.items())
    ]


def compute_traffic_sources(
    events: Iterable[Event],
    date_range,
    settings: Optional[Settings] = None,
) -> List[TrafficSourceStat]:
    date_range = DateRange.coerce(date_range)
    return sources_from_frame(events_frame(events, date_range), settings=settings)
