"""
engine.py
=========
Main entry point: raw event lists in, analytics report out.

Architecture:
    analytics.py    →  daily buckets, overview KPIs, rankings
    forecasting.py  →  trend, seasonality, volatility, forecasts
    insights.py     →  prioritized recommendations
    engine.py       →  report assembly & realtime snapshots

Usage:
    configure_logging()          # from config; level defaults to settings.LOG_LEVEL
    report = generate_report(events, conversions, {"start": "2024-05-01", "end": "2024-05-31"})
    payload = report.model_dump(mode="json", by_alias=True)

The engine performs no I/O and keeps no state between calls, so independent
requests may call it concurrently.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from analytics import (
    conversions_frame,
    daily_frame,
    events_frame,
    overview_from_frames,
    previous_period_revenue,
    products_from_frames,
    sources_from_frame,
    to_buckets,
)
from config import Settings, settings as default_settings
from forecasting import generate_predictions
from insights import generate_insights
from schemas import (
    AnalyticsReport,
    ConversionEvent,
    DateRange,
    Event,
    EventKind,
    HourTotals,
    MetricChange,
    RealtimeSnapshot,
    WindowTotals,
)
from utils import pct_change

logger = logging.getLogger(__name__)


# ── Analytics report ──────────────────────────────────────────────────────────

def generate_report(
    events: Iterable[Event],
    conversions: Iterable[ConversionEvent],
    date_range,
    settings: Optional[Settings] = None,
) -> AnalyticsReport:
    """
    Full analytics report for ``date_range``.

    ``events`` and ``conversions`` may extend before the range: conversions in
    the preceding equal-length window feed the revenue growth figure, and
    everything outside the range is otherwise ignored.

    Raises InvalidRangeError before any aggregation when the range is invalid.
    """
    settings = settings or default_settings
    date_range = DateRange.coerce(date_range)
    events, conversions = list(events), list(conversions)

    ev = events_frame(events, date_range)
    cv = conversions_frame(conversions, date_range)

    time_series = to_buckets(daily_frame(ev, cv, date_range))
    overview = overview_from_frames(
        ev, cv,
        revenue_growth=pct_change(
            sum(b.revenue for b in time_series), previous_period_revenue(conversions, date_range)
        ),
    )
    top_products = products_from_frames(ev, cv, date_range, settings=settings)
    traffic_sources = sources_from_frame(ev, settings=settings)
    predictions = generate_predictions(time_series, settings=settings)
    insights = generate_insights(overview, top_products, predictions, time_series, settings=settings)

    logger.info(
        "Analytics report %s..%s: %d events, %d conversions, %d insights",
        date_range.start, date_range.end, len(ev), len(cv), len(insights),
    )
    return AnalyticsReport(
        date_range=date_range,
        overview=overview,
        time_series=time_series,
        top_products=top_products,
        traffic_sources=traffic_sources,
        predictions=predictions,
        insights=insights,
    )


# ── Realtime ──────────────────────────────────────────────────────────────────

def _count_clicks(events: Iterable[Event]) -> int:
    return sum(1 for e in events if e.kind == EventKind.CLICK.value)


def realtime_snapshot(
    last_day_events: Iterable[Event],
    last_day_conversions: Iterable[ConversionEvent],
    last_hour_events: Iterable[Event],
    as_of: Optional[datetime] = None,
) -> RealtimeSnapshot:
    """
    Totals over streams the caller already filtered to the last 24 hours and
    the last hour. ``as_of`` stamps the snapshot (defaults to now, UTC).
    """
    conversions = list(last_day_conversions)
    return RealtimeSnapshot(
        last_24_hours=WindowTotals(
            clicks=_count_clicks(last_day_events),
            conversions=len(conversions),
            revenue=float(sum(c.order_value for c in conversions)),
        ),
        last_hour=HourTotals(clicks=_count_clicks(last_hour_events)),
        timestamp=as_of or datetime.now(timezone.utc),
    )


def detect_significant_changes(
    previous: Optional[RealtimeSnapshot],
    current: RealtimeSnapshot,
    threshold: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> List[MetricChange]:
    """
    24-hour metrics whose change since ``previous`` reaches ``threshold`` percent.
    Metrics that were 0 before have no meaningful percentage change and are skipped.
    """
    if previous is None:
        return []
    settings = settings or default_settings
    if threshold is None:
        threshold = settings.SIGNIFICANT_CHANGE_THRESHOLD

    changes = []
    for metric in ("clicks", "conversions", "revenue"):
        old_value = float(getattr(previous.last_24_hours, metric))
        new_value = float(getattr(current.last_24_hours, metric))
        if old_value <= 0:
            continue
        change = pct_change(new_value, old_value)
        if abs(change) >= threshold:
            changes.append(MetricChange(
                metric=metric,
                old_value=old_value,
                new_value=new_value,
                change_percent=change,
            ))
    return changes
