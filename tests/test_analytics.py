"""
Tests for daily aggregation, overview KPIs and rankings.
"""

from datetime import date, datetime

import pytest

from analytics import (
    DIRECT_SOURCE,
    aggregate_daily,
    compute_overview,
    compute_revenue_growth,
    compute_top_products,
    compute_traffic_sources,
    previous_period,
)
from config import Settings
from exceptions import InvalidRangeError
from schemas import DateRange, Event, Overview, Trend
from utils import TRAFFIC_SOURCE_COLORS
from factories import MONDAY, click, conversion, day, view


class TestAggregateDaily:
    """Buckets must cover the range contiguously and reproduce raw totals"""

    def test_one_zero_filled_bucket_per_day(self):
        buckets = aggregate_daily([click(day(2))], [], (MONDAY, day(4)))

        assert len(buckets) == 5
        assert [b.date for b in buckets] == [day(i) for i in range(5)]
        assert [b.clicks for b in buckets] == [0, 0, 1, 0, 0]
        assert all(b.views == 0 and b.conversions == 0 and b.revenue == 0 for b in buckets)

    def test_single_day_range(self):
        buckets = aggregate_daily([], [], {"start": "2024-03-04", "end": "2024-03-04"})

        assert len(buckets) == 1
        assert buckets[0].date == MONDAY

    def test_counts_each_kind_separately(self, week):
        events = [
            click(day(0)), click(day(0)), view(day(0)),
            view(day(2)),
            click(day(4), hour=23),
        ]
        conversions = [conversion(day(0), 10.5), conversion(day(4), 20.0)]

        buckets = aggregate_daily(events, conversions, week)

        assert (buckets[0].clicks, buckets[0].views, buckets[0].conversions) == (2, 1, 1)
        assert buckets[0].revenue == pytest.approx(10.5)
        assert buckets[2].views == 1
        assert (buckets[4].clicks, buckets[4].conversions) == (1, 1)
        assert buckets[4].revenue == pytest.approx(20.0)

    def test_skips_bad_timestamps_out_of_range_and_unknown_kinds(self, week):
        events = [
            click(day(1)),
            Event(timestamp="not-a-date", kind="click"),
            Event(timestamp=None, kind="view"),
            click(day(-1)),
            click(day(7)),
            Event(timestamp="2024-03-05T10:00:00Z", kind="share"),
        ]
        conversions = [conversion(day(1), 5.0), conversion(day(9), 99.0)]

        buckets = aggregate_daily(events, conversions, week)

        assert sum(b.clicks for b in buckets) == 1
        assert sum(b.views for b in buckets) == 0
        assert sum(b.conversions for b in buckets) == 1
        assert sum(b.revenue for b in buckets) == pytest.approx(5.0)

    def test_buckets_by_utc_calendar_day(self, week):
        events = [
            Event(timestamp="2024-03-05T01:30:00+05:00", kind="click"),   # 2024-03-04 20:30 UTC
            Event(timestamp=datetime(2024, 3, 6, 8, 0), kind="view"),     # naive → UTC
            Event(timestamp="2024-03-07", kind="click"),
        ]

        buckets = aggregate_daily(events, [], week)

        assert buckets[0].clicks == 1
        assert buckets[2].views == 1
        assert buckets[3].clicks == 1

    def test_totals_match_raw_events(self, generated):
        events, conversions = generated
        buckets = aggregate_daily(events, conversions, ("2024-05-01", "2024-06-29"))

        assert len(buckets) == 60
        assert sum(b.clicks for b in buckets) == sum(1 for e in events if e.kind == "click")
        assert sum(b.views for b in buckets) == sum(1 for e in events if e.kind == "view")
        assert sum(b.conversions for b in buckets) == len(conversions)
        assert sum(b.revenue for b in buckets) == pytest.approx(sum(c.order_value for c in conversions))

    def test_inverted_range_raises(self):
        with pytest.raises(InvalidRangeError):
            aggregate_daily([], [], (day(3), day(1)))


class TestOverview:
    """Overview ratios are guarded against empty denominators"""

    def test_ratios(self, week):
        events = [click(day(i % 7)) for i in range(4)] + [view(day(i % 7)) for i in range(8)]
        conversions = [conversion(day(1), 30.0), conversion(day(2), 50.0)]

        overview = compute_overview(events, conversions, week)

        assert overview.total_clicks == 4
        assert overview.total_views == 8
        assert overview.total_conversions == 2
        assert overview.total_revenue == pytest.approx(80.0)
        assert overview.conversion_rate == pytest.approx(50.0)
        assert overview.average_order_value == pytest.approx(40.0)
        assert overview.click_through_rate == pytest.approx(50.0)

    def test_empty_input_is_all_zero(self, week):
        assert compute_overview([], [], week) == Overview()

    def test_conversion_rate_capped_at_100(self, week):
        conversions = [conversion(day(0), 10.0) for _ in range(3)]

        overview = compute_overview([click(day(0))], conversions, week)

        assert overview.conversion_rate == 100.0

    def test_click_through_rate_without_views(self, week):
        overview = compute_overview([click(day(0)), click(day(1))], [], week)

        assert overview.click_through_rate == 0.0
        assert overview.conversion_rate == 0.0
        assert overview.average_order_value == 0.0


class TestRevenueGrowth:
    """Growth compares against the preceding equal-length window"""

    def test_previous_period_is_sliding_and_equal_length(self):
        prior = previous_period(DateRange(start=date(2024, 3, 11), end=date(2024, 3, 17)))

        assert prior == DateRange(start=date(2024, 3, 4), end=date(2024, 3, 10))

    def test_growth_against_previous_window(self):
        current = DateRange(start=date(2024, 3, 11), end=date(2024, 3, 17))
        conversions = [
            conversion(date(2024, 3, 5), 60.0),
            conversion(date(2024, 3, 9), 40.0),
            conversion(date(2024, 3, 12), 150.0),
        ]

        assert compute_revenue_growth(conversions, current) == pytest.approx(50.0)
        assert compute_overview([], conversions, current).revenue_growth == pytest.approx(50.0)

    def test_no_previous_revenue_means_no_growth(self, week):
        assert compute_revenue_growth([conversion(day(1), 100.0)], week) == 0.0


class TestTopProducts:
    """Products ranked by revenue, ties kept in first-seen order"""

    def test_ranking_and_rates(self, week):
        events = [
            view(day(0), "p1", title="Alpha"),
            click(day(0), "p1", title="Alpha"),
            click(day(0), "p2", title="Beta"),
            click(day(1), "p2", title="Beta"),
            click(day(1), "p3", title="Gamma"),
            view(day(2), "p4", title="Delta"),
        ]
        conversions = [
            conversion(day(1), 100.0, "p2"),
            conversion(day(1), 100.0, "p1"),
            conversion(day(2), 50.0, "p3"),
            conversion(day(2), 500.0, "p9"),
        ]

        products = compute_top_products(events, conversions, week)

        assert [p.product_id for p in products] == ["p1", "p2", "p3", "p4"]
        assert [p.name for p in products] == ["Alpha", "Beta", "Gamma", "Delta"]
        assert [p.clicks for p in products] == [1, 2, 1, 0]
        assert [p.revenue for p in products] == pytest.approx([100.0, 100.0, 50.0, 0.0])
        assert products[0].conversion_rate == pytest.approx(100.0)
        assert products[1].conversion_rate == pytest.approx(50.0)
        assert products[3].conversion_rate == 0.0

    def test_name_falls_back_to_product_id(self, week):
        products = compute_top_products([click(day(0), "sku-1")], [], week)

        assert products[0].name == "sku-1"

    def test_limited_to_top_ten(self, week):
        events = [click(day(0), f"p{i}") for i in range(12)]

        assert len(compute_top_products(events, [], week)) == 10

    def test_no_products(self, week):
        assert compute_top_products([click(day(0))], [conversion(day(0), 10.0, "p1")], week) == []

    @pytest.mark.parametrize("revenues, expected", [
        ([10, 20, 30, 40, 50, 60, 70], Trend.UP),
        ([70, 60, 50, 40, 30, 20, 10], Trend.DOWN),
        ([50, 50, 50, 50, 50, 50, 50], Trend.STABLE),
    ])
    def test_trend_follows_daily_revenue(self, week, revenues, expected):
        events = [click(day(0), "p1")]
        conversions = [conversion(day(i), value, "p1") for i, value in enumerate(revenues)]

        products = compute_top_products(events, conversions, week)

        assert products[0].trend == expected

    def test_short_range_trend_is_stable(self):
        conversions = [conversion(day(i), 10.0 * (i + 1), "p1") for i in range(5)]

        products = compute_top_products([click(day(0), "p1")], conversions, (MONDAY, day(4)))

        assert products[0].trend == Trend.STABLE


class TestTrafficSources:
    """Referrers ranked by clicks; missing referrer is Direct"""

    def test_ranking_percentages_and_colors(self, week):
        referrers = ["google.com", None, "facebook.com", "google.com", "facebook.com",
                     "google.com", None, "", "facebook.com", "facebook.com"]
        events = [click(day(0), referrer=r) for r in referrers] + [view(day(0), referrer="bing.com")]

        sources = compute_traffic_sources(events, week)

        assert [s.source for s in sources] == ["facebook.com", "google.com", DIRECT_SOURCE]
        assert [s.clicks for s in sources] == [4, 3, 3]
        assert [s.percentage_of_total for s in sources] == pytest.approx([40.0, 30.0, 30.0])
        assert [s.display_color for s in sources] == TRAFFIC_SOURCE_COLORS[:3]

    def test_percentages_use_all_clicks(self, week):
        events = [click(day(0), referrer=f"site{i}.com") for i in range(8)]

        sources = compute_traffic_sources(events, week)

        assert len(sources) == 6
        assert all(s.percentage_of_total == pytest.approx(12.5) for s in sources)

    def test_palette_wraps(self, week):
        events = [click(day(0), referrer=f"site{i}.com") for i in range(8)]

        sources = compute_traffic_sources(events, week, settings=Settings(TRAFFIC_SOURCES_LIMIT=8))

        assert len(sources) == 8
        assert sources[6].display_color == TRAFFIC_SOURCE_COLORS[0]

    def test_no_clicks(self, week):
        assert compute_traffic_sources([view(day(0), referrer="google.com")], week) == []
