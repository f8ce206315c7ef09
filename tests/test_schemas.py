"""
Tests for value objects, settings and the shared helpers.
"""

import logging
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from config import Settings, configure_logging
from exceptions import AnalyticsError, InvalidRangeError
from schemas import ConversionEvent, DateRange, Event, Horizon, Overview, Prediction
from utils import clamp, fmt_currency, fmt_pct, pct, pct_change, safe_div, source_color


class TestDateRange:

    def test_from_pair_of_strings(self):
        date_range = DateRange.coerce(("2024-03-04", "2024-03-10"))

        assert date_range == DateRange(start=date(2024, 3, 4), end=date(2024, 3, 10))
        assert date_range.days == 7

    def test_from_mapping_and_instance(self):
        date_range = DateRange.coerce({"start": date(2024, 3, 4), "end": "2024-03-04"})

        assert date_range.days == 1
        assert DateRange.coerce(date_range) == date_range

    def test_offsets_convert_to_utc_day(self):
        date_range = DateRange.coerce(("2024-03-04T23:30:00-05:00", datetime(2024, 3, 6, tzinfo=timezone.utc)))

        assert date_range.start == date(2024, 3, 5)
        assert date_range.end == date(2024, 3, 6)

    @pytest.mark.parametrize("value", [
        None,
        ("not-a-date", "2024-03-06"),
        {"start": "2024-03-04"},
        ("2024-03-04", "2024-03-05", "2024-03-06"),
    ])
    def test_unusable_input(self, value):
        with pytest.raises(InvalidRangeError):
            DateRange.coerce(value)

    def test_start_after_end(self):
        with pytest.raises(InvalidRangeError) as excinfo:
            DateRange.coerce(("2024-03-10", "2024-03-04"))

        error = excinfo.value
        assert isinstance(error, AnalyticsError)
        assert error.code == "INVALID_RANGE"
        assert error.details == {"start": "2024-03-10", "end": "2024-03-04"}


class TestEvents:

    def test_missing_order_value_is_zero(self):
        assert ConversionEvent(timestamp=None, order_value=None).order_value == 0.0

    def test_camel_case_input(self):
        event = ConversionEvent.model_validate(
            {"timestamp": "2024-03-04T12:00:00Z", "productId": "p1", "orderValue": 12.5}
        )

        assert event.product_id == "p1"
        assert event.order_value == 12.5

    def test_negative_order_value_rejected(self):
        with pytest.raises(ValidationError):
            ConversionEvent(timestamp=None, order_value=-1.0)

    def test_unknown_kind_is_kept(self):
        assert Event(timestamp="2024-03-04", kind="share").kind == "share"

    def test_models_are_frozen(self):
        with pytest.raises(ValidationError):
            Overview().total_clicks = 5


class TestPrediction:

    def test_for_horizon(self):
        prediction = Prediction(next_week_revenue=700, next_week_clicks=70,
                                next_month_revenue=3000, next_month_clicks=300)

        assert prediction.for_horizon(Horizon.WEEK) == (700, 70)
        assert prediction.for_horizon("month") == (3000, 300)

    def test_unknown_horizon(self):
        with pytest.raises(ValueError):
            Prediction().for_horizon("year")

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Prediction(confidence=1.5)


class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.BENCHMARK_CONVERSION_RATE == 3.5
        assert settings.BENCHMARK_AVERAGE_ORDER_VALUE == 75.0
        assert settings.TOP_PRODUCTS_LIMIT == 10
        assert settings.TRAFFIC_SOURCES_LIMIT == 6

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ANALYTICS_BENCHMARK_CONVERSION_RATE", "2.5")

        assert Settings().BENCHMARK_CONVERSION_RATE == 2.5

    def test_configure_logging(self):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, root.handlers[:]
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
            assert root.handlers
        finally:
            root.handlers[:] = previous_handlers
            root.setLevel(previous_level)


class TestUtils:

    def test_safe_div(self):
        assert safe_div(1.0, 4.0) == 0.25
        assert safe_div(1.0, 0.0) == 0.0
        assert safe_div(1.0, 0.0, default=1.0) == 1.0
        assert safe_div(float("inf"), 1.0) == 0.0

    def test_percentages(self):
        assert pct(1, 4) == 25.0
        assert pct(1, 0) == 0.0
        assert pct_change(150.0, 100.0) == pytest.approx(50.0)
        assert pct_change(50.0, 0.0) == 0.0

    def test_clamp(self):
        assert clamp(1.2, 0.0, 1.0) == 1.0
        assert clamp(-0.2, 0.0, 1.0) == 0.0
        assert clamp(0.4, 0.0, 1.0) == 0.4

    def test_palette_wraps(self):
        assert source_color(6) == source_color(0)

    @pytest.mark.parametrize("value, expected", [
        (40, "$40.00"),
        (1500, "$1.5K"),
        (2_500_000, "$2.50M"),
    ])
    def test_fmt_currency(self, value, expected):
        assert fmt_currency(value) == expected

    def test_fmt_pct(self):
        assert fmt_pct(12.345) == "12.3%"
        assert fmt_pct(50, digits=0) == "50%"
