"""
forecasting.py
==============
Short-horizon revenue and click forecasts from a daily series.

Method:
- Linear regression over the last 14 days gives the trend (slope) and its fit (R²)
- A trailing 7-day moving average gives the current daily baseline
- Day-of-week averages over the last 30 days scale each forecast day by its weekday
- The coefficient of variation of the last 14 days sizes confidence bands

No model state survives a call; the same series always yields the same forecast.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.linear_model import LinearRegression
from sklearn.metrics import r2_score

from config import Settings, settings as default_settings
from schemas import DailyBucket, Interval, Prediction, PredictionIntervals, Trend
from utils import clamp, safe_div

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = "Insufficient data for accurate prediction"

# Two-sided 95% normal quantile
Z_95 = 1.96

DEFAULT_VOLATILITY = 0.5
MIN_CONFIDENCE, MAX_CONFIDENCE = 0.3, 0.95
STRONG_TREND = 0.1
SEASONAL_UPSIDE, SEASONAL_DOWNSIDE = 1.1, 0.9
HIGH_VOLATILITY = 0.3
STRONG_FIT = 0.7


class RegressionFit(NamedTuple):
    slope: float
    intercept: float
    r2: float


# ── Building blocks ───────────────────────────────────────────────────────────

def linear_regression(values: Sequence[float]) -> RegressionFit:
    """
    Least-squares line through ``values`` against x = 0..n-1.

    R² is clamped to be non-negative. A constant series has nothing left to
    explain, so its fit counts as perfect (R² = 1) instead of dividing by zero.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n == 0:
        return RegressionFit(0.0, 0.0, 0.0)

    ss_tot = float(((y - y.mean()) ** 2).sum())
    if n == 1 or ss_tot <= 1e-12 * max(1.0, float((y ** 2).sum())):
        return RegressionFit(0.0, float(y.mean()), 1.0)

    x = np.arange(n).reshape(-1, 1)
    model = LinearRegression().fit(x, y)
    r2 = max(0.0, float(r2_score(y, model.predict(x))))
    return RegressionFit(float(model.coef_[0]), float(model.intercept_), r2)


def moving_average(values: Sequence[float], window: int = 7) -> List[float]:
    """Trailing means over complete windows only (empty if fewer than ``window`` values)."""
    return (
        pd.Series(values, dtype=float)
          .rolling(window)
          .mean()
          .dropna()
          .tolist()
    )


def volatility(values: Sequence[float]) -> float:
    """
    Coefficient of variation (population stddev / mean), clamped to [0, 1].
    0.5 when there are fewer than two points or the mean is not positive.
    """
    data = np.asarray(values, dtype=float)
    if len(data) < 2 or data.mean() <= 0:
        return DEFAULT_VOLATILITY
    return clamp(float(stats.variation(data)), 0.0, 1.0)


def weekday_factors(series: Sequence[DailyBucket], min_days: int = 14) -> List[float]:
    """
    Day-of-week multipliers, Monday first.

    Revenue is averaged per weekday (weekdays absent from the window average 0);
    each factor is that weekday's average over the mean of all seven, so a
    full week of factors sums to 7. All 1.0 when the window is shorter than
    ``min_days`` or has no revenue.
    """
    if len(series) < min_days:
        return [1.0] * 7

    frame = pd.DataFrame({
        "weekday": [b.date.weekday() for b in series],
        "revenue": [b.revenue for b in series],
    })
    averages = frame.groupby("weekday")["revenue"].mean().reindex(range(7), fill_value=0.0)
    overall = float(averages.mean())
    if overall <= 0:
        return [1.0] * 7
    return (averages / overall).tolist()


def seasonal_factor(series: Sequence[DailyBucket], min_days: int = 14) -> float:
    """Day-of-week multiplier for the last day in ``series``."""
    if not series:
        return 1.0
    return weekday_factors(series, min_days)[series[-1].date.weekday()]


def classify_trend(slope: float, baseline: float, threshold: float = 0.05) -> Trend:
    """up/down when the daily slope exceeds ``threshold`` of the baseline, else stable."""
    if slope > baseline * threshold:
        return Trend.UP
    if slope < -baseline * threshold:
        return Trend.DOWN
    return Trend.STABLE


def _baseline(values: Sequence[float], window: int) -> float:
    averages = moving_average(values, window)
    return averages[-1] if averages else 0.0


def classify_series_trend(values: Sequence[float], settings: Optional[Settings] = None) -> Trend:
    """
    Trend of an arbitrary daily series using the forecaster's own regression,
    baseline and threshold. Short series are stable.
    """
    settings = settings or default_settings
    if len(values) < settings.MIN_FORECAST_DAYS:
        return Trend.STABLE
    recent = list(values)[-settings.RECENT_WINDOW_DAYS:]
    fit = linear_regression(recent)
    return classify_trend(
        fit.slope, _baseline(recent, settings.MOVING_AVERAGE_WINDOW), settings.TREND_THRESHOLD
    )


def project(
    baseline: float,
    slope: float,
    horizon: int,
    factors: Optional[Sequence[float]] = None,
    first_weekday: int = 0,
) -> int:
    """
    Total over the next ``horizon`` days, never negative.

    Each day continues the trend line from the baseline and is scaled by the
    factor of its own weekday; day 1 falls on ``first_weekday`` (Monday = 0).
    """
    days = np.arange(1, horizon + 1)
    daily = baseline + slope * days
    if factors is not None:
        daily = daily * np.asarray(factors, dtype=float)[(first_weekday + days - 1) % 7]
    return max(0, int(round(float(daily.sum()))))


def _interval(point: int, vol: float) -> Interval:
    margin = point * vol * Z_95
    return Interval(lower=max(0.0, point - margin), upper=point + margin)


# ── Forecast ──────────────────────────────────────────────────────────────────

def insufficient_data_prediction() -> Prediction:
    return Prediction(
        confidence=0.5,
        trend=Trend.STABLE,
        seasonal_factor=1.0,
        volatility=DEFAULT_VOLATILITY,
        factors=[INSUFFICIENT_DATA],
        model_accuracy=0.5,
        sufficient_data=False,
    )


def generate_predictions(series: Sequence[DailyBucket], settings: Optional[Settings] = None) -> Prediction:
    """
    Next-week and next-month revenue/click forecasts with 95% bands.

    Fewer than ``MIN_FORECAST_DAYS`` points → the all-zero insufficient-data fallback.
    """
    settings = settings or default_settings
    series = list(series)
    if len(series) < settings.MIN_FORECAST_DAYS:
        logger.debug("Forecast skipped: %d days < %d", len(series), settings.MIN_FORECAST_DAYS)
        return insufficient_data_prediction()

    recent = series[-settings.RECENT_WINDOW_DAYS:]
    historical = series[-settings.HISTORICAL_WINDOW_DAYS:]
    revenue = [b.revenue for b in recent]
    clicks = [float(b.clicks) for b in recent]

    revenue_fit = linear_regression(revenue)
    clicks_fit = linear_regression(clicks)

    avg_revenue = _baseline(revenue, settings.MOVING_AVERAGE_WINDOW)
    avg_clicks = _baseline(clicks, settings.MOVING_AVERAGE_WINDOW)

    weekly = weekday_factors(historical)
    last_weekday = series[-1].date.weekday()
    factor = weekly[last_weekday]
    first_weekday = (last_weekday + 1) % 7
    revenue_vol = volatility(revenue)
    clicks_vol = volatility(clicks)

    trend = classify_trend(revenue_fit.slope, avg_revenue, settings.TREND_THRESHOLD)
    trend_strength = safe_div(abs(revenue_fit.slope), avg_revenue or 1.0)

    next_week_revenue = project(avg_revenue, revenue_fit.slope, 7, weekly, first_weekday)
    next_week_clicks = project(avg_clicks, clicks_fit.slope, 7, weekly, first_weekday)
    next_month_revenue = project(avg_revenue, revenue_fit.slope, 30, weekly, first_weekday)
    next_month_clicks = project(avg_clicks, clicks_fit.slope, 30, weekly, first_weekday)

    accuracy = (revenue_fit.r2 + clicks_fit.r2) / 2
    confidence = clamp(accuracy * (1 - revenue_vol), MIN_CONFIDENCE, MAX_CONFIDENCE)

    factors = []
    if trend != Trend.STABLE and trend_strength > STRONG_TREND:
        factors.append(f"Strong {trend.value}ward trend detected")
    if factor > SEASONAL_UPSIDE:
        factors.append("Positive seasonal impact expected")
    if factor < SEASONAL_DOWNSIDE:
        factors.append("Seasonal downturn anticipated")
    if revenue_vol > HIGH_VOLATILITY:
        factors.append("High volatility in recent performance")
    if revenue_fit.r2 > STRONG_FIT:
        factors.append("Strong predictive pattern identified")
    if not factors:
        factors.append("Stable performance with moderate predictability")

    return Prediction(
        next_week_revenue=next_week_revenue,
        next_week_clicks=next_week_clicks,
        next_month_revenue=next_month_revenue,
        next_month_clicks=next_month_clicks,
        confidence=confidence,
        trend=trend,
        seasonal_factor=factor,
        volatility=(revenue_vol + clicks_vol) / 2,
        factors=factors,
        model_accuracy=accuracy,
        intervals=PredictionIntervals(
            revenue=_interval(next_week_revenue, revenue_vol),
            clicks=_interval(next_week_clicks, clicks_vol),
        ),
        sufficient_data=True,
    )
