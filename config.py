"""
config.py
=========
Tunable thresholds and benchmarks for the analytics engine.

Every value can be overridden from the environment with an ``ANALYTICS_``
prefix (e.g. ``ANALYTICS_BENCHMARK_CONVERSION_RATE=2.8``) or from a ``.env``
file. Public operations also accept an explicit ``Settings`` instance.
"""

import logging
import sys
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Industry benchmarks used by the insight rules
    BENCHMARK_CONVERSION_RATE: float = Field(default=3.5)
    BENCHMARK_AVERAGE_ORDER_VALUE: float = Field(default=75.0)

    # Forecasting windows (days)
    MIN_FORECAST_DAYS: int = Field(default=7, ge=1)
    RECENT_WINDOW_DAYS: int = Field(default=14, ge=2)
    HISTORICAL_WINDOW_DAYS: int = Field(default=30, ge=1)
    MOVING_AVERAGE_WINDOW: int = Field(default=7, ge=1)
    TREND_THRESHOLD: float = Field(default=0.05, ge=0)

    # Rankings
    TOP_PRODUCTS_LIMIT: int = Field(default=10, ge=1)
    TRAFFIC_SOURCES_LIMIT: int = Field(default=6, ge=1)

    # Realtime change detection (percent)
    SIGNIFICANT_CHANGE_THRESHOLD: float = Field(default=10.0, ge=0)

    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stream handler to the root logger at the configured level."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
