"""
data_generator.py
=================
Simulates realistic affiliate traffic: product views, outbound clicks and
the conversions they lead to.

Product Thinking:
- Traffic has a weekly rhythm that peaks over the weekend
- A few products carry most of the traffic (power-law popularity)
- Referrers differ in volume; a large share of traffic arrives "Direct"
- Only a fraction of views click out, and a small fraction of clicks convert
- Order values follow a LogNormal distribution (few high-value orders)
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Tuple

import numpy as np

from schemas import ConversionEvent, Event, EventKind

logger = logging.getLogger(__name__)

# ── Reproducibility ──────────────────────────────────────────────────────────
SEED = 42

# ── Config ───────────────────────────────────────────────────────────────────
START_DATE    = date(2024, 5, 1)
N_DAYS        = 60
N_PRODUCTS    = 12
BASE_VIEWS    = 120                    # average daily views across the catalog
DAILY_GROWTH  = 0.01                   # compounding daily traffic growth

REFERRERS     = [None, "google.com", "facebook.com", "instagram.com", "pinterest.com", "tiktok.com", "reddit.com"]
REFERRER_W    = [0.30, 0.25, 0.15, 0.12, 0.08, 0.06, 0.04]

# Day-of-week multipliers on traffic (Monday = 0)
WEEKDAY_MULT  = [1.00, 0.95, 0.95, 1.00, 1.10, 1.25, 1.20]

CLICK_RATE    = 0.35                   # view → outbound click
CONVERSION_P  = 0.06                   # click → purchase


def _product_catalog() -> List[Tuple[str, str, float]]:
    """(product_id, title, popularity weight) with power-law popularity."""
    weights = 1.0 / np.arange(1, N_PRODUCTS + 1) ** 1.1
    weights = weights / weights.sum()
    return [
        (f"prod-{i:03d}", f"Product {i:03d}", float(w))
        for i, w in enumerate(weights, start=1)
    ]


def _timestamp(day: date, rng: np.random.RandomState) -> datetime:
    seconds = int(rng.randint(0, 24 * 60 * 60))
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(seconds=seconds)


def generate_events(
    start: date = START_DATE,
    days: int = N_DAYS,
    seed: int = SEED,
) -> Tuple[List[Event], List[ConversionEvent]]:
    """
    Simulate ``days`` days of traffic starting at ``start``.

    Every view may be followed by a click on the same product (same referrer),
    and every click may be followed by a conversion. Timestamps are ISO-8601
    strings, as delivered by the storage layer.
    """
    rng = np.random.RandomState(seed)
    catalog = _product_catalog()
    popularity = [w for _, _, w in catalog]

    events: List[Event] = []
    conversions: List[ConversionEvent] = []

    for offset in range(days):
        day = start + timedelta(days=offset)
        expected = BASE_VIEWS * (1 + DAILY_GROWTH) ** offset * WEEKDAY_MULT[day.weekday()]
        n_views = int(rng.poisson(expected))

        for _ in range(n_views):
            idx = int(rng.choice(len(catalog), p=popularity))
            product_id, title, _ = catalog[idx]
            referrer = REFERRERS[int(rng.choice(len(REFERRERS), p=REFERRER_W))]
            seen_at = _timestamp(day, rng)

            events.append(Event(
                timestamp=seen_at.isoformat(),
                kind=EventKind.VIEW.value,
                product_id=product_id,
                product_title=title,
                referrer_domain=referrer,
            ))
            if rng.random_sample() >= CLICK_RATE:
                continue   # Drop-off: viewer doesn't click out

            events.append(Event(
                timestamp=seen_at.isoformat(),
                kind=EventKind.CLICK.value,
                product_id=product_id,
                product_title=title,
                referrer_domain=referrer,
            ))
            if rng.random_sample() < CONVERSION_P:
                # LogNormal order value: median ~$55, some high-value outliers
                conversions.append(ConversionEvent(
                    timestamp=seen_at.isoformat(),
                    product_id=product_id,
                    order_value=round(float(rng.lognormal(mean=4.0, sigma=0.6)), 2),
                ))

    logger.debug("Generated %d events and %d conversions over %d days", len(events), len(conversions), days)
    return events, conversions
