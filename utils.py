"""
utils.py
========
Reusable display palette, guarded arithmetic and formatting helpers.
Centralizing these keeps the analytics modules free of divide-by-zero checks
and keeps every human-readable number formatted the same way.
"""

import math

# ── Traffic source palette ────────────────────────────────────────────────────
# Colors are assigned by rank position, wrapping after the last one.
TRAFFIC_SOURCE_COLORS = [
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#06b6d4",
]


def source_color(index: int) -> str:
    return TRAFFIC_SOURCE_COLORS[index % len(TRAFFIC_SOURCE_COLORS)]


# ── Guarded arithmetic ────────────────────────────────────────────────────────

def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Division that never yields NaN or Infinity.
    Returns ``default`` when the denominator is zero or the result is not finite.
    """
    if not denominator:
        return default
    result = numerator / denominator
    if not math.isfinite(result):
        return default
    return float(result)


def pct(part: float, whole: float) -> float:
    """``part`` as a percentage of ``whole`` (0 when ``whole`` is zero)."""
    return safe_div(part, whole) * 100


def pct_change(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current`` (0 when ``previous`` is zero)."""
    return safe_div(current - previous, previous) * 100


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


# ── Format helpers ────────────────────────────────────────────────────────────

def fmt_currency(n: float) -> str:
    if n >= 1_000_000:
        return f"${n/1_000_000:.2f}M"
    if n >= 1_000:
        return f"${n/1_000:.1f}K"
    return f"${n:.2f}"

def fmt_pct(n: float, digits: int = 1) -> str:
    return f"{n:.{digits}f}%"
