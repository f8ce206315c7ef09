"""
exceptions.py
=============
Typed errors raised by the analytics engine.

Only truly invalid input raises. Sparse, empty or constant data is handled
inside the pipeline with documented fallback values.
"""

from typing import Any, Optional


class AnalyticsError(Exception):
    """Base exception for all analytics engine errors."""

    def __init__(self, code: str, message: str, details: Optional[Any] = None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(self.message)


class InvalidRangeError(AnalyticsError):
    """Raised when a date range is unparseable or starts after it ends."""

    def __init__(self, message: str = "Invalid date range", details: Optional[Any] = None):
        super().__init__(
            code="INVALID_RANGE",
            message=message,
            details=details,
        )
