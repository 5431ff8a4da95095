"""Datetime helpers.

Provides UTC timestamp helpers without using deprecated ``datetime.utcnow()``.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return current UTC time as a timezone-aware datetime.

    Model timestamp columns are declared ``DateTime(timezone=True)``, which
    requires aware values on write.
    """
    return datetime.now(UTC)
