"""
core/clock.py -- Injectable source of the current instant.

Token issuance, decode-time expiry checks and the store's is_active()
predicate all take "now" from a Clock rather than calling datetime.now()
inline, so tests can pin or advance time without patching.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time. The only Clock used outside tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
