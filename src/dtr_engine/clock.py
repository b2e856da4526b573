"""Clock used to stamp computed records.

Services take a clock callable instead of reading the current time
themselves, so tests can pin it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Current UTC time as a naive datetime (storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def fixed_clock(instant: datetime) -> Clock:
    """Return a clock that always reports ``instant``."""

    def _now() -> datetime:
        return instant

    return _now
