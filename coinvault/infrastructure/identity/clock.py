"""Adapter: system wall clock."""

from datetime import datetime, timezone

from coinvault.domain.identity.ports import Clock


class SystemClock(Clock):
    """Current UTC time from the operating system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
