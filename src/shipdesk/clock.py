"""Default clock."""

from datetime import UTC, datetime


class SystemClock:
    """Wall clock returning timezone-aware UTC timestamps."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)
