"""Time helpers and the default clock."""

from datetime import datetime

from pytz import UTC


def epoch(t: datetime) -> int:
    """Convert a :class:`.datetime` to UNIX time."""
    delta = t - datetime.fromtimestamp(0, tz=UTC)
    return int(delta.total_seconds())


def normalize_email(email: str) -> str:
    """Canonical form of an e-mail address, used for lookups and keys."""
    return email.strip().lower()


class SystemClock(object):
    """Wall clock, in UTC."""

    def now(self) -> datetime:
        """Get the current time as a timezone-aware datetime."""
        return datetime.now(tz=UTC)
