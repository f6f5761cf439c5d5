"""
Timestamp helpers for token records.

Tokens store their timestamps as strings in a fixed-width RFC3339 UTC format with
nanosecond precision, e.g. ``2024-05-01T09:30:00.123456000Z``. Because every value
has the same width and zone, comparing the strings lexicographically gives the same
answer as comparing the instants, which is what the created_at range filters rely on.
"""
import re
from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Accepts the canonical form as well as the zone-less, trimmed-fraction form
# written by earlier versions of the service ("2023-07-04T10:00:00.5").
_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<zone>Z|[+-]00:00)?$",
)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as a nanosecond-precision UTC string."""
    value = value.astimezone(UTC)
    nanoseconds = value.microsecond * 1000
    return f"{value.strftime(TIMESTAMP_FORMAT)}.{nanoseconds:09d}Z"


def parse_timestamp(value: str) -> datetime:
    """
    Parse a stored timestamp string into an aware UTC datetime.

    Fractions finer than a microsecond are truncated.

    Raises:
        ValueError: If the value is not a recognised timestamp.
    """
    match = _TIMESTAMP_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid timestamp: {value!r}")

    base = datetime.strptime(match.group("base"), TIMESTAMP_FORMAT)
    fraction = (match.group("fraction") or "").ljust(9, "0")
    return base.replace(microsecond=int(fraction[:6]), tzinfo=UTC)


def _pluralise(amount: int, unit: str) -> str:
    if amount == 1:
        return f"a {unit}" if unit != "hour" else "an hour"
    return f"{amount} {unit}s"


def relative_time(value: datetime, now: datetime) -> str:
    """
    Describe ``value`` relative to ``now`` in words.

    Past instants read as "5 minutes ago", future ones as "in 2 days".
    """
    delta = (value - now).total_seconds()
    seconds = int(abs(delta))

    if seconds < 45:
        phrase = "a few seconds"
    elif seconds < 45 * 60:
        phrase = _pluralise(max(1, round(seconds / 60)), "minute")
    elif seconds < 22 * 3600:
        phrase = _pluralise(max(1, round(seconds / 3600)), "hour")
    elif seconds < 26 * 86400:
        phrase = _pluralise(max(1, round(seconds / 86400)), "day")
    elif seconds < 320 * 86400:
        phrase = _pluralise(max(1, round(seconds / (30 * 86400))), "month")
    else:
        phrase = _pluralise(max(1, round(seconds / (365 * 86400))), "year")

    return f"in {phrase}" if delta > 0 else f"{phrase} ago"
