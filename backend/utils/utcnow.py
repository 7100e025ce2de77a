"""UTC helpers shared by the clock, the snapshot stores and the renderers.

Every timestamp the leaderboard publishes is timezone-aware UTC.  Naive
datetimes coming from configuration or from upstream payloads are assumed
to already be in UTC.
"""

from datetime import datetime, timezone
from typing import Any, Optional

ISO_Z_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utcfromtimestamp(ts: float) -> datetime:
    """Convert a POSIX timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso_z(value: Optional[datetime]) -> Optional[str]:
    """Format as ``2006-01-02T15:04:05Z`` (seconds precision)."""
    if value is None:
        return None
    return ensure_utc(value).strftime(ISO_Z_FORMAT)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an upstream timestamp.

    Accepts ISO-8601 strings (with or without a trailing ``Z``), POSIX
    seconds, and the nanosecond integers the data node emits.  Returns
    ``None`` for anything unparseable.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, (int, float)) or (isinstance(raw, str) and raw.strip().lstrip("-").isdigit()):
        try:
            number = int(raw)
        except (TypeError, ValueError, OverflowError):
            return None
        # Nanosecond epochs are far beyond any plausible seconds value
        if abs(number) > 10**14:
            number = number // 1_000_000_000
        elif abs(number) > 10**11:
            number = number // 1000
        try:
            return utcfromtimestamp(number)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # fromisoformat rejects more than 6 fractional digits
        if "." in text:
            head, _, tail = text.partition(".")
            digits = ""
            rest = ""
            for i, ch in enumerate(tail):
                if not ch.isdigit():
                    rest = tail[i:]
                    break
                digits += ch
            text = f"{head}.{digits[:6]}{rest}" if digits else head + rest
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None
