"""Lenient numeric parsing for upstream payload fields.

A single malformed field must not abort a refresh cycle: it parses as zero
for that record only and is logged at DEBUG.
"""

from typing import Any

from utils.logger import get_logger

logger = get_logger("parsing")


def safe_float(raw: Any, field: str = "value") -> float:
    if raw is None or raw == "":
        return 0.0
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.debug("Unparseable numeric field, using 0", field=field, raw=str(raw)[:64])
        return 0.0


def safe_int(raw: Any, field: str = "value") -> int:
    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(raw))
        except (TypeError, ValueError, OverflowError):
            logger.debug("Unparseable integer field, using 0", field=field, raw=str(raw)[:64])
            return 0


def split_list(raw: Any) -> list[str]:
    """Split a comma separated parameter into trimmed, non-empty items."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(item).strip() for item in raw if str(item).strip()]
    return [part.strip() for part in str(raw).split(",") if part.strip()]
