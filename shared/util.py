import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Epoch values above this are treated as milliseconds
_EPOCH_MILLIS_THRESHOLD = 10**11


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with microseconds and a Z suffix"""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="microseconds")
        .replace("+00:00", "Z")
    )


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce a stored timestamp (datetime, ISO string, epoch s/ms) to an aware datetime"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, dict):
        # Exported store timestamps: {"seconds": ..., "nanoseconds": ...}
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)):
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            return to_datetime(seconds + nanos / 1e9)
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    return None


def order_key(value: Any) -> Optional[float]:
    """Sortable form of an order-by field; None when the value cannot be ordered"""
    if isinstance(value, bool):
        return None
    moment = to_datetime(value)
    if moment is not None:
        return moment.timestamp()
    return None
