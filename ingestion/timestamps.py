"""
Timestamp normalization for vendor telemetry.

Vendor clocks are unreliable: timestamps arrive as ISO strings, free-form
date strings, epoch seconds, epoch milliseconds, or not at all. Nothing in
this module raises. A value that cannot be parsed is logged as a data
quality problem and replaced by the current time, so a bad clock never
blocks ingestion.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import logging
import math

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds, below are seconds
EPOCH_MILLIS_THRESHOLD = 1e12

MIN_PLAUSIBLE_YEAR = 2020
MAX_FUTURE_DRIFT = timedelta(minutes=60)
MAX_FUTURE_SUSPICIOUS = timedelta(days=365)
MAX_STALENESS = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def _parse_epoch(value: float) -> datetime:
    seconds = value / 1000.0 if value > EPOCH_MILLIS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _parse_string(value: str) -> datetime:
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = dateparser.parse(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_numeric_string(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def parse_timestamp(raw_value: Any) -> Optional[datetime]:
    """
    Parse a vendor timestamp into an aware UTC datetime.

    Returns None for missing or unparseable input.
    """
    if raw_value is None or isinstance(raw_value, bool):
        return None

    try:
        if isinstance(raw_value, datetime):
            parsed = raw_value if raw_value.tzinfo else raw_value.replace(tzinfo=timezone.utc)
        elif isinstance(raw_value, (int, float)):
            if not math.isfinite(raw_value):
                return None
            parsed = _parse_epoch(float(raw_value))
        elif isinstance(raw_value, str):
            if not raw_value.strip():
                return None
            if _is_numeric_string(raw_value.strip()):
                number = float(raw_value.strip())
                if not math.isfinite(number):
                    return None
                parsed = _parse_epoch(number)
            else:
                parsed = _parse_string(raw_value)
        else:
            return None
    except (ValueError, OverflowError, OSError, TypeError):
        return None

    return parsed.astimezone(timezone.utc)


def check_range(value: datetime, field_name: str, now: Optional[datetime] = None) -> bool:
    """
    Log data quality warnings for implausible timestamps.

    Returns True when the timestamp passed every check. Suspicious values
    are kept, never rejected.
    """
    now = now or _utcnow()
    plausible = True

    if value.year < MIN_PLAUSIBLE_YEAR:
        logger.warning(f"[data-quality] {field_name}: year {value.year} is before {MIN_PLAUSIBLE_YEAR} ({_to_iso(value)})")
        plausible = False

    if value - now > MAX_FUTURE_SUSPICIOUS:
        logger.warning(f"[data-quality] {field_name}: more than one year in the future ({_to_iso(value)})")
        plausible = False
    elif value - now > MAX_FUTURE_DRIFT:
        logger.warning(f"[data-quality] {field_name}: more than 60 minutes in the future ({_to_iso(value)})")
        plausible = False

    if now - value > MAX_STALENESS:
        logger.warning(f"[data-quality] {field_name}: more than 7 days old ({_to_iso(value)})")
        plausible = False

    return plausible


def normalize_timestamp(raw_value: Any, field_name: str, now: Optional[datetime] = None) -> str:
    """
    Normalize a vendor timestamp to an ISO-8601 UTC string.

    Args:
        raw_value: None, epoch seconds/milliseconds (number or numeric
            string), a date/time string, or a datetime
        field_name: Name used in data quality log lines
        now: Reference time (defaults to the current UTC time)

    Returns:
        ISO-8601 string with a +00:00 offset. The current time when the
        input is missing or unparseable.
    """
    now = now or _utcnow()

    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        logger.warning(f"[data-quality] {field_name}: missing timestamp, using current time")
        return _to_iso(now)

    parsed = parse_timestamp(raw_value)
    if parsed is None:
        logger.warning(f"[data-quality] {field_name}: unparseable timestamp {raw_value!r}, using current time")
        return _to_iso(now)

    check_range(parsed, field_name, now=now)
    return _to_iso(parsed)


def epoch_to_int(value: Any) -> Optional[int]:
    """
    Floor a possibly fractional epoch to an integer for BIGINT columns.

    Returns None for missing, non-numeric, non-finite or boolean input.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return math.floor(number)


def timestamp_to_epoch_ms(iso_value: str) -> int:
    """Epoch milliseconds of a string returned by normalize_timestamp"""
    return math.floor(datetime.fromisoformat(iso_value).timestamp() * 1000)
