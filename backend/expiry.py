"""
Cookie expiry normalization.

Browsers, extension exports and our own database all describe cookie expiry
differently: Unix seconds, JavaScript milliseconds, ISO or HTTP date strings, datetimes,
or -1 for a session cookie. parse_expiry() turns any of them into one of a
small set of variants, and to_instant() collapses those into a naive UTC
datetime (or a reason why there is none).
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Union

# Numeric expiries below this are Unix seconds, anything else is milliseconds.
SECONDS_THRESHOLD = 10_000_000_000

EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Seconds:
    value: float


@dataclass(frozen=True)
class Millis:
    value: float


@dataclass(frozen=True)
class Instant:
    value: datetime


@dataclass(frozen=True)
class Missing:
    pass


@dataclass(frozen=True)
class Invalid:
    reason: str  # "invalid_date" or "unknown_format"


Expiry = Union[Seconds, Millis, Instant, Missing, Invalid]


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_expiry(value: Any) -> Expiry:
    """Classify a raw expiry value without interpreting it any further."""
    if value is None or value == "":
        return Missing()

    if isinstance(value, bool):
        return Invalid("unknown_format")

    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return Invalid("invalid_date")
        # Playwright/CDP report session cookies as -1
        if value <= 0:
            return Missing()
        if value < SECONDS_THRESHOLD:
            return Seconds(float(value))
        return Millis(float(value))

    if isinstance(value, datetime):
        return Instant(_naive_utc(value))

    if isinstance(value, str):
        text = value.strip()
        try:
            return Instant(_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))))
        except ValueError:
            pass
        # HTTP Expires format, e.g. "Wed, 21 Oct 2015 07:28:00 GMT"
        try:
            return Instant(_naive_utc(parsedate_to_datetime(text)))
        except (TypeError, ValueError, IndexError):
            return Invalid("invalid_date")

    return Invalid("unknown_format")


def to_instant(expiry: Expiry) -> Expiry:
    """Resolve Seconds/Millis into an Instant. Other variants pass through."""
    try:
        if isinstance(expiry, Seconds):
            return Instant(EPOCH + timedelta(seconds=expiry.value))
        if isinstance(expiry, Millis):
            return Instant(EPOCH + timedelta(milliseconds=expiry.value))
    except OverflowError:
        return Invalid("invalid_date")
    return expiry


def expiry_to_datetime(value: Any) -> Optional[datetime]:
    """Convenience for persistence: raw value -> naive UTC datetime or None."""
    resolved = to_instant(parse_expiry(value))
    if isinstance(resolved, Instant):
        return resolved.value
    return None
