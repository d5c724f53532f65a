"""
timestamps.py - Timestamp encoding and decoding for the wire protocol.

The server emits ISO-8601 timestamps with and without fractional
seconds and with and without a trailing "Z". Naive timestamps are
taken to be UTC. All datetimes handed back are timezone-aware.
"""

import re
from datetime import datetime, timedelta, timezone

from decodey_sync.errors import DecodeFailed

_ISO_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(Z|z|[+-]\d{2}:?\d{2})?$"
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | int | float, field: str | None = None) -> datetime:
    """
    Parse a wire timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (fractional seconds of any length, "Z",
    numeric offsets or no zone at all) and numeric epoch seconds.

    Raises:
        DecodeFailed: If the value is not a recognisable timestamp
    """
    if isinstance(value, bool):
        raise DecodeFailed("Timestamp must not be a boolean", field=field)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise DecodeFailed(
                f"Epoch timestamp out of range: {e}", body=str(value), field=field
            ) from e

    if not isinstance(value, str):
        raise DecodeFailed(
            f"Unsupported timestamp type {type(value).__name__}", field=field
        )

    match = _ISO_PATTERN.match(value.strip())
    if match is None:
        raise DecodeFailed("Malformed ISO-8601 timestamp", body=value, field=field)

    year, month, day, hour, minute, second, fraction, zone = match.groups()
    # Python datetimes carry microseconds only
    micros = int((fraction or "0")[:6].ljust(6, "0"))

    try:
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), micros,
            tzinfo=_parse_zone(zone),
        )
    except ValueError as e:
        raise DecodeFailed(f"Invalid timestamp: {e}", body=value, field=field) from e

    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Encode a datetime as ISO-8601 UTC with microseconds and a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace(
        "+00:00", "Z"
    )


def to_epoch_seconds(value: datetime) -> float:
    """Seconds since the Unix epoch, as sent in sinceTimestamp."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _parse_zone(zone: str | None) -> timezone:
    if zone is None or zone in ("Z", "z"):
        return timezone.utc
    sign = -1 if zone[0] == "-" else 1
    digits = zone[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
    return timezone(sign * offset)
