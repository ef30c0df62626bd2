"""Conversion between native timestamps and portable ISO-8601 text.

The document store hands back ``datetime`` values, which cannot appear in a
backup file. ``encode`` turns them into UTC strings; ``decode`` turns
strings in exactly that shape back into aware ``datetime`` objects.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any

# YYYY-MM-DDTHH:MM:SS(.fraction)?Z
ISO_TIMESTAMP_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?Z$"
)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string ending in ``Z``.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(text: str) -> datetime:
    """Parse a ``YYYY-MM-DDTHH:MM:SS(.fraction)?Z`` string.

    Raises:
        ValueError: If the text is not in that exact shape.
    """
    match = ISO_TIMESTAMP_PATTERN.match(text)
    if not match:
        raise ValueError(f"Not an ISO-8601 UTC timestamp: {text!r}")

    year, month, day, hour, minute, second, fraction = match.groups()
    # datetime only keeps microseconds
    micros = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year),
        int(month),
        int(day),
        int(hour),
        int(minute),
        int(second),
        micros,
        tzinfo=timezone.utc,
    )


def is_timestamp_string(value: Any) -> bool:
    """Check whether a value is a string in the portable timestamp shape."""
    return isinstance(value, str) and ISO_TIMESTAMP_PATTERN.match(value) is not None


def encode(value: Any) -> Any:
    """Replace every native timestamp in a nested structure with its ISO string.

    Returns a new structure; the input is left untouched.
    """
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict):
        return {key: encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    return value


def decode(value: Any) -> Any:
    """Rehydrate every ISO timestamp string in a nested structure.

    Strings that only look date-like (no ``T``, no ``Z``, offsets) are
    left as they are. Returns a new structure.
    """
    if isinstance(value, str):
        if is_timestamp_string(value):
            try:
                return parse_timestamp(value)
            except ValueError:
                # Right shape, impossible date (e.g. month 13)
                return value
        return value
    if isinstance(value, dict):
        return {key: decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode(item) for item in value]
    return value


def dumps(obj: Any) -> str:
    """Serialize a structure to portable JSON text in one encoding pass."""
    return json.dumps(encode(obj), indent=2, ensure_ascii=False)
