"""
streamclip Utilities - Shared helper functions.

Responsibilities:
- Instant parsing and canonical UTC formatting
- JSON serialization helpers

Invariants:
- All datetimes leaving this module are timezone-aware UTC
- Naive inputs are interpreted as UTC
- JSON output is deterministic (sorted keys, 2-space indent, trailing newline)
"""

import json
import math
from datetime import datetime, timezone
from typing import Any


def now_iso() -> str:
    """
    Return current time as ISO-8601 UTC with a "Z" suffix.

    Returns:
        ISO-8601 formatted string, e.g., "2025-09-18T12:05:07.123456Z"
    """
    return iso_utc(datetime.now(timezone.utc))


def parse_instant(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Args:
        value: ISO-8601 string ("Z" suffix accepted) or datetime.

    Returns:
        Timezone-aware datetime in UTC.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_utc(dt: datetime) -> str:
    """
    Canonical ISO-8601 UTC form used for identity and metadata.

    Whole seconds render without a fraction: "2025-09-18T12:00:00Z".
    """
    dt = dt.astimezone(timezone.utc)
    timespec = "microseconds" if dt.microsecond else "seconds"
    return dt.replace(tzinfo=None).isoformat(timespec=timespec) + "Z"


def compact_timestamp(dt: datetime) -> str:
    """Compact UTC timestamp for file names, e.g. "20250918T120000Z"."""
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def finite_or_none(value: float) -> float | None:
    """Map NaN/Inf to None so documents stay strict JSON."""
    value = float(value)
    return value if math.isfinite(value) else None


def serialize_json(data: Any) -> str:
    """
    Serialize data to JSON deterministically.

    Args:
        data: JSON-compatible data (no NaN/Inf).

    Returns:
        JSON string with sorted keys, 2-space indent, trailing newline.
    """
    return json.dumps(data, indent=2, sort_keys=True, allow_nan=False) + "\n"


def serialize_json_compact(data: Any) -> str:
    """
    Deterministic JSON without whitespace, for large numeric documents (PSD).
    """
    return json.dumps(data, separators=(",", ":"), sort_keys=True, allow_nan=False) + "\n"
