"""
streamclip Job Identity - Deterministic fingerprints and artifact naming.

Responsibilities:
- Fingerprint a job from its defining fields
- Derive clip base names and date-partitioned keys
- Reject feed slugs that cannot be a single key segment

Invariants:
- fingerprint() is a pure function of (feed, start, end, formats)
- Format order never changes the fingerprint
- Equal instants in different ISO spellings give the same fingerprint
- Not a content hash: segment bytes never enter the digest
"""

import hashlib
import math
from datetime import datetime
from typing import Iterable

from streamclip.contracts import OutputFormat, SelectionWindow, canonical_formats
from streamclip.errors import InvalidFeedError
from streamclip.utils import compact_timestamp, iso_utc, parse_instant


FINGERPRINT_LENGTH = 8


def check_feed(feed: str) -> str:
    """
    Return `feed` if it can name one directory of the store layout.

    Raises:
        InvalidFeedError: If the slug is empty, is "." or "..", or contains
            a path separator.
    """
    if not feed or feed in (".", "..") or "/" in feed or "\\" in feed:
        raise InvalidFeedError(f"Invalid feed slug: {feed!r}")
    return feed


def fingerprint(
    feed: str,
    start: str | datetime,
    end: str | datetime,
    formats: Iterable[str | OutputFormat],
) -> str:
    """
    Compute the job fingerprint.

    Args:
        feed: Feed slug
        start: Window start
        end: Window end
        formats: Requested formats, any order

    Returns:
        First 8 hex characters of SHA-256 over
        "feed|start|end|fmt1,fmt2,..." with canonical UTC instants
        and sorted format values.
    """
    fmt_list = ",".join(f.value for f in canonical_formats(formats))
    payload = "|".join([
        feed,
        iso_utc(parse_instant(start)),
        iso_utc(parse_instant(end)),
        fmt_list,
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def clip_basename(feed: str, window: SelectionWindow, fp: str) -> str:
    """
    File base name shared by every artifact of a job.

    Example:
        orcasound_lab_20250918T120000Z_300s_1a2b3c4d
    """
    # half-up, so 2.5s names as 3s
    duration = int(math.floor(window.duration_seconds + 0.5))
    return f"{feed}_{compact_timestamp(window.start)}_{duration}s_{fp}"


def partition_key(destination: str, feed: str, day: datetime) -> str:
    """
    Store key prefix for a feed's day: <destination>/<feed>/<YYYY>/<MM>/<DD>.
    """
    parts = [destination.strip("/"), feed, f"{day:%Y}", f"{day:%m}", f"{day:%d}"]
    return "/".join(p for p in parts if p)
