"""
streamclip Segment Selection

Responsibilities:
- Validate a job's time window before any I/O
- Keep the segments whose timestamps fall in [start, end)

Invariants:
- Untimestamped segments are never selected
- Output preserves input relative order
- ts == start is included, ts == end is excluded
"""

from datetime import datetime
from typing import Iterable

from streamclip.contracts import Segment, SelectionWindow
from streamclip.errors import EmptySelectionError
from streamclip.utils import iso_utc


def parse_window(start: str | datetime, end: str | datetime) -> SelectionWindow:
    """
    Validate and build the selection window.

    Raises:
        InvalidWindowError: If an instant is unparsable or end <= start.
    """
    return SelectionWindow.parse(start, end)


def select_segments(segments: Iterable[Segment], window: SelectionWindow) -> list[Segment]:
    """
    Filter segments to those inside the half-open window.

    Args:
        segments: Segments in source order
        window: Validated selection window

    Returns:
        Selected segments, input order preserved.

    Raises:
        EmptySelectionError: If nothing falls inside the window.
    """
    selected = [
        seg for seg in segments
        if seg.timestamp is not None and window.contains(seg.timestamp)
    ]
    if not selected:
        raise EmptySelectionError(
            f"No segments in range [{iso_utc(window.start)} → {iso_utc(window.end)}]"
        )
    return selected
