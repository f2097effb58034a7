"""
streamclip Playlist Source - Fetch and parse a feed's HLS media playlist.

Responsibilities:
- HTTP GET of the playlist with an explicit timeout
- Reject variant (master) playlists
- Produce Segments in source order with absolute URIs

Invariants:
- Source order is preserved; segments are never re-sorted
- A segment's timestamp is its own EXT-X-PROGRAM-DATE-TIME or None
- PlaylistSource.fetch never retries; fetch_with_retry is the caller's policy
"""

import logging
import threading
import time
from typing import Callable
from urllib.parse import urljoin

import m3u8
import requests
from m3u8.parser import ParseError

from streamclip.contracts import Segment
from streamclip.errors import IndexFetchError, IndexFormatError, JobCancelledError
from streamclip.utils import parse_instant


logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


class PlaylistSource:
    """
    Fetches a leaf (media) playlist and turns it into Segments.

    The HTTP session is injected so callers own its lifetime and tests can
    substitute a stub with a compatible get().
    """

    def __init__(self, session: requests.Session | None = None, timeout: float = DEFAULT_FETCH_TIMEOUT):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def fetch(self, url: str) -> list[Segment]:
        """
        Fetch and parse the playlist at `url`.

        Raises:
            IndexFetchError: On transport failure, timeout or HTTP error status.
            IndexFormatError: If the document is a variant playlist or unparsable.
        """
        logger.debug("Fetching playlist %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise IndexFetchError(f"Failed to fetch playlist {url}: {e}") from e

        return parse_playlist(response.text, url)


def parse_playlist(text: str, url: str) -> list[Segment]:
    """
    Parse media playlist text fetched from `url`.

    Args:
        text: Playlist document
        url: Playlist URL, used to resolve relative segment URIs

    Returns:
        Segments in document order.

    Raises:
        IndexFormatError: If the document is not a media playlist.
    """
    if not text.lstrip().startswith("#EXTM3U"):
        raise IndexFormatError(f"Not an HLS playlist: {url}")

    try:
        playlist = m3u8.loads(text, uri=url)
    except (ParseError, ValueError) as e:
        raise IndexFormatError(f"Unparsable playlist {url}: {e}") from e

    if playlist.is_variant:
        raise IndexFormatError(
            "Provided playlist is a MasterPlaylist, expected a MediaPlaylist"
        )

    segments = []
    for seg in playlist.segments:
        ts = parse_instant(seg.program_date_time) if seg.program_date_time else None
        segments.append(Segment(uri=urljoin(url, seg.uri), timestamp=ts, duration=seg.duration))

    logger.debug("Parsed %d segments from %s", len(segments), url)
    return segments


def fetch_with_retry(
    source: PlaylistSource,
    url: str,
    attempts: int = 3,
    backoff: float = 1.0,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[Segment]:
    """
    Fetch with bounded retry on transport errors only.

    Args:
        source: PlaylistSource to call
        url: Playlist URL
        attempts: Total attempts (>= 1)
        backoff: Delay before the second attempt; doubles each retry
        cancel: Abort between attempts when set
        sleep: Injectable sleep for tests

    Raises:
        IndexFetchError: The last transport error once attempts run out.
        IndexFormatError: Immediately; format errors are deterministic.
        JobCancelledError: If cancelled between attempts.
    """
    delay = backoff
    for attempt in range(1, attempts + 1):
        if cancel is not None and cancel.is_set():
            raise JobCancelledError(f"Cancelled before fetching {url}")
        try:
            return source.fetch(url)
        except IndexFetchError as e:
            if attempt == attempts:
                raise
            logger.warning(
                "Playlist fetch attempt %d/%d failed, retrying in %.1fs: %s",
                attempt, attempts, delay, e,
            )
            sleep(delay)
            delay *= 2
    raise ValueError("attempts must be >= 1")
