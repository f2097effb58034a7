"""
streamclip Settings - Runtime configuration.

Responsibilities:
- Defaults for paths, timeouts, retry and worker limits
- Environment overrides (STREAMCLIP_<FIELD>)

Invariants:
- Settings are frozen; use dataclasses.replace() for per-run overrides
- DSP constants (sample rate, bands) live in streamclip.audio, not here
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping


ENV_PREFIX = "STREAMCLIP_"


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration for a pipeline run.

    Attributes:
        output_root: Root of the local artifact store
        work_root: Root for per-job temporary work directories
        ffmpeg_bin: Transcoder executable
        index_url_template: Playlist URL for a feed, formatted with {feed}
        fetch_timeout: Seconds allowed for one playlist request
        tool_timeout: Seconds allowed for one ffmpeg invocation
        index_retries: Total playlist fetch attempts
        retry_backoff: Initial backoff between fetch attempts (doubles)
        workers: Batch jobs in flight
        frame_size: PSD frame length in samples
    """

    output_root: Path = Path("output")
    work_root: Path = Path("tmp")
    ffmpeg_bin: str = "ffmpeg"
    index_url_template: str = "https://live.orcasound.net/{feed}/playlist.m3u8"
    fetch_timeout: float = 30.0
    tool_timeout: float = 600.0
    index_retries: int = 3
    retry_backoff: float = 1.0
    workers: int = 1
    frame_size: int = 1024

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.index_retries < 1:
            raise ValueError("index_retries must be >= 1")
        if self.frame_size < 2:
            raise ValueError("frame_size must be >= 2")

    def index_url_for(self, feed: str) -> str:
        return self.index_url_template.format(feed=feed)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from STREAMCLIP_* environment variables.

        Args:
            environ: Mapping to read (default: os.environ)

        Returns:
            Settings with environment values coerced to field types.
        """
        environ = os.environ if environ is None else environ
        defaults = cls()
        values: dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            current = getattr(defaults, f.name)
            if isinstance(current, Path):
                values[f.name] = Path(raw)
            elif isinstance(current, int):
                values[f.name] = int(raw)
            elif isinstance(current, float):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw

        return cls(**values)
