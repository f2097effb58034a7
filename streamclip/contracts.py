"""
streamclip Data Contracts

Typed records flowing through the pipeline.

This module provides:
- OutputFormat: Requested artifact kinds (wav, flac, psd)
- ClipJob: Immutable request for one clip
- SelectionWindow: Validated half-open [start, end) interval
- Segment: One playlist entry (uri + program date-time)
- Metrics: Spectral/acoustic analytics for one clip
- MetaRecord: Write-once description of how artifacts were produced
- ArtifactSet: Locations of persisted artifacts + their MetaRecord
- BatchSuccess / BatchFailure: Discriminated batch summary entries

INVARIANTS:
- Records are frozen; nothing is mutated after construction
- A SelectionWindow is never empty (end > start)
- ArtifactSet keys are a subset of job formats plus "metadata"
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import numpy as np

from streamclip.errors import InvalidWindowError, StreamclipError
from streamclip.utils import finite_or_none, iso_utc, parse_instant


PIPELINE_VERSION = "1.0.0"
DEFAULT_DESTINATION = "clips"
METADATA_KEY = "metadata"


# =============================================================================
# OutputFormat
# =============================================================================


class OutputFormat(str, Enum):
    """
    Artifact kinds a job may request.

    Values are the short names used on the command line, in file
    extensions, and as ArtifactSet keys.
    """

    RAW_AUDIO = "wav"
    LOSSLESS_AUDIO = "flac"
    METRICS = "psd"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def extension(self) -> str:
        if self is OutputFormat.METRICS:
            return "psd.json"
        return self.value

    @property
    def is_audio(self) -> bool:
        return self is not OutputFormat.METRICS

    @classmethod
    def parse(cls, value: "str | OutputFormat") -> "OutputFormat":
        """Accept a value ("wav") or a descriptive label ("raw-audio")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for fmt in cls:
            if text in (fmt.value, fmt.label):
                return fmt
        valid = sorted([f.value for f in cls] + [f.label for f in cls])
        raise ValueError(f"Unknown output format: {value!r}. Valid: {valid}")


_LABELS = {
    OutputFormat.RAW_AUDIO: "raw-audio",
    OutputFormat.LOSSLESS_AUDIO: "lossless-audio",
    OutputFormat.METRICS: "metrics",
}


def canonical_formats(formats) -> list[OutputFormat]:
    """De-duplicate and sort formats by value for order-independent identity."""
    return sorted({OutputFormat.parse(f) for f in formats}, key=lambda f: f.value)


# =============================================================================
# SelectionWindow
# =============================================================================


@dataclass(frozen=True)
class SelectionWindow:
    """
    Half-open time interval [start, end).

    Attributes:
        start: Inclusive lower bound (aware UTC)
        end: Exclusive upper bound (aware UTC)

    Rules:
        - end > start, enforced at construction
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidWindowError(
                f"Invalid time window: {iso_utc(self.start)} → {iso_utc(self.end)}"
            )

    @classmethod
    def parse(cls, start: str | datetime, end: str | datetime) -> "SelectionWindow":
        """
        Build a window from raw instants.

        Raises:
            InvalidWindowError: If either instant is unparsable or end <= start.
        """
        try:
            start_dt = parse_instant(start)
            end_dt = parse_instant(end)
        except (TypeError, ValueError) as e:
            raise InvalidWindowError(f"Invalid time window: {start} → {end} ({e})") from e
        return cls(start=start_dt, end=end_dt)

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


# =============================================================================
# ClipJob
# =============================================================================


@dataclass(frozen=True)
class ClipJob:
    """
    Immutable request for one clip.

    Attributes:
        feed: Feed slug (e.g., "orcasound_lab")
        start: Window start as given (ISO-8601)
        end: Window end as given (ISO-8601)
        formats: Non-empty set of requested OutputFormat
        feed_id: Optional secondary feed identifier
        destination: Key prefix inside the artifact store
        index_url: Playlist URL override (default comes from Settings)
        comment: Free text carried into batch summaries

    Rules:
        - Construction does no I/O and does not validate the window;
          window() does, so batch rows fail individually
    """

    feed: str
    start: str
    end: str
    formats: frozenset = frozenset({OutputFormat.RAW_AUDIO})
    feed_id: str | None = None
    destination: str = DEFAULT_DESTINATION
    index_url: str | None = None
    comment: str | None = None

    def __post_init__(self):
        if not self.feed:
            raise ValueError("ClipJob.feed must not be empty")
        formats = frozenset(OutputFormat.parse(f) for f in self.formats)
        if not formats:
            raise ValueError("ClipJob.formats must not be empty")
        object.__setattr__(self, "formats", formats)
        for name in ("start", "end"):
            value = getattr(self, name)
            if isinstance(value, datetime):
                object.__setattr__(self, name, iso_utc(parse_instant(value)))

    def window(self) -> SelectionWindow:
        return SelectionWindow.parse(self.start, self.end)

    @property
    def format_values(self) -> list[str]:
        return [f.value for f in canonical_formats(self.formats)]

    def wants(self, fmt: OutputFormat) -> bool:
        return fmt in self.formats

    def to_dict(self) -> dict[str, Any]:
        return {
            "feed": self.feed,
            "feed_id": self.feed_id,
            "start": self.start,
            "end": self.end,
            "formats": self.format_values,
            "destination": self.destination,
            "index_url": self.index_url,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClipJob":
        return cls(
            feed=data["feed"],
            start=data["start"],
            end=data["end"],
            formats=frozenset(data["formats"]),
            feed_id=data.get("feed_id"),
            destination=data.get("destination", DEFAULT_DESTINATION),
            index_url=data.get("index_url"),
            comment=data.get("comment"),
        )


# =============================================================================
# Segment
# =============================================================================


@dataclass(frozen=True)
class Segment:
    """
    One media playlist entry.

    Attributes:
        uri: Absolute segment URI
        timestamp: Program date-time of the segment, or None if untagged
        duration: EXTINF duration in seconds, or None if absent
    """

    uri: str
    timestamp: datetime | None = None
    duration: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "timestamp": iso_utc(self.timestamp) if self.timestamp else None,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Segment":
        ts = data.get("timestamp")
        return cls(
            uri=data["uri"],
            timestamp=parse_instant(ts) if ts else None,
            duration=data.get("duration"),
        )


# =============================================================================
# Metrics
# =============================================================================


@dataclass(frozen=True)
class Metrics:
    """
    Analytics computed from the first channel of a clip.

    Attributes:
        rms: Root-mean-square level of all samples
        psd: Magnitude spectra, shape (frames, frame_size // 2), time order
        band_powers: Mean magnitude per configured band label
        snr_db: Loudest band vs. RMS in dB (uncalibrated proxy)
        crest_factor: Peak absolute sample over RMS
        transience_rate: Transient frame share scaled by 60
        sample_rate: Sample rate of the analysed audio
        frame_size: PSD frame length in samples
        num_samples: Number of analysed samples
    """

    rms: float
    psd: np.ndarray
    band_powers: dict[str, float]
    snr_db: float
    crest_factor: float
    transience_rate: float
    sample_rate: int
    frame_size: int
    num_samples: int

    @property
    def frame_count(self) -> int:
        return int(self.psd.shape[0])

    def to_dict(self) -> dict[str, Any]:
        return {
            "rms": finite_or_none(self.rms),
            "psd": self.psd.tolist(),
            "bandPowers": {k: finite_or_none(v) for k, v in self.band_powers.items()},
            "snr_db": finite_or_none(self.snr_db),
            "crestFactor": finite_or_none(self.crest_factor),
            "transienceRate": finite_or_none(self.transience_rate),
            "sample_rate": self.sample_rate,
            "frame_size": self.frame_size,
            "num_samples": self.num_samples,
            "frame_count": self.frame_count,
        }


# =============================================================================
# MetaRecord
# =============================================================================


@dataclass(frozen=True)
class MetaRecord:
    """
    Write-once record of how a clip's artifacts were produced.

    Attributes:
        job: The originating ClipJob
        segments: Exactly the SegmentSelector output for the job
        invocations: Transcoder argument list per assembled format
        fingerprint: JobIdentity fingerprint
        created_at: ISO-8601 UTC creation time
        pipeline_version: Version of the pipeline for reproducibility
        sample_rate: Output sample rate of the audio artifacts
    """

    job: ClipJob
    segments: tuple[Segment, ...]
    invocations: dict[str, list[str]]
    fingerprint: str
    created_at: str
    pipeline_version: str = PIPELINE_VERSION
    sample_rate: int = 48000

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job.to_dict(),
            "segments": [s.to_dict() for s in self.segments],
            "invocations": {k: list(v) for k, v in self.invocations.items()},
            "fingerprint": self.fingerprint,
            "created_at": self.created_at,
            "pipeline_version": self.pipeline_version,
            "sample_rate": self.sample_rate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetaRecord":
        return cls(
            job=ClipJob.from_dict(data["job"]),
            segments=tuple(Segment.from_dict(s) for s in data["segments"]),
            invocations={k: list(v) for k, v in data["invocations"].items()},
            fingerprint=data["fingerprint"],
            created_at=data["created_at"],
            pipeline_version=data.get("pipeline_version", PIPELINE_VERSION),
            sample_rate=data.get("sample_rate", 48000),
        )


# =============================================================================
# ArtifactSet
# =============================================================================


@dataclass(frozen=True)
class ArtifactSet:
    """
    Persisted artifacts for one job.

    Attributes:
        locations: Format value → location (path or URL)
        metadata: The job's MetaRecord
        metadata_location: Location of the metadata sidecar
    """

    locations: dict[str, str]
    metadata: MetaRecord
    metadata_location: str

    @property
    def fingerprint(self) -> str:
        return self.metadata.fingerprint

    def as_dict(self) -> dict[str, str]:
        return {**self.locations, METADATA_KEY: self.metadata_location}


# =============================================================================
# Batch summary entries
# =============================================================================


@dataclass(frozen=True)
class BatchSuccess:
    job: ClipJob
    artifacts: ArtifactSet

    ok = True

    def to_dict(self) -> dict[str, Any]:
        return {
            **_job_summary(self.job),
            "status": "ok",
            "fingerprint": self.artifacts.fingerprint,
            "artifacts": self.artifacts.as_dict(),
        }


@dataclass(frozen=True)
class BatchFailure:
    job: ClipJob
    error: str
    error_code: str = StreamclipError.code

    ok = False

    @classmethod
    def from_exception(cls, job: ClipJob, exc: BaseException) -> "BatchFailure":
        code = getattr(exc, "code", "UNEXPECTED_ERROR")
        return cls(job=job, error=str(exc) or type(exc).__name__, error_code=code)

    def to_dict(self) -> dict[str, Any]:
        return {
            **_job_summary(self.job),
            "status": "error",
            "error": {"code": self.error_code, "message": self.error},
        }


BatchSummaryEntry = BatchSuccess | BatchFailure


def _job_summary(job: ClipJob) -> dict[str, Any]:
    return {
        "feed": job.feed,
        "feed_id": job.feed_id,
        "start": job.start,
        "end": job.end,
        "formats": job.format_values,
        "comment": job.comment,
    }
