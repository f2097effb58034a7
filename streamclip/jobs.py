"""
streamclip Jobs - Job construction and work directory creation.

Responsibilities:
- Build ClipJobs from CLI arguments and CSV manifest rows
- Create fingerprint-scoped temporary work directories

Forbidden:
- No window validation (ClipJob.window() owns that, per job)
- No pipeline execution
"""

import csv
import tempfile
from pathlib import Path
from typing import Iterable

from streamclip.contracts import DEFAULT_DESTINATION, ClipJob, OutputFormat


# Manifest column → ClipJob field; first matching column wins
MANIFEST_COLUMNS = {
    "feed": ("feedSlug", "feed"),
    "start": ("start",),
    "end": ("end",),
    "comment": ("comment",),
    "feed_id": ("feedId", "feed_id"),
}


class ManifestError(ValueError):
    """Raised when a manifest file cannot be turned into jobs."""


def create_workdir(work_root: Path, basename: str) -> Path:
    """
    Create a fresh work directory for one job attempt.

    The directory name starts with the clip base name (which ends in the
    job fingerprint) followed by a random suffix, so concurrent or
    repeated attempts of the same job never share intermediate files.

    Args:
        work_root: Root for temporary work directories
        basename: Clip base name

    Returns:
        Path to the created directory.
    """
    work_root.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=f"{basename}.", dir=work_root))


def _column(row: dict[str, str], field: str) -> str | None:
    for name in MANIFEST_COLUMNS[field]:
        value = row.get(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return None


def read_manifest(
    path: Path,
    formats: Iterable[OutputFormat | str],
    destination: str = DEFAULT_DESTINATION,
) -> list[ClipJob]:
    """
    Read a CSV manifest into jobs, one per row, in file order.

    Columns:
        feedSlug, start, end (required); comment, feedId (optional)

    Args:
        path: CSV file with a header row
        formats: Formats applied to every job
        destination: Store prefix applied to every job

    Returns:
        List of ClipJob. Windows are not validated here.

    Raises:
        ManifestError: If the file is unreadable, lacks required columns,
            or a row has no feed.
    """
    formats = frozenset(formats)
    try:
        with open(path, newline="") as f:
            reader = csv.DictReader(f)
            header = reader.fieldnames or []
            for field in ("feed", "start", "end"):
                if not any(name in header for name in MANIFEST_COLUMNS[field]):
                    raise ManifestError(
                        f"Manifest {path} is missing column {MANIFEST_COLUMNS[field][0]!r}"
                    )
            rows = list(reader)
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    jobs = []
    for line_no, row in enumerate(rows, start=2):
        feed = _column(row, "feed")
        if feed is None:
            raise ManifestError(f"Manifest {path} line {line_no}: empty feed")
        jobs.append(ClipJob(
            feed=feed,
            start=_column(row, "start") or "",
            end=_column(row, "end") or "",
            formats=formats,
            feed_id=_column(row, "feed_id"),
            destination=destination,
            comment=_column(row, "comment"),
        ))
    return jobs
