"""
streamclip Pipeline Orchestrator

PIPELINE STEPS (FIXED ORDER):

    1. Validate feed, window  → check_feed, ClipJob.window() (no I/O)
    2. Fingerprint            → streamclip.identity
    3. Fetch playlist         → streamclip.playlist       (bounded retry)
    4. Select segments        → streamclip.selection
    5. Assemble audio         → streamclip.assembler      (ffmpeg, per format)
    6. Analytics (psd only)   → streamclip.analytics
    7. Persist                → streamclip.writer

INVARIANTS:
    - The first fatal error propagates unchanged
    - Cancellation is checked before every suspension point
    - Intermediate files live in a fingerprint-scoped work directory that
      is removed when the job ends, successfully or not
    - MetaRecord.segments is exactly the selector output
"""

import logging
import shutil

from streamclip.analytics import analyze_file
from streamclip.audio import SAMPLE_RATE
from streamclip.context import PipelineContext
from streamclip.contracts import ArtifactSet, ClipJob, MetaRecord, OutputFormat
from streamclip.errors import JobCancelledError, WriteError
from streamclip.identity import check_feed, clip_basename, fingerprint
from streamclip.jobs import create_workdir
from streamclip.playlist import fetch_with_retry
from streamclip.selection import select_segments
from streamclip.utils import iso_utc, now_iso, serialize_json_compact


logger = logging.getLogger(__name__)


def _check_cancel(ctx: PipelineContext, step: str) -> None:
    if ctx.cancel.is_set():
        raise JobCancelledError(f"Job cancelled before {step}")


def run_job(job: ClipJob, ctx: PipelineContext) -> ArtifactSet:
    """
    Run the full pipeline for one job.

    Args:
        job: The clip request
        ctx: Settings and collaborators

    Returns:
        ArtifactSet with the persisted locations.

    Raises:
        InvalidFeedError, InvalidWindowError, IndexFetchError, IndexFormatError,
        EmptySelectionError, AssemblyError, DecodeError, WriteError,
        JobCancelledError
    """
    check_feed(job.feed)
    window = job.window()
    fp = fingerprint(job.feed, window.start, window.end, job.formats)
    logger.info(
        "Job %s: %s [%s → %s] formats=%s",
        fp, job.feed, iso_utc(window.start), iso_utc(window.end), ",".join(job.format_values),
    )

    _check_cancel(ctx, "playlist fetch")
    segments = fetch_with_retry(
        ctx.playlist,
        ctx.index_url(job),
        attempts=ctx.settings.index_retries,
        backoff=ctx.settings.retry_backoff,
        cancel=ctx.cancel,
    )
    selected = select_segments(segments, window)
    logger.info("Job %s: selected %d of %d segments", fp, len(selected), len(segments))

    basename = clip_basename(job.feed, window, fp)
    workdir = create_workdir(ctx.settings.work_root, basename)
    try:
        _check_cancel(ctx, "assembly")
        result = ctx.assembler.assemble(selected, job.formats, workdir, basename, cancel=ctx.cancel)
        result.raise_first()

        outputs = {fmt: path for fmt, path in result.outputs.items() if job.wants(fmt)}

        if job.wants(OutputFormat.METRICS):
            _check_cancel(ctx, "analytics")
            metrics = analyze_file(
                result.outputs[OutputFormat.RAW_AUDIO],
                frame_size=ctx.settings.frame_size,
            )
            logger.info(
                "Job %s: %d PSD frames, rms=%.6f, crest=%.3f",
                fp, metrics.frame_count, metrics.rms, metrics.crest_factor,
            )
            metrics_path = workdir / f"{basename}.{OutputFormat.METRICS.extension}"
            try:
                metrics_path.write_text(serialize_json_compact(metrics.to_dict()))
            except OSError as e:
                raise WriteError(f"Failed to write metrics for {basename}: {e}") from e
            outputs[OutputFormat.METRICS] = metrics_path

        record = MetaRecord(
            job=job,
            segments=tuple(selected),
            invocations=result.invocations,
            fingerprint=fp,
            created_at=now_iso(),
            sample_rate=SAMPLE_RATE,
        )

        _check_cancel(ctx, "write")
        artifacts = ctx.writer.write(job, window, fp, outputs, record)
    finally:
        shutil.rmtree(workdir, ignore_errors=True)

    logger.info("Job %s complete: %s", fp, ", ".join(sorted(artifacts.as_dict())))
    return artifacts
