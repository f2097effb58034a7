"""
streamclip Batch Aggregator

Runs the pipeline once per job and writes per-(feed, day) summaries.

Responsibilities:
- Isolate per-job failures into BatchFailure entries
- Optional bounded worker pool (ThreadPoolExecutor)
- One pairs.json per (destination, feed, start date) group

Invariants:
- len(entries) == len(jobs), in input order
- Every job appears exactly once, as BatchSuccess or BatchFailure
- Cancellation aborts the whole batch; it is never recorded as a row
- Jobs whose start cannot be parsed are summarised under <feed>/undated
- A summary group that cannot be written is logged and skipped; the
  remaining groups are still written
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Sequence

from streamclip.context import PipelineContext
from streamclip.contracts import BatchFailure, BatchSuccess, BatchSummaryEntry, ClipJob
from streamclip.errors import JobCancelledError, StreamclipError
from streamclip.identity import partition_key
from streamclip.pipeline import run_job
from streamclip.schema import ensure_valid
from streamclip.utils import now_iso, parse_instant, serialize_json


logger = logging.getLogger(__name__)

SUMMARY_NAME = "pairs.json"
UNDATED = "undated"


def _run_one(job: ClipJob, ctx: PipelineContext) -> BatchSummaryEntry:
    try:
        return BatchSuccess(job=job, artifacts=run_job(job, ctx))
    except JobCancelledError:
        raise
    except StreamclipError as e:
        logger.warning("❌ %s %s→%s: %s", job.feed, job.start, job.end, e)
        return BatchFailure.from_exception(job, e)
    except Exception as e:
        logger.exception("❌ %s %s→%s: unexpected error", job.feed, job.start, job.end)
        return BatchFailure.from_exception(job, e)


def run_batch(
    jobs: Iterable[ClipJob],
    ctx: PipelineContext,
    workers: int | None = None,
) -> list[BatchSummaryEntry]:
    """
    Run every job and return one summary entry per job, in input order.

    Args:
        jobs: Jobs to run
        ctx: Settings and collaborators shared by all jobs
        workers: Jobs in flight (default: ctx.settings.workers)

    Returns:
        List of BatchSuccess / BatchFailure.

    Raises:
        JobCancelledError: If the batch is cancelled.
    """
    jobs = list(jobs)
    workers = workers or ctx.settings.workers

    if workers <= 1:
        entries = [_run_one(job, ctx) for job in jobs]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="streamclip") as pool:
            futures = [pool.submit(_run_one, job, ctx) for job in jobs]
            try:
                entries = [f.result() for f in futures]
            except BaseException:
                ctx.cancel.set()
                for f in futures:
                    f.cancel()
                raise

    failed = sum(1 for e in entries if not e.ok)
    logger.info("Batch complete: %d jobs, %d ok, %d failed", len(entries), len(entries) - failed, failed)
    return entries


def _job_day(job: ClipJob) -> datetime | None:
    try:
        return parse_instant(job.start)
    except (TypeError, ValueError):
        return None


def summary_key(job: ClipJob) -> str:
    """Store key of the summary document the job belongs to."""
    day = _job_day(job)
    if day is None:
        prefix = "/".join(p for p in (job.destination.strip("/"), job.feed, UNDATED) if p)
    else:
        prefix = partition_key(job.destination, job.feed, day)
    return f"{prefix}/{SUMMARY_NAME}"


def write_summaries(entries: Sequence[BatchSummaryEntry], ctx: PipelineContext) -> list[str]:
    """
    Write one summary document per (destination, feed, day) group.

    Each document replaces the previous summary of that partition. A group
    whose document is rejected by the schema or the store is logged and
    left out; the other groups are unaffected.

    Returns:
        Locations of the written documents, in first-seen group order.
    """
    groups: dict[str, list[BatchSummaryEntry]] = {}
    for entry in entries:
        groups.setdefault(summary_key(entry.job), []).append(entry)

    locations = []
    for key, group in groups.items():
        day = _job_day(group[0].job)
        document = {
            "feed": group[0].job.feed,
            "date": f"{day:%Y-%m-%d}" if day else None,
            "generated_at": now_iso(),
            "entries": [e.to_dict() for e in group],
        }
        try:
            ensure_valid(document, "summary")
            location = ctx.store.put_text(serialize_json(document), key)
        except (OSError, ValueError) as e:
            logger.error("❌ Batch summary %s (%d entries) not written: %s", key, len(group), e)
            continue
        logger.info("✅ Batch summary (%d entries) → %s", len(group), location)
        locations.append(location)
    return locations


def run_and_summarize(
    jobs: Iterable[ClipJob],
    ctx: PipelineContext,
    workers: int | None = None,
) -> tuple[list[BatchSummaryEntry], list[str]]:
    """run_batch followed by write_summaries."""
    entries = run_batch(jobs, ctx, workers=workers)
    return entries, write_summaries(entries, ctx)
