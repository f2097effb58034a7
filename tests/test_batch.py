"""
streamclip Batch Tests

- One entry per job, input order, failures isolated
- Per-feed, per-day pairs.json summaries
- Worker pool and duplicate jobs
- A summary group that cannot be written does not stop the others
"""

import json
from pathlib import Path

import pytest

from streamclip.batch import SUMMARY_NAME, run_and_summarize, run_batch, summary_key, write_summaries
from streamclip.context import PipelineContext
from streamclip.contracts import BatchFailure, BatchSuccess, ClipJob
from streamclip.errors import JobCancelledError
from streamclip.schema import validate_document
from streamclip.store import LocalStore
from tests.conftest import FakeRunner


def job(start: str, end: str, feed: str = "orcasound_lab", **kwargs) -> ClipJob:
    return ClipJob(feed=feed, start=start, end=end, **kwargs)


def mixed_jobs() -> list[ClipJob]:
    """Five jobs, two with invalid windows."""
    return [
        job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z", comment="first"),
        job("2025-09-18T12:05:00Z", "2025-09-18T12:00:00Z", comment="reversed"),
        job("2025-09-18T12:01:00Z", "2025-09-18T12:02:00Z", feed_id="feed-1"),
        job("not-a-time", "2025-09-18T12:02:00Z"),
        job("2025-09-18T12:02:00Z", "2025-09-18T12:03:00Z"),
    ]


class TestRunBatch:
    """Entry list shape and failure isolation."""

    def test_failures_isolated(self, ctx):
        entries = run_batch(mixed_jobs(), ctx)

        assert len(entries) == 5
        assert [e.ok for e in entries] == [True, False, True, False, True]
        assert isinstance(entries[0], BatchSuccess)
        assert isinstance(entries[1], BatchFailure)
        assert entries[1].error_code == "INVALID_WINDOW"
        assert entries[3].error_code == "INVALID_WINDOW"

    def test_input_order_preserved(self, ctx):
        jobs = mixed_jobs()
        entries = run_batch(jobs, ctx)
        assert [e.job for e in entries] == jobs

    def test_worker_pool_matches_sequential(self, ctx):
        sequential = run_batch(mixed_jobs(), ctx, workers=1)
        pooled = run_batch(mixed_jobs(), ctx, workers=3)

        assert [e.ok for e in pooled] == [e.ok for e in sequential]
        assert [e.to_dict() for e in pooled] == [e.to_dict() for e in sequential]

    def test_duplicate_jobs_share_artifacts(self, ctx, settings):
        same = job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z")
        entries = run_batch([same, same, same], ctx, workers=3)

        assert all(e.ok for e in entries)
        assert len({e.artifacts.fingerprint for e in entries}) == 1
        assert len({e.artifacts.metadata.created_at for e in entries}) == 1
        assert len(list(settings.output_root.rglob("*.meta.json"))) == 1

    def test_unexpected_error_recorded(self, ctx):
        class BrokenRunner(FakeRunner):
            def run(self, args, timeout=None, cancel=None):
                raise RuntimeError("runner exploded")

        ctx.assembler.runner = BrokenRunner()
        entries = run_batch([job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z")], ctx)
        assert entries[0].error_code == "UNEXPECTED_ERROR"
        assert "runner exploded" in entries[0].error

    def test_cancellation_aborts_batch(self, ctx):
        ctx.cancel.set()
        with pytest.raises(JobCancelledError):
            run_batch(mixed_jobs(), ctx)

    def test_empty_batch(self, ctx):
        assert run_batch([], ctx) == []


class TestSummaries:
    """pairs.json documents."""

    def test_summary_per_feed_day(self, ctx, settings):
        entries, locations = run_and_summarize(mixed_jobs(), ctx)

        dated = settings.output_root / "clips" / "orcasound_lab" / "2025" / "09" / "18" / SUMMARY_NAME
        undated = settings.output_root / "clips" / "orcasound_lab" / "undated" / SUMMARY_NAME
        assert [Path(p) for p in locations] == [dated.resolve(), undated.resolve()]

        document = json.loads(dated.read_text())
        assert validate_document(document, "summary") == []
        assert document["feed"] == "orcasound_lab"
        assert document["date"] == "2025-09-18"
        assert [e["status"] for e in document["entries"]] == ["ok", "error", "ok", "ok"]
        assert document["entries"][0]["comment"] == "first"
        assert document["entries"][1]["error"]["code"] == "INVALID_WINDOW"
        assert "metadata" in document["entries"][0]["artifacts"]

        orphan = json.loads(undated.read_text())
        assert validate_document(orphan, "summary") == []
        assert orphan["date"] is None
        assert len(orphan["entries"]) == 1

    def test_separate_feeds_and_days(self, ctx):
        jobs = [
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z"),
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z", feed="bush_point"),
            job("2025-09-19T00:00:00Z", "2025-09-19T00:01:00Z"),
        ]
        keys = [summary_key(j) for j in jobs]
        assert keys == [
            "clips/orcasound_lab/2025/09/18/pairs.json",
            "clips/bush_point/2025/09/18/pairs.json",
            "clips/orcasound_lab/2025/09/19/pairs.json",
        ]

        entries = run_batch(jobs, ctx)
        assert len(write_summaries(entries, ctx)) == 3

    def test_summary_replaced_on_rerun(self, ctx, settings):
        run_and_summarize(mixed_jobs()[:2], ctx)
        _, locations = run_and_summarize(mixed_jobs()[:1], ctx)

        document = json.loads(Path(locations[0]).read_text())
        assert len(document["entries"]) == 1

    def test_path_like_feed_does_not_block_valid_summary(self, ctx, settings):
        jobs = [
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z", feed=".."),
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z", comment="valid"),
        ]
        entries, locations = run_and_summarize(jobs, ctx)

        assert entries[0].error_code == "INVALID_FEED"
        assert entries[1].ok

        dated = settings.output_root / "clips" / "orcasound_lab" / "2025" / "09" / "18" / SUMMARY_NAME
        assert [Path(p) for p in locations] == [dated.resolve()]
        document = json.loads(dated.read_text())
        assert [e["comment"] for e in document["entries"]] == ["valid"]
        assert not list(settings.output_root.rglob("*.part"))

    def test_unwritable_group_skipped(self, settings, session, runner):
        class RefusingStore(LocalStore):
            def put_text(self, text, key):
                if key.endswith(SUMMARY_NAME) and "/bush_point/" in key:
                    raise OSError("read-only file system")
                return super().put_text(text, key)

        ctx = PipelineContext.create(
            settings, store=RefusingStore(settings.output_root), session=session, runner=runner,
        )
        jobs = [
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z", feed="bush_point"),
            job("2025-09-18T12:00:00Z", "2025-09-18T12:01:00Z"),
            job("2025-09-19T00:00:00Z", "2025-09-19T00:01:00Z"),
        ]
        entries = run_batch(jobs, ctx)
        locations = write_summaries(entries, ctx)

        assert [Path(p).parent.name for p in locations] == ["18", "19"]
        assert not (settings.output_root / "clips" / "bush_point" / "2025" / "09" / "18" / SUMMARY_NAME).exists()
