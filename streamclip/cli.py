"""
streamclip CLI - Argument parsing and dispatch.

Responsibilities:
- Argument parsing (clip, batch)
- Settings resolution: defaults < STREAMCLIP_* env < flags
- Logging setup
- Printing results/errors
- Exit codes

Forbidden:
- No selection, assembly or analytics logic
"""

import argparse
import logging
import sys
from pathlib import Path

from streamclip import __version__
from streamclip.contracts import DEFAULT_DESTINATION, ClipJob, OutputFormat


logger = logging.getLogger(__name__)


def _format_arg(value: str) -> OutputFormat:
    try:
        return OutputFormat.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--formats",
        metavar="FORMAT",
        nargs="+",
        type=_format_arg,
        default=[OutputFormat.RAW_AUDIO],
        help="Output formats: wav, flac, psd (default: wav).",
    )
    parser.add_argument(
        "--destination",
        metavar="PREFIX",
        default=DEFAULT_DESTINATION,
        help=f"Key prefix inside the output root (default: {DEFAULT_DESTINATION}).",
    )
    parser.add_argument(
        "--output-root",
        metavar="PATH",
        type=Path,
        help="Root directory for artifacts (default: ./output).",
    )
    parser.add_argument(
        "--work-root",
        metavar="PATH",
        type=Path,
        help="Root directory for temporary work (default: ./tmp).",
    )
    parser.add_argument(
        "--ffmpeg",
        metavar="PATH",
        dest="ffmpeg_bin",
        help="ffmpeg executable (default: ffmpeg on PATH).",
    )
    parser.add_argument(
        "--tool-timeout",
        metavar="SECONDS",
        type=float,
        help="Deadline for each ffmpeg invocation (default: 600).",
    )
    parser.add_argument(
        "--fetch-timeout",
        metavar="SECONDS",
        type=float,
        help="Deadline for each playlist request (default: 30).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="streamclip",
        description="Extract audio clips and acoustic metrics from live HLS feeds.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    clip_parser = subparsers.add_parser(
        "clip",
        help="Extract a single clip.",
        description=(
            "Extract a single clip.\n\n"
            "Fetches the feed's playlist, selects the segments in [start, end),\n"
            "assembles the requested formats and writes them with a metadata sidecar."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    clip_parser.add_argument("--feed", metavar="SLUG", required=True, help="Feed identifier.")
    clip_parser.add_argument("--start", metavar="ISO8601", required=True, help="Clip start time.")
    clip_parser.add_argument("--end", metavar="ISO8601", required=True, help="Clip end time.")
    clip_parser.add_argument("--feed-id", metavar="ID", help="Optional secondary feed identifier.")
    clip_parser.add_argument("--comment", metavar="TEXT", help="Free text kept with the job.")
    clip_parser.add_argument("--index-url", metavar="URL", help="Playlist URL override.")
    _add_common_options(clip_parser)

    batch_parser = subparsers.add_parser(
        "batch",
        help="Extract clips for every row of a CSV manifest.",
        description=(
            "Extract clips for every row of a CSV manifest.\n\n"
            "Columns: feedSlug, start, end (required); comment, feedId (optional).\n"
            "Failed rows are recorded in the per-feed, per-day pairs.json summary."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    batch_parser.add_argument("--manifest", metavar="CSV", type=Path, required=True, help="CSV manifest.")
    batch_parser.add_argument("--workers", metavar="N", type=int, help="Jobs in flight (default: 1).")
    _add_common_options(batch_parser)

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _settings_from_args(args: argparse.Namespace):
    from streamclip.settings import Settings

    return Settings.from_env().with_overrides(
        output_root=args.output_root,
        work_root=args.work_root,
        ffmpeg_bin=args.ffmpeg_bin,
        tool_timeout=args.tool_timeout,
        fetch_timeout=args.fetch_timeout,
        workers=getattr(args, "workers", None),
    )


def cmd_clip(args: argparse.Namespace) -> int:
    """Handle the 'clip' subcommand. Returns exit code."""
    from streamclip.context import PipelineContext
    from streamclip.errors import StreamclipError
    from streamclip.pipeline import run_job
    from streamclip.store import LocalStore

    try:
        settings = _settings_from_args(args)
        job = ClipJob(
            feed=args.feed,
            start=args.start,
            end=args.end,
            formats=frozenset(args.formats),
            feed_id=args.feed_id,
            destination=args.destination,
            index_url=args.index_url,
            comment=args.comment,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with LocalStore(settings.output_root) as store:
        ctx = PipelineContext.create(settings, store=store)
        logger.debug("Settings: %s", ctx.to_dict())
        try:
            artifacts = run_job(job, ctx)
        except StreamclipError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            ctx.cancel.set()
            print("Error: interrupted", file=sys.stderr)
            return 130

    print(f"Fingerprint: {artifacts.fingerprint}")
    for label, location in sorted(artifacts.as_dict().items()):
        print(f"{label}: {location}")
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    """Handle the 'batch' subcommand. Returns exit code."""
    from streamclip.batch import run_and_summarize
    from streamclip.context import PipelineContext
    from streamclip.errors import StreamclipError
    from streamclip.jobs import ManifestError, read_manifest
    from streamclip.store import LocalStore

    try:
        settings = _settings_from_args(args)
        jobs = read_manifest(args.manifest, args.formats, destination=args.destination)
    except (ManifestError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with LocalStore(settings.output_root) as store:
        ctx = PipelineContext.create(settings, store=store)
        logger.debug("Settings: %s", ctx.to_dict())
        try:
            entries, summaries = run_and_summarize(jobs, ctx)
        except StreamclipError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            ctx.cancel.set()
            print("Error: interrupted", file=sys.stderr)
            return 130

    failed = sum(1 for e in entries if not e.ok)
    print(f"Batch complete: {len(entries)} jobs, {len(entries) - failed} ok, {failed} failed")
    for location in summaries:
        print(f"Summary: {location}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.verbose)

    if args.command == "clip":
        sys.exit(cmd_clip(args))
    if args.command == "batch":
        sys.exit(cmd_batch(args))
