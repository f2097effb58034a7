"""
streamclip Audio Assembler - Concatenate selected segments with ffmpeg.

Responsibilities:
- Write the concat-demuxer list (one `file '<uri>'` line per segment)
- Build the exact ffmpeg argument list per output format
- Run one invocation per audio format and collect per-format failures

Output (per audio format):
    - Mono, 48 kHz
    - wav  → pcm_s16le
    - flac → flac

Invariants:
    - Segment order is the selector's order; nothing is shuffled or skipped
    - Every requested audio format is attempted even if an earlier one failed
    - A failed concat list write fails every format at once
    - "psd" without "wav" still assembles a WAV for analysis only
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from streamclip.audio import SAMPLE_RATE
from streamclip.contracts import OutputFormat, Segment, canonical_formats
from streamclip.errors import AssemblyError
from streamclip.process import ProcessLaunchError, ProcessRunner, ProcessTimeoutError


logger = logging.getLogger(__name__)


# =============================================================================
# Constants (FROZEN)
# =============================================================================

PROTOCOL_WHITELIST = "file,http,https,tcp,tls,crypto"
CONCAT_LIST_NAME = "segments.txt"

CODECS = {
    OutputFormat.RAW_AUDIO: "pcm_s16le",
    OutputFormat.LOSSLESS_AUDIO: "flac",
}


# =============================================================================
# Concat list + arguments
# =============================================================================


def escape_concat_uri(uri: str) -> str:
    """Escape single quotes for a quoted concat-demuxer path."""
    return uri.replace("'", "'\\''")


def write_concat_list(segments: Sequence[Segment], path: Path) -> Path:
    """
    Write the concat-demuxer input list.

    Args:
        segments: Selected segments, in order
        path: Destination of the list file

    Returns:
        The list path.
    """
    lines = [f"file '{escape_concat_uri(seg.uri)}'" for seg in segments]
    path.write_text("\n".join(lines) + "\n")
    return path


def build_ffmpeg_args(
    ffmpeg_bin: str,
    list_path: Path,
    output_path: Path,
    fmt: OutputFormat,
    sample_rate: int = SAMPLE_RATE,
) -> list[str]:
    """
    Build the ffmpeg command line for one audio format.

    Raises:
        ValueError: If `fmt` is not an audio format.
    """
    if fmt not in CODECS:
        raise ValueError(f"Not an audio format: {fmt.value}")
    return [
        ffmpeg_bin,
        "-hide_banner",
        "-loglevel", "error",
        "-y",
        "-protocol_whitelist", PROTOCOL_WHITELIST,
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-ac", "1",
        "-ar", str(sample_rate),
        "-c:a", CODECS[fmt],
        str(output_path),
    ]


def audio_formats_for(formats: Iterable[OutputFormat]) -> list[OutputFormat]:
    """
    Audio formats to assemble, in canonical order.

    Metrics are computed from the WAV, so "psd" implies a WAV build.
    """
    requested = set(canonical_formats(formats))
    if OutputFormat.METRICS in requested:
        requested.add(OutputFormat.RAW_AUDIO)
    return [f for f in canonical_formats(requested) if f.is_audio]


# =============================================================================
# Assembler
# =============================================================================


@dataclass
class AssemblyResult:
    """
    Outcome of assembling every audio format for one job.

    Attributes:
        outputs: Format → produced file, for formats that succeeded
        invocations: Format value → exact argument list used
        failures: One AssemblyError per failed format, in attempt order
    """

    outputs: dict[OutputFormat, Path] = field(default_factory=dict)
    invocations: dict[str, list[str]] = field(default_factory=dict)
    failures: list[AssemblyError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_first(self) -> None:
        if self.failures:
            raise self.failures[0]


class AudioAssembler:
    """Runs ffmpeg through an injected ProcessRunner."""

    def __init__(self, runner: ProcessRunner, ffmpeg_bin: str = "ffmpeg", timeout: float | None = None):
        self.runner = runner
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout = timeout

    def assemble(
        self,
        segments: Sequence[Segment],
        formats: Iterable[OutputFormat],
        workdir: Path,
        basename: str,
        cancel: threading.Event | None = None,
    ) -> AssemblyResult:
        """
        Produce one container per audio format in `workdir`.

        Args:
            segments: Selected segments, in order
            formats: Requested job formats
            workdir: Job-scoped temporary directory
            basename: Clip base name for output files
            cancel: Cancellation event forwarded to the runner

        Returns:
            AssemblyResult with outputs, invocations and failures.

        Raises:
            AssemblyError: If the concat list cannot be written.
            JobCancelledError: If cancelled while ffmpeg runs.
        """
        result = AssemblyResult()

        list_path = workdir / CONCAT_LIST_NAME
        try:
            write_concat_list(segments, list_path)
        except OSError as e:
            raise AssemblyError("concat", None, f"cannot write concat list: {e}") from e

        for fmt in audio_formats_for(formats):
            output_path = workdir / f"{basename}.{fmt.extension}"
            args = build_ffmpeg_args(self.ffmpeg_bin, list_path, output_path, fmt)
            result.invocations[fmt.value] = args

            logger.info("Assembling %s from %d segments → %s", fmt.value, len(segments), output_path.name)
            try:
                code = self.runner.run(args, timeout=self.timeout, cancel=cancel)
            except (ProcessLaunchError, ProcessTimeoutError) as e:
                result.failures.append(AssemblyError(fmt.value, None, str(e)))
                continue

            if code != 0:
                result.failures.append(AssemblyError(fmt.value, code))
            elif not output_path.is_file():
                result.failures.append(AssemblyError(fmt.value, code, "no output file produced"))
            else:
                result.outputs[fmt] = output_path

        for failure in result.failures:
            logger.error("Assembly failed: %s", failure)
        return result
