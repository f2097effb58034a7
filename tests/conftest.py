"""
streamclip Test Configuration

Provides synthetic WAVs, HLS playlists, a stub HTTP session and a fake
ffmpeg runner so the pipeline runs without network access or ffmpeg.
"""

import os
import subprocess
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pytest
import requests
import soundfile as sf

from streamclip import audio
from streamclip.context import PipelineContext
from streamclip.settings import Settings
from streamclip.store import LocalStore


FEED = "orcasound_lab"
PLAYLIST_URL = f"https://live.example.net/{FEED}/hls/playlist.m3u8"
BASE_TIME = datetime(2025, 9, 18, 11, 55, 0, tzinfo=timezone.utc)
REPO_ROOT = Path(__file__).parent.parent


def run_cli(*args: str, cwd: str | None = None, env: dict | None = None) -> subprocess.CompletedProcess:
    """Run streamclip CLI as subprocess."""
    full_env = {**os.environ, **(env or {})}
    full_env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(REPO_ROOT), full_env.get("PYTHONPATH")) if p
    )
    return subprocess.run(
        [sys.executable, "-m", "streamclip", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
        env=full_env,
    )


def tone(num_samples: int, freq: float = 440.0, amplitude: float = 0.25,
         sample_rate: int = audio.SAMPLE_RATE) -> np.ndarray:
    """Deterministic sine tone."""
    t = np.arange(num_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float64)


def create_test_wav(path: Path, duration_sec: float = 1.0, sample_rate: int = audio.SAMPLE_RATE) -> None:
    """Write a mono PCM-16 tone WAV."""
    audio.write_wav(path, tone(int(sample_rate * duration_sec), sample_rate=sample_rate), sample_rate)


def make_playlist(
    start: datetime = BASE_TIME,
    count: int = 120,
    segment_seconds: int = 10,
    untimed: tuple[int, ...] = (),
) -> str:
    """
    Build a media playlist with one PROGRAM-DATE-TIME per segment.

    Segments whose index is in `untimed` carry no date-time tag.
    """
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        f"#EXT-X-TARGETDURATION:{segment_seconds}",
        "#EXT-X-MEDIA-SEQUENCE:0",
    ]
    for i in range(count):
        if i not in untimed:
            ts = start + timedelta(seconds=i * segment_seconds)
            lines.append(f"#EXT-X-PROGRAM-DATE-TIME:{ts.strftime('%Y-%m-%dT%H:%M:%S.000Z')}")
        lines.append(f"#EXTINF:{segment_seconds}.000,")
        lines.append(f"live{i:03d}.ts")
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


MASTER_PLAYLIST = (
    "#EXTM3U\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=128000,CODECS=\"mp4a.40.2\"\n"
    "audio/playlist.m3u8\n"
)


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200, url: str = PLAYLIST_URL):
        self.text = text
        self.status_code = status_code
        self.url = url

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}")


class FakeSession:
    """
    Stand-in for requests.Session.

    `responses` is consumed in order; an exception instance is raised,
    anything else is returned. The last item repeats once exhausted.
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [FakeResponse(make_playlist())]
        self.calls: list[tuple[str, float | None]] = []

    def get(self, url: str, timeout: float | None = None):
        self.calls.append((url, timeout))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item


class FakeRunner:
    """
    Fake ffmpeg: reads the concat list, writes `seconds_per_segment` of
    audio per listed segment to the output path, returns the exit code
    configured for that format (default 0).
    """

    def __init__(
        self,
        seconds_per_segment: float = 0.1,
        exit_codes: dict[str, int] | None = None,
        signal=tone,
    ):
        self.seconds_per_segment = seconds_per_segment
        self.exit_codes = exit_codes or {}
        self.signal = signal
        self.calls: list[list[str]] = []
        self.concat_lists: list[str] = []

    def run(self, args, timeout=None, cancel=None) -> int:
        args = list(args)
        self.calls.append(args)
        list_path = Path(args[args.index("-i") + 1])
        listing = list_path.read_text()
        self.concat_lists.append(listing)

        output = Path(args[-1])
        fmt = output.suffix.lstrip(".")
        code = self.exit_codes.get(fmt, 0)
        if code != 0:
            return code

        n_segments = sum(1 for line in listing.splitlines() if line.startswith("file "))
        sr = int(args[args.index("-ar") + 1])
        samples = self.signal(int(round(n_segments * self.seconds_per_segment * sr)))
        sf.write(output, np.clip(samples, -1.0, 1.0), sr, subtype="PCM_16")
        return 0


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        output_root=tmp_path / "output",
        work_root=tmp_path / "work",
        index_url_template="https://live.example.net/{feed}/hls/playlist.m3u8",
        retry_backoff=0.0,
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession(FakeResponse(make_playlist()))


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ctx(settings, session, runner) -> PipelineContext:
    """PipelineContext wired to the fakes and a LocalStore under tmp_path."""
    return PipelineContext.create(
        settings,
        store=LocalStore(settings.output_root),
        session=session,
        runner=runner,
    )


@pytest.fixture
def test_wav_path(tmp_path) -> Path:
    wav_path = tmp_path / "test_input.wav"
    create_test_wav(wav_path, duration_sec=1.0)
    return wav_path
