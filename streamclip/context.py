"""
streamclip PipelineContext - Dependencies for a pipeline run.

Responsibilities:
- Hold settings and the collaborators every job uses
- Build the default wiring (requests session, subprocess runner, store)
- Serialization for debugging/logging

Invariants:
- Collaborators are injected, never module-level globals
- The cancel event is shared by every job run with this context
"""

import threading
from dataclasses import dataclass, field
from typing import Any

import requests

from streamclip.assembler import AudioAssembler
from streamclip.playlist import PlaylistSource
from streamclip.process import ProcessRunner, SubprocessRunner
from streamclip.settings import Settings
from streamclip.store import ArtifactStore, LocalStore
from streamclip.writer import ArtifactWriter


@dataclass
class PipelineContext:
    """Context passed to run_job / run_batch."""

    settings: Settings
    playlist: PlaylistSource
    assembler: AudioAssembler
    writer: ArtifactWriter
    cancel: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def create(
        cls,
        settings: Settings,
        store: ArtifactStore | None = None,
        session: requests.Session | None = None,
        runner: ProcessRunner | None = None,
    ) -> "PipelineContext":
        """
        Wire default collaborators around `settings`.

        Args:
            settings: Runtime configuration
            store: Artifact store (default: LocalStore at settings.output_root)
            session: HTTP session for playlist fetches
            runner: Process runner for ffmpeg (default: SubprocessRunner)
        """
        store = store if store is not None else LocalStore(settings.output_root)
        runner = runner if runner is not None else SubprocessRunner()
        return cls(
            settings=settings,
            playlist=PlaylistSource(session=session, timeout=settings.fetch_timeout),
            assembler=AudioAssembler(
                runner=runner,
                ffmpeg_bin=settings.ffmpeg_bin,
                timeout=settings.tool_timeout,
            ),
            writer=ArtifactWriter(store),
        )

    @property
    def store(self) -> ArtifactStore:
        return self.writer.store

    def index_url(self, job) -> str:
        return job.index_url or self.settings.index_url_for(job.feed)

    def to_dict(self) -> dict[str, Any]:
        """Serialize settings for logging."""
        return {
            k: str(v) for k, v in vars(self.settings).items()
        }
