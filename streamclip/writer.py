"""
streamclip Artifact Writer - Persist a job's artifacts to the store.

Responsibilities:
- Date-partitioned keys: <destination>/<feed>/<YYYY>/<MM>/<DD>/<basename>.<ext>
- Metadata sidecar (<basename>.meta.json), validated and written last
- Idempotent re-runs for the same fingerprint

Invariants:
- The sidecar's presence marks a complete set; a complete set is never
  rewritten, its stored MetaRecord is returned instead
- Every object write is atomic (store-level temp + rename)
- On failure, already written siblings stay in place and WriteError is raised
- Writers of the same fingerprint are serialized within a process; a
  fingerprint's lock is dropped once no writer holds or awaits it
- Store key and schema rejections surface as WriteError
"""

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping

from streamclip.contracts import (
    ArtifactSet,
    ClipJob,
    MetaRecord,
    OutputFormat,
    SelectionWindow,
    canonical_formats,
)
from streamclip.errors import WriteError
from streamclip.identity import clip_basename, partition_key
from streamclip.schema import DocumentValidationError, ensure_valid
from streamclip.store import ArtifactStore
from streamclip.utils import serialize_json


logger = logging.getLogger(__name__)

METADATA_SUFFIX = "meta.json"


class ArtifactWriter:
    """Writes ArtifactSets through an injected ArtifactStore."""

    def __init__(self, store: ArtifactStore):
        self.store = store
        # fingerprint -> [lock, holders + waiters]
        self._locks: dict[str, list] = {}
        self._guard = threading.Lock()

    @contextmanager
    def _locked(self, fingerprint: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(fingerprint, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[fingerprint]

    def write(
        self,
        job: ClipJob,
        window: SelectionWindow,
        fingerprint: str,
        outputs: Mapping[OutputFormat, Path],
        record: MetaRecord,
    ) -> ArtifactSet:
        """
        Publish a job's intermediate files and its MetaRecord.

        Args:
            job: The originating job
            window: The job's validated window
            fingerprint: Job fingerprint
            outputs: Format → local intermediate file; only formats the
                job requested are published
            record: MetaRecord to persist

        Returns:
            ArtifactSet with store locations.

        Raises:
            WriteError: If the store rejects a key or a write, or the
                record fails the metadata schema.
        """
        prefix = partition_key(job.destination, job.feed, window.start)
        basename = clip_basename(job.feed, window, fingerprint)
        meta_key = f"{prefix}/{basename}.{METADATA_SUFFIX}"

        with self._locked(fingerprint):
            try:
                complete = self.store.exists(meta_key)
            except (OSError, ValueError) as e:
                raise WriteError(f"Cannot use store key {meta_key}: {e}") from e
            if complete:
                logger.info("Artifacts for %s already complete, reusing %s", fingerprint, meta_key)
                return self._load_existing(job, prefix, basename, meta_key)

            document = record.to_dict()
            try:
                ensure_valid(document, "metadata")
            except DocumentValidationError as e:
                logger.error("Metadata for %s rejected: %s", fingerprint, e)
                raise WriteError(f"Invalid metadata for {basename}: {e}") from e

            locations: dict[str, str] = {}
            try:
                for fmt in canonical_formats(job.formats):
                    if fmt not in outputs:
                        continue
                    key = f"{prefix}/{basename}.{fmt.extension}"
                    locations[fmt.value] = self.store.put_file(outputs[fmt], key)
                meta_location = self.store.put_text(serialize_json(document), meta_key)
            except (OSError, ValueError) as e:
                logger.error(
                    "Write failed for %s after %d of %d artifacts: %s",
                    fingerprint, len(locations), len(outputs), e,
                )
                raise WriteError(f"Failed to write artifacts for {basename}: {e}") from e

        logger.info("Wrote %d artifacts + metadata under %s", len(locations), prefix)
        return ArtifactSet(locations=locations, metadata=record, metadata_location=meta_location)

    def _load_existing(self, job: ClipJob, prefix: str, basename: str, meta_key: str) -> ArtifactSet:
        try:
            record = MetaRecord.from_dict(json.loads(self.store.read_text(meta_key)))
        except (OSError, ValueError, KeyError) as e:
            raise WriteError(f"Existing metadata {meta_key} is unreadable: {e}") from e

        locations = {}
        for fmt in canonical_formats(job.formats):
            key = f"{prefix}/{basename}.{fmt.extension}"
            if self.store.exists(key):
                locations[fmt.value] = self.store.location(key)
        return ArtifactSet(
            locations=locations,
            metadata=record,
            metadata_location=self.store.location(meta_key),
        )
