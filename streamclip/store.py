"""
streamclip Artifact Store - Destination storage client.

Responsibilities:
- Key → location mapping for persisted artifacts
- Atomic single-object writes (temp file + rename)

Invariants:
- A key is either absent or holds a complete object; partial files only
  ever exist under a hidden ".part" name
- Keys are "/"-separated and may not escape the store root
- Stores are explicitly constructed and closed by the caller; there is
  no module-level client
"""

import logging
import os
import shutil
import uuid
from pathlib import Path, PurePosixPath
from typing import Protocol


logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    def put_file(self, src: Path, key: str) -> str:
        ...

    def put_text(self, text: str, key: str) -> str:
        ...

    def exists(self, key: str) -> bool:
        ...

    def read_text(self, key: str) -> str:
        ...

    def location(self, key: str) -> str:
        ...

    def close(self) -> None:
        ...


class LocalStore:
    """
    ArtifactStore rooted at a local directory.

    Locations are absolute filesystem paths.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Local stores hold no connections."""

    def path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or ".." in parts or PurePosixPath(key).is_absolute():
            raise ValueError(f"Invalid store key: {key!r}")
        return self.root.joinpath(*parts)

    def location(self, key: str) -> str:
        return str(self.path_for(key))

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read_text(self, key: str) -> str:
        return self.path_for(key).read_text()

    def put_file(self, src: Path, key: str) -> str:
        """Copy `src` to `key` atomically and return its location."""
        return self._atomic_write(key, lambda tmp: shutil.copyfile(src, tmp))

    def put_text(self, text: str, key: str) -> str:
        """Write `text` to `key` atomically and return its location."""
        return self._atomic_write(key, lambda tmp: tmp.write_text(text))

    def _atomic_write(self, key: str, fill) -> str:
        dest = self.path_for(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(f".{dest.name}.{uuid.uuid4().hex}.part")
        try:
            fill(tmp)
            os.replace(tmp, dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Stored %s", dest)
        return str(dest)
