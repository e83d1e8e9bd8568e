"""Storage abstraction for invocation journal persistence.

Journal files are gzip-compressed msgpack documents. Files are written with
owner-only permissions (0o600) inside an owner-only directory (0o700) as a
filesystem hygiene measure.
"""

import contextlib
import gzip
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

_JOURNAL_DIR_MODE = 0o700
_JOURNAL_FILE_MODE = 0o600
_JOURNAL_SUFFIX = ".journal.gz"


class JournalStorage(Protocol):
    """Protocol for persisting serialised journals."""

    def save_journal(self, name: str, content: bytes) -> None: ...

    def load_journal(self, name: str) -> bytes: ...


class LocalJournalStorage:
    """Reads and writes gzip-compressed journal files on the local filesystem."""

    def __init__(self, journal_dir: str | Path) -> None:
        self._journal_dir = Path(journal_dir).resolve()

    def _path_for(self, name: str) -> Path:
        target = (self._journal_dir / f"{name}{_JOURNAL_SUFFIX}").resolve()
        if not target.is_relative_to(self._journal_dir):
            raise ValueError(f"Path traversal rejected: '{name}' resolves outside journal directory")
        return target

    def save_journal(self, name: str, content: bytes) -> None:
        """Write content atomically via temp-file-then-rename.

        Creates the directory lazily on first write. Rejects names that would
        place the file outside the journal root.
        """
        target = self._path_for(name)

        self._journal_dir.mkdir(mode=_JOURNAL_DIR_MODE, parents=True, exist_ok=True)
        self._journal_dir.chmod(_JOURNAL_DIR_MODE)

        compressed = gzip.compress(content)

        fd, tmp_path = tempfile.mkstemp(dir=str(self._journal_dir), suffix=".tmp", prefix=".journal_")
        fd_owned = True
        try:
            with os.fdopen(fd, "wb") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(compressed)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _JOURNAL_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(target)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
        logger.info("saved journal", name=name, path=str(target), size=len(compressed))

    def load_journal(self, name: str) -> bytes:
        """Return the decompressed journal. Raises FileNotFoundError if absent."""
        return gzip.decompress(self._path_for(name).read_bytes())
