"""Filesystem access used by path mapping and drift detection.

All existence checks, modification times and ignore-file reads go through a
:class:`FileSystem` so that mapping logic can be exercised against an
in-memory tree.  Paths are always workspace-relative posix strings.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

# Directories never descended into when walking a workspace.
SKIPPED_DIRECTORIES = frozenset({".git", ".doch", "node_modules"})


class FileSystem(Protocol):
    """Read-only view of a workspace tree."""

    def exists(self, rel_path: str) -> bool:
        ...

    def is_file(self, rel_path: str) -> bool:
        ...

    def mtime(self, rel_path: str) -> Optional[datetime]:
        ...

    def read_text(self, rel_path: str) -> Optional[str]:
        ...

    def walk(self) -> Iterator[str]:
        ...


class LocalFileSystem:
    """:class:`FileSystem` backed by the real disk under *root*."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def exists(self, rel_path: str) -> bool:
        return (self._root / rel_path).exists()

    def is_file(self, rel_path: str) -> bool:
        return (self._root / rel_path).is_file()

    def mtime(self, rel_path: str) -> Optional[datetime]:
        """Return the later of the file's mtime and ctime, in UTC.

        Returns *None* if the file cannot be stat'ed.
        """
        try:
            st = (self._root / rel_path).stat()
        except OSError:
            return None
        return datetime.fromtimestamp(max(st.st_mtime, st.st_ctime), tz=timezone.utc)

    def read_text(self, rel_path: str) -> Optional[str]:
        try:
            return (self._root / rel_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("Could not read %s", rel_path, exc_info=True)
            return None

    def walk(self) -> Iterator[str]:
        """Yield every file below the root as a sorted relative posix path."""
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRECTORIES)
            base = Path(dirpath).relative_to(self._root)
            for name in sorted(filenames):
                yield (base / name).as_posix()


class MemoryFileSystem:
    """In-memory :class:`FileSystem` for tests and dry runs.

    Files are stored as ``path -> (content, mtime)``.  Directories exist
    implicitly when some file lives below them.
    """

    def __init__(self, files: Optional[dict[str, str]] = None) -> None:
        self._files: dict[str, tuple[str, datetime]] = {}
        for path, content in (files or {}).items():
            self.write(path, content)

    def write(
        self,
        rel_path: str,
        content: str = "",
        mtime: Optional[datetime] = None,
    ) -> None:
        self._files[rel_path] = (content, mtime or datetime.now(timezone.utc))

    def touch(self, rel_path: str, mtime: datetime) -> None:
        content = self._files[rel_path][0] if rel_path in self._files else ""
        self._files[rel_path] = (content, mtime)

    def remove(self, rel_path: str) -> None:
        self._files.pop(rel_path, None)

    def exists(self, rel_path: str) -> bool:
        if rel_path in self._files:
            return True
        prefix = rel_path.rstrip("/") + "/"
        return any(path.startswith(prefix) for path in self._files)

    def is_file(self, rel_path: str) -> bool:
        return rel_path in self._files

    def mtime(self, rel_path: str) -> Optional[datetime]:
        entry = self._files.get(rel_path)
        return entry[1] if entry else None

    def read_text(self, rel_path: str) -> Optional[str]:
        entry = self._files.get(rel_path)
        return entry[0] if entry else None

    def walk(self) -> Iterator[str]:
        for path in sorted(self._files):
            if not set(path.split("/")[:-1]) & SKIPPED_DIRECTORIES:
                yield path
