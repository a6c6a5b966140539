"""Bidirectional mapping between source files and their documentation.

A source file ``<source_dir>/<rest>.<ext>`` is documented by
``<docs_dir>/<rest>.md``.  Several source directories may share the docs
root, so mapping a doc back to its source probes the filesystem: source
directories are tried in configured order, and within each directory the
extensions are tried in configured order.  The first existing candidate wins.

:meth:`PathMapper.source_to_doc` is pure; :meth:`PathMapper.doc_to_source`
only touches the disk through the injected :class:`FileSystem`.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from doch.config import DochConfig
from doch.mapping.filesystem import FileSystem, LocalFileSystem

logger = logging.getLogger(__name__)

DOC_EXTENSION = "md"


class PathKind(str, Enum):
    """What role a workspace path plays in the drift taxonomy."""

    SOURCE = "source"
    DOC = "doc"
    INDEPENDENT = "independent"
    OTHER = "other"


@dataclass(frozen=True)
class MappedPath:
    """A workspace path together with its resolved counterpart.

    Attributes:
        path: The normalised input path.
        kind: Its :class:`PathKind`.
        source_path: The source file this path is about.  For a source path
            this is the path itself; for a doc it is the resolved source, or
            *None* if no source exists.
        doc_path: The expected documentation path.  For a doc this is the
            path itself.
    """

    path: str
    kind: PathKind
    source_path: Optional[str] = None
    doc_path: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.source_path is not None and self.doc_path is not None


class PathMapper:
    """Converts between source-relative and doc-relative paths."""

    def __init__(self, config: DochConfig, fs: Optional[FileSystem] = None) -> None:
        self._config = config
        self._fs = fs if fs is not None else LocalFileSystem(config.project_root)

    # ------------------------------------------------------------------
    # Normalisation
    # ------------------------------------------------------------------

    def normalize(self, path: str) -> str:
        """Turn *path* into a workspace-relative posix path.

        Absolute paths inside the project root are made relative.  Absolute
        paths outside it are returned unchanged (and will not map).
        """
        cleaned = path.strip().replace("\\", "/")
        if Path(cleaned).is_absolute():
            try:
                cleaned = Path(cleaned).resolve().relative_to(self._config.root).as_posix()
            except ValueError:
                return cleaned
        cleaned = posixpath.normpath(cleaned) if cleaned else cleaned
        while cleaned.startswith("./"):
            cleaned = cleaned[2:]
        return cleaned

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def matching_source_directory(self, rel_path: str) -> Optional[str]:
        """Return the first configured source directory containing *rel_path*."""
        for directory in self._config.source_directories:
            if _under(rel_path, directory):
                return directory
        return None

    def is_source_path(self, rel_path: str) -> bool:
        """True if *rel_path* is under a source directory with a tracked extension."""
        return (
            self.matching_source_directory(rel_path) is not None
            and _extension(rel_path) in self._config.file_extensions
        )

    def is_doc_path(self, rel_path: str) -> bool:
        """True if *rel_path* is a Markdown file under the docs root."""
        return _under(rel_path, self._config.docs_directory) and _extension(rel_path) == DOC_EXTENSION

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def source_to_doc(self, rel_path: str) -> Optional[str]:
        """Map a source path to its expected documentation path.

        The first matching source directory prefix is swapped for the docs
        root and the trailing extension for ``.md``.  Returns *None* if no
        configured source directory matches.
        """
        directory = self.matching_source_directory(rel_path)
        if directory is None:
            return None
        rest = rel_path[len(directory) + 1:]
        stem, _ = posixpath.splitext(rest)
        return f"{self._config.docs_directory}/{stem}.{DOC_EXTENSION}"

    def doc_to_source(self, rel_path: str) -> Optional[str]:
        """Map a documentation path back to the existing source file.

        Returns *None* if *rel_path* is not under the docs root or if no
        candidate exists on disk.
        """
        docs_dir = self._config.docs_directory
        if not _under(rel_path, docs_dir):
            return None
        stem, _ = posixpath.splitext(rel_path[len(docs_dir) + 1:])
        for candidate in self.source_candidates(stem):
            if self._fs.is_file(candidate):
                return candidate
        return None

    def source_candidates(self, stem: str) -> list[str]:
        """All source paths that could be documented by ``<docs>/<stem>.md``, in probe order."""
        return [
            f"{directory}/{stem}.{extension}"
            for directory in self._config.source_directories
            for extension in self._config.file_extensions
        ]

    def find_markdown_source(self, rel_path: str) -> Optional[str]:
        """Probe for a source file next to a Markdown file outside the docs root.

        ``notes/api.md`` is checked against ``notes/api.<ext>`` for each
        configured extension, as long as that source path is itself tracked.
        """
        stem, _ = posixpath.splitext(rel_path)
        for extension in self._config.file_extensions:
            candidate = f"{stem}.{extension}"
            if self.is_source_path(candidate) and self._fs.is_file(candidate):
                return candidate
        return None

    def classify(self, path: str) -> MappedPath:
        """Normalise *path* and resolve its role and counterpart."""
        rel_path = self.normalize(path)

        if self.is_source_path(rel_path):
            return MappedPath(
                path=rel_path,
                kind=PathKind.SOURCE,
                source_path=rel_path,
                doc_path=self.source_to_doc(rel_path),
            )

        if self.is_doc_path(rel_path):
            return MappedPath(
                path=rel_path,
                kind=PathKind.DOC,
                source_path=self.doc_to_source(rel_path),
                doc_path=rel_path,
            )

        if _extension(rel_path) == DOC_EXTENSION:
            source = self.find_markdown_source(rel_path)
            if source is None:
                return MappedPath(path=rel_path, kind=PathKind.INDEPENDENT)
            logger.debug("%s sits next to its source %s", rel_path, source)

        return MappedPath(path=rel_path, kind=PathKind.OTHER)


def _under(rel_path: str, directory: str) -> bool:
    return rel_path.startswith(directory + "/") and len(rel_path) > len(directory) + 1


def _extension(rel_path: str) -> str:
    return posixpath.splitext(rel_path)[1].lstrip(".").lower()
