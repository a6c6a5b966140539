"""Workspace-wide documentation status report.

Where the drift engine only looks at the files of one batch, the reporter
walks the whole workspace and combines the persisted state with what is on
disk right now.  This is what front ends (``doch status``, the MCP server)
display.

Statuses:

- ``uptodate`` / ``outdated`` / ``nodocs`` -- as recorded by the last drift;
- ``untracked`` -- the source has documentation but no usable state entry
  yet (docs written but not committed);
- ``nosource`` -- a doc under the docs root with no matching source file;
- ``independent`` -- Markdown outside the docs root with no source.

Source files whose source or doc was modified after the recorded times are
flagged with ``changed_since_drift``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from doch.config import DochConfig
from doch.mapping.filesystem import FileSystem, LocalFileSystem
from doch.mapping.ignore import IgnoreFilter
from doch.mapping.paths import MappedPath, PathKind, PathMapper
from doch.models.state import DocState, DocStateEntry, DocStatus
from doch.storage.store import StateStore


class FileStatus(str, Enum):
    UPTODATE = "uptodate"
    OUTDATED = "outdated"
    NODOCS = "nodocs"
    UNTRACKED = "untracked"
    NOSOURCE = "nosource"
    INDEPENDENT = "independent"


# Display order for grouped output.
STATUS_ORDER = (
    FileStatus.OUTDATED,
    FileStatus.NODOCS,
    FileStatus.UNTRACKED,
    FileStatus.UPTODATE,
    FileStatus.NOSOURCE,
    FileStatus.INDEPENDENT,
)


@dataclass
class FileStatusItem:
    """Status of one workspace file."""

    path: str
    status: FileStatus
    source_path: Optional[str] = None
    doc_path: Optional[str] = None
    changed_since_drift: bool = False
    recorded_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status.value,
            "source_path": self.source_path,
            "doc_path": self.doc_path,
            "changed_since_drift": self.changed_since_drift,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }


@dataclass
class StatusReport:
    items: list[FileStatusItem] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def by_status(self, status: FileStatus) -> list[FileStatusItem]:
        return [item for item in self.items if item.status == status]

    def counts(self) -> dict[str, int]:
        counter = Counter(item.status.value for item in self.items)
        return {status.value: counter.get(status.value, 0) for status in STATUS_ORDER}

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at.isoformat(),
            "counts": self.counts(),
            "items": [item.to_dict() for item in self.items],
        }


class StatusReporter:
    """Classifies every relevant file in a workspace."""

    def __init__(
        self,
        config: DochConfig,
        *,
        fs: Optional[FileSystem] = None,
        store: Optional[StateStore] = None,
        ignore: Optional[IgnoreFilter] = None,
    ) -> None:
        self._fs = fs if fs is not None else LocalFileSystem(config.project_root)
        self._mapper = PathMapper(config, self._fs)
        self._store = store if store is not None else StateStore(config.project_root)
        self._ignore = ignore if ignore is not None else IgnoreFilter.load(self._fs)

    def collect(self) -> StatusReport:
        """Walk the workspace and classify every source and Markdown file."""
        state = self._store.load()
        report = StatusReport()
        for rel_path in self._ignore.filter(self._fs.walk()):
            item = self._classify(self._mapper.classify(rel_path), state, listing=True)
            if item is not None:
                report.items.append(item)
        return report

    def file_status(self, path: str) -> Optional[FileStatusItem]:
        """Classify a single file; *None* if it is outside the tracked layout."""
        mapped = self._mapper.classify(path)
        if self._ignore.is_ignored(mapped.path):
            return None
        return self._classify(mapped, self._store.load(), listing=False)

    def _classify(
        self,
        mapped: MappedPath,
        state: DocState,
        listing: bool,
    ) -> Optional[FileStatusItem]:
        if mapped.kind == PathKind.INDEPENDENT:
            return FileStatusItem(path=mapped.path, status=FileStatus.INDEPENDENT)

        if mapped.kind == PathKind.DOC:
            if mapped.source_path is None:
                return FileStatusItem(
                    path=mapped.path,
                    status=FileStatus.NOSOURCE,
                    doc_path=mapped.path,
                )
            if listing:
                # Reported through its source file.
                return None
            return self._source_item(
                mapped.path, mapped.source_path, mapped.path, state.get(mapped.source_path)
            )

        if mapped.kind == PathKind.SOURCE and mapped.doc_path is not None:
            return self._source_item(
                mapped.path, mapped.path, mapped.doc_path, state.get(mapped.path)
            )

        return None

    def _source_item(
        self,
        path: str,
        source: str,
        doc: str,
        entry: Optional[DocStateEntry],
    ) -> FileStatusItem:
        doc_exists = self._fs.is_file(doc)
        item = FileStatusItem(
            path=path,
            status=FileStatus.UNTRACKED,
            source_path=source,
            doc_path=doc,
            recorded_at=entry.timestamp if entry else None,
        )

        if not doc_exists:
            item.status = FileStatus.NODOCS
            return item
        if entry is None or entry.status is None or entry.status == DocStatus.NODOCS:
            return item

        item.status = FileStatus(entry.status.value)
        src_mtime = self._fs.mtime(source)
        doc_mtime = self._fs.mtime(doc)
        doc_recorded = entry.doc_time or entry.timestamp
        item.changed_since_drift = bool(
            (src_mtime and src_mtime > entry.timestamp)
            or (doc_mtime and doc_mtime > doc_recorded)
        )
        return item
