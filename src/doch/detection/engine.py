"""Drift engine: classifies changed files and maintains the persisted state.

The engine runs in batches.  ``drift(paths)`` is called with the files that
changed at a version-control boundary (commit, merge) and updates one state
entry per affected source file:

- the documentation counterpart does not exist -> ``nodocs``;
- the doc changed at least as recently as the source -> ``uptodate``;
- the source is newer -> the significance classifier decides:
  a minor change stays ``uptodate``, a major change is ``outdated``.

Change times come from the batch itself: a path in the batch changed "now".
A counterpart outside the batch keeps its previously recorded time.  With
nothing recorded, a doc falls back to the epoch; a source falls back to its
filesystem modification time, then the epoch.

``check(paths)`` is the read-only counterpart used by blocking hooks: it
passes only when every given path's source is recorded as ``uptodate``.
Paths doch does not track fail, except Markdown outside the docs layout.

Design decisions:
- One load and one save per batch.  Entries for paths outside the batch are
  left untouched, and entries are never removed implicitly (see
  :meth:`DriftEngine.prune`).
- Per-path problems (a doc with no source, a deleted source) are logged and
  reported in the result; they never abort the batch.
- The classifier is only consulted when the source is strictly newer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from doch.config import DochConfig
from doch.detection.significance import (
    ChangeSignificance,
    CommitMessageClassifier,
    GitHistory,
    SignificanceClassifier,
)
from doch.mapping.filesystem import FileSystem, LocalFileSystem
from doch.mapping.ignore import IgnoreFilter
from doch.mapping.paths import DOC_EXTENSION, MappedPath, PathKind, PathMapper
from doch.models.state import EPOCH, DocStateEntry, DocStatus
from doch.storage.store import StateStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class SkippedPath:
    """An eligible input path that could not be processed."""

    path: str
    reason: str


@dataclass
class DriftResult:
    """Outcome of one :meth:`DriftEngine.drift` batch.

    Attributes:
        updated: Entries written in this batch, keyed by source path.
        skipped: Eligible paths that could not be resolved.
        ignored: Paths excluded by ignore rules or outside the tracked
            layout.
        state_path: Where the state was saved.
    """

    updated: dict[str, DocStateEntry] = field(default_factory=dict)
    skipped: list[SkippedPath] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    state_path: Optional[Path] = None

    @property
    def has_skips(self) -> bool:
        return bool(self.skipped)

    def count(self, status: DocStatus) -> int:
        return sum(1 for entry in self.updated.values() if entry.status == status)

    def to_dict(self) -> dict:
        return {
            "updated": {path: entry.to_json_dict() for path, entry in self.updated.items()},
            "skipped": [{"path": s.path, "reason": s.reason} for s in self.skipped],
            "ignored": list(self.ignored),
            "state_path": str(self.state_path) if self.state_path else None,
        }


@dataclass
class CheckFailure:
    """A path that did not pass :meth:`DriftEngine.check`."""

    path: str
    source_path: Optional[str]
    status: Optional[str]
    reason: str

    @property
    def message(self) -> str:
        if self.source_path is None:
            return f"{self.path}: {self.reason}"
        if self.source_path != self.path:
            return f"{self.source_path} (via {self.path}): {self.reason}"
        return f"{self.source_path}: {self.reason}"

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "source_path": self.source_path,
            "status": self.status,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass
class CheckResult:
    """Outcome of :meth:`DriftEngine.check`."""

    passed: list[str] = field(default_factory=list)
    failures: list[CheckFailure] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "passed": list(self.passed),
            "failures": [f.to_dict() for f in self.failures],
            "ignored": list(self.ignored),
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class DriftEngine:
    """Computes and persists documentation status for batches of paths.

    Parameters
    ----------
    config:
        Workspace layout.
    fs:
        Filesystem view; defaults to the real disk under the project root.
    store:
        State persistence; defaults to ``.doch/metadata/doc-state.json``.
    ignore:
        Ignore rules; defaults to ``.gitignore`` + ``.dochignore``.
    classifier:
        Change-significance strategy; defaults to commit-message keywords.
    clock:
        Returns the current time (UTC).  Injected for tests.
    """

    def __init__(
        self,
        config: DochConfig,
        *,
        fs: Optional[FileSystem] = None,
        store: Optional[StateStore] = None,
        ignore: Optional[IgnoreFilter] = None,
        classifier: Optional[SignificanceClassifier] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._fs = fs if fs is not None else LocalFileSystem(config.project_root)
        self._mapper = PathMapper(config, self._fs)
        self._ignore = ignore if ignore is not None else IgnoreFilter.load(self._fs)
        self._store = store if store is not None else StateStore(config.project_root)
        self._classifier = (
            classifier
            if classifier is not None
            else CommitMessageClassifier(GitHistory(config.project_root))
        )
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # drift
    # ------------------------------------------------------------------

    def drift(self, paths: Iterable[str]) -> DriftResult:
        """Update the state for a batch of changed paths and persist it.

        Raises ``OSError`` only if the state file cannot be written.
        """
        state = self._store.load()
        now = self._clock()
        result = DriftResult()

        batch = self._select(paths, result.ignored)
        batch_paths = {mapped.path for mapped in batch}
        seen: set[str] = set()

        for mapped in batch:
            if not mapped.resolved:
                logger.info("Skipping %s: no source file found for it.", mapped.path)
                result.skipped.append(
                    SkippedPath(mapped.path, "no source file found for documentation")
                )
                continue

            source = mapped.source_path
            if source in seen:
                continue
            seen.add(source)

            if not self._fs.is_file(source):
                logger.info("Skipping %s: source file does not exist.", source)
                result.skipped.append(SkippedPath(mapped.path, "source file does not exist"))
                continue

            entry = self.evaluate(
                source,
                mapped.doc_path,
                previous=state.get(source),
                batch_paths=batch_paths,
                now=now,
            )
            state.upsert(source, entry)
            result.updated[source] = entry
            logger.info("%s -> %s", source, entry.status.value if entry.status else "?")

        result.state_path = self._store.save(state)
        logger.info(
            "Drift: updated %d entr%s, skipped %d, ignored %d",
            len(result.updated),
            "y" if len(result.updated) == 1 else "ies",
            len(result.skipped),
            len(result.ignored),
        )
        return result

    def evaluate(
        self,
        source: str,
        doc: str,
        *,
        previous: Optional[DocStateEntry],
        batch_paths: set[str],
        now: datetime,
    ) -> DocStateEntry:
        """Compute the new state entry for one source/doc pair."""
        if not self._fs.is_file(doc):
            return DocStateEntry(
                documented=False,
                timestamp=now,
                status=DocStatus.NODOCS,
            )

        source_in_batch = source in batch_paths
        doc_in_batch = doc in batch_paths

        if source_in_batch and doc_in_batch:
            src_time = doc_time = now
        elif doc_in_batch:
            doc_time = now
            if previous is not None:
                src_time = previous.timestamp
            else:
                src_time = self._fs.mtime(source) or EPOCH
        else:
            src_time = now
            if previous is not None and previous.doc_time is not None:
                doc_time = previous.doc_time
            else:
                doc_time = EPOCH

        if doc_time >= src_time:
            status = DocStatus.UPTODATE
        elif self._significance(source) == ChangeSignificance.MINOR:
            status = DocStatus.UPTODATE
        else:
            status = DocStatus.OUTDATED

        return DocStateEntry(
            documented=True,
            timestamp=src_time,
            doc_time=doc_time,
            status=status,
        )

    # ------------------------------------------------------------------
    # check
    # ------------------------------------------------------------------

    def check(self, paths: Iterable[str]) -> CheckResult:
        """Verify that every given path's source is recorded as ``uptodate``.

        Documentation paths are resolved to their source first.  Markdown
        files that are ignored or outside the docs layout are not checked;
        any other path doch does not track fails.
        """
        state = self._store.load()
        result = CheckResult()
        seen: set[str] = set()
        untracked: list[str] = []

        selected = self._select(paths, result.ignored, untracked)
        for path in untracked:
            result.failures.append(
                CheckFailure(
                    path=path,
                    source_path=None,
                    status=None,
                    reason="not tracked by doch",
                )
            )

        for mapped in selected:
            source = mapped.source_path
            if source is None:
                result.failures.append(
                    CheckFailure(
                        path=mapped.path,
                        source_path=None,
                        status=None,
                        reason="no source file found for documentation",
                    )
                )
                continue
            if source in seen:
                continue
            seen.add(source)

            entry = state.get(source)
            if entry is None:
                result.failures.append(
                    CheckFailure(
                        path=mapped.path,
                        source_path=source,
                        status=None,
                        reason="not tracked (run `doch drift` first)",
                    )
                )
            elif not entry.is_uptodate:
                status = entry.status.value if entry.status else None
                result.failures.append(
                    CheckFailure(
                        path=mapped.path,
                        source_path=source,
                        status=status,
                        reason=f"documentation is {status or 'unknown'}",
                    )
                )
            else:
                result.passed.append(source)

        for failure in result.failures:
            logger.info("Check failed: %s", failure.message)
        return result

    # ------------------------------------------------------------------
    # prune
    # ------------------------------------------------------------------

    def prune(self, dry_run: bool = False) -> list[str]:
        """Remove entries whose source file no longer exists.

        Returns the removed (or, with *dry_run*, removable) source paths.
        """
        state = self._store.load()
        stale = [path for path in state.paths() if not self._fs.is_file(path)]
        if stale and not dry_run:
            for path in stale:
                state.remove(path)
            self._store.save(state)
            logger.info("Pruned %d stale entr%s", len(stale), "y" if len(stale) == 1 else "ies")
        return stale

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _select(
        self,
        paths: Iterable[str],
        ignored: list[str],
        untracked: Optional[list[str]] = None,
    ) -> list[MappedPath]:
        """Classify input paths, keeping only sources and docs.

        Excluded paths go to *ignored*.  When *untracked* is given, excluded
        paths that are not Markdown go there instead.
        """
        selected: list[MappedPath] = []
        for raw in paths:
            if not raw or not raw.strip():
                continue
            mapped = self._mapper.classify(raw)
            if self._ignore.is_ignored(mapped.path):
                reason = "matched ignore rules"
            elif mapped.kind not in (PathKind.SOURCE, PathKind.DOC):
                reason = mapped.kind.value
            else:
                selected.append(mapped)
                continue
            if untracked is not None and not mapped.path.lower().endswith("." + DOC_EXTENSION):
                logger.debug("%s is not tracked (%s).", mapped.path, reason)
                untracked.append(mapped.path)
            else:
                logger.debug("Ignoring %s (%s).", mapped.path, reason)
                ignored.append(mapped.path)
        return selected

    def _significance(self, source: str) -> ChangeSignificance:
        try:
            return self._classifier.classify(source)
        except Exception:
            logger.warning(
                "Significance classifier failed for %s. Treating as major.",
                source,
                exc_info=True,
            )
            return ChangeSignificance.MAJOR
