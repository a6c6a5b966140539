"""Ignore rules merged from ``.gitignore`` and ``.dochignore``.

Both files are optional.  Each non-blank line that does not start with ``#``
is a glob pattern; a path is ignored when any pattern from either file
matches it.  Matching follows the common gitignore conventions:

- ``build/`` (trailing slash) matches the directory and everything below it;
- ``/dist`` or ``docs/draft-*.md`` (a slash before the end) is anchored at
  the workspace root;
- ``*.log`` (no slash) matches the file or directory name at any depth;
- ``**/`` matches zero or more leading directories.

Negated patterns (``!keep.md``) are not supported and are skipped.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from doch.mapping.filesystem import FileSystem

logger = logging.getLogger(__name__)

GIT_IGNORE_FILE = ".gitignore"
DOCH_IGNORE_FILE = ".dochignore"

IGNORE_FILES = (GIT_IGNORE_FILE, DOCH_IGNORE_FILE)


def parse_patterns(text: str) -> list[str]:
    """Extract glob patterns from ignore-file text, in order."""
    patterns: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("!"):
            logger.debug("Negated ignore pattern %r is not supported; skipped.", line)
            continue
        patterns.append(line)
    return patterns


@dataclass
class IgnoreFilter:
    """A combined matcher over an ordered list of glob patterns.

    Attributes:
        patterns: The patterns, in file order (``.gitignore`` first).
        sources: Which ignore files contributed at least one pattern.
    """

    patterns: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "IgnoreFilter":
        return cls(patterns=parse_patterns("\n".join(patterns)))

    @classmethod
    def load(cls, fs: FileSystem, files: Optional[Iterable[str]] = None) -> "IgnoreFilter":
        """Build a filter from the ignore files present in the workspace.

        Missing or unreadable files contribute no patterns.
        """
        patterns: list[str] = []
        sources: list[str] = []
        for name in files if files is not None else IGNORE_FILES:
            text = fs.read_text(name)
            if text is None:
                continue
            found = parse_patterns(text)
            if found:
                patterns.extend(found)
                sources.append(name)
        logger.debug("Loaded %d ignore pattern(s) from %s", len(patterns), sources or "nothing")
        return cls(patterns=patterns, sources=sources)

    def is_ignored(self, rel_path: str) -> bool:
        """True if any pattern matches *rel_path*."""
        return any(_matches(pattern, rel_path) for pattern in self.patterns)

    def filter(self, rel_paths: Iterable[str]) -> list[str]:
        """Return the paths that are not ignored, preserving order."""
        return [path for path in rel_paths if not self.is_ignored(path)]

    def __len__(self) -> int:
        return len(self.patterns)


def _matches(pattern: str, rel_path: str) -> bool:
    directory_only = pattern.endswith("/")
    body = pattern.rstrip("/")
    anchored = "/" in body
    body = body.lstrip("/")
    if not body:
        return False

    parts = rel_path.split("/")
    # Directory patterns only match proper ancestors; file patterns may also
    # match the full path.
    limit = len(parts) - 1 if directory_only else len(parts)

    if anchored:
        candidates = ["/".join(parts[:i]) for i in range(1, limit + 1)]
        if body.startswith("**/"):
            tail = body[3:]
            return any(_glob(candidate, body) or _glob(candidate, tail) for candidate in candidates)
        return any(_glob(candidate, body) for candidate in candidates)

    return any(_glob(part, body) for part in parts[:limit])


def _glob(name: str, pattern: str) -> bool:
    return fnmatch.fnmatchcase(name, pattern)
