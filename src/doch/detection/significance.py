"""Change-significance classification for source files.

When a source file is newer than its documentation, the drift engine asks a
:class:`SignificanceClassifier` whether the change matters.  A *minor*
change (a bug fix, a refactor) leaves the documentation ``uptodate``; a
*major* change marks it ``outdated``.

The default strategy, :class:`CommitMessageClassifier`, looks at the subject
line of the last commit that touched the file and treats it as minor when it
contains one of the keywords ``fix``, ``bug`` or ``refactor``
(case-insensitive substring match).  If the subject cannot be read, it is
treated as empty and the change is classified as major.

Other strategies (diff size, AST diff) can be passed to the engine as long
as they implement :class:`SignificanceClassifier`.
"""

from __future__ import annotations

import logging
import subprocess
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)

# Commit subjects containing any of these are minor changes.
MINOR_KEYWORDS = ("fix", "bug", "refactor")

# Seconds to wait for a ``git log`` query before giving up.
GIT_TIMEOUT_SECONDS = 10


class ChangeSignificance(str, Enum):
    MINOR = "minor"
    MAJOR = "major"


class SignificanceClassifier(Protocol):
    """Decides whether the latest change to a source file is significant."""

    def classify(self, source_path: str) -> ChangeSignificance:
        ...


class GitHistory:
    """Reads commit history through the ``git`` executable.

    Parameters
    ----------
    repo_root:
        Directory the ``git`` command runs in.
    """

    def __init__(self, repo_root: str | Path) -> None:
        self._repo_root = Path(repo_root)

    def last_subject(self, path: str) -> str:
        """Return the subject of the most recent commit touching *path*.

        Returns an empty string when the directory is not a repository, the
        file is untracked, git is unavailable, or the query times out.
        """
        try:
            result = subprocess.run(
                ["git", "log", "-1", "--format=%s", "--", path],
                cwd=str(self._repo_root),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=GIT_TIMEOUT_SECONDS,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
            logger.debug("git log failed for %s", path, exc_info=True)
            return ""

        if result.returncode != 0:
            logger.debug(
                "git log exited %d for %s: %s",
                result.returncode,
                path,
                result.stderr.strip(),
            )
            return ""
        return result.stdout.strip()


def classify_subject(
    subject: str,
    keywords: Iterable[str] = MINOR_KEYWORDS,
) -> ChangeSignificance:
    """Classify a commit subject line as a minor or major change."""
    lowered = subject.lower()
    if any(keyword.lower() in lowered for keyword in keywords):
        return ChangeSignificance.MINOR
    return ChangeSignificance.MAJOR


class CommitMessageClassifier:
    """Classifies changes by keyword-matching the last commit subject.

    Parameters
    ----------
    history:
        Anything with a ``last_subject(path) -> str`` method, usually a
        :class:`GitHistory`.
    keywords:
        Keywords marking a minor change.  Defaults to :data:`MINOR_KEYWORDS`.
    """

    def __init__(
        self,
        history: GitHistory,
        keywords: Optional[Iterable[str]] = None,
    ) -> None:
        self._history = history
        self._keywords = tuple(keywords) if keywords is not None else MINOR_KEYWORDS

    def last_subject(self, source_path: str) -> str:
        return self._history.last_subject(source_path)

    def classify(self, source_path: str) -> ChangeSignificance:
        subject = self.last_subject(source_path)
        significance = classify_subject(subject, self._keywords)
        logger.debug(
            "%s: last commit %r classified as %s",
            source_path,
            subject,
            significance.value,
        )
        return significance
