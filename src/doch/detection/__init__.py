"""Drift classification: significance strategies, the drift engine and status reports.

- :class:`DriftEngine` -- batch drift passes and hook checks
- :class:`CommitMessageClassifier` -- default minor/major change strategy
- :class:`StatusReporter` -- workspace-wide status for front ends
"""

from doch.detection.engine import (
    CheckFailure,
    CheckResult,
    DriftEngine,
    DriftResult,
    SkippedPath,
)
from doch.detection.report import (
    FileStatus,
    FileStatusItem,
    StatusReport,
    StatusReporter,
)
from doch.detection.significance import (
    MINOR_KEYWORDS,
    ChangeSignificance,
    CommitMessageClassifier,
    GitHistory,
    SignificanceClassifier,
    classify_subject,
)

__all__ = [
    "ChangeSignificance",
    "CheckFailure",
    "CheckResult",
    "CommitMessageClassifier",
    "DriftEngine",
    "DriftResult",
    "FileStatus",
    "FileStatusItem",
    "GitHistory",
    "MINOR_KEYWORDS",
    "SignificanceClassifier",
    "SkippedPath",
    "StatusReport",
    "StatusReporter",
    "classify_subject",
]
