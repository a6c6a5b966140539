"""Shared fixtures for the doch test suite."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from doch.config import ENV_PREFIX
from doch.detection.significance import ChangeSignificance, classify_subject


class FakeHistory:
    """Stands in for GitHistory: returns canned commit subjects."""

    def __init__(self, subjects: Optional[dict[str, str]] = None) -> None:
        self.subjects = dict(subjects or {})
        self.calls: list[str] = []

    def last_subject(self, path: str) -> str:
        self.calls.append(path)
        return self.subjects.get(path, "")


class SubjectClassifier:
    """SignificanceClassifier driven by a FakeHistory."""

    def __init__(self, subjects: Optional[dict[str, str]] = None) -> None:
        self.history = FakeHistory(subjects)

    def classify(self, source_path: str) -> ChangeSignificance:
        return classify_subject(self.history.last_subject(source_path))


def write_file(root: Path, rel_path: str, content: str = "", mtime: Optional[datetime] = None) -> Path:
    """Create *rel_path* under *root*, optionally setting its mtime."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        ts = mtime.timestamp()
        os.utime(path, (ts, ts))
    return path


@pytest.fixture(autouse=True)
def clean_env():
    """Remove all DOCH_* env vars before and after each test."""
    saved = {k: os.environ.pop(k) for k in [k for k in os.environ if k.startswith(ENV_PREFIX)]}
    yield
    for k in list(os.environ):
        if k.startswith(ENV_PREFIX):
            del os.environ[k]
    os.environ.update(saved)


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    """A temporary project directory with a .git marker."""
    (tmp_path / ".git").mkdir()
    return tmp_path


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
