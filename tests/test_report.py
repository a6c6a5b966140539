"""Tests for StatusReporter -- workspace-wide status."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from doch.config import DochConfig
from doch.detection.report import STATUS_ORDER, FileStatus, StatusReporter
from doch.mapping.filesystem import MemoryFileSystem
from doch.mapping.ignore import IgnoreFilter
from doch.models.state import DocState, DocStateEntry, DocStatus
from doch.storage.store import StateStore

RECORDED = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
EARLIER = RECORDED - timedelta(hours=1)
LATER = RECORDED + timedelta(hours=1)


@pytest.fixture()
def config(project_dir: Path) -> DochConfig:
    return DochConfig(
        project_root=str(project_dir),
        source_directories=["src"],
        file_extensions=["ts"],
        docs_directory="docs",
    )


@pytest.fixture()
def store(project_dir: Path) -> StateStore:
    return StateStore(str(project_dir))


@pytest.fixture()
def fs() -> MemoryFileSystem:
    fs = MemoryFileSystem()
    fs.write("src/ok.ts", mtime=EARLIER)
    fs.write("docs/ok.md", mtime=EARLIER)
    fs.write("src/stale.ts", mtime=EARLIER)
    fs.write("docs/stale.md", mtime=EARLIER)
    fs.write("src/bare.ts", mtime=EARLIER)
    fs.write("src/fresh.ts", mtime=EARLIER)
    fs.write("docs/fresh.md", mtime=EARLIER)
    fs.write("docs/orphan.md", mtime=EARLIER)
    fs.write("README.md", mtime=EARLIER)
    fs.write("src/style.css", mtime=EARLIER)
    fs.write(".git/HEAD", mtime=EARLIER)
    return fs


def _entry(status: DocStatus) -> DocStateEntry:
    return DocStateEntry(
        documented=status != DocStatus.NODOCS,
        timestamp=RECORDED,
        doc_time=RECORDED,
        status=status,
    )


@pytest.fixture()
def reporter(config, fs, store) -> StatusReporter:
    state = DocState()
    state.upsert("src/ok.ts", _entry(DocStatus.UPTODATE))
    state.upsert("src/stale.ts", _entry(DocStatus.OUTDATED))
    state.upsert("src/bare.ts", _entry(DocStatus.NODOCS))
    store.save(state)
    return StatusReporter(config, fs=fs, store=store, ignore=IgnoreFilter())


class TestCollect:
    def test_every_relevant_file_is_listed(self, reporter) -> None:
        report = reporter.collect()
        statuses = {item.path: item.status for item in report.items}
        assert statuses == {
            "src/ok.ts": FileStatus.UPTODATE,
            "src/stale.ts": FileStatus.OUTDATED,
            "src/bare.ts": FileStatus.NODOCS,
            "src/fresh.ts": FileStatus.UNTRACKED,
            "docs/orphan.md": FileStatus.NOSOURCE,
            "README.md": FileStatus.INDEPENDENT,
        }

    def test_counts_follow_display_order(self, reporter) -> None:
        counts = reporter.collect().counts()
        assert list(counts) == [status.value for status in STATUS_ORDER]
        assert counts["outdated"] == 1
        assert counts["untracked"] == 1

    def test_by_status(self, reporter) -> None:
        items = reporter.collect().by_status(FileStatus.NOSOURCE)
        assert [item.path for item in items] == ["docs/orphan.md"]

    def test_ignored_files_are_hidden(self, config, fs, store) -> None:
        reporter = StatusReporter(config, fs=fs, store=store, ignore=IgnoreFilter.from_patterns(["README.md"]))
        paths = [item.path for item in reporter.collect().items]
        assert "README.md" not in paths

    def test_not_changed_since_drift(self, reporter) -> None:
        items = {item.path: item for item in reporter.collect().items}
        assert items["src/ok.ts"].changed_since_drift is False

    def test_changed_since_drift(self, reporter, fs) -> None:
        fs.touch("docs/ok.md", LATER)
        items = {item.path: item for item in reporter.collect().items}
        assert items["src/ok.ts"].changed_since_drift is True
        assert items["src/ok.ts"].status == FileStatus.UPTODATE

    def test_to_dict(self, reporter) -> None:
        data = reporter.collect().to_dict()
        assert set(data) == {"generated_at", "counts", "items"}
        ok = next(item for item in data["items"] if item["path"] == "src/ok.ts")
        assert ok["status"] == "uptodate"
        assert ok["doc_path"] == "docs/ok.md"
        assert ok["recorded_at"] == RECORDED.isoformat()


class TestFileStatus:
    def test_doc_reports_its_source(self, reporter) -> None:
        item = reporter.file_status("docs/stale.md")
        assert item.status == FileStatus.OUTDATED
        assert item.source_path == "src/stale.ts"

    def test_source_without_doc(self, reporter) -> None:
        assert reporter.file_status("src/bare.ts").status == FileStatus.NODOCS

    def test_doc_created_after_nodocs_is_untracked(self, reporter, fs) -> None:
        fs.write("docs/bare.md", mtime=LATER)
        assert reporter.file_status("src/bare.ts").status == FileStatus.UNTRACKED

    def test_outside_layout(self, reporter) -> None:
        assert reporter.file_status("src/style.css") is None

    def test_independent(self, reporter) -> None:
        assert reporter.file_status("README.md").status == FileStatus.INDEPENDENT
