"""Tests for DocState models and StateStore persistence.

All tests use real files in temporary directories.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from doch.models.state import EPOCH, DocState, DocStateEntry, DocStatus
from doch.storage.store import METADATA_SUBDIR, STATE_FILE_NAME, StateStore

T1 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 5, 2, 10, 0, 0, tzinfo=timezone.utc)


def _entry(status: DocStatus = DocStatus.UPTODATE, documented: bool = True) -> DocStateEntry:
    return DocStateEntry(documented=documented, timestamp=T2, doc_time=T1, status=status)


# ---------------------------------------------------------------------------
# DocStateEntry
# ---------------------------------------------------------------------------


class TestDocStateEntry:
    def test_json_uses_on_disk_keys(self) -> None:
        data = _entry(DocStatus.OUTDATED).to_json_dict()
        assert data == {
            "documented": True,
            "timestamp": "2024-05-02T10:00:00Z",
            "docTime": "2024-05-01T10:00:00Z",
            "status": "outdated",
        }

    def test_unset_fields_are_omitted(self) -> None:
        data = DocStateEntry(documented=False, timestamp=T1).to_json_dict()
        assert set(data) == {"documented", "timestamp"}

    def test_legacy_entry_loads(self) -> None:
        entry = DocStateEntry.model_validate({"documented": True, "timestamp": "2024-05-01T10:00:00Z"})
        assert entry.doc_time is None
        assert entry.status is None
        assert not entry.is_uptodate

    def test_naive_timestamp_is_utc(self) -> None:
        entry = DocStateEntry.model_validate({"documented": True, "timestamp": "2024-05-01T10:00:00"})
        assert entry.timestamp == T1

    def test_accepts_field_name(self) -> None:
        entry = DocStateEntry(documented=True, timestamp=T2, doc_time=T1)
        assert entry.doc_time == T1

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DocStateEntry.model_validate({"documented": True, "timestamp": T1, "status": "stale"})

    def test_epoch(self) -> None:
        assert EPOCH.year == 1970
        assert EPOCH.tzinfo is not None


# ---------------------------------------------------------------------------
# DocState
# ---------------------------------------------------------------------------


class TestDocState:
    def test_upsert_replaces(self) -> None:
        state = DocState()
        state.upsert("src/a.ts", _entry(DocStatus.OUTDATED))
        state.upsert("src/a.ts", _entry(DocStatus.UPTODATE))
        assert len(state) == 1
        assert state.get("src/a.ts").status == DocStatus.UPTODATE

    def test_remove(self) -> None:
        state = DocState()
        state.upsert("src/a.ts", _entry())
        assert state.remove("src/a.ts") is True
        assert state.remove("src/a.ts") is False
        assert "src/a.ts" not in state

    def test_json_is_flat_and_sorted(self) -> None:
        state = DocState()
        state.upsert("src/b.ts", _entry())
        state.upsert("src/a.ts", _entry())
        data = state.to_json_dict()
        assert list(data) == ["src/a.ts", "src/b.ts"]
        assert data["src/a.ts"]["status"] == "uptodate"

    def test_from_json_dict(self) -> None:
        state = DocState.from_json_dict(
            {"src/a.ts": {"documented": False, "timestamp": "2024-05-02T10:00:00Z", "status": "nodocs"}}
        )
        assert state.get("src/a.ts").status == DocStatus.NODOCS
        assert state.paths() == ["src/a.ts"]


# ---------------------------------------------------------------------------
# StateStore
# ---------------------------------------------------------------------------


class TestStateStore:
    def test_default_path(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        assert store.path == project_dir.resolve() / ".doch" / METADATA_SUBDIR / STATE_FILE_NAME

    def test_load_missing_is_empty(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        assert not store.exists()
        assert len(store.load()) == 0

    def test_save_creates_directories(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        state = DocState()
        state.upsert("src/a.ts", _entry())
        path = store.save(state)
        assert path.is_file()
        assert json.loads(path.read_text(encoding="utf-8"))["src/a.ts"]["documented"] is True

    def test_round_trip(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        state = DocState()
        state.upsert("src/a.ts", _entry(DocStatus.OUTDATED))
        state.upsert("lib/b.js", DocStateEntry(documented=False, timestamp=T1, status=DocStatus.NODOCS))
        store.save(state)
        loaded = store.load()
        assert loaded.to_json_dict() == state.to_json_dict()

    def test_save_replaces_whole_file(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        first = DocState()
        first.upsert("src/a.ts", _entry())
        store.save(first)
        second = DocState()
        second.upsert("src/b.ts", _entry())
        store.save(second)
        assert store.load().paths() == ["src/b.ts"]

    def test_no_temp_files_left(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        store.save(DocState())
        leftovers = [p.name for p in store.path.parent.iterdir() if p.name.startswith(".tmp_")]
        assert leftovers == []

    def test_corrupt_json_is_empty(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{broken", encoding="utf-8")
        assert len(store.load()) == 0

    def test_non_object_is_empty(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        store.path.parent.mkdir(parents=True)
        store.path.write_text('["src/a.ts"]', encoding="utf-8")
        assert len(store.load()) == 0

    def test_invalid_entry_is_empty(self, project_dir: Path) -> None:
        store = StateStore(str(project_dir))
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"src/a.ts": {"timestamp": "not a date"}}), encoding="utf-8")
        assert len(store.load()) == 0

    def test_explicit_state_path(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere" / "state.json"
        store = StateStore(state_path=str(target))
        store.save(DocState())
        assert target.is_file()

    def test_save_failure_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = StateStore(state_path=str(blocker / "state.json"))
        with pytest.raises(OSError):
            store.save(DocState())
