"""Tests for the FastMCP server.

Verifies server creation, configuration caching and invalidation, and
every registered tool.  All tests use real file I/O with temporary
directories.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from conftest import write_file
from doch.mcp.server import create_server
from doch.models.state import DocState, DocStateEntry, DocStatus
from doch.storage.store import StateStore

EXPECTED_TOOLS = {
    "health_check",
    "drift_files",
    "check_files",
    "get_file_status",
    "list_status",
    "notify_config_changed",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_tool_result(result) -> dict:
    """Extract a dict from a FastMCP ToolResult.

    FastMCP tool.run() returns a ToolResult whose .content is a list of
    TextContent objects.  The first TextContent's .text is JSON-encoded.
    """
    if isinstance(result, dict):
        return result
    if isinstance(result, str):
        return json.loads(result)
    if hasattr(result, "content") and result.content:
        return json.loads(result.content[0].text)
    raise TypeError(f"Cannot parse tool result of type {type(result)}")


def _call(server, name: str, arguments: dict | None = None) -> dict:
    tools = asyncio.run(server.get_tools())
    return _parse_tool_result(asyncio.run(tools[name].run(arguments or {})))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def server(project_dir: Path):
    return create_server(project_root=str(project_dir))


# ---------------------------------------------------------------------------
# Server creation
# ---------------------------------------------------------------------------


class TestCreateServer:
    def test_returns_fastmcp_instance(self, server) -> None:
        from fastmcp import FastMCP

        assert isinstance(server, FastMCP)

    def test_server_name(self, server) -> None:
        assert server.name == "doch"

    def test_all_tools_registered(self, server) -> None:
        tools = asyncio.run(server.get_tools())
        assert EXPECTED_TOOLS <= set(tools)

    def test_config_uses_project_root(self, server, project_dir: Path) -> None:
        result = _call(server, "health_check")
        assert result["project_root"] == str(project_dir.resolve())

    def test_respects_config_file(self, project_dir: Path) -> None:
        write_file(project_dir, ".doch/config.json", json.dumps({"docsDirectory": "manual"}))
        server = create_server(project_root=str(project_dir))
        assert _call(server, "health_check")["docs_directory"] == "manual"

    def test_does_not_write_state(self, server, project_dir: Path) -> None:
        assert not (project_dir / ".doch").exists()


class TestConfigCaching:
    def test_config_is_cached(self, server, project_dir: Path) -> None:
        assert _call(server, "health_check")["docs_directory"] == "docs"
        write_file(project_dir, ".doch/config.json", json.dumps({"docsDirectory": "manual"}))
        assert _call(server, "health_check")["docs_directory"] == "docs"

    def test_servers_do_not_share_cache(self, project_dir: Path, tmp_path_factory) -> None:
        other = tmp_path_factory.mktemp("other")
        (other / ".git").mkdir()
        write_file(other, ".doch/config.json", json.dumps({"docsDirectory": "manual"}))
        first = create_server(project_root=str(project_dir))
        second = create_server(project_root=str(other))
        assert _call(first, "health_check")["docs_directory"] == "docs"
        assert _call(second, "health_check")["docs_directory"] == "manual"

    def test_invalidating_one_server_leaves_other_cached(self, project_dir: Path) -> None:
        first = create_server(project_root=str(project_dir))
        second = create_server(project_root=str(project_dir))
        write_file(project_dir, ".doch/config.json", json.dumps({"docsDirectory": "manual"}))
        _call(first, "notify_config_changed")
        assert _call(first, "health_check")["docs_directory"] == "manual"
        assert _call(second, "health_check")["docs_directory"] == "docs"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class TestHealthCheck:
    def test_fields(self, server, project_dir: Path) -> None:
        result = _call(server, "health_check")
        assert result["status"] == "healthy"
        assert result["project_root"] == str(project_dir.resolve())
        assert result["docs_directory"] == "docs"
        assert result["initialized"] is False
        assert result["state_exists"] is False
        assert result["tracked_files"] == 0

    def test_initialized_with_config_file(self, project_dir: Path) -> None:
        write_file(project_dir, ".doch/config.json", "{}")
        server = create_server(project_root=str(project_dir))
        assert _call(server, "health_check")["initialized"] is True


class TestDriftAndCheckTools:
    def test_drift_files(self, server, project_dir: Path) -> None:
        write_file(project_dir, "src/b.ts")
        result = _call(server, "drift_files", {"paths": ["src/b.ts"]})
        assert result["error"] is False
        assert result["updated"]["src/b.ts"]["status"] == "nodocs"
        assert StateStore(str(project_dir)).load().get("src/b.ts").status == DocStatus.NODOCS

    def test_drift_then_check(self, server, project_dir: Path) -> None:
        write_file(project_dir, "src/a.ts")
        write_file(project_dir, "docs/a.md")
        _call(server, "drift_files", {"paths": ["src/a.ts", "docs/a.md"]})
        result = _call(server, "check_files", {"paths": ["docs/a.md"]})
        assert result["ok"] is True
        assert result["passed"] == ["src/a.ts"]

    def test_check_reports_failures(self, server, project_dir: Path) -> None:
        state = DocState()
        state.upsert(
            "src/a.ts",
            DocStateEntry(documented=True, timestamp="2024-01-02T00:00:00Z", status=DocStatus.OUTDATED),
        )
        StateStore(str(project_dir)).save(state)
        write_file(project_dir, "src/a.ts")
        result = _call(server, "check_files", {"paths": ["src/a.ts"]})
        assert result["ok"] is False
        assert result["failures"][0]["source_path"] == "src/a.ts"

    def test_drift_save_failure_is_reported(self, server, project_dir: Path) -> None:
        write_file(project_dir, ".doch/metadata")
        write_file(project_dir, "src/b.ts")
        result = _call(server, "drift_files", {"paths": ["src/b.ts"]})
        assert result["error"] is True
        assert "Could not save" in result["message"]


class TestStatusTools:
    def test_get_file_status(self, server, project_dir: Path) -> None:
        write_file(project_dir, "src/a.ts")
        result = _call(server, "get_file_status", {"path": "src/a.ts"})
        assert result["error"] is False
        assert result["status"] == "nodocs"
        assert result["doc_path"] == "docs/a.md"

    def test_get_file_status_outside_layout(self, server) -> None:
        result = _call(server, "get_file_status", {"path": "scripts/build.sh"})
        assert result["error"] is True

    def test_list_status(self, server, project_dir: Path) -> None:
        write_file(project_dir, "src/a.ts")
        write_file(project_dir, "README.md")
        result = _call(server, "list_status")
        assert result["error"] is False
        assert result["counts"]["nodocs"] == 1
        assert result["counts"]["independent"] == 1


class TestNotifyConfigChanged:
    def test_config_path_invalidates(self, server, project_dir: Path) -> None:
        assert _call(server, "health_check")["docs_directory"] == "docs"
        write_file(project_dir, ".doch/config.json", json.dumps({"docsDirectory": "manual"}))
        result = _call(server, "notify_config_changed", {"path": ".doch/config.json"})
        assert result["invalidated"] is True
        assert _call(server, "health_check")["docs_directory"] == "manual"

    def test_absolute_config_path_invalidates(self, server, project_dir: Path) -> None:
        _call(server, "health_check")
        write_file(project_dir, ".doch/config.json", "{}")
        result = _call(server, "notify_config_changed", {"path": str(project_dir / ".doch/config.json")})
        assert result["invalidated"] is True

    def test_unrelated_path(self, server) -> None:
        result = _call(server, "notify_config_changed", {"path": "src/a.ts"})
        assert result["invalidated"] is False

    def test_empty_path_invalidates_workspace(self, server, project_dir: Path) -> None:
        _call(server, "health_check")
        write_file(project_dir, ".doch/config.json", json.dumps({"fileExtensions": ["py"]}))
        result = _call(server, "notify_config_changed")
        assert result["invalidated"] is True
        assert _call(server, "health_check")["file_extensions"] == ["py"]

    def test_tools_see_new_layout(self, server, project_dir: Path) -> None:
        write_file(project_dir, ".doch/config.json", json.dumps({"sourceDirectories": ["pkg"]}))
        _call(server, "notify_config_changed")
        write_file(project_dir, "pkg/a.ts")
        result = _call(server, "get_file_status", {"path": "pkg/a.ts"})
        assert result["status"] == "nodocs"
