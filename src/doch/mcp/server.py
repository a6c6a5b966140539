"""FastMCP server exposing doch's drift tracking to interactive clients.

The server is a second front end over the same library the CLI uses: the
tools call :class:`~doch.detection.engine.DriftEngine` and
:class:`~doch.detection.report.StatusReporter` directly, so the mapping and
classification rules exist in one place only.

Each server owns its own :class:`~doch.config.ConfigCache`, created by
:func:`create_server` and closed over by the tools.  Configuration is read
once and reused until a client reports a change through the
``notify_config_changed`` tool (typically from an editor file watcher).

Typical usage as an MCP server entry point::

    # Via the registered entry point (pyproject.toml):
    # [project.entry-points."mcp.servers"]
    # doch = "doch.mcp.server:create_server"

    # Or programmatically:
    from doch.mcp.server import create_server
    server = create_server()
    server.run(transport="stdio")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from doch import __version__
from doch.config import ConfigCache
from doch.detection.engine import DriftEngine
from doch.detection.report import StatusReporter
from doch.hooks.installer import is_initialized
from doch.storage.store import StateStore

logger = logging.getLogger(__name__)


def create_server(project_root: Optional[str] = None) -> FastMCP:
    """Create and configure a FastMCP server for one workspace.

    Parameters
    ----------
    project_root:
        Workspace root.  When None, it is detected from the current
        directory.

    Returns
    -------
    FastMCP
        The configured server, ready to ``run()``.
    """
    cache = ConfigCache()
    config = cache.get(project_root)
    config.configure_logging()

    logger.info("Initializing doch MCP server v%s", __version__)
    logger.info("Project root: %s", config.project_root)

    server = FastMCP(
        name="doch",
        instructions=(
            "doch tracks whether documentation is in sync with the source "
            "files it describes. Use drift_files after files change, "
            "check_files before publishing, and list_status for an overview. "
            "Call notify_config_changed when .doch/config.json is edited."
        ),
        version=__version__,
    )
    _register_tools(server, cache, config.project_root)

    logger.info("FastMCP server created successfully. Tools registered.")
    return server


# ---------------------------------------------------------------------------
# Tool registration
# ---------------------------------------------------------------------------


def _error(message: str) -> dict:
    return {
        "error": True,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _register_tools(server: FastMCP, cache: ConfigCache, project_root: str) -> None:
    """Register all MCP tools on *server*, bound to one workspace's cache."""

    @server.tool()
    def health_check() -> dict:
        """Check the health and status of the doch MCP server.

        Returns:
            A dictionary with server_version, status ("healthy" or
            "degraded"), project_root, config summary, initialized,
            state_path, state_exists, tracked_files and timestamp.
        """
        cfg = cache.get(project_root)
        store = StateStore(cfg.project_root)
        root_ok = Path(cfg.project_root).is_dir()
        return {
            "server_version": __version__,
            "status": "healthy" if root_ok else "degraded",
            "project_root": cfg.project_root,
            "source_directories": cfg.source_directories,
            "file_extensions": cfg.file_extensions,
            "docs_directory": cfg.docs_directory,
            "initialized": is_initialized(cfg),
            "state_path": str(store.path),
            "state_exists": store.exists(),
            "tracked_files": len(store.load()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @server.tool()
    def drift_files(paths: list[str]) -> dict:
        """Record documentation status for changed files.

        Args:
            paths: Workspace-relative paths of changed source or
                documentation files.

        Returns:
            The updated entries keyed by source path, plus skipped and
            ignored paths, or an error if the state could not be saved.
        """
        cfg = cache.get(project_root)
        try:
            result = DriftEngine(cfg).drift(paths)
        except OSError as exc:
            logger.warning("drift_files could not save state.", exc_info=True)
            return _error(f"Could not save drift state: {exc}")
        data = result.to_dict()
        data["error"] = False
        return data

    @server.tool()
    def check_files(paths: list[str]) -> dict:
        """Check that the given files' documentation is up to date.

        Args:
            paths: Workspace-relative source or documentation paths.

        Returns:
            ``ok`` (true only if every path's source is uptodate), the
            passed source paths and one failure record per offending path.
        """
        cfg = cache.get(project_root)
        data = DriftEngine(cfg).check(paths).to_dict()
        data["error"] = False
        return data

    @server.tool()
    def get_file_status(path: str) -> dict:
        """Get the documentation status of a single file.

        Args:
            path: Workspace-relative path of a source or documentation file.

        Returns:
            The file's status record, or an error if the file is ignored or
            outside the tracked layout.
        """
        cfg = cache.get(project_root)
        item = StatusReporter(cfg).file_status(path)
        if item is None:
            return _error(f"{path} is not tracked by doch.")
        data = item.to_dict()
        data["error"] = False
        return data

    @server.tool()
    def list_status() -> dict:
        """List the documentation status of every file in the workspace.

        Returns:
            Counts per status and one record per source, orphan doc and
            independent Markdown file.
        """
        cfg = cache.get(project_root)
        data = StatusReporter(cfg).collect().to_dict()
        data["error"] = False
        return data

    @server.tool()
    def notify_config_changed(path: str = "") -> dict:
        """Tell the server that a doch config file changed.

        Args:
            path: The changed file.  When empty, the served workspace's
                cached configuration is dropped unconditionally.

        Returns:
            Whether a cached configuration was invalidated.
        """
        if path:
            candidate = Path(path)
            if not candidate.is_absolute():
                candidate = Path(project_root) / candidate
            invalidated = cache.notify_changed(str(candidate))
        else:
            invalidated = cache.invalidate(project_root)
        return {
            "error": False,
            "invalidated": invalidated,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
