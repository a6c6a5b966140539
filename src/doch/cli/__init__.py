"""Click CLI commands for doch.

Provides the ``doch`` CLI entry point with subcommands:
- ``doch drift``  -- Record documentation status for changed files (git hooks).
- ``doch check``  -- Exit 1 unless the given files' docs are up to date (git hooks).
- ``doch status`` -- Show documentation status for the whole workspace.
- ``doch init``   -- Create .doch/ with a default config and hook scripts.
- ``doch prune``  -- Remove entries for deleted source files.
"""

from doch.cli.main import check, cli, drift, init, prune, status

__all__ = ["check", "cli", "drift", "init", "prune", "status"]
