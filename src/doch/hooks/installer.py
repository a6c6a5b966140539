"""Workspace initialisation and git hook installation.

``init_repository`` creates the ``.doch/`` tree, a default config file and
three git hook scripts:

- ``post-commit`` -- runs ``doch drift`` over the files of the new commit;
- ``post-merge`` -- runs ``doch drift`` over the files brought in by a merge;
- ``pre-push`` -- runs ``doch check`` over the Markdown files about to be
  pushed and blocks the push if any of them is stale.

The scripts are always written to ``.doch/hooks/``.  With
``install_hooks=True`` they are also copied into ``.git/hooks/`` and made
executable.  Existing files are left alone unless ``force=True``, so the
function is safe to run repeatedly.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Any

from doch.config import DochConfig
from doch.storage.store import METADATA_SUBDIR

logger = logging.getLogger(__name__)

HOOKS_SUBDIR = "hooks"

POST_COMMIT_HOOK = """\
#!/usr/bin/env sh
# doch: record documentation status for the files of this commit.
echo "doch: updating documentation status..."
git diff-tree --root --no-commit-id --name-only -r -z HEAD | xargs -0 doch drift
"""

POST_MERGE_HOOK = """\
#!/usr/bin/env sh
# doch: record documentation status for the files brought in by a merge.
echo "doch: updating documentation status after merge..."
git diff-tree -r -z --name-only --no-commit-id ORIG_HEAD HEAD | xargs -0 doch drift
"""

PRE_PUSH_HOOK = """\
#!/usr/bin/env sh
# doch: block the push when pushed documentation is stale.
echo "doch: checking documentation before push..."
UPSTREAM=$(git rev-parse --abbrev-ref --symbolic-full-name @{u} 2>/dev/null || echo origin/main)
git diff -z --name-only "$UPSTREAM"...HEAD -- '*.md' | xargs -0 doch check \\
  || { echo "doch: push blocked, documentation is stale."; exit 1; }
"""

HOOK_SCRIPTS = {
    "post-commit": POST_COMMIT_HOOK,
    "post-merge": POST_MERGE_HOOK,
    "pre-push": PRE_PUSH_HOOK,
}


def init_repository(
    config: DochConfig,
    *,
    force: bool = False,
    install_hooks: bool = False,
) -> dict[str, Any]:
    """Create the ``.doch`` layout for *config*'s project.

    Returns
    -------
    dict
        ``created`` and ``skipped`` lists of paths (relative to the project
        root), ``installed`` hook paths under ``.git/hooks``, and
        ``git_hooks_dir`` (or *None* if the project is not a git
        repository).
    """
    root = config.root
    base = config.metadata_path
    created: list[str] = []
    skipped: list[str] = []
    installed: list[str] = []

    for directory in (base, base / METADATA_SUBDIR, base / HOOKS_SUBDIR):
        directory.mkdir(parents=True, exist_ok=True)

    config_path = config.config_path
    if config_path.exists() and not force:
        skipped.append(_rel(config_path, root))
    else:
        config.save()
        created.append(_rel(config_path, root))

    for name, script in HOOK_SCRIPTS.items():
        target = base / HOOKS_SUBDIR / name
        if _write_script(target, script, force):
            created.append(_rel(target, root))
        else:
            skipped.append(_rel(target, root))

    git_hooks_dir = _git_hooks_dir(root)
    if install_hooks:
        if git_hooks_dir is None:
            logger.warning("%s is not a git repository; hooks were not installed.", root)
        else:
            for name, script in HOOK_SCRIPTS.items():
                target = git_hooks_dir / name
                if _write_script(target, script, force):
                    installed.append(_rel(target, root))
                else:
                    skipped.append(_rel(target, root))

    logger.info(
        "Initialised %s: %d created, %d skipped, %d hooks installed",
        base,
        len(created),
        len(skipped),
        len(installed),
    )
    return {
        "project_root": str(root),
        "created": created,
        "skipped": skipped,
        "installed": installed,
        "git_hooks_dir": str(git_hooks_dir) if git_hooks_dir else None,
    }


def is_initialized(config: DochConfig) -> bool:
    """True when the project has a ``.doch/config.json``."""
    return config.config_path.is_file()


def _git_hooks_dir(root: Path) -> Path | None:
    git_dir = root / ".git"
    if not git_dir.is_dir():
        return None
    hooks_dir = git_dir / "hooks"
    hooks_dir.mkdir(exist_ok=True)
    return hooks_dir


def _write_script(target: Path, content: str, force: bool) -> bool:
    if target.exists() and not force:
        return False
    target.write_text(content, encoding="utf-8")
    mode = target.stat().st_mode
    target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return True


def _rel(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)
