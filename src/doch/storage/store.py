"""StateStore -- persistence of the drift state document.

The state lives in a single JSON file, ``<root>/.doch/metadata/doc-state.json``.
Loading is forgiving: a missing, unreadable or malformed file yields an
empty :class:`~doch.models.state.DocState` (the bad content is not kept).
Saving rewrites the whole file atomically (write-to-temp + rename) and
creates any missing parent directories.

There is no locking.  Two processes saving at the same time race, and the
last writer wins.

Typical usage::

    store = StateStore("/path/to/project")
    state = store.load()
    state.upsert("src/a.ts", entry)
    store.save(state)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from doch.config import METADATA_DIR_NAME
from doch.models.state import DocState

logger = logging.getLogger(__name__)

# Subdirectory of the metadata directory holding machine-written files.
METADATA_SUBDIR = "metadata"

# File name for the persisted drift state.
STATE_FILE_NAME = "doc-state.json"


class StateStore:
    """File-based storage for :class:`DocState`.

    Parameters
    ----------
    project_root:
        The workspace root.  When *None*, the current directory is used.
    state_path:
        Explicit path to the state file, overriding the default location.
    """

    def __init__(
        self,
        project_root: Optional[str] = None,
        state_path: Optional[str] = None,
    ) -> None:
        root = Path(project_root).resolve() if project_root else Path.cwd()
        if state_path is not None:
            self._path = Path(state_path).resolve()
        else:
            self._path = root / METADATA_DIR_NAME / METADATA_SUBDIR / STATE_FILE_NAME

    @property
    def path(self) -> Path:
        """The state file location."""
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> DocState:
        """Load the persisted state.

        Returns an empty state if the file is missing, unreadable, not a JSON
        object, or fails validation.
        """
        data = self._safe_read_json(self._path)
        if data is None:
            return DocState()
        if not isinstance(data, dict):
            logger.warning(
                "State file %s does not contain a JSON object. Starting empty.",
                self._path,
            )
            return DocState()
        try:
            return DocState.from_json_dict(data)
        except ValidationError:
            logger.warning(
                "State file %s has invalid entries. Starting empty.",
                self._path,
                exc_info=True,
            )
            return DocState()

    def save(self, state: DocState) -> Path:
        """Persist the full state, replacing the file atomically.

        Raises ``OSError`` if the file cannot be written.
        """
        self._atomic_write(self._path, state.to_json_dict())
        logger.info("Saved %d state entr%s to %s", len(state), "y" if len(state) == 1 else "ies", self._path)
        return self._path

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _atomic_write(self, target: Path, data: dict) -> None:
        """Write *data* as formatted JSON to *target* atomically.

        The payload is written to a temporary file in the same directory,
        flushed and ``fsync``'ed, then renamed over *target*.  On failure
        the temporary file is removed and *target* is left untouched.
        """
        target.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path: Optional[str] = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target.parent),
                prefix=".tmp_",
                suffix=".json",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fd = None  # os.fdopen takes ownership of the fd
                json.dump(data, fp, indent=2, ensure_ascii=False)
                fp.write("\n")
                fp.flush()
                os.fsync(fp.fileno())

            os.replace(tmp_path, str(target))
            tmp_path = None

        except BaseException:
            if fd is not None:
                os.close(fd)
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise

    def _safe_read_json(self, path: Path) -> Optional[object]:
        """Read and parse a JSON file, returning *None* on any failure."""
        if not path.is_file():
            logger.debug("No state file at %s.", path)
            return None
        try:
            with open(path, "r", encoding="utf-8") as fp:
                return json.load(fp)
        except json.JSONDecodeError:
            logger.warning(
                "Corrupt JSON in %s. The file will be ignored.",
                path,
                exc_info=True,
            )
            return None
        except (OSError, UnicodeDecodeError):
            logger.warning("Could not read %s.", path, exc_info=True)
            return None
