"""Configuration and settings module for doch.

Provides the :class:`DochConfig` class which describes the source and
documentation layout of a workspace.  Configuration is resolved in priority
order:

1. **Environment variables** (highest priority) -- ``DOCH_*``
2. **Config file** -- ``<project_root>/.doch/config.json``
3. **Defaults** (lowest priority) -- ``src/``, ``lib/``, ``app/``;
   ``ts``, ``js``, ``tsx``; ``docs/``

Loading never fails: a missing, unreadable or invalid config file results in
the defaults being used, with a log message.

Typical usage::

    config = DochConfig.load()                     # auto-detect project root
    config = DochConfig.load("/path/to/project")   # explicit project root

    cache = ConfigCache()
    config = cache.get("/path/to/project")         # loaded once, then reused
    cache.notify_changed("/path/to/project/.doch/config.json")
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Metadata directory name, placed at the project root.
METADATA_DIR_NAME = ".doch"

# Config file name inside the metadata directory.
CONFIG_FILE_NAME = "config.json"

# Environment variable prefix.
ENV_PREFIX = "DOCH_"

DEFAULT_SOURCE_DIRECTORIES = ("src", "lib", "app")
DEFAULT_FILE_EXTENSIONS = ("ts", "js", "tsx")
DEFAULT_DOCS_DIRECTORY = "docs"

# Sentinel entries used to detect a project root directory.
PROJECT_ROOT_MARKERS = (".git", METADATA_DIR_NAME)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# camelCase keys used on disk, mapped to field names so that environment
# overrides (which use field names) take precedence when merged.
_FILE_KEYS = {
    "sourceDirectories": "source_directories",
    "fileExtensions": "file_extensions",
    "docsDirectory": "docs_directory",
    "logLevel": "log_level",
    "strictDrift": "strict_drift",
}


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------


def normalize_directory(value: str) -> str:
    """Normalise a directory setting to a relative posix path without slashes.

    ``"./src/"`` and ``"src\\\\"`` both become ``"src"``.  Applying the
    function twice gives the same result as applying it once.
    """
    cleaned = value.strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned.strip("/")


def normalize_extension(value: str) -> str:
    """Normalise a file extension to lowercase without the leading dot."""
    return value.strip().lstrip(".").lower()


# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


class DochConfig(BaseModel):
    """Workspace layout and behaviour settings.

    Attributes
    ----------
    project_root:
        Absolute path of the workspace.  Detected from the current directory
        when not given.
    source_directories:
        Source roots, in priority order.  The first one that prefixes a
        path wins.
    file_extensions:
        Source file extensions tracked for documentation, in the order they
        are probed when resolving a doc back to its source.
    docs_directory:
        The single documentation root.
    log_level:
        Python logging level name for the ``doch`` logger.
    strict_drift:
        When *True*, ``doch drift`` exits non-zero if any eligible path could
        not be resolved.
    """

    model_config = ConfigDict(populate_by_name=True)

    project_root: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Absolute path of the workspace root.",
    )
    source_directories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SOURCE_DIRECTORIES),
        alias="sourceDirectories",
        description="Source roots, checked in order.",
    )
    file_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FILE_EXTENSIONS),
        alias="fileExtensions",
        description="Tracked source extensions, without the leading dot.",
    )
    docs_directory: str = Field(
        default=DEFAULT_DOCS_DIRECTORY,
        alias="docsDirectory",
        description="Documentation root.",
    )
    log_level: str = Field(
        default="WARNING",
        alias="logLevel",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL.",
    )
    strict_drift: bool = Field(
        default=False,
        alias="strictDrift",
        description="Fail `doch drift` when an eligible path is skipped.",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("project_root")
    @classmethod
    def resolve_project_root(cls, value: Optional[str]) -> str:
        if value is None:
            detected = _detect_project_root()
            return str(detected if detected is not None else Path.cwd())
        return str(Path(value).resolve())

    @field_validator("source_directories")
    @classmethod
    def normalize_source_directories(cls, value: list[str]) -> list[str]:
        normalised: list[str] = []
        for entry in value:
            directory = normalize_directory(entry)
            if directory and directory not in normalised:
                normalised.append(directory)
        if not normalised:
            raise ValueError("sourceDirectories must contain at least one directory.")
        return normalised

    @field_validator("file_extensions")
    @classmethod
    def normalize_file_extensions(cls, value: list[str]) -> list[str]:
        normalised: list[str] = []
        for entry in value:
            extension = normalize_extension(entry)
            if extension and extension not in normalised:
                normalised.append(extension)
        if not normalised:
            raise ValueError("fileExtensions must contain at least one extension.")
        return normalised

    @field_validator("docs_directory")
    @classmethod
    def normalize_docs_directory(cls, value: str) -> str:
        directory = normalize_directory(value)
        if not directory:
            raise ValueError("docsDirectory must not be empty.")
        return directory

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalised = value.upper().strip()
        if normalised not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level '{value}'. "
                f"Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}."
            )
        return normalised

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        """The project root as a :class:`~pathlib.Path`."""
        return Path(self.project_root)

    @property
    def metadata_path(self) -> Path:
        """The ``.doch`` directory of this workspace."""
        return self.root / METADATA_DIR_NAME

    @property
    def config_path(self) -> Path:
        """Where the config file for this workspace lives."""
        return self.metadata_path / CONFIG_FILE_NAME

    # ------------------------------------------------------------------
    # Factory: load from file + environment
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        project_root: Optional[str] = None,
        config_path: Optional[str] = None,
    ) -> "DochConfig":
        """Load configuration with full resolution: env -> file -> defaults.

        Never raises.  If the merged values do not validate, the file and
        environment values are discarded and the defaults are returned.

        Parameters
        ----------
        project_root:
            Explicit project root.  When *None*, auto-detection is used.
        config_path:
            Explicit path to a config file.  When *None*, the file is looked
            up at ``<project_root>/.doch/config.json``.
        """
        if project_root is not None:
            resolved_root = str(Path(project_root).resolve())
        else:
            detected = _detect_project_root()
            resolved_root = str(detected if detected is not None else Path.cwd())

        merged: dict = {}
        merged.update(_load_config_file(resolved_root, config_path))
        merged.update(_load_env_overrides())
        merged["project_root"] = resolved_root

        try:
            return cls.model_validate(merged)
        except ValidationError:
            logger.warning(
                "Invalid doch configuration for %s. Using defaults.",
                resolved_root,
                exc_info=True,
            )
            return cls(project_root=resolved_root)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, config_path: Optional[str] = None) -> Path:
        """Write the user-facing settings to a JSON config file.

        Returns the path that was written.
        """
        target = Path(config_path).resolve() if config_path else self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "sourceDirectories": self.source_directories,
            "fileExtensions": self.file_extensions,
            "docsDirectory": self.docs_directory,
        }
        with open(target, "w", encoding="utf-8") as fp:
            json.dump(data, fp, indent=2, ensure_ascii=False)
            fp.write("\n")

        logger.info("Saved configuration to %s", target)
        return target

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def configure_logging(self, level: Optional[str] = None) -> None:
        """Apply the log level to the ``doch`` package logger.

        Adds a stderr handler the first time it is called; later calls only
        adjust the level.
        """
        effective = (level or self.log_level).upper()
        pkg_logger = logging.getLogger("doch")
        pkg_logger.setLevel(effective)

        if not pkg_logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            handler.setFormatter(formatter)
            pkg_logger.addHandler(handler)
        for handler in pkg_logger.handlers:
            handler.setLevel(effective)

    def to_dict(self) -> dict:
        """Return all configuration values as a plain dictionary."""
        return self.model_dump()


# ---------------------------------------------------------------------------
# Per-workspace cache
# ---------------------------------------------------------------------------


class ConfigCache:
    """Caches one :class:`DochConfig` per workspace root.

    Entries are only dropped through :meth:`invalidate`,
    :meth:`invalidate_all` or :meth:`notify_changed`; :meth:`get` never
    re-reads the file on its own.
    """

    def __init__(self) -> None:
        self._configs: dict[str, DochConfig] = {}

    def get(self, project_root: Optional[str] = None) -> DochConfig:
        """Return the cached config for *project_root*, loading it on first use.

        When *project_root* is *None*, the root is detected from the current
        directory.
        """
        if project_root is None:
            detected = _detect_project_root()
            project_root = str(detected if detected is not None else Path.cwd())
        key = _cache_key(project_root)
        config = self._configs.get(key)
        if config is None:
            config = DochConfig.load(project_root=key)
            self._configs[key] = config
            logger.debug("Cached configuration for %s", key)
        return config

    def invalidate(self, project_root: str) -> bool:
        """Drop the cached config for one workspace.

        Returns *True* if an entry was removed.
        """
        removed = self._configs.pop(_cache_key(project_root), None) is not None
        if removed:
            logger.info("Configuration cache invalidated for %s", project_root)
        return removed

    def invalidate_all(self) -> None:
        """Drop every cached config."""
        self._configs.clear()

    def notify_changed(self, changed_path: str) -> bool:
        """Handle a file-change notification.

        If *changed_path* is the config file of a cached workspace, that
        workspace's entry is dropped.  Returns *True* if an entry was removed.
        """
        changed = Path(changed_path).resolve()
        for key in list(self._configs):
            if changed == self._configs[key].config_path:
                return self.invalidate(key)
        return False

    def __contains__(self, project_root: object) -> bool:
        if not isinstance(project_root, str):
            return False
        return _cache_key(project_root) in self._configs

    def __len__(self) -> int:
        return len(self._configs)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _cache_key(project_root: str) -> str:
    return str(Path(project_root).resolve())


def _detect_project_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Walk upward from *start_path* to find the project root.

    The project root is the first directory that contains one of the
    :data:`PROJECT_ROOT_MARKERS`.  Returns *None* if none is found.
    """
    current = (start_path or Path.cwd()).resolve()

    max_depth = 50
    for _ in range(max_depth):
        for marker in PROJECT_ROOT_MARKERS:
            if (current / marker).exists():
                return current

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _load_config_file(
    project_root: str,
    config_path: Optional[str] = None,
) -> dict:
    """Read the config file and return its contents as a dict.

    Returns an empty dict if the file does not exist or is malformed.
    """
    if config_path is not None:
        path = Path(config_path).resolve()
    else:
        path = Path(project_root) / METADATA_DIR_NAME / CONFIG_FILE_NAME

    if not path.is_file():
        logger.debug("No config file at %s. Using defaults.", path)
        return {}

    try:
        with open(path, "r", encoding="utf-8") as fp:
            data = json.load(fp)
    except json.JSONDecodeError:
        logger.warning(
            "Config file %s contains invalid JSON. Ignoring.",
            path,
            exc_info=True,
        )
        return {}
    except OSError:
        logger.warning("Could not read config file %s. Ignoring.", path, exc_info=True)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s does not contain a JSON object. Ignoring.", path)
        return {}

    # project_root is always derived from where the file was found.
    data.pop("project_root", None)
    data.pop("projectRoot", None)
    logger.debug("Loaded configuration from %s", path)
    return {_FILE_KEYS.get(key, key): value for key, value in data.items()}


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_env_overrides() -> dict:
    """Read ``DOCH_*`` environment variables and return overrides.

    Supported variables:

    - ``DOCH_SOURCE_DIRECTORIES`` -- comma-separated source roots
    - ``DOCH_FILE_EXTENSIONS`` -- comma-separated extensions
    - ``DOCH_DOCS_DIRECTORY`` -- documentation root
    - ``DOCH_LOG_LEVEL`` -- logging level
    - ``DOCH_STRICT_DRIFT`` -- ``true``/``false``
    """
    overrides: dict = {}

    source_dirs = os.environ.get(f"{ENV_PREFIX}SOURCE_DIRECTORIES")
    if source_dirs is not None:
        overrides["source_directories"] = _split_list(source_dirs)

    extensions = os.environ.get(f"{ENV_PREFIX}FILE_EXTENSIONS")
    if extensions is not None:
        overrides["file_extensions"] = _split_list(extensions)

    docs_dir = os.environ.get(f"{ENV_PREFIX}DOCS_DIRECTORY")
    if docs_dir is not None:
        overrides["docs_directory"] = docs_dir

    log_level = os.environ.get(f"{ENV_PREFIX}LOG_LEVEL")
    if log_level is not None:
        overrides["log_level"] = log_level

    strict = os.environ.get(f"{ENV_PREFIX}STRICT_DRIFT")
    if strict is not None:
        overrides["strict_drift"] = strict.lower() in ("true", "1", "yes")

    if overrides:
        logger.debug("Environment overrides applied: %s", ", ".join(overrides))

    return overrides
