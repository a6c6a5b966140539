"""doch - Track whether documentation stays in sync with the source it describes."""

__version__ = "0.1.0"

from doch.config import ConfigCache, DochConfig

__all__ = ["ConfigCache", "DochConfig", "__version__"]
