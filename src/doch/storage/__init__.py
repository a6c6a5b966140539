"""File-based storage engine for persisting drift state to .doch/metadata/."""

from doch.storage.store import StateStore

__all__ = ["StateStore"]
