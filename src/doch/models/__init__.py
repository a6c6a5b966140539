"""Pydantic data models for the persisted drift state."""

from doch.models.state import EPOCH, DocState, DocStateEntry, DocStatus

__all__ = [
    "DocState",
    "DocStateEntry",
    "DocStatus",
    "EPOCH",
]
