"""Persisted drift state: one entry per tracked source file.

On disk the state is a single JSON object keyed by source-relative path::

    {
      "src/a.ts": {
        "documented": true,
        "timestamp": "2024-05-01T10:00:00Z",
        "docTime": "2024-05-01T10:00:00Z",
        "status": "uptodate"
      }
    }

``docTime`` and ``status`` are optional so that state files written by
older versions (which only recorded ``documented`` and ``timestamp``) still
load.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DocStatus(str, Enum):
    """Documentation synchronisation status of a source file."""

    UPTODATE = "uptodate"
    OUTDATED = "outdated"
    NODOCS = "nodocs"


class DocStateEntry(BaseModel):
    """Last known documentation status of one source file."""

    model_config = ConfigDict(populate_by_name=True)

    documented: bool = Field(
        ...,
        description="Whether the documentation counterpart existed.",
    )
    timestamp: datetime = Field(
        ...,
        description="Last known source change time.",
    )
    doc_time: Optional[datetime] = Field(
        default=None,
        alias="docTime",
        description="Last known documentation change time.",
    )
    status: Optional[DocStatus] = Field(
        default=None,
        description="uptodate, outdated or nodocs.",
    )

    @field_validator("timestamp", "doc_time")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_uptodate(self) -> bool:
        return self.status == DocStatus.UPTODATE

    def to_json_dict(self) -> dict:
        """Serialise using the on-disk key names, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DocState(BaseModel):
    """Mapping of source-relative path to :class:`DocStateEntry`."""

    entries: dict[str, DocStateEntry] = Field(default_factory=dict)

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def get(self, source_path: str) -> Optional[DocStateEntry]:
        return self.entries.get(source_path)

    def upsert(self, source_path: str, entry: DocStateEntry) -> None:
        """Replace whatever was recorded for *source_path*."""
        self.entries[source_path] = entry

    def remove(self, source_path: str) -> bool:
        return self.entries.pop(source_path, None) is not None

    def paths(self) -> list[str]:
        return sorted(self.entries)

    def __contains__(self, source_path: object) -> bool:
        return source_path in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_json_dict(self) -> dict:
        """Return the flat on-disk mapping, sorted by path."""
        return {path: self.entries[path].to_json_dict() for path in sorted(self.entries)}

    @classmethod
    def from_json_dict(cls, data: dict) -> "DocState":
        """Build a state from the on-disk mapping.

        Raises ``pydantic.ValidationError`` if any entry is malformed.
        """
        return cls.model_validate({"entries": data})
