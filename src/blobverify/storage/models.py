"""Blob storage data models.

Provides typed value objects for blob metadata, write options and the
connection descriptor used to reconnect to a storage namespace.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_timestamp(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class BlobMetadata:
    """Metadata for a stored blob.

    Attributes:
        blob_id: Identifier of the blob.
        length: Size of the blob content in bytes.
        timestamp: Last-modified time (timezone-aware UTC).
    """

    blob_id: str
    length: int
    timestamp: datetime

    def to_dict(self) -> dict[str, str | int]:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "id": self.blob_id,
            "length": self.length,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BlobMetadata:
        """Create metadata from dictionary."""
        timestamp_raw = data["timestamp"]
        if isinstance(timestamp_raw, datetime):
            timestamp = timestamp_raw
        else:
            timestamp = datetime.fromisoformat(str(timestamp_raw))

        return cls(
            blob_id=str(data["id"]),
            length=int(data["length"]),
            timestamp=normalize_timestamp(timestamp),
        )


@dataclass(frozen=True)
class PutOptions:
    """Options controlling a blob write.

    The default instance performs a plain upsert and must be accepted by
    every backend.

    Attributes:
        do_not_recreate: Fail with BlobAlreadyExistsError if the blob exists.
        set_mod_time: Store the blob with this timestamp instead of "now".
            Backends that cannot honor it raise SetTimeUnsupportedError.
    """

    do_not_recreate: bool = False
    set_mod_time: datetime | None = None


class ConnectionInfo(BaseModel):
    """Serializable description of how to reconnect to a storage namespace.

    Two descriptors are equal when both the backend type and the full
    configuration mapping are equal.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(..., min_length=1, description="Registered storage type name")
    config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def no_blank_type(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Storage type cannot be empty or whitespace-only")
        return v
