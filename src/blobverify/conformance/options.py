"""Option profile for the provider stress validation engine.

The stress engine itself lives outside this package; this module only
defines the parameters it consumes and the canonical profile used from
tests.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationOptions(BaseModel):
    """Parameters for a concurrent stress run against a storage provider."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_clock_drift: timedelta = Field(
        ..., description="Allowed difference between local and provider clocks"
    )
    concurrency_test_duration: timedelta = Field(
        ..., description="Wall-clock bound for the concurrency stress run"
    )
    num_put_blob_workers: int = Field(..., ge=1)
    num_get_blob_workers: int = Field(..., ge=1)
    num_get_metadata_workers: int = Field(..., ge=1)
    num_list_blobs_workers: int = Field(..., ge=1)
    max_blob_length: int = Field(..., ge=1, description="Largest generated payload, in bytes")

    @field_validator("max_clock_drift", "concurrency_test_duration")
    @classmethod
    def non_negative_duration(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("Duration cannot be negative")
        return v


TEST_VALIDATION_OPTIONS: Final[ValidationOptions] = ValidationOptions(
    max_clock_drift=timedelta(minutes=3),
    concurrency_test_duration=timedelta(seconds=15),
    num_put_blob_workers=3,
    num_get_blob_workers=3,
    num_get_metadata_workers=3,
    num_list_blobs_workers=3,
    max_blob_length=10_000_000,
)
