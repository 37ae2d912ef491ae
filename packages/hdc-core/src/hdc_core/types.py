"""
hdc_core/types.py - Pydantic type definitions for vector-space configuration

Uses Pydantic v2 for validation. Configuration objects are frozen so a
space built from one can never drift from the settings it reports.
"""
from __future__ import annotations

from typing import Literal

import torch
from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# SPACE CONFIGURATION
# =============================================================================


class SpaceConfig(BaseModel):
    """Selects and sizes a vector-space strategy."""

    strategy: str = Field(
        default="dense-bipolar",
        min_length=1,
        description="Registered strategy name"
    )
    geometry: int | None = Field(
        default=None,
        ge=1,
        le=262144,
        description="Dimensionality D (None = strategy default)"
    )
    device: Literal["cuda", "cpu", "auto"] = Field(
        default="cpu",
        description="Compute device for tensor strategies"
    )
    capacity: int | None = Field(
        default=None,
        ge=1,
        description="Bundle size cap for exponent-set strategies"
    )

    def get_device(self) -> torch.device:
        """Get torch device based on config."""
        if self.device == "auto":
            return torch.device("cuda" if torch.cuda.is_available() else "cpu")
        return torch.device(self.device)

    model_config = {"frozen": True}


# =============================================================================
# PARTITIONS AND MASKS
# =============================================================================


class PartitionSpec(BaseModel):
    """Named slice of the dimension space, as fractions of D."""

    start: float = Field(..., ge=0.0, le=1.0)
    end: float = Field(..., ge=0.0, le=1.0)
    description: str | None = None

    @model_validator(mode="after")
    def validate_order(self) -> PartitionSpec:
        if self.end <= self.start:
            raise ValueError(f"Partition end ({self.end}) must be after start ({self.start})")
        return self

    model_config = {"frozen": True}


class MaskSpec(BaseModel):
    """Query-time bias over one named partition.

    mode="restrict" attenuates everything outside the partition,
    mode="exclude" attenuates the partition itself. A weight of 0 zeroes
    the attenuated dimensions; values in (0, 1) down-weight them.

    The exponent-set strategies (sparse-polynomial, fractal-semantic) cannot
    hold fractional weights, so they round: a weight below 0.5 drops the
    attenuated exponents and a weight of 0.5 or more leaves the vector
    unchanged. On those strategies MaskSpec(weight=0.6) masks nothing.
    """

    partition: str = Field(..., min_length=1)
    mode: Literal["restrict", "exclude"] = "restrict"
    weight: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("partition")
    @classmethod
    def normalize_partition(cls, v: str) -> str:
        return v.strip().lower()

    model_config = {"frozen": True}


DEFAULT_PARTITIONS: dict[str, PartitionSpec] = {
    "ontology": PartitionSpec(start=0.0, end=0.5, description="What things are"),
    "axiology": PartitionSpec(start=0.5, end=1.0, description="What things are worth"),
}
