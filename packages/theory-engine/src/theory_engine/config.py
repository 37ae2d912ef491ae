"""
Session configuration and settings.

Loads THEORY_ENGINE_* environment variables (or a .env file) into a typed,
frozen settings object. Keyword overrides passed to Session take precedence.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hdc_core import SpaceConfig

from .decoder import DecoderConfig

logger = logging.getLogger(__name__)


class SessionConfig(BaseSettings):
    """Settings for one reasoning session."""

    # Vector algebra
    strategy: str = Field(default="dense-bipolar", description="Registered vector-space strategy")
    geometry: Optional[int] = Field(default=None, ge=1, description="Dimensionality (None = strategy default)")
    device: Literal["cuda", "cpu", "auto"] = Field(default="cpu")
    capacity: Optional[int] = Field(default=None, ge=1, description="Bundle cap for exponent-set strategies")
    seed: str = Field(default="theory-engine", min_length=1, description="Namespace mixed into every symbol seed")

    # Encoding and inference
    max_positions: int = Field(default=20, ge=1, le=64, description="Positional role vectors per session")
    max_iterations: int = Field(default=100, ge=1, description="Forward-chaining iteration budget")
    check_conflicts: bool = Field(default=True, description="Reject statements that contradict the theory")

    # Decoding
    refine_iterations: int = Field(default=8, ge=0, le=100)
    alternative_threshold: Optional[float] = Field(default=None)
    operator_margin: float = Field(default=0.02, ge=0.0, le=1.0)
    max_alternatives: int = Field(default=3, ge=0, le=50)
    max_decode_depth: int = Field(default=2, ge=0, le=5)

    # Data files
    core_theory: Optional[Path] = Field(default=None, description="Relation theory (None = bundled core theory)")
    load_core_theory: bool = Field(default=True)
    phrasing: Optional[Path] = Field(default=None, description="Narration templates (None = bundled)")

    model_config = SettingsConfigDict(
        env_prefix="THEORY_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("strategy")
    @classmethod
    def normalize_strategy(cls, v: str) -> str:
        return v.strip().lower()

    def space_config(self) -> SpaceConfig:
        return SpaceConfig(
            strategy=self.strategy,
            geometry=self.geometry,
            device=self.device,
            capacity=self.capacity,
        )

    def decoder_config(self) -> DecoderConfig:
        return DecoderConfig(
            refine_iterations=self.refine_iterations,
            alternative_threshold=self.alternative_threshold,
            operator_margin=self.operator_margin,
            max_alternatives=self.max_alternatives,
            max_depth=self.max_decode_depth,
        )


@lru_cache
def get_settings() -> SessionConfig:
    """Get cached settings instance (environment only)."""
    settings = SessionConfig()
    if settings.device == "cuda":
        logger.warning("THEORY_ENGINE_DEVICE=cuda: only tensor strategies use the GPU")
    return settings
