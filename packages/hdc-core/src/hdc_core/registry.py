"""
hdc_core/registry.py - Strategy selection

Strategies are chosen by name when a session is constructed. Each call
returns a fresh instance; no space is shared between callers.
"""
from __future__ import annotations

import logging
from typing import Any

from .dense import DenseBipolarSpace
from .errors import UnknownStrategy
from .exponent_sets import FractalSemanticSpace, SparsePolynomialSpace
from .holographic import HolographicSpace
from .metric_affine import MetricAffineSpace
from .space import VectorSpace
from .types import SpaceConfig

logger = logging.getLogger(__name__)

_STRATEGIES: dict[str, type[VectorSpace]] = {
    cls.name: cls
    for cls in (
        DenseBipolarSpace,
        SparsePolynomialSpace,
        MetricAffineSpace,
        FractalSemanticSpace,
        HolographicSpace,
    )
}

_TENSOR_STRATEGIES = {DenseBipolarSpace, MetricAffineSpace, HolographicSpace}


def available_strategies() -> list[str]:
    """Registered strategy names."""
    return sorted(_STRATEGIES)


def register_strategy(cls: type[VectorSpace]) -> type[VectorSpace]:
    """Register a VectorSpace subclass under its `name` (usable as decorator)."""
    if cls.name in _STRATEGIES and _STRATEGIES[cls.name] is not cls:
        raise ValueError(f"Strategy '{cls.name}' is already registered")
    _STRATEGIES[cls.name] = cls
    return cls


def create_space(name: str, geometry: int | None = None, **options: Any) -> VectorSpace:
    """Instantiate a strategy by name.

    Args:
        name: Strategy name (see available_strategies())
        geometry: Dimensionality D (None = strategy default)
        **options: Strategy-specific keyword arguments (device, capacity)

    Returns:
        New VectorSpace instance

    Raises:
        UnknownStrategy: If no strategy is registered under `name`
    """
    cls = _STRATEGIES.get(name)
    if cls is None:
        raise UnknownStrategy(name, available_strategies())
    space = cls(geometry, **options)
    logger.debug(f"Created {space!r} ({name})")
    return space


def create_space_from_config(config: SpaceConfig) -> VectorSpace:
    """Instantiate the strategy described by a SpaceConfig."""
    cls = _STRATEGIES.get(config.strategy)
    if cls is None:
        raise UnknownStrategy(config.strategy, available_strategies())

    options: dict[str, Any] = {}
    if cls in _TENSOR_STRATEGIES:
        options["device"] = config.get_device()
    elif config.capacity is not None:
        options["capacity"] = config.capacity
    return create_space(config.strategy, config.geometry, **options)
