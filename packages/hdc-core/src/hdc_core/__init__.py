"""
hdc_core - Pluggable hyperdimensional vector algebra

Every strategy implements the same VectorSpace contract (create_random,
bind/unbind, bundle, permute, similarity, size) with its own documented
numeric semantics.

Quick Start:
    from hdc_core import create_space, derive_seed

    space = create_space("dense-bipolar", geometry=2048)
    a = space.random(derive_seed("session", "Alice"))
    b = space.random(derive_seed("session", "Bob"))

    bound = space.bind(a, b)
    space.similarity(space.unbind(bound, b), a)   # 1.0

Modules:
    hdc_core.space          - VectorSpace contract and seed derivation
    hdc_core.dense          - Dense bipolar strategy (reference)
    hdc_core.holographic    - Complex phasor (FHRR) strategy
    hdc_core.metric_affine  - Byte-channel L1 strategy
    hdc_core.exponent_sets  - Sparse-polynomial and fractal-semantic strategies
    hdc_core.registry       - Strategy lookup by name
    hdc_core.masks          - Partition bias masks
    hdc_core.types          - Pydantic configuration types
"""

__version__ = "1.0.0"

from .dense import DenseBipolarSpace
from .errors import DimensionMismatch, HdcError, UnknownStrategy
from .exponent_sets import ExponentSet, FractalSemanticSpace, SparsePolynomialSpace
from .holographic import HolographicSpace
from .masks import BiasMask
from .metric_affine import MetricAffineSpace
from .registry import (
    available_strategies,
    create_space,
    create_space_from_config,
    register_strategy,
)
from .space import Vector, VectorSpace, derive_seed
from .types import DEFAULT_PARTITIONS, MaskSpec, PartitionSpec, SpaceConfig

__all__ = [
    # Contract
    "VectorSpace",
    "Vector",
    "derive_seed",
    # Strategies
    "DenseBipolarSpace",
    "HolographicSpace",
    "MetricAffineSpace",
    "SparsePolynomialSpace",
    "FractalSemanticSpace",
    "ExponentSet",
    # Registry
    "available_strategies",
    "create_space",
    "create_space_from_config",
    "register_strategy",
    # Masks
    "BiasMask",
    "MaskSpec",
    "PartitionSpec",
    "DEFAULT_PARTITIONS",
    # Config / errors
    "SpaceConfig",
    "HdcError",
    "DimensionMismatch",
    "UnknownStrategy",
]
