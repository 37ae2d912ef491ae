"""
hdc_core/space.py - The VectorSpace contract

Every strategy (dense bipolar, holographic, metric-affine, exponent-set)
implements the same algebra:

CREATE:
    create_random(size, seed) is deterministic given the seed. Symbols are
    turned into seeds with derive_seed(), so the same symbol in the same
    session always lands on the same vector.

BIND / UNBIND:
    bind(filler, key) composes two vectors; unbind(composite, key) recovers
    the filler: unbind(bind(a, b), b) ≈ a within the strategy's noise.
    Keys always go in the second position, which matters for strategies
    whose bind is not commutative.

BUNDLE:
    Superposition. A bundle stays similar to each constituent, less so as
    more constituents are added, never below the chance baseline.

SIMILARITY:
    Symmetric, maximal for identical vectors, clustering at `baseline`
    for independent random vectors. Range is strategy-defined.

Each strategy documents its own baseline and thresholds; nothing outside
the strategy assumes a universal constant.
"""
from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

from .errors import DimensionMismatch

# Vectors are strategy-defined (torch tensors, exponent sets, ...)
Vector = Any


def derive_seed(*parts: str | int) -> int:
    """Derive a deterministic 63-bit seed from string parts.

    Same SHA-256 construction as symbol hashing: parts are joined with ':'
    and the first eight digest bytes become the seed.
    """
    material = ":".join(str(p) for p in parts).encode()
    digest = hashlib.sha256(material).digest()
    return int.from_bytes(digest[:8], "big") & 0x7FFF_FFFF_FFFF_FFFF


class VectorSpace(ABC):
    """Capability interface shared by all vector-space strategies."""

    name: ClassVar[str] = "abstract"

    # Documented numeric semantics (overridden per strategy)
    similarity_range: ClassVar[tuple[float, float]] = (0.0, 1.0)
    baseline: ClassVar[float] = 0.5
    decode_threshold: ClassVar[float] = 0.55
    arg_threshold: ClassVar[float] = 0.55
    default_geometry: ClassVar[int] = 2048
    supports_subtract: ClassVar[bool] = False

    def __init__(self, geometry: int | None = None):
        self.geometry = geometry or self.default_geometry
        if self.geometry < 1:
            raise ValueError(f"geometry must be positive, got {self.geometry}")

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_random(self, size: int, seed: int) -> Vector:
        """Deterministic random vector of dimensionality `size`."""

    @abstractmethod
    def bind(self, a: Vector, b: Vector) -> Vector:
        """Bind filler `a` with key `b`."""

    @abstractmethod
    def bundle(self, vectors: Sequence[Vector]) -> Vector:
        """Superpose vectors into one."""

    @abstractmethod
    def permute(self, v: Vector, shift: int) -> Vector:
        """Invertible coordinate permutation."""

    @abstractmethod
    def similarity(self, a: Vector, b: Vector) -> float:
        """Symmetric similarity in `similarity_range`."""

    @abstractmethod
    def size(self, v: Vector) -> int:
        """Dimensionality of `v`."""

    @abstractmethod
    def reweight(self, v: Vector, start: float, end: float, weight: float) -> Vector:
        """Copy of `v` with the fractional dimension range [start, end) scaled by weight."""

    # -------------------------------------------------------------------------
    # Derived operations (strategies override when they can do better)
    # -------------------------------------------------------------------------

    def random(self, seed: int) -> Vector:
        """Random vector at this space's geometry."""
        return self.create_random(self.geometry, seed)

    def unbind(self, composite: Vector, key: Vector) -> Vector:
        """Recover the filler bound with `key` (self-inverse by default)."""
        return self.bind(composite, key)

    def inverse_permute(self, v: Vector, shift: int) -> Vector:
        return self.permute(v, -shift)

    def batch_similarity(self, query: Vector, candidates: Sequence[Vector]) -> list[float]:
        """Similarity of `query` against every candidate."""
        return [self.similarity(query, c) for c in candidates]

    def subtract(self, composite: Vector, component: Vector) -> Vector:
        """Explain away a known component of a bundle."""
        raise NotImplementedError(f"{self.name} does not support explain-away subtraction")

    @property
    def max_similarity(self) -> float:
        return self.similarity_range[1]

    def check_compatible(self, operation: str, *vectors: Vector) -> int:
        """Return the shared size of `vectors`, or raise DimensionMismatch."""
        sizes = [self.size(v) for v in vectors]
        if any(s != self.geometry for s in sizes):
            raise DimensionMismatch(operation, sizes + [self.geometry])
        return self.geometry

    def describe(self) -> dict[str, Any]:
        """Numeric semantics of this strategy."""
        return {
            "strategy": self.name,
            "geometry": self.geometry,
            "similarity_range": list(self.similarity_range),
            "baseline": self.baseline,
            "decode_threshold": self.decode_threshold,
            "arg_threshold": self.arg_threshold,
            "supports_subtract": self.supports_subtract,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(geometry={self.geometry})"
