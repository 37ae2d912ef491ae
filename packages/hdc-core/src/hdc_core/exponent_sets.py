"""
hdc_core/exponent_sets.py - Sparse-polynomial and fractal-semantic strategies

A vector is a set of 64-bit exponents, read as the support of a sparse
polynomial over GF(2). Atoms hold `geometry` random exponents.

BINDING:
    Every exponent of the filler is XOR-shifted by the key's signature
    (the XOR fold of the key's exponents):
        bind(a, b) = { x ⊕ sig(b) : x ∈ a }
    Applying the same key twice cancels, so unbind(bind(a, b), b) = a
    exactly. Binding is NOT commutative: keys go in the second position.

BUNDLING:
    Set union. When the union exceeds the strategy's capacity it is
    sparsified by min-hash: the exponents with the smallest SplitMix64
    hashes survive. Min-hash sampling is consistent, so two bundles that
    share constituents keep the same exponents from them.

SIMILARITY:
    Jaccard index |A ∩ B| / |A ∪ B| ∈ [0, 1]. Independent 64-bit atoms
    essentially never collide, so the chance baseline is 0.

Strategies:
    sparse-polynomial - few exponents per atom (default 4), bundles keep the
                        full union up to a hard cap (4096). Exact explain-away.
    fractal-semantic  - many exponents per atom (default 500), every bundle is
                        sampled back down to atom size, so representations stay
                        bounded at the cost of lossy bundles.
"""
from __future__ import annotations

import heapq
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import reduce

import numpy as np

from .space import VectorSpace

MASK64 = 0xFFFF_FFFF_FFFF_FFFF


@dataclass(frozen=True)
class ExponentSet:
    """Immutable exponent support plus the geometry it was created under."""

    exponents: frozenset[int]
    geometry: int

    def __len__(self) -> int:
        return len(self.exponents)

    def __repr__(self) -> str:
        return f"ExponentSet(n={len(self.exponents)}, geometry={self.geometry})"


def splitmix64(x: int) -> int:
    """SplitMix64 finalizer (bijective 64-bit mix)."""
    z = (x + 0x9E37_79B9_7F4A_7C15) & MASK64
    z = ((z ^ (z >> 30)) * 0xBF58_476D_1CE4_E5B9) & MASK64
    z = ((z ^ (z >> 27)) * 0x94D0_49BB_1331_11EB) & MASK64
    return z ^ (z >> 31)


def signature(v: ExponentSet) -> int:
    """XOR fold of all exponents."""
    return reduce(lambda acc, x: acc ^ x, v.exponents, 0)


def min_hash(exponents: Iterable[int], keep: int) -> frozenset[int]:
    """Keep the `keep` exponents with the smallest SplitMix64 hash."""
    return frozenset(heapq.nsmallest(keep, exponents, key=splitmix64))


def _rotl64(x: int, shift: int) -> int:
    shift %= 64
    return ((x << shift) | (x >> (64 - shift))) & MASK64


class SparsePolynomialSpace(VectorSpace):
    """Exponent sets with full-union bundles up to a hard cap."""

    name = "sparse-polynomial"
    similarity_range = (0.0, 1.0)
    baseline = 0.0
    decode_threshold = 0.05
    arg_threshold = 0.05
    default_geometry = 4
    default_capacity = 4096
    supports_subtract = True

    def __init__(self, geometry: int | None = None, capacity: int | None = None):
        super().__init__(geometry)
        self.capacity = capacity or self.default_capacity

    def create_random(self, size: int, seed: int) -> ExponentSet:
        rng = np.random.default_rng(seed)
        draws = rng.integers(0, MASK64, size=size, dtype=np.uint64, endpoint=True)
        return ExponentSet(frozenset(int(x) for x in draws), size)

    def bind(self, a: ExponentSet, b: ExponentSet) -> ExponentSet:
        self.check_compatible("bind", a, b)
        shift = signature(b)
        return ExponentSet(frozenset(x ^ shift for x in a.exponents), a.geometry)

    def bundle(self, vectors: Sequence[ExponentSet]) -> ExponentSet:
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        self.check_compatible("bundle", *vectors)
        union: frozenset[int] = frozenset().union(*(v.exponents for v in vectors))
        if len(union) > self.capacity:
            union = min_hash(union, self.capacity)
        return ExponentSet(union, self.geometry)

    def permute(self, v: ExponentSet, shift: int) -> ExponentSet:
        return ExponentSet(frozenset(_rotl64(x, shift) for x in v.exponents), v.geometry)

    def subtract(self, composite: ExponentSet, component: ExponentSet) -> ExponentSet:
        self.check_compatible("subtract", composite, component)
        return ExponentSet(composite.exponents - component.exponents, composite.geometry)

    def similarity(self, a: ExponentSet, b: ExponentSet) -> float:
        self.check_compatible("similarity", a, b)
        if not a.exponents and not b.exponents:
            return 1.0
        intersection = len(a.exponents & b.exponents)
        return intersection / (len(a.exponents) + len(b.exponents) - intersection)

    def reweight(self, v: ExponentSet, start: float, end: float, weight: float) -> ExponentSet:
        # Sets cannot hold fractional weights. The weight rounds to 0 (drop the
        # range) or 1 (keep everything)
        if weight >= 0.5:
            return v
        lo, hi = int(start * (MASK64 + 1)), int(end * (MASK64 + 1))
        kept = frozenset(x for x in v.exponents if not lo <= x < hi)
        return ExponentSet(kept, v.geometry)

    def size(self, v: ExponentSet) -> int:
        return v.geometry


class FractalSemanticSpace(SparsePolynomialSpace):
    """Dense exponent sets, every bundle sampled back down to atom size."""

    name = "fractal-semantic"
    decode_threshold = 0.02
    arg_threshold = 0.02
    default_geometry = 500

    def __init__(self, geometry: int | None = None, capacity: int | None = None):
        super().__init__(geometry, capacity)
        self.capacity = capacity or self.geometry
