"""
hdc_core/masks.py - Partition bias masks

A BiasMask attenuates a named partition of the dimension space on a copy
of a vector, so similarity search can be pushed toward (restrict) or away
from (exclude) a subspace such as "ontology" or "axiology".

Stored vectors are never touched: callers mask query-time copies of both
sides of a comparison.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from .space import Vector, VectorSpace
from .types import DEFAULT_PARTITIONS, MaskSpec, PartitionSpec

logger = logging.getLogger(__name__)


class BiasMask:
    """Apply MaskSpecs against a set of named partitions.

    Example:
        mask = BiasMask(space)
        spec = MaskSpec(partition="axiology")
        sim = mask.similarity(query, stored, spec)
    """

    def __init__(
        self,
        space: VectorSpace,
        partitions: Mapping[str, PartitionSpec] | None = None
    ):
        self.space = space
        self.partitions: dict[str, PartitionSpec] = dict(
            DEFAULT_PARTITIONS if partitions is None else partitions
        )

    def define(self, name: str, start: float, end: float, description: str | None = None) -> PartitionSpec:
        """Add or replace a named partition."""
        spec = PartitionSpec(start=start, end=end, description=description)
        self.partitions[name.strip().lower()] = spec
        return spec

    def partition(self, name: str) -> PartitionSpec:
        try:
            return self.partitions[name.strip().lower()]
        except KeyError:
            raise KeyError(
                f"Unknown partition '{name}' (known: {', '.join(sorted(self.partitions))})"
            ) from None

    def apply(self, vector: Vector, spec: MaskSpec | None) -> Vector:
        """Return a masked copy of `vector` (the vector itself when spec is None)."""
        if spec is None:
            return vector
        part = self.partition(spec.partition)
        logger.debug(f"Masking {spec.partition} [{part.start}, {part.end}) mode={spec.mode} weight={spec.weight}")
        if spec.mode == "exclude":
            return self.space.reweight(vector, part.start, part.end, spec.weight)

        masked = vector
        if part.start > 0.0:
            masked = self.space.reweight(masked, 0.0, part.start, spec.weight)
        if part.end < 1.0:
            masked = self.space.reweight(masked, part.end, 1.0, spec.weight)
        return masked

    def similarity(self, a: Vector, b: Vector, spec: MaskSpec | None) -> float:
        """Similarity of masked copies of `a` and `b`."""
        return self.space.similarity(self.apply(a, spec), self.apply(b, spec))

    def batch_similarity(
        self,
        query: Vector,
        candidates: Sequence[Vector],
        spec: MaskSpec | None
    ) -> list[float]:
        masked = [self.apply(c, spec) for c in candidates]
        return self.space.batch_similarity(self.apply(query, spec), masked)
