"""
hdc_core/metric_affine.py - Metric-affine strategy

Vectors are byte channels in Z256^d (torch.uint8), compared by L1 distance.

BINDING:
    Bitwise XOR, so bind(bind(a, b), b) = a exactly.

BUNDLING:
    Rounded channel-wise mean. This is an affine combination: the bundle sits
    inside the convex hull of its inputs and keeps partial similarity to each.

SIMILARITY:
    sim(a, b) = 1 - L1(a, b) / (255 · d) ∈ [0, 1]
    For independent uniform bytes E|X - Y| = (256² - 1) / (3 · 256) ≈ 85.33,
    so the chance baseline is ≈ 0.665, not 0.5.

Bundles of N inputs converge on the channel midpoint (127.5), which keeps
their similarity to any input at or above ≈ 0.749. Capacity is small and
the default geometry (32) is meant for compact summaries, not for
decoding wide facts.
"""
from __future__ import annotations

from collections.abc import Sequence

import torch

from .space import VectorSpace

BYTE_MAX = 255


class MetricAffineSpace(VectorSpace):
    """Byte channels, XOR binding, mean bundling, L1 similarity."""

    name = "metric-affine"
    similarity_range = (0.0, 1.0)
    baseline = 1.0 - (256 * 256 - 1) / (3 * 256) / BYTE_MAX
    decode_threshold = 0.72
    arg_threshold = 0.72
    default_geometry = 32
    supports_subtract = False

    def __init__(self, geometry: int | None = None, device: torch.device | str = "cpu"):
        super().__init__(geometry)
        self.device = torch.device(device)

    def create_random(self, size: int, seed: int) -> torch.Tensor:
        generator = torch.Generator(device="cpu")
        generator.manual_seed(seed)
        channels = torch.randint(0, BYTE_MAX + 1, (size,), generator=generator, dtype=torch.int64)
        return channels.to(dtype=torch.uint8, device=self.device)

    def bind(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self.check_compatible("bind", a, b)
        return torch.bitwise_xor(a, b)

    def bundle(self, vectors: Sequence[torch.Tensor]) -> torch.Tensor:
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        self.check_compatible("bundle", *vectors)
        mean = torch.stack(list(vectors)).to(torch.float64).mean(dim=0)
        return mean.round().clamp(0, BYTE_MAX).to(torch.uint8)

    def permute(self, v: torch.Tensor, shift: int) -> torch.Tensor:
        return torch.roll(v, shifts=shift, dims=-1)

    def similarity(self, a: torch.Tensor, b: torch.Tensor) -> float:
        self.check_compatible("similarity", a, b)
        distance = (a.to(torch.int64) - b.to(torch.int64)).abs().sum().item()
        return 1.0 - distance / (BYTE_MAX * self.geometry)

    def batch_similarity(
        self,
        query: torch.Tensor,
        candidates: Sequence[torch.Tensor]
    ) -> list[float]:
        if not candidates:
            return []
        self.check_compatible("similarity", query, *candidates)
        codebook = torch.stack(list(candidates)).to(torch.int64)
        distances = (codebook - query.to(torch.int64)).abs().sum(dim=-1).to(torch.float64)
        sims = 1.0 - distances / (BYTE_MAX * self.geometry)
        return [float(s) for s in sims.tolist()]

    def reweight(self, v: torch.Tensor, start: float, end: float, weight: float) -> torch.Tensor:
        lo, hi = int(start * self.geometry), int(end * self.geometry)
        out = v.clone()
        out[lo:hi] = (out[lo:hi].to(torch.float64) * weight).round().to(torch.uint8)
        return out

    def size(self, v: torch.Tensor) -> int:
        return int(v.shape[-1])
