"""
hdc_core/holographic.py - Holographic phasor strategy (FHRR)

Mathematical Foundation:
    Complex phasor vectors v ∈ ℂ^d where each component lies on the unit circle:
    v[i] = e^(iθ[i]) where θ[i] ∈ [0, 2π)

BINDING (⊗):
    Element-wise multiplication adds phases:
        (a ⊗ b)[i] = e^(i(θ_a[i] + θ_b[i]))
    UNBINDING multiplies by the conjugate key, subtracting phases back out.

BUNDLING (⊕):
    Sum + per-component normalize, i.e. the circular mean of phases.
    Normalization keeps every vector on the manifold but makes the bundle
    non-linear, so constituents cannot be subtracted back out exactly.

SIMILARITY:
    sim(a, b) = Re(⟨a, b*⟩) / (||a|| · ||b||) ∈ [-1, 1]
    Independent phasors cluster at 0 with standard deviation 1/√(2d).
"""
from __future__ import annotations

import math
from collections.abc import Sequence

import torch

from .space import VectorSpace


def normalize(v: torch.Tensor, eps: float = 1e-10) -> torch.Tensor:
    """Project vector onto the complex unit torus.

    Each component is normalized to unit magnitude while preserving phase.
    Components that cancelled to zero are set to the binding identity (1+0j).
    """
    magnitudes = torch.abs(v)
    mask = magnitudes < eps
    if mask.any():
        v = torch.where(mask, torch.ones_like(v), v)
        magnitudes = torch.abs(v)
    return v / magnitudes


class HolographicSpace(VectorSpace):
    """Fourier holographic reduced representation on unit phasors."""

    name = "holographic"
    similarity_range = (-1.0, 1.0)
    baseline = 0.0
    # 1/√(2d) ≈ 0.016 at d=2048
    decode_threshold = 0.1
    arg_threshold = 0.08
    default_geometry = 2048
    supports_subtract = False

    def __init__(self, geometry: int | None = None, device: torch.device | str = "cpu"):
        super().__init__(geometry)
        self.device = torch.device(device)

    def create_random(self, size: int, seed: int) -> torch.Tensor:
        generator = torch.Generator(device="cpu")
        generator.manual_seed(seed)
        phases = torch.rand(size, generator=generator) * 2 * math.pi
        return torch.exp(1j * phases).to(dtype=torch.complex64, device=self.device)

    def bind(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        self.check_compatible("bind", a, b)
        return a * b

    def unbind(self, composite: torch.Tensor, key: torch.Tensor) -> torch.Tensor:
        self.check_compatible("unbind", composite, key)
        return normalize(composite * torch.conj(key))

    def bundle(self, vectors: Sequence[torch.Tensor]) -> torch.Tensor:
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        self.check_compatible("bundle", *vectors)
        if len(vectors) == 1:
            return vectors[0]
        return normalize(torch.stack(list(vectors)).sum(dim=0))

    def permute(self, v: torch.Tensor, shift: int) -> torch.Tensor:
        return torch.roll(v, shifts=shift, dims=-1)

    def similarity(self, a: torch.Tensor, b: torch.Tensor) -> float:
        self.check_compatible("similarity", a, b)
        a = a.to(torch.complex128)
        b = b.to(torch.complex128)
        dot = torch.sum(a * torch.conj(b))
        denom = (torch.linalg.vector_norm(a) * torch.linalg.vector_norm(b)).item()
        if denom == 0.0:
            return self.baseline
        sim = dot.real.item() / denom
        return float(min(1.0, max(-1.0, sim)))

    def batch_similarity(
        self,
        query: torch.Tensor,
        candidates: Sequence[torch.Tensor]
    ) -> list[float]:
        if not candidates:
            return []
        self.check_compatible("similarity", query, *candidates)
        codebook = torch.stack(list(candidates)).to(torch.complex128)
        q = query.to(torch.complex128)
        dots = torch.sum(codebook * torch.conj(q), dim=-1)
        norms = torch.linalg.vector_norm(codebook, dim=-1) * torch.linalg.vector_norm(q)
        sims = (dots.real / (norms + 1e-10)).clamp(-1.0, 1.0)
        return [float(s) for s in sims.tolist()]

    def reweight(self, v: torch.Tensor, start: float, end: float, weight: float) -> torch.Tensor:
        lo, hi = int(start * self.geometry), int(end * self.geometry)
        out = v.clone()
        out[lo:hi] = out[lo:hi] * weight
        return out

    def size(self, v: torch.Tensor) -> int:
        return int(v.shape[-1])
