"""
tests/hdc_core/test_masks.py - Partition bias mask tests
"""

import pytest
import torch
from pydantic import ValidationError

from hdc_core import BiasMask, DenseBipolarSpace, MaskSpec, PartitionSpec, SparsePolynomialSpace, derive_seed


@pytest.fixture(scope="module")
def space():
    return DenseBipolarSpace(1024)


@pytest.fixture
def mask(space):
    return BiasMask(space)


class TestApply:
    """Masks act on copies and respect partition bounds."""

    def test_none_is_identity(self, space, mask):
        v = space.random(derive_seed("v"))
        assert mask.apply(v, None) is v

    def test_restrict_zeroes_outside(self, space, mask):
        v = space.random(derive_seed("v"))
        masked = mask.apply(v, MaskSpec(partition="ontology"))
        assert torch.equal(masked[:512], v[:512])
        assert torch.count_nonzero(masked[512:]) == 0

    def test_exclude_down_weights_inside(self, space, mask):
        v = space.random(derive_seed("v"))
        masked = mask.apply(v, MaskSpec(partition="axiology", mode="exclude", weight=0.25))
        assert torch.equal(masked[:512], v[:512])
        assert torch.allclose(masked[512:], v[512:] * 0.25)

    def test_stored_vector_untouched(self, space, mask):
        v = space.random(derive_seed("v"))
        before = v.clone()
        mask.apply(v, MaskSpec(partition="axiology"))
        assert torch.equal(v, before)

    def test_unknown_partition(self, space, mask):
        v = space.random(derive_seed("v"))
        with pytest.raises(KeyError):
            mask.apply(v, MaskSpec(partition="teleology"))


class TestMaskedSimilarity:
    """Masking biases comparisons toward one subspace."""

    def test_agreement_inside_partition_dominates(self, space, mask):
        base = space.random(derive_seed("base"))
        other = space.random(derive_seed("other"))
        # Agrees with base on the ontology half only
        hybrid = torch.cat([base[:512], other[512:]])

        plain = space.similarity(base, hybrid)
        onto = mask.similarity(base, hybrid, MaskSpec(partition="ontology"))
        axio = mask.similarity(base, hybrid, MaskSpec(partition="axiology"))

        assert onto > 0.99, f"ontology-restricted similarity should be ~1, got {onto}"
        assert onto > plain > axio

    def test_custom_partition(self, space, mask):
        mask.define("deontics", 0.25, 0.5)
        v = space.random(derive_seed("v"))
        masked = mask.apply(v, MaskSpec(partition="Deontics"))
        assert torch.count_nonzero(masked[:256]) == 0
        assert torch.equal(masked[256:512], v[256:512])

    def test_sets_drop_masked_range(self):
        space = SparsePolynomialSpace(64)
        mask = BiasMask(space)
        v = space.random(derive_seed("v"))
        lower = mask.apply(v, MaskSpec(partition="ontology"))
        upper = mask.apply(v, MaskSpec(partition="axiology"))
        assert lower.exponents | upper.exponents == v.exponents
        assert not lower.exponents & upper.exponents

    def test_sets_round_fractional_weights(self):
        space = SparsePolynomialSpace(64)
        mask = BiasMask(space)
        v = space.random(derive_seed("v"))
        dropped = mask.apply(v, MaskSpec(partition="ontology"))

        low = mask.apply(v, MaskSpec(partition="ontology", weight=0.4))
        high = mask.apply(v, MaskSpec(partition="ontology", weight=0.6))
        assert low.exponents == dropped.exponents, "weights below 0.5 drop the range"
        assert high.exponents == v.exponents, "weights of 0.5 and above keep the whole set"


class TestSpecs:
    def test_partition_order_validated(self):
        with pytest.raises(ValidationError):
            PartitionSpec(start=0.6, end=0.2)

    def test_weight_bounds(self):
        with pytest.raises(ValidationError):
            MaskSpec(partition="ontology", weight=1.5)
