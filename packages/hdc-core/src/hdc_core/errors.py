"""
hdc_core/errors.py - Algebraic failure taxonomy

Errors raised here signal configuration bugs (vectors from different
geometries meeting in one operation, an unknown strategy name). They are
never recovered inside the algebra and propagate straight to the caller.
"""
from __future__ import annotations


class HdcError(Exception):
    """Base class for vector-algebra errors."""


class DimensionMismatch(HdcError):
    """Operands of bind/bundle/similarity disagree on dimensionality."""

    def __init__(self, operation: str, sizes: list[int]):
        self.operation = operation
        self.sizes = sizes
        super().__init__(
            f"{operation}: operands have mismatched dimensions {sorted(set(sizes))}"
        )


class UnknownStrategy(HdcError):
    """Requested vector-space strategy is not registered."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(
            f"Unknown vector-space strategy '{name}' (available: {', '.join(available)})"
        )
