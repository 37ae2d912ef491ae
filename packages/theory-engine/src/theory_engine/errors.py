"""
theory_engine/errors.py - Reasoning failure taxonomy

Structural errors are exceptions. Confidence-related outcomes are not:
a low-confidence decode or an exhausted inference budget comes back as a
result carrying one of the reason markers below.
"""
from __future__ import annotations

from typing import Any

from hdc_core.errors import DimensionMismatch, HdcError, UnknownStrategy

# Reason markers for partial results
LOW_CONFIDENCE_DECODE = "LowConfidenceDecode"
INFERENCE_BUDGET_EXCEEDED = "InferenceBudgetExceeded"


class TheoryError(Exception):
    """Base class for theory-engine errors."""


class StackUnderflow(TheoryError):
    """Attempted to pop the base theory layer."""

    def __init__(self, depth: int = 1):
        self.depth = depth
        super().__init__("Cannot pop the base theory layer")


class Conflict(TheoryError):
    """A statement contradicts the effective fact set.

    Attributes:
        kind: Contradiction class (negation, disjoint, functional, asymmetric)
        statement: The rejected statement
        conflicting: Existing statements it contradicts
    """

    def __init__(self, kind: str, statement: Any, conflicting: list[Any], detail: str = ""):
        self.kind = kind
        self.statement = statement
        self.conflicting = conflicting
        self.detail = detail
        message = f"{kind} conflict: {statement} contradicts {', '.join(str(c) for c in conflicting)}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "statement": str(self.statement),
            "conflicting": [str(c) for c in self.conflicting],
            "detail": self.detail,
        }


class ParseError(TheoryError):
    """Statement text could not be parsed."""

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"Cannot parse '{text}': {reason}")


__all__ = [
    "LOW_CONFIDENCE_DECODE",
    "INFERENCE_BUDGET_EXCEEDED",
    "TheoryError",
    "StackUnderflow",
    "Conflict",
    "ParseError",
    "HdcError",
    "DimensionMismatch",
    "UnknownStrategy",
]
