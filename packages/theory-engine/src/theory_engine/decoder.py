"""
theory_engine/decoder.py - Vectors back to statements

Algorithm:
    1. Operator: nearest operator symbol to the vector itself.
    2. Arguments: for position i, unbind Pos_i and take the nearest concept.
       Positions are read in order until one has no candidate above the
       strategy's argument threshold. A slot whose probe matches no
       concept may hold a nested statement, which is decoded recursively.
    3. Explain-away: on strategies that can subtract a known component
       from a bundle, every slot is re-read with all the other chosen
       components removed, and the loop repeats until the assignment stops
       changing. With exact subtraction the re-read is noise free.

Every slot reports its confidence (raw similarity) and alternatives.
Decoding fails (success=False, LowConfidenceDecode) when the operator
confidence is below the strategy's acceptance threshold; the partial
structure is still returned.
"""
from __future__ import annotations

import logging
import statistics
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from hdc_core import Vector

from .encoder import Encoder
from .errors import LOW_CONFIDENCE_DECODE
from .terms import Atom, Term, TermLike
from .vocabulary import Match, SymbolKind

logger = logging.getLogger(__name__)


class DecoderConfig(BaseModel):
    """Configuration for decoding."""

    refine_iterations: int = Field(default=8, ge=0, le=100, description="Explain-away passes")
    alternative_threshold: float | None = Field(
        default=None, description="Slot alternatives cutoff (None = strategy arg_threshold)"
    )
    operator_margin: float = Field(
        default=0.02, ge=0.0, le=1.0, description="Operator ties, as a fraction of the similarity range"
    )
    max_alternatives: int = Field(default=3, ge=0, le=50)
    max_depth: int = Field(default=2, ge=0, le=5, description="Nested statement depth")

    model_config = {"frozen": True}


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class Candidate:
    symbol: str
    score: float


@dataclass
class SlotDecoding:
    """One decoded slot (position 0 is the operator)."""

    position: int
    symbol: str | None
    confidence: float
    alternatives: list[Candidate] = field(default_factory=list)
    nested: DecodedStructure | None = None

    @property
    def value(self) -> TermLike | None:
        if self.nested is not None:
            return self.nested.term()
        if self.symbol is None:
            return None
        return Atom(self.symbol)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "value": self.symbol if self.nested is None else self.nested.to_dict(),
            "confidence": self.confidence,
            "alternatives": [{"symbol": c.symbol, "score": c.score} for c in self.alternatives],
        }


@dataclass
class DecodedStructure:
    """Operator plus positional arguments."""

    operator: SlotDecoding
    arguments: list[SlotDecoding] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        """Mean of operator confidence and average argument confidence."""
        if not self.arguments:
            return self.operator.confidence
        args = statistics.fmean(a.confidence for a in self.arguments)
        return (self.operator.confidence + args) / 2

    def term(self) -> Term:
        return Term(self.operator.symbol or "?", *[a.value for a in self.arguments])

    def to_dict(self) -> dict[str, Any]:
        return {
            "operator": self.operator.symbol,
            "operatorConfidence": self.operator.confidence,
            "arguments": [a.to_dict() for a in self.arguments],
            "confidence": self.confidence,
            "statement": self.term().statement(),
        }


@dataclass
class DecodeResult:
    success: bool
    structure: DecodedStructure | None
    reason: str | None = None
    iterations: int = 0
    rejected: bool = False  # Input never resolved to a vector

    @property
    def status(self) -> str:
        if self.rejected:
            return "rejected"
        return "success" if self.success else "partial"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "structure": self.structure.to_dict() if self.structure else None,
            "reason": self.reason,
            "iterations": self.iterations,
        }


# =============================================================================
# DECODER
# =============================================================================


class Decoder:
    """Similarity-search decoder over one session's vocabulary."""

    def __init__(self, encoder: Encoder, config: DecoderConfig | None = None):
        self.encoder = encoder
        self.vocabulary = encoder.vocabulary
        self.space = encoder.space
        self.config = config or DecoderConfig()

    @property
    def alternative_threshold(self) -> float:
        if self.config.alternative_threshold is not None:
            return self.config.alternative_threshold
        return self.space.arg_threshold

    def decode(
        self,
        vector: Vector,
        slot_candidates: Mapping[int, Iterable[str]] | None = None,
        depth: int = 0,
    ) -> DecodeResult:
        """Recover operator and arguments from `vector`.

        Args:
            vector: Vector to decode
            slot_candidates: Optional allowed symbols per 1-based position
            depth: Nesting depth (internal)

        Returns:
            DecodeResult with per-slot confidences and alternatives
        """
        slot_candidates = slot_candidates or {}
        operators = self.vocabulary.nearest(vector, k=0, kinds=[SymbolKind.OPERATOR])
        if not operators:
            return DecodeResult(False, None, LOW_CONFIDENCE_DECODE)
        if depth > 0 and operators[0].score < self.space.decode_threshold:
            return DecodeResult(False, None, LOW_CONFIDENCE_DECODE)

        op_symbol = operators[0].symbol
        slots: dict[int, tuple[str | None, DecodedStructure | None, list[Match]]] = {}
        for position in range(1, self.encoder.max_positions + 1):
            probe = self.space.unbind(vector, self.encoder.role(position))
            slot = self._read_slot(probe, slot_candidates.get(position), depth)
            if slot is None:
                break
            slots[position] = slot

        iterations = 0
        if self.space.supports_subtract and self.config.refine_iterations > 0:
            operators, slots, iterations = self._explain_away(
                vector, op_symbol, slots, slot_candidates, depth
            )
            op_symbol = operators[0].symbol

        structure = DecodedStructure(
            operator=self._operator_slot(operators),
            arguments=[self._argument_slot(pos, slot) for pos, slot in sorted(slots.items())],
        )
        success = structure.operator.confidence >= self.space.decode_threshold
        if not success:
            logger.warning(
                f"{LOW_CONFIDENCE_DECODE}: best operator '{op_symbol}' at "
                f"{structure.operator.confidence:.3f} < {self.space.decode_threshold}"
            )
        return DecodeResult(
            success,
            structure,
            None if success else LOW_CONFIDENCE_DECODE,
            iterations,
        )

    # -------------------------------------------------------------------------
    # Slots
    # -------------------------------------------------------------------------

    def _read_slot(
        self,
        probe: Vector,
        candidates: Iterable[str] | None,
        depth: int,
    ) -> tuple[str | None, DecodedStructure | None, list[Match]] | None:
        ranked = self.vocabulary.nearest(probe, k=0, kinds=[SymbolKind.CONCEPT], candidates=candidates)
        if ranked and ranked[0].score >= self.space.arg_threshold:
            return ranked[0].symbol, None, ranked

        if depth < self.config.max_depth:
            nested = self.decode(probe, depth=depth + 1)
            if nested.success and nested.structure is not None and nested.structure.arguments:
                return None, nested.structure, []
        return None

    def _explain_away(
        self,
        vector: Vector,
        op_symbol: str,
        slots: dict[int, tuple[str | None, DecodedStructure | None, list[Match]]],
        slot_candidates: Mapping[int, Iterable[str]],
        depth: int,
    ):
        """Re-read every slot with the other chosen components subtracted."""
        operators: list[Match] = []
        for iteration in range(1, self.config.refine_iterations + 1):
            components = {0: self.vocabulary.resolve_operator(op_symbol)}
            for pos, (symbol, nested, _) in slots.items():
                filler = self.encoder.encode(nested.term()) if nested is not None else self.vocabulary.resolve(symbol)
                components[pos] = self.space.bind(filler, self.encoder.role(pos))

            operators = self.vocabulary.nearest(
                self._residual(vector, components, 0), k=0, kinds=[SymbolKind.OPERATOR]
            )
            refined = {}
            for pos, (symbol, nested, _) in slots.items():
                probe = self.space.unbind(self._residual(vector, components, pos), self.encoder.role(pos))
                if nested is not None:
                    score = self.space.similarity(probe, self.encoder.encode(nested.term()))
                    refined[pos] = (None, nested, [Match(repr(nested.term()), score, -1)])
                    continue
                ranked = self.vocabulary.nearest(
                    probe, k=0, kinds=[SymbolKind.CONCEPT], candidates=slot_candidates.get(pos)
                )
                refined[pos] = (ranked[0].symbol, None, ranked) if ranked else (symbol, None, [])

            stable = operators[0].symbol == op_symbol and all(
                refined[p][0] == slots[p][0] for p in slots
            )
            op_symbol = operators[0].symbol
            slots = refined
            if stable:
                logger.debug(f"Explain-away converged after {iteration} iteration(s)")
                return operators, slots, iteration
        return operators, slots, self.config.refine_iterations

    def _residual(self, vector: Vector, components: dict[int, Vector], keep: int) -> Vector:
        residual = vector
        for pos, component in components.items():
            if pos != keep:
                residual = self.space.subtract(residual, component)
        return residual

    def _operator_slot(self, operators: list[Match]) -> SlotDecoding:
        best = operators[0]
        low, high = self.space.similarity_range
        margin = self.config.operator_margin * (high - low)
        alternatives = [
            Candidate(m.symbol, m.score) for m in operators[1:]
            if m.score >= best.score - margin
        ][: self.config.max_alternatives]
        return SlotDecoding(0, best.symbol, best.score, alternatives)

    def _argument_slot(self, position: int, slot) -> SlotDecoding:
        symbol, nested, ranked = slot
        if nested is not None:
            confidence = ranked[0].score if ranked else nested.confidence
            return SlotDecoding(position, None, confidence, [], nested)
        alternatives = [
            Candidate(m.symbol, m.score) for m in ranked[1:]
            if m.score >= self.alternative_threshold
        ][: self.config.max_alternatives]
        confidence = ranked[0].score if ranked else 0.0
        return SlotDecoding(position, symbol, confidence, alternatives)
