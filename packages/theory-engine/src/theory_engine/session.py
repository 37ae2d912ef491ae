"""
theory_engine/session.py - Public reasoning surface

A Session owns exactly one Vocabulary and one TheoryStack and wires the
rest of the machinery around them:

    statement text -> parser -> Encoder -> TheoryStack (top layer)
                                    InferenceEngine <-> TheoryStack
    vectors -> Decoder / similarity -> Narrator -> text

Every operation returns a structured result whose `status` is one of
"success", "partial" (budget or confidence caveats) or "rejected"
(parse errors, contradictions, popping the base layer). Dimension
mismatches and unknown strategies are configuration bugs and propagate.

Sessions are single-writer: callers serialize mutating operations.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from hdc_core import BiasMask, MaskSpec, Vector, VectorSpace, create_space_from_config

from .config import SessionConfig, get_settings
from .contradictions import ContradictionChecker
from .decoder import DecodeResult, Decoder
from .encoder import Encoder
from .errors import (
    INFERENCE_BUDGET_EXCEEDED,
    Conflict,
    ParseError,
    StackUnderflow,
)
from .inference import InferenceEngine, InferenceResult, ProofStatus, ProofTree
from .narration import Elaboration, Narrator, load_phrasing
from .parser import ParsedStatement, parse_statement, parse_term
from .relations import DEFAULT_THEORY_PATH, RelationRegistry, TheoryFile, load_theory_file
from .terms import Atom, Clause, Term
from .theory import Fact, TheoryStack
from .unification import unify
from .vocabulary import Match, Vocabulary

logger = logging.getLogger(__name__)

SUCCESS = "success"
PARTIAL = "partial"
REJECTED = "rejected"

Statement = Union[str, Term, Clause]


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class LearnResult:
    """Outcome of learn(): a stored fact or rule, or a rejection."""

    status: str
    statement: str
    fact_id: int | None = None
    rule_id: int | None = None
    binding: str | None = None
    conflicts: list[Conflict] = field(default_factory=list)
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.status == SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "statement": self.statement,
            "factId": self.fact_id,
            "ruleId": self.rule_id,
            "binding": self.binding,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "reason": self.reason,
        }


@dataclass
class QueryMatch:
    """One statement matching a query pattern."""

    term: Term
    bindings: dict[str, str]
    score: float
    fact: Fact | None = None

    @property
    def derived(self) -> bool:
        return self.fact is None or self.fact.is_derived


@dataclass
class QueryResult:
    status: str
    pattern: str
    matches: list[QueryMatch] = field(default_factory=list)
    reason: str | None = None

    @property
    def found(self) -> bool:
        return bool(self.matches)

    @property
    def bindings(self) -> list[dict[str, str]]:
        return [m.bindings for m in self.matches]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "pattern": self.pattern,
            "matches": [
                {
                    "statement": m.term.statement(),
                    "bindings": m.bindings,
                    "score": m.score,
                    "factId": m.fact.id if m.fact is not None else None,
                }
                for m in self.matches
            ],
            "reason": self.reason,
        }


@dataclass
class ProofResult:
    """Outcome of prove(), already narrated."""

    status: str
    goal: str
    valid: bool
    text: str
    proof_chain: list[str] = field(default_factory=list)
    full_proof: str = ""
    bindings: dict[str, str] = field(default_factory=dict)
    proof: ProofTree | None = None
    conflicts: list[Conflict] = field(default_factory=list)
    reason: str | None = None

    @property
    def refuted(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "goal": self.goal,
            "valid": self.valid,
            "text": self.text,
            "proofChain": list(self.proof_chain),
            "fullProof": self.full_proof,
            "bindings": dict(self.bindings),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "reason": self.reason,
        }


@dataclass
class SummaryResult:
    status: str
    success: bool
    text: str
    structure: dict[str, Any] | None = None
    confidence: float = 0.0
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "success": self.success,
            "text": self.text,
            "structure": self.structure,
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass
class OperationResult:
    """Outcome of stack and declaration operations."""

    status: str
    detail: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.status == SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "detail": self.detail, "data": self.data, "reason": self.reason}


# =============================================================================
# SESSION
# =============================================================================


class Session:
    """One reasoning session.

    Example:
        session = Session(geometry=2048)
        session.learn("Rex isA Dog")
        session.prove("Rex isA Dog").text      # "True: Rex is a dog"
        session.dump()["factCount"]            # 1
    """

    def __init__(self, config: SessionConfig | None = None, **overrides: Any):
        base = config or get_settings()
        self.config = SessionConfig.model_validate({**base.model_dump(), **overrides}) if overrides else base

        self.space: VectorSpace = create_space_from_config(self.config.space_config())
        self.vocabulary = Vocabulary(self.space, namespace=self.config.seed)
        self.encoder = Encoder(self.vocabulary, max_positions=self.config.max_positions)
        self.stack = TheoryStack()
        self.relations = RelationRegistry()

        core: TheoryFile | None = None
        if self.config.load_core_theory:
            core = load_theory_file(self.config.core_theory or DEFAULT_THEORY_PATH)
            self.relations.merge(core)

        self.checker = ContradictionChecker(self.relations) if self.config.check_conflicts else None
        self.engine = InferenceEngine(
            self.relations, self.encoder, self.checker, max_iterations=self.config.max_iterations
        )
        self.decoder = Decoder(self.encoder, self.config.decoder_config())
        self.bias = BiasMask(self.space, core.partitions if core and core.partitions else None)
        self.narrator = Narrator(load_phrasing(self.config.phrasing))

        if core is not None and (core.facts or core.rules):
            self._learn_all(core)
        logger.info(
            f"Session ready: {self.space.name} D={self.space.geometry}, "
            f"{len(self.relations.properties)} relations"
        )

    @property
    def geometry(self) -> int:
        return self.space.geometry

    # -------------------------------------------------------------------------
    # Learning
    # -------------------------------------------------------------------------

    def learn(self, statement: Statement, name: str | None = None) -> LearnResult:
        """Store a fact or rule in the top theory layer.

        Args:
            statement: Statement text ("Rex isA Dog", "IF ... THEN ...",
                "@f sell(Alice, Bob, Car, 5000)"), a Term or a Clause
            name: Scope binding for the stored item (overrides an @name prefix)

        Returns:
            LearnResult; contradictions and parse errors are rejected
        """
        try:
            parsed = self._parse(statement)
        except ParseError as e:
            logger.debug(f"learn rejected: {e}")
            return LearnResult(REJECTED, str(statement), reason=str(e))

        binding = name or parsed.binding
        if parsed.is_rule:
            return self._learn_rule(parsed.clause, binding)
        return self._learn_fact(parsed.term, binding)

    def learn_many(self, statements: Sequence[Statement]) -> list[LearnResult]:
        return [self.learn(s) for s in statements]

    def _learn_fact(self, term: Term, binding: str | None) -> LearnResult:
        text = term.statement()
        if not term.is_ground():
            return LearnResult(REJECTED, text, reason="facts cannot contain holes")

        conflicts = self.engine.contradictions(self.stack, term)
        if conflicts:
            logger.warning(f"Rejected '{text}': {conflicts[0]}")
            return LearnResult(REJECTED, text, conflicts=conflicts, reason=str(conflicts[0]))

        fact = self.stack.assert_fact(term, self.encoder.encode(term))
        if binding:
            self.stack.bind(binding, fact.id)
        return LearnResult(SUCCESS, text, fact_id=fact.id, binding=binding)

    def _learn_rule(self, clause: Clause, binding: str | None) -> LearnResult:
        text = clause.statement()
        unbound = clause.head.variables() - set().union(*(t.variables() for t in clause.body))
        if unbound:
            names = ", ".join(f"?{v}" for v in sorted(unbound))
            return LearnResult(REJECTED, text, reason=f"head holes not bound by the body: {names}")

        if binding and clause.name is None:
            clause = Clause(clause.head, list(clause.body), binding)
        rule = self.stack.add_rule(clause, self.encoder.encode_rule(clause))
        if binding:
            self.stack.bind(binding, rule.id)
        return LearnResult(SUCCESS, text, rule_id=rule.id, binding=binding)

    def retract(self, statement: str | Term) -> OperationResult:
        """Remove a top-layer fact and the top-layer facts derived from it."""
        try:
            term = statement if isinstance(statement, Term) else parse_term(statement)
        except ParseError as e:
            return OperationResult(REJECTED, str(statement), reason=str(e))

        removed = self.stack.retract(term)
        if not removed:
            return OperationResult(REJECTED, term.statement(), reason="not in the top layer")
        return OperationResult(
            SUCCESS,
            term.statement(),
            {"removed": [f.term.statement() for f in removed]},
        )

    # -------------------------------------------------------------------------
    # Asking
    # -------------------------------------------------------------------------

    def query(
        self,
        pattern: str | Term,
        mask: MaskSpec | dict[str, Any] | None = None,
        infer: bool = True,
        limit: int | None = None,
    ) -> QueryResult:
        """Statements matching a pattern with holes.

        Matches come from the effective fact set and, with `infer`, from
        everything it entails. Each match is scored by the (masked)
        similarity between the pattern vector and the statement vector;
        results are ordered by score.

        Args:
            pattern: "?x isA Dog", "sell(Alice, ?buyer, Car, ?price)", ...
            mask: Optional MaskSpec (or dict) biasing the scoring
            infer: Include entailed statements
            limit: Keep at most this many matches

        Returns:
            QueryResult with bindings per match
        """
        try:
            goal = pattern if isinstance(pattern, Term) else parse_term(pattern)
            spec = MaskSpec.model_validate(mask) if isinstance(mask, dict) else mask
            if spec is not None:
                self.bias.partition(spec.partition)
        except (ParseError, KeyError, ValueError) as e:
            return QueryResult(REJECTED, str(pattern), reason=str(e))

        status, reason = SUCCESS, None
        candidates: list[tuple[Term, Fact | None]] = [(f.term, f) for f in self.stack.effective_facts()]
        if infer:
            closure, complete = self.engine.closure_facts(self.stack)
            if not complete:
                status, reason = PARTIAL, INFERENCE_BUDGET_EXCEEDED
            seen = {repr(t) for t, _ in candidates}
            candidates.extend((t, None) for t in closure if repr(t) not in seen)

        probe = self.encoder.encode(goal)
        matches: list[QueryMatch] = []
        for term, fact in candidates:
            theta = unify(goal, term)
            if theta is None:
                continue
            bindings = {name: repr(theta[name]) for name in sorted(goal.variables()) if name in theta}
            vector = fact.vector if fact is not None else self.encoder.encode(term)
            score = self.bias.similarity(probe, vector, spec)
            matches.append(QueryMatch(term, bindings, score, fact))

        matches.sort(key=lambda m: -m.score)
        if limit is not None:
            matches = matches[:limit]
        logger.debug(f"query {goal!r}: {len(matches)} match(es)")
        return QueryResult(status, goal.statement(), matches, reason)

    def prove(self, pattern: str | Term) -> ProofResult:
        """Prove a statement (or find an instance of a pattern).

        The stack is not modified. A goal that contradicts the theory is
        reported as False with the conflicting statements.
        """
        try:
            goal = pattern if isinstance(pattern, Term) else parse_term(pattern)
        except ParseError as e:
            return ProofResult(REJECTED, str(pattern), False, f"Cannot parse: {pattern}", reason=str(e))

        tree = self.engine.prove(self.stack, goal)
        if tree.is_valid:
            told = self.narrator.elaborate(tree)
            return ProofResult(
                SUCCESS,
                goal.statement(),
                True,
                told.text,
                told.proof_chain,
                told.full_proof,
                bindings={k: repr(v) for k, v in tree.bindings.items()},
                proof=tree,
            )

        conflicts = self.engine.contradictions(self.stack, goal)
        if conflicts:
            told = self.narrator.refutation(goal, [c for conflict in conflicts for c in conflict.conflicting])
            return ProofResult(
                SUCCESS, goal.statement(), False, told.text, told.proof_chain, told.full_proof,
                proof=tree, conflicts=conflicts,
            )

        told = self.narrator.elaborate(tree)
        if tree.status == ProofStatus.TIMEOUT:
            return ProofResult(
                PARTIAL, goal.statement(), False, told.text, full_proof=told.full_proof,
                proof=tree, reason=INFERENCE_BUDGET_EXCEEDED,
            )
        return ProofResult(SUCCESS, goal.statement(), False, told.text, full_proof=told.full_proof, proof=tree)

    def what_if(self, assumptions: Iterable[Statement], goal: str | Term, name: str = "what-if") -> ProofResult:
        """Prove `goal` inside a temporary layer holding `assumptions`.

        The layer is always popped, so nothing assumed survives the call.
        """
        self.stack.push(name)
        try:
            for assumption in assumptions:
                learned = self.learn(assumption)
                if learned.status == REJECTED:
                    return ProofResult(
                        REJECTED,
                        str(goal),
                        False,
                        f"Cannot assume: {learned.statement}",
                        conflicts=learned.conflicts,
                        reason=learned.reason,
                    )
            return self.prove(goal)
        finally:
            self.stack.pop()

    def forward_chain(self, max_iterations: int | None = None) -> InferenceResult:
        """Materialize the closure of the effective theory into the stack."""
        return self.engine.forward_chain(self.stack, max_iterations)

    # -------------------------------------------------------------------------
    # Vectors
    # -------------------------------------------------------------------------

    def similarity(self, a: Any, b: Any) -> float:
        """Similarity of two symbols, @bindings, statements or raw vectors.

        Like nearest(), this is a plain lookup and returns a bare number,
        so unresolvable operands raise instead of producing a result.

        Raises:
            KeyError: For unknown symbols or bindings
            ParseError: For statement text that cannot be parsed
            DimensionMismatch: For raw vectors of another dimension
        """
        return self.space.similarity(self.vector_of(a), self.vector_of(b))

    def decode(self, vector: Any) -> DecodeResult:
        """Decode a vector (or anything vector_of() resolves) into a statement.

        Unknown symbols or bindings and unparseable text are rejected;
        dimension mismatches propagate.
        """
        try:
            target = self.vector_of(vector)
        except (ParseError, KeyError) as e:
            logger.debug(f"decode rejected: {e}")
            return DecodeResult(False, None, reason=str(e), rejected=True)
        return self.decoder.decode(target)

    def summarize(self, vector: Any) -> SummaryResult:
        """Decode a vector and narrate what was recovered."""
        decoded = self.decode(vector)
        if decoded.rejected:
            return SummaryResult(status=REJECTED, success=False, text="", reason=decoded.reason)
        text = self.narrator.describe(decoded)
        structure = decoded.structure
        return SummaryResult(
            status=SUCCESS if decoded.success else PARTIAL,
            success=decoded.success,
            text=text,
            structure=structure.to_dict() if structure is not None else None,
            confidence=structure.confidence if structure is not None else 0.0,
            reason=decoded.reason,
        )

    def elaborate(self, proof: ProofResult | ProofTree) -> Elaboration:
        """Narrate a proof result (or a bare proof tree)."""
        if isinstance(proof, ProofTree):
            return self.narrator.elaborate(proof)
        if proof.proof is None:
            return Elaboration(proof.text, [], proof.text, status=proof.status)
        if proof.conflicts:
            goal = proof.proof.query
            return self.narrator.refutation(goal, [c for conflict in proof.conflicts for c in conflict.conflicting])
        return self.narrator.elaborate(proof.proof)

    def nearest(self, vector: Any, k: int = 5, mask: MaskSpec | None = None) -> list[Match]:
        """Closest concepts and operators to a vector.

        Raises:
            KeyError: For unknown symbols or bindings
            ParseError: For statement text that cannot be parsed
        """
        return self.vocabulary.nearest(self.vector_of(vector), k=k, mask=mask, bias=self.bias)

    def vector_of(self, value: Any) -> Vector:
        """Resolve a symbol, '@binding', statement, Term or raw vector.

        Raises:
            KeyError: For unknown symbols or bindings
        """
        if isinstance(value, Term):
            return self.encoder.encode(value)
        if isinstance(value, Atom):
            value = value.symbol
        if not isinstance(value, str):
            self.space.check_compatible("similarity", value)
            return value

        text = value.strip()
        if text.startswith("@"):
            item_id = self.stack.resolve_binding(text[1:])
            item = None if item_id is None else (self.stack.fact(item_id) or self.stack.rule(item_id))
            if item is None:
                raise KeyError(f"Unknown binding '{text}'")
            return item.vector
        if any(c in text for c in " (?"):
            return self.encoder.encode(parse_term(text))

        vector = self.vocabulary.vector_of(text)
        if vector is None:
            raise KeyError(f"Unknown symbol '{text}'")
        return vector

    # -------------------------------------------------------------------------
    # Theory stack
    # -------------------------------------------------------------------------

    def push_theory(self, name: str) -> OperationResult:
        layer = self.stack.push(name)
        return OperationResult(SUCCESS, name, {"depth": self.stack.depth, "level": layer.level})

    def pop_theory(self) -> OperationResult:
        try:
            layer = self.stack.pop()
        except StackUnderflow as e:
            logger.warning(f"pop_theory rejected: {e}")
            return OperationResult(REJECTED, "base", {"depth": self.stack.depth}, reason="StackUnderflow")
        return OperationResult(
            SUCCESS,
            layer.name,
            {"depth": self.stack.depth, "discarded": len(layer.facts) + len(layer.rules)},
        )

    def dump(self) -> dict[str, Any]:
        """Snapshot of the session's size and scope."""
        return {
            "geometry": self.space.geometry,
            "strategy": self.space.name,
            "factCount": self.stack.fact_count(),
            "ruleCount": self.stack.rule_count(),
            "vocabularySize": self.vocabulary.size(),
            "scopeBindings": self.stack.scope_bindings(),
            "layers": self.stack.names(),
        }

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def declare_relation(self, name: str, **properties: Any) -> OperationResult:
        """Declare relation properties (transitive, symmetric, inverse, ...)."""
        try:
            props = self.relations.declare(name, **properties)
        except (TypeError, ValueError) as e:
            return OperationResult(REJECTED, name, reason=str(e))
        return OperationResult(SUCCESS, name, props.model_dump(exclude_none=True))

    def declare_composition(self, first: str, second: str, result: str) -> OperationResult:
        comp = self.relations.compose(first, second, result)
        return OperationResult(SUCCESS, f"{first} ∘ {second} => {result}", comp.model_dump())

    def declare_disjoint(self, a: str, b: str) -> OperationResult:
        try:
            self.relations.declare_disjoint(a, b)
        except ValueError as e:
            return OperationResult(REJECTED, f"{a} / {b}", reason=str(e))
        return OperationResult(SUCCESS, f"{a} / {b}")

    def load_theory(self, path: str | Path) -> OperationResult:
        """Merge a YAML theory file: declarations, then its facts and rules."""
        theory = load_theory_file(path)
        self.relations.merge(theory)
        for name, partition in theory.partitions.items():
            self.bias.define(name, partition.start, partition.end, partition.description)
        results = self._learn_all(theory)
        rejected = [r for r in results if r.status == REJECTED]
        return OperationResult(
            PARTIAL if rejected else SUCCESS,
            theory.name or Path(path).stem,
            {
                "learned": len(results) - len(rejected),
                "rejected": [r.to_dict() for r in rejected],
            },
        )

    def export_theory(self) -> TheoryFile:
        """Declarations plus the asserted facts and rules of the active layers."""
        theory = self.relations.to_theory()
        theory.facts = [f.term.statement() for f in self.stack.effective_facts() if not f.is_derived]
        theory.rules = [r.clause.statement() for r in self.stack.effective_rules()]
        theory.partitions = dict(self.bias.partitions)
        return theory

    def _learn_all(self, theory: TheoryFile) -> list[LearnResult]:
        results = [self.learn(text) for text in list(theory.facts) + list(theory.rules)]
        for result in results:
            if result.status == REJECTED:
                logger.warning(f"Theory statement rejected: {result.statement} ({result.reason})")
        return results

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse(statement: Statement) -> ParsedStatement:
        if isinstance(statement, Clause):
            return ParsedStatement(clause=statement, binding=statement.name)
        if isinstance(statement, Term):
            return ParsedStatement(term=statement)
        return parse_statement(statement)


__all__ = [
    "Session",
    "LearnResult",
    "QueryMatch",
    "QueryResult",
    "ProofResult",
    "SummaryResult",
    "OperationResult",
]
