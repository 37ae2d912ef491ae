"""
theory_engine/encoder.py - Statements to vectors

FACTS:
    encode(op(a1, ..., an)) = bundle([op, a1 ⊗ Pos1, ..., an ⊗ Posn])

    Each argument is bound to its own positional role vector and the bound
    terms are superposed with the operator. Every argument stays
    retrievable by unbinding its role:
        unbind(fact, Pos2) ≈ a2 + noise

    A left-to-right chain of binds (op ⊗ a1 ⊗ a2 ...) loses argument order
    (binding commutes) and argument identity; it is never used here.

NESTING:
    Compound arguments are encoded recursively and bound like atoms.

PATTERNS AND RULES:
    Holes encode as the reserved hole marker. A rule IF b1 AND ... THEN h
    encodes as Implies(And(b1, ...), h).
"""
from __future__ import annotations

import logging

from hdc_core import Vector, VectorSpace

from .terms import Atom, Clause, Term, TermLike, Var
from .vocabulary import SymbolKind, Vocabulary

logger = logging.getLogger(__name__)

HOLE = "__HOLE__"
IMPLIES = "Implies"
CONJUNCTION = "And"


def role_name(position: int) -> str:
    """Role symbol for a 1-based argument position."""
    return f"Pos{position}"


class Encoder:
    """Encodes terms with one session's vocabulary and vector space."""

    def __init__(self, vocabulary: Vocabulary, max_positions: int = 20):
        self.vocabulary = vocabulary
        self.max_positions = max_positions
        # Drawn once per session, reused by every fact
        self.roles: list[Vector] = [
            vocabulary.reserved(role_name(i), SymbolKind.ROLE)
            for i in range(1, max_positions + 1)
        ]
        self.hole = vocabulary.reserved(HOLE, SymbolKind.MARKER)

    @property
    def space(self) -> VectorSpace:
        return self.vocabulary.space

    def role(self, position: int) -> Vector:
        """Role vector for a 1-based position."""
        if not 1 <= position <= self.max_positions:
            raise ValueError(f"Position {position} outside 1..{self.max_positions}")
        return self.roles[position - 1]

    def encode_fact(self, operator: str, args: list[TermLike]) -> Vector:
        """Encode operator + ordered arguments as one vector.

        Args:
            operator: Operator symbol
            args: Ordered arguments (atoms, nested terms or holes)

        Returns:
            bundle of the operator and every position-bound argument
        """
        if len(args) > self.max_positions:
            raise ValueError(
                f"{operator} has {len(args)} arguments; at most {self.max_positions} positions"
            )
        parts = [self.vocabulary.resolve_operator(operator)]
        for position, arg in enumerate(args, start=1):
            parts.append(self.space.bind(self.encode_argument(arg), self.role(position)))
        return self.space.bundle(parts)

    def encode_argument(self, arg: TermLike) -> Vector:
        if isinstance(arg, Var):
            return self.hole
        if isinstance(arg, Term):
            return self.encode(arg)
        if isinstance(arg, Atom):
            return self.vocabulary.resolve(arg.symbol)
        return self.vocabulary.resolve(str(arg))

    def encode(self, term: Term) -> Vector:
        """Encode a term (ground fact or pattern with holes)."""
        return self.encode_fact(term.functor, list(term.args))

    def encode_rule(self, rule: Clause | Term) -> Vector:
        """Encode a learned rule, or a single pattern, with holes as markers."""
        if isinstance(rule, Term):
            return self.encode(rule)
        body = rule.body[0] if len(rule.body) == 1 else Term(CONJUNCTION, *rule.body)
        return self.encode(Term(IMPLIES, body, rule.head))
