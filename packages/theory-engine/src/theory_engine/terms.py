"""
theory_engine/terms.py - Statements as terms

    Atom    ground constant: Rex, 5000, "New York"
    Var     hole in a pattern: ?x
    Term    operator over ordered arguments: isA(Rex, Dog),
            sell(Alice, Bob, Car, 5000), believes(Carol, sell(...))
    Clause  learned rule: IF body THEN head

Terms are immutable and hashable, so they can key dicts and sets.
Negation is a term with the reserved operator `Not` wrapping the negated
statement.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

NEGATION = "Not"

_BARE_SYMBOL = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass(frozen=True)
class Var:
    """Hole in a pattern, written ?name."""

    name: str

    def is_ground(self) -> bool:
        return False

    def variables(self) -> set[str]:
        return {self.name}

    def __repr__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class Atom:
    """Ground constant. Numbers stay numbers; `symbol` is the vocabulary key."""

    value: Any

    @property
    def symbol(self) -> str:
        return str(self.value)

    def is_ground(self) -> bool:
        return True

    def variables(self) -> set[str]:
        return set()

    def __repr__(self) -> str:
        if isinstance(self.value, str) and not _BARE_SYMBOL.match(self.value):
            return f'"{self.value}"'
        return self.symbol


@dataclass(frozen=True, init=False)
class Term:
    """Operator applied to ordered arguments.

    Raw Python values passed as arguments are wrapped in Atoms:

        Term("sell", "Alice", Var("buyer"), "Car", 5000)
    """

    functor: str
    args: tuple[TermLike, ...] = ()

    def __init__(self, functor: str, *args: Any):
        object.__setattr__(self, "functor", functor)
        object.__setattr__(
            self, "args", tuple(a if isinstance(a, (Var, Atom, Term)) else Atom(a) for a in args)
        )

    @property
    def arity(self) -> int:
        return len(self.args)

    @property
    def is_negation(self) -> bool:
        return self.functor == NEGATION and self.arity == 1 and isinstance(self.args[0], Term)

    def negate(self) -> Term:
        """Negated statement (not not P is P)."""
        return self.args[0] if self.is_negation else Term(NEGATION, self)

    def is_ground(self) -> bool:
        return all(a.is_ground() for a in self.args)

    def variables(self) -> set[str]:
        return set().union(*(a.variables() for a in self.args))

    def rename(self, mapping: dict[str, Var]) -> Term:
        """Copy with holes renamed according to `mapping`."""
        renamed = []
        for a in self.args:
            if isinstance(a, Var):
                renamed.append(mapping.get(a.name, a))
            elif isinstance(a, Term):
                renamed.append(a.rename(mapping))
            else:
                renamed.append(a)
        return Term(self.functor, *renamed)

    def statement(self) -> str:
        """Statement text: infix for flat binary relations, functional otherwise."""
        if self.is_negation:
            return f"not {self.args[0].statement()}"
        if self.arity == 2 and not any(isinstance(a, Term) for a in self.args):
            return f"{self.args[0]!r} {self.functor} {self.args[1]!r}"
        return repr(self)

    def __repr__(self) -> str:
        if not self.args:
            return self.functor
        return f"{self.functor}({', '.join(map(repr, self.args))})"


TermLike = Union[Var, Atom, Term]


@dataclass
class Clause:
    """IF body THEN head.

    Every hole in the head must also occur in the body, so firing the rule
    always yields a ground statement.
    """

    head: Term
    body: list[Term] = field(default_factory=list)
    name: str | None = None

    def variables(self) -> set[str]:
        return self.head.variables().union(*(t.variables() for t in self.body))

    def rename_variables(self, suffix: str) -> Clause:
        """Copy with every hole suffixed, so rule instances never share holes."""
        mapping = {v: Var(f"{v}{suffix}") for v in self.variables()}
        return Clause(self.head.rename(mapping), [t.rename(mapping) for t in self.body], self.name)

    def statement(self) -> str:
        body = " AND ".join(t.statement() for t in self.body)
        return f"IF {body} THEN {self.head.statement()}"

    def __repr__(self) -> str:
        return f"{self.head!r} :- {', '.join(map(repr, self.body))}."
