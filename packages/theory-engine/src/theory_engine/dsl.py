"""
theory_engine/dsl.py - Fluent theory building

Builds facts, rules and relation declarations in Python instead of
statement text, and feeds them to a Session.

Example:
    from theory_engine.dsl import TheoryBuilder, X, Y, Z

    t = TheoryBuilder(session)

    t.relation("ancestorOf", transitive=True)
    t.fact("isA", "Rex", "Dog")
    t.fact("sell", "Alice", "Bob", "Car", 5000)

    t.rule("isA", X, "Animal") \\
        .when("isA", X, "Dog") \\
        .named("dogs_are_animals") \\
        .done()

    t.prove("isA", "Rex", "Animal").text   # "True: Rex is an animal"
    list(t.solutions("isA", X, "Animal"))  # [{"X": "Rex"}]
"""
from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .session import LearnResult, OperationResult, ProofResult, QueryResult, Session
from .terms import Clause, Term, Var

# Common holes
X = Var("X")
Y = Var("Y")
Z = Var("Z")
A = Var("A")
B = Var("B")
C = Var("C")


class RuleBuilder:
    """Fluent builder for rules."""

    def __init__(self, builder: TheoryBuilder, head_name: str, *args):
        self.builder = builder
        self.head = Term(head_name, *args)
        self.body: list[Term] = []
        self._name: str | None = None

    def when(self, operator: str, *args) -> RuleBuilder:
        """Add first condition."""
        self.body.append(Term(operator, *args))
        return self

    def and_(self, operator: str, *args) -> RuleBuilder:
        """Add another condition (AND)."""
        self.body.append(Term(operator, *args))
        return self

    def named(self, name: str) -> RuleBuilder:
        """Set rule name (also its scope binding)."""
        self._name = name
        return self

    def clause(self) -> Clause:
        return Clause(self.head, list(self.body), self._name)

    def done(self) -> LearnResult:
        """Finalize and learn the rule."""
        if not self.body:
            raise ValueError(f"Rule for {self.head!r} has no conditions")
        return self.builder.session.learn(self.clause(), name=self._name)


class TheoryBuilder:
    """Fluent, Pythonic front end over a Session."""

    def __init__(self, session: Session | None = None, **config: Any):
        """Initialize builder.

        Args:
            session: Existing session (creates a new one if None)
            **config: Session overrides used when creating one
        """
        self.session = session or Session(**config)

    def relation(self, name: str, **properties: Any) -> OperationResult:
        """Declare relation properties (transitive, symmetric, inverse, ...)."""
        return self.session.declare_relation(name, **properties)

    def composition(self, first: str, second: str, result: str) -> OperationResult:
        return self.session.declare_composition(first, second, result)

    def disjoint(self, a: str, b: str) -> OperationResult:
        return self.session.declare_disjoint(a, b)

    def fact(self, operator: str, *args, name: str | None = None) -> LearnResult:
        """Learn a fact.

        Args:
            operator: Operator symbol
            *args: Arguments (converted to Atoms if not Terms)
            name: Optional scope binding
        """
        return self.session.learn(Term(operator, *args), name=name)

    def negated(self, operator: str, *args, name: str | None = None) -> LearnResult:
        """Learn the negation of a statement."""
        return self.session.learn(Term(operator, *args).negate(), name=name)

    def rule(self, head_operator: str, *args) -> RuleBuilder:
        """Start building a rule.

        Example:
            t.rule("mortal", X).when("isA", X, "Human").done()
        """
        return RuleBuilder(self, head_operator, *args)

    def query(self, operator: str, *args, **options: Any) -> QueryResult:
        return self.session.query(Term(operator, *args), **options)

    def prove(self, operator: str, *args) -> ProofResult:
        return self.session.prove(Term(operator, *args))

    def holds(self, operator: str, *args) -> bool:
        """True if the statement is provable."""
        return self.prove(operator, *args).valid

    def solutions(self, operator: str, *args, limit: int | None = None) -> Iterator[dict[str, str]]:
        """Yield the hole bindings of every match.

        Yields:
            Dictionaries mapping hole names to symbols
        """
        result = self.query(operator, *args, limit=limit)
        for match in result.matches:
            yield dict(match.bindings)

    def explain(self, operator: str, *args) -> str:
        """Indented proof tree, or the failure text."""
        proof = self.prove(operator, *args)
        return proof.proof.explain() if proof.proof is not None else proof.text
