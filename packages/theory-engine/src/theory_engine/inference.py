"""
theory_engine/inference.py - Forward Chaining and Proof Construction

FORWARD CHAINING (Data-Driven):
    Apply every rule class to the effective fact set until no new fact
    appears (fixpoint) or the iteration budget runs out:

        symmetric    A R B           =>  B R A
        inverse      A R B           =>  B R' A
        transitive   A R B, B R C    =>  A R C
        composition  A R1 B, B R2 C  =>  A R3 C
        learned      IF body THEN head (unification over the fact set)

    Each iteration reads only what earlier iterations produced, so the
    loop is sequential. Joins are semi-naive: every derivation uses at
    least one statement that was new in the previous iteration. An
    exhausted budget returns the partial closure with a warning marker
    instead of raising.

    The closure is cached per stack and recomputed only after the facts,
    rules, layers or relation declarations change.

PROOFS:
    prove() computes the closure without touching the stack, finds the
    goal, and walks derivation provenance back to asserted facts. The
    result is a proof tree whose post-order walk is the proof chain.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .contradictions import ContradictionChecker, StatementIndex
from .encoder import Encoder
from .errors import INFERENCE_BUDGET_EXCEEDED, Conflict
from .relations import RelationRegistry
from .terms import Term
from .theory import Fact, LearnedRule, TheoryStack
from .unification import Substitution, project, substitute, unify

logger = logging.getLogger(__name__)


class ProofStatus(Enum):
    """Status of a proof attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"  # Budget ran out before the goal was found


# =============================================================================
# PROOF TREES
# =============================================================================


@dataclass
class ProofNode:
    """Node in a proof tree: one statement and how it was obtained."""

    goal: Term
    rule_used: str | None = None
    children: list[ProofNode] = field(default_factory=list)
    status: ProofStatus = ProofStatus.SUCCESS
    depth: int = 0
    fact_id: int | None = None

    @property
    def is_leaf(self) -> bool:
        """True if this is a leaf node (asserted fact or failure)."""
        return len(self.children) == 0

    @property
    def is_success(self) -> bool:
        return self.status == ProofStatus.SUCCESS

    def __repr__(self) -> str:
        status_mark = "✓" if self.is_success else "✗"
        return f"[{status_mark}] {self.goal}"


@dataclass
class ProofTree:
    """Complete proof tree for a query."""

    root: ProofNode
    query: Term
    bindings: Substitution = field(default_factory=dict)
    iterations: int = 0

    @property
    def is_valid(self) -> bool:
        """True if the proof succeeded."""
        return self.root.status == ProofStatus.SUCCESS

    @property
    def status(self) -> ProofStatus:
        return self.root.status

    def get_answer(self) -> Term | None:
        """Get the instantiated query with bindings applied."""
        if not self.is_valid:
            return None
        return substitute(self.query, self.bindings)

    def steps(self) -> list[ProofNode]:
        """Post-order walk: asserted facts first, the conclusion last."""
        ordered: list[ProofNode] = []
        seen: set[str] = set()

        def visit(node: ProofNode) -> None:
            for child in node.children:
                visit(child)
            key = repr(node.goal)
            if key not in seen:
                seen.add(key)
                ordered.append(node)

        if self.is_valid:
            visit(self.root)
        return ordered

    def explain(self, indent: int = 0) -> str:
        """Generate human-readable explanation."""
        return self._explain_node(self.root, indent)

    def _explain_node(self, node: ProofNode, indent: int) -> str:
        lines = []
        prefix = "  " * indent
        status = "✓" if node.is_success else "✗"

        if node.rule_used:
            lines.append(f"{prefix}{status} {node.goal.statement()}")
            lines.append(f"{prefix}  by rule: {node.rule_used}")
        elif node.is_success:
            lines.append(f"{prefix}{status} {node.goal.statement()} (fact)")
        else:
            lines.append(f"{prefix}{status} {node.goal.statement()} ({node.status.value})")

        for child in node.children:
            lines.append(self._explain_node(child, indent + 1))

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Export proof tree to dictionary."""
        return {
            "query": str(self.query),
            "valid": self.is_valid,
            "status": self.status.value,
            "bindings": {k: str(v) for k, v in self.bindings.items()},
            "iterations": self.iterations,
            "tree": self._node_to_dict(self.root),
        }

    def _node_to_dict(self, node: ProofNode) -> dict[str, Any]:
        return {
            "goal": str(node.goal),
            "status": node.status.value,
            "depth": node.depth,
            "rule": node.rule_used,
            "fact_id": node.fact_id,
            "children": [self._node_to_dict(c) for c in node.children],
        }


# =============================================================================
# CLOSURE
# =============================================================================


@dataclass(eq=False)
class _Node:
    """A statement in the working set (asserted fact or fresh derivation)."""

    term: Term
    level: int
    fact: Fact | None = None
    rule: str | None = None
    antecedents: tuple[_Node, ...] = ()


@dataclass
class _Closure:
    nodes: list[_Node]
    iterations: int
    complete: bool
    conflicts: list[Conflict]
    index: StatementIndex | None = None


class _Joins:
    """Working-set nodes keyed for rule bodies and chain joins."""

    def __init__(self):
        self.by_functor: dict[str, list[_Node]] = defaultdict(list)
        self.by_subject: dict[tuple[str, str], list[_Node]] = defaultdict(list)
        self.by_object: dict[tuple[str, str], list[_Node]] = defaultdict(list)

    def add(self, node: _Node) -> None:
        term = node.term
        self.by_functor[term.functor].append(node)
        if term.arity == 2 and not term.is_negation:
            self.by_subject[(term.functor, repr(term.args[0]))].append(node)
            self.by_object[(term.functor, repr(term.args[1]))].append(node)

    def starting_at(self, relation: str, subject: str) -> list[_Node]:
        return self.by_subject.get((relation, subject), [])

    def ending_at(self, relation: str, obj: str) -> list[_Node]:
        return self.by_object.get((relation, obj), [])


@dataclass
class InferenceResult:
    """Outcome of one forward-chaining run."""

    derived: list[Fact]
    iterations: int
    complete: bool
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def warning(self) -> str | None:
        return None if self.complete else INFERENCE_BUDGET_EXCEEDED

    @property
    def status(self) -> str:
        return "success" if self.complete else "partial"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "derived": [f.term.statement() for f in self.derived],
            "iterations": self.iterations,
            "complete": self.complete,
            "warning": self.warning,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class InferenceEngine:
    """Bounded fixpoint over relation classes and learned rules.

    Example:
        engine = InferenceEngine(relations, encoder, max_iterations=50)
        result = engine.forward_chain(stack)
        result.derived      # new facts, inserted into the stack
        engine.forward_chain(stack).derived   # [] - already closed
    """

    def __init__(
        self,
        relations: RelationRegistry,
        encoder: Encoder,
        checker: ContradictionChecker | None = None,
        max_iterations: int = 100,
    ):
        self.relations = relations
        self.encoder = encoder
        self.checker = checker
        self.max_iterations = max_iterations
        self._cached: tuple[TheoryStack, tuple[int, int, int], _Closure] | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def forward_chain(self, stack: TheoryStack, max_iterations: int | None = None) -> InferenceResult:
        """Derive the closure of the effective fact set into the stack.

        Each derived fact goes into the deepest layer among its antecedents
        and, for learned rules, the layer holding the rule. Conclusions
        drawn purely from base facts and base rules survive a pop; anything
        that needed a hypothetical fact or rule goes away with its layer.
        """
        closure = self._closure(stack, self._budget(max_iterations))

        inserted: dict[int, Fact] = {}
        derived: list[Fact] = []
        for node in closure.nodes:
            if node.fact is not None:
                continue
            antecedent_ids = tuple(self._fact_of(a, inserted).id for a in node.antecedents)
            fact = stack.assert_fact(
                node.term,
                self.encoder.encode(node.term),
                confidence=min(self._fact_of(a, inserted).confidence for a in node.antecedents),
                rule=node.rule,
                antecedents=antecedent_ids,
                level=node.level,
            )
            inserted[id(node)] = fact
            derived.append(fact)

        result = InferenceResult(derived, closure.iterations, closure.complete, closure.conflicts)
        if closure.complete:
            logger.debug(f"Forward chaining: {len(derived)} new facts in {closure.iterations} iterations")
        else:
            logger.warning(
                f"{INFERENCE_BUDGET_EXCEEDED}: stopped after {closure.iterations} iterations "
                f"with {len(derived)} new facts (partial closure)"
            )
        return result

    def prove(self, stack: TheoryStack, goal: Term, max_iterations: int | None = None) -> ProofTree:
        """Prove `goal` (may contain holes) against the effective theory.

        The stack is not modified.
        """
        closure = self._closure(stack, self._budget(max_iterations))
        match = self._find(goal, closure.nodes)

        if match is None:
            status = ProofStatus.FAILURE if closure.complete else ProofStatus.TIMEOUT
            root = ProofNode(goal=goal, status=status)
            return ProofTree(root=root, query=goal, iterations=closure.iterations)

        node, theta = match
        return ProofTree(
            root=self._proof_node(node, 0),
            query=goal,
            bindings=project(theta, goal.variables()),
            iterations=closure.iterations,
        )

    def closure_facts(self, stack: TheoryStack, max_iterations: int | None = None) -> tuple[list[Term], bool]:
        """Every statement entailed by the stack, without inserting anything.

        Returns:
            (statements, complete) - complete is False when the budget ran out
        """
        closure = self._closure(stack, self._budget(max_iterations))
        return [n.term for n in closure.nodes], closure.complete

    def contradictions(self, stack: TheoryStack, term: Term, max_iterations: int | None = None) -> list[Conflict]:
        """Conflicts between `term` and everything the stack entails."""
        if self.checker is None or not term.is_ground():
            return []
        closure = self._closure(stack, self._budget(max_iterations))
        return self.checker.check(term, closure.index)

    # -------------------------------------------------------------------------
    # Fixpoint
    # -------------------------------------------------------------------------

    def _budget(self, max_iterations: int | None) -> int:
        return self.max_iterations if max_iterations is None else max_iterations

    def _closure(self, stack: TheoryStack, budget: int) -> _Closure:
        key = (stack.version, self.relations.version, budget)
        if self._cached is not None and self._cached[0] is stack and self._cached[1] == key:
            return self._cached[2]
        closure = self._fixpoint(stack.effective_facts(), stack.effective_rules(), budget)
        self._cached = (stack, key, closure)
        return closure

    def _fixpoint(self, facts: list[Fact], rules: list[LearnedRule], budget: int) -> _Closure:
        nodes = [_Node(f.term, f.level, fact=f) for f in facts]
        known: dict[str, _Node] = {repr(n.term): n for n in nodes}
        rejected: dict[str, Conflict] = {}
        index = self.checker.index(n.term for n in nodes) if self.checker is not None else None
        joins = _Joins()
        for node in nodes:
            joins.add(node)

        delta = list(nodes)
        iterations = 0
        complete = False

        while iterations < budget:
            iterations += 1
            fresh: list[_Node] = []
            for node in self._derive(delta, joins, rules):
                key = repr(node.term)
                if key in known or key in rejected:
                    continue
                conflicts = self.checker.check(node.term, index) if index is not None else []
                if conflicts:
                    rejected[key] = conflicts[0]
                    logger.warning(f"Derived statement rejected: {conflicts[0]}")
                    continue
                known[key] = node
                fresh.append(node)
                if index is not None:
                    index.add(node.term)

            if not fresh:
                complete = True
                break
            nodes.extend(fresh)
            for node in fresh:
                joins.add(node)
            delta = fresh

        return _Closure(nodes, iterations, complete, list(rejected.values()), index)

    def _derive(self, delta: list[_Node], joins: _Joins, rules: list[LearnedRule]) -> Iterator[_Node]:
        """One-step consequences that use at least one node from `delta`."""
        for node in delta:
            term = node.term
            if term.arity != 2 or term.is_negation:
                continue
            relation = term.functor
            subject, obj = term.args

            if self.relations.is_symmetric(relation):
                yield self._node(Term(relation, obj, subject), f"symmetric({relation})", node)

            inverse = self.relations.inverse_of(relation)
            if inverse:
                yield self._node(Term(inverse, obj, subject), f"inverse({relation}, {inverse})", node)

            if self.relations.is_transitive(relation):
                rule = f"transitive({relation})"
                for nxt in joins.starting_at(relation, repr(obj)):
                    yield self._node(Term(relation, subject, nxt.term.args[1]), rule, node, nxt)
                for prev in joins.ending_at(relation, repr(subject)):
                    yield self._node(Term(relation, prev.term.args[0], obj), rule, prev, node)

            for comp in self.relations.compositions:
                rule = f"composition({comp.first}, {comp.second}, {comp.result})"
                if comp.first == relation:
                    for nxt in joins.starting_at(comp.second, repr(obj)):
                        yield self._node(Term(comp.result, subject, nxt.term.args[1]), rule, node, nxt)
                if comp.second == relation:
                    for prev in joins.ending_at(comp.first, repr(subject)):
                        yield self._node(Term(comp.result, prev.term.args[0], obj), rule, prev, node)

        if not rules:
            return
        fresh_by_functor: dict[str, list[_Node]] = defaultdict(list)
        for node in delta:
            fresh_by_functor[node.term.functor].append(node)

        for rule in rules:
            clause = rule.clause.rename_variables(f"_{rule.id}")
            for pivot, literal in enumerate(clause.body):
                if literal.functor not in fresh_by_functor:
                    continue
                # The pivot literal joins against delta, the rest against everything
                sources = [fresh_by_functor if i == pivot else joins.by_functor for i in range(len(clause.body))]
                for theta, support in self._satisfy_body(clause.body, sources, {}):
                    head = substitute(clause.head, theta)
                    if isinstance(head, Term) and head.is_ground():
                        yield self._node(head, rule.name, *support, floor=rule.level)

    def _satisfy_body(
        self,
        body: list[Term],
        sources: list[dict[str, list[_Node]]],
        theta: Substitution,
    ) -> Iterator[tuple[Substitution, list[_Node]]]:
        """Find all substitutions (and supporting nodes) that satisfy a rule body.

        `sources[i]` holds the candidate nodes for `body[i]`, keyed by functor.
        """
        if not body:
            yield theta, []
            return

        first, *rest = body
        pool, *remaining = sources
        for node in pool.get(first.functor, []):
            new_theta = unify(first, node.term, theta)
            if new_theta is None:
                continue
            for final_theta, support in self._satisfy_body(rest, remaining, new_theta):
                yield final_theta, [node] + support

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _node(term: Term, rule: str, *antecedents: _Node, floor: int = 0) -> _Node:
        level = max([floor] + [a.level for a in antecedents])
        return _Node(term, level, rule=rule, antecedents=tuple(antecedents))

    @staticmethod
    def _find(goal: Term, nodes: list[_Node]) -> tuple[_Node, Substitution] | None:
        for node in nodes:
            theta = unify(goal, node.term)
            if theta is not None:
                return node, theta
        return None

    @staticmethod
    def _fact_of(node: _Node, inserted: dict[int, Fact]) -> Fact:
        return node.fact if node.fact is not None else inserted[id(node)]

    def _proof_node(self, node: _Node, depth: int) -> ProofNode:
        return ProofNode(
            goal=node.term,
            rule_used=node.rule,
            children=[self._proof_node(a, depth + 1) for a in node.antecedents],
            status=ProofStatus.SUCCESS,
            depth=depth,
            fact_id=node.fact.id if node.fact is not None else None,
        )

