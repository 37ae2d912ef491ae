"""
theory_engine/theory.py - Layered theory stack

The stack is an explicit list of layer frames. The base frame always
exists; push() opens a child on top, pop() discards it. Every frame only
adds visibility for its descendants:

    effective facts = base ∪ layer1 ∪ ... ∪ top

New facts, rules and scope bindings always go into the top frame. A popped
frame is frozen and its facts stop being reachable through the stack, so a
hypothetical layer leaves no residue once discarded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from hdc_core import Vector

from .errors import StackUnderflow
from .terms import Clause, Term

logger = logging.getLogger(__name__)

BASE_LAYER = "base"


@dataclass(frozen=True)
class Fact:
    """A statement held by one layer.

    Derived facts carry the rule that produced them and the ids of their
    antecedents; asserted facts have rule=None.
    """

    id: int
    term: Term
    vector: Vector = field(compare=False, repr=False)
    confidence: float = 1.0
    layer: str = BASE_LAYER
    level: int = 0
    rule: str | None = None
    antecedents: tuple[int, ...] = ()

    @property
    def key(self) -> str:
        return repr(self.term)

    @property
    def operator(self) -> str:
        return self.term.functor

    @property
    def args(self) -> list[str]:
        return [repr(a) for a in self.term.args]

    @property
    def is_derived(self) -> bool:
        return self.rule is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "statement": self.term.statement(),
            "operator": self.operator,
            "args": self.args,
            "confidence": self.confidence,
            "layer": self.layer,
            "rule": self.rule,
            "antecedents": list(self.antecedents),
        }


@dataclass(frozen=True)
class LearnedRule:
    """A Horn rule held by one layer."""

    id: int
    clause: Clause
    vector: Vector = field(compare=False, repr=False)
    layer: str = BASE_LAYER
    level: int = 0

    @property
    def name(self) -> str:
        return self.clause.name or f"rule{self.id}"


@dataclass
class TheoryLayer:
    """One frame of the stack."""

    name: str
    level: int
    parent: TheoryLayer | None = None
    facts: dict[str, Fact] = field(default_factory=dict)
    rules: list[LearnedRule] = field(default_factory=list)
    bindings: dict[str, int] = field(default_factory=dict)
    frozen: bool = False

    def _check_open(self) -> None:
        if self.frozen:
            raise RuntimeError(f"Theory layer '{self.name}' has been popped")

    def __repr__(self) -> str:
        return f"TheoryLayer({self.name!r}, level={self.level}, facts={len(self.facts)})"


class TheoryStack:
    """Ordered layers with push/pop scoping.

    Example:
        stack = TheoryStack()
        stack.push("what-if")
        stack.assert_fact(term, vector)
        stack.pop()               # term is gone
    """

    def __init__(self, base_name: str = BASE_LAYER):
        self.layers: list[TheoryLayer] = [TheoryLayer(base_name, 0)]
        self._next_id = 1
        self._by_id: dict[int, Fact] = {}
        self._rules_by_id: dict[int, LearnedRule] = {}
        # Bumped on every change to the effective facts or rules
        self.version = 0

    # -------------------------------------------------------------------------
    # Frames
    # -------------------------------------------------------------------------

    @property
    def top(self) -> TheoryLayer:
        return self.layers[-1]

    @property
    def depth(self) -> int:
        return len(self.layers)

    def names(self) -> list[str]:
        return [layer.name for layer in self.layers]

    def push(self, name: str) -> TheoryLayer:
        """Open a child layer on top of the current top."""
        layer = TheoryLayer(name, self.depth, parent=self.top)
        self.layers.append(layer)
        self.version += 1
        logger.info(f"Pushed theory layer '{name}' (depth {self.depth})")
        return layer

    def pop(self) -> TheoryLayer:
        """Discard the top layer.

        Raises:
            StackUnderflow: If only the base layer remains (stack unchanged)
        """
        if self.depth == 1:
            raise StackUnderflow(self.depth)
        layer = self.layers.pop()
        layer.frozen = True
        self.version += 1
        for fact in layer.facts.values():
            self._by_id.pop(fact.id, None)
        for rule in layer.rules:
            self._rules_by_id.pop(rule.id, None)
        logger.info(
            f"Popped theory layer '{layer.name}' ({len(layer.facts)} facts, "
            f"{len(layer.rules)} rules discarded)"
        )
        return layer

    # -------------------------------------------------------------------------
    # Facts
    # -------------------------------------------------------------------------

    def assert_fact(
        self,
        term: Term,
        vector: Vector,
        *,
        confidence: float = 1.0,
        rule: str | None = None,
        antecedents: tuple[int, ...] = (),
        level: int | None = None,
    ) -> Fact:
        """Insert a fact into the top layer (or an active lower `level`).

        A statement already visible in the effective set is not duplicated;
        the visible fact is returned instead.
        """
        existing = self.lookup(term)
        if existing is not None:
            return existing

        layer = self.top if level is None else self.layers[level]
        layer._check_open()
        fact = Fact(
            id=self._next_id,
            term=term,
            vector=vector,
            confidence=confidence,
            layer=layer.name,
            level=layer.level,
            rule=rule,
            antecedents=tuple(antecedents),
        )
        self._next_id += 1
        layer.facts[fact.key] = fact
        self.version += 1
        self._by_id[fact.id] = fact
        logger.debug(f"[{layer.name}] +{fact.id} {term.statement()}" + (f" via {rule}" if rule else ""))
        return fact

    def retract(self, term: Term) -> list[Fact]:
        """Remove a fact from the top layer along with top-layer facts derived from it.

        Facts owned by lower layers cannot be retracted from above; an empty
        list is returned for them.
        """
        layer = self.top
        layer._check_open()
        target = layer.facts.get(repr(term))
        if target is None:
            return []

        removed = [target]
        doomed = {target.id}
        changed = True
        while changed:
            changed = False
            for fact in list(layer.facts.values()):
                if fact.id not in doomed and doomed.intersection(fact.antecedents):
                    doomed.add(fact.id)
                    removed.append(fact)
                    changed = True

        for fact in removed:
            del layer.facts[fact.key]
            self._by_id.pop(fact.id, None)
        self.version += 1
        for name in [n for n, fid in layer.bindings.items() if fid in doomed]:
            del layer.bindings[name]
        logger.debug(f"[{layer.name}] retracted {len(removed)} fact(s)")
        return removed

    def lookup(self, term: Term) -> Fact | None:
        """Visible fact for `term`, searching from the top down."""
        key = repr(term)
        for layer in reversed(self.layers):
            fact = layer.facts.get(key)
            if fact is not None:
                return fact
        return None

    def fact(self, fact_id: int) -> Fact | None:
        """Reachable fact by id."""
        return self._by_id.get(fact_id)

    def effective_facts(self) -> list[Fact]:
        """Union of all active layers, base first."""
        return [fact for layer in self.layers for fact in layer.facts.values()]

    def fact_count(self) -> int:
        return sum(len(layer.facts) for layer in self.layers)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def add_rule(self, clause: Clause, vector: Vector) -> LearnedRule:
        """Insert a learned rule into the top layer."""
        layer = self.top
        layer._check_open()
        entry = LearnedRule(self._next_id, clause, vector, layer.name, layer.level)
        self._next_id += 1
        layer.rules.append(entry)
        self.version += 1
        self._rules_by_id[entry.id] = entry
        logger.debug(f"[{layer.name}] +rule {entry.id} {clause.statement()}")
        return entry

    def effective_rules(self) -> list[LearnedRule]:
        return [rule for layer in self.layers for rule in layer.rules]

    def rule(self, rule_id: int) -> LearnedRule | None:
        return self._rules_by_id.get(rule_id)

    def rule_count(self) -> int:
        return sum(len(layer.rules) for layer in self.layers)

    # -------------------------------------------------------------------------
    # Scope bindings
    # -------------------------------------------------------------------------

    def bind(self, name: str, item_id: int) -> None:
        """Bind a scope name to a fact or rule id in the top layer."""
        self.top._check_open()
        self.top.bindings[name] = item_id

    def resolve_binding(self, name: str) -> int | None:
        for layer in reversed(self.layers):
            if name in layer.bindings:
                return layer.bindings[name]
        return None

    def scope_bindings(self) -> list[str]:
        """Names visible from the top layer, in binding order."""
        seen: dict[str, None] = {}
        for layer in self.layers:
            for name in layer.bindings:
                seen.setdefault(name, None)
        return list(seen)
