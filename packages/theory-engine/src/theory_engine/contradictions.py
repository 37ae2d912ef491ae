"""
theory_engine/contradictions.py - Contradiction detection

Checks a candidate statement against the effective fact set:
- Negation: P and not P
- Asymmetric relations: A R B and B R A
- Functional relations: A R B and A R C with B != C
- Disjoint classes: X isA P and X isA Q where P and Q (or any of their
  ancestors) are declared disjoint

Used at assert time (learn, forward chaining) and at ask time (prove).
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import Conflict
from .relations import RelationRegistry
from .terms import Term
from .theory import Fact

logger = logging.getLogger(__name__)

CLASS_RELATION = "isA"


class StatementIndex:
    """Lookup tables over a growing set of statements.

    Built once and extended with add(), so a long run of checks against
    an accumulating working set never rescans it.
    """

    def __init__(self, class_relation: str = CLASS_RELATION):
        self.class_relation = class_relation
        self.by_key: dict[str, Term] = {}
        self.by_subject: dict[tuple[str, str], list[Term]] = {}
        self.parents: dict[str, set[str]] = {}

    def add(self, term: Term) -> None:
        key = repr(term)
        if key in self.by_key:
            return
        self.by_key[key] = term
        if term.arity != 2 or term.is_negation:
            return
        subject = repr(term.args[0])
        self.by_subject.setdefault((term.functor, subject), []).append(term)
        if term.functor == self.class_relation:
            self.parents.setdefault(subject, set()).add(repr(term.args[1]))

    def get(self, term: Term) -> Term | None:
        return self.by_key.get(repr(term))

    def about(self, relation: str, subject: str) -> list[Term]:
        """Binary statements `subject relation ?` (subject given by key)."""
        return self.by_subject.get((relation, subject), [])


class ContradictionChecker:
    """Finds facts a statement would contradict."""

    def __init__(self, relations: RelationRegistry, class_relation: str = CLASS_RELATION):
        self.relations = relations
        self.class_relation = class_relation

    def index(self, facts: Iterable[Fact | Term] = ()) -> StatementIndex:
        """Fresh index over `facts` for repeated check() calls."""
        index = StatementIndex(self.class_relation)
        for item in facts:
            index.add(item.term if isinstance(item, Fact) else item)
        return index

    def check(self, term: Term, facts: Iterable[Fact] | StatementIndex) -> list[Conflict]:
        """Conflicts `term` would introduce into `facts`."""
        if not term.is_ground():
            return []
        index = facts if isinstance(facts, StatementIndex) else self.index(facts)

        conflicts: list[Conflict] = []
        opposite = index.get(term.negate())
        if opposite is not None:
            conflicts.append(Conflict("negation", term, [opposite]))
        if term.is_negation or term.arity != 2:
            return conflicts

        subject, obj = term.args
        relation = term.functor
        if self.relations.is_asymmetric(relation) and subject != obj:
            converse = index.get(Term(relation, obj, subject))
            if converse is not None:
                conflicts.append(Conflict("asymmetric", term, [converse], f"{relation} is asymmetric"))

        if self.relations.is_functional(relation):
            clashing = [t for t in index.about(relation, repr(subject)) if t.args[1] != obj]
            if clashing:
                conflicts.append(Conflict("functional", term, clashing, f"{relation} is functional"))

        if relation == self.class_relation:
            conflicts.extend(self._disjoint(term, index))

        if conflicts:
            logger.debug(f"{term.statement()}: {len(conflicts)} conflict(s)")
        return conflicts

    def audit(self, facts: Iterable[Fact]) -> list[Conflict]:
        """Every conflict among `facts` (each pair reported once)."""
        index = self.index()
        found: list[Conflict] = []
        seen: set[frozenset[str]] = set()
        for fact in facts:
            for conflict in self.check(fact.term, index):
                pair = frozenset([repr(conflict.statement)] + [repr(c) for c in conflict.conflicting])
                if pair not in seen:
                    seen.add(pair)
                    found.append(conflict)
            index.add(fact.term)
        return found

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _disjoint(self, term: Term, index: StatementIndex) -> list[Conflict]:
        subject, new_class = term.args
        new_types = self._ancestors(repr(new_class), index.parents) | {repr(new_class)}
        old_types = self._ancestors(repr(subject), index.parents)

        conflicts = []
        for new in sorted(new_types):
            for old in sorted(old_types):
                if self.relations.are_disjoint(new, old):
                    existing = [
                        t for t in index.about(self.class_relation, repr(subject))
                        if repr(t.args[1]) == old
                    ] or [Term(self.class_relation, subject, old)]
                    conflicts.append(Conflict(
                        "disjoint", term, existing, f"{new} and {old} are disjoint"
                    ))
        return conflicts

    @staticmethod
    def _ancestors(node: str, parents: dict[str, set[str]]) -> set[str]:
        seen: set[str] = set()
        frontier = list(parents.get(node, ()))
        while frontier:
            current = frontier.pop()
            if current in seen:
                continue
            seen.add(current)
            frontier.extend(parents.get(current, ()))
        return seen
