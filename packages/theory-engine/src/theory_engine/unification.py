"""
theory_engine/unification.py - Matching patterns with holes

A pattern such as sell(Alice, ?buyer, Car, ?price) matches a stored
statement when every hole can be bound consistently:

    unify(sell(Alice, ?buyer, Car, ?price), sell(Alice, Bob, Car, 5000))
        -> {"buyer": Bob, "price": 5000}

Both sides may contain holes (rule bodies are joined against each other
this way), so bindings are resolved through chains of holes and an
occurs check keeps them finite. Substitutions are plain dicts and are
never mutated in place: every successful step returns a new dict.
"""
from __future__ import annotations

from .terms import Atom, Term, TermLike, Var

Substitution = dict[str, TermLike]


def resolve(term: TermLike, theta: Substitution) -> TermLike:
    """Follow hole bindings until reaching an unbound hole or a non-hole."""
    while isinstance(term, Var) and term.name in theta:
        term = theta[term.name]
    return term


def unify(
    left: TermLike,
    right: TermLike,
    theta: Substitution | None = None
) -> Substitution | None:
    """Most general bindings making `left` and `right` identical.

    Args:
        left: Pattern or statement
        right: Pattern or statement
        theta: Bindings already in force (not modified)

    Returns:
        Extended bindings, or None when the two cannot match
    """
    bindings: Substitution = dict(theta) if theta else {}
    pending: list[tuple[TermLike, TermLike]] = [(left, right)]

    while pending:
        a, b = pending.pop()
        a, b = resolve(a, bindings), resolve(b, bindings)

        if isinstance(a, Var) and isinstance(b, Var) and a.name == b.name:
            continue
        if isinstance(a, Var):
            if _occurs(a.name, b, bindings):
                return None
            bindings[a.name] = b
        elif isinstance(b, Var):
            if _occurs(b.name, a, bindings):
                return None
            bindings[b.name] = a
        elif isinstance(a, Atom) and isinstance(b, Atom):
            # 5000 parsed from text and 5000 passed from Python are the same symbol
            if a.symbol != b.symbol:
                return None
        elif isinstance(a, Term) and isinstance(b, Term):
            if a.functor != b.functor or a.arity != b.arity:
                return None
            pending.extend(zip(a.args, b.args))
        else:
            return None

    return bindings


def _occurs(name: str, term: TermLike, theta: Substitution) -> bool:
    term = resolve(term, theta)
    if isinstance(term, Var):
        return term.name == name
    if isinstance(term, Term):
        return any(_occurs(name, arg, theta) for arg in term.args)
    return False


def substitute(term: TermLike, theta: Substitution) -> TermLike:
    """Replace every bound hole in `term` by its (resolved) value."""
    term = resolve(term, theta)
    if isinstance(term, Term) and not term.is_ground():
        return Term(term.functor, *(substitute(arg, theta) for arg in term.args))
    return term


def project(theta: Substitution, names: set[str]) -> Substitution:
    """Restrict a substitution to the named holes, fully resolved."""
    return {name: substitute(theta[name], theta) for name in sorted(names) if name in theta}
