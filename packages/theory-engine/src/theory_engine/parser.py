"""
theory_engine/parser.py - Statement text to terms

Accepted forms:
    Rex isA Dog                        infix: subject operator object...
    sell(Alice, Bob, Car, 5000)        functional, arguments may nest
    ?x isA Dog                         holes are ?name
    not Rex isA Cat                    negation
    IF ?x isA Dog AND ... THEN ...     learned rule
    @f Rex isA Dog                     bind the statement to scope name f
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import ParseError
from .terms import Atom, Clause, Term, TermLike, Var

_TOKEN = re.compile(r'\?[A-Za-z_]\w*|"[^"]*"|[(),]|[^\s(),"]+')
_RULE = re.compile(r"^\s*IF\s+(?P<body>.+?)\s+THEN\s+(?P<head>.+?)\s*$", re.IGNORECASE | re.DOTALL)
_AND = re.compile(r"\s+AND\s+", re.IGNORECASE)
_NOT = re.compile(r"^\s*not\s+", re.IGNORECASE)
_BINDING = re.compile(r"^\s*@(?P<name>[A-Za-z_]\w*)\s+(?P<rest>.+)$", re.DOTALL)
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?\d+\.\d+$")


@dataclass(frozen=True)
class ParsedStatement:
    """A parsed fact, pattern or rule plus its optional scope name."""

    term: Term | None = None
    clause: Clause | None = None
    binding: str | None = None

    @property
    def is_rule(self) -> bool:
        return self.clause is not None


def parse_statement(text: str) -> ParsedStatement:
    """Parse one statement (fact, pattern, negation or rule)."""
    if not text or not text.strip():
        raise ParseError(text, "empty statement")

    binding = None
    match = _BINDING.match(text)
    if match:
        binding = match.group("name")
        text = match.group("rest")

    rule = _RULE.match(text)
    if rule:
        body = [parse_term(part) for part in _AND.split(rule.group("body"))]
        head = parse_term(rule.group("head"))
        return ParsedStatement(clause=Clause(head, body, binding), binding=binding)

    return ParsedStatement(term=parse_term(text), binding=binding)


def parse_term(text: str) -> Term:
    """Parse a single (possibly negated) statement into a Term."""
    negated = False
    while _NOT.match(text):
        text = _NOT.sub("", text, count=1)
        negated = not negated

    tokens = _TOKEN.findall(text)
    if not tokens:
        raise ParseError(text, "no tokens")

    reader = _TokenReader(text, tokens)
    values: list[TermLike] = []
    while not reader.done:
        values.append(reader.value())

    term = _assemble(text, values)
    return term.negate() if negated else term


def _assemble(text: str, values: list[TermLike]) -> Term:
    if len(values) == 1:
        if isinstance(values[0], Term):
            return values[0]
        raise ParseError(text, "a statement needs an operator")

    subject, operator, *rest = values
    if not isinstance(operator, Atom) or not isinstance(operator.value, str):
        raise ParseError(text, f"operator must be a symbol, got {operator!r}")
    return Term(operator.value, subject, *rest)


class _TokenReader:
    """Recursive-descent reader over statement tokens."""

    def __init__(self, text: str, tokens: list[str]):
        self.text = text
        self.tokens = tokens
        self.pos = 0

    @property
    def done(self) -> bool:
        return self.pos >= len(self.tokens)

    def _next(self) -> str:
        if self.done:
            raise ParseError(self.text, "unexpected end of statement")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _peek(self) -> str | None:
        return None if self.done else self.tokens[self.pos]

    def value(self) -> TermLike:
        token = self._next()
        if token in ("(", ")", ","):
            raise ParseError(self.text, f"unexpected '{token}'")
        if token.startswith("?"):
            return Var(token[1:])
        if token.startswith('"'):
            return Atom(token[1:-1])
        if self._peek() == "(":
            self._next()
            return Term(token, *self._arguments())
        return _literal(token)

    def _arguments(self) -> list[TermLike]:
        args: list[TermLike] = []
        if self._peek() == ")":
            self._next()
            return args
        while True:
            args.append(self.value())
            token = self._next()
            if token == ")":
                return args
            if token != ",":
                raise ParseError(self.text, f"expected ',' or ')', got '{token}'")


def _literal(token: str) -> Atom:
    if _INT.match(token):
        return Atom(int(token))
    if _FLOAT.match(token):
        return Atom(float(token))
    return Atom(token)
