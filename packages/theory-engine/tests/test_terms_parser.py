"""
tests/theory_engine/test_terms_parser.py - Terms, unification and statement parsing
"""

import pytest

from theory_engine.errors import ParseError
from theory_engine.parser import parse_statement, parse_term
from theory_engine.terms import NEGATION, Atom, Clause, Term, Var
from theory_engine.unification import project, substitute, unify


class TestTerms:
    def test_raw_arguments_become_atoms(self):
        term = Term("sell", "Alice", "Bob", "Car", 5000)
        assert term.arity == 4
        assert all(isinstance(a, Atom) for a in term.args)
        assert term.args[3] == Atom(5000)

    def test_repr_and_statement(self):
        assert repr(Term("isA", "Rex", "Dog")) == "isA(Rex, Dog)"
        assert Term("isA", "Rex", "Dog").statement() == "Rex isA Dog"
        assert Term("sell", "Alice", "Bob", "Car", 5000).statement() == "sell(Alice, Bob, Car, 5000)"

    def test_quoted_atoms(self):
        assert repr(Atom("New York")) == '"New York"'
        assert Atom("New York").symbol == "New York"

    def test_negation_round_trip(self):
        fact = Term("isA", "Rex", "Cat")
        negated = fact.negate()
        assert negated.functor == NEGATION
        assert negated.is_negation
        assert negated.negate() == fact
        assert negated.statement() == "not Rex isA Cat"

    def test_ground_and_variables(self):
        pattern = Term("sell", "Alice", Var("buyer"), "Car", Var("price"))
        assert not pattern.is_ground()
        assert pattern.variables() == {"buyer", "price"}
        assert Term("isA", "Rex", "Dog").is_ground()

    def test_clause_rename_keeps_structure(self):
        rule = Clause(Term("isA", Var("x"), "Animal"), [Term("isA", Var("x"), "Dog")], "dogs")
        renamed = rule.rename_variables("_1")
        assert renamed.variables() == {"x_1"}
        assert renamed.name == "dogs"
        assert rule.statement() == "IF ?x isA Dog THEN ?x isA Animal"


class TestUnification:
    def test_binds_holes(self):
        theta = unify(Term("isA", Var("x"), "Dog"), Term("isA", "Rex", "Dog"))
        assert theta == {"x": Atom("Rex")}

    def test_mismatch(self):
        assert unify(Term("isA", Var("x"), "Dog"), Term("isA", "Rex", "Cat")) is None
        assert unify(Term("isA", "Rex"), Term("isA", "Rex", "Dog")) is None

    def test_repeated_hole_must_agree(self):
        pattern = Term("loves", Var("x"), Var("x"))
        assert unify(pattern, Term("loves", "Narcissus", "Narcissus")) is not None
        assert unify(pattern, Term("loves", "Romeo", "Juliet")) is None

    def test_nested(self):
        pattern = Term("believes", "Carol", Term("sell", Var("who"), "Bob", "Car", 5000))
        fact = Term("believes", "Carol", Term("sell", "Alice", "Bob", "Car", 5000))
        theta = unify(pattern, fact)
        assert substitute(pattern, theta) == fact

    def test_project(self):
        theta = {"x": Atom("Rex"), "y_3": Atom("Dog")}
        assert project(theta, {"x"}) == {"x": Atom("Rex")}


class TestParser:
    def test_infix(self):
        assert parse_term("Rex isA Dog") == Term("isA", "Rex", "Dog")

    def test_functional_with_numbers(self):
        term = parse_term("sell(Alice, Bob, Car, 5000)")
        assert term == Term("sell", "Alice", "Bob", "Car", 5000)

    def test_float_literal(self):
        assert parse_term("price(Car, 4999.5)").args[1] == Atom(4999.5)

    def test_holes(self):
        term = parse_term("?who isA Dog")
        assert term.args[0] == Var("who")

    def test_nested(self):
        term = parse_term("Carol believes sell(Alice, Bob, Car, 5000)")
        assert term.functor == "believes"
        assert term.args[1] == Term("sell", "Alice", "Bob", "Car", 5000)

    def test_negation(self):
        assert parse_term("not Rex isA Cat") == Term("isA", "Rex", "Cat").negate()
        assert parse_term("not not Rex isA Cat") == Term("isA", "Rex", "Cat")

    def test_quoted(self):
        assert parse_term('Alice livesIn "New York"').args[1] == Atom("New York")

    def test_rule(self):
        parsed = parse_statement("IF ?x isA Dog AND ?x has Owner THEN ?x isA Pet")
        assert parsed.is_rule
        assert parsed.clause.head == Term("isA", Var("x"), "Pet")
        assert len(parsed.clause.body) == 2

    def test_rule_keywords_case_insensitive(self):
        parsed = parse_statement("if ?x isA Dog then ?x isA Animal")
        assert parsed.is_rule

    def test_binding_prefix(self):
        parsed = parse_statement("@f Rex isA Dog")
        assert parsed.binding == "f"
        assert parsed.term == Term("isA", "Rex", "Dog")

    def test_named_rule(self):
        parsed = parse_statement("@dogs IF ?x isA Dog THEN ?x isA Animal")
        assert parsed.clause.name == "dogs"

    @pytest.mark.parametrize("text", ["", "   ", "Rex", "sell(Alice, Bob", "Rex 5 Dog", "(Rex)"])
    def test_malformed(self, text):
        with pytest.raises(ParseError):
            parse_statement(text)
