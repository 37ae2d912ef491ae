"""
tests/theory_engine/test_theory_stack.py - Layered theory stack

Covers:
    - Layer isolation: child facts vanish on pop, siblings never meet
    - StackUnderflow on popping the base layer (stack unchanged)
    - Top-layer-only retraction with dependent cleanup
    - Per-layer scope bindings
"""

import pytest

from hdc_core import create_space
from theory_engine.encoder import Encoder
from theory_engine.errors import StackUnderflow
from theory_engine.terms import Clause, Term, Var
from theory_engine.theory import BASE_LAYER, TheoryStack
from theory_engine.vocabulary import Vocabulary


@pytest.fixture(scope="module")
def encoder():
    return Encoder(Vocabulary(create_space("dense-bipolar", 512), namespace="stack-tests"))


@pytest.fixture
def stack():
    return TheoryStack()


def add(stack, encoder, text_args, **kwargs):
    term = Term(*text_args)
    return stack.assert_fact(term, encoder.encode(term), **kwargs)


class TestLayers:
    def test_base_always_present(self, stack):
        assert stack.depth == 1
        assert stack.names() == [BASE_LAYER]

    def test_pop_base_raises_and_keeps_stack(self, stack, encoder):
        add(stack, encoder, ("isA", "Rex", "Dog"))
        with pytest.raises(StackUnderflow):
            stack.pop()
        assert stack.depth == 1
        assert stack.fact_count() == 1

    def test_push_pop_isolation(self, stack, encoder):
        add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.push("hypothesis")
        fact = add(stack, encoder, ("isA", "Tom", "Cat"))
        assert fact.layer == "hypothesis"
        assert stack.lookup(Term("isA", "Tom", "Cat")) is not None
        assert stack.fact_count() == 2

        popped = stack.pop()
        assert popped.frozen
        assert stack.lookup(Term("isA", "Tom", "Cat")) is None
        assert stack.fact(fact.id) is None, "popped facts are unreachable by id"
        assert [f.term for f in stack.effective_facts()] == [Term("isA", "Rex", "Dog")]

    def test_siblings_never_meet(self, stack, encoder):
        stack.push("first")
        add(stack, encoder, ("isA", "Tom", "Cat"))
        stack.pop()
        stack.push("second")
        assert stack.lookup(Term("isA", "Tom", "Cat")) is None
        stack.pop()

    def test_child_sees_parent(self, stack, encoder):
        add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.push("child")
        assert stack.lookup(Term("isA", "Rex", "Dog")).layer == BASE_LAYER

    def test_popped_layer_rejects_writes(self, stack):
        stack.push("gone")
        layer = stack.pop()
        with pytest.raises(RuntimeError):
            layer._check_open()

    def test_no_duplicates_across_layers(self, stack, encoder):
        first = add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.push("child")
        again = add(stack, encoder, ("isA", "Rex", "Dog"))
        assert again.id == first.id
        assert stack.fact_count() == 1

    def test_insert_at_lower_level(self, stack, encoder):
        stack.push("child")
        fact = add(stack, encoder, ("isA", "Dog", "Animal"), level=0)
        assert fact.layer == BASE_LAYER
        stack.pop()
        assert stack.lookup(Term("isA", "Dog", "Animal")) is not None


class TestRetract:
    def test_retract_cascades_to_dependents(self, stack, encoder):
        base = add(stack, encoder, ("parentOf", "Ann", "Bob"))
        derived = add(
            stack, encoder, ("childOf", "Bob", "Ann"),
            rule="inverse(parentOf, childOf)", antecedents=(base.id,),
        )
        removed = stack.retract(Term("parentOf", "Ann", "Bob"))
        assert {f.id for f in removed} == {base.id, derived.id}
        assert stack.fact_count() == 0

    def test_cannot_retract_from_lower_layer(self, stack, encoder):
        add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.push("child")
        assert stack.retract(Term("isA", "Rex", "Dog")) == []
        stack.pop()
        assert stack.fact_count() == 1

    def test_retract_drops_bindings(self, stack, encoder):
        fact = add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.bind("f", fact.id)
        stack.retract(Term("isA", "Rex", "Dog"))
        assert stack.resolve_binding("f") is None


class TestRulesAndBindings:
    def test_rules_are_layered(self, stack, encoder):
        clause = Clause(Term("isA", Var("x"), "Animal"), [Term("isA", Var("x"), "Dog")])
        stack.push("rules")
        rule = stack.add_rule(clause, encoder.encode_rule(clause))
        assert stack.rule_count() == 1
        assert stack.rule(rule.id) is rule
        assert rule.name == f"rule{rule.id}"
        stack.pop()
        assert stack.rule_count() == 0
        assert stack.rule(rule.id) is None

    def test_bindings_are_scoped(self, stack, encoder):
        outer = add(stack, encoder, ("isA", "Rex", "Dog"))
        stack.bind("f", outer.id)
        stack.push("child")
        inner = add(stack, encoder, ("isA", "Tom", "Cat"))
        stack.bind("g", inner.id)
        stack.bind("f", inner.id)
        assert stack.resolve_binding("f") == inner.id, "inner binding shadows outer"
        assert stack.scope_bindings() == ["f", "g"]
        stack.pop()
        assert stack.resolve_binding("f") == outer.id
        assert stack.scope_bindings() == ["f"]
