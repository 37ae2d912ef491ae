"""
tests/theory_engine/test_session.py - Public Session surface

Covers:
    - learn / prove narration ("True: Rex is a dog")
    - dump shape
    - Layer isolation through push_theory / pop_theory and query
    - Structured results: success, partial, rejected
    - similarity, decode and summarize over symbols, bindings and vectors
    - what_if, retract, declarations, theory files and the fluent builder
"""

import textwrap
import time

import pytest

from hdc_core import DimensionMismatch, MaskSpec, UnknownStrategy, create_space
from theory_engine import Session, SessionConfig
from theory_engine.dsl import X, TheoryBuilder
from theory_engine.errors import INFERENCE_BUDGET_EXCEEDED, LOW_CONFIDENCE_DECODE, ParseError
from theory_engine.terms import Term


@pytest.fixture
def session():
    return Session(SessionConfig(geometry=2048, seed="session-tests"))


# =============================================================================
# LEARN / PROVE / DUMP
# =============================================================================


class TestBasics:
    def test_learn_then_prove(self, session):
        learned = session.learn("Rex isA Dog")
        assert learned.success
        assert learned.fact_id is not None

        proof = session.prove("Rex isA Dog")
        assert proof.status == "success"
        assert proof.valid
        assert proof.proof_chain == ["Rex is a dog"]
        assert proof.text == "True: Rex is a dog"
        assert proof.full_proof == "True: Rex is a dog. Proof: Rex is a dog."

    def test_dump(self, session):
        session.learn("Rex isA Dog")
        dump = session.dump()
        assert dump["factCount"] == 1
        assert dump["ruleCount"] == 0
        assert dump["geometry"] == 2048
        assert dump["vocabularySize"] == 3
        assert dump["scopeBindings"] == []

    def test_derived_proof_chain(self, session):
        session.learn("Rex isA Dog")
        session.learn("Dog isA Mammal")
        proof = session.prove("Rex isA Mammal")
        assert proof.text == "True: Rex is a mammal"
        assert proof.proof_chain == ["Rex is a dog", "Dog is a mammal", "Rex is a mammal"]

    def test_article(self, session):
        session.learn("Rex isA Animal")
        assert session.prove("Rex isA Animal").text == "True: Rex is an animal"

    def test_cannot_prove(self, session):
        session.learn("Rex isA Dog")
        proof = session.prove("Rex isA Cow")
        assert not proof.valid
        assert proof.text == "Cannot prove: Rex is a cow"
        assert proof.proof_chain == []

    def test_refuted_goal(self, session):
        session.learn("Tom isA Cat")
        proof = session.prove("Tom isA Dog")
        assert not proof.valid
        assert proof.refuted
        assert proof.text == "False: Tom is a dog"
        assert proof.proof_chain == ["Tom is a cat"]

    def test_prove_with_holes(self, session):
        session.learn("Rex isA Dog")
        proof = session.prove("?who isA Dog")
        assert proof.valid
        assert proof.bindings == {"who": "Rex"}
        assert proof.text == "True: Rex is a dog"

    def test_named_statements(self, session):
        session.learn("@f Rex isA Dog")
        session.learn("Tom isA Cat", name="g")
        assert session.dump()["scopeBindings"] == ["f", "g"]

    def test_learn_rule(self, session):
        learned = session.learn("@pets IF ?x isA Dog THEN ?x isA Pet")
        assert learned.success
        assert learned.rule_id is not None
        session.learn("Rex isA Dog")
        assert session.dump()["ruleCount"] == 1

        proof = session.prove("Rex isA Pet")
        assert proof.valid
        assert proof.proof.root.rule_used == "pets"

    def test_elaborate(self, session):
        session.learn("Rex isA Dog")
        session.learn("Dog isA Mammal")
        told = session.elaborate(session.prove("Rex isA Mammal"))
        assert told.text == "True: Rex is a mammal"
        assert told.full_proof.startswith("True: Rex is a mammal. Proof: Rex is a dog.")

    def test_sell_narration(self, session):
        session.learn("sell(Alice, Bob, Car, 5000)")
        assert session.prove("sell(Alice, Bob, Car, 5000)").text == "True: Alice sold Car to Bob for 5000"


# =============================================================================
# STRUCTURED RESULTS
# =============================================================================


class TestResults:
    def test_parse_error_is_rejected(self, session):
        result = session.learn("sell(Alice, Bob")
        assert result.status == "rejected"
        assert "Cannot parse" in result.reason

    def test_facts_cannot_have_holes(self, session):
        assert session.learn("?x isA Dog").status == "rejected"

    def test_rule_head_must_be_bound(self, session):
        result = session.learn("IF ?x isA Dog THEN ?y isA Animal")
        assert result.status == "rejected"
        assert "?y" in result.reason

    def test_conflict_is_rejected(self, session):
        session.learn("Tom isA Cat")
        result = session.learn("Tom isA Dog")
        assert result.status == "rejected"
        assert result.conflicts[0].kind == "disjoint"
        assert session.dump()["factCount"] == 1

    def test_negation_conflict(self, session):
        session.learn("not Rex isA Cat")
        assert session.learn("Rex isA Cat").status == "rejected"

    def test_conflicts_can_be_disabled(self):
        session = Session(SessionConfig(check_conflicts=False))
        session.learn("Tom isA Cat")
        assert session.learn("Tom isA Dog").success

    def test_pop_base_is_rejected(self, session):
        result = session.pop_theory()
        assert result.status == "rejected"
        assert result.reason == "StackUnderflow"
        assert session.dump()["layers"] == ["base"]

    def test_budget_exceeded_is_partial(self):
        session = Session(SessionConfig(max_iterations=1))
        session.declare_relation("precedes", transitive=True)
        for i in range(10):
            session.learn(f"s{i} precedes s{i + 1}")

        chained = session.forward_chain()
        assert chained.status == "partial"
        assert chained.warning == INFERENCE_BUDGET_EXCEEDED

    def test_proof_timeout_is_partial(self):
        session = Session(SessionConfig(max_iterations=1))
        session.declare_relation("precedes", transitive=True)
        for i in range(10):
            session.learn(f"s{i} precedes s{i + 1}")
        proof = session.prove("s0 precedes s10")
        assert proof.status == "partial"
        assert proof.reason == INFERENCE_BUDGET_EXCEEDED

    def test_unknown_strategy_propagates(self):
        with pytest.raises(UnknownStrategy):
            Session(SessionConfig(strategy="no-such-strategy"))

    def test_dimension_mismatch_propagates(self, session):
        foreign = create_space("dense-bipolar", 64).random(1)
        session.learn("Rex isA Dog")
        with pytest.raises(DimensionMismatch):
            session.similarity(foreign, "Rex")


# =============================================================================
# LAYERS
# =============================================================================


class TestLayers:
    def test_layer_isolation(self, session):
        session.learn("Rex isA Dog")
        session.push_theory("hypothesis")
        session.learn("Tom isA Cat")
        assert session.query("Tom isA Cat").found

        popped = session.pop_theory()
        assert popped.success
        assert not session.query("Tom isA Cat").found
        assert session.query("Rex isA Dog").found

    def test_what_if(self, session):
        session.learn("Dog isA Mammal")
        proof = session.what_if(["Rex isA Dog"], "Rex isA Mammal")
        assert proof.valid
        assert not session.query("Rex isA Dog").found, "assumptions leave no residue"
        assert session.dump()["layers"] == ["base"]

    def test_what_if_rejected_assumption(self, session):
        session.learn("Tom isA Cat")
        proof = session.what_if(["Tom isA Dog"], "Tom isA Mammal")
        assert proof.status == "rejected"
        assert session.dump()["layers"] == ["base"]

    def test_retract(self, session):
        session.learn("Rex isA Dog")
        assert session.retract("Rex isA Dog").success
        assert session.dump()["factCount"] == 0
        assert session.retract("Rex isA Dog").status == "rejected"

    def test_rule_in_layer_leaves_no_residue(self, session):
        session.learn("Rex isA Dog")
        session.push_theory("hypothesis")
        session.learn("IF ?x isA Dog THEN ?x isA Pet")
        derived = session.forward_chain().derived
        assert [(f.term.statement(), f.layer) for f in derived] == [("Rex isA Pet", "hypothesis")]

        session.pop_theory()
        assert not session.query("Rex isA Pet").found
        assert session.dump()["factCount"] == 1

    def test_long_chain_learns_quickly(self, session):
        start = time.perf_counter()
        results = [session.learn(f"e{i} before e{i + 1}") for i in range(40)]
        elapsed = time.perf_counter() - start

        assert all(r.success for r in results)
        assert elapsed < 10, f"40 learns took {elapsed:.1f}s"
        assert session.prove("e0 before e40").valid
        assert session.learn("e40 before e0").status == "rejected"


# =============================================================================
# QUERY
# =============================================================================


class TestQuery:
    def test_bindings(self, session):
        learned = session.learn_many(["Rex isA Dog", "Fido isA Dog", "Tom isA Cat"])
        assert all(r.success for r in learned)
        result = session.query("?who isA Dog")
        assert sorted(b["who"] for b in result.bindings) == ["Fido", "Rex"]

    def test_inferred_matches(self, session):
        session.learn("Rex isA Dog")
        session.learn("Dog isA Animal")
        inferred = session.query("Rex isA ?what")
        assert {b["what"] for b in inferred.bindings} == {"Dog", "Animal"}
        asserted = session.query("Rex isA ?what", infer=False)
        assert [b["what"] for b in asserted.bindings] == ["Dog"]

    def test_masked_query(self, session):
        session.learn("sell(Alice, Bob, Car, 5000)")
        result = session.query("sell(Alice, ?buyer, Car, ?price)", mask=MaskSpec(partition="ontology"))
        assert result.status == "success"
        assert result.bindings == [{"buyer": "Bob", "price": "5000"}]
        assert result.matches[0].score > 0.5

    def test_mask_as_dict(self, session):
        session.learn("Rex isA Dog")
        result = session.query("?x isA Dog", mask={"partition": "axiology", "mode": "exclude"})
        assert result.found

    def test_unknown_partition_is_rejected(self, session):
        result = session.query("?x isA Dog", mask=MaskSpec(partition="nowhere"))
        assert result.status == "rejected"


# =============================================================================
# VECTORS
# =============================================================================


class TestVectors:
    def test_similarity_of_symbols(self, session):
        session.learn("Rex isA Dog")
        assert session.similarity("Rex", "Rex") == pytest.approx(1.0)
        assert session.similarity("Rex", "Dog") == pytest.approx(0.5, abs=0.06)

    def test_similarity_of_bindings_and_statements(self, session):
        session.learn("@f Rex isA Dog")
        assert session.similarity("@f", "Rex isA Dog") == pytest.approx(1.0)
        assert session.similarity("@f", Term("isA", "Rex", "Dog")) == pytest.approx(1.0)

    def test_unknown_symbol(self, session):
        with pytest.raises(KeyError):
            session.similarity("Nobody", "Nothing")

    def test_similarity_of_malformed_statement(self, session):
        with pytest.raises(ParseError):
            session.similarity("Rex", "sell(Alice, Bob")

    def test_decode_unknown_binding_is_rejected(self, session):
        decoded = session.decode("@missing")
        assert decoded.status == "rejected"
        assert not decoded.success
        assert "@missing" in decoded.reason
        assert decoded.to_dict()["status"] == "rejected"

    def test_summarize_malformed_statement_is_rejected(self, session):
        summary = session.summarize("sell(Alice, Bob")
        assert summary.status == "rejected"
        assert not summary.success
        assert "Cannot parse" in summary.reason

    def test_summarize_unknown_symbol_is_rejected(self, session):
        summary = session.summarize("Unicorn")
        assert summary.status == "rejected"
        assert summary.text == ""
        assert "Unicorn" in summary.reason

    def test_decode_binding(self, session):
        session.learn("@s sell(Alice, Bob, Car, 5000)")
        decoded = session.decode("@s")
        assert decoded.success
        assert [a.symbol for a in decoded.structure.arguments] == ["Alice", "Bob", "Car", "5000"]
        assert all(a.confidence > 0.9 for a in decoded.structure.arguments)

    def test_summarize(self, session):
        fact = session.learn("@s sell(Alice, Bob, Car, 5000)")
        summary = session.summarize(session.stack.fact(fact.fact_id).vector)
        assert summary.success
        assert summary.text == "Alice sold Car to Bob for 5000"
        assert summary.confidence > 0.9

    def test_summarize_noise(self, session):
        session.learn("Rex isA Dog")
        summary = session.summarize(session.space.random(99))
        assert not summary.success
        assert summary.status == "partial"
        assert summary.reason == LOW_CONFIDENCE_DECODE

    def test_nearest(self, session):
        session.learn("Rex isA Dog")
        assert session.nearest("Rex", k=1)[0].symbol == "Rex"

    @pytest.mark.parametrize("strategy", ["sparse-polynomial", "holographic", "fractal-semantic"])
    def test_other_strategies(self, strategy):
        session = Session(SessionConfig(strategy=strategy))
        session.learn("Rex isA Dog")
        assert session.prove("Rex isA Dog").text == "True: Rex is a dog"
        decoded = session.decode("Rex isA Dog")
        assert decoded.success
        assert decoded.structure.term() == Term("isA", "Rex", "Dog")


# =============================================================================
# DECLARATIONS, THEORY FILES, BUILDER
# =============================================================================


class TestTheory:
    def test_declare_relation(self, session):
        assert session.declare_relation("ancestorOf", transitive=True).success
        session.learn("Ann ancestorOf Bob")
        session.learn("Bob ancestorOf Cid")
        assert session.prove("Ann ancestorOf Cid").valid

    def test_declare_relation_rejects_contradiction(self, session):
        result = session.declare_relation("marriedTo", asymmetric=True)
        assert result.status == "rejected"

    def test_declare_composition_and_disjoint(self, session):
        session.declare_composition("worksAt", "locatedIn", "worksIn")
        session.declare_disjoint("Robot", "Human")
        session.learn("Ada worksAt Lab")
        session.learn("Lab locatedIn Paris")
        assert session.prove("Ada worksIn Paris").valid
        session.learn("R2 isA Robot")
        assert session.learn("R2 isA Human").status == "rejected"

    def test_load_and_export(self, session, tmp_path):
        path = tmp_path / "family.yaml"
        path.write_text(textwrap.dedent("""
            name: family
            relations:
              ancestorOf:
                transitive: true
            facts:
              - Ann ancestorOf Bob
              - Bob ancestorOf Cid
            rules:
              - IF ?x ancestorOf ?y THEN ?y descendsFrom ?x
        """))
        loaded = session.load_theory(path)
        assert loaded.status == "success"
        assert loaded.data["learned"] == 3
        assert session.prove("Cid descendsFrom Ann").valid

        exported = session.export_theory()
        assert "Ann ancestorOf Bob" in exported.facts
        assert exported.relations["ancestorOf"].transitive
        assert len(exported.rules) == 1

    def test_builder(self, session):
        t = TheoryBuilder(session)
        t.fact("isA", "Rex", "Dog")
        t.rule("isA", X, "Pet").when("isA", X, "Dog").named("pets").done()
        assert t.holds("isA", "Rex", "Pet")
        assert list(t.solutions("isA", X, "Pet")) == [{"X": "Rex"}]
        assert "by rule: pets" in t.explain("isA", "Rex", "Pet")


# =============================================================================
# CONFIGURATION
# =============================================================================


class TestConfig:
    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("THEORY_ENGINE_STRATEGY", " Holographic ")
        monkeypatch.setenv("THEORY_ENGINE_GEOMETRY", "1024")
        monkeypatch.setenv("THEORY_ENGINE_MAX_ITERATIONS", "7")
        config = SessionConfig()
        assert config.strategy == "holographic"
        assert config.geometry == 1024
        assert config.max_iterations == 7

    def test_keyword_overrides(self):
        session = Session(SessionConfig(), strategy="sparse-polynomial", max_iterations=5)
        assert session.dump()["strategy"] == "sparse-polynomial"
        assert session.engine.max_iterations == 5

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            Session(SessionConfig(), max_iterations=0)

    def test_without_core_theory(self):
        session = Session(SessionConfig(load_core_theory=False))
        session.learn("Tom isA Cat")
        assert session.learn("Tom isA Dog").success
        assert not session.prove("Bob marriedTo Ann").valid
