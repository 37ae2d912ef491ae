"""
theory_engine/relations.py - Relation properties and theory files

Relation classes drive forward chaining:
    transitive   A R B, B R C  =>  A R C
    symmetric    A R B         =>  B R A
    inverse      A R B         =>  B R' A
    composition  A R1 B, B R2 C => A R3 C

and contradiction checking:
    asymmetric   A R B and B R A cannot both hold
    functional   A R B and A R C cannot both hold for B != C
    disjoint     X isA P and X isA Q cannot both hold

Declarations come from YAML theory files validated with Pydantic, or are
made directly on a session's RelationRegistry.
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from hdc_core import PartitionSpec

logger = logging.getLogger(__name__)

DEFAULT_THEORY_PATH = Path(__file__).parent / "data" / "core_theory.yaml"

# =============================================================================
# SCHEMA
# =============================================================================


class RelationProperties(BaseModel):
    """Declared properties of one relation."""

    transitive: bool = False
    symmetric: bool = False
    asymmetric: bool = False
    functional: bool = False
    inverse: str | None = Field(default=None, min_length=1)
    description: str | None = None


class Composition(BaseModel):
    """first ∘ second ⇒ result."""

    first: str = Field(..., min_length=1)
    second: str = Field(..., min_length=1)
    result: str = Field(..., min_length=1)


class TheoryFile(BaseModel):
    """A declarative theory: relation classes, constraints, facts, rules."""

    schema_version: str = Field(default="1.0.0", pattern=r"^\d+\.\d+\.\d+$")
    name: str | None = None
    description: str | None = None
    relations: dict[str, RelationProperties] = Field(default_factory=dict)
    compositions: list[Composition] = Field(default_factory=list)
    disjoint: list[tuple[str, str]] = Field(default_factory=list)
    partitions: dict[str, PartitionSpec] = Field(default_factory=dict)
    facts: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list)


def load_theory_file(path: str | Path) -> TheoryFile:
    """Load and validate a YAML theory file.

    Args:
        path: Path to YAML file

    Returns:
        Parsed TheoryFile
    """
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    theory = TheoryFile.model_validate(data)
    logger.info(
        f"Loaded theory '{theory.name or path.stem}': {len(theory.relations)} relations, "
        f"{len(theory.compositions)} compositions, {len(theory.facts)} facts, "
        f"{len(theory.rules)} rules"
    )
    return theory


# =============================================================================
# REGISTRY
# =============================================================================


class RelationRegistry:
    """Session-wide relation declarations."""

    def __init__(self):
        self.properties: dict[str, RelationProperties] = {}
        self.compositions: list[Composition] = []
        self._disjoint: set[frozenset[str]] = set()
        self.version = 0

    def declare(
        self,
        relation: str,
        *,
        transitive: bool | None = None,
        symmetric: bool | None = None,
        asymmetric: bool | None = None,
        functional: bool | None = None,
        inverse: str | None = None,
        description: str | None = None,
    ) -> RelationProperties:
        """Set properties of `relation`, keeping any not mentioned."""
        current = self.properties.get(relation, RelationProperties())
        updates = {
            k: v for k, v in {
                "transitive": transitive,
                "symmetric": symmetric,
                "asymmetric": asymmetric,
                "functional": functional,
                "inverse": inverse,
                "description": description,
            }.items() if v is not None
        }
        props = current.model_copy(update=updates)
        if props.symmetric and props.asymmetric:
            raise ValueError(f"Relation '{relation}' cannot be both symmetric and asymmetric")
        self.properties[relation] = props
        self.version += 1
        logger.debug(f"Declared relation {relation}: {props.model_dump(exclude_none=True)}")
        return props

    def compose(self, first: str, second: str, result: str) -> Composition:
        composition = Composition(first=first, second=second, result=result)
        if composition not in self.compositions:
            self.compositions.append(composition)
            self.version += 1
        return composition

    def declare_disjoint(self, a: str, b: str) -> None:
        if a == b:
            raise ValueError(f"A class cannot be disjoint with itself: {a}")
        self._disjoint.add(frozenset((a.lower(), b.lower())))
        self.version += 1

    def merge(self, theory: TheoryFile) -> None:
        """Absorb the relation-level declarations of a theory file."""
        for name, props in theory.relations.items():
            self.declare(name, **props.model_dump(exclude_unset=True))
        for comp in theory.compositions:
            self.compose(comp.first, comp.second, comp.result)
        for a, b in theory.disjoint:
            self.declare_disjoint(a, b)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, relation: str) -> RelationProperties:
        return self.properties.get(relation, RelationProperties())

    def is_transitive(self, relation: str) -> bool:
        return self.get(relation).transitive

    def is_symmetric(self, relation: str) -> bool:
        return self.get(relation).symmetric

    def is_asymmetric(self, relation: str) -> bool:
        return self.get(relation).asymmetric

    def is_functional(self, relation: str) -> bool:
        return self.get(relation).functional

    def inverse_of(self, relation: str) -> str | None:
        return self.get(relation).inverse

    def are_disjoint(self, a: str, b: str) -> bool:
        return frozenset((a.lower(), b.lower())) in self._disjoint

    def disjoint_pairs(self) -> list[tuple[str, str]]:
        return sorted(tuple(sorted(pair)) for pair in self._disjoint)

    def to_theory(self) -> TheoryFile:
        """Relation-level declarations as a TheoryFile."""
        return TheoryFile(
            relations=dict(self.properties),
            compositions=list(self.compositions),
            disjoint=self.disjoint_pairs(),
        )
