"""
theory_engine/narration.py - Statements and proofs as plain English

Templates come from data/phrasing.yaml, keyed by operator and optionally
by arity. Placeholders name argument positions and accept two format
specs on top of the usual ones:

    {1:a}       indefinite article for argument 1 ("a" / "an")
    {1:lower}   argument 1 lowercased

So isA(Rex, Dog) with "{0} is {1:a} {1:lower}" reads "Rex is a dog".
Operators without a template fall back to the symbolic statement form.
"""
from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .decoder import DecodeResult
from .inference import ProofTree
from .terms import Atom, Term, TermLike, Var

logger = logging.getLogger(__name__)

DEFAULT_PHRASING_PATH = Path(__file__).parent / "data" / "phrasing.yaml"

_VOWELS = "aeiou"


class PhrasingFile(BaseModel):
    """Narration templates: operator -> template or {arity: template}."""

    schema_version: str = Field(default="1.0.0", pattern=r"^\d+\.\d+\.\d+$")
    templates: dict[str, str | dict[int, str]] = Field(default_factory=dict)


def load_phrasing(path: str | Path | None = None) -> PhrasingFile:
    path = Path(path) if path is not None else DEFAULT_PHRASING_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    phrasing = PhrasingFile.model_validate(data)
    logger.info(f"Loaded {len(phrasing.templates)} narration templates from {path.name}")
    return phrasing


class _PhraseFormatter(string.Formatter):
    """Formatter that understands the article and lowercase specs."""

    def format_field(self, value: Any, format_spec: str) -> str:
        text = str(value)
        if format_spec in ("a", "an"):
            return "an" if text[:1].lower() in _VOWELS else "a"
        if format_spec == "lower":
            return text.lower()
        return super().format_field(text, format_spec)


@dataclass
class Elaboration:
    """Narrated proof."""

    text: str
    proof_chain: list[str] = field(default_factory=list)
    full_proof: str = ""
    status: str = "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "text": self.text,
            "proofChain": list(self.proof_chain),
            "fullProof": self.full_proof,
        }


class Narrator:
    """Renders terms, proofs and decodings as sentences.

    Example:
        narrator = Narrator()
        narrator.phrase(Term("isA", "Rex", "Dog"))   # "Rex is a dog"
    """

    def __init__(self, phrasing: PhrasingFile | None = None):
        self.phrasing = phrasing or load_phrasing()
        self._formatter = _PhraseFormatter()

    def template_for(self, operator: str, arity: int) -> str | None:
        entry = self.phrasing.templates.get(operator)
        if isinstance(entry, dict):
            return entry.get(arity)
        return entry

    def phrase(self, term: TermLike) -> str:
        """One statement as a sentence fragment (no trailing period)."""
        if isinstance(term, Var):
            return f"something ({term!r})"
        if isinstance(term, Atom):
            return term.symbol
        if term.is_negation:
            return f"it is not the case that {self.phrase(term.args[0])}"

        template = self.template_for(term.functor, term.arity)
        if template is not None:
            args = [self._argument(a) for a in term.args]
            try:
                return self._formatter.format(template, *args)
            except IndexError:
                logger.debug(f"Template for {term.functor} needs more than {term.arity} arguments")
        return term.statement()

    def _argument(self, arg: TermLike) -> str:
        if isinstance(arg, Term):
            return self.phrase(arg)
        return repr(arg) if isinstance(arg, Var) else arg.symbol

    # -------------------------------------------------------------------------
    # Proofs
    # -------------------------------------------------------------------------

    def elaborate(self, proof: ProofTree) -> Elaboration:
        """True / Cannot prove text plus the ordered proof chain."""
        if not proof.is_valid:
            text = f"Cannot prove: {self.phrase(proof.query)}"
            return Elaboration(text=text, full_proof=text, status="partial")

        goal = self.phrase(proof.get_answer())
        chain = [self.phrase(step.goal) for step in proof.steps()]
        return Elaboration(
            text=f"True: {goal}",
            proof_chain=chain,
            full_proof=f"True: {goal}. Proof: {'. '.join(chain)}.",
        )

    def refutation(self, goal: Term, conflicting: list[Term]) -> Elaboration:
        """False text for a goal the theory contradicts."""
        chain = [self.phrase(t) for t in conflicting]
        text = f"False: {self.phrase(goal)}"
        full = f"{text}. Contradicted by: {'. '.join(chain)}." if chain else text
        return Elaboration(text=text, proof_chain=chain, full_proof=full)

    def describe(self, decoded: DecodeResult) -> str:
        """Sentence for a decoded vector ('' when nothing was recovered)."""
        if decoded.structure is None:
            return ""
        return self.phrase(decoded.structure.term())
