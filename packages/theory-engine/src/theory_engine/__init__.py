"""
theory_engine - Symbolic reasoning over hyperdimensional vectors

Facts (operator + ordered arguments) are encoded as vectors, stored in a
layered theory stack, forward-chained over, proved with narrated proof
chains, and decoded back from vectors with per-slot confidence.

Quick Start:
    from theory_engine import Session

    session = Session(geometry=2048)
    session.learn("Rex isA Dog")
    session.learn("Dog isA Mammal")

    proof = session.prove("Rex isA Mammal")
    proof.text           # "True: Rex is a mammal"
    proof.proof_chain    # ["Rex is a dog", "Dog is a mammal", "Rex is a mammal"]

    fact = session.learn("@s sell(Alice, Bob, Car, 5000)")
    session.summarize("@s").text   # "Alice sold Car to Bob for 5000"

Modules:
    theory_engine.session        - Public Session surface
    theory_engine.parser         - Statement text to terms
    theory_engine.vocabulary     - Symbol to vector arena
    theory_engine.encoder        - Terms to vectors
    theory_engine.theory         - Layered theory stack
    theory_engine.inference      - Forward chaining and proofs
    theory_engine.contradictions - Conflict detection
    theory_engine.decoder        - Vectors back to structure
    theory_engine.narration      - Plain-English rendering
    theory_engine.dsl            - Fluent theory builder
"""

__version__ = "1.0.0"

from .config import SessionConfig, get_settings
from .decoder import DecodeResult, DecodedStructure, Decoder, DecoderConfig, SlotDecoding
from .encoder import HOLE, Encoder
from .errors import (
    INFERENCE_BUDGET_EXCEEDED,
    LOW_CONFIDENCE_DECODE,
    Conflict,
    DimensionMismatch,
    ParseError,
    StackUnderflow,
    TheoryError,
    UnknownStrategy,
)
from .inference import InferenceEngine, InferenceResult, ProofNode, ProofStatus, ProofTree
from .narration import Elaboration, Narrator
from .parser import parse_statement, parse_term
from .relations import RelationRegistry, TheoryFile, load_theory_file
from .session import (
    LearnResult,
    OperationResult,
    ProofResult,
    QueryMatch,
    QueryResult,
    Session,
    SummaryResult,
)
from .terms import Atom, Clause, Term, Var
from .theory import Fact, TheoryLayer, TheoryStack
from .vocabulary import SymbolKind, Vocabulary

__all__ = [
    # Session
    "Session",
    "SessionConfig",
    "get_settings",
    "LearnResult",
    "QueryMatch",
    "QueryResult",
    "ProofResult",
    "SummaryResult",
    "OperationResult",
    "Elaboration",
    # Terms
    "Atom",
    "Var",
    "Term",
    "Clause",
    "parse_statement",
    "parse_term",
    # Machinery
    "Vocabulary",
    "SymbolKind",
    "Encoder",
    "HOLE",
    "TheoryStack",
    "TheoryLayer",
    "Fact",
    "RelationRegistry",
    "TheoryFile",
    "load_theory_file",
    "InferenceEngine",
    "InferenceResult",
    "ProofTree",
    "ProofNode",
    "ProofStatus",
    "Decoder",
    "DecoderConfig",
    "DecodeResult",
    "DecodedStructure",
    "SlotDecoding",
    "Narrator",
    # Errors
    "TheoryError",
    "StackUnderflow",
    "Conflict",
    "ParseError",
    "DimensionMismatch",
    "UnknownStrategy",
    "LOW_CONFIDENCE_DECODE",
    "INFERENCE_BUDGET_EXCEEDED",
]
