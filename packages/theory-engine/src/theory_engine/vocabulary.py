"""
theory_engine/vocabulary.py - Per-session symbol arena

Every symbol a session touches gets one base vector, created on first
reference from a seed derived from the session namespace and the symbol,
and never replaced afterwards. Entries get stable integer ids in
first-seen order; nearest-neighbor ties are broken by that order.

Reserved entries (role vectors, the hole marker) live in the same arena
under their own kinds and are excluded from size() and from searches
unless asked for explicitly.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from hdc_core import BiasMask, MaskSpec, Vector, VectorSpace, derive_seed

logger = logging.getLogger(__name__)


class SymbolKind(str, Enum):
    """How a symbol has been used."""

    CONCEPT = "concept"
    OPERATOR = "operator"
    ROLE = "role"
    MARKER = "marker"


RESERVED_KINDS = frozenset({SymbolKind.ROLE, SymbolKind.MARKER})


@dataclass
class Entry:
    """One arena slot."""

    id: int
    symbol: str
    vector: Vector
    kinds: set[SymbolKind]

    @property
    def reserved(self) -> bool:
        return bool(self.kinds & RESERVED_KINDS)


@dataclass(frozen=True)
class Match:
    """Nearest-neighbor hit."""

    symbol: str
    score: float
    id: int


class Vocabulary:
    """Symbol → vector arena owned by exactly one session.

    Example:
        vocab = Vocabulary(space, namespace="demo")
        rex = vocab.resolve("Rex")
        vocab.nearest(rex, k=1)[0].symbol   # "Rex"
    """

    def __init__(self, space: VectorSpace, namespace: str = "theory-engine"):
        self.space = space
        self.namespace = namespace
        self._entries: list[Entry] = []
        self._index: dict[tuple[bool, str], int] = {}

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, symbol: str, kind: SymbolKind = SymbolKind.CONCEPT) -> Vector:
        """Vector for `symbol`, created on first reference."""
        return self._entry(str(symbol), kind).vector

    def resolve_operator(self, symbol: str) -> Vector:
        return self.resolve(symbol, SymbolKind.OPERATOR)

    def reserved(self, symbol: str, kind: SymbolKind = SymbolKind.MARKER) -> Vector:
        """Vector for a reserved (role or marker) symbol."""
        if kind not in RESERVED_KINDS:
            raise ValueError(f"{kind} is not a reserved kind")
        return self._entry(symbol, kind).vector

    def _entry(self, symbol: str, kind: SymbolKind) -> Entry:
        key = (kind in RESERVED_KINDS, symbol)
        idx = self._index.get(key)
        if idx is not None:
            entry = self._entries[idx]
            entry.kinds.add(kind)
            return entry

        seed = derive_seed(self.namespace, "reserved" if key[0] else "symbol", symbol)
        entry = Entry(
            id=len(self._entries),
            symbol=symbol,
            vector=self.space.random(seed),
            kinds={kind},
        )
        self._entries.append(entry)
        self._index[key] = entry.id
        logger.debug(f"New {kind.value} '{symbol}' -> id {entry.id}")
        return entry

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def __contains__(self, symbol: str) -> bool:
        return (False, symbol) in self._index

    def __len__(self) -> int:
        return len(self._entries)

    def size(self) -> int:
        """Distinct user-visible symbols seen (reserved entries excluded)."""
        return sum(1 for e in self._entries if not e.reserved)

    def id_of(self, symbol: str) -> int:
        return self._index[(False, symbol)]

    def symbol_of(self, entry_id: int) -> str:
        return self._entries[entry_id].symbol

    def kinds_of(self, symbol: str) -> set[SymbolKind]:
        idx = self._index.get((False, symbol))
        return set() if idx is None else set(self._entries[idx].kinds)

    def vector_of(self, symbol: str) -> Vector | None:
        """Existing vector for `symbol` without creating one."""
        idx = self._index.get((False, symbol))
        return None if idx is None else self._entries[idx].vector

    def symbols(self, kind: SymbolKind | None = None) -> list[str]:
        """User-visible symbols in first-seen order, optionally of one kind."""
        return [
            e.symbol for e in self._entries
            if not e.reserved and (kind is None or kind in e.kinds)
        ]

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def nearest(
        self,
        vector: Vector,
        k: int = 1,
        kinds: Iterable[SymbolKind] | None = None,
        candidates: Iterable[str] | None = None,
        mask: MaskSpec | None = None,
        bias: BiasMask | None = None,
    ) -> list[Match]:
        """Top-k symbols by similarity to `vector`.

        Args:
            vector: Query vector
            k: Number of matches (0 = all)
            kinds: Restrict to symbols used as any of these kinds
            candidates: Restrict to these symbols (typed slots)
            mask: Optional partition bias applied to query-time copies
            bias: BiasMask that interprets `mask`

        Returns:
            Matches sorted by score, ties in first-seen order
        """
        pool = self._pool(kinds, candidates)
        if not pool:
            return []

        vectors = [e.vector for e in pool]
        if mask is not None and bias is not None:
            scores = bias.batch_similarity(vector, vectors, mask)
        else:
            scores = self.space.batch_similarity(vector, vectors)

        ranked = sorted(
            (Match(e.symbol, score, e.id) for e, score in zip(pool, scores)),
            key=lambda m: (-m.score, m.id),
        )
        return ranked if k <= 0 else ranked[:k]

    def _pool(
        self,
        kinds: Iterable[SymbolKind] | None,
        candidates: Iterable[str] | None,
    ) -> list[Entry]:
        wanted = set(kinds) if kinds is not None else None
        if candidates is not None:
            ids = sorted(
                self._index[(False, s)] for s in set(candidates) if (False, s) in self._index
            )
            pool = [self._entries[i] for i in ids]
        else:
            pool = [e for e in self._entries if not e.reserved]
        if wanted is not None:
            pool = [e for e in pool if e.kinds & wanted]
        return pool
