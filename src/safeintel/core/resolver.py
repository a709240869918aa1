# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Query Resolver
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Per-question retrieval over a loaded ``KnowledgeIndex``.

Pipeline::

    hints  = parser.parse(question)                  # heuristic fields
    exact  = scan for restaurant + date + type       # no embedding call
    cands  = prefilter(hints) or whole corpus
    ranked = top-K by cosine against the query vector
    none   → fixed "no matching record" answer

The resolver never calls the completion provider; it returns ranked
matches and lets the caller decide how to phrase them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import numpy as np

from .exceptions import UpstreamProviderError
from .hints import HintParser
from .index_store import KnowledgeIndex
from .metrics import metrics
from .providers import EmbeddingProvider
from .types import Fact, MatchResult, QueryHints

logger = logging.getLogger("SafeIntel.Resolver")

QUERY_NORM_EPSILON = 1e-9
DEFAULT_TOP_K = 12


@dataclass
class Retrieval:
    """Raw retrieval outcome before any answer text is produced."""

    path: str  # "exact", "semantic" or "none"
    hints: QueryHints
    narrowed_count: int
    matches: list[MatchResult] = field(default_factory=list)

    @property
    def used(self) -> list[str]:
        return [m.fact.id for m in self.matches]


def find_exact(index: KnowledgeIndex, hints: QueryHints) -> Fact | None:
    """First fact matching restaurant key, date prefix and type."""
    if not hints.is_complete:
        return None
    for fact in index.facts:
        meta = fact.meta
        if (
            meta.restaurant_key == hints.restaurant_key
            and meta.date_iso.startswith(hints.date_iso or "")
            and meta.type == hints.check_type
        ):
            return fact
    return None


def prefilter(index: KnowledgeIndex, hints: QueryHints) -> list[int]:
    """Positions of facts satisfying every present hint (AND)."""
    name = hints.restaurant_name if not hints.restaurant_key else None
    positions = []
    for i, fact in enumerate(index.facts):
        meta = fact.meta
        if hints.restaurant_key and meta.restaurant_key != hints.restaurant_key:
            continue
        if name and name not in meta.restaurant_name.lower():
            continue
        if hints.date_iso and not meta.date_iso.startswith(hints.date_iso):
            continue
        if hints.check_type and meta.type != hints.check_type:
            continue
        positions.append(i)
    return positions


def rank(
    index: KnowledgeIndex,
    query_vector: np.ndarray,
    positions: list[int],
    top_k: int = DEFAULT_TOP_K,
    min_similarity: float = 0.0,
) -> list[MatchResult]:
    """Cosine top-K among *positions*; ties keep corpus order.

    Stored vectors are unit length, so only the query is normalized.
    """
    if not positions:
        return []
    q = np.asarray(query_vector, dtype=np.float32)
    if q.shape != (index.dim,):
        raise UpstreamProviderError(
            f"Query embedding has shape {q.shape}, index expects ({index.dim},)"
        )
    idx = np.asarray(positions, dtype=np.intp)
    scores = (index.vectors[idx] @ q) / (float(np.linalg.norm(q)) + QUERY_NORM_EPSILON)
    order = np.argsort(-scores, kind="stable")

    results: list[MatchResult] = []
    for j in order:
        score = float(scores[j])
        if score < min_similarity:
            # Sorted descending: nothing after this qualifies either.
            break
        results.append(MatchResult(fact=index.facts[int(idx[j])], score=score))
        if len(results) >= top_k:
            break
    return results


class QueryResolver:
    """Resolves questions against one immutable index.

    Parameters
    ----------
    index : KnowledgeIndex — loaded facts and vectors.
    embedder : EmbeddingProvider — used for the query vector only.
    parser : HintParser — question → ``QueryHints``.
    top_k : int — matches kept after ranking.
    min_similarity : float — matches scoring below this are dropped.
    """

    def __init__(
        self,
        index: KnowledgeIndex,
        embedder: EmbeddingProvider,
        parser: HintParser | None = None,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = 0.0,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.parser = parser or HintParser()
        self.top_k = top_k
        self.min_similarity = min_similarity

    def embed_query(self, question: str) -> np.ndarray:
        vectors = self.embedder.embed([question])
        metrics.inc("embedding_calls_total")
        if not vectors:
            raise UpstreamProviderError("Embedding provider returned no query vector")
        return np.asarray(vectors[0], dtype=np.float32)

    def resolve(self, question: str) -> Retrieval:
        start = time.monotonic()
        hints = self.parser.parse(question)
        try:
            return self._resolve(question, hints)
        finally:
            metrics.observe("query_duration_seconds", time.monotonic() - start)

    def _resolve(self, question: str, hints: QueryHints) -> Retrieval:
        exact = find_exact(self.index, hints)
        if exact is not None:
            metrics.inc("queries_total", label="exact")
            metrics.inc("exact_matches_total")
            logger.info("Exact match %s", exact.id)
            return Retrieval(
                path="exact",
                hints=hints,
                narrowed_count=1,
                matches=[MatchResult(fact=exact, score=1.0)],
            )

        narrowed = prefilter(self.index, hints)
        candidates = narrowed or list(range(self.index.count))
        if not narrowed and not hints.is_empty:
            logger.info("Prefilter matched nothing for %s; ranking full corpus", hints)

        q = self.embed_query(question)
        matches = rank(self.index, q, candidates, self.top_k, self.min_similarity)
        if matches:
            metrics.observe("top_similarity", matches[0].score)

        if not matches:
            metrics.inc("queries_total", label="none")
            metrics.inc("no_match_total")
            logger.info("No match (narrowed=%d)", len(narrowed))
            return Retrieval(path="none", hints=hints, narrowed_count=len(narrowed))

        metrics.inc("queries_total", label="semantic")
        logger.info(
            "Semantic: %d candidates, narrowed=%d, top=%s (%.3f)",
            len(candidates),
            len(narrowed),
            matches[0].fact.id,
            matches[0].score,
        )
        return Retrieval(
            path="semantic",
            hints=hints,
            narrowed_count=len(narrowed),
            matches=matches,
        )
