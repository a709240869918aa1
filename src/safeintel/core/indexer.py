# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Embedding Indexer
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Offline index build: facts → embeddings → unit vectors → index files.

Batches are embedded strictly one after another.  A failed batch is
retried with exponential backoff (longer for rate limits); running out
of attempts aborts the whole build before anything is written.

Usage::

    indexer = EmbeddingIndexer(provider)
    index = indexer.build(facts, "data")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

import numpy as np

from .config import SafeIntelConfig
from .exceptions import ConfigError, UpstreamProviderError
from .facts import BuildFilters, extract_facts, read_rows
from .index_store import KnowledgeIndex, write_index
from .metrics import metrics
from .providers import EmbeddingProvider, create_embedding_provider
from .types import Fact

logger = logging.getLogger("SafeIntel.Indexer")

NORM_EPSILON = 1e-9
PROGRESS_EVERY = 500


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """Scale every row to unit L2 norm."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    return matrix / (norms + NORM_EPSILON)


def chunk(items: Sequence, size: int) -> list[Sequence]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class EmbeddingIndexer:
    """Sequential batch embedder with bounded retries.

    Parameters
    ----------
    provider : EmbeddingProvider — external embedding service.
    batch_size : int — facts per request (default 100).
    max_retries : int — attempts per batch (default 5).
    base_delay : float — first backoff delay in seconds.
    rate_limit_backoff : float — multiplier applied to rate-limit delays.
    sleep : callable — injectable for tests.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = 100,
        max_retries: int = 5,
        base_delay: float = 1.0,
        rate_limit_backoff: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.rate_limit_backoff = rate_limit_backoff
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, config: SafeIntelConfig, provider: EmbeddingProvider | None = None
    ) -> EmbeddingIndexer:
        return cls(
            provider or create_embedding_provider(config),
            batch_size=config.batch_size,
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            rate_limit_backoff=config.rate_limit_backoff,
        )

    def backoff_delay(self, attempt: int, rate_limited: bool) -> float:
        """Delay before retrying after failed *attempt* (1-based)."""
        delay = self.base_delay * (2 ** (attempt - 1))
        return delay * self.rate_limit_backoff if rate_limited else delay

    def _embed_batch(self, texts: list[str], number: int, total: int) -> list:
        for attempt in range(1, self.max_retries + 1):
            try:
                with metrics.timer("embed_batch_seconds"):
                    vectors = self.provider.embed(texts)
                metrics.inc("embedding_calls_total")
                return vectors
            except UpstreamProviderError as exc:
                logger.warning(
                    "Embed batch %d/%d failed (try %d/%d, status=%s): %s",
                    number,
                    total,
                    attempt,
                    self.max_retries,
                    exc.status_code,
                    exc,
                )
                if attempt == self.max_retries:
                    raise UpstreamProviderError(
                        f"Embedding batch {number}/{total} failed after "
                        f"{self.max_retries} attempts: {exc}",
                        status_code=exc.status_code,
                        rate_limited=exc.rate_limited,
                    ) from exc
                metrics.inc("embed_retries_total")
                self._sleep(self.backoff_delay(attempt, exc.rate_limited))
        raise AssertionError("unreachable")

    def embed_facts(self, facts: Sequence[Fact]) -> np.ndarray:
        """Return a ``(len(facts), dim)`` float32 matrix of unit vectors."""
        if not facts:
            raise ConfigError("No facts to embed. Check filters or CSV headers.")

        batches = chunk(facts, self.batch_size)
        rows: list[np.ndarray] = []
        dim = 0
        done = 0
        for number, batch in enumerate(batches, 1):
            vectors = self._embed_batch([f.text for f in batch], number, len(batches))
            if len(vectors) != len(batch):
                raise UpstreamProviderError(
                    f"Provider returned {len(vectors)} vectors for "
                    f"{len(batch)} inputs in batch {number}"
                )
            for fact, raw in zip(batch, vectors):
                vec = np.asarray(raw, dtype=np.float64)
                if not dim:
                    dim = vec.size
                if vec.ndim != 1 or vec.size != dim or dim == 0:
                    raise UpstreamProviderError(
                        f"Inconsistent embedding dimension for {fact.id}: "
                        f"got {vec.shape}, expected ({dim},)"
                    )
                if not np.any(vec):
                    raise UpstreamProviderError(f"Zero embedding for {fact.id}")
                rows.append(vec)

            done += len(batch)
            if done % PROGRESS_EVERY == 0 or done == len(facts):
                logger.info("Embedded %d/%d", done, len(facts))

        return normalize_rows(np.vstack(rows)).astype(np.float32)

    def build(self, facts: Sequence[Fact], directory: str) -> KnowledgeIndex:
        """Embed *facts* and write the index files into *directory*."""
        vectors = self.embed_facts(facts)
        return write_index(directory, facts, vectors, model=self.provider.name)


def build_knowledge_index(
    config: SafeIntelConfig,
    filters: BuildFilters | None = None,
    provider: EmbeddingProvider | None = None,
    csv_path: str | None = None,
    out_dir: str | None = None,
) -> KnowledgeIndex:
    """Full offline pipeline: CSV → facts → embeddings → index files."""
    rows = read_rows(csv_path or config.csv_path)
    facts = extract_facts(rows, filters)
    logger.info("Facts to embed: %d", len(facts))
    indexer = EmbeddingIndexer.from_config(config, provider)
    return indexer.build(facts, out_dir or config.data_dir)
