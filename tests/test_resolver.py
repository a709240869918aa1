# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Query Resolver Tests
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────

import numpy as np
import pytest

from safeintel.core.exceptions import UpstreamProviderError
from safeintel.core.metrics import metrics
from safeintel.core.providers import EmbeddingProvider
from safeintel.core.resolver import QueryResolver, find_exact, prefilter, rank
from safeintel.core.types import QueryHints


class FixedVectorProvider(EmbeddingProvider):
    def __init__(self, vector):
        self.vector = list(vector)

    @property
    def name(self):
        return "fixed"

    def embed(self, texts):
        return [self.vector for _ in texts]


class FailingProvider(EmbeddingProvider):
    @property
    def name(self):
        return "failing"

    def embed(self, texts):
        raise UpstreamProviderError("embeddings down", status_code=503)


@pytest.fixture
def resolver(index, embedder, parser):
    return QueryResolver(index, embedder, parser=parser)


@pytest.mark.consumer
class TestExactPath:
    def test_exact_match_skips_embedding(self, resolver, embedder):
        before = embedder.calls
        result = resolver.resolve("Opening Check for restaurant 74 on 20/09/2025")
        assert embedder.calls == before
        assert result.path == "exact"
        assert result.used == ["row1-Opening_Check"]
        assert result.narrowed_count == 1

    def test_same_hints_same_fact(self, resolver):
        ids = {
            resolver.resolve(q).used[0]
            for q in (
                "Opening Check for restaurant 74 on 20/09/2025",
                "how was the opening at site 74 on 2025-09-20?",
                "restaurant #74 opening check 20-09-2025",
            )
        }
        assert ids == {"row1-Opening_Check"}

    def test_relative_date_exact(self, resolver):
        result = resolver.resolve("fridge pm for restaurant 74 yesterday")
        assert result.path == "exact"
        assert result.used == ["row2-Fridge_PM"]

    def test_find_exact_requires_all_hints(self, index):
        hints = QueryHints(restaurant_key="74", check_type="Opening_Check")
        assert find_exact(index, hints) is None

    def test_exact_metrics(self, resolver):
        resolver.resolve("Opening Check for restaurant 74 on 20/09/2025")
        counters = metrics.get_metrics()["counters"]
        assert counters["exact_matches_total"]["total"] == 1
        assert counters["queries_total"]["labels"] == {"exact": 1.0}


@pytest.mark.consumer
class TestPrefilter:
    def test_and_semantics(self, index):
        hints = QueryHints(restaurant_key="74", check_type="Opening_Check")
        ids = [index.facts[i].id for i in prefilter(index, hints)]
        assert ids == ["row1-Opening_Check", "row2-Opening_Check"]

    def test_date_prefix(self, index):
        hints = QueryHints(date_iso="2025-09-19")
        ids = [index.facts[i].id for i in prefilter(index, hints)]
        assert ids == ["row3-Cooking", "row3-Hot_Holding"]

    def test_name_used_only_without_key(self, index):
        by_name = prefilter(index, QueryHints(restaurant_name="soho"))
        assert {index.facts[i].meta.restaurant_key for i in by_name} == {"12"}
        both = prefilter(index, QueryHints(restaurant_key="74", restaurant_name="soho"))
        assert {index.facts[i].meta.restaurant_key for i in both} == {"74"}

    def test_no_hints_keeps_everything(self, index):
        assert prefilter(index, QueryHints()) == list(range(index.count))


@pytest.mark.consumer
class TestSemanticPath:
    def test_narrowed_ranking(self, index, embedder, parser):
        resolver = QueryResolver(index, embedder, parser=parser, min_similarity=-1.0)
        result = resolver.resolve("How did Soho do on cooking?")
        assert result.path == "semantic"
        assert result.narrowed_count == 1
        assert result.used == ["row3-Cooking"]

    def test_unknown_restaurant_falls_back_to_corpus(self, index, embedder, parser):
        resolver = QueryResolver(
            index, embedder, parser=parser, top_k=3, min_similarity=-1.0
        )
        result = resolver.resolve("How is restaurant 999 doing?")
        assert result.narrowed_count == 0
        assert result.path == "semantic"
        assert len(result.used) == 3

    def test_unknown_restaurant_below_relevance(self, index, embedder, parser):
        resolver = QueryResolver(index, embedder, parser=parser, min_similarity=0.99)
        result = resolver.resolve("How is restaurant 999 doing?")
        assert result.path == "none"
        assert result.used == []
        assert result.narrowed_count == 0
        assert metrics.get_metrics()["counters"]["no_match_total"]["total"] == 1

    def test_top_k_bound(self, index, embedder, parser):
        resolver = QueryResolver(
            index, embedder, parser=parser, top_k=2, min_similarity=-1.0
        )
        assert len(resolver.resolve("any food safety news").used) == 2

    def test_embedding_failure_propagates(self, index, parser):
        resolver = QueryResolver(index, FailingProvider(), parser=parser)
        with pytest.raises(UpstreamProviderError):
            resolver.resolve("anything about cooking")


class TestRank:
    def test_self_similarity_ranks_first(self, index):
        for pos in (0, 3, index.count - 1):
            results = rank(index, index.vector(pos), list(range(index.count)))
            assert results[0].fact.id == index.facts[pos].id
            assert results[0].score == pytest.approx(1.0, abs=1e-5)

    def test_query_norm_ignored(self, index):
        results = rank(index, index.vector(2) * 7.5, list(range(index.count)))
        assert results[0].score == pytest.approx(1.0, abs=1e-5)

    def test_scores_descending_ties_stable(self, index):
        q = np.zeros(index.dim, dtype=np.float32)
        q[0] = 1.0
        results = rank(index, q, list(range(index.count)), top_k=index.count, min_similarity=-1.0)
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        by_score = {}
        for r in results:
            by_score.setdefault(round(r.score, 7), []).append(index.position_of(r.fact.id))
        for positions in by_score.values():
            assert positions == sorted(positions)

    def test_min_similarity_filters(self, index):
        results = rank(index, index.vector(0), list(range(index.count)), min_similarity=0.999)
        assert [r.fact.id for r in results] == [index.facts[0].id]

    def test_dimension_mismatch(self, index):
        with pytest.raises(UpstreamProviderError, match="index expects"):
            rank(index, np.ones(3), [0])

    def test_fixed_provider_query(self, index, parser):
        resolver = QueryResolver(index, FixedVectorProvider(index.vector(4)), parser=parser)
        result = resolver.resolve("something unrelated")
        assert result.used[0] == index.facts[4].id
