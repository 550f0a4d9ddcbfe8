"""
Tests for EmbeddingService.

Covers:
- cache behaviour (one provider call per distinct text, batch partial hits)
- deterministic fallback vectors when the provider is down
- cosine similarity bounds and zero vectors
- semantic re-ranking, threshold filtering and neutral degradation
"""
import hashlib

import numpy as np
import pytest

from conftest import TEST_DIMENSION, FailingEmbedder, FakeEmbedder, constant_vector, make_item

from artisan_search.cache import EmbeddingCache
from artisan_search.embeddings import NEUTRAL_SIMILARITY, EmbeddingService
from artisan_search.models import RankedItem


def axis_vector(text: str) -> list[float]:
    """Puts pottery-ish text on axis 0, jewelry-ish on axis 1, anything else on axis 2."""
    vector = [0.0] * TEST_DIMENSION
    lowered = text.lower()
    if "pottery" in lowered or "vase" in lowered:
        vector[0] = 1.0
    elif "earring" in lowered or "jewel" in lowered:
        vector[1] = 1.0
    else:
        vector[2] = 1.0
    return vector


def make_service(provider, threshold: float = 0.3) -> EmbeddingService:
    return EmbeddingService(provider, EmbeddingCache(32), dimension=TEST_DIMENSION, similarity_threshold=threshold)


# =============================================================================
# Caching
# =============================================================================

class TestEmbedCaching:
    def test_repeated_text_calls_provider_once(self):
        provider = FakeEmbedder(constant_vector)
        service = make_service(provider)

        first = service.embed("Blue Pottery")
        second = service.embed("  blue pottery ")

        assert len(provider.calls) == 1
        np.testing.assert_array_equal(first, second)

    def test_batch_only_sends_uncached_texts(self):
        provider = FakeEmbedder(axis_vector)
        service = make_service(provider)
        service.embed("vase")

        vectors = service.embed_batch(["vase", "earrings", "basket"])

        assert provider.calls[-1] == ["earrings", "basket"]
        assert len(vectors) == 3
        assert vectors[0][0] == 1.0
        assert vectors[1][1] == 1.0
        assert vectors[2][2] == 1.0

    def test_empty_batch_makes_no_call(self):
        provider = FakeEmbedder(constant_vector)
        assert make_service(provider).embed_batch([]) == []
        assert provider.calls == []

    def test_wrong_dimension_falls_back(self):
        provider = FakeEmbedder(lambda _text: [1.0, 0.0])
        service = make_service(provider)

        vector = service.embed("vase")

        assert vector.shape == (TEST_DIMENSION,)
        assert "vase" not in service.cache


# =============================================================================
# Fallback vectors
# =============================================================================

class TestFallbackVectors:
    def test_fallback_is_deterministic_and_bounded(self):
        service = make_service(FailingEmbedder())
        first = service.embed("Handwoven Silk Scarf")
        second = make_service(FailingEmbedder()).embed("handwoven silk scarf")

        np.testing.assert_array_equal(first, second)
        assert first.shape == (TEST_DIMENSION,)
        assert float(first.min()) >= -0.5
        assert float(first.max()) < 0.5

    def test_fallback_components_follow_sha256_seed(self):
        digest = hashlib.sha256(b"terracotta vase").digest()
        seed = int.from_bytes(digest[:4], "big")
        expected = [((seed * step) % 1000) / 1000.0 - 0.5 for step in range(1, TEST_DIMENSION + 1)]

        vector = make_service(None).fallback_vector("  Terracotta Vase ")

        assert vector.dtype == np.float32
        assert vector.tolist() == pytest.approx(expected, abs=1e-6)
        # Components are multiples of 1/1000 offset by one half.
        assert all(abs(round((value + 0.5) * 1000) - (value + 0.5) * 1000) < 1e-3 for value in vector.tolist())

    def test_fallback_vectors_are_not_cached(self):
        provider = FailingEmbedder()
        service = make_service(provider)
        service.embed("vase")
        service.embed("vase")

        assert provider.calls == 2
        assert len(service.cache) == 0

    def test_no_provider_uses_fallback(self):
        vector = make_service(None).embed("vase")
        assert vector.shape == (TEST_DIMENSION,)


# =============================================================================
# Similarity
# =============================================================================

class TestSimilarity:
    def test_identical_vectors(self):
        assert EmbeddingService.similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert EmbeddingService.similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector_is_zero(self):
        assert EmbeddingService.similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            EmbeddingService.similarity([1.0, 0.0], [1.0, 0.0, 0.0])


# =============================================================================
# Semantic enhancement
# =============================================================================

class TestEnhanceSearch:
    @pytest.fixture
    def ranked(self):
        return [
            RankedItem(make_item("j", "Silver Earrings", category="Jewelry"), relevance_score=50.0),
            RankedItem(make_item("b", "Bamboo Basket", category="Weaving"), relevance_score=40.0),
            RankedItem(make_item("v", "Blue Vase", category="Pottery"), relevance_score=10.0),
        ]

    def test_reorders_by_similarity_and_filters_below_threshold(self, ranked):
        service = make_service(FakeEmbedder(axis_vector))

        enhanced = service.enhance_search("pottery vase", ranked)

        assert [entry.item.id for entry in enhanced] == ["v"]
        assert enhanced[0].semantic_similarity == pytest.approx(1.0)
        assert enhanced[0].semantic_score == pytest.approx(100.0)
        assert enhanced[0].relevance_score == 10.0

    def test_does_not_mutate_input(self, ranked):
        make_service(FakeEmbedder(axis_vector)).enhance_search("pottery", ranked)
        assert all(entry.semantic_similarity is None for entry in ranked)

    def test_provider_failure_returns_neutral_scores_in_original_order(self, ranked):
        enhanced = make_service(FailingEmbedder()).enhance_search("pottery vase", ranked)

        assert [entry.item.id for entry in enhanced] == ["j", "b", "v"]
        assert all(entry.semantic_similarity == NEUTRAL_SIMILARITY for entry in enhanced)
        assert all(entry.semantic_score == 50.0 for entry in enhanced)

    def test_empty_items(self):
        assert make_service(FakeEmbedder(axis_vector)).enhance_search("pottery", []) == []
