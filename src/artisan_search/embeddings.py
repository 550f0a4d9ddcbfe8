"""Cached text embeddings with a deterministic offline fallback and semantic re-ranking."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import replace
from typing import Sequence

import numpy as np

from artisan_search.cache import EmbeddingCache
from artisan_search.cohere_utils import EmbeddingProvider
from artisan_search.models import CatalogItem, RankedItem


_LOGGER = logging.getLogger(__name__)

NEUTRAL_SIMILARITY = 0.5


def _normalize(text: str) -> str:
    return str(text or "").strip().lower()


def item_search_text(item: CatalogItem) -> str:
    tags = " ".join(item.tags)
    return f"{item.name} {item.description} {item.category} {tags}".strip()


class EmbeddingService:
    def __init__(
        self,
        provider: EmbeddingProvider | None,
        cache: EmbeddingCache,
        *,
        dimension: int = 1536,
        similarity_threshold: float = 0.3,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.dimension = max(1, int(dimension))
        self.similarity_threshold = float(similarity_threshold)

    def fallback_vector(self, text: str) -> np.ndarray:
        """Hash-seeded vector in [-0.5, 0.5); identical for identical text in every process."""
        digest = hashlib.sha256(_normalize(text).encode("utf-8")).digest()
        seed = int.from_bytes(digest[:4], "big") or 1
        steps = np.arange(1, self.dimension + 1, dtype=np.int64)
        vector = ((seed * steps) % 1000).astype(np.float32) / 1000.0 - 0.5
        vector.flags.writeable = False
        return vector

    def _call_provider(self, texts: list[str]) -> list[np.ndarray]:
        if self.provider is None:
            raise RuntimeError("No embedding provider configured.")
        rows = self.provider.embed(texts)
        if len(rows) != len(texts):
            raise ValueError(f"Embedding provider returned {len(rows)} vectors for {len(texts)} texts.")
        vectors = [np.asarray(row, dtype=np.float32) for row in rows]
        if any(vector.ndim != 1 or vector.shape[0] != self.dimension for vector in vectors):
            raise ValueError("Embedding provider returned vectors of unexpected dimension.")
        return vectors

    def _embed_many(self, texts: Sequence[str]) -> tuple[list[np.ndarray], bool]:
        """Returns vectors in input order plus whether any of them is a fallback vector."""
        out: list[np.ndarray | None] = [None] * len(texts)
        uncached_texts: list[str] = []
        uncached_indices: list[int] = []

        for idx, text in enumerate(texts):
            cached = self.cache.get(text)
            if cached is not None:
                out[idx] = cached
            else:
                uncached_texts.append(text)
                uncached_indices.append(idx)

        degraded = False
        if uncached_texts:
            try:
                vectors = self._call_provider(uncached_texts)
            except Exception as exc:
                _LOGGER.warning("Embedding provider unavailable; using hash fallback vectors (%s).", exc)
                degraded = True
                for idx, text in zip(uncached_indices, uncached_texts):
                    out[idx] = self.fallback_vector(text)
            else:
                for idx, text, vector in zip(uncached_indices, uncached_texts, vectors):
                    vector.flags.writeable = False
                    self.cache.put(text, vector)
                    out[idx] = vector

        return [vector for vector in out if vector is not None], degraded

    def embed(self, text: str) -> np.ndarray:
        vectors, _degraded = self._embed_many([text])
        return vectors[0]

    def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        if not texts:
            return []
        vectors, _degraded = self._embed_many(list(texts))
        return vectors

    @staticmethod
    def similarity(vec_a: Sequence[float] | np.ndarray, vec_b: Sequence[float] | np.ndarray) -> float:
        a = np.asarray(vec_a, dtype=np.float64)
        b = np.asarray(vec_b, dtype=np.float64)
        if a.shape != b.shape:
            raise ValueError(f"Cannot compare vectors of shape {a.shape} and {b.shape}.")
        norm_a = float(np.linalg.norm(a))
        norm_b = float(np.linalg.norm(b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))

    def enhance_search(self, query: str, items: list[RankedItem]) -> list[RankedItem]:
        if not items:
            return items
        try:
            vectors, degraded = self._embed_many([query] + [item_search_text(ranked.item) for ranked in items])
            if degraded:
                raise RuntimeError("semantic vectors unavailable")
            query_vector, item_vectors = vectors[0], vectors[1:]
            scored = [
                replace(
                    ranked,
                    semantic_similarity=similarity,
                    semantic_score=similarity * 100.0,
                )
                for ranked, similarity in (
                    (ranked, self.similarity(query_vector, vector)) for ranked, vector in zip(items, item_vectors)
                )
            ]
        except Exception as exc:
            _LOGGER.warning("Semantic enhancement skipped; keeping keyword ranking (%s).", exc)
            return [
                replace(ranked, semantic_similarity=NEUTRAL_SIMILARITY, semantic_score=NEUTRAL_SIMILARITY * 100.0)
                for ranked in items
            ]

        scored.sort(key=lambda ranked: ranked.semantic_similarity or 0.0, reverse=True)
        return [ranked for ranked in scored if (ranked.semantic_similarity or 0.0) >= self.similarity_threshold]

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
