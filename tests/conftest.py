"""
Pytest configuration and shared fixtures for the artisan search tests.

Providers are replaced with in-process fakes; nothing here reaches the network.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import pytest

from artisan_search.analytics import SearchAnalytics
from artisan_search.cache import EmbeddingCache, LRUCache
from artisan_search.compiler import QueryCompiler
from artisan_search.config import SearchConfig
from artisan_search.db import MarketplaceDB
from artisan_search.embeddings import EmbeddingService
from artisan_search.errors import ProviderUnavailable
from artisan_search.models import CatalogItem
from artisan_search.parser import QueryParser
from artisan_search.ranker import RelevanceRanker
from artisan_search.service import SearchOrchestrator


TEST_DIMENSION = 8


# ============================================================================
# Fakes: language model and embedding providers
# ============================================================================

class FakeLanguageModel:
    """Returns queued replies in order; an Exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise ProviderUnavailable("no scripted reply left")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeEmbedder:
    """Records every batch it is asked to embed and maps each text through ``vector_fn``."""

    def __init__(self, vector_fn: Callable[[str], list[float]]):
        self.vector_fn = vector_fn
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector_fn(text) for text in texts]


class FailingEmbedder:
    def __init__(self):
        self.calls = 0

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        raise ProviderUnavailable("embedding endpoint down")


def constant_vector(_text: str) -> list[float]:
    return [1.0] + [0.0] * (TEST_DIMENSION - 1)


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

def make_item(item_id: str, name: str, **overrides) -> CatalogItem:
    fields = {
        "description": "",
        "category": "Pottery",
        "price": 1000.0,
        "quantity_available": 5,
        "is_active": True,
    }
    fields.update(overrides)
    return CatalogItem(id=item_id, name=name, **fields)


@pytest.fixture
def sample_catalog() -> list[CatalogItem]:
    """Small catalog covering pottery, jewelry, inactive and sold-out items."""
    return [
        make_item(
            "p-1",
            "Blue Terracotta Vase",
            description="Hand-thrown vase glazed in deep blue.",
            category="Pottery",
            price=1250,
            tags=["vase", "home decor"],
            colors=["blue"],
            views=100,
            likes=10,
            rating=4.5,
            seller_location="Jaipur, Rajasthan",
            craft_type="Blue Pottery",
            created_at="2024-01-02T00:00:00.000000+00:00",
        ),
        make_item(
            "p-2",
            "Silver Jhumka Earrings",
            description="Oxidized silver earrings with blue enamel.",
            category="Jewelry",
            price=1800,
            tags=["earrings", "festival"],
            colors=["silver", "blue"],
            views=300,
            likes=40,
            rating=4.8,
            seller_location="Cuttack, Odisha",
            craft_type="Filigree",
            created_at="2024-03-01T00:00:00.000000+00:00",
        ),
        make_item(
            "p-3",
            "Red Clay Planter",
            description="Terracotta planter for balconies.",
            category="Pottery",
            price=450,
            tags=["planter"],
            colors=["red"],
            views=50,
            likes=2,
            rating=3.9,
            is_customizable=True,
            seller_location="Kutch, Gujarat",
            craft_type="Terracotta",
            created_at="2024-02-01T00:00:00.000000+00:00",
        ),
        make_item("p-4", "Retired Blue Bowl", category="Pottery", price=300, colors=["blue"], is_active=False),
        make_item("p-5", "Sold Out Blue Plate", category="Pottery", price=300, colors=["blue"], quantity_available=0),
    ]


@pytest.fixture
def db(tmp_path) -> MarketplaceDB:
    return MarketplaceDB(tmp_path / "search.db")


@pytest.fixture
def catalog_db(db: MarketplaceDB, sample_catalog: list[CatalogItem]) -> MarketplaceDB:
    db.upsert_catalog(sample_catalog)
    return db


@pytest.fixture
def analytics(db: MarketplaceDB) -> SearchAnalytics:
    return SearchAnalytics(db)


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="test-analytics")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def make_orchestrator(catalog_db: MarketplaceDB, executor: ThreadPoolExecutor):
    """Factory wiring a SearchOrchestrator around the seeded test catalog."""

    def _make(language_model=None, embedder=None, **cfg_overrides) -> SearchOrchestrator:
        cfg = SearchConfig(embedding_dimension=TEST_DIMENSION, db_path=catalog_db.db_path, **cfg_overrides)
        embeddings = EmbeddingService(
            embedder if embedder is not None else FakeEmbedder(constant_vector),
            EmbeddingCache(64),
            dimension=TEST_DIMENSION,
            similarity_threshold=cfg.similarity_threshold,
        )
        return SearchOrchestrator(
            parser=QueryParser(language_model, LRUCache(16)),
            compiler=QueryCompiler(),
            catalog=catalog_db,
            ranker=RelevanceRanker(),
            embeddings=embeddings,
            analytics=SearchAnalytics(catalog_db),
            cfg=cfg,
            analytics_executor=executor,
        )

    return _make
