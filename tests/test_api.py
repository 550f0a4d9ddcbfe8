"""
API tests for the FastAPI smart-search endpoints.

The search service is swapped through ``app.dependency_overrides`` so the
routes run against the seeded temporary catalog and fake providers.
"""
import threading

import pytest
from fastapi.testclient import TestClient

from conftest import FakeLanguageModel

from app.api_server import app, get_service
from artisan_search.errors import ProviderUnavailable


GIFT_REPLY = '{"intent": "gift", "category": "Pottery", "keywords": ["blue", "pottery"], "priceRange": {"max": 2000}}'


@pytest.fixture
def service(make_orchestrator):
    return make_orchestrator(FakeLanguageModel(GIFT_REPLY))


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["stats"]["store"]["product_count"] == 5


class TestSmartSearch:
    def test_search_returns_camel_case_payload(self, client):
        response = client.post("/api/smart-search", json={"query": "blue pottery under 2000 for gifts"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pagination"]["total"] == 1
        assert data["items"][0]["name"] == "Blue Terracotta Vase"
        assert data["items"][0]["sellerLocation"] == "Jaipur, Rajasthan"
        assert "relevanceScore" in data["items"][0]
        assert data["searchMetadata"]["searchMode"] == "ai"
        assert data["parsedQuery"]["priceRange"] == {"max": 2000.0}

    def test_blank_query_is_rejected(self, client):
        assert client.post("/api/smart-search", json={"query": ""}).status_code == 422
        assert client.post("/api/smart-search", json={"query": "   "}).status_code == 400

    def test_unknown_sort_falls_back_to_relevance(self, client):
        response = client.post("/api/smart-search", json={"query": "blue pottery", "sort_by": "random"})
        assert response.status_code == 200
        assert response.json()["data"]["pagination"]["total"] == 1

    def test_user_context_is_forwarded(self, client, service):
        response = client.post(
            "/api/smart-search",
            json={"query": "blue pottery", "user": {"user_id": "u-9", "user_type": "buyer"}},
        )
        search_id = response.json()["data"]["searchMetadata"]["searchId"]

        service.flush_analytics(timeout=5.0)
        event = service.analytics.get_event(search_id)
        assert event.user_id == "u-9"
        assert event.user_type == "buyer"


class TestSuggestionsAndAnalysis:
    def test_suggestions_fall_back_to_static_list(self, make_orchestrator):
        service = make_orchestrator(FakeLanguageModel(ProviderUnavailable("down")))
        app.dependency_overrides[get_service] = lambda: service
        try:
            response = TestClient(app).post("/api/search-suggestions", json={"partial_query": "wedding"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["data"]["suggestions"] == ["wedding gift ideas"]

    def test_analyze_query(self, client):
        response = client.post("/api/analyze-query", json={"query": "blue pottery under 2000"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["parseSource"] == "ai"
        assert data["analysis"]["hasNumbers"] is True


class TestInteractionEndpoints:
    def test_click_and_conversion(self, client):
        search = client.post("/api/smart-search", json={"query": "blue pottery gift"}).json()
        search_id = search["data"]["searchMetadata"]["searchId"]

        click = client.post("/api/search-interaction", json={"search_id": search_id, "item_id": "p-1"})
        conversion = client.post(
            "/api/search-conversion",
            json={"search_id": search_id, "item_id": "p-1", "conversion_type": "purchase"},
        )

        assert click.json() == {"success": True}
        assert conversion.json() == {"success": True}

    def test_unknown_search_is_not_found(self, client):
        response = client.post("/api/search-interaction", json={"search_id": "missing", "item_id": "p-1"})
        assert response.status_code == 404

    def test_bad_conversion_type(self, client):
        response = client.post(
            "/api/search-conversion",
            json={"search_id": "missing", "item_id": "p-1", "conversion_type": "refund"},
        )
        assert response.status_code == 400


class TestAnalyticsEndpoints:
    def test_report(self, client, service):
        client.post("/api/smart-search", json={"query": "blue pottery gift"})
        service.flush_analytics(timeout=5.0)

        response = client.get("/api/search-analytics", params={"time_range": 30})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["timeRange"] == 30
        assert data["analytics"]["summary"]["totalSearches"] == 1

    def test_similar(self, client, service):
        client.post("/api/smart-search", json={"query": "blue pottery gift"})
        service.flush_analytics(timeout=5.0)

        response = client.get("/api/search-analytics/similar", params={"query": "blue pottery bowl"})

        assert response.status_code == 200
        assert response.json()["data"][0]["query"] == "blue pottery gift"

    def test_clear_cache(self, client, service):
        client.post("/api/smart-search", json={"query": "blue pottery gift"})
        assert client.post("/api/clear-cache").json()["success"] is True
        assert service.stats()["embeddingCache"]["size"] == 0


class TestLifespan:
    def test_shutdown_drains_pending_analytics(self, service, monkeypatch):
        release = threading.Event()
        log_search = service.analytics.log_search

        def held_log_search(**kwargs):
            release.wait(5.0)
            return log_search(**kwargs)

        monkeypatch.setattr(service.analytics, "log_search", held_log_search)
        app.dependency_overrides[get_service] = lambda: service
        timer = threading.Timer(0.2, release.set)
        try:
            with TestClient(app) as client:
                response = client.post("/api/smart-search", json={"query": "blue pottery gift"})
                search_id = response.json()["data"]["searchMetadata"]["searchId"]
                timer.start()
        finally:
            app.dependency_overrides.clear()
            release.set()

        assert service.analytics.get_event(search_id) is not None
