"""FastAPI entrypoint exposing the artisan marketplace smart-search APIs."""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from artisan_search import __version__
from artisan_search.models import SearchOptions, UserContext
from artisan_search.service import SearchOrchestrator, build_service


load_dotenv(ROOT_DIR / ".env")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
_LOGGER = logging.getLogger(__name__)


class UserContextPayload(BaseModel):
    user_id: str | None = None
    user_type: str = "anonymous"
    session_id: str | None = None
    preferences: dict = Field(default_factory=dict)

    def to_context(self) -> UserContext:
        return UserContext(
            user_id=self.user_id,
            user_type=self.user_type,
            session_id=self.session_id,
            preferences=dict(self.preferences),
        )


class SmartSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    limit: int | None = Field(default=None, ge=1, le=100)
    sort_by: str = "relevance"
    user: UserContextPayload | None = None


class SuggestionsRequest(BaseModel):
    partial_query: str
    limit: int = Field(default=6, ge=1, le=20)


class AnalyzeQueryRequest(BaseModel):
    query: str = Field(min_length=1)
    user: UserContextPayload | None = None


class InteractionRequest(BaseModel):
    search_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)


class ConversionRequest(BaseModel):
    search_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    conversion_type: str


@lru_cache(maxsize=1)
def get_service() -> SearchOrchestrator:
    return build_service()


def _active_service(application: FastAPI) -> SearchOrchestrator | None:
    override = application.dependency_overrides.get(get_service)
    if override is not None:
        return override()
    if get_service.cache_info().currsize:
        return get_service()
    return None


@asynccontextmanager
async def lifespan(application: FastAPI):
    yield
    # Drain queued analytics writes so events logged just before shutdown are kept.
    service = _active_service(application)
    if service is not None and not service.flush_analytics(timeout=5.0):
        _LOGGER.warning("Shutting down with analytics writes still pending.")


app = FastAPI(title="Artisan Marketplace Smart Search", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8005",
        "http://localhost:3000",
        "http://localhost:8005",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def health(service: SearchOrchestrator = Depends(get_service)) -> dict:
    return {
        "status": "ok",
        "app": "artisan-smart-search",
        "stats": service.stats(),
    }


@app.post("/api/smart-search")
def smart_search(request: SmartSearchRequest, service: SearchOrchestrator = Depends(get_service)) -> dict:
    try:
        result = service.search(
            request.query,
            SearchOptions(page=request.page, limit=request.limit, sort_by=request.sort_by),
            request.user.to_context() if request.user else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "data": result.to_dict()}


@app.post("/api/search-suggestions")
def search_suggestions(request: SuggestionsRequest, service: SearchOrchestrator = Depends(get_service)) -> dict:
    return {"success": True, "data": {"suggestions": service.suggest(request.partial_query, request.limit)}}


@app.post("/api/analyze-query")
def analyze_query(request: AnalyzeQueryRequest, service: SearchOrchestrator = Depends(get_service)) -> dict:
    try:
        analysis = service.analyze_query(request.query, request.user.to_context() if request.user else None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"success": True, "data": analysis}


@app.post("/api/search-interaction")
def search_interaction(request: InteractionRequest, service: SearchOrchestrator = Depends(get_service)) -> dict:
    try:
        recorded = service.log_interaction(request.search_id, request.item_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"success": recorded}


@app.post("/api/search-conversion")
def search_conversion(request: ConversionRequest, service: SearchOrchestrator = Depends(get_service)) -> dict:
    try:
        recorded = service.log_conversion(request.search_id, request.item_id, request.conversion_type)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"success": recorded}


@app.get("/api/search-analytics")
def search_analytics(
    time_range: int = Query(default=7, ge=1, le=365),
    service: SearchOrchestrator = Depends(get_service),
) -> dict:
    try:
        return {"success": True, "data": service.analytics_report(time_range)}
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/api/search-analytics/similar")
def similar_searches(
    query: str = Query(min_length=1),
    limit: int = Query(default=5, ge=1, le=20),
    service: SearchOrchestrator = Depends(get_service),
) -> dict:
    try:
        return {"success": True, "data": service.similar_successful_searches(query, limit)}
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/api/clear-cache")
def clear_cache(service: SearchOrchestrator = Depends(get_service)) -> dict:
    service.clear_cache()
    return {"success": True, "message": "Search cache cleared successfully"}
