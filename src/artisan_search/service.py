"""Search orchestration: parse, compile, fetch, rank, re-rank, paginate, explain, log."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
import logging
import math
import threading
import time
import uuid
from typing import Any, Protocol

from artisan_search.analytics import SearchAnalytics
from artisan_search.cache import EmbeddingCache, LRUCache
from artisan_search.cohere_utils import CohereEmbeddingProvider, CohereLanguageModel
from artisan_search.compiler import QueryCompiler, StoreQuery
from artisan_search.config import SearchConfig
from artisan_search.db import MarketplaceDB
from artisan_search.embeddings import EmbeddingService
from artisan_search.models import (
    CONVERSION_TYPES,
    CatalogItem,
    ParsedQuery,
    RankedItem,
    SearchOptions,
    SearchResult,
    UserContext,
)
from artisan_search.parser import QueryParser
from artisan_search.ranker import RelevanceRanker


_LOGGER = logging.getLogger(__name__)
_ANALYTICS_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="search-analytics")

MIN_SEMANTIC_QUERY_LENGTH = 3
MANY_RESULTS_THRESHOLD = 50
FEW_RESULTS_THRESHOLD = 5


class CatalogStore(Protocol):
    def find_products(self, query: StoreQuery) -> list[CatalogItem]: ...


def build_insights(parsed: ParsedQuery, total_results: int) -> str:
    if total_results == 0:
        return "No products found for your search. Try using different keywords or broader search terms."

    notes: list[str] = []
    if parsed.intent == "gift":
        notes.append("These handcrafted items make perfect gifts with their unique cultural stories.")
    if parsed.occasion:
        notes.append(f"Perfect selections for {parsed.occasion} celebrations.")
    if parsed.category:
        notes.append(f"Showing authentic {parsed.category.lower()} from skilled artisans.")
    if total_results > MANY_RESULTS_THRESHOLD:
        notes.append("Many options available - consider using filters to narrow your search.")
    elif total_results < FEW_RESULTS_THRESHOLD:
        notes.append("Limited options found - try broader search terms for more choices.")

    return " ".join(notes) or f"Found {total_results} handcrafted products matching your search."


class SearchOrchestrator:
    def __init__(
        self,
        *,
        parser: QueryParser,
        compiler: QueryCompiler,
        catalog: CatalogStore,
        ranker: RelevanceRanker,
        embeddings: EmbeddingService,
        analytics: SearchAnalytics | None = None,
        cfg: SearchConfig | None = None,
        analytics_executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.parser = parser
        self.compiler = compiler
        self.catalog = catalog
        self.ranker = ranker
        self.embeddings = embeddings
        self.analytics = analytics
        self.cfg = cfg or SearchConfig()
        self._analytics_executor = analytics_executor or _ANALYTICS_EXECUTOR
        self._pending: dict[str, Future] = {}
        self._pending_lock = threading.Lock()

    def _submit_analytics(self, search_id: str, fn, **kwargs: Any) -> None:
        if self.analytics is None or not self.cfg.log_analytics:
            return
        try:
            future = self._analytics_executor.submit(fn, **kwargs)
        except RuntimeError as exc:
            _LOGGER.warning("Analytics executor unavailable; dropping event (%s).", exc)
            return
        with self._pending_lock:
            self._pending[search_id] = future
        future.add_done_callback(lambda done: self._forget_future(search_id, done))

    def _forget_future(self, search_id: str, future: Future) -> None:
        with self._pending_lock:
            if self._pending.get(search_id) is future:
                del self._pending[search_id]
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _LOGGER.warning("Analytics write failed in background (%s).", exc)

    def flush_analytics(self, timeout: float | None = 10.0) -> bool:
        """Block until queued analytics writes finish; True when nothing is left pending."""
        with self._pending_lock:
            pending = list(self._pending.values())
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _semantic_enhance(self, parsed: ParsedQuery, ranked: list[RankedItem]) -> list[RankedItem]:
        semantic_query = " ".join(parsed.keywords)
        if not parsed.keywords or len(semantic_query) <= MIN_SEMANTIC_QUERY_LENGTH:
            return ranked
        try:
            return self.embeddings.enhance_search(semantic_query, ranked)
        except Exception as exc:
            _LOGGER.warning("Semantic search enhancement failed; continuing with keyword ranking (%s).", exc)
            return ranked

    def _suggested_queries(self, query: str) -> list[dict[str, Any]]:
        if self.analytics is None:
            return []
        try:
            return self.analytics.get_similar_successful_searches(query, limit=5)
        except Exception as exc:
            _LOGGER.warning("Could not load similar successful searches (%s).", exc)
            return []

    def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        user_context: UserContext | None = None,
    ) -> SearchResult:
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValueError("Please enter a search query.")
        options = options or SearchOptions()
        page = int(options.page)
        limit = int(options.limit) if options.limit is not None else self.cfg.default_page_size
        if page < 1:
            raise ValueError("page must be >= 1.")
        if limit < 1:
            raise ValueError("limit must be >= 1.")

        started = time.perf_counter()
        outcome = self.parser.parse_with_provenance(cleaned, user_context)
        parsed = outcome.query

        store_query = self.compiler.compile(parsed)
        candidates = self.catalog.find_products(store_query)
        ranked = self.ranker.rank(candidates, parsed)
        ranked = self._semantic_enhance(parsed, ranked)
        ranked = self.ranker.sort(ranked, options.sort_by, parsed)

        total = len(ranked)
        start_index = (page - 1) * limit
        page_items = ranked[start_index : start_index + limit]
        insights = build_insights(parsed, total)
        suggested = self._suggested_queries(cleaned) if total == 0 else []

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        search_mode = "ai" if outcome.ai_parsed else "basic"
        search_id = uuid.uuid4().hex if self.analytics is not None and self.cfg.log_analytics else None

        context = user_context or UserContext()
        if search_id is not None:
            self._submit_analytics(
                search_id,
                self.analytics.log_search,
                query=cleaned,
                parsed_query=parsed.to_dict(),
                result_count=total,
                successful=total > 0,
                user_id=context.user_id,
                user_type=context.user_type,
                session_id=context.session_id,
                search_mode=search_mode,
                ai_confidence=parsed.confidence,
                response_time_ms=elapsed_ms,
                event_id=search_id,
            )

        return SearchResult(
            items=page_items,
            pagination={
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "total": total,
                "hasMore": start_index + limit < total,
            },
            insights=insights,
            search_metadata={
                "queryType": parsed.intent,
                "confidence": parsed.confidence,
                "processingTimeMs": round(elapsed_ms, 2),
                "searchMode": search_mode,
                "searchId": search_id,
            },
            parsed_query=parsed,
            suggested_queries=suggested,
        )

    def suggest(self, partial_query: str, limit: int = 6) -> list[str]:
        return self.parser.suggest(partial_query, limit)

    def analyze_query(self, query: str, user_context: UserContext | None = None) -> dict[str, Any]:
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValueError("Query is required for analysis.")
        return self.parser.analyze(cleaned, user_context)

    def _require_analytics(self) -> SearchAnalytics:
        if self.analytics is None:
            raise RuntimeError("Search analytics is not configured.")
        return self.analytics

    def _known_event(self, search_id: str) -> SearchAnalytics:
        analytics = self._require_analytics()
        if analytics.get_event(search_id) is None:
            # The search write may still be queued right after the response went out.
            with self._pending_lock:
                own_write = self._pending.get(search_id)
            if own_write is not None:
                wait([own_write], timeout=self.cfg.provider_timeout_seconds)
        if analytics.get_event(search_id) is None:
            raise KeyError(f"Unknown search id: {search_id}")
        return analytics

    def log_interaction(self, search_id: str, item_id: str) -> bool:
        return self._known_event(search_id).log_interaction(search_id, item_id)

    def log_conversion(self, search_id: str, item_id: str, conversion_type: str) -> bool:
        if conversion_type not in CONVERSION_TYPES:
            raise ValueError(f"conversion type must be one of: {', '.join(CONVERSION_TYPES)}")
        return self._known_event(search_id).log_conversion(search_id, item_id, conversion_type)

    def analytics_report(self, days: int = 7) -> dict[str, Any]:
        analytics = self._require_analytics()
        return {
            "analytics": analytics.get_dashboard(days),
            "recommendations": analytics.get_recommendations(),
            "poorPerformingQueries": analytics.get_poor_performing_queries(10),
            "timeRange": days,
        }

    def similar_successful_searches(self, query: str, limit: int = 5) -> list[dict[str, Any]]:
        return self._require_analytics().get_similar_successful_searches(query, limit)

    def clear_cache(self) -> None:
        self.embeddings.clear_cache()
        self.parser.suggestion_cache.clear()

    def clean_old_data(self, days_to_keep: int | None = None) -> int:
        keep = self.cfg.analytics_retention_days if days_to_keep is None else days_to_keep
        return self._require_analytics().clean_old_data(keep)

    def stats(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "embeddingCache": self.embeddings.cache_stats(),
            "suggestionCache": self.parser.suggestion_cache.stats(),
            "pendingAnalyticsWrites": len(self._pending),
        }
        store_stats = getattr(self.catalog, "stats", None)
        if callable(store_stats):
            out["store"] = store_stats()
        return out


def build_service(cfg: SearchConfig | None = None, *, db: MarketplaceDB | None = None) -> SearchOrchestrator:
    """Wire the default Cohere-backed, SQLite-backed search service."""
    cfg = cfg or SearchConfig.from_env()
    db = db or MarketplaceDB(cfg.db_path)
    embeddings = EmbeddingService(
        CohereEmbeddingProvider(cfg),
        EmbeddingCache(cfg.embedding_cache_size),
        dimension=cfg.embedding_dimension,
        similarity_threshold=cfg.similarity_threshold,
    )
    return SearchOrchestrator(
        parser=QueryParser(CohereLanguageModel(cfg), LRUCache(cfg.suggestion_cache_size)),
        compiler=QueryCompiler(),
        catalog=db,
        ranker=RelevanceRanker(),
        embeddings=embeddings,
        analytics=SearchAnalytics(db),
        cfg=cfg,
    )
