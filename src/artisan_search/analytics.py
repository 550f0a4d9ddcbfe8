"""Search event logging and offline search-quality aggregation.

Writes are best-effort: a failed insert is logged and reported as ``None``/``False``
so that the search response path never depends on the analytics store. Reads
(dashboards, poor-query detection, recovery suggestions) run against the same
SQLite store and propagate storage errors to the caller.
"""

from __future__ import annotations

import csv
import io
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from artisan_search.db import MarketplaceDB, to_iso
from artisan_search.models import CONVERSION_TYPES, SearchEvent


_LOGGER = logging.getLogger(__name__)

MIN_SEARCHES_FOR_RANKING = 3
SUCCESS_RATE_WEIGHT = 40.0
RESULT_COUNT_WEIGHT = 2.0
CONFIDENCE_WEIGHT = 60.0

_EXPORT_COLUMNS = [
    "timestamp",
    "query",
    "searchMode",
    "resultCount",
    "aiConfidence",
    "successful",
    "userType",
]


def normalize_query(query: str) -> str:
    return " ".join(str(query or "").lower().split())


def jaccard_similarity(text_a: str, text_b: str) -> float:
    words_a = set(str(text_a).lower().split())
    words_b = set(str(text_b).lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


class SearchAnalytics:
    def __init__(self, db: MarketplaceDB) -> None:
        self.db = db

    @staticmethod
    def _since(days: int) -> str:
        return to_iso(datetime.now(timezone.utc) - timedelta(days=max(0, int(days))))

    def log_search(
        self,
        *,
        query: str,
        parsed_query: dict[str, Any] | None,
        result_count: int,
        successful: bool,
        user_id: str | None = None,
        user_type: str = "anonymous",
        session_id: str | None = None,
        search_mode: str = "ai",
        ai_confidence: float | None = None,
        response_time_ms: float = 0.0,
        timestamp: datetime | None = None,
        event_id: str | None = None,
    ) -> str | None:
        event = SearchEvent(
            id=event_id or uuid.uuid4().hex,
            query=normalize_query(query),
            parsed_query=parsed_query,
            result_count=max(0, int(result_count)),
            user_id=user_id,
            user_type=user_type or "anonymous",
            session_id=session_id,
            search_mode=search_mode if search_mode in {"ai", "basic"} else "basic",
            ai_confidence=ai_confidence,
            response_time_ms=max(0.0, float(response_time_ms)),
            successful=bool(successful),
            timestamp=to_iso(timestamp or datetime.now(timezone.utc)),
        )
        try:
            self.db.insert_search_event(event)
        except Exception as exc:
            _LOGGER.warning("Failed to log search analytics event (%s).", exc)
            return None
        return event.id

    def log_interaction(self, event_id: str, item_id: str) -> bool:
        try:
            if not self.db.search_event_exists(event_id):
                _LOGGER.warning("Ignoring click for unknown search event %s.", event_id)
                return False
            self.db.append_click(event_id=event_id, product_id=str(item_id))
        except Exception as exc:
            _LOGGER.warning("Failed to log search interaction (%s).", exc)
            return False
        return True

    def log_conversion(self, event_id: str, item_id: str, conversion_type: str) -> bool:
        if conversion_type not in CONVERSION_TYPES:
            raise ValueError(f"conversion type must be one of: {', '.join(CONVERSION_TYPES)}")
        try:
            if not self.db.search_event_exists(event_id):
                _LOGGER.warning("Ignoring conversion for unknown search event %s.", event_id)
                return False
            self.db.append_conversion(event_id=event_id, product_id=str(item_id), conversion_type=conversion_type)
        except Exception as exc:
            _LOGGER.warning("Failed to log search conversion (%s).", exc)
            return False
        return True

    def get_event(self, event_id: str) -> SearchEvent | None:
        return self.db.get_search_event(event_id)

    def get_dashboard(self, days: int = 7) -> dict[str, Any]:
        since = self._since(days)
        raw = self.db.search_summary(since)
        summary = {
            "totalSearches": int(raw["total_searches"] or 0),
            "successfulSearches": int(raw["successful_searches"] or 0),
            "averageResults": float(raw["average_results"] or 0.0),
            "averageConfidence": float(raw["average_confidence"] or 0.0),
            "averageResponseTime": float(raw["average_response_time"] or 0.0),
            "aiSearches": int(raw["ai_searches"] or 0),
            "basicSearches": int(raw["basic_searches"] or 0),
        }
        return {
            "summary": summary,
            "topQueries": [{"query": row["query"], "count": int(row["count"])} for row in self.db.top_queries(since)],
            "searchTrends": [
                {
                    "hour": int(row["hour"]),
                    "searches": int(row["searches"]),
                    "successRate": float(row["success_rate"] or 0.0),
                }
                for row in self.db.hourly_trends(since)
            ],
            "categoryDistribution": [
                {"category": row["category"], "count": int(row["count"])}
                for row in self.db.category_distribution(since)
            ],
        }

    def get_poor_performing_queries(self, limit: int = 10) -> list[dict[str, Any]]:
        scored: list[dict[str, Any]] = []
        for row in self.db.query_performance(min_searches=MIN_SEARCHES_FOR_RANKING):
            total = int(row["total_searches"])
            success_rate = int(row["successful_searches"] or 0) / total
            average_results = float(row["average_results"] or 0.0)
            average_confidence = float(row["average_confidence"] or 0.0)
            scored.append(
                {
                    "query": row["query"],
                    "totalSearches": total,
                    "successRate": success_rate,
                    "averageResults": average_results,
                    "averageConfidence": average_confidence,
                    "performanceScore": (
                        SUCCESS_RATE_WEIGHT * success_rate
                        + RESULT_COUNT_WEIGHT * average_results
                        + CONFIDENCE_WEIGHT * average_confidence
                    ),
                }
            )
        scored.sort(key=lambda entry: (entry["performanceScore"], entry["query"]))
        return scored[: max(1, int(limit))]

    def get_recommendations(self) -> list[dict[str, Any]]:
        recommendations: list[dict[str, Any]] = []
        summary = self.get_dashboard(30)["summary"]
        poor_queries = self.get_poor_performing_queries(5)

        if summary["totalSearches"] > 0:
            success_rate = summary["successfulSearches"] / summary["totalSearches"]
            if success_rate < 0.8:
                recommendations.append(
                    {
                        "type": "improvement",
                        "priority": "high",
                        "message": (
                            f"Search success rate is {success_rate * 100:.1f}%. "
                            "Consider improving product tagging and descriptions."
                        ),
                        "action": "improve_product_data",
                    }
                )

            if summary["averageConfidence"] < 0.7:
                recommendations.append(
                    {
                        "type": "improvement",
                        "priority": "medium",
                        "message": (
                            f"AI parsing confidence is low ({summary['averageConfidence'] * 100:.1f}%). "
                            "Consider improving query parsing."
                        ),
                        "action": "improve_ai_parsing",
                    }
                )

            if summary["averageResponseTime"] > 2000:
                recommendations.append(
                    {
                        "type": "performance",
                        "priority": "medium",
                        "message": (
                            f"Average search response time is {summary['averageResponseTime']:.0f}ms. "
                            "Consider optimization."
                        ),
                        "action": "optimize_performance",
                    }
                )

        if poor_queries:
            recommendations.append(
                {
                    "type": "content",
                    "priority": "medium",
                    "message": f"{len(poor_queries)} queries are performing poorly. Consider adding relevant products.",
                    "action": "improve_content",
                    "details": [entry["query"] for entry in poor_queries],
                }
            )

        return recommendations

    def get_similar_successful_searches(self, failed_query: str, limit: int = 5) -> list[dict[str, Any]]:
        target = normalize_query(failed_query)
        best: dict[str, dict[str, Any]] = {}
        for row in self.db.successful_queries(limit=1000):
            query = row["query"]
            if query == target:
                continue
            similarity = jaccard_similarity(target, query)
            if similarity <= 0.0:
                continue
            current = best.get(query)
            if current is None or int(row["result_count"]) > current["resultCount"]:
                best[query] = {
                    "query": query,
                    "resultCount": int(row["result_count"]),
                    "similarity": similarity,
                }

        ranked = sorted(best.values(), key=lambda entry: (-entry["similarity"], -entry["resultCount"], entry["query"]))
        return ranked[: max(1, int(limit))]

    def clean_old_data(self, days_to_keep: int = 90) -> int:
        deleted = self.db.delete_events_before(self._since(days_to_keep))
        _LOGGER.info("Cleaned %d old search analytics records.", deleted)
        return deleted

    def export_search_data(self, start: datetime, end: datetime, fmt: str = "json") -> list[dict[str, Any]] | str:
        events = self.db.list_search_events(start=to_iso(start), end=to_iso(end))
        if fmt == "json":
            return [event.to_dict() for event in events]
        if fmt != "csv":
            raise ValueError("format must be 'json' or 'csv'")

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=_EXPORT_COLUMNS, extrasaction="ignore", lineterminator="\n")
        writer.writeheader()
        for event in events:
            writer.writerow(event.to_dict())
        return buffer.getvalue()
