"""SQLite access layer for catalog items and search analytics events."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from artisan_search.compiler import StoreQuery
from artisan_search.models import CatalogItem, SearchEvent


def to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _utc_now() -> str:
    return to_iso(datetime.now(timezone.utc))


def _json_list(raw: Any) -> list[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        return []
    return [str(value) for value in parsed] if isinstance(parsed, list) else []


class MarketplaceDB:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS catalog_products (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    category TEXT NOT NULL DEFAULT '',
                    price REAL NOT NULL DEFAULT 0,
                    tags TEXT NOT NULL DEFAULT '[]',
                    colors TEXT NOT NULL DEFAULT '[]',
                    materials TEXT NOT NULL DEFAULT '[]',
                    views INTEGER NOT NULL DEFAULT 0,
                    likes INTEGER NOT NULL DEFAULT 0,
                    rating REAL NOT NULL DEFAULT 0,
                    is_customizable INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    quantity_available INTEGER NOT NULL DEFAULT 0,
                    seller_location TEXT NOT NULL DEFAULT '',
                    craft_type TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_catalog_category ON catalog_products(category);
                CREATE INDEX IF NOT EXISTS idx_catalog_active ON catalog_products(is_active);

                CREATE TABLE IF NOT EXISTS search_events (
                    id TEXT PRIMARY KEY,
                    query TEXT NOT NULL,
                    parsed_query TEXT,
                    parsed_category TEXT,
                    result_count INTEGER NOT NULL DEFAULT 0,
                    user_id TEXT,
                    user_type TEXT NOT NULL DEFAULT 'anonymous',
                    session_id TEXT,
                    search_mode TEXT NOT NULL DEFAULT 'ai',
                    ai_confidence REAL,
                    response_time_ms REAL NOT NULL DEFAULT 0,
                    successful INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_search_events_created ON search_events(created_at);
                CREATE INDEX IF NOT EXISTS idx_search_events_query ON search_events(query);

                CREATE TABLE IF NOT EXISTS search_clicks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES search_events(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_search_clicks_event ON search_clicks(event_id);

                CREATE TABLE IF NOT EXISTS search_conversions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    conversion_type TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (event_id) REFERENCES search_events(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_search_conversions_event ON search_conversions(event_id);
                """
            )

    # Catalog

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> CatalogItem:
        return CatalogItem(
            id=str(row["id"]),
            name=row["name"],
            description=row["description"] or "",
            category=row["category"] or "",
            price=float(row["price"] or 0.0),
            tags=_json_list(row["tags"]),
            colors=_json_list(row["colors"]),
            materials=_json_list(row["materials"]),
            views=int(row["views"] or 0),
            likes=int(row["likes"] or 0),
            rating=float(row["rating"] or 0.0),
            is_customizable=bool(row["is_customizable"]),
            is_active=bool(row["is_active"]),
            quantity_available=int(row["quantity_available"] or 0),
            seller_location=row["seller_location"] or "",
            craft_type=row["craft_type"] or "",
            created_at=row["created_at"] or "",
        )

    def upsert_catalog(self, items: list[CatalogItem]) -> None:
        timestamp = _utc_now()
        payload: list[tuple[Any, ...]] = []
        for item in items:
            payload.append(
                (
                    item.id,
                    item.name,
                    item.description,
                    item.category,
                    float(item.price),
                    json.dumps(list(item.tags)),
                    json.dumps(list(item.colors)),
                    json.dumps(list(item.materials)),
                    int(item.views),
                    int(item.likes),
                    float(item.rating),
                    int(bool(item.is_customizable)),
                    int(bool(item.is_active)),
                    int(item.quantity_available),
                    item.seller_location,
                    item.craft_type,
                    item.created_at or timestamp,
                    timestamp,
                )
            )

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO catalog_products (
                    id, name, description, category, price, tags, colors, materials,
                    views, likes, rating, is_customizable, is_active, quantity_available,
                    seller_location, craft_type, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    description=excluded.description,
                    category=excluded.category,
                    price=excluded.price,
                    tags=excluded.tags,
                    colors=excluded.colors,
                    materials=excluded.materials,
                    views=excluded.views,
                    likes=excluded.likes,
                    rating=excluded.rating,
                    is_customizable=excluded.is_customizable,
                    is_active=excluded.is_active,
                    quantity_available=excluded.quantity_available,
                    seller_location=excluded.seller_location,
                    craft_type=excluded.craft_type,
                    updated_at=excluded.updated_at
                """,
                payload,
            )

    def list_catalog(self) -> list[CatalogItem]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM catalog_products ORDER BY rowid ASC").fetchall()
        return [self._row_to_item(row) for row in rows]

    def find_products(self, query: StoreQuery) -> list[CatalogItem]:
        return [item for item in self.list_catalog() if query.matches(item)]

    # Search events

    def insert_search_event(self, event: SearchEvent) -> None:
        parsed_category = None
        if isinstance(event.parsed_query, dict):
            parsed_category = event.parsed_query.get("category")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO search_events (
                    id, query, parsed_query, parsed_category, result_count, user_id, user_type,
                    session_id, search_mode, ai_confidence, response_time_ms, successful, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    event.query,
                    json.dumps(event.parsed_query) if event.parsed_query is not None else None,
                    parsed_category,
                    int(event.result_count),
                    event.user_id,
                    event.user_type,
                    event.session_id,
                    event.search_mode,
                    event.ai_confidence,
                    float(event.response_time_ms),
                    int(bool(event.successful)),
                    event.timestamp,
                ),
            )

    def search_event_exists(self, event_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM search_events WHERE id = ?", (event_id,)).fetchone()
        return row is not None

    def append_click(self, *, event_id: str, product_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO search_clicks (event_id, product_id, created_at) VALUES (?, ?, ?)",
                (event_id, product_id, _utc_now()),
            )

    def append_conversion(self, *, event_id: str, product_id: str, conversion_type: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO search_conversions (event_id, product_id, conversion_type, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (event_id, product_id, conversion_type, _utc_now()),
            )

    def _events_with_children(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[SearchEvent]:
        events: list[SearchEvent] = []
        for row in rows:
            clicks = conn.execute(
                "SELECT product_id FROM search_clicks WHERE event_id = ? ORDER BY id ASC",
                (row["id"],),
            ).fetchall()
            conversions = conn.execute(
                """
                SELECT conversion_type, product_id, created_at
                FROM search_conversions
                WHERE event_id = ?
                ORDER BY id ASC
                """,
                (row["id"],),
            ).fetchall()
            parsed_query = json.loads(row["parsed_query"]) if row["parsed_query"] else None
            events.append(
                SearchEvent(
                    id=row["id"],
                    query=row["query"],
                    parsed_query=parsed_query,
                    result_count=int(row["result_count"]),
                    user_id=row["user_id"],
                    user_type=row["user_type"],
                    session_id=row["session_id"],
                    search_mode=row["search_mode"],
                    ai_confidence=row["ai_confidence"],
                    response_time_ms=float(row["response_time_ms"]),
                    successful=bool(row["successful"]),
                    timestamp=row["created_at"],
                    clicked_results=[str(click["product_id"]) for click in clicks],
                    conversion_events=[
                        {
                            "type": conversion["conversion_type"],
                            "productId": conversion["product_id"],
                            "timestamp": conversion["created_at"],
                        }
                        for conversion in conversions
                    ],
                )
            )
        return events

    def get_search_event(self, event_id: str) -> SearchEvent | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM search_events WHERE id = ?", (event_id,)).fetchone()
            if not row:
                return None
            return self._events_with_children(conn, [row])[0]

    def list_search_events(self, *, start: str, end: str) -> list[SearchEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM search_events
                WHERE created_at >= ? AND created_at <= ?
                ORDER BY created_at ASC
                """,
                (start, end),
            ).fetchall()
            return self._events_with_children(conn, rows)

    def search_summary(self, since: str) -> dict[str, Any]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total_searches,
                       COALESCE(SUM(successful), 0) AS successful_searches,
                       AVG(result_count) AS average_results,
                       AVG(ai_confidence) AS average_confidence,
                       AVG(response_time_ms) AS average_response_time,
                       COALESCE(SUM(CASE WHEN search_mode = 'ai' THEN 1 ELSE 0 END), 0) AS ai_searches,
                       COALESCE(SUM(CASE WHEN search_mode = 'basic' THEN 1 ELSE 0 END), 0) AS basic_searches
                FROM search_events
                WHERE created_at >= ?
                """,
                (since,),
            ).fetchone()
        return dict(row)

    def top_queries(self, since: str, *, limit: int = 10) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT query, COUNT(*) AS count
                FROM search_events
                WHERE created_at >= ?
                GROUP BY query
                ORDER BY count DESC, query ASC
                LIMIT ?
                """,
                (since, max(1, int(limit))),
            ).fetchall()
        return [dict(row) for row in rows]

    def hourly_trends(self, since: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT CAST(substr(created_at, 12, 2) AS INTEGER) AS hour,
                       COUNT(*) AS searches,
                       AVG(successful) AS success_rate
                FROM search_events
                WHERE created_at >= ?
                GROUP BY hour
                ORDER BY hour ASC
                """,
                (since,),
            ).fetchall()
        return [dict(row) for row in rows]

    def category_distribution(self, since: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT parsed_category AS category, COUNT(*) AS count
                FROM search_events
                WHERE created_at >= ?
                  AND parsed_category IS NOT NULL
                  AND trim(parsed_category) != ''
                GROUP BY parsed_category
                ORDER BY count DESC, category ASC
                """,
                (since,),
            ).fetchall()
        return [dict(row) for row in rows]

    def query_performance(self, *, min_searches: int) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT query,
                       COUNT(*) AS total_searches,
                       SUM(successful) AS successful_searches,
                       AVG(result_count) AS average_results,
                       COALESCE(AVG(ai_confidence), 0) AS average_confidence
                FROM search_events
                GROUP BY query
                HAVING COUNT(*) >= ?
                """,
                (max(1, int(min_searches)),),
            ).fetchall()
        return [dict(row) for row in rows]

    def successful_queries(self, *, limit: int = 1000) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT query, result_count
                FROM search_events
                WHERE successful = 1 AND result_count >= 1
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (max(1, int(limit)),),
            ).fetchall()
        return [dict(row) for row in rows]

    def delete_events_before(self, cutoff: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM search_events WHERE created_at < ?", (cutoff,))
            return int(cursor.rowcount or 0)

    def stats(self) -> dict[str, Any]:
        with self._connect() as conn:
            counts = conn.execute(
                """
                SELECT
                  (SELECT COUNT(*) FROM catalog_products) AS product_count,
                  (SELECT COUNT(*) FROM search_events) AS search_event_count,
                  (SELECT COUNT(*) FROM search_clicks) AS click_count,
                  (SELECT COUNT(*) FROM search_conversions) AS conversion_count
                """
            ).fetchone()
        return dict(counts)
