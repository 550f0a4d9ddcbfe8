"""Value types shared by the parser, compiler, ranker, orchestrator and analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


DEFAULT_INTENT = "search"
INTENTS = ("search", "browse", "gift", "specific_item", "price_inquiry")
CATEGORIES = (
    "Pottery",
    "Weaving",
    "Jewelry",
    "Woodwork",
    "Metalwork",
    "Textiles",
    "Paintings",
    "Sculptures",
)
OCCASIONS = ("wedding", "festival", "diwali", "gift", "decoration", "personal")
STYLES = ("traditional", "modern", "vintage", "contemporary")
CONVERSION_TYPES = ("view", "cart", "purchase")


@dataclass(frozen=True)
class PriceRange:
    min: float | None = None
    max: float | None = None

    def to_dict(self) -> dict[str, float]:
        out: dict[str, float] = {}
        if self.min is not None:
            out["min"] = self.min
        if self.max is not None:
            out["max"] = self.max
        return out


@dataclass(frozen=True)
class ParsedQuery:
    """Structured filter extracted from one free-text query."""

    intent: str = DEFAULT_INTENT
    category: str | None = None
    keywords: tuple[str, ...] = ()
    price_range: PriceRange | None = None
    occasion: str | None = None
    materials: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    location: str | None = None
    style: str | None = None
    customizable: bool | None = None
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "intent": self.intent,
            "keywords": list(self.keywords),
            "materials": list(self.materials),
            "colors": list(self.colors),
            "confidence": self.confidence,
        }
        if self.category is not None:
            out["category"] = self.category
        if self.price_range is not None:
            out["priceRange"] = self.price_range.to_dict()
        for key, value in (
            ("occasion", self.occasion),
            ("location", self.location),
            ("style", self.style),
            ("customizable", self.customizable),
        ):
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class ParseOutcome:
    """A parsed query tagged with the path that produced it."""

    query: ParsedQuery
    source: str
    reason: str | None = None

    @property
    def ai_parsed(self) -> bool:
        return self.source == "ai"


@dataclass(frozen=True)
class UserContext:
    user_id: str | None = None
    user_type: str = "anonymous"
    session_id: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)


@dataclass
class CatalogItem:
    id: str
    name: str
    description: str = ""
    category: str = ""
    price: float = 0.0
    tags: list[str] = field(default_factory=list)
    colors: list[str] = field(default_factory=list)
    materials: list[str] = field(default_factory=list)
    views: int = 0
    likes: int = 0
    rating: float = 0.0
    is_customizable: bool = False
    is_active: bool = True
    quantity_available: int = 0
    seller_location: str = ""
    craft_type: str = ""
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "tags": list(self.tags),
            "colors": list(self.colors),
            "materials": list(self.materials),
            "views": self.views,
            "likes": self.likes,
            "rating": self.rating,
            "isCustomizable": self.is_customizable,
            "isActive": self.is_active,
            "quantityAvailable": self.quantity_available,
            "sellerLocation": self.seller_location,
            "craftType": self.craft_type,
            "createdAt": self.created_at,
        }


@dataclass
class RankedItem:
    item: CatalogItem
    relevance_score: float = 0.0
    semantic_similarity: float | None = None
    semantic_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out = self.item.to_dict()
        out["relevanceScore"] = round(self.relevance_score, 4)
        if self.semantic_similarity is not None:
            out["semanticSimilarity"] = self.semantic_similarity
            out["semanticScore"] = self.semantic_score
        return out


@dataclass(frozen=True)
class SearchOptions:
    page: int = 1
    limit: int | None = None
    sort_by: str = "relevance"


@dataclass
class SearchResult:
    items: list[RankedItem]
    pagination: dict[str, Any]
    insights: str
    search_metadata: dict[str, Any]
    parsed_query: ParsedQuery
    suggested_queries: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [ranked.to_dict() for ranked in self.items],
            "pagination": dict(self.pagination),
            "insights": self.insights,
            "searchMetadata": dict(self.search_metadata),
            "parsedQuery": self.parsed_query.to_dict(),
            "suggestedQueries": list(self.suggested_queries),
        }


@dataclass
class SearchEvent:
    id: str
    query: str
    parsed_query: dict[str, Any] | None
    result_count: int
    user_id: str | None
    user_type: str
    session_id: str | None
    search_mode: str
    ai_confidence: float | None
    response_time_ms: float
    successful: bool
    timestamp: str
    clicked_results: list[str] = field(default_factory=list)
    conversion_events: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "parsedQuery": self.parsed_query,
            "resultCount": self.result_count,
            "userId": self.user_id,
            "userType": self.user_type,
            "sessionId": self.session_id,
            "searchMode": self.search_mode,
            "aiConfidence": self.ai_confidence,
            "responseTimeMs": self.response_time_ms,
            "successful": self.successful,
            "timestamp": self.timestamp,
            "clickedResults": list(self.clicked_results),
            "conversionEvents": list(self.conversion_events),
        }
