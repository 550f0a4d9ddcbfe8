"""Additive heuristic relevance scoring and explicit sort overrides."""

from __future__ import annotations

import logging

from artisan_search.models import CatalogItem, ParsedQuery, RankedItem


_LOGGER = logging.getLogger(__name__)

NAME_KEYWORD_WEIGHT = 10.0
DESCRIPTION_KEYWORD_WEIGHT = 5.0
CATEGORY_MATCH_WEIGHT = 15.0
PRICE_MATCH_WEIGHT = 8.0
VIEW_WEIGHT = 0.01
LIKE_WEIGHT = 0.1
RATING_WEIGHT = 2.0
CUSTOMIZABLE_WEIGHT = 5.0

DEFAULT_MIN_PRICE = 0.0
DEFAULT_MAX_PRICE = 100000.0

SORT_KEYS = ("relevance", "price-asc", "price-desc", "newest", "popularity", "rating")


class RelevanceRanker:
    def score(self, item: CatalogItem, parsed: ParsedQuery) -> float:
        score = 0.0
        name = (item.name or "").lower()
        description = (item.description or "").lower()

        for keyword in parsed.keywords:
            if keyword.lower() in name:
                score += NAME_KEYWORD_WEIGHT
        for keyword in parsed.keywords:
            if keyword.lower() in description:
                score += DESCRIPTION_KEYWORD_WEIGHT

        if parsed.category and item.category == parsed.category:
            score += CATEGORY_MATCH_WEIGHT

        if parsed.price_range is not None:
            low = parsed.price_range.min if parsed.price_range.min is not None else DEFAULT_MIN_PRICE
            high = parsed.price_range.max if parsed.price_range.max is not None else DEFAULT_MAX_PRICE
            if low <= item.price <= high:
                score += PRICE_MATCH_WEIGHT

        score += max(item.views or 0, 0) * VIEW_WEIGHT
        score += max(item.likes or 0, 0) * LIKE_WEIGHT
        score += max(item.rating or 0.0, 0.0) * RATING_WEIGHT

        if parsed.customizable and item.is_customizable:
            score += CUSTOMIZABLE_WEIGHT

        return max(score, 0.0)

    def rank(self, items: list[CatalogItem], parsed: ParsedQuery) -> list[RankedItem]:
        ranked = [RankedItem(item=item, relevance_score=self.score(item, parsed)) for item in items]
        # sorted() is stable, so ties keep candidate order.
        return sorted(ranked, key=lambda entry: entry.relevance_score, reverse=True)

    def sort(self, items: list[RankedItem], sort_key: str, parsed: ParsedQuery | None = None) -> list[RankedItem]:
        key = (sort_key or "relevance").strip().lower()
        if key not in SORT_KEYS:
            _LOGGER.warning("Unknown sort key %r; keeping relevance order.", sort_key)
            key = "relevance"

        if key == "price-asc":
            return sorted(items, key=lambda entry: entry.item.price)
        if key == "price-desc":
            return sorted(items, key=lambda entry: entry.item.price, reverse=True)
        if key == "newest":
            return sorted(items, key=lambda entry: entry.item.created_at or "", reverse=True)
        if key == "popularity":
            return sorted(items, key=lambda entry: (entry.item.views or 0) + (entry.item.likes or 0), reverse=True)
        if key == "rating":
            return sorted(items, key=lambda entry: entry.item.rating or 0.0, reverse=True)
        return list(items)
