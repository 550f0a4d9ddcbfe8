"""Free-text query understanding: language-model extraction with a rule-based fallback."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from artisan_search.cache import LRUCache
from artisan_search.cohere_utils import LanguageModel, extract_json_payload
from artisan_search.models import (
    CATEGORIES,
    DEFAULT_INTENT,
    INTENTS,
    OCCASIONS,
    STYLES,
    ParsedQuery,
    ParseOutcome,
    PriceRange,
    UserContext,
)


_LOGGER = logging.getLogger(__name__)

# First match wins; informal terms map onto canonical catalog categories.
_CATEGORY_VOCABULARY: dict[str, str] = {
    "pottery": "Pottery",
    "jewelry": "Jewelry",
    "jewellery": "Jewelry",
    "weaving": "Weaving",
    "textile": "Textiles",
    "wood": "Woodwork",
    "metal": "Metalwork",
    "painting": "Paintings",
    "sculpture": "Sculptures",
}

_PRICE_CEILING = re.compile(r"under (\d+)|below (\d+)|less than (\d+)")

_FALLBACK_SUGGESTIONS = [
    "handmade pottery for home decoration",
    "traditional Indian jewelry",
    "blue pottery from Jaipur",
    "wooden handicrafts",
    "festival decoration items",
    "wedding gift ideas",
    "textile wall hangings",
    "brass items for pooja",
    "handwoven fabrics",
    "eco-friendly crafts",
]

_PRICE_TERMS = re.compile(r"(price|cost|under|below|above|cheap|expensive|₹|rupee|rs)", re.IGNORECASE)
_COLOR_TERMS = re.compile(r"(blue|red|green|yellow|white|black|golden|silver|pink|purple)", re.IGNORECASE)
_OCCASION_TERMS = re.compile(r"(wedding|festival|diwali|gift|birthday|anniversary)", re.IGNORECASE)


class _PriceRangeSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    min: StrictFloat | StrictInt | None = None
    max: StrictFloat | StrictInt | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "_PriceRangeSchema":
        for value in (self.min, self.max):
            if value is not None and value < 0:
                raise ValueError("price bounds must be non-negative")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("priceRange.min exceeds priceRange.max")
        return self


class _ParsedQuerySchema(BaseModel):
    """Shape accepted from the language model; anything else triggers the fallback parser."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    intent: StrictStr | None = None
    category: StrictStr | None = None
    keywords: list[StrictStr] = Field(default_factory=list)
    price_range: _PriceRangeSchema | None = Field(default=None, alias="priceRange")
    occasion: StrictStr | None = None
    materials: list[StrictStr] = Field(default_factory=list)
    colors: list[StrictStr] = Field(default_factory=list)
    location: StrictStr | None = None
    style: StrictStr | None = None
    customizable: StrictBool | None = None

    @field_validator("keywords", "materials", "colors", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


def _lookup(value: str | None, allowed: tuple[str, ...]) -> str | None:
    if not value:
        return None
    allowed_lookup = {option.casefold(): option for option in allowed}
    return allowed_lookup.get(value.strip().casefold())


def _clean_terms(values: list[str]) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        cleaned = value.strip().lower()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        out.append(cleaned)
    return tuple(out)


def estimate_confidence(query: ParsedQuery) -> float:
    confidence = 0.5
    if query.category:
        confidence += 0.15
    if query.keywords:
        confidence += 0.15
    if query.intent != DEFAULT_INTENT:
        confidence += 0.1
    if query.price_range is not None:
        confidence += 0.1
    return min(round(confidence, 4), 1.0)


def fallback_parse(text: str) -> ParsedQuery:
    lower_query = text.lower()
    keywords = tuple(word for word in text.split() if len(word) > 2)

    category = None
    for term, canonical in _CATEGORY_VOCABULARY.items():
        if term in lower_query:
            category = canonical
            break

    price_range = None
    match = _PRICE_CEILING.search(lower_query)
    if match:
        ceiling = next(group for group in match.groups() if group is not None)
        price_range = PriceRange(max=float(ceiling))

    intent = DEFAULT_INTENT
    if "gift" in lower_query or "present" in lower_query:
        intent = "gift"

    return ParsedQuery(intent=intent, category=category, keywords=keywords, price_range=price_range)


def _from_schema(data: _ParsedQuerySchema) -> ParsedQuery:
    price_range = None
    if data.price_range is not None and (data.price_range.min is not None or data.price_range.max is not None):
        price_range = PriceRange(
            min=float(data.price_range.min) if data.price_range.min is not None else None,
            max=float(data.price_range.max) if data.price_range.max is not None else None,
        )
    location = (data.location or "").strip() or None
    return ParsedQuery(
        intent=_lookup(data.intent, INTENTS) or DEFAULT_INTENT,
        category=_lookup(data.category, CATEGORIES),
        keywords=_clean_terms(data.keywords),
        price_range=price_range,
        occasion=_lookup(data.occasion, OCCASIONS),
        materials=_clean_terms(data.materials),
        colors=_clean_terms(data.colors),
        location=location,
        style=_lookup(data.style, STYLES),
        customizable=data.customizable,
    )


class QueryParser:
    def __init__(self, language_model: LanguageModel | None, suggestion_cache: LRUCache) -> None:
        self.language_model = language_model
        self.suggestion_cache = suggestion_cache

    @staticmethod
    def _build_prompt(text: str, user_context: UserContext | None) -> str:
        preferences = "No specific context"
        if user_context is not None and user_context.preferences:
            preferences = json.dumps(user_context.preferences, default=str)
        return (
            "You are a search intelligence system for an Indian artisan marketplace.\n"
            "Parse the shopper query into structured search parameters.\n"
            f'Query: "{text}"\n'
            f"User Context: {preferences}\n"
            "Return ONLY a JSON object with these optional keys (omit keys that do not apply):\n"
            f"- intent ({'|'.join(INTENTS)})\n"
            f"- category ({'|'.join(CATEGORIES)})\n"
            "- keywords (array of relevant keywords)\n"
            '- priceRange ({"min": number, "max": number}, either key optional)\n'
            f"- occasion ({'|'.join(OCCASIONS)})\n"
            "- materials (array)\n"
            "- colors (array)\n"
            "- location (state or region if mentioned)\n"
            f"- style ({'|'.join(STYLES)})\n"
            "- customizable (boolean)\n"
            "Examples:\n"
            '- "blue pottery for gifts" -> {"intent": "gift", "category": "Pottery", '
            '"keywords": ["blue", "pottery"], "colors": ["blue"]}\n'
            '- "traditional jewelry under 2000" -> {"intent": "search", "category": "Jewelry", '
            '"keywords": ["traditional", "jewelry"], "priceRange": {"max": 2000}, "style": "traditional"}\n'
            '- "handmade items from rajasthan" -> {"intent": "browse", "keywords": ["handmade"], '
            '"location": "rajasthan"}\n'
            "No markdown. No explanations."
        )

    def _model_parse(self, text: str, user_context: UserContext | None) -> ParsedQuery:
        if self.language_model is None:
            raise RuntimeError("No language model configured.")
        raw = self.language_model.complete(self._build_prompt(text, user_context))
        payload = extract_json_payload(raw, expect=dict)
        return _from_schema(_ParsedQuerySchema.model_validate(payload))

    def parse_with_provenance(self, text: str, user_context: UserContext | None = None) -> ParseOutcome:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValueError("Please enter a search query.")

        try:
            parsed = self._model_parse(cleaned, user_context)
            source, reason = "ai", None
        except ValidationError as exc:
            _LOGGER.warning("Model output failed schema validation; using fallback parser.")
            parsed, source, reason = fallback_parse(cleaned), "fallback", f"invalid model output: {exc.error_count()} error(s)"
        except Exception as exc:
            _LOGGER.warning("Query parsing fell back to rule-based parsing (%s).", exc)
            parsed, source, reason = fallback_parse(cleaned), "fallback", str(exc) or exc.__class__.__name__

        return ParseOutcome(query=replace(parsed, confidence=estimate_confidence(parsed)), source=source, reason=reason)

    def parse(self, text: str, user_context: UserContext | None = None) -> ParsedQuery:
        return self.parse_with_provenance(text, user_context).query

    def suggest(self, partial_query: str, limit: int = 6) -> list[str]:
        cleaned = (partial_query or "").strip()
        if len(cleaned) < 2:
            return []
        safe_limit = max(1, min(int(limit), 20))
        cache_key = f"suggestions_{safe_limit}_{cleaned.lower()}"
        cached = self.suggestion_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            if self.language_model is None:
                raise RuntimeError("No language model configured.")
            prompt = (
                f"Generate {safe_limit} search suggestions for an Indian artisan marketplace "
                f'based on this partial query: "{cleaned}"\n'
                "Suggestions must be complete, searchable, diverse natural-language queries "
                "about Indian handicrafts and artisan products.\n"
                "Return ONLY a JSON array of strings, no other text."
            )
            payload = extract_json_payload(self.language_model.complete(prompt), expect=list)
            suggestions = [value.strip() for value in payload if isinstance(value, str) and value.strip()]
            if not suggestions:
                raise ValueError("model returned no usable suggestions")
        except Exception as exc:
            _LOGGER.warning("Suggestion generation fell back to the static list (%s).", exc)
            filtered = [value for value in _FALLBACK_SUGGESTIONS if cleaned.lower() in value.lower()]
            return (filtered or _FALLBACK_SUGGESTIONS)[:safe_limit]

        suggestions = suggestions[:safe_limit]
        self.suggestion_cache.put(cache_key, tuple(suggestions))
        return suggestions

    def analyze(self, text: str, user_context: UserContext | None = None) -> dict[str, Any]:
        outcome = self.parse_with_provenance(text, user_context)
        return {
            "query": text,
            "parsedQuery": outcome.query.to_dict(),
            "parseSource": outcome.source,
            "fallbackReason": outcome.reason,
            "analysis": {
                "queryLength": len(text),
                "wordCount": len(text.split()),
                "hasNumbers": bool(re.search(r"\d", text)),
                "hasPriceTerms": bool(_PRICE_TERMS.search(text)),
                "hasColorTerms": bool(_COLOR_TERMS.search(text)),
                "hasOccasionTerms": bool(_OCCASION_TERMS.search(text)),
            },
        }
