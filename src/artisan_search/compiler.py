"""Turns a ParsedQuery into a catalog predicate tree.

The tree is small on purpose: field equality, inclusive ranges, case-insensitive
substring, case-insensitive list membership, and AND/OR combinators. A store can
evaluate it in-process with ``matches`` or translate ``describe()`` into its own
query language.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from artisan_search.models import CatalogItem, ParsedQuery


class StoreQuery:
    def matches(self, item: CatalogItem) -> bool:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class Eq(StoreQuery):
    field: str
    value: Any

    def matches(self, item: CatalogItem) -> bool:
        return getattr(item, self.field) == self.value

    def describe(self) -> dict[str, Any]:
        return {self.field: {"$eq": self.value}}


@dataclass(frozen=True)
class Range(StoreQuery):
    field: str
    gte: float | None = None
    lte: float | None = None
    gt: float | None = None

    def matches(self, item: CatalogItem) -> bool:
        value = getattr(item, self.field)
        if value is None:
            return False
        if self.gte is not None and value < self.gte:
            return False
        if self.lte is not None and value > self.lte:
            return False
        if self.gt is not None and value <= self.gt:
            return False
        return True

    def describe(self) -> dict[str, Any]:
        bounds = {op: bound for op, bound in (("$gte", self.gte), ("$lte", self.lte), ("$gt", self.gt)) if bound is not None}
        return {self.field: bounds}


@dataclass(frozen=True)
class Contains(StoreQuery):
    """Case-insensitive substring match of any term against a text field."""

    field: str
    terms: tuple[str, ...]

    def matches(self, item: CatalogItem) -> bool:
        haystack = str(getattr(item, self.field) or "").lower()
        return any(term.lower() in haystack for term in self.terms)

    def describe(self) -> dict[str, Any]:
        return {self.field: {"$icontains": list(self.terms)}}


@dataclass(frozen=True)
class AnyOf(StoreQuery):
    """Case-insensitive membership of any term in a list field."""

    field: str
    terms: tuple[str, ...]

    def matches(self, item: CatalogItem) -> bool:
        values = {str(value).strip().lower() for value in getattr(item, self.field) or []}
        return any(term.strip().lower() in values for term in self.terms)

    def describe(self) -> dict[str, Any]:
        return {self.field: {"$in": list(self.terms)}}


@dataclass(frozen=True)
class And(StoreQuery):
    clauses: tuple[StoreQuery, ...]

    def matches(self, item: CatalogItem) -> bool:
        return all(clause.matches(item) for clause in self.clauses)

    def describe(self) -> dict[str, Any]:
        return {"$and": [clause.describe() for clause in self.clauses]}


@dataclass(frozen=True)
class Or(StoreQuery):
    clauses: tuple[StoreQuery, ...]

    def matches(self, item: CatalogItem) -> bool:
        return any(clause.matches(item) for clause in self.clauses)

    def describe(self) -> dict[str, Any]:
        return {"$or": [clause.describe() for clause in self.clauses]}


class QueryCompiler:
    def compile(self, parsed: ParsedQuery) -> And:
        clauses: list[StoreQuery] = []

        if parsed.category:
            clauses.append(Eq("category", parsed.category))

        if parsed.price_range is not None and (
            parsed.price_range.min is not None or parsed.price_range.max is not None
        ):
            clauses.append(Range("price", gte=parsed.price_range.min, lte=parsed.price_range.max))

        if parsed.customizable is not None:
            clauses.append(Eq("is_customizable", parsed.customizable))

        if parsed.location:
            clauses.append(Contains("seller_location", (parsed.location,)))

        if parsed.keywords:
            keywords = tuple(parsed.keywords)
            clauses.append(
                Or(
                    (
                        Contains("name", keywords),
                        Contains("description", keywords),
                        AnyOf("tags", keywords),
                        Contains("craft_type", keywords),
                    )
                )
            )

        if parsed.colors:
            colors = tuple(parsed.colors)
            clauses.append(
                Or(
                    (
                        AnyOf("colors", colors),
                        Contains("name", colors),
                        Contains("description", colors),
                    )
                )
            )

        clauses.append(Eq("is_active", True))
        clauses.append(Range("quantity_available", gt=0))
        return And(tuple(clauses))
