"""
Tests for QueryCompiler predicate trees and the SQLite catalog store that evaluates them.
"""
from conftest import make_item

from artisan_search.compiler import And, AnyOf, Contains, Eq, Or, QueryCompiler, Range
from artisan_search.models import ParsedQuery, PriceRange


def compile_query(**fields) -> And:
    return QueryCompiler().compile(ParsedQuery(**fields))


class TestPriceBounds:
    def test_upper_bound_is_inclusive(self):
        query = compile_query(price_range=PriceRange(max=2000.0))

        assert query.matches(make_item("a", "Vase", price=2000))
        assert not query.matches(make_item("b", "Vase", price=2001))

    def test_lower_bound_is_inclusive(self):
        query = compile_query(price_range=PriceRange(min=500.0))

        assert query.matches(make_item("a", "Vase", price=500))
        assert not query.matches(make_item("b", "Vase", price=499.99))


class TestBrowse:
    def test_empty_query_only_filters_active_in_stock(self):
        query = compile_query()

        assert query.clauses == (Eq("is_active", True), Range("quantity_available", gt=0))
        assert query.matches(make_item("a", "Anything"))
        assert not query.matches(make_item("b", "Inactive", is_active=False))
        assert not query.matches(make_item("c", "Sold out", quantity_available=0))


class TestFieldClauses:
    def test_category_is_exact(self):
        query = compile_query(category="Pottery")
        assert query.matches(make_item("a", "Vase", category="Pottery"))
        assert not query.matches(make_item("b", "Ring", category="Jewelry"))

    def test_keywords_match_any_searchable_field(self):
        query = compile_query(keywords=("jhumka",))

        assert query.matches(make_item("a", "Silver JHUMKA"))
        assert query.matches(make_item("b", "Earrings", description="classic jhumka design"))
        assert query.matches(make_item("c", "Earrings", tags=["Jhumka"]))
        assert query.matches(make_item("d", "Earrings", craft_type="Jhumka making"))
        assert not query.matches(make_item("e", "Earrings"))

    def test_tag_membership_is_whole_value(self):
        query = compile_query(keywords=("home",))
        assert not query.matches(make_item("a", "Vase", tags=["home decor"]))

    def test_colors_are_anded_with_keywords(self):
        query = compile_query(keywords=("vase",), colors=("blue",))

        assert query.matches(make_item("a", "Vase", colors=["Blue"]))
        assert query.matches(make_item("b", "Blue vase"))
        assert not query.matches(make_item("c", "Vase", colors=["red"]))

    def test_location_is_case_insensitive_substring(self):
        query = compile_query(location="rajasthan")
        assert query.matches(make_item("a", "Vase", seller_location="Jaipur, Rajasthan"))
        assert not query.matches(make_item("b", "Vase", seller_location="Kutch, Gujarat"))

    def test_customizable_equality(self):
        query = compile_query(customizable=True)
        assert query.matches(make_item("a", "Plate", is_customizable=True))
        assert not query.matches(make_item("b", "Plate", is_customizable=False))


class TestCatalogStore:
    def test_find_products_applies_compiled_query(self, catalog_db):
        query = compile_query(category="Pottery")
        assert [item.id for item in catalog_db.find_products(query)] == ["p-1", "p-3"]

    def test_catalog_round_trips_item_fields(self, catalog_db):
        stored = {item.id: item for item in catalog_db.list_catalog()}

        assert len(stored) == 5
        assert stored["p-1"].tags == ["vase", "home decor"]
        assert stored["p-3"].is_customizable is True
        assert stored["p-4"].is_active is False


class TestDescribe:
    def test_describe_is_json_like(self):
        query = compile_query(category="Pottery", keywords=("vase",), price_range=PriceRange(max=100.0))
        described = query.describe()

        assert described["$and"][0] == {"category": {"$eq": "Pottery"}}
        assert described["$and"][1] == {"price": {"$lte": 100.0}}
        assert "$or" in described["$and"][2]

    def test_or_and_anyof_describe(self):
        clause = Or((AnyOf("tags", ("a",)), Contains("name", ("b",))))
        assert clause.describe() == {"$or": [{"tags": {"$in": ["a"]}}, {"name": {"$icontains": ["b"]}}]}
