"""
Tests for RelevanceRanker scoring and sort overrides.
"""
import pytest

from conftest import make_item

from artisan_search.models import ParsedQuery, PriceRange, RankedItem
from artisan_search.ranker import RelevanceRanker


@pytest.fixture
def ranker() -> RelevanceRanker:
    return RelevanceRanker()


class TestScore:
    def test_weights(self, ranker):
        item = make_item(
            "a",
            "Blue Vase",
            description="A blue vase",
            category="Pottery",
            price=900,
            views=100,
            likes=10,
            rating=4.0,
            is_customizable=True,
        )
        parsed = ParsedQuery(
            keywords=("blue", "vase"),
            category="Pottery",
            price_range=PriceRange(max=1000.0),
            customizable=True,
        )
        # 2x10 name + 2x5 description + 15 category + 8 price + 1 views + 1 likes + 8 rating + 5 customizable
        assert ranker.score(item, parsed) == pytest.approx(68.0)

    def test_open_ended_price_range_uses_defaults(self, ranker):
        item = make_item("a", "Vase", price=50000, rating=0.0)
        assert ranker.score(item, ParsedQuery(price_range=PriceRange(min=100.0))) == pytest.approx(8.0)

    def test_score_is_never_negative(self, ranker):
        item = make_item("a", "Vase", views=-500, likes=-10, rating=-3.0)
        assert ranker.score(item, ParsedQuery()) == 0.0


class TestRank:
    def test_category_match_breaks_tie(self, ranker):
        jewelry = make_item("j", "Blue Charm", category="Jewelry")
        pottery = make_item("p", "Blue Charm", category="Pottery")
        parsed = ParsedQuery(keywords=("blue",), category="Pottery")

        ranked = ranker.rank([jewelry, pottery], parsed)

        assert [entry.item.id for entry in ranked] == ["p", "j"]
        assert ranked[0].relevance_score - ranked[1].relevance_score == pytest.approx(15.0)

    def test_ties_keep_candidate_order(self, ranker):
        items = [make_item(str(i), "Same") for i in range(5)]
        ranked = ranker.rank(items, ParsedQuery())
        assert [entry.item.id for entry in ranked] == ["0", "1", "2", "3", "4"]


class TestSort:
    @pytest.fixture
    def ranked(self):
        return [
            RankedItem(make_item("a", "A", price=300, views=10, likes=1, rating=4.0, created_at="2024-01-01"), 30.0),
            RankedItem(make_item("b", "B", price=100, views=50, likes=5, rating=4.9, created_at="2024-03-01"), 20.0),
            RankedItem(make_item("c", "C", price=200, views=5, likes=0, rating=3.0, created_at="2024-02-01"), 10.0),
        ]

    @pytest.mark.parametrize(
        "sort_key, expected",
        [
            ("relevance", ["a", "b", "c"]),
            ("price-asc", ["b", "c", "a"]),
            ("price-desc", ["a", "c", "b"]),
            ("newest", ["b", "c", "a"]),
            ("popularity", ["b", "a", "c"]),
            ("rating", ["b", "a", "c"]),
        ],
    )
    def test_sort_keys(self, ranker, ranked, sort_key, expected):
        assert [entry.item.id for entry in ranker.sort(ranked, sort_key)] == expected

    def test_unknown_sort_key_keeps_relevance_order(self, ranker, ranked):
        assert [entry.item.id for entry in ranker.sort(ranked, "cheapest-first")] == ["a", "b", "c"]

    def test_price_sort_is_stable(self, ranker):
        ranked = [RankedItem(make_item(str(i), "Same", price=100), float(i)) for i in range(4)]
        assert [entry.item.id for entry in ranker.sort(ranked, "price-asc")] == ["0", "1", "2", "3"]
