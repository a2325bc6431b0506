"""
Unit tests for feature extraction
"""

import pytest

from recstream.ml.features import extract_features

from .helpers import NOW, row


class TestExtractFeatures:
    """Test cases for extract_features"""

    def test_views_build_running_price_average(self):
        """Viewed prices average into avg_viewed_price"""
        features = extract_features([
            row("u1", "p1", "view", price=100.0),
            row("u1", "p2", "view", price=200.0),
            row("u1", "p3", "view"),
        ])

        vector = features.user_vectors["u1"]
        assert vector.viewed == {"p1", "p2", "p3"}
        assert vector.avg_viewed_price == pytest.approx(150.0)
        assert vector.price_samples == 2

    def test_kinds_route_to_sets_and_counters(self):
        features = extract_features([
            row("u1", "p1", "view"),
            row("u1", "p1", "add_to_cart"),
            row("u1", "p1", "purchase"),
            row("u2", "p1", "view"),
        ])

        user = features.user_vectors["u1"]
        assert user.carted == {"p1"}
        assert user.purchased == {"p1"}

        product = features.product_vectors["p1"]
        assert product.view_count == 2
        assert product.cart_count == 1
        assert product.purchase_count == 1
        assert product.unique_users == {"u1", "u2"}
        assert features.row_count == 4

    def test_rows_without_product_only_touch_user_aggregates(self):
        """Searches update last_activity and categories but no product vectors"""
        features = extract_features([
            row("u1", "p1", "view", occurred_at=NOW - 10, category="Books"),
            row("u1", None, "search", occurred_at=NOW, category="Books"),
        ])

        vector = features.user_vectors["u1"]
        assert vector.last_activity == NOW
        assert vector.category_counts == {"Books": 2}
        assert vector.viewed == {"p1"}
        assert list(features.product_vectors) == ["p1"]

    def test_top_categories_break_ties_by_first_occurrence(self):
        features = extract_features([
            row("u1", "p1", category="Toys"),
            row("u1", "p2", category="Books"),
            row("u1", "p3", category="Books"),
            row("u1", "p4", category="Toys"),
            row("u1", "p5", category="Music"),
        ])

        assert features.user_vectors["u1"].top_categories() == ["Toys", "Books", "Music"]

    def test_top_categories_capped(self):
        rows = [row("u1", f"p{i}", category=f"c{i}") for i in range(8)]
        features = extract_features(rows)

        assert len(features.user_vectors["u1"].top_categories(5)) == 5

    def test_product_keeps_first_seen_attributes(self):
        features = extract_features([
            row("u1", "p1", category="Books", price=10.0),
            row("u2", "p1", category="Books", price=10.0),
        ])

        product = features.product_vectors["p1"]
        assert product.category == "Books"
        assert product.price == 10.0

    def test_empty_input(self):
        features = extract_features([])

        assert features.user_vectors == {}
        assert features.product_vectors == {}
        assert features.row_count == 0
