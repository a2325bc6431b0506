"""
Unit tests for the trainer and profile-based scoring
"""

import dataclasses

import pytest

from recstream.core.config import TrainingConfig
from recstream.core.models import ProductProfile, UserProfile
from recstream.ml.features import extract_features
from recstream.ml.scoring import MODEL_SCORING_REASON, rank_with_model, score_product
from recstream.ml.trainer import Trainer

from .helpers import NOW, FakeClock, row


@pytest.fixture
def features():
    return extract_features([
        row("u1", "p1", "view", category="Books", price=100.0),
        row("u1", "p2", "view", category="Books", price=120.0),
        row("u1", "p2", "add_to_cart", category="Books", price=120.0),
        row("u1", "p2", "purchase", category="Books", price=120.0),
        row("u2", "p3", "view", category="Toys", price=30.0),
        row("u2", "p2", "view", category="Books", price=120.0),
    ])


class TestTrainer:
    """Test cases for Trainer"""

    def test_profiles(self, features):
        model = Trainer(clock=FakeClock()).train(features, {})

        user = model.user_profiles["u1"]
        assert user.view_count == 2
        assert user.cart_count == 1
        assert user.purchase_count == 1
        assert user.engagement_score == 1 * 5 + 1 * 2 + 2
        assert user.preferred_categories == ("Books",)
        assert user.avg_price_range == pytest.approx(110.0)

        product = model.product_profiles["p2"]
        assert product.popularity_score == 2 + 1 * 2 + 1 * 5
        assert product.conversion_rate == pytest.approx(0.5)
        assert product.unique_users == 2

    def test_user_without_priced_views_has_zero_price_range(self):
        features = extract_features([row("u1", "p1", "purchase", category="Books", price=10.0)])

        model = Trainer(clock=FakeClock()).train(features, {})

        assert model.user_profiles["u1"].avg_price_range == 0.0
        assert model.product_profiles["p1"].conversion_rate == 0.0

    def test_config_is_carried_into_model(self, features):
        config = TrainingConfig(weights={"view": 2.0, "purchase": 4.0}, time_decay=0.5)

        model = Trainer(min_interactions=4, clock=FakeClock()).train(features, {("p1", "p2"): 1.0}, config)

        assert dict(model.weights) == {"view": 2.0, "purchase": 4.0}
        assert model.time_decay == 0.5
        assert model.min_interactions == 4
        assert dict(model.similarity) == {("p1", "p2"): 1.0}
        assert model.trained_at == NOW

    def test_versions_unique_with_frozen_clock(self, features):
        """Back-to-back runs in the same millisecond still get distinct, increasing versions"""
        trainer = Trainer(clock=FakeClock())

        versions = [trainer.train(features, {}).version for _ in range(3)]

        assert len(set(versions)) == 3
        millis = [int(v.split(".")[1]) for v in versions]
        assert millis == sorted(millis)
        assert versions[0].startswith("v1.")
        assert versions[2].startswith("v3.")

    def test_trained_at_never_goes_backwards(self, features):
        clock = FakeClock()
        trainer = Trainer(clock=clock)

        first = trainer.train(features, {})
        clock.advance(-60)
        second = trainer.train(features, {})

        assert second.trained_at >= first.trained_at

    def test_model_is_immutable(self, features):
        model = Trainer(clock=FakeClock()).train(features, {})

        with pytest.raises(dataclasses.FrozenInstanceError):
            model.version = "other"
        with pytest.raises(TypeError):
            model.user_profiles["u3"] = model.user_profiles["u1"]


class TestScoring:
    """Test cases for profile-based scoring"""

    def _user(self, categories=("Books",), avg_price=100.0, views=1):
        return UserProfile(
            view_count=views,
            purchase_count=0,
            cart_count=0,
            preferred_categories=tuple(categories),
            avg_price_range=avg_price,
            last_activity=NOW,
            engagement_score=views
        )

    def _product(self, category="Books", price=100.0, popularity=0.0, conversion=0.0):
        return ProductProfile(
            category=category,
            price=price,
            popularity_score=popularity,
            conversion_rate=conversion,
            unique_users=1
        )

    def test_category_and_price_match(self):
        assert score_product(self._user(), self._product()) == pytest.approx(0.5)

    def test_price_outside_band(self):
        assert score_product(self._user(), self._product(price=200.0)) == pytest.approx(0.3)

    def test_popularity_capped(self):
        score = score_product(self._user(categories=()), self._product(price=1000.0, popularity=500))

        assert score == pytest.approx(0.3)

    def test_maximum_score(self):
        score = score_product(self._user(), self._product(popularity=100, conversion=1.0))

        assert score == pytest.approx(1.0)

    def test_rank_with_model_filters_categories(self, features):
        model = Trainer(clock=FakeClock()).train(features, {})

        ranked = rank_with_model("u1", model, limit=10)

        assert {rec.product_id for rec in ranked} == {"p1", "p2"}
        assert [rec.rank for rec in ranked] == [1, 2]
        assert all(rec.reason == MODEL_SCORING_REASON for rec in ranked)
        assert ranked[0].score >= ranked[1].score

    def test_rank_with_model_unknown_user(self, features):
        model = Trainer(clock=FakeClock()).train(features, {})

        assert rank_with_model("nobody", model) == []

    def test_rank_with_model_requires_views(self):
        features = extract_features([row("u1", "p1", "purchase", category="Books", price=10.0)])
        model = Trainer(clock=FakeClock()).train(features, {})

        assert rank_with_model("u1", model) == []
