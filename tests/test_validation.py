"""
Unit tests for held-out precision validation
"""

import pytest

from recstream.core.models import Model, Recommendation
from recstream.ml.features import extract_features
from recstream.ml.similarity import build_similarity
from recstream.ml.trainer import Trainer
from recstream.ml.validation import Validator, split_holdout

from .helpers import FakeClock, row


def _recommend(*product_ids):
    def ranker(user_id, model, k):
        return [
            Recommendation(product_id=pid, score=1.0, confidence=1.0, reason="test", rank=i + 1)
            for i, pid in enumerate(product_ids[:k])
        ]
    return ranker


@pytest.fixture
def model():
    return Model(version="v-test", weights={"view": 1.0}, product_profiles={})


class TestSplitHoldout:
    """Test cases for split_holdout"""

    def test_front_slice_is_held_out(self):
        rows = [row(f"u{i}", "p1") for i in range(10)]

        held_out, remaining = split_holdout(rows, 0.2)

        assert held_out == rows[:2]
        assert remaining == rows[2:]

    def test_size_is_floored(self):
        rows = [row(f"u{i}", "p1") for i in range(19)]

        held_out, remaining = split_holdout(rows, 0.2)

        assert len(held_out) == 3
        assert len(remaining) == 16

    def test_small_inputs_hold_out_nothing(self):
        rows = [row("u1", "p1"), row("u1", "p2")]

        held_out, remaining = split_holdout(rows, 0.2)

        assert held_out == []
        assert remaining == rows


class TestValidator:
    """Test cases for Validator"""

    def test_hit_counts_toward_precision(self, model):
        rows = [row("u1", "p1", "purchase"), row("u2", "p2", "purchase")] + [row("u3", "p3")] * 8
        validator = Validator(ranker=_recommend("p1"))

        report = validator.validate(model, rows)

        assert report.purchases_tested == 2
        assert report.precision == pytest.approx(0.5)
        assert report.accepted
        assert report.test_data_size == 2
        assert report.training_data_size == 8

    def test_only_purchases_are_tested(self, model):
        rows = [row("u1", "p1", "view"), row("u1", "p1", "add_to_cart")] + [row("u3", "p3")] * 8
        validator = Validator(ranker=_recommend("p1"))

        report = validator.validate(model, rows)

        assert report.purchases_tested == 0
        assert report.precision == 0.0
        assert not report.accepted

    def test_precision_must_exceed_threshold(self, model):
        rows = [row("u1", "p1", "purchase")] + [row("u2", "p2", "purchase")] * 9 + [row("u3", "p3")] * 40
        validator = Validator(ranker=_recommend("p1"), min_precision=0.10)

        report = validator.validate(model, rows)

        assert report.precision == pytest.approx(0.1)
        assert not report.accepted

    def test_metrics_are_rounded(self, model):
        rows = [row("u1", "p1", "purchase")] + [row("u2", "p2", "purchase")] * 2 + [row("u3", "p3")] * 12
        validator = Validator(ranker=_recommend("p1"))

        report = validator.validate(model, rows)

        assert report.precision == 0.333
        assert set(report.metrics) == {
            "precision", "coverage", "model_size", "training_data_size", "test_data_size"
        }

    def test_coverage_and_model_size(self):
        rows = [row("u1", "p1", "purchase", category="Books", price=1.0)] + [
            row("u2", f"p{i}", "view", category="Books", price=1.0) for i in range(2, 6)
        ]
        model = Trainer(clock=FakeClock()).train(extract_features(rows), build_similarity(rows))

        report = Validator(holdout_fraction=0.2).validate(model, rows)

        assert report.model_size == 2 + 5
        assert report.purchases_tested == 1
        assert report.coverage == pytest.approx(round(5 / 6, 3))

    def test_precision_within_unit_interval(self, demo_rows):
        model = Trainer(clock=FakeClock()).train(extract_features(demo_rows), build_similarity(demo_rows))

        report = Validator().validate(model, demo_rows)

        assert 0.0 <= report.precision <= 1.0
        assert report.test_data_size == 3
