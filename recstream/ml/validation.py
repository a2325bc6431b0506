"""
Held-out precision validation for candidate models
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, Sequence

from ..core.models import ActivityKind, Model, Recommendation, TrainingRow
from .scoring import rank_with_model


Ranker = Callable[[str, Model, int], List[Recommendation]]


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating one candidate model"""
    precision: float
    coverage: float
    model_size: int
    training_data_size: int
    test_data_size: int
    purchases_tested: int
    accepted: bool

    @property
    def metrics(self) -> Dict[str, Any]:
        return {
            "precision": self.precision,
            "coverage": self.coverage,
            "model_size": self.model_size,
            "training_data_size": self.training_data_size,
            "test_data_size": self.test_data_size
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.metrics
        data["purchases_tested"] = self.purchases_tested
        data["accepted"] = self.accepted
        return data


def split_holdout(rows: Sequence[TrainingRow], fraction: float = 0.2):
    """
    Split rows into (held_out, remaining)

    The held-out slice is the first ``floor(len(rows) * fraction)`` rows of the
    user/time ordered sequence, not a time-based tail.
    """
    test_size = math.floor(len(rows) * fraction)
    return list(rows[:test_size]), list(rows[test_size:])


class Validator:
    """Measures precision@k of a candidate model on held-out purchases"""

    def __init__(
        self,
        ranker: Ranker = rank_with_model,
        k: int = 10,
        holdout_fraction: float = 0.2,
        min_precision: float = 0.10
    ):
        self.ranker = ranker
        self.k = k
        self.holdout_fraction = holdout_fraction
        self.min_precision = min_precision
        self.logger = logging.getLogger(__name__)

    def validate(self, model: Model, rows: Sequence[TrainingRow]) -> ValidationReport:
        """
        Validate a candidate model

        Args:
            model: Candidate model
            rows: The training rows, ordered by user then time

        Returns:
            Validation report; ``accepted`` is true only when precision
            exceeds the minimum
        """
        held_out, remaining = split_holdout(rows, self.holdout_fraction)

        hits = 0
        tested = 0
        for row in held_out:
            if row.kind is not ActivityKind.PURCHASE:
                continue
            recommended = self.ranker(row.user_id, model, self.k)
            if any(rec.product_id == row.product_id for rec in recommended):
                hits += 1
            tested += 1

        precision = hits / tested if tested > 0 else 0.0

        product_count = len(model.product_profiles)
        coverage_base = product_count + tested
        coverage = product_count / coverage_base if coverage_base > 0 else 0.0

        report = ValidationReport(
            precision=round(precision, 3),
            coverage=round(coverage, 3),
            model_size=len(model.user_profiles) + product_count,
            training_data_size=len(remaining),
            test_data_size=len(held_out),
            purchases_tested=tested,
            accepted=precision > self.min_precision
        )

        if report.accepted:
            self.logger.info(f"Model {model.version} accepted: precision={report.precision}")
        else:
            self.logger.warning(
                f"Model {model.version} below precision threshold: "
                f"{report.precision} <= {self.min_precision} ({tested} purchases tested)"
            )
        return report
