"""
Model trainer

Turns extracted features and product similarity into an immutable Model.
"""

import logging
import time
from typing import Callable, Dict, Mapping, Optional

from ..core.config import TrainingConfig
from ..core.models import (
    Model, ProductPair, ProductProfile, ProductVector, UserProfile, UserVector
)
from .features import ExtractedFeatures


MAX_PREFERRED_CATEGORIES = 5


def build_user_profile(vector: UserVector) -> UserProfile:
    return UserProfile(
        view_count=len(vector.viewed),
        purchase_count=len(vector.purchased),
        cart_count=len(vector.carted),
        preferred_categories=tuple(vector.top_categories(MAX_PREFERRED_CATEGORIES)),
        avg_price_range=vector.avg_viewed_price if vector.price_samples else 0.0,
        last_activity=vector.last_activity,
        engagement_score=len(vector.purchased) * 5 + len(vector.carted) * 2 + len(vector.viewed)
    )


def build_product_profile(vector: ProductVector) -> ProductProfile:
    return ProductProfile(
        category=vector.category,
        price=vector.price or 0.0,
        popularity_score=vector.view_count + vector.cart_count * 2 + vector.purchase_count * 5,
        conversion_rate=(
            vector.purchase_count / vector.view_count if vector.view_count > 0 else 0.0
        ),
        unique_users=len(vector.unique_users)
    )


class Trainer:
    """
    Produces new Model versions

    Versions have the form ``v<sequence>.<epoch millis>`` and are strictly
    increasing for a given trainer; ``trained_at`` never goes backwards.
    """

    def __init__(self, min_interactions: int = 3, clock: Optional[Callable[[], float]] = None):
        self.min_interactions = min_interactions
        self.clock = clock or time.time
        self.logger = logging.getLogger(__name__)

        self._sequence = 0
        self._last_millis = 0
        self._last_trained_at = 0.0

    def next_version(self) -> str:
        self._sequence += 1
        millis = max(int(self.clock() * 1000), self._last_millis + 1)
        self._last_millis = millis
        return f"v{self._sequence}.{millis}"

    def train(
        self,
        features: ExtractedFeatures,
        similarity: Mapping[ProductPair, float],
        config: Optional[TrainingConfig] = None
    ) -> Model:
        """
        Build a new Model

        Args:
            features: Output of the feature extractor
            similarity: Output of the similarity builder
            config: Weights and time decay for this run

        Returns:
            A freshly versioned, immutable Model
        """
        config = config or TrainingConfig()

        user_profiles: Dict[str, UserProfile] = {
            user_id: build_user_profile(vector)
            for user_id, vector in features.user_vectors.items()
        }
        product_profiles: Dict[str, ProductProfile] = {
            product_id: build_product_profile(vector)
            for product_id, vector in features.product_vectors.items()
        }

        trained_at = max(self.clock(), self._last_trained_at)
        self._last_trained_at = trained_at

        model = Model(
            version=self.next_version(),
            weights=dict(config.weights),
            user_profiles=user_profiles,
            product_profiles=product_profiles,
            similarity=similarity,
            time_decay=config.time_decay,
            min_interactions=self.min_interactions,
            trained_at=trained_at
        )

        self.logger.info(
            f"Trained model {model.version}: {len(user_profiles)} users, "
            f"{len(product_profiles)} products, {len(similarity)} similar pairs"
        )
        return model
