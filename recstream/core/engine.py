"""
Main Recommendation Engine

Generates ranked product recommendations for a user from the currently
served model, falling back to popular products for cold-start users.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import Settings
from .exceptions import DataUnavailable
from .models import Activity, ActivityKind, Model, Recommendation, RecommendationResult
from .registry import ModelRegistry
from ..ml.scoring import rank_with_model
from ..storage.activity_store import ActivityStore
from ..streaming.bus import MessageBus
from ..streaming.events import EventFactory


# Per-row scores for the collaborative ranking
ACTIVITY_SCORES = {
    ActivityKind.PURCHASE: 5,
    ActivityKind.ADD_TO_CART: 3,
    ActivityKind.VIEW: 1
}

# Per-row weights for the popularity ranking
POPULARITY_WEIGHTS = {
    ActivityKind.VIEW: 1,
    ActivityKind.ADD_TO_CART: 2,
    ActivityKind.PURCHASE: 5
}

POPULAR_REASON = "popular_products"
COLLABORATIVE_REASON = "collaborative_filtering"
POPULAR_CONFIDENCE = 0.5


@dataclass(frozen=True)
class SimilarUser:
    user_id: str
    common_products: int


class RecommendationEngine:
    """
    Recommendation generator
    """

    def __init__(
        self,
        store: ActivityStore,
        registry: ModelRegistry,
        bus: Optional[MessageBus] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the recommendation engine

        Args:
            store: Activity store collaborator
            registry: Holder of the served model
            bus: Message bus for RecommendationGenerated events
            settings: Engine settings
            clock: Time source, epoch seconds
        """
        self.store = store
        self.registry = registry
        self.bus = bus
        self.settings = settings or Settings()
        self.clock = clock or time.time
        self.logger = logging.getLogger(__name__)

        # Performance tracking
        self.request_count = 0
        self.total_latency = 0.0
        self.error_count = 0
        self.start_time = time.time()

    async def generate(self, user_id: str, limit: int = 10) -> RecommendationResult:
        """
        Generate recommendations for a user

        Failures are reported in the result rather than raised.

        Args:
            user_id: User identifier
            limit: Number of recommendations to return

        Returns:
            Recommendation result with the model version that produced it
        """
        start_time = time.time()
        self.request_count += 1

        try:
            model = self.registry.current() or self.registry.initialize_default()
            now = self.clock()

            behavior = await self.store.recent_for_user(user_id, limit=self.settings.recent_activity_limit)
            if len(behavior) < model.min_interactions:
                # Cold start: served as-is, nothing persisted or announced
                return RecommendationResult(
                    user_id=user_id,
                    recommendations=tuple(await self.popular_products(limit, now=now)),
                    model_version=model.version,
                    generated_at=now
                )

            similar_users = await self.find_similar_users(user_id, behavior, now=now)
            recommendations = await self.collaborative_recommendations(
                user_id, similar_users, limit, now=now
            )

            await self.store.save_recommendations(user_id, recommendations, model.version)

            result = RecommendationResult(
                user_id=user_id,
                recommendations=tuple(recommendations),
                model_version=model.version,
                generated_at=now
            )
            await self._publish_generated(result)
            return result

        except Exception as e:
            self.error_count += 1
            self.logger.error(f"Error generating recommendations for user {user_id}: {e}")
            return RecommendationResult.failure(user_id, e, generated_at=self.clock())
        finally:
            self.total_latency += time.time() - start_time

    async def _publish_generated(self, result: RecommendationResult):
        if self.bus is None:
            return
        event = EventFactory.recommendation_generated(
            result.user_id, result.recommendations, result.model_version, result.generated_at
        )
        try:
            await self.bus.publish(event)
        except DataUnavailable as e:
            self.logger.warning(f"RecommendationGenerated not published for user {result.user_id}: {e}")

    async def popular_products(self, limit: int, now: Optional[float] = None) -> List[Recommendation]:
        """
        Rank products by weighted activity over the popularity window

        Score is ``views + 2 * carts + 5 * purchases``; ties go to the product
        with more interactions.
        """
        now = self.clock() if now is None else now
        activities = await self.store.activities_since(now - self.settings.popularity_window_seconds)

        scores: Dict[str, int] = defaultdict(int)
        counts: Dict[str, int] = defaultdict(int)
        for activity in activities:
            if activity.product_id is None:
                continue
            scores[activity.product_id] += POPULARITY_WEIGHTS.get(activity.kind, 0)
            counts[activity.product_id] += 1

        ranked = sorted(scores, key=lambda pid: (scores[pid], counts[pid]), reverse=True)

        return [
            Recommendation(
                product_id=product_id,
                score=float(scores[product_id]),
                confidence=POPULAR_CONFIDENCE,
                reason=POPULAR_REASON,
                rank=i + 1
            )
            for i, product_id in enumerate(ranked[:limit])
        ]

    async def find_similar_users(
        self,
        user_id: str,
        behavior: Sequence[Activity],
        now: Optional[float] = None
    ) -> List[SimilarUser]:
        """
        Find users sharing enough products with the target user

        Args:
            user_id: Target user
            behavior: Target user's recent activity

        Returns:
            Similar users, most shared products first
        """
        now = self.clock() if now is None else now
        user_products = {a.product_id for a in behavior if a.product_id is not None}
        if not user_products:
            return []

        activities = await self.store.activities_for_products(
            user_products,
            since=now - self.settings.similar_users_window_seconds,
            exclude_user=user_id
        )

        shared: Dict[str, set] = defaultdict(set)
        for activity in activities:
            shared[activity.user_id].add(activity.product_id)

        similar = [
            SimilarUser(other, len(products))
            for other, products in shared.items()
            if len(products) >= self.settings.min_shared_products
        ]
        similar.sort(key=lambda u: u.common_products, reverse=True)
        return similar[:self.settings.similar_users_limit]

    async def collaborative_recommendations(
        self,
        user_id: str,
        similar_users: Sequence[SimilarUser],
        limit: int,
        now: Optional[float] = None
    ) -> List[Recommendation]:
        """
        Rank products that similar users interacted with and the target user has not

        Products are ordered by mean per-row score (purchase 5, cart 3, view 1),
        then by interaction frequency. Without similar users this falls back to
        popular products.
        """
        if not similar_users:
            return await self.popular_products(limit, now=now)

        seen = await self.store.product_ids_for_user(user_id)
        activities = await self.store.activities_for_users([u.user_id for u in similar_users])

        row_scores: Dict[str, List[int]] = defaultdict(list)
        for activity in activities:
            if activity.product_id is None or activity.product_id in seen:
                continue
            row_scores[activity.product_id].append(ACTIVITY_SCORES.get(activity.kind, 0))

        ranked: List[Tuple[str, float, int]] = [
            (product_id, float(np.mean(scores)), len(scores))
            for product_id, scores in row_scores.items()
        ]
        ranked.sort(key=lambda x: (x[1], x[2]), reverse=True)

        similar_count = len(similar_users)
        return [
            Recommendation(
                product_id=product_id,
                score=score,
                confidence=min(frequency / similar_count, 1.0),
                reason=COLLABORATIVE_REASON,
                rank=i + 1
            )
            for i, (product_id, score, frequency) in enumerate(ranked[:limit])
        ]

    def rank_with_model(self, user_id: str, model: Model, limit: int = 10) -> List[Recommendation]:
        """Rank candidates for a user from a candidate model's trained profiles, before it is served"""
        return rank_with_model(user_id, model, limit)

    def get_statistics(self) -> Dict[str, Any]:
        """Get engine performance statistics"""
        uptime = time.time() - self.start_time
        avg_latency = self.total_latency / max(1, self.request_count) * 1000

        return {
            "uptime_seconds": uptime,
            "total_requests": self.request_count,
            "average_latency_ms": avg_latency,
            "error_rate": self.error_count / max(1, self.request_count),
            "model_version": self.registry.current_version
        }
