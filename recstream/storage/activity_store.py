"""
Activity Store

Append-only log of user activity plus the product catalog, persisted
recommendation batches and model artifacts that the engine reads and writes.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ..core.models import Activity, ActivityKind, Model, Product, Recommendation, TrainingRow


def empty_recommendation_stats() -> Dict[str, Any]:
    return {
        "total_recommendations": 0,
        "average_score": 0.0,
        "delivered_count": 0,
        "model_version": "N/A"
    }


class ActivityStore(ABC):
    """
    Interface to the activity store collaborator

    Implementations raise DataUnavailable when the backing store cannot be
    reached.
    """

    @abstractmethod
    async def append(self, activity: Activity) -> Activity:
        """Record an activity and return it with its store id"""

    @abstractmethod
    async def recent_for_user(self, user_id: str, limit: int = 100) -> List[Activity]:
        """Most recent activities of a user, newest first"""

    @abstractmethod
    async def activities_since(self, since: float) -> List[Activity]:
        """All activities that occurred after ``since``"""

    @abstractmethod
    async def activities_for_products(
        self,
        product_ids: Iterable[str],
        since: float,
        exclude_user: Optional[str] = None
    ) -> List[Activity]:
        """Activities after ``since`` touching any of ``product_ids``"""

    @abstractmethod
    async def activities_for_users(self, user_ids: Iterable[str]) -> List[Activity]:
        """All activities of the given users"""

    @abstractmethod
    async def product_ids_for_user(self, user_id: str) -> Set[str]:
        """Every product the user ever touched"""

    @abstractmethod
    async def training_rows(self, since: float) -> List[TrainingRow]:
        """Activities after ``since`` joined with product attributes, ordered by user then time"""

    @abstractmethod
    async def products(self, product_ids: Optional[Iterable[str]] = None) -> Dict[str, Product]:
        """Catalog lookup; the whole catalog when ``product_ids`` is None"""

    @abstractmethod
    async def save_recommendations(
        self,
        user_id: str,
        recommendations: Sequence[Recommendation],
        model_version: Optional[str]
    ):
        """Replace the stored recommendation batch of a user"""

    @abstractmethod
    async def recommendation_stats(self, user_id: str, since: float) -> Dict[str, Any]:
        """
        Summary of the user's newest stored batch generated after ``since``

        Returns:
            ``{total_recommendations, average_score, delivered_count, model_version}``;
            zeros and ``"N/A"`` when nothing was stored in the window
        """

    @abstractmethod
    async def activity_summary(self, user_id: str, since: float) -> List[Dict[str, Any]]:
        """Per-kind counts since ``since``, with the average purchase price on purchase rows"""

    @abstractmethod
    async def viewed_products(self, user_id: str, since: float, limit: int = 10) -> List[Dict[str, Any]]:
        """Products the user viewed since ``since``, most viewed first"""

    @abstractmethod
    async def save_model(self, model: Model, metrics: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a trained model artifact with its validation metrics"""

    @abstractmethod
    async def list_models(self) -> List[Dict[str, Any]]:
        """Stored model records, newest first"""

    async def ping(self) -> bool:
        return True

    async def close(self):
        pass


class InMemoryActivityStore(ActivityStore):
    """
    In-process activity store

    Used by tests and the demo, and by single-process deployments that do not
    need durability.
    """

    def __init__(self, max_interactions_per_user: int = 10000):
        self.max_interactions_per_user = max_interactions_per_user

        self.user_activities: Dict[str, List[Activity]] = defaultdict(list)
        self.catalog: Dict[str, Product] = {}
        self.recommendations: Dict[str, List[Dict[str, Any]]] = {}
        self.models: List[Dict[str, Any]] = []

        self._next_id = 1
        self.logger = logging.getLogger(__name__)

    def _all_activities(self) -> List[Activity]:
        return [a for activities in self.user_activities.values() for a in activities]

    async def append(self, activity: Activity) -> Activity:
        stored = Activity(
            user_id=activity.user_id,
            kind=activity.kind,
            product_id=activity.product_id,
            payload=dict(activity.payload),
            occurred_at=activity.occurred_at,
            activity_id=self._next_id
        )
        self._next_id += 1

        activities = self.user_activities[stored.user_id]
        activities.append(stored)
        if len(activities) > self.max_interactions_per_user:
            self.user_activities[stored.user_id] = activities[-self.max_interactions_per_user:]

        self.logger.debug(f"Recorded {stored.kind.value} for user {stored.user_id}")
        return stored

    async def recent_for_user(self, user_id: str, limit: int = 100) -> List[Activity]:
        activities = self.user_activities.get(user_id, [])
        ordered = sorted(activities, key=lambda a: a.occurred_at, reverse=True)
        return ordered[:limit]

    async def activities_since(self, since: float) -> List[Activity]:
        return [a for a in self._all_activities() if a.occurred_at > since]

    async def activities_for_products(
        self,
        product_ids: Iterable[str],
        since: float,
        exclude_user: Optional[str] = None
    ) -> List[Activity]:
        wanted = set(product_ids)
        return [
            a for a in self._all_activities()
            if a.product_id in wanted
            and a.occurred_at > since
            and a.user_id != exclude_user
        ]

    async def activities_for_users(self, user_ids: Iterable[str]) -> List[Activity]:
        result = []
        for user_id in user_ids:
            result.extend(self.user_activities.get(user_id, []))
        return result

    async def product_ids_for_user(self, user_id: str) -> Set[str]:
        return {
            a.product_id for a in self.user_activities.get(user_id, [])
            if a.product_id is not None
        }

    async def training_rows(self, since: float) -> List[TrainingRow]:
        rows = [
            TrainingRow.from_activity(a, self.catalog.get(a.product_id))
            for a in self._all_activities()
            if a.occurred_at > since
        ]
        rows.sort(key=lambda r: (r.user_id, r.occurred_at))
        return rows

    async def products(self, product_ids: Optional[Iterable[str]] = None) -> Dict[str, Product]:
        if product_ids is None:
            return dict(self.catalog)
        return {pid: self.catalog[pid] for pid in product_ids if pid in self.catalog}

    async def save_recommendations(
        self,
        user_id: str,
        recommendations: Sequence[Recommendation],
        model_version: Optional[str]
    ):
        generated_at = time.time()
        self.recommendations[user_id] = [
            {
                "product_id": rec.product_id,
                "score": rec.score,
                "model_version": model_version,
                "generated_at": generated_at
            }
            for rec in recommendations
        ]

    async def recommendation_stats(self, user_id: str, since: float) -> Dict[str, Any]:
        rows = [r for r in self.recommendations.get(user_id, []) if r["generated_at"] > since]
        if not rows:
            return empty_recommendation_stats()
        return {
            "total_recommendations": len(rows),
            "average_score": sum(r["score"] for r in rows) / len(rows),
            "delivered_count": 0,
            "model_version": rows[0]["model_version"]
        }

    async def activity_summary(self, user_id: str, since: float) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = defaultdict(int)
        purchase_prices: List[float] = []
        for activity in self.user_activities.get(user_id, []):
            if activity.occurred_at <= since:
                continue
            counts[activity.kind.value] += 1
            price = activity.payload.get("price")
            if activity.kind is ActivityKind.PURCHASE and isinstance(price, (int, float)):
                purchase_prices.append(float(price))

        summary = []
        for kind, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
            avg_purchase_value = None
            if kind == ActivityKind.PURCHASE.value and purchase_prices:
                avg_purchase_value = sum(purchase_prices) / len(purchase_prices)
            summary.append({"activity_type": kind, "count": count, "avg_purchase_value": avg_purchase_value})
        return summary

    async def viewed_products(self, user_id: str, since: float, limit: int = 10) -> List[Dict[str, Any]]:
        views: Dict[str, int] = defaultdict(int)
        for activity in self.user_activities.get(user_id, []):
            if activity.kind is ActivityKind.VIEW and activity.product_id and activity.occurred_at > since:
                views[activity.product_id] += 1
        ranked = sorted(views.items(), key=lambda item: (-item[1], item[0]))
        return [{"product_id": pid, "view_count": count} for pid, count in ranked[:limit]]

    async def save_model(self, model: Model, metrics: Dict[str, Any]) -> Dict[str, Any]:
        record = {
            "id": f"model-{model.version}",
            "version": model.version,
            "model_data": model.to_dict(),
            "metrics": dict(metrics),
            "status": "completed",
            "created_at": time.time()
        }
        self.models.append(record)
        return record

    async def list_models(self) -> List[Dict[str, Any]]:
        return sorted(self.models, key=lambda r: r["created_at"], reverse=True)

    def bulk_load(self, products: Iterable[Product] = (), activities: Iterable[Activity] = ()):
        """
        Load catalog entries and historical activity without going through append()

        Args:
            products: Catalog entries
            activities: Historical activities
        """
        for product in products:
            self.catalog[product.product_id] = product

        count = 0
        for activity in activities:
            self.user_activities[activity.user_id].append(Activity(
                user_id=activity.user_id,
                kind=activity.kind,
                product_id=activity.product_id,
                payload=dict(activity.payload),
                occurred_at=activity.occurred_at,
                activity_id=self._next_id
            ))
            self._next_id += 1
            count += 1

        self.logger.info(f"Bulk loaded {len(self.catalog)} products and {count} activities")
