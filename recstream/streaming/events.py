"""
Event envelope and factories for the message bus
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import orjson

from ..core.models import Activity, ActivityKind, Recommendation


class EventType(Enum):
    """Event types produced and consumed by the engine"""
    USER_VIEWED_PRODUCT = "UserViewedProduct"
    USER_ADDED_TO_CART = "UserAddedToCart"
    USER_PURCHASED_PRODUCT = "UserPurchasedProduct"
    USER_SEARCHED_PRODUCTS = "UserSearchedProducts"
    RECOMMENDATION_GENERATED = "RecommendationGenerated"
    RECOMMENDATION_MODEL_UPDATED = "RecommendationModelUpdated"
    MODEL_TRAINING_STARTED = "ModelTrainingStarted"
    MODEL_TRAINING_FAILED = "ModelTrainingFailed"

    @property
    def channel(self) -> str:
        return f"events:{self.value}"


USER_ACTIVITY_EVENTS = (
    EventType.USER_VIEWED_PRODUCT,
    EventType.USER_ADDED_TO_CART,
    EventType.USER_PURCHASED_PRODUCT,
    EventType.USER_SEARCHED_PRODUCTS,
)


def _event_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class Event:
    """Serialized event envelope"""
    type: EventType
    data: Dict[str, Any]
    aggregate_id: str
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=_event_id)

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    @property
    def user_id(self) -> Optional[str]:
        return self.data.get("user_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "data": self.data,
            "aggregate_id": self.aggregate_id,
            "timestamp": self.timestamp
        }

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            type=EventType(data["type"]),
            data=data.get("data") or {},
            aggregate_id=data.get("aggregate_id", ""),
            timestamp=float(data.get("timestamp", time.time())),
            id=data["id"]
        )

    @classmethod
    def from_json(cls, payload) -> "Event":
        return cls.from_dict(orjson.loads(payload))


class EventFactory:
    """Builders for each event type"""

    @staticmethod
    def user_viewed_product(user_id: str, product_id: str, metadata: Optional[Dict] = None) -> Event:
        return Event(EventType.USER_VIEWED_PRODUCT, {
            "user_id": user_id,
            "product_id": product_id,
            "timestamp": time.time(),
            "metadata": metadata or {}
        }, f"user-{user_id}")

    @staticmethod
    def user_added_to_cart(
        user_id: str,
        product_id: str,
        quantity: int = 1,
        metadata: Optional[Dict] = None
    ) -> Event:
        return Event(EventType.USER_ADDED_TO_CART, {
            "user_id": user_id,
            "product_id": product_id,
            "quantity": quantity,
            "timestamp": time.time(),
            "metadata": metadata or {}
        }, f"user-{user_id}")

    @staticmethod
    def user_purchased_product(
        user_id: str,
        product_id: str,
        quantity: Optional[int] = None,
        price: Optional[float] = None,
        metadata: Optional[Dict] = None
    ) -> Event:
        return Event(EventType.USER_PURCHASED_PRODUCT, {
            "user_id": user_id,
            "product_id": product_id,
            "quantity": quantity,
            "price": price,
            "timestamp": time.time(),
            "metadata": metadata or {}
        }, f"user-{user_id}")

    @staticmethod
    def user_searched_products(
        user_id: str,
        query: Optional[str],
        results: Any = None,
        metadata: Optional[Dict] = None
    ) -> Event:
        return Event(EventType.USER_SEARCHED_PRODUCTS, {
            "user_id": user_id,
            "query": query,
            "results": results,
            "timestamp": time.time(),
            "metadata": metadata or {}
        }, f"user-{user_id}")

    @staticmethod
    def for_activity(activity: Activity) -> Event:
        """Build the user event matching a recorded activity"""
        payload = activity.payload
        if activity.kind is ActivityKind.VIEW:
            return EventFactory.user_viewed_product(activity.user_id, activity.product_id, payload)
        if activity.kind is ActivityKind.ADD_TO_CART:
            return EventFactory.user_added_to_cart(
                activity.user_id, activity.product_id, payload.get("quantity", 1), payload
            )
        if activity.kind is ActivityKind.PURCHASE:
            return EventFactory.user_purchased_product(
                activity.user_id, activity.product_id,
                payload.get("quantity"), payload.get("price"), payload
            )
        return EventFactory.user_searched_products(
            activity.user_id, payload.get("query"), payload.get("results"), payload
        )

    @staticmethod
    def recommendation_generated(
        user_id: str,
        recommendations: Iterable[Recommendation],
        model_version: Optional[str],
        generated_at: float
    ) -> Event:
        return Event(EventType.RECOMMENDATION_GENERATED, {
            "user_id": user_id,
            "recommendations": [rec.to_dict() for rec in recommendations],
            "model": model_version,
            "generated_at": generated_at
        }, f"user-{user_id}")

    @staticmethod
    def model_updated(model_id: str, version: str, metrics: Dict[str, Any]) -> Event:
        return Event(EventType.RECOMMENDATION_MODEL_UPDATED, {
            "model_id": model_id,
            "version": version,
            "metrics": metrics,
            "timestamp": time.time()
        }, "model-training")

    @staticmethod
    def training_started(job_id: str, config: Dict[str, Any]) -> Event:
        return Event(EventType.MODEL_TRAINING_STARTED, {
            "job_id": job_id,
            "config": config,
            "timestamp": time.time()
        }, "model-training")

    @staticmethod
    def training_failed(job_id: str, error: str) -> Event:
        return Event(EventType.MODEL_TRAINING_FAILED, {
            "job_id": job_id,
            "error": error,
            "timestamp": time.time()
        }, "model-training")


def event_types(names: Iterable) -> List[EventType]:
    return [name if isinstance(name, EventType) else EventType(name) for name in names]
