"""
Data Models for the Recommendation Engine
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Mapping, Set, Tuple, Union
import time
from enum import Enum
from types import MappingProxyType


ProductPair = Tuple[str, str]


class ActivityKind(Enum):
    """Kinds of recorded user activity"""
    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"
    SEARCH = "search"

    @classmethod
    def values(cls) -> Set[str]:
        return {kind.value for kind in cls}


class JobStatus(Enum):
    """Training job lifecycle states"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Product:
    """Catalog entry"""
    product_id: str
    name: str
    category: Optional[str] = None
    price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.product_id,
            "name": self.name,
            "category": self.category,
            "price": self.price
        }


@dataclass(frozen=True)
class Activity:
    """A single recorded user activity; immutable once recorded"""
    user_id: str
    kind: ActivityKind
    product_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: float = field(default_factory=time.time)
    activity_id: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", ActivityKind(self.kind))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.activity_id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "activity_type": self.kind.value,
            "activity_data": self.payload,
            "timestamp": self.occurred_at
        }


@dataclass(frozen=True)
class TrainingRow:
    """Activity joined with the product attributes the trainer needs"""
    user_id: str
    kind: ActivityKind
    occurred_at: float
    product_id: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None

    @classmethod
    def from_activity(cls, activity: Activity, product: Optional[Product] = None) -> "TrainingRow":
        return cls(
            user_id=activity.user_id,
            kind=activity.kind,
            occurred_at=activity.occurred_at,
            product_id=activity.product_id,
            category=product.category if product else None,
            price=product.price if product else None
        )


@dataclass
class UserVector:
    """Per-user aggregates over one training window"""
    viewed: Set[str] = field(default_factory=set)
    purchased: Set[str] = field(default_factory=set)
    carted: Set[str] = field(default_factory=set)
    category_counts: Dict[str, int] = field(default_factory=dict)
    avg_viewed_price: float = 0.0
    price_samples: int = 0
    last_activity: Optional[float] = None

    def add_viewed_price(self, price: float):
        self.price_samples += 1
        self.avg_viewed_price += (price - self.avg_viewed_price) / self.price_samples

    def top_categories(self, limit: int = 5) -> List[str]:
        # sorted() is stable, so equal counts keep first-occurrence order
        ranked = sorted(self.category_counts.items(), key=lambda x: x[1], reverse=True)
        return [category for category, _ in ranked[:limit]]


@dataclass
class ProductVector:
    """Per-product aggregates over one training window"""
    category: Optional[str] = None
    price: Optional[float] = None
    view_count: int = 0
    cart_count: int = 0
    purchase_count: int = 0
    unique_users: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class UserProfile:
    """Trained per-user profile"""
    view_count: int
    purchase_count: int
    cart_count: int
    preferred_categories: Tuple[str, ...]
    avg_price_range: float
    last_activity: Optional[float]
    engagement_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view_count": self.view_count,
            "purchase_count": self.purchase_count,
            "cart_count": self.cart_count,
            "preferred_categories": list(self.preferred_categories),
            "avg_price_range": self.avg_price_range,
            "last_activity": self.last_activity,
            "engagement_score": self.engagement_score
        }


@dataclass(frozen=True)
class ProductProfile:
    """Trained per-product profile"""
    category: Optional[str]
    price: float
    popularity_score: float
    conversion_rate: float
    unique_users: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "price": self.price,
            "popularity_score": self.popularity_score,
            "conversion_rate": self.conversion_rate,
            "unique_users": self.unique_users
        }


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Model:
    """
    Immutable scoring model artifact

    A training run produces a new Model; nothing edits one in place. The
    profile and similarity mappings are read-only views over private copies.
    """
    version: str
    weights: Mapping[str, float]
    model_type: str = "collaborative_filtering"
    user_profiles: Mapping[str, UserProfile] = field(default_factory=dict)
    product_profiles: Mapping[str, ProductProfile] = field(default_factory=dict)
    similarity: Mapping[ProductPair, float] = field(default_factory=dict)
    time_decay: float = 0.9
    min_interactions: int = 3
    trained_at: float = field(default_factory=time.time)

    def __post_init__(self):
        for name in ("weights", "user_profiles", "product_profiles", "similarity"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    def to_payload(self) -> Dict[str, Any]:
        """Body of the cross-service model push"""
        return {
            "version": self.version,
            "type": self.model_type,
            "weights": dict(self.weights),
            "time_decay": self.time_decay,
            "min_interactions": self.min_interactions
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_payload()
        data.update({
            "trained_at": self.trained_at,
            "user_profiles": {uid: p.to_dict() for uid, p in self.user_profiles.items()},
            "product_profiles": {pid: p.to_dict() for pid, p in self.product_profiles.items()},
            "similarity": [[a, b, strength] for (a, b), strength in self.similarity.items()]
        })
        return data


@dataclass
class TrainingJob:
    """Training job; lifecycle owned by the scheduler"""
    job_id: str
    config: Dict[str, Any]
    status: JobStatus = JobStatus.QUEUED
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    error: Optional[str] = None
    model_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.job_id,
            "config": self.config,
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error": self.error,
            "model_version": self.model_version
        }


@dataclass(frozen=True)
class Recommendation:
    """Recommendation result model"""
    product_id: str
    score: float
    confidence: float
    reason: str
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "score": self.score,
            "confidence": self.confidence,
            "reason": self.reason,
            "rank": self.rank
        }


@dataclass(frozen=True)
class RecommendationResult:
    """Response of the recommendation query surface"""
    user_id: str
    recommendations: Tuple[Recommendation, ...] = ()
    model_version: Optional[str] = None
    generated_at: float = field(default_factory=time.time)
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failure(cls, user_id: str, error: Union[str, Exception], generated_at: Optional[float] = None):
        return cls(
            user_id=user_id,
            generated_at=generated_at if generated_at is not None else time.time(),
            success=False,
            error=str(error)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "user_id": self.user_id,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "model_version": self.model_version,
            "generated_at": self.generated_at
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class CacheEntry:
    """One memoized recommendation result"""
    key: Tuple[str, int]
    result: RecommendationResult
    inserted_at: float
