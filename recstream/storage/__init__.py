"""Storage layer for the recommendation engine"""

from .activity_store import ActivityStore, InMemoryActivityStore
from .cache import RecommendationCache
from .postgres import PostgresActivityStore

__all__ = ["ActivityStore", "InMemoryActivityStore", "RecommendationCache", "PostgresActivityStore"]
