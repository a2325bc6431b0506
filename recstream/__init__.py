"""
Recstream

Recommendation engine fed by user activity events, with a background
training service that publishes new scoring models to running instances.
"""

__version__ = "1.0.0"

from .core.engine import RecommendationEngine
from .core.registry import ModelRegistry
from .ml.training import TrainingPipeline
from .serving.services import RecommendationService, TrainingService
from .storage.cache import RecommendationCache
from .streaming.processor import EventProcessor

__all__ = [
    "RecommendationEngine",
    "ModelRegistry",
    "TrainingPipeline",
    "RecommendationService",
    "TrainingService",
    "RecommendationCache",
    "EventProcessor"
]
