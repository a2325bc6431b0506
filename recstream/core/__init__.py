"""Core recommendation engine components"""

from .exceptions import DataUnavailable, RecstreamError, TrainingFailure, ValidationError
from .models import Activity, ActivityKind, Model, Product, Recommendation, RecommendationResult
from .registry import ModelRegistry

__all__ = [
    "RecstreamError", "ValidationError", "DataUnavailable", "TrainingFailure",
    "Activity", "ActivityKind", "Model", "Product", "Recommendation", "RecommendationResult",
    "ModelRegistry"
]
