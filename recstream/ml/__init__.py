"""Model training: features, similarity, profiles and validation"""

from .features import extract_features
from .similarity import build_similarity
from .trainer import Trainer
from .validation import Validator

__all__ = ["extract_features", "build_similarity", "Trainer", "Validator"]
