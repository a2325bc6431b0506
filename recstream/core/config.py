"""
Configuration for the recommendation engine and training service
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ValidationError
from .models import ActivityKind


DEFAULT_TRAINING_WEIGHTS = {
    "view": 1.0,
    "add_to_cart": 2.5,
    "purchase": 5.0
}

DEFAULT_TIME_DECAY = 0.9

DAY_SECONDS = 86400


def validate_weights(weights: Any) -> Dict[str, float]:
    """
    Check that weights are a non-empty mapping keyed by known activity kinds

    Returns:
        A plain dict copy with float values

    Raises:
        ValidationError: if the weights are missing or malformed
    """
    if not isinstance(weights, Mapping) or not weights:
        raise ValidationError("Invalid model weights", details={"weights": weights})

    unknown = set(weights) - ActivityKind.values()
    if unknown:
        raise ValidationError(
            f"Unknown activity kinds in weights: {sorted(unknown)}",
            details={"weights": dict(weights)}
        )

    cleaned = {}
    for kind, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(
                f"Weight for {kind} must be numeric",
                details={"weights": dict(weights)}
            )
        cleaned[kind] = float(value)
    return cleaned


def validate_number(name: str, value: Any, integer: bool = False) -> Any:
    """
    Check that an optional numeric field holds a number

    Raises:
        ValidationError: if the value is not numeric (or not an integer when required)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be numeric", details={name: value})
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{name} must be an integer", details={name: value})
        return int(value)
    return float(value)


@dataclass
class TrainingConfig:
    """Configuration for a single training run"""
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TRAINING_WEIGHTS))
    time_decay: float = DEFAULT_TIME_DECAY

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TrainingConfig":
        """Build a config from a request body, filling defaults for missing keys"""
        data = data or {}
        weights = data.get("weights")
        time_decay = data.get("time_decay", data.get("timeDecay"))

        config = cls()
        if weights is not None:
            config.weights = validate_weights(weights)
        if time_decay is not None:
            config.time_decay = validate_number("time_decay", time_decay)
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {"weights": dict(self.weights), "time_decay": self.time_decay}


@dataclass
class Settings:
    """Service-wide settings"""
    # Activity windows
    training_window_days: int = 30
    popularity_window_days: int = 7
    similar_users_window_days: int = 30
    recent_activity_limit: int = 100
    recently_viewed_limit: int = 10
    recommendation_stats_days: int = 7

    # Collaborative filtering
    min_interactions: int = 3
    min_shared_products: int = 2
    similar_users_limit: int = 50
    similarity_min_count: int = 3

    # Validation
    holdout_fraction: float = 0.2
    precision_k: int = 10
    acceptance_precision: float = 0.10
    block_rejected_models: bool = False

    # Scheduling and caching
    retrain_interval_seconds: float = 3600.0
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 10000
    max_job_history: int = 100
    bus_history_limit: int = 1000

    # Collaborators
    redis_url: Optional[str] = None
    database_url: Optional[str] = None
    recommendation_engine_url: Optional[str] = None
    push_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    @property
    def training_window_seconds(self) -> float:
        return self.training_window_days * DAY_SECONDS

    @property
    def popularity_window_seconds(self) -> float:
        return self.popularity_window_days * DAY_SECONDS

    @property
    def similar_users_window_seconds(self) -> float:
        return self.similar_users_window_days * DAY_SECONDS

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ValidationError(f"Unknown settings: {sorted(unknown)}")

        values = {}
        defaults = cls()
        for name, value in data.items():
            values[name] = _coerce(value, getattr(defaults, name))
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> "Settings":
        with open(path, "r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle) or {}
        return cls.from_mapping(document.get("recstream", document))

    @classmethod
    def from_env(cls, prefix: str = "RECSTREAM_", dotenv_path: Optional[str] = None) -> "Settings":
        """Read settings from RECSTREAM_* variables, after loading a .env file"""
        load_dotenv(dotenv_path)

        data = {}
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is not None:
                data[f.name] = raw
        return cls.from_mapping(data)


def _coerce(value: Any, default: Any) -> Any:
    if value is None or not isinstance(value, str):
        return value
    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value
