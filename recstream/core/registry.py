"""
Model Registry

Holds the currently served Model behind a single replaceable reference.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .config import validate_number, validate_weights
from .exceptions import ValidationError
from .models import Model


DEFAULT_MODEL_VERSION = "v1.0"

DEFAULT_MODEL_WEIGHTS = {
    "view": 1.0,
    "add_to_cart": 2.0,
    "purchase": 5.0,
    "search": 0.5
}


def default_model() -> Model:
    return Model(
        version=DEFAULT_MODEL_VERSION,
        weights=DEFAULT_MODEL_WEIGHTS,
        time_decay=0.9,
        min_interactions=3
    )


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish call"""
    version: str
    swapped: bool
    previous_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "version": self.version,
            "swapped": self.swapped,
            "previous_version": self.previous_version
        }


class ModelRegistry:
    """
    Single-slot holder for the served Model

    The slot is only ever replaced by assigning a whole, already validated
    Model. A caller that fetched the previous Model keeps using it until it
    calls current() again.
    """

    def __init__(self, max_history: int = 50):
        self._current: Optional[Model] = None
        self._history: List[Dict[str, Any]] = []
        self.max_history = max_history
        self.logger = logging.getLogger(__name__)

    def current(self) -> Optional[Model]:
        return self._current

    @property
    def current_version(self) -> Optional[str]:
        model = self._current
        return model.version if model else None

    def initialize_default(self) -> Model:
        """Install the default model when nothing has been published yet"""
        if self._current is None:
            self._swap(default_model(), source="default")
            self.logger.info(f"Recommendation model initialized: {DEFAULT_MODEL_VERSION}")
        return self._current

    def publish(self, candidate: Model, source: str = "local") -> PublishResult:
        """
        Validate a candidate and make it the current model

        Args:
            candidate: Model to serve
            source: Where the candidate came from, for the version history

        Returns:
            Publish result; ``swapped`` is false when the version is already served

        Raises:
            ValidationError: if the candidate is malformed; the current model is kept
        """
        self.validate(candidate)

        previous = self._current
        if previous is not None and previous.version == candidate.version:
            self.logger.info(f"Model {candidate.version} already current, nothing to swap")
            return PublishResult(version=candidate.version, swapped=False, previous_version=previous.version)

        self._swap(candidate, source=source)
        self.logger.info(
            f"Model updated successfully to version: {candidate.version} "
            f"(previous: {previous.version if previous else None}, source: {source})"
        )
        return PublishResult(
            version=candidate.version,
            swapped=True,
            previous_version=previous.version if previous else None
        )

    def publish_payload(self, payload: Mapping[str, Any], source: str = "remote") -> PublishResult:
        """
        Publish a model received as a push payload

        Optional fields missing from the payload are inherited from the
        current model.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Model payload must be an object")

        base = self._current or default_model()
        version = payload.get("version")
        if not isinstance(version, str) or not version:
            raise ValidationError("Invalid model version", details={"version": version})

        weights = validate_weights(payload.get("weights"))
        time_decay = payload.get("time_decay", payload.get("timeDecay"))
        min_interactions = payload.get("min_interactions", payload.get("minInteractions"))
        trained_at = payload.get("trained_at")
        model_type = payload.get("type")
        if model_type is not None and not isinstance(model_type, str):
            raise ValidationError("type must be a string", details={"type": model_type})

        candidate = Model(
            version=version,
            weights=weights,
            model_type=model_type or base.model_type,
            time_decay=validate_number("time_decay", time_decay) if time_decay is not None else base.time_decay,
            min_interactions=(
                validate_number("min_interactions", min_interactions, integer=True)
                if min_interactions is not None else base.min_interactions
            ),
            trained_at=validate_number("trained_at", trained_at) if trained_at is not None else time.time()
        )
        return self.publish(candidate, source=source)

    @staticmethod
    def validate(model: Any):
        if not isinstance(model, Model):
            raise ValidationError("Candidate is not a Model")
        if not isinstance(model.version, str) or not model.version:
            raise ValidationError("Invalid model version", details={"version": model.version})
        validate_weights(model.weights)
        if model.min_interactions < 0:
            raise ValidationError(
                "min_interactions must not be negative",
                details={"min_interactions": model.min_interactions}
            )

    def _swap(self, model: Model, source: str):
        self._current = model
        self._history.append({
            "version": model.version,
            "source": source,
            "published_at": time.time()
        })
        if len(self._history) > self.max_history:
            self._history = self._history[-self.max_history:]

    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)
