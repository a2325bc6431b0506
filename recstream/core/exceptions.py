"""
Exception types for the recommendation engine

Three failure families cross component boundaries: malformed models or
configs, unreachable collaborators, and failed training runs.
"""

from typing import Any, Dict, Optional


class RecstreamError(Exception):
    """Base exception for recommendation engine errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "details": self.details
        }


class ValidationError(RecstreamError):
    """Raised when a model or config is malformed; previous state is kept"""


class DataUnavailable(RecstreamError):
    """Raised when the activity store or the message bus cannot be reached"""

    def __init__(self, resource: str, error: Exception):
        super().__init__(
            f"{resource} unavailable: {error}",
            details={
                "resource": resource,
                "error": str(error),
                "error_type": type(error).__name__
            }
        )
        self.resource = resource


class TrainingFailure(RecstreamError):
    """Raised when any stage of a training run fails"""

    def __init__(self, job_id: str, stage: str, error: Exception):
        super().__init__(
            f"Training job {job_id} failed during {stage}: {error}",
            details={
                "job_id": job_id,
                "stage": stage,
                "error": str(error),
                "error_type": type(error).__name__
            }
        )
        self.job_id = job_id
        self.stage = stage
