"""
Training pipeline

One training run: collect the training window, extract features, build
similarity, train, validate, persist the artifact and deploy it.
"""

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import orjson

from ..core.config import Settings, TrainingConfig
from ..core.engine import RecommendationEngine
from ..core.exceptions import DataUnavailable, TrainingFailure, ValidationError
from ..core.models import Model
from ..core.registry import ModelRegistry
from ..storage.activity_store import ActivityStore
from .features import extract_features
from .similarity import build_similarity
from .trainer import Trainer
from .validation import ValidationReport, Validator


logger = logging.getLogger(__name__)


@dataclass
class TrainingOutcome:
    """Result of a completed training run"""
    job_id: str
    model: Model
    report: ValidationReport
    record: Dict[str, Any]
    deployed_locally: bool = False
    deployed_remotely: Optional[bool] = None
    deploy_errors: List[str] = field(default_factory=list)

    @property
    def model_id(self) -> str:
        return self.record.get("id", f"model-{self.model.version}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "model_id": self.model_id,
            "version": self.model.version,
            "metrics": self.report.metrics,
            "accepted": self.report.accepted,
            "deployed_locally": self.deployed_locally,
            "deployed_remotely": self.deployed_remotely,
            "deploy_errors": self.deploy_errors
        }


class TrainingPipeline:
    """
    Runs training cycles against the activity store

    Deployment goes to a local registry, a remote publisher, or both. Held-out
    purchases are ranked by the recommendation engine against the candidate.
    """

    def __init__(
        self,
        store: ActivityStore,
        settings: Optional[Settings] = None,
        registry: Optional[ModelRegistry] = None,
        publisher=None,
        trainer: Optional[Trainer] = None,
        validator: Optional[Validator] = None,
        engine: Optional[RecommendationEngine] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.store = store
        self.settings = settings or Settings()
        self.registry = registry
        self.publisher = publisher
        self.clock = clock or time.time
        self.engine = engine or RecommendationEngine(
            store, registry or ModelRegistry(), settings=self.settings, clock=self.clock
        )
        self.trainer = trainer or Trainer(min_interactions=self.settings.min_interactions, clock=self.clock)
        self.validator = validator or Validator(
            ranker=self.engine.rank_with_model,
            k=self.settings.precision_k,
            holdout_fraction=self.settings.holdout_fraction,
            min_precision=self.settings.acceptance_precision
        )
        self.logger = logging.getLogger(__name__)

    async def run(self, job_id: str, config: Optional[TrainingConfig] = None) -> TrainingOutcome:
        """
        Execute one training run

        Raises:
            TrainingFailure: if any stage up to and including local deployment fails
        """
        config = config or TrainingConfig()
        self.logger.info(f"Training model for job: {job_id}")

        stage = "collect"
        try:
            since = self.clock() - self.settings.training_window_seconds
            rows = await self.store.training_rows(since)
            self.logger.info(f"Collected {len(rows)} training samples")

            stage = "extract"
            features = extract_features(rows)

            stage = "similarity"
            similarity = build_similarity(rows, min_count=self.settings.similarity_min_count)

            stage = "train"
            model = self.trainer.train(features, similarity, config)

            stage = "validate"
            report = self.validator.validate(model, rows)
            if not report.accepted and self.settings.block_rejected_models:
                raise ValidationError(
                    f"Model {model.version} rejected: precision {report.precision}",
                    details=report.to_dict()
                )

            stage = "save"
            record = await self.store.save_model(model, report.metrics)

            stage = "deploy"
            outcome = TrainingOutcome(job_id=job_id, model=model, report=report, record=record)
            if self.registry is not None:
                self.registry.publish(model, source="local")
                outcome.deployed_locally = True
        except Exception as e:
            raise TrainingFailure(job_id, stage, e) from e

        if self.publisher is not None:
            try:
                await self.publisher.push(model)
                outcome.deployed_remotely = True
            except DataUnavailable as e:
                outcome.deployed_remotely = False
                outcome.deploy_errors.append(str(e))
                self.logger.error(f"Failed to deploy model {model.version}: {e}")

        self.logger.info(f"Model training completed: {model.version}")
        return outcome


def main():
    """Run a single training cycle against the configured store"""
    from ..serving.push import RemoteModelPublisher
    from ..storage.postgres import PostgresActivityStore

    parser = argparse.ArgumentParser(description="Run one recommendation model training cycle")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--weights", help="JSON object of activity weights")
    parser.add_argument("--time-decay", type=float, default=None)
    parser.add_argument("--push-url", help="Recommendation service base URL to push the model to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    settings = Settings.from_yaml(args.config) if args.config else Settings.from_env()
    if not settings.database_url:
        parser.error("database_url must be configured (RECSTREAM_DATABASE_URL or --config)")

    config_data: Dict[str, Any] = {}
    if args.weights:
        config_data["weights"] = orjson.loads(args.weights)
    if args.time_decay is not None:
        config_data["time_decay"] = args.time_decay

    push_url = args.push_url or settings.recommendation_engine_url

    async def _run() -> Dict[str, Any]:
        store = PostgresActivityStore(settings.database_url)
        publisher = RemoteModelPublisher(push_url, timeout=settings.push_timeout_seconds) if push_url else None
        pipeline = TrainingPipeline(store, settings, publisher=publisher)
        try:
            outcome = await pipeline.run(f"job-cli-{int(time.time() * 1000)}", TrainingConfig.from_dict(config_data))
            return outcome.to_dict()
        finally:
            await store.close()

    try:
        result = asyncio.run(_run())
    except (TrainingFailure, ValidationError) as e:
        logger.error(f"Training failed: {e}")
        raise SystemExit(1)

    print(orjson.dumps(result, option=orjson.OPT_INDENT_2).decode())


if __name__ == "__main__":
    main()
