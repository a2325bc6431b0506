"""
Service composition

Wires the engine, cache, tracker and event handlers of the recommendation
service, and the pipeline and scheduler of the training service.
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from ..core.config import DAY_SECONDS, Settings
from ..core.engine import RecommendationEngine
from ..core.registry import ModelRegistry
from ..core.tracking import ActivityTracker
from ..ml.scheduler import TrainingScheduler
from ..ml.training import TrainingPipeline
from ..storage.activity_store import ActivityStore, InMemoryActivityStore
from ..storage.cache import RecommendationCache
from ..storage.postgres import PostgresActivityStore
from ..streaming.bus import InMemoryMessageBus, MessageBus, RedisMessageBus
from ..streaming.events import Event, EventType, USER_ACTIVITY_EVENTS
from ..streaming.processor import EventProcessor
from .push import RemoteModelPublisher


def create_store(settings: Settings) -> ActivityStore:
    if settings.database_url:
        return PostgresActivityStore(settings.database_url)
    return InMemoryActivityStore()


def create_bus(settings: Settings) -> MessageBus:
    if settings.redis_url:
        return RedisMessageBus(settings.redis_url)
    return InMemoryMessageBus(history_limit=settings.bus_history_limit)


class RecommendationService:
    """
    Recommendation side: registry, generator, cache and activity tracking

    Activity events invalidate the user's cache entries. A
    RecommendationGenerated event invalidates the user's entries inserted
    before that batch was generated. Model updates invalidate nothing.
    """

    def __init__(
        self,
        store: ActivityStore,
        bus: MessageBus,
        settings: Optional[Settings] = None,
        registry: Optional[ModelRegistry] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.settings = settings or Settings()
        self.store = store
        self.bus = bus
        self.registry = registry or ModelRegistry()
        self.engine = RecommendationEngine(store, self.registry, bus, self.settings, clock=clock)
        self.cache = RecommendationCache(
            self.engine.generate,
            ttl_seconds=self.settings.cache_ttl_seconds,
            max_entries=self.settings.cache_max_entries,
            clock=clock
        )
        self.tracker = ActivityTracker(store, bus, self.settings, clock=clock)
        self.clock = clock or time.time

        self.processor = EventProcessor(bus, name="recommendation-service")
        for event_type in USER_ACTIVITY_EVENTS:
            self.processor.register(event_type, self.handle_user_activity)
        self.processor.register(EventType.RECOMMENDATION_GENERATED, self.handle_recommendation_generated)
        self.processor.register(EventType.RECOMMENDATION_MODEL_UPDATED, self.handle_model_updated)

        self.logger = logging.getLogger(__name__)

    async def start(self):
        await self.bus.connect()
        self.registry.initialize_default()
        await self.processor.start()

    async def stop(self):
        await self.processor.stop()

    async def get_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        force_refresh: bool = False
    ) -> Dict[str, Any]:
        """Cached recommendations enriched with catalog details"""
        result = await self.cache.get_or_generate(user_id, limit, force_refresh)
        response = result.to_dict()
        if not result.success or not result.recommendations:
            return response

        try:
            products = await self.store.products([rec.product_id for rec in result.recommendations])
        except Exception as e:
            self.logger.warning(f"Catalog enrichment skipped for user {user_id}: {e}")
            return response

        for rec in response["recommendations"]:
            product = products.get(rec["product_id"])
            rec["product"] = product.to_dict() if product else {
                "id": rec["product_id"],
                "name": "Unknown Product",
                "category": "Unknown",
                "price": 0
            }
        return response

    async def track_activity(
        self,
        user_id: str,
        kind: str,
        product_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return await self.tracker.track(user_id, kind, product_id, payload)

    async def get_user_activities(self, user_id: str, limit: int = 100) -> Dict[str, Any]:
        return await self.tracker.user_activities(user_id, limit)

    async def get_behavior_profile(self, user_id: str) -> Dict[str, Any]:
        return await self.tracker.behavior_profile(user_id)

    async def get_recommendation_stats(self, user_id: str, days: Optional[int] = None) -> Dict[str, Any]:
        """Summary of the user's latest persisted batch within the last ``days`` days"""
        days = self.settings.recommendation_stats_days if days is None else days
        stats = await self.store.recommendation_stats(user_id, since=self.clock() - days * DAY_SECONDS)
        return {"success": True, "stats": stats}

    def receive_model(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Entry point of the cross-service model push"""
        return self.registry.publish_payload(payload, source="remote").to_dict()

    async def handle_user_activity(self, event: Event):
        user_id = event.user_id
        if user_id:
            removed = self.cache.invalidate_user(user_id)
            self.logger.info(f"Cache invalidated for user {user_id} due to new activity ({removed} entries)")

    async def handle_recommendation_generated(self, event: Event):
        user_id = event.user_id
        if user_id:
            generated_at = event.data.get("generated_at", event.timestamp)
            self.cache.invalidate_user(user_id, before=generated_at)

    async def handle_model_updated(self, event: Event):
        self.logger.info(f"Model update detected: {event.data.get('version')}")


class TrainingService:
    """Training side: pipeline, scheduler and model listing"""

    def __init__(
        self,
        store: ActivityStore,
        bus: MessageBus,
        settings: Optional[Settings] = None,
        registry: Optional[ModelRegistry] = None,
        publisher: Optional[RemoteModelPublisher] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.settings = settings or Settings()
        self.store = store
        self.bus = bus
        if publisher is None and self.settings.recommendation_engine_url:
            publisher = RemoteModelPublisher(
                self.settings.recommendation_engine_url,
                timeout=self.settings.push_timeout_seconds
            )
        self.publisher = publisher
        self.pipeline = TrainingPipeline(
            store, self.settings, registry=registry, publisher=publisher, clock=clock
        )
        self.scheduler = TrainingScheduler(
            self.pipeline,
            bus,
            interval_seconds=self.settings.retrain_interval_seconds,
            max_job_history=self.settings.max_job_history,
            clock=clock
        )

    async def start(self):
        await self.bus.connect()
        await self.scheduler.start()

    async def stop(self):
        await self.scheduler.stop()
        if self.publisher is not None:
            await self.publisher.close()

    def train(self, config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return self.scheduler.submit(config)

    def status(self) -> Dict[str, Any]:
        return self.scheduler.status()

    async def models(self) -> Dict[str, Any]:
        return {"success": True, "models": await self.store.list_models()}
