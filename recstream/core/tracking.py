"""
Activity tracking

Records user activity in the store, announces it on the bus, and answers
activity history and behavior profile queries.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .exceptions import DataUnavailable, ValidationError
from .models import Activity, ActivityKind
from ..storage.activity_store import ActivityStore
from ..streaming.bus import MessageBus
from ..streaming.events import EventFactory


class ActivityTracker:
    """
    Appends activities and publishes the matching user events

    The store write and the bus publish are not atomic. When the publish
    fails after a successful write the activity stays recorded, the result
    reports ``notified: False``, and caches stay stale until their TTL.
    """

    def __init__(
        self,
        store: ActivityStore,
        bus: MessageBus,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.store = store
        self.bus = bus
        self.settings = settings or Settings()
        self.clock = clock or time.time
        self.logger = logging.getLogger(__name__)

    async def track(
        self,
        user_id: str,
        kind: str,
        product_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Track one user activity

        Raises:
            ValidationError: for unknown kinds or a missing product on product activities
            DataUnavailable: if the store cannot be reached
        """
        if not user_id:
            raise ValidationError("user_id is required")
        try:
            activity_kind = ActivityKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown activity type: {kind}", details={"activity_type": kind})
        if activity_kind is not ActivityKind.SEARCH and not product_id:
            raise ValidationError(
                f"product_id is required for {activity_kind.value}",
                details={"activity_type": kind}
            )

        stored = await self.store.append(Activity(
            user_id=user_id,
            kind=activity_kind,
            product_id=product_id,
            payload=payload or {},
            occurred_at=self.clock()
        ))

        event = EventFactory.for_activity(stored)
        notified = True
        try:
            await self.bus.publish(event)
        except DataUnavailable as e:
            notified = False
            self.logger.warning(f"Activity {stored.activity_id} recorded but not announced: {e}")

        self.logger.info(f"Activity tracked: {activity_kind.value} for user {user_id}")
        return {
            "success": True,
            "activity_id": stored.activity_id,
            "event_id": event.id,
            "notified": notified
        }

    async def user_activities(self, user_id: str, limit: int = 100) -> Dict[str, Any]:
        """A user's most recent activities, newest first"""
        activities = await self.store.recent_for_user(user_id, limit=limit)
        return {"success": True, "activities": [a.to_dict() for a in activities]}

    async def behavior_profile(self, user_id: str) -> Dict[str, Any]:
        """
        Summarize a user's behavior

        Returns:
            Per-kind counts over the training window with the average purchase
            value, and the user's most viewed products over the popularity window
        """
        now = self.clock()
        summary = await self.store.activity_summary(user_id, since=now - self.settings.training_window_seconds)
        recently_viewed = await self.store.viewed_products(
            user_id,
            since=now - self.settings.popularity_window_seconds,
            limit=self.settings.recently_viewed_limit
        )
        return {
            "success": True,
            "profile": {
                "summary": summary,
                "recently_viewed": recently_viewed
            }
        }
