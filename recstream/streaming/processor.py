"""
Event Processor

Dispatch loop reading from the message bus and invoking handlers registered
per event type.
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.exceptions import DataUnavailable
from .bus import MessageBus, Subscription
from .events import Event, EventType


EventHandler = Callable[[Event], Awaitable[Any]]


class EventProcessor:
    """
    Routes bus events to registered handlers

    Handlers run one event at a time in arrival order. A failing handler is
    logged and counted; it never stops the loop or the other handlers.
    """

    def __init__(self, bus: MessageBus, name: str = "event-processor"):
        self.bus = bus
        self.name = name
        self.handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)

        # Performance tracking
        self.processed_events = 0
        self.processing_errors = 0
        self.start_time = time.time()

        self.subscription: Optional[Subscription] = None
        self.task: Optional[asyncio.Task] = None
        self.is_running = False

        self.logger = logging.getLogger(__name__)

    def register(self, event_type: EventType, handler: EventHandler):
        """
        Register a handler for an event type

        Args:
            event_type: Event type to route
            handler: Coroutine function called with each event
        """
        if self.is_running:
            raise RuntimeError("Handlers must be registered before the processor starts")
        self.handlers[event_type].append(handler)
        self.logger.info(f"{self.name}: registered handler for {event_type.value}")

    async def start(self):
        """Subscribe to every registered event type and start the dispatch loop"""
        if self.is_running:
            return
        self.subscription = self.bus.subscribe(list(self.handlers))
        self.is_running = True
        self.start_time = time.time()
        self.task = asyncio.create_task(self._dispatch_loop())
        self.logger.info(f"{self.name}: started for {len(self.handlers)} event types")

    async def stop(self):
        self.logger.info(f"Stopping {self.name}...")
        self.is_running = False
        if self.subscription is not None:
            await self.subscription.close()
        if self.task is not None:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        self.logger.info(f"{self.name} stopped")

    async def _dispatch_loop(self):
        try:
            async for event in self.subscription:
                await self.dispatch(event)
        except DataUnavailable as e:
            self.logger.error(f"{self.name}: bus unavailable, dispatch loop stopped: {e}")
            self.is_running = False

    async def dispatch(self, event: Event):
        """Invoke every handler registered for the event's type"""
        for handler in self.handlers.get(event.type, []):
            try:
                await handler(event)
            except Exception as e:
                self.processing_errors += 1
                self.logger.error(f"{self.name}: handler failed for {event.type.value} ({event.id}): {e}")
        self.processed_events += 1

    def get_statistics(self) -> Dict[str, Any]:
        uptime = time.time() - self.start_time
        return {
            "uptime_seconds": uptime,
            "processed_events": self.processed_events,
            "processing_errors": self.processing_errors,
            "error_rate": self.processing_errors / max(1, self.processed_events),
            "event_types": [t.value for t in self.handlers],
            "is_running": self.is_running
        }

    async def health_check(self) -> Dict[str, Any]:
        stats = self.get_statistics()

        health = {
            "status": "healthy",
            "timestamp": time.time(),
            "stats": stats
        }

        if not self.is_running:
            health["status"] = "stopped"
        elif stats["error_rate"] > 0.1:
            health["status"] = "degraded"

        return health
