"""
Message bus abstraction

Topic-per-event-type publish/subscribe. Every event crosses the bus in its
serialized envelope form, including on the in-memory bus.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Iterable, List, Optional, Set

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..core.exceptions import DataUnavailable
from .events import Event, EventType, event_types


class Subscription(ABC):
    """Async iterator over events of the subscribed types"""

    def __init__(self, types: Iterable[EventType]):
        self.types: Set[EventType] = set(types)
        self.closed = False

    @abstractmethod
    async def next_event(self) -> Optional[Event]:
        """Wait for the next event; None once the subscription is closed"""

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        event = await self.next_event()
        if event is None:
            raise StopAsyncIteration
        return event


class MessageBus(ABC):
    """Publish/subscribe transport"""

    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def publish(self, event: Event):
        """Publish an event; raises DataUnavailable if the bus is unreachable"""

    @abstractmethod
    def subscribe(self, types: Iterable) -> Subscription:
        pass

    @abstractmethod
    async def close(self):
        pass


class _QueueSubscription(Subscription):

    def __init__(self, bus: "InMemoryMessageBus", types: Iterable[EventType]):
        super().__init__(types)
        self.bus = bus
        self.queue: asyncio.Queue = asyncio.Queue()

    async def next_event(self) -> Optional[Event]:
        if self.closed and self.queue.empty():
            return None
        return await self.queue.get()

    async def close(self):
        await super().close()
        self.bus.subscriptions.discard(self)
        self.queue.put_nowait(None)


class InMemoryMessageBus(MessageBus):
    """
    Single-process bus fanning out to per-subscriber queues

    The most recent ``history_limit`` published events are kept in
    ``published`` for inspection.
    """

    def __init__(self, history_limit: int = 1000):
        self.connected = False
        self.subscriptions: Set[_QueueSubscription] = set()
        self.published: Deque[Event] = deque(maxlen=history_limit)
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        self.connected = True

    async def publish(self, event: Event):
        if not self.connected:
            raise DataUnavailable("message bus", ConnectionError("EventBus not connected"))

        payload = event.to_json()
        self.published.append(event)
        for subscription in list(self.subscriptions):
            if event.type in subscription.types:
                subscription.queue.put_nowait(Event.from_json(payload))

        self.logger.debug(f"Event published: {event.type.value} to channel: {event.type.channel}")

    def subscribe(self, types: Iterable) -> Subscription:
        subscription = _QueueSubscription(self, event_types(types))
        self.subscriptions.add(subscription)
        return subscription

    async def close(self):
        for subscription in list(self.subscriptions):
            await subscription.close()
        self.connected = False


class _RedisSubscription(Subscription):

    def __init__(self, client: aioredis.Redis, types: Iterable[EventType], poll_timeout: float = 1.0):
        super().__init__(types)
        self.pubsub = client.pubsub()
        self.poll_timeout = poll_timeout
        self.subscribed = False
        self.logger = logging.getLogger(__name__)

    async def next_event(self) -> Optional[Event]:
        try:
            if not self.subscribed:
                await self.pubsub.subscribe(*[t.channel for t in self.types])
                self.subscribed = True

            while not self.closed:
                message = await self.pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.poll_timeout
                )
                if message is None:
                    continue
                try:
                    return Event.from_json(message["data"])
                except (ValueError, KeyError) as e:
                    self.logger.warning(f"Failed to decode event on {message.get('channel')}: {e}")
        except RedisError as e:
            raise DataUnavailable("message bus", e)
        return None

    async def close(self):
        await super().close()
        if self.subscribed:
            await self.pubsub.unsubscribe()
        await self.pubsub.aclose()


class RedisMessageBus(MessageBus):
    """Bus over Redis pub/sub; one channel per event type"""

    def __init__(self, url: str = "redis://localhost:6379"):
        self.url = url
        self.client: Optional[aioredis.Redis] = None
        self.subscriptions: List[_RedisSubscription] = []
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        if self.client is not None:
            return
        self.logger.info(f"Connecting to Redis at: {self.url}")
        try:
            self.client = aioredis.from_url(self.url)
            await self.client.ping()
        except RedisError as e:
            raise DataUnavailable("message bus", e)
        self.logger.info("EventBus connected to Redis")

    async def publish(self, event: Event):
        if self.client is None:
            raise DataUnavailable("message bus", ConnectionError("EventBus not connected"))
        try:
            await self.client.publish(event.type.channel, event.to_json())
        except RedisError as e:
            raise DataUnavailable("message bus", e)
        self.logger.debug(f"Event published: {event.type.value} to channel: {event.type.channel}")

    def subscribe(self, types: Iterable) -> Subscription:
        if self.client is None:
            raise DataUnavailable("message bus", ConnectionError("EventBus not connected"))
        subscription = _RedisSubscription(self.client, event_types(types))
        self.subscriptions.append(subscription)
        return subscription

    async def close(self):
        for subscription in self.subscriptions:
            await subscription.close()
        self.subscriptions.clear()
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self.logger.info("EventBus disconnected")
