"""Event envelopes, message bus transports and the event processor"""

from .bus import InMemoryMessageBus, MessageBus, RedisMessageBus
from .events import Event, EventFactory, EventType
from .processor import EventProcessor

__all__ = [
    "Event", "EventFactory", "EventType",
    "MessageBus", "InMemoryMessageBus", "RedisMessageBus",
    "EventProcessor"
]
