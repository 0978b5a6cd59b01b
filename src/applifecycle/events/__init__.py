"""Lifecycle event model and dispatch.

Provides the lifecycle event types and the observer registry that routes
events to observers.
"""

from .bus import EventListener, ObserverRegistry
from .types import (
    EventPriority,
    EventSource,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleState,
    parse_enum,
)

__all__ = [
    "EventListener",
    "EventPriority",
    "EventSource",
    "LifecycleEvent",
    "LifecycleEventType",
    "LifecycleState",
    "ObserverRegistry",
    "parse_enum",
]
