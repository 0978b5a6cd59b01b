"""App lifecycle state preservation.

Captures application state when the app leaves the foreground and restores
it when the app comes back.
"""

from applifecycle.container import LifecycleIntegration, lifespan
from applifecycle.events import (
    EventPriority,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleState,
    ObserverRegistry,
)
from applifecycle.memento import AppStateMemento
from applifecycle.observers import LifecycleObserver, StateAwareObserver, StateObserverAdapter

__version__ = "0.1.0"

__all__ = [
    "AppStateMemento",
    "EventPriority",
    "LifecycleEvent",
    "LifecycleEventType",
    "LifecycleIntegration",
    "LifecycleObserver",
    "LifecycleState",
    "ObserverRegistry",
    "StateAwareObserver",
    "StateObserverAdapter",
    "lifespan",
]
