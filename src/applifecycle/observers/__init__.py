"""Lifecycle observer contracts and adapters."""

from .adapters import (
    AnimationStateObserver,
    FormStateObserver,
    ScrollStateObserver,
    StateObserverAdapter,
)
from .base import (
    AnimationLifecycleObserver,
    CompositeLifecycleObserver,
    LifecycleObserver,
    NavigationLifecycleObserver,
    NetworkLifecycleObserver,
    PatternLifecycleObserver,
    SessionLifecycleObserver,
    StateAwareObserver,
    UILifecycleObserver,
    has_required_keys,
)

__all__ = [
    "AnimationLifecycleObserver",
    "AnimationStateObserver",
    "CompositeLifecycleObserver",
    "FormStateObserver",
    "LifecycleObserver",
    "NavigationLifecycleObserver",
    "NetworkLifecycleObserver",
    "PatternLifecycleObserver",
    "ScrollStateObserver",
    "SessionLifecycleObserver",
    "StateAwareObserver",
    "StateObserverAdapter",
    "UILifecycleObserver",
    "has_required_keys",
]
