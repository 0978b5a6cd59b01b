"""Observer registry for lifecycle event dispatch.

Routes lifecycle events to registered observers in priority order and to
global listeners.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from .types import LifecycleEvent

if TYPE_CHECKING:
    from applifecycle.observers.base import LifecycleObserver, StateAwareObserver

logger = structlog.get_logger()

EventListener = Callable[[LifecycleEvent], Awaitable[None]]


class ObserverRegistry:
    """Ordered set of lifecycle observers.

    Features:
    - Idempotent registration by identity
    - Priority ordered dispatch (critical first, registration order within
      the same priority)
    - Error isolation (one observer failure doesn't affect others)
    - Global listeners receiving every dispatched event
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._observers: list[LifecycleObserver] = []
        self._global_listeners: list[EventListener] = []

    def add_observer(self, observer: LifecycleObserver) -> bool:
        """Register an observer.

        Args:
            observer: Observer to add

        Returns:
            True if the observer was not already registered
        """
        if observer in self._observers:
            return False
        self._observers.append(observer)
        logger.debug(
            "observer_registered",
            observer_id=observer.observer_id,
            priority=str(observer.priority),
        )
        observer.on_registered()
        return True

    def remove_observer(self, observer: LifecycleObserver) -> bool:
        """Unregister an observer.

        Args:
            observer: Observer to remove

        Returns:
            True if the observer was found and removed
        """
        if observer not in self._observers:
            return False
        self._observers.remove(observer)
        logger.debug("observer_unregistered", observer_id=observer.observer_id)
        observer.on_unregistered()
        return True

    def subscribe_all(self, listener: EventListener) -> None:
        """Subscribe a listener to every dispatched event.

        Args:
            listener: Async function called with each event
        """
        self._global_listeners.append(listener)
        logger.debug("global_event_listener_subscribed")

    def unsubscribe_all(self, listener: EventListener) -> bool:
        """Unsubscribe a global listener.

        Returns:
            True if the listener was found and removed
        """
        if listener in self._global_listeners:
            self._global_listeners.remove(listener)
            return True
        return False

    @property
    def observers(self) -> list[LifecycleObserver]:
        """Registered observers in notification order."""
        # sorted() is stable, so registration order holds within a priority
        return sorted(self._observers, key=lambda o: o.priority.rank, reverse=True)

    def state_aware_observers(self) -> list[StateAwareObserver]:
        """Registered observers that own a state slice, in notification order."""
        from applifecycle.observers.base import StateAwareObserver

        return [o for o in self.observers if isinstance(o, StateAwareObserver)]

    def get_observer(self, observer_id: str) -> LifecycleObserver | None:
        for observer in self._observers:
            if observer.observer_id == observer_id:
                return observer
        return None

    async def dispatch(self, event: LifecycleEvent) -> int:
        """Notify observers and global listeners of an event.

        Observers are awaited one at a time in priority order. Errors are
        logged and never propagate.

        Args:
            event: Event to dispatch

        Returns:
            Number of observers notified without error
        """
        targets = [o for o in self.observers if self._accepts(o, event)]

        logger.debug(
            "event_dispatching",
            event_id=event.event_id,
            event_type=str(event.event_type),
            observer_count=len(targets),
            listener_count=len(self._global_listeners),
        )

        notified = 0
        for observer in targets:
            try:
                await observer.on_lifecycle_event(event)
                notified += 1
            except Exception as e:
                logger.error(
                    "observer_notification_failed",
                    observer_id=observer.observer_id,
                    event_id=event.event_id,
                    event_type=str(event.event_type),
                    error=str(e),
                    error_type=type(e).__name__,
                )

        for listener in list(self._global_listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(
                    "event_listener_error",
                    event_id=event.event_id,
                    event_type=str(event.event_type),
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return notified

    @staticmethod
    def _accepts(observer: LifecycleObserver, event: LifecycleEvent) -> bool:
        try:
            return observer.should_handle_event(event)
        except Exception as e:
            logger.error(
                "observer_filter_failed",
                observer_id=observer.observer_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def clear(self) -> None:
        """Remove all observers and listeners."""
        for observer in list(self._observers):
            self.remove_observer(observer)
        self._global_listeners.clear()

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer: object) -> bool:
        return observer in self._observers
