"""Lifecycle observer contracts.

LifecycleObserver receives lifecycle events. StateAwareObserver can also
contribute a slice of state to snapshots and restore it afterwards. The
specialised bases give each kind of component its conventional state key
and priority.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import structlog

from applifecycle.events.types import EventPriority, LifecycleEvent, LifecycleEventType

logger = structlog.get_logger()


class LifecycleObserver(ABC):
    """Component that reacts to lifecycle events.

    Attributes:
        observer_id: Unique identifier within a registry
        priority: Notification priority (critical observers run first)
    """

    observer_id: str
    priority: EventPriority = EventPriority.MEDIUM

    @abstractmethod
    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        """Handle a lifecycle event.

        Exceptions raised here are logged by the registry and do not
        affect other observers.
        """

    def on_registered(self) -> None:
        """Called after the observer is added to a registry."""

    def on_unregistered(self) -> None:
        """Called after the observer is removed from a registry."""

    def should_handle_event(self, event: LifecycleEvent) -> bool:
        """Filter events before notification."""
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(observer_id={self.observer_id!r})"


class StateAwareObserver(LifecycleObserver):
    """Observer that owns a slice of the app state snapshot.

    Attributes:
        state_key: Key routing the slice to its place in the snapshot
    """

    state_key: str

    @abstractmethod
    def capture_state(self) -> dict[str, Any]:
        """Capture the current state slice.

        Returns:
            JSON-compatible mapping
        """

    @abstractmethod
    async def restore_state(self, state: dict[str, Any]) -> None:
        """Apply a previously captured slice."""

    def validate_state(self, state: dict[str, Any]) -> bool:
        """Check that a slice can be restored. Invalid slices are skipped."""
        return True

    def should_handle_event(self, event: LifecycleEvent) -> bool:
        return event.should_persist_state or event.is_foregrounding


def has_required_keys(state: dict[str, Any], keys: Iterable[str]) -> bool:
    """Check that every key is present in a state slice."""
    return all(key in state for key in keys)


# =============================================================================
# Specialised observers
# =============================================================================


class UILifecycleObserver(StateAwareObserver):
    """Base for UI components (widgets, forms, scroll views)."""

    state_key = "ui"
    priority = EventPriority.HIGH

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event.is_backgrounding:
            await self.on_app_backgrounded(event)
        elif event.is_foregrounding:
            await self.on_app_foregrounded(event)

    async def on_app_backgrounded(self, event: LifecycleEvent) -> None:
        """Pause UI activity."""

    async def on_app_foregrounded(self, event: LifecycleEvent) -> None:
        """Resume UI activity."""


class NavigationLifecycleObserver(StateAwareObserver):
    """Base for the navigation layer.

    The captured slice carries ``current_route`` and ``navigation_stack``;
    any other keys are kept alongside them.
    """

    state_key = "navigation"
    priority = EventPriority.HIGH

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        return None

    def validate_state(self, state: dict[str, Any]) -> bool:
        return isinstance(state.get("current_route"), str) and isinstance(
            state.get("navigation_stack"), list
        )


class SessionLifecycleObserver(StateAwareObserver):
    """Base for user session holders."""

    state_key = "session"
    priority = EventPriority.CRITICAL

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event.is_terminating:
            await self.on_app_terminating(event)

    async def on_app_terminating(self, event: LifecycleEvent) -> None:
        """Flush session data before the process ends."""


class PatternLifecycleObserver(StateAwareObserver):
    """Base for pattern pages.

    Attributes:
        pattern_category: Category the page belongs to
    """

    state_key = "patterns"
    priority = EventPriority.MEDIUM
    pattern_category: str = ""

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        return None


class NetworkLifecycleObserver(StateAwareObserver):
    """Base for network clients.

    Suspends connections when backgrounded and resumes them when the app
    returns to the foreground.
    """

    state_key = "network"
    priority = EventPriority.HIGH

    def should_handle_event(self, event: LifecycleEvent) -> bool:
        return (
            super().should_handle_event(event)
            or event.event_type is LifecycleEventType.CONNECTIVITY_CHANGE
        )

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event.event_type is LifecycleEventType.CONNECTIVITY_CHANGE:
            await self.on_connectivity_changed(bool(event.metadata.get("is_connected")))
        elif event.is_backgrounding:
            await self.suspend_connections()
        elif event.is_foregrounding:
            await self.resume_connections()

    async def suspend_connections(self) -> None:
        """Pause open connections."""

    async def resume_connections(self) -> None:
        """Re-open paused connections."""

    async def on_connectivity_changed(self, is_connected: bool) -> None:
        """React to connectivity changes."""


class AnimationLifecycleObserver(LifecycleObserver):
    """Base for animation drivers. Pauses on background, resumes on foreground."""

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event.is_backgrounding:
            await self.pause_animations()
        elif event.is_foregrounding:
            await self.resume_animations()

    async def pause_animations(self) -> None:
        """Pause running animations."""

    async def resume_animations(self) -> None:
        """Resume paused animations."""


class CompositeLifecycleObserver(LifecycleObserver):
    """Fans events out to child observers.

    Children are notified in priority order; a failing child is logged and
    does not prevent the others from being notified.
    """

    def __init__(
        self,
        observer_id: str,
        children: Iterable[LifecycleObserver] = (),
        priority: EventPriority = EventPriority.MEDIUM,
    ) -> None:
        self.observer_id = observer_id
        self.priority = priority
        self._children: list[LifecycleObserver] = list(children)

    @property
    def children(self) -> list[LifecycleObserver]:
        return list(self._children)

    def add_child(self, observer: LifecycleObserver) -> None:
        if observer not in self._children:
            self._children.append(observer)

    def remove_child(self, observer: LifecycleObserver) -> bool:
        if observer in self._children:
            self._children.remove(observer)
            return True
        return False

    def should_handle_event(self, event: LifecycleEvent) -> bool:
        return any(child.should_handle_event(event) for child in self._children)

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        ordered = sorted(self._children, key=lambda o: o.priority.rank, reverse=True)
        for child in ordered:
            if not child.should_handle_event(event):
                continue
            try:
                await child.on_lifecycle_event(event)
            except Exception as e:
                logger.error(
                    "composite_child_failed",
                    composite_id=self.observer_id,
                    observer_id=child.observer_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
