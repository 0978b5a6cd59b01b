"""Lifecycle manager.

Translates platform lifecycle signals into lifecycle events and drives
the capture/restore cycle:

- persist-worthy events are dispatched, then every state-aware observer's
  slice is captured, folded into one AppStateMemento and saved
- foregrounding restores each state-aware observer from the latest
  memento (at most once per foreground episode), then dispatches

Events are processed strictly one at a time. Persistence failures are
logged and swallowed here so they never reach the host application.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any, TypeVar

import structlog

from applifecycle.core.config import LifecycleSettings, get_lifecycle_settings
from applifecycle.events import (
    EventPriority,
    LifecycleEvent,
    LifecycleEventType,
    LifecycleState,
    ObserverRegistry,
)
from applifecycle.memento import AppStateMemento
from applifecycle.observers.base import LifecycleObserver, StateAwareObserver
from applifecycle.repository import StatePersistenceError

from .state_manager import StateManager

logger = structlog.get_logger()

T = TypeVar("T")

# Failures that degrade to "skip and continue"
PERSISTENCE_FAILURES = (StatePersistenceError, TimeoutError, OSError)

ENVIRONMENT_CHANGE_TYPES = frozenset({"accessibility", "locale", "text_scale", "brightness"})


class LifecycleManager:
    """Sole owner of the current lifecycle state.

    Usage:
        manager = LifecycleManager(StateManager(repository))
        await manager.initialize()
        manager.add_observer(session_observer)

        await manager.handle_lifecycle_state_change(LifecycleState.PAUSED)
        await manager.handle_lifecycle_state_change(LifecycleState.RESUMED)

        await manager.dispose()
    """

    def __init__(
        self,
        state_manager: StateManager,
        registry: ObserverRegistry | None = None,
        settings: LifecycleSettings | None = None,
    ) -> None:
        """Initialize lifecycle manager.

        Args:
            state_manager: Memento store front
            registry: Observer registry (a new one is created if omitted)
            settings: Lifecycle settings (cached settings if omitted)
        """
        self.state_manager = state_manager
        self.registry = registry or ObserverRegistry()
        self.settings = settings or get_lifecycle_settings()

        self._current_state: LifecycleState | None = None
        self._last_state_change: datetime | None = None
        self._lock = asyncio.Lock()
        # Observer ids restored during the current foreground episode
        self._restored_observers: set[str] = set()
        self._periodic_task: asyncio.Task[None] | None = None
        self._initialized = False
        self._disposed = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def current_state(self) -> LifecycleState | None:
        return self._current_state

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # =========================================================================
    # Setup / teardown
    # =========================================================================

    async def initialize(self, initial_state: LifecycleState = LifecycleState.RESUMED) -> None:
        """Start managing lifecycle state.

        A repository that fails to initialize leaves the manager running
        without persistence.

        Args:
            initial_state: Lifecycle state reported by the host at startup
        """
        if self._initialized or self._disposed:
            return

        try:
            await self.state_manager.initialize()
        except PERSISTENCE_FAILURES as e:
            logger.error(
                "state_manager_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        self._current_state = initial_state
        self._last_state_change = datetime.now(UTC)
        self._initialized = True

        if self.settings.restore_on_initialize and initial_state.is_active:
            async with self._lock:
                await self._restore_observers()

        await self.registry.dispatch(
            LifecycleEvent.state_changed(
                current_state=initial_state,
                metadata={"phase": "initialization"},
            )
        )

        if self.settings.periodic_save_interval_seconds > 0:
            self._periodic_task = asyncio.create_task(self._periodic_save_loop())

        logger.info(
            "lifecycle_manager_initialized",
            initial_state=str(initial_state),
            periodic_save=self._periodic_task is not None,
        )

    async def dispose(self) -> None:
        """Flush state and release resources.

        Waits for an in-flight cycle, saves a final snapshot, unregisters
        all observers and disposes the state manager. Safe to call twice.
        Resources are released even if the final save raises.
        """
        if self._disposed:
            return

        await self._cancel_periodic_task()

        try:
            async with self._lock:
                try:
                    if self._initialized and self.settings.save_on_dispose:
                        await self._capture_and_save(trigger="dispose")
                finally:
                    self._disposed = True
        finally:
            self.registry.clear()
            try:
                await self.state_manager.dispose()
            except PERSISTENCE_FAILURES as e:
                logger.error("state_manager_dispose_failed", error=str(e))

            logger.info("lifecycle_manager_disposed_cleanly")

    # =========================================================================
    # Observers
    # =========================================================================

    def add_observer(self, observer: LifecycleObserver) -> bool:
        """Register an observer. Allowed before initialize()."""
        if self._disposed:
            logger.warning("lifecycle_manager_disposed", operation="add_observer")
            return False
        return self.registry.add_observer(observer)

    def remove_observer(self, observer: LifecycleObserver) -> bool:
        if self._disposed:
            logger.warning("lifecycle_manager_disposed", operation="remove_observer")
            return False
        self._restored_observers.discard(observer.observer_id)
        return self.registry.remove_observer(observer)

    # =========================================================================
    # Platform signals
    # =========================================================================

    async def handle_lifecycle_state_change(
        self, new_state: LifecycleState
    ) -> LifecycleEvent | None:
        """Process a lifecycle state reported by the host.

        No transition is rejected. The previous state is the last known
        value, updated before the event is queued.

        Args:
            new_state: Reported lifecycle state

        Returns:
            The processed event, or None if the manager is not usable
        """
        if not self._check_usable("handle_lifecycle_state_change"):
            return None

        now = datetime.now(UTC)
        previous = self._current_state
        duration = now - self._last_state_change if self._last_state_change else None
        self._current_state = new_state
        self._last_state_change = now

        metadata = {"platform": sys.platform, "timestamp": now.isoformat()}

        if new_state is LifecycleState.DETACHED:
            event = LifecycleEvent.app_terminating(
                previous_state=previous, state_duration=duration, metadata=metadata
            )
        elif new_state.is_background and previous is LifecycleState.RESUMED:
            event = LifecycleEvent.app_backgrounded(
                current_state=new_state,
                previous_state=previous,
                state_duration=duration,
                metadata=metadata,
            )
        elif new_state.is_active and previous is not None and previous.is_background:
            event = LifecycleEvent.app_foregrounded(
                previous_state=previous, state_duration=duration, metadata=metadata
            )
        else:
            event = LifecycleEvent.state_changed(
                current_state=new_state,
                previous_state=previous,
                state_duration=duration,
                metadata=metadata,
            )

        return await self._process_event(event)

    async def handle_event(self, event: LifecycleEvent) -> LifecycleEvent | None:
        """Process a lifecycle event built by the host.

        The event's current state becomes the manager's current state.

        Returns:
            The processed event, or None if the manager is not usable
        """
        if not self._check_usable("handle_event"):
            return None
        self._current_state = event.current_state
        self._last_state_change = event.timestamp
        return await self._process_event(event)

    async def handle_memory_pressure(self) -> LifecycleEvent | None:
        if not self._check_usable("handle_memory_pressure"):
            return None
        return await self._process_event(LifecycleEvent.low_memory(self._state()))

    async def handle_connectivity_change(self, is_connected: bool) -> LifecycleEvent | None:
        if not self._check_usable("handle_connectivity_change"):
            return None
        return await self._process_event(
            LifecycleEvent.connectivity_changed(self._state(), is_connected=is_connected)
        )

    async def handle_battery_change(self, level: float) -> LifecycleEvent | None:
        if not self._check_usable("handle_battery_change"):
            return None
        return await self._process_event(LifecycleEvent.battery_changed(self._state(), level=level))

    async def handle_orientation_change(self, orientation: str) -> LifecycleEvent | None:
        if not self._check_usable("handle_orientation_change"):
            return None
        return await self._process_event(
            LifecycleEvent.orientation_changed(self._state(), orientation=orientation)
        )

    async def handle_environment_change(
        self, change_type: str, **details: Any
    ) -> LifecycleEvent | None:
        """Process an environment change (accessibility, locale, text scale, brightness).

        Args:
            change_type: Kind of change
            **details: Extra metadata, e.g. ``locales=["en_US"]``

        Returns:
            The processed event, or None if the manager is not usable

        Raises:
            ValueError: If change_type is not a known environment change
        """
        if change_type not in ENVIRONMENT_CHANGE_TYPES:
            raise ValueError(f"Unknown environment change type: {change_type}")
        if not self._check_usable("handle_environment_change"):
            return None

        state = self._state()
        return await self._process_event(
            LifecycleEvent.state_changed(
                current_state=state,
                previous_state=state,
                priority=EventPriority.LOW,
                metadata={"change_type": change_type, **details},
            )
        )

    # =========================================================================
    # Explicit save / restore
    # =========================================================================

    async def save_state(self, metadata: dict[str, Any] | None = None) -> bool:
        """Capture and persist state on demand.

        Dispatches a manual_save event (source user) and runs the same
        capture path as backgrounding.

        Returns:
            True if the snapshot was stored
        """
        if not self._check_usable("save_state"):
            return False

        event = LifecycleEvent.manual_save(
            self._state(), metadata={"trigger": "manual", **(metadata or {})}
        )
        async with self._lock:
            if self._disposed:
                return False
            await self.registry.dispatch(event)
            return await self._capture_and_save(trigger="manual", event=event)

    async def restore_state(self) -> int:
        """Restore observers not yet restored in this foreground episode.

        Returns:
            Number of observers restored
        """
        if not self._check_usable("restore_state"):
            return 0
        async with self._lock:
            if self._disposed:
                return 0
            return await self._restore_observers()

    def get_statistics(self) -> dict[str, Any]:
        return {
            "current_state": str(self._current_state) if self._current_state else None,
            "is_initialized": self._initialized,
            "is_disposed": self._disposed,
            "observer_count": len(self.registry),
            "state_aware_observer_count": len(self.registry.state_aware_observers()),
            "restored_observer_count": len(self._restored_observers),
            "state_manager": self.state_manager.get_state_statistics(),
        }

    # =========================================================================
    # Cycle
    # =========================================================================

    async def _process_event(self, event: LifecycleEvent) -> LifecycleEvent | None:
        async with self._lock:
            if self._disposed:
                logger.warning(
                    "lifecycle_event_dropped_after_dispose", event_id=event.event_id
                )
                return None

            if event.event_type in (
                LifecycleEventType.BACKGROUNDING,
                LifecycleEventType.TERMINATING,
            ):
                self._restored_observers.clear()

            if event.is_foregrounding:
                await self._restore_observers()
                await self.registry.dispatch(event)
            elif event.should_persist_state:
                await self.registry.dispatch(event)
                await self._capture_and_save(trigger=str(event.event_type), event=event)
            else:
                await self.registry.dispatch(event)

        return event

    def _capture_state(self) -> AppStateMemento:
        """Fold every state-aware observer's slice into one memento."""
        memento = AppStateMemento(lifecycle_state=self._state())

        for observer in self.registry.state_aware_observers():
            try:
                state = observer.capture_state()
            except Exception as e:
                logger.error(
                    "state_capture_failed",
                    observer_id=observer.observer_id,
                    state_key=observer.state_key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if not isinstance(state, dict):
                logger.warning(
                    "state_capture_skipped",
                    observer_id=observer.observer_id,
                    state_key=observer.state_key,
                    reason="not_a_mapping",
                )
                continue

            try:
                partial = memento.with_slice(observer.state_key, state)
                # Slices must be storable on their own
                partial.to_dict()
            except (ValueError, TypeError) as e:
                logger.warning(
                    "state_capture_skipped",
                    observer_id=observer.observer_id,
                    state_key=observer.state_key,
                    reason="invalid_slice",
                    error=str(e),
                )
                continue

            memento = memento.merge_with(partial)

        return memento

    async def _capture_and_save(
        self, trigger: str, event: LifecycleEvent | None = None
    ) -> bool:
        memento = self._capture_state()
        try:
            await self._bounded(self.state_manager.save_state(memento))
        except PERSISTENCE_FAILURES as e:
            logger.error(
                "state_save_failed",
                memento_id=memento.id,
                trigger=trigger,
                event_id=event.event_id if event else None,
                error=str(e) or "timeout",
                error_type=type(e).__name__,
            )
            return False

        logger.info(
            "state_captured",
            memento_id=memento.id,
            trigger=trigger,
            event_id=event.event_id if event else None,
        )
        return True

    async def _restore_observers(self) -> int:
        try:
            memento = await self._bounded(self.state_manager.get_last_saved_state())
        except PERSISTENCE_FAILURES as e:
            logger.error(
                "state_restore_load_failed",
                error=str(e) or "timeout",
                error_type=type(e).__name__,
            )
            return 0

        if memento is None:
            logger.debug("state_restore_no_saved_state")
            return 0

        if memento.is_stale(self.settings.restore_max_age):
            logger.info(
                "state_restore_stale",
                memento_id=memento.id,
                age_seconds=memento.get_age_in_seconds(),
            )
            return 0

        restored = 0
        for observer in self.registry.state_aware_observers():
            if observer.observer_id in self._restored_observers:
                continue
            state = memento.extract_slice(observer.state_key)
            if state is None:
                continue

            self._restored_observers.add(observer.observer_id)
            if await self._restore_observer(observer, state, memento.id):
                restored += 1

        logger.info("state_restored", memento_id=memento.id, restored_count=restored)
        return restored

    async def _restore_observer(
        self, observer: StateAwareObserver, state: dict[str, Any], memento_id: str
    ) -> bool:
        try:
            valid = observer.validate_state(state)
        except Exception as e:
            logger.warning(
                "state_restore_skipped",
                observer_id=observer.observer_id,
                state_key=observer.state_key,
                memento_id=memento_id,
                reason="validation_error",
                error=str(e),
            )
            return False

        if not valid:
            logger.warning(
                "state_restore_skipped",
                observer_id=observer.observer_id,
                state_key=observer.state_key,
                memento_id=memento_id,
                reason="validation_failed",
            )
            return False

        try:
            await observer.restore_state(state)
        except Exception as e:
            logger.error(
                "state_restore_failed",
                observer_id=observer.observer_id,
                state_key=observer.state_key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.debug(
            "observer_state_restored",
            observer_id=observer.observer_id,
            state_key=observer.state_key,
        )
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.settings.io_timeout_seconds)

    def _state(self) -> LifecycleState:
        return self._current_state or LifecycleState.DETACHED

    def _check_usable(self, operation: str) -> bool:
        if self._disposed:
            logger.warning("lifecycle_manager_disposed", operation=operation)
            return False
        if not self._initialized:
            logger.warning("lifecycle_manager_not_initialized", operation=operation)
            return False
        return True

    async def _periodic_save_loop(self) -> None:
        interval = self.settings.periodic_save_interval_seconds
        while True:
            await asyncio.sleep(interval)
            if self._current_state is not LifecycleState.RESUMED:
                continue
            async with self._lock:
                if self._disposed:
                    return
                await self._capture_and_save(trigger="periodic")

    async def _cancel_periodic_task(self) -> None:
        if self._periodic_task is None:
            return
        self._periodic_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._periodic_task
        self._periodic_task = None
