"""Lifecycle integration facade.

Wires the repository, state manager, lifecycle manager and observer
registry together. Instances are constructed explicitly and passed to
whoever needs them.
"""

from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog

from applifecycle.core.config import LifecycleSettings, get_lifecycle_settings
from applifecycle.events import EventListener, EventPriority, LifecycleEvent, LifecycleState
from applifecycle.events.handlers import LoggingEventHandler
from applifecycle.observers import LifecycleObserver, StateAwareObserver, StateObserverAdapter
from applifecycle.observers.adapters import CaptureCallback, RestoreCallback, ValidateCallback
from applifecycle.observers.base import has_required_keys
from applifecycle.repository import (
    FileStatePersistenceRepository,
    StatePersistenceError,
    StatePersistenceRepository,
)
from applifecycle.services import LifecycleManager, StateManager

logger = structlog.get_logger()

APP_OBSERVER_ID = "app_level_observer"
APP_STATE_KEY = "app"


class AppLevelObserver(StateAwareObserver):
    """Built-in observer recording app-wide facts in every snapshot."""

    observer_id = APP_OBSERVER_ID
    state_key = APP_STATE_KEY
    priority = EventPriority.HIGH

    def __init__(self) -> None:
        self.last_event: LifecycleEvent | None = None
        self.restored_state: dict[str, Any] | None = None

    def capture_state(self) -> dict[str, Any]:
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "platform": sys.platform,
            "last_event_type": str(self.last_event.event_type) if self.last_event else None,
        }

    def validate_state(self, state: dict[str, Any]) -> bool:
        return has_required_keys(state, ("timestamp", "platform"))

    async def restore_state(self, state: dict[str, Any]) -> None:
        self.restored_state = dict(state)
        logger.debug("app_state_restored", saved_at=state.get("timestamp"))

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        self.last_event = event


class LifecycleIntegration:
    """Entry point for hosting applications.

    Usage:
        integration = LifecycleIntegration()
        await integration.initialize()

        integration.register_observer(session_observer)
        await integration.handle_lifecycle_state_change(LifecycleState.PAUSED)

        await integration.dispose()
    """

    def __init__(self, settings: LifecycleSettings | None = None) -> None:
        """Initialize integration.

        Args:
            settings: Lifecycle settings (cached settings if omitted)
        """
        self.settings = settings or get_lifecycle_settings()
        self.app_observer = AppLevelObserver()
        self._repository: StatePersistenceRepository | None = None
        self._manager: LifecycleManager | None = None
        self._logging_handler = LoggingEventHandler()
        self._initialized = False

    async def initialize(
        self,
        repository: StatePersistenceRepository | None = None,
        observers: Iterable[LifecycleObserver] = (),
        initial_state: LifecycleState = LifecycleState.RESUMED,
    ) -> None:
        """Build and start the lifecycle stack (call once at app startup).

        Args:
            repository: Memento store (file repository under
                settings.storage_dir if omitted)
            observers: Observers registered before the initial restore
            initial_state: Lifecycle state reported by the host at startup
        """
        if self._initialized:
            return

        self._repository = repository or FileStatePersistenceRepository(
            self.settings.storage_dir,
            compression_threshold=self.settings.compression_threshold,
        )
        state_manager = StateManager(
            self._repository,
            max_stored_mementos=self.settings.max_stored_mementos,
            memento_lifetime=self.settings.memento_lifetime,
        )
        self._manager = LifecycleManager(state_manager, settings=self.settings)

        self._manager.registry.subscribe_all(self._logging_handler.handle)
        self._manager.add_observer(self.app_observer)
        for observer in observers:
            self._manager.add_observer(observer)

        await self._manager.initialize(initial_state)

        self._initialized = True
        logger.info(
            "lifecycle_integration_initialized",
            repository=type(self._repository).__name__,
            observer_count=len(self._manager.registry),
        )

    @property
    def is_initialized(self) -> bool:
        """Check if integration is initialized.

        Returns:
            True if initialize() has been called
        """
        return self._initialized

    @property
    def manager(self) -> LifecycleManager:
        """Get the lifecycle manager.

        Raises:
            RuntimeError: If integration not initialized
        """
        if self._manager is None:
            raise RuntimeError("Lifecycle integration not initialized. Call initialize() first.")
        return self._manager

    @property
    def repository(self) -> StatePersistenceRepository:
        """Get the memento repository.

        Raises:
            RuntimeError: If integration not initialized
        """
        if self._repository is None:
            raise RuntimeError("Lifecycle integration not initialized. Call initialize() first.")
        return self._repository

    # =========================================================================
    # Observers
    # =========================================================================

    def register_observer(self, observer: LifecycleObserver) -> bool:
        return self.manager.add_observer(observer)

    def unregister_observer(self, observer: LifecycleObserver) -> bool:
        return self.manager.remove_observer(observer)

    def register_callbacks(
        self,
        observer_id: str,
        state_key: str,
        capture: CaptureCallback,
        restore: RestoreCallback,
        validate: ValidateCallback | None = None,
        priority: EventPriority = EventPriority.MEDIUM,
    ) -> StateObserverAdapter:
        """Register capture/restore callbacks as a state-aware observer.

        Returns:
            The registered adapter, for later unregistration
        """
        adapter = StateObserverAdapter(
            observer_id=observer_id,
            state_key=state_key,
            capture=capture,
            restore=restore,
            validate=validate,
            priority=priority,
        )
        self.register_observer(adapter)
        return adapter

    def subscribe(self, listener: EventListener) -> None:
        """Receive every lifecycle event."""
        self.manager.registry.subscribe_all(listener)

    def unsubscribe(self, listener: EventListener) -> bool:
        return self.manager.registry.unsubscribe_all(listener)

    # =========================================================================
    # Operations
    # =========================================================================

    async def save_state(self) -> bool:
        return await self.manager.save_state()

    async def handle_lifecycle_state_change(
        self, new_state: LifecycleState
    ) -> LifecycleEvent | None:
        return await self.manager.handle_lifecycle_state_change(new_state)

    async def get_system_statistics(self) -> dict[str, Any]:
        """Collect manager and repository statistics.

        Returns:
            Statistics dict; repository statistics are None when unavailable
        """
        stats: dict[str, Any] = {
            "is_initialized": self._initialized,
            "lifecycle": self.manager.get_statistics(),
            "repository": None,
        }
        try:
            repo_stats = await self.repository.get_statistics()
            stats["repository"] = repo_stats.to_dict()
        except StatePersistenceError as e:
            logger.warning("repository_statistics_unavailable", error=e.message)
        return stats

    async def dispose(self) -> None:
        """Dispose the lifecycle stack."""
        if self._manager is not None:
            await self._manager.dispose()
        self._initialized = False
        logger.info("lifecycle_integration_disposed")


@asynccontextmanager
async def lifespan(
    settings: LifecycleSettings | None = None,
    repository: StatePersistenceRepository | None = None,
    observers: Iterable[LifecycleObserver] = (),
) -> AsyncIterator[LifecycleIntegration]:
    """Run a lifecycle integration for the duration of a block.

    Example:
        async with lifespan() as integration:
            integration.register_observer(observer)
            ...
    """
    integration = LifecycleIntegration(settings)
    await integration.initialize(repository=repository, observers=observers)
    try:
        yield integration
    finally:
        await integration.dispose()
