"""State manager.

Sits between the lifecycle manager and the repository: validates mementos
before they are stored, keeps an in-memory history and enforces the
retention policy.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from applifecycle.memento import AppStateMemento
from applifecycle.repository import (
    MementoValidationError,
    StatePersistenceRepository,
)

logger = structlog.get_logger()

DEFAULT_MAX_STORED_MEMENTOS = 10
DEFAULT_MEMENTO_LIFETIME = timedelta(days=7)
MAX_CLOCK_SKEW = timedelta(minutes=1)


class StateManager:
    """Manages saved app state snapshots.

    Repository errors propagate to the caller.

    Attributes:
        repository: Backing memento store
        max_stored_mementos: Retention limit
        memento_lifetime: Mementos older than this are purged
    """

    def __init__(
        self,
        repository: StatePersistenceRepository,
        max_stored_mementos: int = DEFAULT_MAX_STORED_MEMENTOS,
        memento_lifetime: timedelta = DEFAULT_MEMENTO_LIFETIME,
    ) -> None:
        self.repository = repository
        self.max_stored_mementos = max_stored_mementos
        self.memento_lifetime = memento_lifetime
        self._history: list[AppStateMemento] = []
        self._current_memento: AppStateMemento | None = None
        self._last_saved_memento: AppStateMemento | None = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def current_memento(self) -> AppStateMemento | None:
        return self._current_memento

    @property
    def history(self) -> list[AppStateMemento]:
        """Known mementos ordered by ascending timestamp."""
        return list(self._history)

    async def initialize(self) -> None:
        """Initialize the repository, load history and apply retention.

        Raises:
            StatePersistenceError: If the repository cannot be initialized
        """
        if self._initialized:
            return

        await self.repository.initialize()
        self._history = await self.repository.get_all_mementos()
        if self._history:
            self._last_saved_memento = self._history[-1]

        self._initialized = True
        await self.cleanup()
        logger.info("state_manager_initialized", memento_count=len(self._history))

    async def dispose(self) -> None:
        if not self._initialized:
            return
        await self.repository.dispose()
        self._history.clear()
        self._current_memento = None
        self._initialized = False
        logger.info("state_manager_disposed")

    async def save_state(self, memento: AppStateMemento) -> None:
        """Validate and store a memento.

        Args:
            memento: Memento to save

        Raises:
            MementoValidationError: If the memento has an empty id or a
                timestamp more than a minute in the future
            StatePersistenceError: If the repository fails
        """
        self._validate(memento)
        await self.repository.save_memento(memento)

        self._current_memento = memento
        self._last_saved_memento = memento
        self._add_to_history(memento)
        logger.debug("state_saved", memento_id=memento.id)

        if len(self._history) > self.max_stored_mementos:
            await self._enforce_limit()

    async def get_last_saved_state(self) -> AppStateMemento | None:
        """Get the most recent saved memento from the repository."""
        memento = await self.repository.get_latest_memento()
        if memento is not None:
            self._current_memento = memento
        return memento

    async def get_state_by_id(self, memento_id: str) -> AppStateMemento | None:
        return await self.repository.get_memento_by_id(memento_id)

    async def get_all_states(self) -> list[AppStateMemento]:
        return await self.repository.get_all_mementos()

    async def delete_state(self, memento_id: str) -> bool:
        deleted = await self.repository.delete_memento(memento_id)
        self._history = [m for m in self._history if m.id != memento_id]
        if self._current_memento is not None and self._current_memento.id == memento_id:
            self._current_memento = None
        if self._last_saved_memento is not None and self._last_saved_memento.id == memento_id:
            self._last_saved_memento = self._history[-1] if self._history else None
        return deleted

    async def clear_all_states(self) -> None:
        await self.repository.clear_all_mementos()
        self._history.clear()
        self._current_memento = None
        self._last_saved_memento = None
        logger.info("states_cleared")

    async def cleanup(self, now: datetime | None = None) -> int:
        """Delete expired mementos and trim history to the retention limit.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Number of mementos deleted
        """
        cutoff = (now or datetime.now(UTC)) - self.memento_lifetime
        expired = [m for m in self._history if m.timestamp < cutoff]
        for memento in expired:
            await self.delete_state(memento.id)

        removed = len(expired) + await self._enforce_limit()
        if removed:
            logger.info("mementos_cleaned_up", removed=removed)
        return removed

    def get_state_statistics(self) -> dict[str, Any]:
        return {
            "total_mementos": len(self._history),
            "current_memento_id": self._current_memento.id if self._current_memento else None,
            "last_saved_memento_id": (
                self._last_saved_memento.id if self._last_saved_memento else None
            ),
            "oldest_memento": (
                self._history[0].timestamp.isoformat() if self._history else None
            ),
            "newest_memento": (
                self._history[-1].timestamp.isoformat() if self._history else None
            ),
            "is_initialized": self._initialized,
        }

    @staticmethod
    def create_state_diff(
        old_state: AppStateMemento, new_state: AppStateMemento
    ) -> dict[str, Any]:
        return old_state.diff(new_state)

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate(self, memento: AppStateMemento) -> None:
        if not memento.id:
            raise MementoValidationError("Memento ID cannot be empty")
        if memento.timestamp > datetime.now(UTC) + MAX_CLOCK_SKEW:
            raise MementoValidationError("Memento timestamp cannot be in the future")

    def _add_to_history(self, memento: AppStateMemento) -> None:
        by_id = {m.id: m for m in self._history}
        by_id[memento.id] = memento
        self._history = sorted(by_id.values(), key=lambda m: m.timestamp)

    async def _enforce_limit(self) -> int:
        excess = len(self._history) - self.max_stored_mementos
        if excess <= 0:
            return 0
        # History is ascending, so the oldest come first
        for memento in self._history[:excess]:
            await self.delete_state(memento.id)
        return excess
