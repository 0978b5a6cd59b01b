"""Base repository contract for memento persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from applifecycle.memento import AppStateMemento, MementoStatistics

from .exceptions import RepositoryNotInitializedError


class StatePersistenceRepository(ABC):
    """Contract for storing and retrieving app state mementos.

    Implementations store mementos without interpreting their contents.
    Every operation except initialize() and dispose() raises
    RepositoryNotInitializedError when the repository is not initialized.
    """

    def __init__(self) -> None:
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the repository is initialized."""
        return self._initialized

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RepositoryNotInitializedError()

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare backing storage. Idempotent."""

    @abstractmethod
    async def dispose(self) -> None:
        """Flush pending data and release resources."""

    @abstractmethod
    async def save_memento(self, memento: AppStateMemento) -> None:
        """Store a memento, replacing any memento with the same id."""

    @abstractmethod
    async def get_memento_by_id(self, memento_id: str) -> AppStateMemento | None:
        """Get a memento by id, or None if it does not exist."""

    @abstractmethod
    async def get_all_mementos(self) -> list[AppStateMemento]:
        """Get all stored mementos ordered by ascending timestamp."""

    @abstractmethod
    async def delete_memento(self, memento_id: str) -> bool:
        """Delete a memento.

        Returns:
            True if a memento was removed
        """

    @abstractmethod
    async def clear_all_mementos(self) -> None:
        """Remove every stored memento."""

    @abstractmethod
    async def get_statistics(self) -> MementoStatistics:
        """Get statistics about the stored mementos."""

    async def get_latest_memento(self) -> AppStateMemento | None:
        """Get the memento with the greatest timestamp.

        Returns:
            Latest memento, or None if the store is empty
        """
        self._ensure_initialized()
        mementos = await self.get_all_mementos()
        if not mementos:
            return None
        return max(mementos, key=lambda m: m.timestamp)


def compute_statistics(
    mementos: Iterable[AppStateMemento],
    total_size_bytes: int,
    now: datetime | None = None,
) -> MementoStatistics:
    """Build statistics for a collection of mementos.

    Args:
        mementos: Stored mementos
        total_size_bytes: Size of the stored records
        now: Reference time for ages (default: current UTC time)

    Returns:
        Statistics, or the zero-value record for an empty collection
    """
    items = list(mementos)
    if not items:
        return MementoStatistics.empty()

    now = now or datetime.now(UTC)
    total_age = sum((now - m.timestamp for m in items), timedelta(0))

    originator_counts: dict[str, int] = {}
    for memento in items:
        originator_counts[memento.originator_id] = (
            originator_counts.get(memento.originator_id, 0) + 1
        )

    return MementoStatistics(
        total_mementos=len(items),
        oldest_memento=min(m.timestamp for m in items),
        newest_memento=max(m.timestamp for m in items),
        total_size_bytes=total_size_bytes,
        average_age=total_age / len(items),
        originator_counts=originator_counts,
    )
