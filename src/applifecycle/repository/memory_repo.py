"""In-memory memento repository.

Satisfies the same contract as the file repository, without persistence
across process restarts. Records are kept in encoded form so size
statistics and compression behave exactly as on disk.
"""

from __future__ import annotations

import structlog

from applifecycle.memento import AppStateMemento, MementoStatistics

from .base import StatePersistenceRepository, compute_statistics
from .codec import COMPRESSION_THRESHOLD, decode_memento, encode_memento

logger = structlog.get_logger()


class InMemoryStatePersistenceRepository(StatePersistenceRepository):
    """Dict-backed repository, mainly for tests."""

    def __init__(self, compression_threshold: int = COMPRESSION_THRESHOLD) -> None:
        super().__init__()
        self.compression_threshold = compression_threshold
        self._records: dict[str, bytes] = {}
        self._mementos: dict[str, AppStateMemento] = {}

    async def initialize(self) -> None:
        self._initialized = True
        logger.debug("memory_repository_initialized")

    async def dispose(self) -> None:
        self._records.clear()
        self._mementos.clear()
        self._initialized = False
        logger.debug("memory_repository_disposed")

    async def save_memento(self, memento: AppStateMemento) -> None:
        self._ensure_initialized()
        record = encode_memento(memento, self.compression_threshold)
        self._records[memento.id] = record
        # Keep what a reader would get back, not the caller's instance
        self._mementos[memento.id] = decode_memento(record)
        logger.debug("memento_saved", memento_id=memento.id, size_bytes=len(record))

    async def get_memento_by_id(self, memento_id: str) -> AppStateMemento | None:
        self._ensure_initialized()
        return self._mementos.get(memento_id)

    async def get_all_mementos(self) -> list[AppStateMemento]:
        self._ensure_initialized()
        return sorted(self._mementos.values(), key=lambda m: m.timestamp)

    async def delete_memento(self, memento_id: str) -> bool:
        self._ensure_initialized()
        self._records.pop(memento_id, None)
        return self._mementos.pop(memento_id, None) is not None

    async def clear_all_mementos(self) -> None:
        self._ensure_initialized()
        self._records.clear()
        self._mementos.clear()

    async def get_statistics(self) -> MementoStatistics:
        self._ensure_initialized()
        return compute_statistics(
            self._mementos.values(),
            total_size_bytes=sum(len(r) for r in self._records.values()),
        )

    def get_raw_record(self, memento_id: str) -> bytes | None:
        """Get the stored form of a memento (for inspection)."""
        return self._records.get(memento_id)
