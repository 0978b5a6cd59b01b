"""File system memento repository.

Layout under ``<base_dir>/app_state_mementos``:

    <id>.json                  one record per memento (see codec)
    memento_index.json         sorted list of stored ids
    memento_statistics.json    last computed statistics

All blocking file operations run in a worker thread. Writes go to a
temporary file first and are moved into place with os.replace.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from applifecycle.memento import AppStateMemento, MementoStatistics

from .base import StatePersistenceRepository, compute_statistics
from .codec import COMPRESSION_THRESHOLD, decode_memento, encode_memento
from .exceptions import (
    MementoCorruptedError,
    MementoIOError,
    MementoValidationError,
    RepositoryInitializationError,
)

logger = structlog.get_logger()

MEMENTO_DIR_NAME = "app_state_mementos"
INDEX_FILE_NAME = "memento_index.json"
STATISTICS_FILE_NAME = "memento_statistics.json"
_RESERVED_FILE_NAMES = frozenset({INDEX_FILE_NAME, STATISTICS_FILE_NAME})


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.01, min=0.01, max=0.1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)


class FileStatePersistenceRepository(StatePersistenceRepository):
    """Stores each memento as a JSON file.

    Attributes:
        base_dir: Root directory given by the caller
        directory: Directory holding the memento files
        compression_threshold: Record size above which payloads are compressed
    """

    def __init__(
        self,
        base_dir: Path | str,
        compression_threshold: int = COMPRESSION_THRESHOLD,
    ) -> None:
        """Initialize file repository.

        Args:
            base_dir: Root directory for storage
            compression_threshold: Record size in bytes above which the
                payload is compressed
        """
        super().__init__()
        self.base_dir = Path(base_dir)
        self.directory = self.base_dir / MEMENTO_DIR_NAME
        self.compression_threshold = compression_threshold
        # id -> (memento, record size)
        self._cache: dict[str, tuple[AppStateMemento, int]] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Create the storage directory and load existing mementos.

        Raises:
            RepositoryInitializationError: If the directory cannot be created
                or read
        """
        if self._initialized:
            return

        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
            self._cache = await asyncio.to_thread(self._scan_directory)
        except OSError as e:
            logger.error(
                "repository_initialization_failed",
                directory=str(self.directory),
                error=str(e),
            )
            raise RepositoryInitializationError(
                f"Failed to initialize memento storage at {self.directory}", cause=e
            ) from e

        self._initialized = True
        logger.info(
            "file_repository_initialized",
            directory=str(self.directory),
            memento_count=len(self._cache),
        )

    async def dispose(self) -> None:
        """Flush index and statistics files and release the cache."""
        if not self._initialized:
            return

        try:
            await self._write_metadata()
        except MementoIOError as e:
            logger.warning("repository_flush_failed", error=e.message)
        finally:
            self._cache.clear()
            self._initialized = False
            logger.info("file_repository_disposed", directory=str(self.directory))

    # =========================================================================
    # Operations
    # =========================================================================

    async def save_memento(self, memento: AppStateMemento) -> None:
        self._ensure_initialized()
        path = self._path_for(memento.id)
        record = encode_memento(memento, self.compression_threshold)

        try:
            await asyncio.to_thread(_atomic_write, path, record)
        except OSError as e:
            raise MementoIOError(f"Failed to write memento {memento.id}", cause=e) from e

        self._cache[memento.id] = (decode_memento(record), len(record))
        await self._write_metadata()
        logger.debug("memento_saved", memento_id=memento.id, size_bytes=len(record))

    async def get_memento_by_id(self, memento_id: str) -> AppStateMemento | None:
        """Get a memento by id.

        Raises:
            MementoCorruptedError: If the stored record cannot be decoded
            MementoIOError: If the file exists but cannot be read
        """
        self._ensure_initialized()
        if memento_id in self._cache:
            return self._cache[memento_id][0]

        path = self._path_for(memento_id)
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise MementoIOError(f"Failed to read memento {memento_id}", cause=e) from e

        memento = decode_memento(raw)
        self._cache[memento_id] = (memento, len(raw))
        return memento

    async def get_all_mementos(self) -> list[AppStateMemento]:
        self._ensure_initialized()
        try:
            self._cache = await asyncio.to_thread(self._scan_directory)
        except OSError as e:
            raise MementoIOError("Failed to list mementos", cause=e) from e
        return sorted((m for m, _ in self._cache.values()), key=lambda m: m.timestamp)

    async def delete_memento(self, memento_id: str) -> bool:
        self._ensure_initialized()
        path = self._path_for(memento_id)
        self._cache.pop(memento_id, None)

        try:
            existed = await asyncio.to_thread(_unlink_if_exists, path)
        except OSError as e:
            raise MementoIOError(f"Failed to delete memento {memento_id}", cause=e) from e

        if existed:
            await self._write_metadata()
            logger.debug("memento_deleted", memento_id=memento_id)
        return existed

    async def clear_all_mementos(self) -> None:
        self._ensure_initialized()
        try:
            removed = await asyncio.to_thread(self._remove_all_records)
        except OSError as e:
            raise MementoIOError("Failed to clear mementos", cause=e) from e

        self._cache.clear()
        await self._write_metadata()
        logger.info("mementos_cleared", removed=removed)

    async def get_statistics(self) -> MementoStatistics:
        await self.get_all_mementos()
        return self._current_statistics()

    # =========================================================================
    # Internals
    # =========================================================================

    def _path_for(self, memento_id: str) -> Path:
        if (
            not memento_id
            or memento_id in (".", "..")
            or Path(memento_id).name != memento_id
            or f"{memento_id}.json" in _RESERVED_FILE_NAMES
        ):
            raise MementoValidationError(f"Invalid memento id: {memento_id!r}")
        return self.directory / f"{memento_id}.json"

    def _record_paths(self) -> list[Path]:
        return [
            p
            for p in self.directory.glob("*.json")
            if p.name not in _RESERVED_FILE_NAMES and not p.name.startswith(".")
        ]

    def _scan_directory(self) -> dict[str, tuple[AppStateMemento, int]]:
        """Read every record file, skipping ones that cannot be decoded."""
        found: dict[str, tuple[AppStateMemento, int]] = {}
        for path in self._record_paths():
            try:
                raw = path.read_bytes()
                memento = decode_memento(raw)
            except FileNotFoundError:
                continue
            except (OSError, MementoCorruptedError) as e:
                logger.warning("memento_file_skipped", path=str(path), error=str(e))
                continue
            found[memento.id] = (memento, len(raw))
        return found

    def _remove_all_records(self) -> int:
        removed = 0
        for path in self._record_paths():
            if _unlink_if_exists(path):
                removed += 1
        return removed

    def _current_statistics(self) -> MementoStatistics:
        return compute_statistics(
            (m for m, _ in self._cache.values()),
            total_size_bytes=sum(size for _, size in self._cache.values()),
        )

    async def _write_metadata(self) -> None:
        index = json.dumps(sorted(self._cache)).encode("utf-8")
        statistics = json.dumps(self._current_statistics().to_dict()).encode("utf-8")
        try:
            await asyncio.to_thread(_atomic_write, self.directory / INDEX_FILE_NAME, index)
            await asyncio.to_thread(
                _atomic_write, self.directory / STATISTICS_FILE_NAME, statistics
            )
        except OSError as e:
            raise MementoIOError("Failed to write repository metadata", cause=e) from e


def _unlink_if_exists(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
