"""Memento persistence.

Provides the repository contract, file and in-memory implementations,
the record codec and the persistence error hierarchy.
"""

from .base import StatePersistenceRepository, compute_statistics
from .codec import COMPRESSION_THRESHOLD, decode_memento, encode_memento, is_compressed
from .exceptions import (
    MementoCorruptedError,
    MementoIOError,
    MementoValidationError,
    RepositoryInitializationError,
    RepositoryNotInitializedError,
    StatePersistenceError,
)
from .file_repo import FileStatePersistenceRepository
from .memory_repo import InMemoryStatePersistenceRepository

__all__ = [
    "COMPRESSION_THRESHOLD",
    "FileStatePersistenceRepository",
    "InMemoryStatePersistenceRepository",
    "MementoCorruptedError",
    "MementoIOError",
    "MementoValidationError",
    "RepositoryInitializationError",
    "RepositoryNotInitializedError",
    "StatePersistenceError",
    "StatePersistenceRepository",
    "compute_statistics",
    "decode_memento",
    "encode_memento",
    "is_compressed",
]
