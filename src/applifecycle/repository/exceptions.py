"""Custom exceptions for state persistence operations."""

from __future__ import annotations


class StatePersistenceError(Exception):
    """Base exception for state persistence operations.

    Attributes:
        message: Error description
        cause: Original exception that caused this error
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize persistence error.

        Args:
            message: Error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.cause = cause


class RepositoryNotInitializedError(StatePersistenceError):
    """Repository used before initialize() or after dispose().

    Raised by every public repository operation without touching
    the backing store.
    """

    def __init__(self, message: str = "Repository not initialized") -> None:
        super().__init__(message)


class RepositoryInitializationError(StatePersistenceError):
    """Backing storage could not be prepared.

    The repository stays uninitialized, so later operations fail
    with RepositoryNotInitializedError.
    """

    pass


class MementoIOError(StatePersistenceError):
    """Reading or writing a memento record failed."""

    pass


class MementoCorruptedError(StatePersistenceError):
    """A stored record could not be decoded into a memento."""

    pass


class MementoValidationError(StatePersistenceError):
    """Memento failed validation before being persisted.

    Raised for empty ids, timestamps too far in the future, or state that
    cannot be serialized.
    """

    pass
