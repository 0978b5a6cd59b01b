"""
Pytest configuration and fixtures
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import structlog

from applifecycle.core.config import LifecycleSettings
from applifecycle.events.types import EventPriority, LifecycleEvent
from applifecycle.memento import AppStateMemento
from applifecycle.observers.base import StateAwareObserver
from applifecycle.repository import InMemoryStatePersistenceRepository


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults so log capture is not filtered by level."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def lifecycle_settings(tmp_path: Path) -> LifecycleSettings:
    """Settings isolated to a temporary directory, without background tasks."""
    return LifecycleSettings(
        storage_dir=tmp_path / "storage",
        periodic_save_interval_seconds=0,
        restore_on_initialize=False,
        save_on_dispose=False,
        io_timeout_seconds=0.5,
    )


@pytest.fixture
async def memory_repository() -> InMemoryStatePersistenceRepository:
    """Initialized in-memory repository."""
    repo = InMemoryStatePersistenceRepository()
    await repo.initialize()
    return repo


@pytest.fixture
def now() -> datetime:
    return datetime.now(UTC)


@pytest.fixture
def make_memento(now: datetime):
    """Factory for mementos with a timestamp offset in seconds from now."""

    def _make(memento_id: str, offset_seconds: float = 0, **fields: Any) -> AppStateMemento:
        return AppStateMemento(
            id=memento_id,
            timestamp=now + timedelta(seconds=offset_seconds),
            **fields,
        )

    return _make


class RecordingObserver(StateAwareObserver):
    """State-aware observer recording every interaction."""

    def __init__(
        self,
        observer_id: str,
        state_key: str,
        state: dict[str, Any] | None = None,
        priority: EventPriority = EventPriority.MEDIUM,
        valid: bool = True,
    ) -> None:
        self.observer_id = observer_id
        self.state_key = state_key
        self.priority = priority
        self.state = state or {}
        self.valid = valid
        self.events: list[LifecycleEvent] = []
        self.restored: list[dict[str, Any]] = []
        self.capture_count = 0

    def capture_state(self) -> dict[str, Any]:
        self.capture_count += 1
        return dict(self.state)

    def validate_state(self, state: dict[str, Any]) -> bool:
        return self.valid

    async def restore_state(self, state: dict[str, Any]) -> None:
        self.restored.append(state)

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        self.events.append(event)


@pytest.fixture
def recording_observer_cls() -> type[RecordingObserver]:
    return RecordingObserver
