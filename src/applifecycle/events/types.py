"""Lifecycle event type definitions.

Every transition reported by the host platform is turned into an immutable
LifecycleEvent. Whether an event triggers state persistence is derived from
its type and can never be set independently.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

__all__ = [
    "LifecycleState",
    "LifecycleEventType",
    "EventPriority",
    "EventSource",
    "LifecycleEvent",
    "ensure_utc",
    "parse_enum",
]

E = TypeVar("E", bound=StrEnum)


class LifecycleState(StrEnum):
    """Application lifecycle phases reported by the host platform."""

    RESUMED = "resumed"
    INACTIVE = "inactive"
    PAUSED = "paused"
    DETACHED = "detached"
    HIDDEN = "hidden"

    @property
    def is_background(self) -> bool:
        """Check if the app is not in the foreground."""
        return self is not LifecycleState.RESUMED

    @property
    def is_active(self) -> bool:
        """Check if the app is in the foreground."""
        return self is LifecycleState.RESUMED

    @property
    def persistence_priority(self) -> int:
        """Get priority for state persistence (higher = more important)."""
        return _PERSISTENCE_PRIORITY[self]


_PERSISTENCE_PRIORITY: dict[LifecycleState, int] = {
    LifecycleState.PAUSED: 10,
    LifecycleState.INACTIVE: 8,
    LifecycleState.DETACHED: 6,
    LifecycleState.HIDDEN: 4,
    LifecycleState.RESUMED: 2,
}


class EventPriority(StrEnum):
    """Priority levels for event handling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is handled first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[EventPriority, int] = {
    EventPriority.LOW: 0,
    EventPriority.MEDIUM: 1,
    EventPriority.HIGH: 2,
    EventPriority.CRITICAL: 3,
}


class EventSource(StrEnum):
    """Sources of lifecycle events."""

    SYSTEM = "system"
    USER = "user"
    APPLICATION = "application"
    NETWORK = "network"
    DEVICE = "device"


class LifecycleEventType(StrEnum):
    """All lifecycle event types."""

    STATE_CHANGE = "state_change"
    BACKGROUNDING = "backgrounding"
    FOREGROUNDING = "foregrounding"
    TERMINATING = "terminating"
    MANUAL_SAVE = "manual_save"
    LOW_MEMORY = "low_memory"
    CONNECTIVITY_CHANGE = "connectivity_change"
    BATTERY_CHANGE = "battery_change"
    ORIENTATION_CHANGE = "orientation_change"

    @property
    def default_priority(self) -> EventPriority:
        """Get default priority for this event type."""
        return _DEFAULT_PRIORITY[self]

    @property
    def should_trigger_persistence(self) -> bool:
        """Check if this event type should trigger state persistence."""
        return self in _PERSISTING_TYPES


_DEFAULT_PRIORITY: dict[LifecycleEventType, EventPriority] = {
    LifecycleEventType.TERMINATING: EventPriority.CRITICAL,
    LifecycleEventType.BACKGROUNDING: EventPriority.HIGH,
    LifecycleEventType.FOREGROUNDING: EventPriority.HIGH,
    LifecycleEventType.LOW_MEMORY: EventPriority.HIGH,
    LifecycleEventType.MANUAL_SAVE: EventPriority.MEDIUM,
    LifecycleEventType.CONNECTIVITY_CHANGE: EventPriority.MEDIUM,
    LifecycleEventType.STATE_CHANGE: EventPriority.LOW,
    LifecycleEventType.BATTERY_CHANGE: EventPriority.LOW,
    LifecycleEventType.ORIENTATION_CHANGE: EventPriority.LOW,
}

_PERSISTING_TYPES = frozenset(
    {
        LifecycleEventType.BACKGROUNDING,
        LifecycleEventType.TERMINATING,
        LifecycleEventType.MANUAL_SAVE,
        LifecycleEventType.LOW_MEMORY,
    }
)


def parse_enum(enum_cls: type[E], value: Any, default: E) -> E:
    """Parse an enum member by value, falling back to a default.

    Args:
        enum_cls: StrEnum class to parse into
        value: Raw value (member, string or None)
        default: Member returned for missing or unknown values

    Returns:
        Parsed enum member
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def ensure_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware datetimes are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _new_event_id(prefix: str) -> str:
    return f"{prefix}_{time.time_ns() // 1_000_000}_{uuid4().hex[:8]}"


class LifecycleEvent(BaseModel):
    """A single lifecycle transition.

    Observers branch on the derived predicates instead of re-deriving
    context from raw states.
    """

    event_id: str = Field(default_factory=lambda: _new_event_id("evt"))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    previous_state: LifecycleState | None = None
    current_state: LifecycleState
    event_type: LifecycleEventType = LifecycleEventType.STATE_CHANGE
    state_duration: timedelta | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    priority: EventPriority = EventPriority.LOW
    source: EventSource = EventSource.SYSTEM

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _apply_type_defaults(cls, data: Any) -> Any:
        """Fill priority from the event type and drop derived fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Derived from event_type, never accepted from input
        data.pop("should_persist_state", None)
        if data.get("priority") is None:
            event_type = parse_enum(
                LifecycleEventType,
                data.get("event_type"),
                LifecycleEventType.STATE_CHANGE,
            )
            data["priority"] = event_type.default_priority
        return data

    @field_validator("timestamp", mode="after")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def should_persist_state(self) -> bool:
        """Whether this event should trigger state persistence."""
        return self.event_type.should_trigger_persistence

    @property
    def is_backgrounding(self) -> bool:
        """Check if this event indicates the app is going to background."""
        return self.event_type is LifecycleEventType.BACKGROUNDING or self.current_state in (
            LifecycleState.PAUSED,
            LifecycleState.DETACHED,
        )

    @property
    def is_foregrounding(self) -> bool:
        """Check if this event indicates the app is coming to foreground."""
        return self.event_type is LifecycleEventType.FOREGROUNDING or (
            self.current_state is LifecycleState.RESUMED
            and self.previous_state in (LifecycleState.PAUSED, LifecycleState.DETACHED)
        )

    @property
    def is_terminating(self) -> bool:
        """Check if this event indicates app termination."""
        return (
            self.event_type is LifecycleEventType.TERMINATING
            or self.current_state is LifecycleState.DETACHED
        )

    def age(self, now: datetime | None = None) -> timedelta:
        """Get the age of this event.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Time elapsed since the event occurred
        """
        return (now or datetime.now(UTC)) - self.timestamp

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def app_backgrounded(
        cls,
        current_state: LifecycleState,
        previous_state: LifecycleState | None = None,
        state_duration: timedelta | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a lifecycle event for app backgrounding."""
        return cls(
            event_id=_new_event_id("bg"),
            previous_state=previous_state,
            current_state=current_state,
            event_type=LifecycleEventType.BACKGROUNDING,
            state_duration=state_duration,
            metadata=metadata or {},
            source=EventSource.SYSTEM,
        )

    @classmethod
    def app_foregrounded(
        cls,
        current_state: LifecycleState = LifecycleState.RESUMED,
        previous_state: LifecycleState | None = None,
        state_duration: timedelta | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a lifecycle event for app foregrounding."""
        return cls(
            event_id=_new_event_id("fg"),
            previous_state=previous_state,
            current_state=current_state,
            event_type=LifecycleEventType.FOREGROUNDING,
            state_duration=state_duration,
            metadata=metadata or {},
            source=EventSource.SYSTEM,
        )

    @classmethod
    def app_terminating(
        cls,
        previous_state: LifecycleState | None = None,
        state_duration: timedelta | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a lifecycle event for app termination."""
        return cls(
            event_id=_new_event_id("term"),
            previous_state=previous_state,
            current_state=LifecycleState.DETACHED,
            event_type=LifecycleEventType.TERMINATING,
            state_duration=state_duration,
            metadata=metadata or {},
            source=EventSource.SYSTEM,
        )

    @classmethod
    def manual_save(
        cls,
        current_state: LifecycleState,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a manual state save event."""
        return cls(
            event_id=_new_event_id("manual"),
            current_state=current_state,
            event_type=LifecycleEventType.MANUAL_SAVE,
            metadata=metadata or {},
            source=EventSource.USER,
        )

    @classmethod
    def low_memory(
        cls,
        current_state: LifecycleState,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a memory pressure event."""
        return cls(
            event_id=_new_event_id("memory"),
            current_state=current_state,
            event_type=LifecycleEventType.LOW_MEMORY,
            metadata={"reason": "memory_pressure", **(metadata or {})},
            source=EventSource.SYSTEM,
        )

    @classmethod
    def connectivity_changed(
        cls,
        current_state: LifecycleState,
        is_connected: bool,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a network connectivity change event."""
        return cls(
            event_id=_new_event_id("net"),
            current_state=current_state,
            event_type=LifecycleEventType.CONNECTIVITY_CHANGE,
            metadata={"is_connected": is_connected, **(metadata or {})},
            source=EventSource.NETWORK,
        )

    @classmethod
    def battery_changed(
        cls,
        current_state: LifecycleState,
        level: float,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a battery level change event."""
        return cls(
            event_id=_new_event_id("battery"),
            current_state=current_state,
            event_type=LifecycleEventType.BATTERY_CHANGE,
            metadata={"level": level, **(metadata or {})},
            source=EventSource.DEVICE,
        )

    @classmethod
    def orientation_changed(
        cls,
        current_state: LifecycleState,
        orientation: str,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a device orientation change event."""
        return cls(
            event_id=_new_event_id("orientation"),
            current_state=current_state,
            event_type=LifecycleEventType.ORIENTATION_CHANGE,
            metadata={"orientation": orientation, **(metadata or {})},
            source=EventSource.DEVICE,
        )

    @classmethod
    def state_changed(
        cls,
        current_state: LifecycleState,
        previous_state: LifecycleState | None = None,
        state_duration: timedelta | None = None,
        priority: EventPriority | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LifecycleEvent:
        """Create a general state change event."""
        return cls(
            event_id=_new_event_id("state"),
            previous_state=previous_state,
            current_state=current_state,
            event_type=LifecycleEventType.STATE_CHANGE,
            state_duration=state_duration,
            priority=priority,
            metadata=metadata or {},
            source=EventSource.SYSTEM,
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to a JSON-safe dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LifecycleEvent:
        """Create an event from a dict, tolerating unknown enum values.

        Args:
            data: Serialized event

        Returns:
            Parsed event
        """
        previous = data.get("previous_state")
        return cls.model_validate(
            {
                "event_id": data.get("event_id") or _new_event_id("evt"),
                "timestamp": data.get("timestamp") or datetime.now(UTC),
                "previous_state": (
                    parse_enum(LifecycleState, previous, LifecycleState.DETACHED)
                    if previous is not None
                    else None
                ),
                "current_state": parse_enum(
                    LifecycleState, data.get("current_state"), LifecycleState.DETACHED
                ),
                "event_type": parse_enum(
                    LifecycleEventType,
                    data.get("event_type"),
                    LifecycleEventType.STATE_CHANGE,
                ),
                "state_duration": data.get("state_duration"),
                "metadata": data.get("metadata") or {},
                "priority": parse_enum(
                    EventPriority, data.get("priority"), EventPriority.MEDIUM
                ),
                "source": parse_enum(EventSource, data.get("source"), EventSource.SYSTEM),
            }
        )
