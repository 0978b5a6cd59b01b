"""State memento contracts and typed state slices.

StateMemento is the generic snapshot contract. The concrete subclasses give
each known state category (UI, navigation, session, pattern page,
configuration) a typed shape, while free-form data stays in plain dicts.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from applifecycle.events.types import ensure_utc

__all__ = [
    "StateMemento",
    "UIStateMemento",
    "NavigationStateMemento",
    "SessionStateMemento",
    "PatternStateMemento",
    "ConfigurationMemento",
    "TypedStateMemento",
    "MementoStatistics",
    "parse_state_memento",
]


class StateMemento(BaseModel):
    """Base class for all state snapshots.

    Attributes:
        memento_id: Unique identifier for this memento
        timestamp: When the snapshot was taken
        originator_id: Component that produced the snapshot
        state_version: Version of the state format
    """

    memento_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    originator_id: str
    state_version: str = "1.0.0"

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def to_dict(self) -> dict[str, Any]:
        """Serialize memento to a JSON-safe dict."""
        return self.model_dump(mode="json")

    def get_age(self, now: datetime | None = None) -> timedelta:
        """Get the age of this memento at query time."""
        return (now or datetime.now(UTC)) - self.timestamp

    def is_stale(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """Check if this memento is older than max_age.

        Args:
            max_age: Maximum acceptable age
            now: Reference time (default: current UTC time)

        Returns:
            True if the memento is older than max_age
        """
        return self.get_age(now) > max_age


class UIStateMemento(StateMemento):
    """Snapshot of a UI component."""

    kind: Literal["ui"] = "ui"
    widget_state: dict[str, Any] = Field(default_factory=dict)
    form_state: dict[str, Any] = Field(default_factory=dict)
    scroll_positions: dict[str, float] = Field(default_factory=dict)
    focus_states: dict[str, bool] = Field(default_factory=dict)
    selection_states: dict[str, Any] = Field(default_factory=dict)
    animation_states: dict[str, float] = Field(default_factory=dict)


class NavigationStateMemento(StateMemento):
    """Snapshot of navigation state."""

    kind: Literal["navigation"] = "navigation"
    current_route: str = "/"
    route_parameters: dict[str, str] = Field(default_factory=dict)
    navigation_stack: list[str] = Field(default_factory=lambda: ["/"])
    tab_indices: dict[str, int] = Field(default_factory=dict)
    is_drawer_open: bool = False
    modal_states: dict[str, bool] = Field(default_factory=dict)


class SessionStateMemento(StateMemento):
    """Snapshot of the user session.

    Tokens are carried as opaque strings; encrypting them is the
    session owner's job.
    """

    kind: Literal["session"] = "session"
    is_authenticated: bool = False
    user_profile: dict[str, Any] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)
    tokens: dict[str, str] = Field(default_factory=dict)
    last_activity: datetime | None = None
    session_metadata: dict[str, Any] = Field(default_factory=dict)


class PatternStateMemento(StateMemento):
    """Snapshot of a pattern page (creational, structural, behavioral)."""

    kind: Literal["pattern"] = "pattern"
    pattern_category: str
    selected_pattern: str | None = None
    view_mode_state: dict[str, Any] = Field(default_factory=dict)
    filter_states: dict[str, Any] = Field(default_factory=dict)
    search_states: dict[str, str] = Field(default_factory=dict)
    favorite_patterns: list[str] = Field(default_factory=list)
    pattern_data: dict[str, Any] = Field(default_factory=dict)


class ConfigurationMemento(StateMemento):
    """Snapshot of application configuration."""

    kind: Literal["configuration"] = "configuration"
    app_settings: dict[str, Any] = Field(default_factory=dict)
    theme_config: dict[str, Any] = Field(default_factory=dict)
    localization_config: dict[str, str] = Field(default_factory=dict)
    feature_flags: dict[str, bool] = Field(default_factory=dict)
    performance_config: dict[str, Any] = Field(default_factory=dict)


TypedStateMemento = Annotated[
    UIStateMemento
    | NavigationStateMemento
    | SessionStateMemento
    | PatternStateMemento
    | ConfigurationMemento,
    Field(discriminator="kind"),
]

_typed_memento_adapter: TypeAdapter[Any] = TypeAdapter(TypedStateMemento)


def parse_state_memento(data: dict[str, Any]) -> StateMemento:
    """Parse a serialized typed memento by its kind discriminator.

    Args:
        data: Serialized memento including a "kind" field

    Returns:
        The matching StateMemento subclass instance

    Raises:
        pydantic.ValidationError: If kind is unknown or fields are invalid
    """
    return _typed_memento_adapter.validate_python(data)  # type: ignore[no-any-return]


class MementoStatistics(BaseModel):
    """Statistics about stored mementos."""

    total_mementos: int = 0
    oldest_memento: datetime | None = None
    newest_memento: datetime | None = None
    total_size_bytes: int = 0
    average_age: timedelta = timedelta(0)
    originator_counts: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls) -> MementoStatistics:
        """Zero-value statistics for an empty store."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_mementos": self.total_mementos,
            "oldest_memento": self.oldest_memento.isoformat() if self.oldest_memento else None,
            "newest_memento": self.newest_memento.isoformat() if self.newest_memento else None,
            "total_size_bytes": self.total_size_bytes,
            "average_age_seconds": int(self.average_age.total_seconds()),
            "originator_counts": dict(self.originator_counts),
        }
