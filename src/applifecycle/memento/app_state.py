"""Composite application state snapshot.

AppStateMemento captures everything that should survive the app going to
the background: route information plus one sub-map per state category.
Each sub-map is owned by exactly one kind of observer; the routing from an
observer's state key to its sub-map lives here and nowhere else.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from applifecycle.events.types import LifecycleState, ensure_utc, parse_enum

__all__ = [
    "AppStateMemento",
    "NAVIGATION_STATE_KEY",
    "STATE_KEY_FIELDS",
    "new_memento_id",
]

NAVIGATION_STATE_KEY = "navigation"
GAME_STATE_KEY = "game"

# state_key -> sub-map field
STATE_KEY_FIELDS: dict[str, str] = {
    "session": "user_session",
    "ui": "ui_state",
    "patterns": "pattern_states",
    "config": "app_config",
    "background_tasks": "background_tasks",
    "network": "network_states",
    "animation": "animation_states",
    "firebase": "firebase_state",
    "localization": "localization_state",
}

_SUB_MAP_FIELDS: tuple[str, ...] = (
    "user_session",
    "ui_state",
    "pattern_states",
    "app_config",
    "background_tasks",
    "network_states",
    "animation_states",
    "firebase_state",
    "localization_state",
    "navigation_state",
)


def new_memento_id() -> str:
    """Generate a memento id from the current epoch milliseconds."""
    return str(time.time_ns() // 1_000_000)


class AppStateMemento(BaseModel):
    """Complete snapshot of application state.

    Attributes:
        id: Unique identifier for this snapshot
        timestamp: When the state was captured (UTC)
        lifecycle_state: Lifecycle phase at capture time
        current_route: Active route
        navigation_stack: Ordered route ids, bottom first
        user_session: Session observer slice
        ui_state: UI observer slice, also holds slices of custom state keys
        pattern_states: Pattern page slice
        app_config: Configuration slice
        background_tasks: Background task slice
        network_states: Network slice
        animation_states: Animation slice
        game_state: Optional game slice
        firebase_state: Backend connection slice
        localization_state: Locale slice
        navigation_state: Navigation data besides route and stack
        originator_id: Producer of the snapshot
        state_version: Version of the snapshot format
    """

    id: str = Field(default_factory=new_memento_id)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    lifecycle_state: LifecycleState = LifecycleState.DETACHED
    current_route: str = "/"
    navigation_stack: list[str] = Field(default_factory=lambda: ["/"])
    user_session: dict[str, Any] = Field(default_factory=dict)
    ui_state: dict[str, Any] = Field(default_factory=dict)
    pattern_states: dict[str, Any] = Field(default_factory=dict)
    app_config: dict[str, Any] = Field(default_factory=dict)
    background_tasks: dict[str, Any] = Field(default_factory=dict)
    network_states: dict[str, Any] = Field(default_factory=dict)
    animation_states: dict[str, Any] = Field(default_factory=dict)
    game_state: dict[str, Any] | None = None
    firebase_state: dict[str, Any] = Field(default_factory=dict)
    localization_state: dict[str, Any] = Field(default_factory=dict)
    navigation_state: dict[str, Any] = Field(default_factory=dict)
    originator_id: str = "app"
    state_version: str = "1.0.0"

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v: Any) -> Any:
        """Accept epoch milliseconds alongside ISO strings and datetimes."""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return datetime.fromtimestamp(v / 1000, tz=UTC)
        if v is None:
            return datetime.now(UTC)
        return v

    @field_validator("timestamp", mode="after")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("lifecycle_state", mode="before")
    @classmethod
    def _parse_lifecycle_state(cls, v: Any) -> LifecycleState:
        return parse_enum(LifecycleState, v, LifecycleState.DETACHED)

    @field_validator(*_SUB_MAP_FIELDS, mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("navigation_stack", mode="before")
    @classmethod
    def _default_stack(cls, v: Any) -> Any:
        return ["/"] if v is None else v

    # =========================================================================
    # Construction / serialization
    # =========================================================================

    @classmethod
    def empty(cls, lifecycle_state: LifecycleState = LifecycleState.DETACHED) -> AppStateMemento:
        """Create an empty memento for initialization."""
        return cls(lifecycle_state=lifecycle_state)

    def to_dict(self) -> dict[str, Any]:
        """Serialize memento to a JSON-safe dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppStateMemento:
        """Create a memento from a serialized dict.

        Missing fields fall back to the same defaults as empty().

        Raises:
            pydantic.ValidationError: If a present field has the wrong shape
        """
        cleaned = {k: v for k, v in data.items() if not k.startswith("_")}
        if not cleaned.get("id"):
            cleaned.pop("id", None)
        return cls.model_validate(cleaned)

    # =========================================================================
    # Age
    # =========================================================================

    def get_age(self, now: datetime | None = None) -> timedelta:
        """Get the age of this memento, evaluated at query time."""
        return (now or datetime.now(UTC)) - self.timestamp

    def get_age_in_seconds(self, now: datetime | None = None) -> int:
        return int(self.get_age(now).total_seconds())

    def is_stale(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """Check if this memento is older than max_age.

        Staleness is never fixed at creation; it is computed against the
        wall clock each time this is called.

        Args:
            max_age: Maximum acceptable age
            now: Reference time (default: current UTC time)

        Returns:
            True if the memento is older than max_age
        """
        return self.get_age(now) > max_age

    # =========================================================================
    # Merge
    # =========================================================================

    def merge_with(self, other: AppStateMemento) -> AppStateMemento:
        """Merge another memento's data into a copy of this one.

        Sub-maps are shallow-unioned with other's keys winning. Scalars
        (lifecycle state, route, navigation stack) are taken from other
        unconditionally. The later timestamp is kept; the id is this one's.

        Args:
            other: Memento whose data takes precedence

        Returns:
            New merged memento
        """
        update: dict[str, Any] = {
            field: {**getattr(self, field), **getattr(other, field)}
            for field in _SUB_MAP_FIELDS
        }
        update.update(
            timestamp=max(self.timestamp, other.timestamp),
            lifecycle_state=other.lifecycle_state,
            current_route=other.current_route,
            navigation_stack=list(other.navigation_stack),
            game_state=other.game_state if other.game_state is not None else self.game_state,
        )
        return self.model_copy(update=update)

    # =========================================================================
    # State key routing
    # =========================================================================

    def with_slice(self, state_key: str, state: dict[str, Any]) -> AppStateMemento:
        """Build a partial memento holding one observer's slice.

        The partial carries this memento's id and scalars so that merging it
        back only changes the slice routed by state_key.

        Args:
            state_key: Observer state key
            state: Captured slice

        Returns:
            Partial memento suitable for merge_with

        Raises:
            ValueError: If the slice does not fit the memento layout, e.g. a
                navigation stack that is not a list of routes
        """
        base: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "lifecycle_state": self.lifecycle_state,
            "current_route": self.current_route,
            "navigation_stack": list(self.navigation_stack),
            "originator_id": self.originator_id,
            "state_version": self.state_version,
        }

        if state_key == NAVIGATION_STATE_KEY:
            extras = dict(state)
            base["current_route"] = extras.pop("current_route", self.current_route)
            stack = extras.pop("navigation_stack", self.navigation_stack)
            if not isinstance(stack, list | tuple):
                raise ValueError(
                    f"navigation_stack must be a list of routes, got {type(stack).__name__}"
                )
            base["navigation_stack"] = list(stack)
            base["navigation_state"] = extras
        elif state_key == GAME_STATE_KEY:
            base["game_state"] = dict(state)
        elif state_key in STATE_KEY_FIELDS:
            base[STATE_KEY_FIELDS[state_key]] = dict(state)
        else:
            base["ui_state"] = {state_key: dict(state)}

        return AppStateMemento.model_validate(base)

    def extract_slice(self, state_key: str) -> dict[str, Any] | None:
        """Get the slice stored for a state key.

        Args:
            state_key: Observer state key

        Returns:
            Copy of the slice, or None if nothing was stored for the key
        """
        if state_key == NAVIGATION_STATE_KEY:
            return {
                "current_route": self.current_route,
                "navigation_stack": list(self.navigation_stack),
                **self.navigation_state,
            }
        if state_key == GAME_STATE_KEY:
            return dict(self.game_state) if self.game_state is not None else None
        if state_key in STATE_KEY_FIELDS:
            sub_map = getattr(self, STATE_KEY_FIELDS[state_key])
            return dict(sub_map) if sub_map else None

        nested = self.ui_state.get(state_key)
        return dict(nested) if isinstance(nested, dict) else None

    def has_slice(self, state_key: str) -> bool:
        return self.extract_slice(state_key) is not None

    # =========================================================================
    # Diff
    # =========================================================================

    def diff(self, other: AppStateMemento) -> dict[str, Any]:
        """Create a diff from this memento to other.

        Returns:
            Mapping of changed fields to {"old", "new"} pairs. Sub-maps are
            diffed per key.
        """
        diff: dict[str, Any] = {}

        if self.current_route != other.current_route:
            diff["current_route"] = {"old": self.current_route, "new": other.current_route}
        if self.navigation_stack != other.navigation_stack:
            diff["navigation_stack"] = {
                "old": list(self.navigation_stack),
                "new": list(other.navigation_stack),
            }

        for field in _SUB_MAP_FIELDS:
            old_map: dict[str, Any] = getattr(self, field)
            new_map: dict[str, Any] = getattr(other, field)
            if old_map != new_map:
                diff[field] = _map_diff(old_map, new_map)

        if self.game_state != other.game_state:
            diff["game_state"] = _map_diff(self.game_state or {}, other.game_state or {})

        return diff


def _map_diff(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key in old.keys() | new.keys():
        old_value = old.get(key)
        new_value = new.get(key)
        if old_value != new_value:
            changes[key] = {"old": old_value, "new": new_value}
    return changes
