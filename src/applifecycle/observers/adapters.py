"""Composable state-aware observers.

Instead of inheriting observer behaviour into a component, a component
hands an adapter the callables (or the plain data) it wants captured and
restored, then registers the adapter.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from applifecycle.events.types import EventPriority, LifecycleEvent

from .base import StateAwareObserver, has_required_keys

logger = structlog.get_logger()

CaptureCallback = Callable[[], dict[str, Any]]
RestoreCallback = Callable[[dict[str, Any]], Awaitable[None] | None]
ValidateCallback = Callable[[dict[str, Any]], bool]
EventCallback = Callable[[LifecycleEvent], Awaitable[None] | None]


async def _maybe_await(result: Awaitable[None] | None) -> None:
    if inspect.isawaitable(result):
        await result


class StateObserverAdapter(StateAwareObserver):
    """State-aware observer built from callbacks.

    Example:
        adapter = StateObserverAdapter(
            observer_id="settings_page",
            state_key="settings",
            capture=page.snapshot,
            restore=page.apply,
        )
        integration.register_observer(adapter)
    """

    def __init__(
        self,
        observer_id: str,
        state_key: str,
        capture: CaptureCallback,
        restore: RestoreCallback,
        validate: ValidateCallback | None = None,
        on_event: EventCallback | None = None,
        priority: EventPriority = EventPriority.MEDIUM,
    ) -> None:
        """Initialize adapter.

        Args:
            observer_id: Unique observer identifier
            state_key: Key routing the captured slice
            capture: Returns the current slice
            restore: Applies a slice (sync or async)
            validate: Optional slice check; slices pass when omitted
            on_event: Optional callback for every handled event
            priority: Notification priority
        """
        self.observer_id = observer_id
        self.state_key = state_key
        self.priority = priority
        self._capture = capture
        self._restore = restore
        self._validate = validate
        self._on_event = on_event

    def capture_state(self) -> dict[str, Any]:
        return self._capture()

    async def restore_state(self, state: dict[str, Any]) -> None:
        await _maybe_await(self._restore(state))

    def validate_state(self, state: dict[str, Any]) -> bool:
        if self._validate is None:
            return True
        return self._validate(state)

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if self._on_event is not None:
            await _maybe_await(self._on_event(event))


class FormStateObserver(StateAwareObserver):
    """Keeps form input, focus and validation state across backgrounding.

    The owning form writes its current values through the setters; after a
    restore the same values are readable again and ``on_restored`` (if
    given) is called so the form can refresh its widgets.
    """

    REQUIRED_KEYS = ("text_fields", "focus_states", "validation_states")

    def __init__(
        self,
        observer_id: str,
        state_key: str = "form",
        on_restored: Callable[[FormStateObserver], Awaitable[None] | None] | None = None,
    ) -> None:
        self.observer_id = observer_id
        self.state_key = state_key
        self.priority = EventPriority.HIGH
        self.text_fields: dict[str, str] = {}
        self.focus_states: dict[str, bool] = {}
        self.validation_states: dict[str, bool] = {}
        self._on_restored = on_restored

    def set_text(self, field: str, value: str) -> None:
        self.text_fields[field] = value

    def set_focus(self, field: str, focused: bool) -> None:
        self.focus_states[field] = focused

    def set_valid(self, field: str, valid: bool) -> None:
        self.validation_states[field] = valid

    def capture_state(self) -> dict[str, Any]:
        return {
            "text_fields": dict(self.text_fields),
            "focus_states": dict(self.focus_states),
            "validation_states": dict(self.validation_states),
            "captured_at": datetime.now(UTC).isoformat(),
        }

    def validate_state(self, state: dict[str, Any]) -> bool:
        return has_required_keys(state, self.REQUIRED_KEYS) and all(
            isinstance(state[key], dict) for key in self.REQUIRED_KEYS
        )

    async def restore_state(self, state: dict[str, Any]) -> None:
        self.text_fields = {k: str(v) for k, v in state["text_fields"].items()}
        self.focus_states = {k: bool(v) for k, v in state["focus_states"].items()}
        self.validation_states = {k: bool(v) for k, v in state["validation_states"].items()}
        logger.debug(
            "form_state_restored",
            observer_id=self.observer_id,
            field_count=len(self.text_fields),
        )
        if self._on_restored is not None:
            await _maybe_await(self._on_restored(self))

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        return None


class ScrollStateObserver(StateAwareObserver):
    """Keeps named scroll offsets."""

    def __init__(self, observer_id: str, state_key: str = "scroll") -> None:
        self.observer_id = observer_id
        self.state_key = state_key
        self.priority = EventPriority.MEDIUM
        self.scroll_positions: dict[str, float] = {}

    def set_position(self, name: str, offset: float) -> None:
        self.scroll_positions[name] = offset

    def capture_state(self) -> dict[str, Any]:
        return {"scroll_positions": dict(self.scroll_positions)}

    def validate_state(self, state: dict[str, Any]) -> bool:
        positions = state.get("scroll_positions")
        return isinstance(positions, dict) and all(
            isinstance(v, int | float) and not isinstance(v, bool) for v in positions.values()
        )

    async def restore_state(self, state: dict[str, Any]) -> None:
        self.scroll_positions = {k: float(v) for k, v in state["scroll_positions"].items()}

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        return None


class AnimationStateObserver(StateAwareObserver):
    """Keeps animation progress and pauses animations while in background.

    Attributes:
        animation_values: Progress per animation, 0.0 to 1.0
        animating_states: Whether each animation was running
        paused: True while the app is in the background
    """

    def __init__(self, observer_id: str, state_key: str = "animation") -> None:
        self.observer_id = observer_id
        self.state_key = state_key
        self.priority = EventPriority.LOW
        self.animation_values: dict[str, float] = {}
        self.animating_states: dict[str, bool] = {}
        self.paused = False

    def set_animation(self, name: str, value: float, animating: bool = True) -> None:
        self.animation_values[name] = value
        self.animating_states[name] = animating

    def capture_state(self) -> dict[str, Any]:
        return {
            "animation_values": dict(self.animation_values),
            "animating_states": dict(self.animating_states),
        }

    def validate_state(self, state: dict[str, Any]) -> bool:
        return isinstance(state.get("animation_values"), dict) and isinstance(
            state.get("animating_states"), dict
        )

    async def restore_state(self, state: dict[str, Any]) -> None:
        self.animation_values = {k: float(v) for k, v in state["animation_values"].items()}
        self.animating_states = {k: bool(v) for k, v in state["animating_states"].items()}

    async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event.is_backgrounding:
            self.paused = True
        elif event.is_foregrounding:
            self.paused = False
