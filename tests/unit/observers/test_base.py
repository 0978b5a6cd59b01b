"""Tests for the observer base classes."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from applifecycle.events.types import EventPriority, LifecycleEvent, LifecycleState
from applifecycle.observers import (
    AnimationLifecycleObserver,
    CompositeLifecycleObserver,
    LifecycleObserver,
    NavigationLifecycleObserver,
    NetworkLifecycleObserver,
    SessionLifecycleObserver,
    UILifecycleObserver,
)


class Router(NavigationLifecycleObserver):
    observer_id = "router"

    def capture_state(self) -> dict[str, Any]:
        return {"current_route": "/home", "navigation_stack": ["/", "/home"]}

    async def restore_state(self, state: dict[str, Any]) -> None:
        pass


class Session(SessionLifecycleObserver):
    observer_id = "session"

    def __init__(self) -> None:
        self.terminated = False

    def capture_state(self) -> dict[str, Any]:
        return {"uid": "u1"}

    async def restore_state(self, state: dict[str, Any]) -> None:
        pass

    async def on_app_terminating(self, event: LifecycleEvent) -> None:
        self.terminated = True


class Network(NetworkLifecycleObserver):
    observer_id = "network"

    def __init__(self) -> None:
        self.suspend_connections = AsyncMock()  # type: ignore[method-assign]
        self.resume_connections = AsyncMock()  # type: ignore[method-assign]
        self.on_connectivity_changed = AsyncMock()  # type: ignore[method-assign]

    def capture_state(self) -> dict[str, Any]:
        return {}

    async def restore_state(self, state: dict[str, Any]) -> None:
        pass


class Widget(UILifecycleObserver):
    observer_id = "widget"

    def __init__(self) -> None:
        self.backgrounded = 0
        self.foregrounded = 0

    def capture_state(self) -> dict[str, Any]:
        return {}

    async def restore_state(self, state: dict[str, Any]) -> None:
        pass

    async def on_app_backgrounded(self, event: LifecycleEvent) -> None:
        self.backgrounded += 1

    async def on_app_foregrounded(self, event: LifecycleEvent) -> None:
        self.foregrounded += 1


class Animations(AnimationLifecycleObserver):
    observer_id = "animations"

    def __init__(self) -> None:
        self.running = True

    async def pause_animations(self) -> None:
        self.running = False

    async def resume_animations(self) -> None:
        self.running = True


@pytest.fixture
def backgrounded() -> LifecycleEvent:
    return LifecycleEvent.app_backgrounded(
        LifecycleState.PAUSED, previous_state=LifecycleState.RESUMED
    )


@pytest.fixture
def foregrounded() -> LifecycleEvent:
    return LifecycleEvent.app_foregrounded(previous_state=LifecycleState.PAUSED)


class TestStateAwareDefaults:
    """Tests for defaults of the specialised observers."""

    def test_keys_and_priorities(self) -> None:
        assert (Router().state_key, Router().priority) == ("navigation", EventPriority.HIGH)
        assert (Session().state_key, Session().priority) == ("session", EventPriority.CRITICAL)
        assert (Network().state_key, Network().priority) == ("network", EventPriority.HIGH)
        assert (Widget().state_key, Widget().priority) == ("ui", EventPriority.HIGH)

    def test_state_aware_filter(self, backgrounded, foregrounded) -> None:
        router = Router()

        assert router.should_handle_event(backgrounded)
        assert router.should_handle_event(foregrounded)
        assert not router.should_handle_event(
            LifecycleEvent.orientation_changed(LifecycleState.RESUMED, orientation="portrait")
        )

    def test_navigation_validation(self) -> None:
        router = Router()

        assert router.validate_state({"current_route": "/", "navigation_stack": ["/"]})
        assert not router.validate_state({"current_route": 3})


class TestSpecialisedHandlers:
    """Tests for the event hooks of the specialised observers."""

    async def test_ui_hooks(self, backgrounded, foregrounded) -> None:
        widget = Widget()

        await widget.on_lifecycle_event(backgrounded)
        await widget.on_lifecycle_event(foregrounded)

        assert (widget.backgrounded, widget.foregrounded) == (1, 1)

    async def test_session_terminating(self) -> None:
        session = Session()

        await session.on_lifecycle_event(LifecycleEvent.app_terminating())

        assert session.terminated

    async def test_network_connectivity(self) -> None:
        network = Network()
        event = LifecycleEvent.connectivity_changed(LifecycleState.RESUMED, is_connected=False)

        assert network.should_handle_event(event)
        await network.on_lifecycle_event(event)

        network.on_connectivity_changed.assert_awaited_once_with(False)

    async def test_network_suspend_resume(self, backgrounded, foregrounded) -> None:
        network = Network()

        await network.on_lifecycle_event(backgrounded)
        await network.on_lifecycle_event(foregrounded)

        network.suspend_connections.assert_awaited_once()
        network.resume_connections.assert_awaited_once()

    async def test_animation_pause_resume(self, backgrounded, foregrounded) -> None:
        animations = Animations()

        await animations.on_lifecycle_event(backgrounded)
        assert not animations.running
        await animations.on_lifecycle_event(foregrounded)
        assert animations.running


class TestCompositeObserver:
    """Tests for CompositeLifecycleObserver."""

    async def test_fans_out_in_priority_order(self, backgrounded) -> None:
        calls: list[str] = []

        class Child(LifecycleObserver):
            def __init__(self, observer_id: str, priority: EventPriority) -> None:
                self.observer_id = observer_id
                self.priority = priority

            async def on_lifecycle_event(self, event: LifecycleEvent) -> None:
                calls.append(self.observer_id)

        composite = CompositeLifecycleObserver(
            "page",
            children=[Child("low", EventPriority.LOW), Child("critical", EventPriority.CRITICAL)],
        )

        await composite.on_lifecycle_event(backgrounded)

        assert calls == ["critical", "low"]

    async def test_child_failure_isolated(self, backgrounded) -> None:
        widget = Widget()
        failing = MagicMock(spec=LifecycleObserver)
        failing.observer_id = "failing"
        failing.priority = EventPriority.CRITICAL
        failing.should_handle_event = lambda event: True
        failing.on_lifecycle_event.side_effect = RuntimeError("boom")

        composite = CompositeLifecycleObserver("page", children=[failing, widget])
        await composite.on_lifecycle_event(backgrounded)

        assert widget.backgrounded == 1

    def test_add_remove_child(self) -> None:
        composite = CompositeLifecycleObserver("page")
        widget = Widget()

        composite.add_child(widget)
        composite.add_child(widget)
        assert composite.children == [widget]
        assert composite.remove_child(widget) is True
        assert composite.remove_child(widget) is False
