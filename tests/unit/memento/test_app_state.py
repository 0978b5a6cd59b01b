"""Tests for AppStateMemento."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from applifecycle.events.types import LifecycleState
from applifecycle.memento import STATE_KEY_FIELDS, AppStateMemento


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class TestConstruction:
    """Tests for defaults and lenient parsing."""

    def test_empty_defaults(self) -> None:
        memento = AppStateMemento.empty()

        assert memento.id
        assert memento.lifecycle_state is LifecycleState.DETACHED
        assert memento.current_route == "/"
        assert memento.navigation_stack == ["/"]
        assert memento.user_session == {}
        assert memento.game_state is None

    def test_from_dict_accepts_epoch_millis(self) -> None:
        memento = AppStateMemento.from_dict({"id": "m1", "timestamp": 1_700_000_000_000})

        assert memento.timestamp == datetime.fromtimestamp(1_700_000_000, tz=UTC)

    def test_from_dict_unknown_lifecycle_state(self) -> None:
        memento = AppStateMemento.from_dict({"id": "m1", "lifecycle_state": "sleeping"})
        assert memento.lifecycle_state is LifecycleState.DETACHED

    def test_from_dict_null_sub_maps(self) -> None:
        memento = AppStateMemento.from_dict({"id": "m1", "ui_state": None, "navigation_stack": None})

        assert memento.ui_state == {}
        assert memento.navigation_stack == ["/"]

    def test_from_dict_ignores_envelope_keys(self) -> None:
        memento = AppStateMemento.from_dict({"id": "m1", "_compressed": False})
        assert memento.id == "m1"

    def test_round_trip(self, base_time: datetime) -> None:
        memento = AppStateMemento(
            id="m1",
            timestamp=base_time,
            lifecycle_state=LifecycleState.PAUSED,
            current_route="/patterns/observer",
            navigation_stack=["/", "/patterns", "/patterns/observer"],
            user_session={"uid": "u1"},
            game_state={"level": 3},
            navigation_state={"tab": 2},
        )

        assert AppStateMemento.from_dict(memento.to_dict()) == memento


class TestMergeWith:
    """Tests for merge precedence."""

    def test_other_wins_on_shared_keys(self, base_time: datetime) -> None:
        """Test that shared keys take b's value and a-only keys survive."""
        a = AppStateMemento(
            id="a",
            timestamp=base_time,
            user_session={"uid": "u1", "theme": "dark"},
            ui_state={"tab": 1},
        )
        b = AppStateMemento(
            id="b",
            timestamp=base_time + timedelta(seconds=5),
            user_session={"uid": "u2"},
            pattern_states={"selected": "observer"},
        )

        merged = a.merge_with(b)

        assert merged.user_session == {"uid": "u2", "theme": "dark"}
        assert merged.ui_state == {"tab": 1}
        assert merged.pattern_states == {"selected": "observer"}

    def test_keeps_later_timestamp_and_own_id(self, base_time: datetime) -> None:
        a = AppStateMemento(id="a", timestamp=base_time + timedelta(seconds=10))
        b = AppStateMemento(id="b", timestamp=base_time)

        merged = a.merge_with(b)

        assert merged.id == "a"
        assert merged.timestamp == base_time + timedelta(seconds=10)

    def test_scalars_taken_from_other(self, base_time: datetime) -> None:
        a = AppStateMemento(id="a", timestamp=base_time, current_route="/a")
        b = AppStateMemento(
            id="b",
            timestamp=base_time,
            current_route="/b",
            navigation_stack=["/", "/b"],
            lifecycle_state=LifecycleState.PAUSED,
        )

        merged = a.merge_with(b)

        assert merged.current_route == "/b"
        assert merged.navigation_stack == ["/", "/b"]
        assert merged.lifecycle_state is LifecycleState.PAUSED

    def test_game_state_falls_back_to_self(self, base_time: datetime) -> None:
        a = AppStateMemento(id="a", timestamp=base_time, game_state={"score": 10})
        b = AppStateMemento(id="b", timestamp=base_time)

        assert a.merge_with(b).game_state == {"score": 10}

    def test_inputs_unchanged(self, base_time: datetime) -> None:
        a = AppStateMemento(id="a", timestamp=base_time, user_session={"uid": "u1"})
        b = AppStateMemento(id="b", timestamp=base_time, user_session={"uid": "u2"})

        a.merge_with(b)

        assert a.user_session == {"uid": "u1"}


class TestStaleness:
    """Tests for age and staleness evaluated at query time."""

    def test_fresh_memento_is_not_stale(self) -> None:
        memento = AppStateMemento(id="m1")
        assert not memento.is_stale(timedelta(minutes=5))

    def test_becomes_stale_as_time_passes(self) -> None:
        memento = AppStateMemento(id="m1")
        later = memento.timestamp + timedelta(minutes=5, seconds=1)

        assert memento.is_stale(timedelta(minutes=5), now=later)

    def test_stale_after_reload(self) -> None:
        """Test that staleness does not depend on when the memento was parsed."""
        created = datetime.now(UTC) - timedelta(minutes=6)
        memento = AppStateMemento.from_dict(AppStateMemento(id="m1", timestamp=created).to_dict())

        assert memento.is_stale(timedelta(minutes=5))

    def test_naive_timestamp_treated_as_utc(self) -> None:
        """Test that a memento stamped with a local naive time can be aged."""
        naive = datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=6)
        memento = AppStateMemento(id="n1", timestamp=naive)

        assert memento.timestamp.tzinfo is UTC
        assert memento.is_stale(timedelta(minutes=5))
        assert not memento.is_stale(timedelta(minutes=10))

    def test_age_in_seconds(self, base_time: datetime) -> None:
        memento = AppStateMemento(id="m1", timestamp=base_time)
        assert memento.get_age_in_seconds(now=base_time + timedelta(seconds=90)) == 90


class TestStateKeyRouting:
    """Tests for with_slice/extract_slice."""

    @pytest.mark.parametrize(("state_key", "field"), sorted(STATE_KEY_FIELDS.items()))
    def test_known_keys_route_to_sub_map(self, state_key: str, field: str) -> None:
        partial = AppStateMemento(id="m1").with_slice(state_key, {"value": 1})

        assert getattr(partial, field) == {"value": 1}
        assert partial.extract_slice(state_key) == {"value": 1}

    def test_navigation_slice_fills_top_level_fields(self) -> None:
        partial = AppStateMemento(id="m1").with_slice(
            "navigation",
            {"current_route": "/settings", "navigation_stack": ["/", "/settings"], "tab": 1},
        )

        assert partial.current_route == "/settings"
        assert partial.navigation_stack == ["/", "/settings"]
        assert partial.navigation_state == {"tab": 1}
        assert partial.extract_slice("navigation") == {
            "current_route": "/settings",
            "navigation_stack": ["/", "/settings"],
            "tab": 1,
        }

    @pytest.mark.parametrize("stack", ["/settings", 3, {"top": "/"}])
    def test_navigation_stack_must_be_a_list(self, stack: object) -> None:
        with pytest.raises(ValueError):
            AppStateMemento(id="m1").with_slice(
                "navigation", {"current_route": "/settings", "navigation_stack": stack}
            )

    def test_game_slice(self) -> None:
        partial = AppStateMemento(id="m1").with_slice("game", {"level": 2})

        assert partial.game_state == {"level": 2}
        assert partial.extract_slice("game") == {"level": 2}

    def test_unknown_key_nested_in_ui_state(self) -> None:
        partial = AppStateMemento(id="m1").with_slice("form", {"text_fields": {}})

        assert partial.ui_state == {"form": {"text_fields": {}}}
        assert partial.extract_slice("form") == {"text_fields": {}}

    def test_missing_slice_is_none(self) -> None:
        memento = AppStateMemento(id="m1")

        assert memento.extract_slice("session") is None
        assert memento.extract_slice("game") is None
        assert memento.extract_slice("form") is None
        assert not memento.has_slice("session")

    def test_slices_fold_into_one_memento(self) -> None:
        base = AppStateMemento(id="m1")
        merged = base.merge_with(base.with_slice("session", {"uid": "u1"}))
        merged = merged.merge_with(merged.with_slice("navigation", {"current_route": "/x"}))
        merged = merged.merge_with(merged.with_slice("form", {"a": 1}))

        assert merged.id == "m1"
        assert merged.user_session == {"uid": "u1"}
        assert merged.current_route == "/x"
        assert merged.ui_state == {"form": {"a": 1}}


class TestDiff:
    """Tests for AppStateMemento.diff."""

    def test_diff_reports_changed_fields(self) -> None:
        old = AppStateMemento(id="a", current_route="/a", user_session={"uid": "u1", "x": 1})
        new = AppStateMemento(id="b", current_route="/b", user_session={"uid": "u2", "x": 1})

        diff = old.diff(new)

        assert diff["current_route"] == {"old": "/a", "new": "/b"}
        assert diff["user_session"] == {"uid": {"old": "u1", "new": "u2"}}
        assert "ui_state" not in diff

    def test_identical_mementos_have_empty_diff(self) -> None:
        memento = AppStateMemento(id="a", user_session={"uid": "u1"})
        assert memento.diff(memento) == {}
