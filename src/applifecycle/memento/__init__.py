"""State snapshot models.

AppStateMemento is the composite snapshot persisted by the repository;
StateMemento and its subclasses are typed per-category snapshots.
"""

from .app_state import NAVIGATION_STATE_KEY, STATE_KEY_FIELDS, AppStateMemento, new_memento_id
from .base import (
    ConfigurationMemento,
    MementoStatistics,
    NavigationStateMemento,
    PatternStateMemento,
    SessionStateMemento,
    StateMemento,
    TypedStateMemento,
    UIStateMemento,
    parse_state_memento,
)

__all__ = [
    "AppStateMemento",
    "ConfigurationMemento",
    "MementoStatistics",
    "NAVIGATION_STATE_KEY",
    "NavigationStateMemento",
    "PatternStateMemento",
    "STATE_KEY_FIELDS",
    "SessionStateMemento",
    "StateMemento",
    "TypedStateMemento",
    "UIStateMemento",
    "new_memento_id",
    "parse_state_memento",
]
