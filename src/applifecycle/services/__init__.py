"""Lifecycle services.

StateManager validates and retains mementos; LifecycleManager turns
platform signals into capture/restore cycles.
"""

from .lifecycle_manager import LifecycleManager
from .state_manager import StateManager

__all__ = [
    "LifecycleManager",
    "StateManager",
]
