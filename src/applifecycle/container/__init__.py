"""Lifecycle integration module.

Exports:
    LifecycleIntegration: Facade wiring the lifecycle stack together
    AppLevelObserver: Built-in observer registered by the facade
    lifespan: Async context manager running an integration
"""

from .container import AppLevelObserver, LifecycleIntegration, lifespan

__all__ = [
    "AppLevelObserver",
    "LifecycleIntegration",
    "lifespan",
]
