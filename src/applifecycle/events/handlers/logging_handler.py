"""Logging event listener for observability.

Logs all lifecycle events with structured data for debugging and monitoring.
"""

from __future__ import annotations

from typing import Any

import structlog

from applifecycle.events.types import LifecycleEvent, LifecycleEventType

logger = structlog.get_logger()


class LoggingEventHandler:
    """Logs all lifecycle events.

    Subscribes to all events (global listener) and logs them with log
    levels chosen by event type.
    """

    def __init__(self, log_level: str = "debug") -> None:
        """Initialize logging handler.

        Args:
            log_level: Default log level for events (debug, info, warning)
        """
        self.log_level = log_level

    async def handle(self, event: LifecycleEvent) -> None:
        """Log the event with structured data.

        Args:
            event: Event to log
        """
        log_data: dict[str, Any] = {
            "event_id": event.event_id,
            "event_type": str(event.event_type),
            "current_state": str(event.current_state),
            "previous_state": str(event.previous_state) if event.previous_state else None,
            "priority": str(event.priority),
            "source": str(event.source),
            "timestamp": event.timestamp.isoformat(),
        }
        if event.state_duration is not None:
            log_data["state_duration_seconds"] = event.state_duration.total_seconds()
        if event.metadata:
            log_data["metadata"] = event.metadata

        level = self._get_log_level(event.event_type)

        if level == "warning":
            logger.warning("lifecycle_event_logged", **log_data)
        elif level == "info":
            logger.info("lifecycle_event_logged", **log_data)
        else:
            logger.debug("lifecycle_event_logged", **log_data)

    def _get_log_level(self, event_type: LifecycleEventType) -> str:
        """Determine log level based on event type.

        Args:
            event_type: Type of event

        Returns:
            Log level string
        """
        # Resource pressure gets warning level
        if event_type == LifecycleEventType.LOW_MEMORY:
            return "warning"

        # Transitions that persist or restore state get info level
        if event_type in (
            LifecycleEventType.BACKGROUNDING,
            LifecycleEventType.FOREGROUNDING,
            LifecycleEventType.TERMINATING,
            LifecycleEventType.MANUAL_SAVE,
        ):
            return "info"

        # Everything else uses default level
        return self.log_level
