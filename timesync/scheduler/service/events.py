"""Event system for the scheduler.

Emits events for alarm, sync and connectivity changes so hosts can observe
the scheduler without reaching into its state.
"""
from typing import Any, Callable

from loguru import logger

from ..schedule import now_ms
from ..types import SchedulerEvent

logger = logger.bind(module="scheduler.events")


# Type alias for event handlers
EventHandler = Callable[[SchedulerEvent], None]


class EventEmitter:
    """Event emitter for scheduler events."""

    def __init__(self):
        self._handlers: list[EventHandler] = []

    def add_handler(self, handler: EventHandler) -> None:
        """Add an event handler."""
        self._handlers.append(handler)

    def remove_handler(self, handler: EventHandler) -> None:
        """Remove an event handler."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: SchedulerEvent) -> None:
        """Emit an event to all handlers."""
        for handler in self._handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error: {e}")


def emit_listener_event(
    emitter: EventEmitter,
    event_type: str,
    listener: str = "",
    payload: dict[str, Any] | None = None,
) -> None:
    """Emit a listener-related event.

    Args:
        emitter: Event emitter instance
        event_type: Type of event (e.g., "alarm.armed", "sync.failed")
        listener: Name of the listener, empty for scheduler-wide events
        payload: Additional event payload
    """
    event = SchedulerEvent(
        type=event_type,
        listener=listener,
        timestamp_ms=now_ms(),
        payload=payload or {},
    )
    emitter.emit(event)


# Event type constants
class EventTypes:
    """Constants for event types."""

    # Scheduler lifecycle
    SCHEDULER_STARTED = "scheduler.started"
    SCHEDULER_STOPPED = "scheduler.stopped"

    # Alarms
    ALARM_ARMED = "alarm.armed"
    ALARM_CANCELED = "alarm.canceled"
    ALARM_SKIPPED = "alarm.skipped"

    # Sync execution
    SYNC_COMPLETED = "sync.completed"
    SYNC_FAILED = "sync.failed"

    # Environment
    NETWORK_LOST = "network.lost"
    NETWORK_RESTORED = "network.restored"
    POWER_CHANGED = "power.changed"
