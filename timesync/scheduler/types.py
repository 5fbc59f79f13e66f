"""Core type definitions for the sync scheduler.

This module defines:
- Time span types (every/cron) describing a listener's recurrence
- Listener sync configuration (time span + jitter range)
- Scheduler state, wake modes and inbound events
- Status/result types exposed to observers
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


ALARM_ID_PREFIX = "timesync://"


class ConfigurationError(ValueError):
    """A listener is missing, misdeclared or has an invalid config."""


class StoreError(RuntimeError):
    """The persistent preference store could not be read or written."""


# ============== Time Span Types ==============

class TimeSpanKind(str, Enum):
    """Kind of recurrence."""
    EVERY = "every"     # Interval: every N milliseconds
    CRON = "cron"       # Cron expression


@dataclass
class EverySpan:
    """Interval-based recurrence.

    Without an anchor the next event is one full interval after the
    reference time. With an anchor, events are pinned to the grid
    ``anchor_ms + k * interval_ms``.
    """
    kind: Literal["every"] = field(default="every", init=False)
    interval_ms: int = 0
    anchor_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "interval_ms": self.interval_ms,
            "anchor_ms": self.anchor_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EverySpan":
        return cls(
            interval_ms=data.get("interval_ms", 0),
            anchor_ms=data.get("anchor_ms"),
        )

    @classmethod
    def from_seconds(cls, seconds: int) -> "EverySpan":
        return cls(interval_ms=seconds * 1000)

    @classmethod
    def from_minutes(cls, minutes: int) -> "EverySpan":
        return cls(interval_ms=minutes * 60_000)

    @classmethod
    def from_hours(cls, hours: int) -> "EverySpan":
        return cls(interval_ms=hours * 3_600_000)


@dataclass
class CronSpan:
    """Cron expression recurrence.

    Supports both 5-part (minute precision) and 6-part (second precision) formats:
    - 5-part: "min hour day month weekday" (e.g., "0 3 * * *" = every day at 3:00)
    - 6-part: "sec min hour day month weekday"
    """
    kind: Literal["cron"] = field(default="cron", init=False)
    expression: str = ""
    timezone: str = "UTC"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "expression": self.expression,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CronSpan":
        return cls(
            expression=data.get("expression", ""),
            timezone=data.get("timezone", "UTC"),
        )


# Union type for all time span types
TimeSpan = EverySpan | CronSpan


def time_span_from_dict(data: dict[str, Any]) -> TimeSpan:
    """Create a TimeSpan from a dictionary."""
    kind = data.get("kind", "every")
    if kind == "every":
        return EverySpan.from_dict(data)
    elif kind == "cron":
        return CronSpan.from_dict(data)
    else:
        raise ConfigurationError(f"Unknown time span kind: {kind}")


@dataclass
class SyncConfig:
    """A listener's schedule: when to sync and how widely to spread it.

    ``range_ms`` is the full width of the jitter window; the fire time lands
    within ``range_ms / 2`` on either side of the exact event.
    """
    time_span: TimeSpan = field(default_factory=EverySpan)
    range_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_span": self.time_span.to_dict(),
            "range_ms": self.range_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        return cls(
            time_span=time_span_from_dict(data.get("time_span", {})),
            range_ms=data.get("range_ms", 0),
        )

    @classmethod
    def every(cls, interval_ms: int, range_ms: int = 0) -> "SyncConfig":
        return cls(time_span=EverySpan(interval_ms=interval_ms), range_ms=range_ms)


# ============== Scheduler State ==============

class SyncState(str, Enum):
    """State of the sync state machine."""
    STOPPED = "stopped"
    RUNNING = "running"
    WAITING_FOR_NETWORK = "waiting_for_network"


class WakeMode(str, Enum):
    """How strictly an armed alarm must honour its fire time."""
    EXACT = "exact"         # Fire on time, waking the device if needed
    INEXACT = "inexact"     # May be deferred/batched by the host


class PastDuePolicy(str, Enum):
    """What to do when a jittered fire time is not in the future."""
    SKIP = "skip"   # Do not arm the alarm
    FIRE = "fire"   # Arm the alarm for "now"


class EventKind(str, Enum):
    """Kind of event delivered to the state machine."""
    START = "start"
    STOP = "stop"
    SYNC = "sync"
    NETWORK_RESTORED = "network_restored"
    POWER_CHANGED = "power_changed"


@dataclass
class SyncEvent:
    """Inbound event for the state machine."""
    kind: EventKind
    name: str | None = None
    connected: bool | None = None

    @classmethod
    def start(cls) -> "SyncEvent":
        return cls(EventKind.START)

    @classmethod
    def stop(cls) -> "SyncEvent":
        return cls(EventKind.STOP)

    @classmethod
    def sync(cls, name: str) -> "SyncEvent":
        return cls(EventKind.SYNC, name=name)

    @classmethod
    def network_restored(cls) -> "SyncEvent":
        return cls(EventKind.NETWORK_RESTORED)

    @classmethod
    def power_changed(cls, connected: bool) -> "SyncEvent":
        return cls(EventKind.POWER_CHANGED, connected=connected)


def alarm_id_for(name: str) -> str:
    """Alarm id that uniquely identifies a listener's timer."""
    return f"{ALARM_ID_PREFIX}{name}"


def listener_name_from_alarm(alarm_id: str) -> str:
    """Inverse of ``alarm_id_for``."""
    if not alarm_id.startswith(ALARM_ID_PREFIX):
        raise ValueError(f"Not a timesync alarm id: {alarm_id}")
    return alarm_id[len(ALARM_ID_PREFIX):]


@dataclass
class PendingAlarm:
    """An alarm armed for a listener, as tracked by the state machine."""
    listener: str
    alarm_id: str
    fire_at_ms: int
    wake_mode: WakeMode
    armed_at_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "listener": self.listener,
            "alarm_id": self.alarm_id,
            "fire_at_ms": self.fire_at_ms,
            "wake_mode": self.wake_mode.value,
            "armed_at_ms": self.armed_at_ms,
        }


@dataclass
class SyncContext:
    """Passed to a listener's ``on_sync``."""
    name: str
    triggered_at_ms: int
    power_connected: bool


# ============== Event Types ==============

@dataclass
class SchedulerEvent:
    """Event emitted by the scheduler to observers."""
    type: str
    listener: str
    timestamp_ms: int
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "listener": self.listener,
            "timestamp_ms": self.timestamp_ms,
            "payload": self.payload,
        }


# ============== Status Types ==============

@dataclass
class ListenerStatus:
    """Runtime bookkeeping for a single listener."""
    name: str
    sync_count: int = 0
    failure_count: int = 0
    last_sync_at_ms: int | None = None
    last_error: str | None = None
    next_fire_at_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "sync_count": self.sync_count,
            "failure_count": self.failure_count,
            "last_sync_at_ms": self.last_sync_at_ms,
            "last_error": self.last_error,
            "next_fire_at_ms": self.next_fire_at_ms,
        }


@dataclass
class SchedulerStatus:
    """Status of the scheduler service."""
    state: SyncState
    power_connected: bool
    network_watch_active: bool
    power_watch_active: bool
    pending_alarms: list[PendingAlarm] = field(default_factory=list)
    listeners: list[ListenerStatus] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "power_connected": self.power_connected,
            "network_watch_active": self.network_watch_active,
            "power_watch_active": self.power_watch_active,
            "pending_alarms": [a.to_dict() for a in self.pending_alarms],
            "listeners": [s.to_dict() for s in self.listeners],
        }
