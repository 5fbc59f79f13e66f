"""State management for the scheduler service.

Contains the collaborator protocols, dependency injection and the
in-memory runtime state owned by the state machine.
"""
from dataclasses import dataclass, field
from typing import Protocol

from ..listeners import ListenerRegistry
from ..types import ListenerStatus, PendingAlarm, SyncState, WakeMode
from .events import EventEmitter
from .store import PreferenceStore


class AlarmScheduler(Protocol):
    """Protocol for one-shot timers keyed by an opaque id."""

    def arm(self, alarm_id: str, at_ms: int, wake_mode: WakeMode) -> None:
        """Arm a timer for an absolute timestamp."""
        ...

    def cancel(self, alarm_id: str) -> None:
        """Cancel a timer; no-op if none is armed for the id."""
        ...


class NetworkMonitor(Protocol):
    """Protocol for connectivity checks and restoration watching."""

    async def is_reachable(self) -> bool:
        """Snapshot: is the network connected (or connecting)?"""
        ...

    def enable_watch(self) -> None:
        """Start watching; deliver a single "restored" event when back."""
        ...

    def disable_watch(self) -> None:
        ...


class PowerMonitor(Protocol):
    """Protocol for power-connected/disconnected transitions."""

    def enable_watch(self) -> None:
        ...

    def disable_watch(self) -> None:
        ...


@dataclass
class SchedulerServiceDeps:
    """Collaborators of the state machine.

    This allows for dependency injection of platform services.
    """
    alarms: AlarmScheduler
    network: NetworkMonitor
    power: PowerMonitor
    store: PreferenceStore
    events: EventEmitter = field(default_factory=EventEmitter)


@dataclass
class SchedulerRuntimeState:
    """Runtime state of the scheduler, built once at startup."""
    registry: ListenerRegistry
    seed: int
    power_connected: bool = False
    status: SyncState = SyncState.STOPPED
    network_watch_active: bool = False
    power_watch_active: bool = False

    # At most one entry per listener
    pending: dict[str, PendingAlarm] = field(default_factory=dict)
    listener_status: dict[str, ListenerStatus] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in self.registry.names():
            self.listener_status.setdefault(name, ListenerStatus(name=name))

    @property
    def wake_mode(self) -> WakeMode:
        return WakeMode.EXACT if self.power_connected else WakeMode.INEXACT
