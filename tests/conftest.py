"""Shared fixtures and collaborator fakes for timesync tests."""
from __future__ import annotations

import pytest

from timesync.scheduler.listeners import ListenerRegistry
from timesync.scheduler.service.events import EventEmitter
from timesync.scheduler.service.machine import SyncStateMachine
from timesync.scheduler.service.state import SchedulerRuntimeState, SchedulerServiceDeps
from timesync.scheduler.types import (
    PastDuePolicy,
    SchedulerEvent,
    StoreError,
    SyncConfig,
    SyncContext,
    WakeMode,
)

HOUR_MS = 3_600_000
MINUTE_MS = 60_000
# 2024-01-01T00:00:00Z
BASE_NOW_MS = 1_704_067_200_000


class FakeClock:
    def __init__(self, now: int = BASE_NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeAlarmScheduler:
    """Records arm/cancel calls and rejects a second timer for the same id."""

    def __init__(self):
        self.armed: dict[str, tuple[int, WakeMode]] = {}
        self.calls: list[tuple] = []

    def arm(self, alarm_id: str, at_ms: int, wake_mode: WakeMode) -> None:
        if alarm_id in self.armed:
            raise AssertionError(f"Second alarm armed for {alarm_id}")
        self.armed[alarm_id] = (at_ms, wake_mode)
        self.calls.append(("arm", alarm_id, at_ms, wake_mode))

    def cancel(self, alarm_id: str) -> None:
        self.armed.pop(alarm_id, None)
        self.calls.append(("cancel", alarm_id))


class FakeNetworkMonitor:
    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.watching = False
        self.checks = 0

    async def is_reachable(self) -> bool:
        self.checks += 1
        return self.reachable

    def enable_watch(self) -> None:
        self.watching = True

    def disable_watch(self) -> None:
        self.watching = False


class FakePowerMonitor:
    def __init__(self):
        self.watching = False

    def enable_watch(self) -> None:
        self.watching = True

    def disable_watch(self) -> None:
        self.watching = False


class MemoryPreferenceStore:
    def __init__(self, seed: int = 0, power_connected: bool = False, fail_writes: bool = False):
        self.seed = seed
        self.power_connected = power_connected
        self.fail_writes = fail_writes
        self.seed_writes = 0
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.initialized = False

    async def get_seed(self) -> int:
        return self.seed

    async def set_seed(self, seed: int) -> None:
        if self.fail_writes:
            raise StoreError("disk full")
        self.seed = seed
        self.seed_writes += 1

    async def is_power_connected(self) -> bool:
        return self.power_connected

    async def set_power_connected(self, connected: bool) -> None:
        if self.fail_writes:
            raise StoreError("disk full")
        self.power_connected = connected


class RecordingListener:
    def __init__(self, config: SyncConfig, fail: bool = False):
        self.config = config
        self.fail = fail
        self.calls: list[SyncContext] = []

    def get_config(self) -> SyncConfig:
        return self.config

    async def on_sync(self, context: SyncContext) -> None:
        self.calls.append(context)
        if self.fail:
            raise RuntimeError("backend returned 503")


class MachineHarness:
    """A state machine wired to fakes, with handles on every collaborator."""

    def __init__(
        self,
        listeners: dict[str, RecordingListener],
        power_connected: bool = False,
        seed: int = 42,
        past_due_policy: PastDuePolicy = PastDuePolicy.SKIP,
    ):
        self.clock = FakeClock()
        self.alarms = FakeAlarmScheduler()
        self.network = FakeNetworkMonitor()
        self.power = FakePowerMonitor()
        self.store = MemoryPreferenceStore(seed=seed, power_connected=power_connected)
        self.events = EventEmitter()
        self.received: list[SchedulerEvent] = []
        self.events.add_handler(self.received.append)

        self.listeners = listeners
        self.registry = ListenerRegistry(listeners)
        self.state = SchedulerRuntimeState(
            registry=self.registry,
            seed=seed,
            power_connected=power_connected,
        )
        self.machine = SyncStateMachine(
            self.state,
            SchedulerServiceDeps(
                alarms=self.alarms,
                network=self.network,
                power=self.power,
                store=self.store,
                events=self.events,
            ),
            past_due_policy=past_due_policy,
            clock=self.clock,
        )

    def event_types(self) -> list[str]:
        return [e.type for e in self.received]


def hourly(range_ms: int = 10 * MINUTE_MS) -> SyncConfig:
    return SyncConfig.every(interval_ms=HOUR_MS, range_ms=range_ms)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemoryPreferenceStore()


@pytest.fixture
def two_listeners():
    return {
        "news": RecordingListener(hourly()),
        "mail": RecordingListener(hourly()),
    }


@pytest.fixture
def harness(two_listeners):
    return MachineHarness(two_listeners)
