"""Main TimeSync Service class.

This is the host-facing entry point. It builds the collaborators, creates
the device seed, and feeds events to the state machine one at a time from a
single worker task.
"""
from __future__ import annotations

import asyncio
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from ...config import Settings
from ..listeners import ListenerRegistry
from ..schedule import now_ms
from ..seed import DeviceSeedManager
from ..types import (
    ConfigurationError,
    PastDuePolicy,
    SchedulerStatus,
    StoreError,
    SyncEvent,
    SyncState,
    listener_name_from_alarm,
)
from .events import EventEmitter
from .json_store import JsonPreferenceStore
from .machine import SyncStateMachine
from .monitors import PsutilPowerMonitor, SocketNetworkMonitor
from .state import (
    AlarmScheduler,
    NetworkMonitor,
    PowerMonitor,
    SchedulerRuntimeState,
    SchedulerServiceDeps,
)
from .store import PreferenceStore, SqlitePreferenceStore
from .timer import AsyncioAlarmScheduler

logger = logger.bind(module="scheduler.service")


@dataclass
class _QueuedEvent:
    event: SyncEvent
    done: asyncio.Future | None = None


def create_store(settings: Settings) -> PreferenceStore:
    """Build the preference store selected by settings."""
    if settings.store_backend == "sqlite":
        return SqlitePreferenceStore(settings.sqlite_store_path)
    elif settings.store_backend == "json":
        return JsonPreferenceStore(settings.json_store_path)
    raise StoreError(f"Unknown store backend: {settings.store_backend}")


class TimeSyncService:
    """Unified service for jittered listener syncs.

    Collaborators not passed explicitly are built from settings: the asyncio
    alarm scheduler, the socket network monitor, the psutil power monitor and
    the configured preference store. Custom collaborators must route their
    callbacks to ``submit``.
    """

    def __init__(
        self,
        registry: ListenerRegistry,
        settings: Settings | None = None,
        store: PreferenceStore | None = None,
        alarm_scheduler: AlarmScheduler | None = None,
        network_monitor: NetworkMonitor | None = None,
        power_monitor: PowerMonitor | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the service.

        Args:
            registry: Loaded listeners
            settings: Daemon settings (defaults to environment)
            store: Persistent preference store
            alarm_scheduler: One-shot timer implementation
            network_monitor: Connectivity checks and restoration watch
            power_monitor: Power transition watch
            clock: Millisecond clock, injectable for tests
        """
        self.settings = settings or Settings.from_env()
        self.registry = registry
        self.clock = clock
        self.events = EventEmitter()

        self.store = store or create_store(self.settings)
        self.alarm_scheduler = alarm_scheduler or AsyncioAlarmScheduler(
            on_fire=self._on_alarm_fired,
            inexact_window_ms=self.settings.inexact_window_ms,
            clock=clock,
        )
        self.network_monitor = network_monitor or SocketNetworkMonitor(
            on_restored=lambda: self.submit(SyncEvent.network_restored()),
            host=self.settings.network_probe_host,
            port=self.settings.network_probe_port,
            timeout=self.settings.network_probe_timeout,
            poll_interval=self.settings.network_poll_interval,
        )
        self.power_monitor = power_monitor or PsutilPowerMonitor(
            on_change=lambda connected: self.submit(SyncEvent.power_changed(connected)),
            poll_interval=self.settings.power_poll_interval,
        )

        self.state: SchedulerRuntimeState | None = None
        self.machine: SyncStateMachine | None = None
        self._queue: asyncio.Queue[_QueuedEvent] | None = None
        self._worker: asyncio.Task | None = None

    async def __aenter__(self) -> "TimeSyncService":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._worker is not None

    async def open(self) -> None:
        """Load persisted state and start the event worker."""
        if self.is_open:
            logger.warning("TimeSync service already open")
            return

        try:
            past_due_policy = PastDuePolicy(self.settings.past_due_policy)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown past due policy: {self.settings.past_due_policy!r}, expected 'skip' or 'fire'"
            ) from e

        await self.store.initialize()
        seed = await DeviceSeedManager(self.store, self.settings.device_id).get_or_create_seed()
        power_connected = await self.store.is_power_connected()

        if isinstance(self.power_monitor, PsutilPowerMonitor) and self.power_monitor.last_connected is None:
            self.power_monitor.last_connected = power_connected

        self.state = SchedulerRuntimeState(
            registry=self.registry,
            seed=seed,
            power_connected=power_connected,
        )
        self.machine = SyncStateMachine(
            self.state,
            SchedulerServiceDeps(
                alarms=self.alarm_scheduler,
                network=self.network_monitor,
                power=self.power_monitor,
                store=self.store,
                events=self.events,
            ),
            past_due_policy=past_due_policy,
            clock=self.clock,
        )

        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run_worker())
        logger.info(f"TimeSync service opened with {len(self.registry)} listeners")

    async def close(self) -> None:
        """Stop the worker and release collaborators.

        Armed alarms are dropped with the worker; call ``stop`` first for an
        orderly shutdown that also disables the watches.
        """
        if not self.is_open:
            return

        worker, self._worker = self._worker, None
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

        while self._queue and not self._queue.empty():
            item = self._queue.get_nowait()
            if item.done and not item.done.done():
                item.done.cancel()
        self._queue = None

        if isinstance(self.alarm_scheduler, AsyncioAlarmScheduler):
            self.alarm_scheduler.close()
        self.network_monitor.disable_watch()
        self.power_monitor.disable_watch()

        await self.store.close()
        logger.info("TimeSync service closed")

    # ============== Events ==============

    def submit(self, event: SyncEvent) -> None:
        """Queue an event without waiting for it to be processed."""
        if self._queue is None:
            logger.warning(f"Dropping {event.kind.value} event, service is not open")
            return
        self._queue.put_nowait(_QueuedEvent(event))

    async def dispatch(self, event: SyncEvent, wait: bool = True) -> None:
        """Queue an event, by default waiting until it has been processed."""
        if self._queue is None:
            raise RuntimeError("TimeSyncService not opened")
        if not wait:
            self._queue.put_nowait(_QueuedEvent(event))
            return

        done = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_QueuedEvent(event, done))
        await done

    async def start(self, wait: bool = True) -> None:
        await self.dispatch(SyncEvent.start(), wait)

    async def stop(self, wait: bool = True) -> None:
        await self.dispatch(SyncEvent.stop(), wait)

    async def sync(self, name: str, wait: bool = True) -> None:
        """Run a listener's sync now, as if its alarm had fired."""
        await self.dispatch(SyncEvent.sync(name), wait)

    async def network_restored(self, wait: bool = True) -> None:
        await self.dispatch(SyncEvent.network_restored(), wait)

    async def power_changed(self, connected: bool, wait: bool = True) -> None:
        await self.dispatch(SyncEvent.power_changed(connected), wait)

    async def join(self) -> None:
        """Wait until every queued event has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def _on_alarm_fired(self, alarm_id: str) -> None:
        self.submit(SyncEvent.sync(listener_name_from_alarm(alarm_id)))

    async def _run_worker(self) -> None:
        """Process queued events one at a time, in order."""
        assert self._queue is not None and self.machine is not None
        queue = self._queue

        while True:
            item = await queue.get()
            try:
                await self.machine.handle(item.event)
            except asyncio.CancelledError:
                if item.done and not item.done.done():
                    item.done.cancel()
                raise
            except Exception as e:
                logger.exception(f"Failed to handle {item.event.kind.value} event")
                if item.done and not item.done.done():
                    item.done.set_exception(e)
            else:
                if item.done and not item.done.done():
                    item.done.set_result(None)
            finally:
                queue.task_done()

    # ============== Status ==============

    def status(self) -> SchedulerStatus:
        """Snapshot of the scheduler state."""
        if self.state is None:
            return SchedulerStatus(
                state=SyncState.STOPPED,
                power_connected=False,
                network_watch_active=False,
                power_watch_active=False,
            )
        return SchedulerStatus(
            state=self.state.status,
            power_connected=self.state.power_connected,
            network_watch_active=self.state.network_watch_active,
            power_watch_active=self.state.power_watch_active,
            pending_alarms=deepcopy(list(self.state.pending.values())),
            listeners=deepcopy(list(self.state.listener_status.values())),
        )
