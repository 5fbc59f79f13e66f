"""Sync state machine.

Processes one event at a time and decides when to arm, cancel or re-arm
every listener's alarm, when to wait for the network and how to react to
power changes.

States::

    STOPPED --start--> RUNNING --sync, no network--> WAITING_FOR_NETWORK
       ^                  |  ^                              |
       +-------stop-------+  +--network restored or--------+
                                reachable sync

Network restored moves any state to RUNNING and a power change re-arms
every listener without changing state. A sync that arrives while stopped is
an alarm delivered after stop and is ignored.
"""
import inspect
from typing import Callable

from loguru import logger

from ..schedule import calculate_fire_time, now_ms
from ..types import (
    EventKind,
    PastDuePolicy,
    PendingAlarm,
    SyncContext,
    SyncEvent,
    SyncState,
    alarm_id_for,
)
from .events import EventTypes, emit_listener_event
from .state import SchedulerRuntimeState, SchedulerServiceDeps

logger = logger.bind(module="scheduler.machine")


class SyncStateMachine:
    """Event-driven controller for listener alarms."""

    def __init__(
        self,
        state: SchedulerRuntimeState,
        deps: SchedulerServiceDeps,
        past_due_policy: PastDuePolicy = PastDuePolicy.SKIP,
        clock: Callable[[], int] = now_ms,
    ):
        self.state = state
        self.deps = deps
        self.past_due_policy = past_due_policy
        self.clock = clock

    async def handle(self, event: SyncEvent) -> None:
        """Run a single event to completion."""
        logger.debug(f"Handling {event.kind.value} in state {self.state.status.value}")

        if event.kind == EventKind.START:
            await self.on_start()
        elif event.kind == EventKind.STOP:
            await self.on_stop()
        elif event.kind == EventKind.SYNC:
            if event.name is None:
                raise ValueError("Sync event requires a listener name")
            await self.on_sync(event.name)
        elif event.kind == EventKind.NETWORK_RESTORED:
            await self.on_network_restored()
        elif event.kind == EventKind.POWER_CHANGED:
            if event.connected is None:
                raise ValueError("Power changed event requires a connected flag")
            await self.on_power_changed(event.connected)
        else:
            raise ValueError(f"Unknown event kind: {event.kind}")

    # ============== Event Handlers ==============

    async def on_start(self) -> None:
        self._cancel_all()
        self._arm_all()
        self._set_power_watch(True)
        self._transition(SyncState.RUNNING)
        emit_listener_event(self.deps.events, EventTypes.SCHEDULER_STARTED)

    async def on_stop(self) -> None:
        self._cancel_all()
        self._set_network_watch(False)
        self._set_power_watch(False)
        self._transition(SyncState.STOPPED)
        emit_listener_event(self.deps.events, EventTypes.SCHEDULER_STOPPED)

    async def on_sync(self, name: str) -> None:
        listener = self.state.registry.get(name)
        if listener is None:
            logger.warning(f"Sync requested for unknown listener {name}")
            return
        if self.state.status == SyncState.STOPPED:
            # Alarm delivered after stop was processed
            logger.info(f"Ignoring sync for {name} while stopped")
            return

        if not await self.deps.network.is_reachable():
            logger.info(f"Network unreachable for {name}, waiting for connectivity")
            self._cancel_all()
            self._set_network_watch(True)
            self._transition(SyncState.WAITING_FOR_NETWORK)
            emit_listener_event(self.deps.events, EventTypes.NETWORK_LOST, name)
            return

        if self.state.status == SyncState.WAITING_FOR_NETWORK:
            # Connectivity is back before the watch noticed
            await self.on_network_restored()

        status = self.state.listener_status[name]
        started_at_ms = self.clock()
        context = SyncContext(
            name=name,
            triggered_at_ms=started_at_ms,
            power_connected=self.state.power_connected,
        )

        try:
            result = listener.on_sync(context)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # No retry policy: the listener stays dormant until the next
            # start, network restore or power change re-arms everyone.
            logger.exception(f"Sync for {name} failed")
            status.failure_count += 1
            status.last_error = str(e)[:500]
            self._cancel(name)
            emit_listener_event(
                self.deps.events,
                EventTypes.SYNC_FAILED,
                name,
                {"error": str(e)[:500]},
            )
            return

        status.sync_count += 1
        status.last_sync_at_ms = started_at_ms
        status.last_error = None
        emit_listener_event(self.deps.events, EventTypes.SYNC_COMPLETED, name)
        self._arm(name)

    async def on_network_restored(self) -> None:
        self._set_network_watch(False)
        emit_listener_event(self.deps.events, EventTypes.NETWORK_RESTORED)
        self._arm_all()
        self._transition(SyncState.RUNNING)

    async def on_power_changed(self, connected: bool) -> None:
        await self.deps.store.set_power_connected(connected)
        self.state.power_connected = connected
        emit_listener_event(
            self.deps.events,
            EventTypes.POWER_CHANGED,
            payload={"connected": connected},
        )

        # Armed alarms carry the old wake mode, replace them all. This also
        # revives listeners left dormant by a failed sync.
        self._cancel_all()
        self._arm_all()

    # ============== Alarm Bookkeeping ==============

    def _arm_all(self) -> None:
        for name in self.state.registry.names():
            self._arm(name)

    def _arm(self, name: str) -> None:
        """Cancel, recompute and re-arm one listener's alarm."""
        self._cancel(name)

        current_ms = self.clock()
        config = self.state.registry.config_for(name)
        fire_at_ms = calculate_fire_time(name, config, current_ms, self.state.seed)
        status = self.state.listener_status[name]

        if fire_at_ms <= current_ms:
            if self.past_due_policy == PastDuePolicy.SKIP:
                logger.warning(f"Fire time for {name} is {current_ms - fire_at_ms}ms in the past, not arming")
                status.next_fire_at_ms = None
                emit_listener_event(
                    self.deps.events,
                    EventTypes.ALARM_SKIPPED,
                    name,
                    {"fire_at_ms": fire_at_ms},
                )
                return
            fire_at_ms = current_ms

        wake_mode = self.state.wake_mode
        alarm_id = alarm_id_for(name)
        self.deps.alarms.arm(alarm_id, fire_at_ms, wake_mode)
        self.state.pending[name] = PendingAlarm(
            listener=name,
            alarm_id=alarm_id,
            fire_at_ms=fire_at_ms,
            wake_mode=wake_mode,
            armed_at_ms=current_ms,
        )
        status.next_fire_at_ms = fire_at_ms
        logger.info(f"Alarm for {name} armed in {(fire_at_ms - current_ms) / 1000:.0f}s ({wake_mode.value})")
        emit_listener_event(
            self.deps.events,
            EventTypes.ALARM_ARMED,
            name,
            {"fire_at_ms": fire_at_ms, "wake_mode": wake_mode.value},
        )

    def _cancel(self, name: str) -> None:
        # Always reaches the scheduler, which also clears timers left over
        # from a previous process.
        self.deps.alarms.cancel(alarm_id_for(name))
        self.state.listener_status[name].next_fire_at_ms = None
        if self.state.pending.pop(name, None) is not None:
            emit_listener_event(self.deps.events, EventTypes.ALARM_CANCELED, name)

    def _cancel_all(self) -> None:
        for name in self.state.registry.names():
            self._cancel(name)

    # ============== Watches & State ==============

    def _set_network_watch(self, enabled: bool) -> None:
        if enabled:
            self.deps.network.enable_watch()
        else:
            self.deps.network.disable_watch()
        self.state.network_watch_active = enabled

    def _set_power_watch(self, enabled: bool) -> None:
        if enabled:
            self.deps.power.enable_watch()
        else:
            self.deps.power.disable_watch()
        self.state.power_watch_active = enabled

    def _transition(self, new_state: SyncState) -> None:
        if new_state != self.state.status:
            logger.info(f"State {self.state.status.value} -> {new_state.value}")
            self.state.status = new_state
