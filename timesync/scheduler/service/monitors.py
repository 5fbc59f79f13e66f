"""Network and power monitors.

Default NetworkMonitor and PowerMonitor implementations for hosts without a
platform notification service: both poll from an asyncio task while their
watch is enabled.
"""
import asyncio
import inspect
from typing import Any, Callable

import psutil
from loguru import logger

logger = logger.bind(module="scheduler.monitors")


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class SocketNetworkMonitor:
    """Reachability via a TCP connect probe.

    While watching, probes every ``poll_interval`` seconds and calls
    ``on_restored`` once when the probe succeeds, then stops watching.
    """

    def __init__(
        self,
        on_restored: Callable[[], Any],
        host: str = "1.1.1.1",
        port: int = 53,
        timeout: float = 3.0,
        poll_interval: float = 30.0,
    ):
        self.on_restored = on_restored
        self.host = host
        self.port = port
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._task: asyncio.Task | None = None

    @property
    def watching(self) -> bool:
        return self._task is not None

    async def is_reachable(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    def enable_watch(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._watch())
        logger.info(f"Watching for network via {self.host}:{self.port}")

    def disable_watch(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if task is not asyncio.current_task():
            task.cancel()

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if await self.is_reachable():
                break

        self._task = None
        logger.info("Network restored")
        try:
            await _invoke(self.on_restored)
        except Exception as e:
            logger.error(f"Network restored callback failed: {e}")


def read_power_connected() -> bool | None:
    """Current power state from psutil.

    A machine without a battery runs on mains power and counts as connected.
    Returns None when the platform reports the battery but not its plug state.
    """
    sensors_battery = getattr(psutil, "sensors_battery", None)
    if sensors_battery is None:
        return True
    battery = sensors_battery()
    if battery is None:
        return True
    if battery.power_plugged is None:
        return None
    return bool(battery.power_plugged)


class PsutilPowerMonitor:
    """Power transitions via ``psutil.sensors_battery()`` polling.

    ``last_connected`` should be seeded with the persisted flag so the first
    poll only reports a real transition.
    """

    def __init__(
        self,
        on_change: Callable[[bool], Any],
        poll_interval: float = 60.0,
        last_connected: bool | None = None,
        reader: Callable[[], bool | None] = read_power_connected,
    ):
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.last_connected = last_connected
        self.reader = reader
        self._task: asyncio.Task | None = None

    @property
    def watching(self) -> bool:
        return self._task is not None

    def enable_watch(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._watch())
        logger.info("Watching for power changes")

    def disable_watch(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if task is not asyncio.current_task():
            task.cancel()

    async def poll_once(self) -> None:
        connected = self.reader()
        if connected is None or connected == self.last_connected:
            return
        self.last_connected = connected
        logger.info(f"Power {'connected' if connected else 'disconnected'}")
        try:
            await _invoke(self.on_change, connected)
        except Exception as e:
            logger.error(f"Power change callback failed: {e}")

    async def _watch(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)
