"""Timer management for the scheduler.

Default AlarmScheduler: one asyncio task per armed alarm, sleeping until the
alarm's fire time and then handing the alarm id back to the owner.
"""
import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from ..schedule import now_ms
from ..types import WakeMode

logger = logger.bind(module="scheduler.timer")

# Called with the alarm id when the alarm fires
FireCallback = Callable[[str], Any]


@dataclass
class ArmedAlarm:
    """A timer currently waiting to fire."""
    alarm_id: str
    at_ms: int
    wake_mode: WakeMode
    task: asyncio.Task


class AsyncioAlarmScheduler:
    """Alarm scheduler backed by asyncio tasks.

    Exact alarms fire at the requested time. Inexact alarms are rounded up to
    the next multiple of ``inexact_window_ms`` (when positive) so that several
    alarms close together fire in one batch.
    """

    def __init__(
        self,
        on_fire: FireCallback,
        inexact_window_ms: int = 0,
        clock: Callable[[], int] = now_ms,
    ):
        self.on_fire = on_fire
        self.inexact_window_ms = inexact_window_ms
        self.clock = clock
        self._alarms: dict[str, ArmedAlarm] = {}

    def arm(self, alarm_id: str, at_ms: int, wake_mode: WakeMode) -> None:
        """Arm a timer, replacing any timer already armed for ``alarm_id``."""
        self.cancel(alarm_id)

        target_ms = at_ms
        if wake_mode == WakeMode.INEXACT and self.inexact_window_ms > 0:
            window = self.inexact_window_ms
            target_ms = -(-at_ms // window) * window

        task = asyncio.get_running_loop().create_task(self._wait_and_fire(alarm_id, target_ms))
        self._alarms[alarm_id] = ArmedAlarm(alarm_id, target_ms, wake_mode, task)
        logger.debug(f"Alarm {alarm_id} armed for {target_ms} ({wake_mode.value})")

    def cancel(self, alarm_id: str) -> None:
        alarm = self._alarms.pop(alarm_id, None)
        if alarm:
            alarm.task.cancel()
            logger.debug(f"Alarm {alarm_id} canceled")

    def armed(self) -> dict[str, ArmedAlarm]:
        """Snapshot of armed alarms."""
        return dict(self._alarms)

    def close(self) -> None:
        """Cancel every armed timer."""
        for alarm_id in list(self._alarms):
            self.cancel(alarm_id)

    async def _wait_and_fire(self, alarm_id: str, at_ms: int) -> None:
        delay_ms = max(0, at_ms - self.clock())
        await asyncio.sleep(delay_ms / 1000.0)

        current = self._alarms.get(alarm_id)
        if current is None or current.task is not asyncio.current_task():
            return
        del self._alarms[alarm_id]

        logger.debug(f"Alarm {alarm_id} fired")
        try:
            result = self.on_fire(alarm_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Alarm callback for {alarm_id} failed: {e}")
