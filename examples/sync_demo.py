"""TimeSync demo showing listeners, jitter and observer events.

This example demonstrates:
- Registering listeners programmatically (class-based and callback-based)
- Interval and cron time spans with a jitter range
- Observing scheduler events
- Reacting to power changes and a manual sync
"""
import asyncio
import os
import sys
import tempfile
from pathlib import Path

from loguru import logger
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timesync.config import Settings
from timesync.scheduler import (
    CallbackListener,
    CronSpan,
    ListenerRegistry,
    SchedulerEvent,
    SyncConfig,
    SyncContext,
    TimeSyncService,
)


# ============== Listeners ==============

class WeatherListener:
    """Refreshes a cached forecast roughly every 10 seconds."""

    def get_config(self) -> SyncConfig:
        return SyncConfig.every(interval_ms=10_000, range_ms=4_000)

    async def on_sync(self, context: SyncContext) -> None:
        logger.info(f"[weather] syncing (power connected: {context.power_connected})")
        await asyncio.sleep(0.1)


def nightly_backup(context: SyncContext) -> None:
    logger.info(f"[backup] syncing at {context.triggered_at_ms}")


def print_event(event: SchedulerEvent) -> None:
    logger.info(f"[event] {event.type} {event.listener} {event.payload}")


async def main():
    data_dir = Path(tempfile.mkdtemp(prefix="timesync-demo-"))
    settings = Settings(data_dir=data_dir, store_backend="json")

    registry = ListenerRegistry({
        "weather": WeatherListener(),
        "backup": CallbackListener(
            SyncConfig(time_span=CronSpan(expression="0 3 * * *"), range_ms=30 * 60_000),
            nightly_backup,
        ),
    })

    async with TimeSyncService(registry, settings=settings) as service:
        service.events.add_handler(print_event)

        await service.start()
        logger.info(f"Status: {service.status().to_dict()}")

        # Plugging in switches every alarm to exact wake mode
        await service.power_changed(True)

        # Force a sync now, as if the alarm had fired
        await service.sync("weather")

        await asyncio.sleep(15)
        await service.stop()

    logger.info(f"Preferences persisted under {data_dir}")


if __name__ == "__main__":
    asyncio.run(main())
