"""Listener classes loaded by dotted path in the registry tests."""
from timesync.scheduler.types import CronSpan, SyncConfig, SyncContext


class HourlyListener:
    def get_config(self) -> SyncConfig:
        return SyncConfig.every(interval_ms=3_600_000, range_ms=600_000)

    async def on_sync(self, context: SyncContext) -> None:
        pass


class NightlyListener:
    def get_config(self) -> SyncConfig:
        return SyncConfig(time_span=CronSpan(expression="0 3 * * *"), range_ms=1_800_000)

    def on_sync(self, context: SyncContext) -> None:
        pass


class NeedsArgumentsListener:
    def __init__(self, endpoint: str):
        self.endpoint = endpoint

    def get_config(self) -> SyncConfig:
        return SyncConfig.every(interval_ms=60_000)

    def on_sync(self, context: SyncContext) -> None:
        pass


class ZeroIntervalListener:
    def get_config(self) -> SyncConfig:
        return SyncConfig.every(interval_ms=0)

    def on_sync(self, context: SyncContext) -> None:
        pass


class NotAListener:
    pass
