"""Scheduler module for jittered periodic syncs.

This module provides:
- Deterministic per-device jitter
- Interval and cron time spans
- An event-driven state machine reacting to network and power changes
- JSON file or SQLite persistence for the device seed and power flag
- asyncio-based alarms
"""
# Core types
from .types import (
    # Time span types
    TimeSpanKind,
    EverySpan,
    CronSpan,
    TimeSpan,
    time_span_from_dict,
    SyncConfig,
    # State types
    SyncState,
    WakeMode,
    PastDuePolicy,
    EventKind,
    SyncEvent,
    SyncContext,
    PendingAlarm,
    alarm_id_for,
    listener_name_from_alarm,
    # Result types
    SchedulerEvent,
    ListenerStatus,
    SchedulerStatus,
    # Errors
    ConfigurationError,
    StoreError,
)

# Jitter
from .jitter import JitterGenerator, random_in_range

# Schedule utilities
from .schedule import (
    compute_next_event_ms,
    calculate_fire_time,
    validate_cron_expression,
    validate_sync_config,
    span_to_human,
    interval_to_human,
    now_ms,
)

# Seed
from .seed import DeviceSeedManager, collect_device_identity, seed_from_identity

# Listeners
from .listeners import Listener, CallbackListener, ListenerRegistry

# Service
from .service import TimeSyncService
from .service.machine import SyncStateMachine
from .service.store import PreferenceStore, SqlitePreferenceStore
from .service.json_store import JsonPreferenceStore
from .service.timer import AsyncioAlarmScheduler
from .service.monitors import SocketNetworkMonitor, PsutilPowerMonitor
from .service.events import EventEmitter, EventTypes

__all__ = [
    # Core types
    "TimeSpanKind",
    "EverySpan",
    "CronSpan",
    "TimeSpan",
    "time_span_from_dict",
    "SyncConfig",
    "SyncState",
    "WakeMode",
    "PastDuePolicy",
    "EventKind",
    "SyncEvent",
    "SyncContext",
    "PendingAlarm",
    "alarm_id_for",
    "listener_name_from_alarm",
    "SchedulerEvent",
    "ListenerStatus",
    "SchedulerStatus",
    "ConfigurationError",
    "StoreError",
    # Jitter
    "JitterGenerator",
    "random_in_range",
    # Schedule utilities
    "compute_next_event_ms",
    "calculate_fire_time",
    "validate_cron_expression",
    "validate_sync_config",
    "span_to_human",
    "interval_to_human",
    "now_ms",
    # Seed
    "DeviceSeedManager",
    "collect_device_identity",
    "seed_from_identity",
    # Listeners
    "Listener",
    "CallbackListener",
    "ListenerRegistry",
    # Service
    "TimeSyncService",
    "SyncStateMachine",
    "PreferenceStore",
    "SqlitePreferenceStore",
    "JsonPreferenceStore",
    "AsyncioAlarmScheduler",
    "SocketNetworkMonitor",
    "PsutilPowerMonitor",
    "EventEmitter",
    "EventTypes",
]
