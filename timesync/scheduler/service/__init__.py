"""Scheduler service package.

This package contains the core scheduler service components:
- state.py: Collaborator protocols, dependencies and runtime state
- machine.py: The sync state machine
- store.py / json_store.py: Preference persistence (SQLite / JSON file)
- timer.py: asyncio-backed alarm scheduler
- monitors.py: Network and power monitors
- events.py: Event system
- service.py: Host-facing service and event worker
"""
from .service import TimeSyncService

__all__ = ["TimeSyncService"]
