"""Device seed management.

The seed is created once per install from whatever device identifiers are
available and persisted, so the jitter distribution a device draws from stays
the same across restarts.
"""
import platform
import random
import uuid
import zlib
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from .service.store import PreferenceStore

logger = logger.bind(module="scheduler.seed")

MACHINE_ID_PATHS = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)


def _read_machine_id() -> str | None:
    for path in MACHINE_ID_PATHS:
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _read_hardware_address() -> str | None:
    node = uuid.getnode()
    # Multicast bit set means uuid fell back to a random number
    if (node >> 40) & 1:
        return None
    return f"{node:012x}"


def collect_device_identity(device_id: str | None = None) -> str:
    """Concatenate the device identifiers that are available.

    Missing identifiers are skipped; they reduce entropy but never fail.
    """
    parts = [
        device_id,
        _read_machine_id(),
        platform.node() or None,
        _read_hardware_address(),
    ]
    return "".join(p for p in parts if p)


def seed_from_identity(identity: str) -> int:
    """Expand an identity string into a well-distributed signed 64-bit seed."""
    hashed = zlib.crc32(identity.encode("utf-8"))
    rng = random.Random(hashed)
    while True:
        value = rng.getrandbits(64)
        if value >= 1 << 63:
            value -= 1 << 64
        if value != 0:
            return value


class DeviceSeedManager:
    """Creates the device seed on first access and returns it afterwards."""

    def __init__(self, store: "PreferenceStore", device_id: str | None = None):
        self.store = store
        self.device_id = device_id

    async def get_or_create_seed(self) -> int:
        seed = await self.store.get_seed()
        if seed != 0:
            return seed

        identity = collect_device_identity(self.device_id)
        if not identity:
            logger.warning("No device identifiers available, seed will not be device specific")

        seed = seed_from_identity(identity)
        await self.store.set_seed(seed)
        logger.info("Created device seed")
        return seed
