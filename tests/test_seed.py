"""Tests for device seed creation and persistence."""
import pytest

from conftest import MemoryPreferenceStore
from timesync.scheduler import seed as seed_module
from timesync.scheduler.seed import (
    DeviceSeedManager,
    collect_device_identity,
    seed_from_identity,
)
from timesync.scheduler.types import StoreError


def _no_identifiers(monkeypatch):
    monkeypatch.setattr(seed_module, "_read_machine_id", lambda: None)
    monkeypatch.setattr(seed_module, "_read_hardware_address", lambda: None)
    monkeypatch.setattr(seed_module.platform, "node", lambda: "")


class TestSeedFromIdentity:

    def test_deterministic(self):
        assert seed_from_identity("serial-123android-abc") == seed_from_identity("serial-123android-abc")

    def test_non_zero_signed_64_bit(self):
        for identity in ("", "a", "b", "device-1", "device-2"):
            value = seed_from_identity(identity)
            assert value != 0
            assert -(1 << 63) <= value < (1 << 63)

    def test_different_identities_differ(self):
        values = {seed_from_identity(f"device-{i}") for i in range(50)}
        assert len(values) == 50


class TestCollectDeviceIdentity:

    def test_includes_configured_device_id(self, monkeypatch):
        _no_identifiers(monkeypatch)
        assert collect_device_identity("imei-42") == "imei-42"

    def test_missing_identifiers_are_skipped(self, monkeypatch):
        _no_identifiers(monkeypatch)
        monkeypatch.setattr(seed_module, "_read_machine_id", lambda: "abc123")
        assert collect_device_identity(None) == "abc123"

    def test_all_identifiers_missing(self, monkeypatch):
        _no_identifiers(monkeypatch)
        assert collect_device_identity(None) == ""

    def test_concatenation_order(self, monkeypatch):
        monkeypatch.setattr(seed_module, "_read_machine_id", lambda: "mid")
        monkeypatch.setattr(seed_module, "_read_hardware_address", lambda: "mac")
        monkeypatch.setattr(seed_module.platform, "node", lambda: "host")
        assert collect_device_identity("dev") == "devmidhostmac"


class TestDeviceSeedManager:

    async def test_creates_and_persists_seed(self, monkeypatch):
        _no_identifiers(monkeypatch)
        store = MemoryPreferenceStore()
        manager = DeviceSeedManager(store, device_id="device-1")

        seed = await manager.get_or_create_seed()

        assert seed == seed_from_identity("device-1")
        assert store.seed == seed
        assert store.seed_writes == 1

    async def test_second_call_returns_same_seed(self):
        store = MemoryPreferenceStore()
        manager = DeviceSeedManager(store)

        first = await manager.get_or_create_seed()
        second = await manager.get_or_create_seed()

        assert first == second
        assert store.seed_writes == 1

    async def test_existing_seed_is_never_replaced(self):
        store = MemoryPreferenceStore(seed=-987654321)
        manager = DeviceSeedManager(store, device_id="something-else")

        assert await manager.get_or_create_seed() == -987654321
        assert store.seed_writes == 0

    async def test_no_identifiers_still_creates_seed(self, monkeypatch):
        _no_identifiers(monkeypatch)
        store = MemoryPreferenceStore()

        seed = await DeviceSeedManager(store).get_or_create_seed()

        assert seed != 0
        assert store.seed == seed

    async def test_store_failure_propagates(self):
        store = MemoryPreferenceStore(fail_writes=True)
        with pytest.raises(StoreError):
            await DeviceSeedManager(store).get_or_create_seed()
