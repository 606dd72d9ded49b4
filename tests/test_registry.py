"""Tests for the discovery registry."""

import threading

import pytest

from heart_monitor.registry import (
    UNKNOWN_NAME,
    DiscoveredDevice,
    DiscoveryRegistry,
    format_address,
    parse_address,
)

A, B, C = 0xA1B2C3D4E5F6, 0x001122334455, 0xC0FFEE000001


class TestDiscoveryRegistry:

    def setup_method(self):
        self.registry = DiscoveryRegistry()

    def test_first_seen_ordering_with_duplicates(self):
        results = [self.registry.observe(addr, name) for addr, name in
                   [(A, "Polar"), (B, None), (A, "Polar"), (C, "Garmin")]]

        assert results[0] == DiscoveredDevice(1, A, "Polar")
        assert results[1] == DiscoveredDevice(2, B, UNKNOWN_NAME)
        assert results[2] is None
        assert results[3] == DiscoveredDevice(3, C, "Garmin")

        assert self.registry.resolve(1) == A
        assert self.registry.resolve(2) == B
        assert self.registry.resolve(3) == C
        assert len(self.registry) == 3

    def test_repeated_sighting_keeps_first_entry(self):
        self.registry.observe(A, None)
        for _ in range(5):
            assert self.registry.observe(A, "Renamed") is None

        assert self.registry.get(1).display_name == UNKNOWN_NAME
        assert len(self.registry) == 1

    @pytest.mark.parametrize("index", [0, -1, 4, 99, "1", None, 1.5, 1.0, True, [1]])
    def test_resolve_unassigned_returns_none(self, index):
        self.registry.observe(A)
        self.registry.observe(B)
        self.registry.observe(C)
        assert self.registry.resolve(index) is None

    def test_resolve_on_empty_registry(self):
        assert self.registry.resolve(1) is None

    def test_display_name_policy(self):
        assert self.registry.observe(A, "").display_name == UNKNOWN_NAME
        assert self.registry.observe(B, None).display_name == UNKNOWN_NAME
        # no trimming or case folding
        assert self.registry.observe(C, "  hrm PRO ").display_name == "  hrm PRO "

    def test_devices_snapshot_in_index_order(self):
        for addr in (C, A, B):
            self.registry.observe(addr)

        snapshot = self.registry.devices()
        assert [d.index for d in snapshot] == [1, 2, 3]
        assert [d.address for d in snapshot] == [C, A, B]

        self.registry.observe(0x010203040506)
        assert len(snapshot) == 3

    def test_contains(self):
        self.registry.observe(A)
        assert A in self.registry
        assert B not in self.registry

    def test_concurrent_observers_get_unique_indices(self):
        addresses = list(range(1, 401))
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            for addr in addresses:
                self.registry.observe(addr)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        devices = self.registry.devices()
        assert len(devices) == len(addresses)
        assert [d.index for d in devices] == list(range(1, len(addresses) + 1))
        assert sorted(d.address for d in devices) == addresses


def test_address_text_conversion():
    assert parse_address("A1:B2:C3:D4:E5:F6") == A
    assert parse_address("a1-b2-c3-d4-e5-f6") == A
    assert format_address(B) == "00:11:22:33:44:55"
    assert DiscoveredDevice(1, A).mac == "A1:B2:C3:D4:E5:F6"


@pytest.mark.parametrize("text", ["", "A1:B2:C3", "12345678-1234-1234-1234-123456789ABC", "GG:00:00:00:00:00"])
def test_parse_address_rejects_non_mac(text):
    with pytest.raises(ValueError):
        parse_address(text)


def test_format_address_range():
    with pytest.raises(ValueError):
        format_address(1 << 48)
