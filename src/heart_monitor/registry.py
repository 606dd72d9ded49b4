"""Discovery registry: deduplicates advertisements and assigns selection indices."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

UNKNOWN_NAME = "Unknown"
MAX_ADDRESS = (1 << 48) - 1


def parse_address(text: str) -> int:
    """Convert a colon or dash separated MAC address into a 48-bit integer."""
    parts = text.replace("-", ":").split(":")
    if len(parts) != 6 or not all(len(p) == 2 for p in parts):
        raise ValueError(f"Not a 48-bit Bluetooth address: {text!r}")
    try:
        return int("".join(parts), 16)
    except ValueError:
        raise ValueError(f"Not a 48-bit Bluetooth address: {text!r}") from None


def format_address(address: int) -> str:
    """Format a 48-bit integer address as AA:BB:CC:DD:EE:FF."""
    if not 0 <= address <= MAX_ADDRESS:
        raise ValueError(f"Address out of 48-bit range: {address}")
    raw = f"{address:012X}"
    return ":".join(raw[i:i + 2] for i in range(0, 12, 2))


@dataclass(frozen=True)
class DiscoveredDevice:
    """A peripheral seen during scanning, with its selection index."""

    index: int
    address: int
    display_name: str = UNKNOWN_NAME

    @property
    def mac(self) -> str:
        return format_address(self.address)

    def to_dict(self) -> dict:
        """Convert device to dictionary for logging."""
        return {"index": self.index, "address": self.mac, "name": self.display_name}


class DiscoveryRegistry:
    """Thread-safe first-seen index of advertising devices.

    ``observe`` is called from the advertisement callback while ``resolve``
    may be called from the main flow at any time. Entries are never removed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: Set[int] = set()
        self._by_index: Dict[int, DiscoveredDevice] = {}
        self._next_index = 1

    def observe(self, address: int, display_name: Optional[str] = None) -> Optional[DiscoveredDevice]:
        """Register a sighting. Returns the new device on first sighting only."""
        with self._lock:
            if address in self._seen:
                return None

            device = DiscoveredDevice(
                index=self._next_index,
                address=address,
                display_name=display_name if display_name else UNKNOWN_NAME,
            )
            self._seen.add(address)
            self._by_index[device.index] = device
            self._next_index += 1
            return device

    def resolve(self, index: int) -> Optional[int]:
        """Return the address assigned to ``index``, or None if never assigned."""
        device = self.get(index)
        return device.address if device else None

    def get(self, index: int) -> Optional[DiscoveredDevice]:
        if not isinstance(index, int) or isinstance(index, bool):
            return None
        with self._lock:
            return self._by_index.get(index)

    def devices(self) -> List[DiscoveredDevice]:
        """Snapshot of all discovered devices in index order."""
        with self._lock:
            return [self._by_index[i] for i in sorted(self._by_index)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._seen
