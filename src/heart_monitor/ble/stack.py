"""BLE capabilities consumed by the monitor, with a bleak-backed implementation."""

from __future__ import annotations

import abc
import logging
from typing import Any, Callable, List, Optional

from bleak import BleakClient, BleakError, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.uuids import normalize_uuid_16

from ..registry import format_address, parse_address

logger = logging.getLogger(__name__)

HEART_RATE_SERVICE = 0x180D
HEART_RATE_MEASUREMENT = 0x2A37

AdvertisementCallback = Callable[[int, Optional[str]], None]
ValueChangedCallback = Callable[[bytes], None]


class BleStack(abc.ABC):
    """Scanning, connection and GATT operations the monitor relies on.

    Service and characteristic UUIDs are passed as 16-bit short ids.
    """

    @abc.abstractmethod
    async def start_scan(self, on_advertisement: AdvertisementCallback) -> None:
        """Begin active scanning; ``on_advertisement(address, local_name)`` per advertisement."""

    @abc.abstractmethod
    async def stop_scan(self) -> None:
        """End scanning. No callbacks are delivered afterwards."""

    @abc.abstractmethod
    async def connect(self, address: int) -> Any:
        """Return a connected device handle. May raise or return None on failure."""

    @abc.abstractmethod
    async def discover_services(self, device: Any, uuid: int) -> List[Any]:
        """Services of ``device`` matching ``uuid``."""

    @abc.abstractmethod
    async def discover_characteristics(self, service: Any, uuid: int) -> List[Any]:
        """Characteristics of ``service`` matching ``uuid``."""

    @abc.abstractmethod
    async def subscribe(
        self, device: Any, characteristic: Any, on_value_changed: ValueChangedCallback
    ) -> bool:
        """Register ``on_value_changed`` and enable notifications. True on success."""

    @abc.abstractmethod
    async def unsubscribe(self, device: Any, characteristic: Any) -> None:
        """Unregister the notification handler of ``characteristic``."""

    @abc.abstractmethod
    async def disconnect(self, device: Any) -> None:
        """Release the link to ``device``."""


class BleakStack(BleStack):
    """BleStack backed by bleak (BlueZ, WinRT and CoreBluetooth backends)."""

    def __init__(self, adapter: str = "hci0", connect_timeout_sec: float = 10.0) -> None:
        self.adapter = adapter
        self.connect_timeout_sec = connect_timeout_sec

        self._scanner: Optional[BleakScanner] = None
        self._on_advertisement: Optional[AdvertisementCallback] = None

    async def start_scan(self, on_advertisement: AdvertisementCallback) -> None:
        if self._scanner is not None:
            raise RuntimeError("Scan already running")

        self._on_advertisement = on_advertisement
        self._scanner = BleakScanner(
            detection_callback=self._handle_detection,
            scanning_mode="active",
            adapter=self.adapter,
        )
        try:
            await self._scanner.start()
        except Exception:
            self._scanner = None
            self._on_advertisement = None
            raise
        logger.info(f"Active scan started on {self.adapter}")

    async def stop_scan(self) -> None:
        scanner = self._scanner
        if scanner is None:
            return

        self._scanner = None
        self._on_advertisement = None
        await scanner.stop()
        logger.info("Scan stopped")

    async def connect(self, address: int) -> Optional[BleakClient]:
        mac = format_address(address)
        logger.info(f"Connecting to {mac}")

        client = BleakClient(
            mac,
            adapter=self.adapter,
            timeout=self.connect_timeout_sec,
            disconnected_callback=self._on_device_disconnect,
        )
        await client.connect()
        if not client.is_connected:
            return None

        logger.info(f"Connected to {mac}")
        return client

    async def discover_services(self, device: BleakClient, uuid: int) -> List[Any]:
        wanted = normalize_uuid_16(uuid)
        return [service for service in device.services if service.uuid == wanted]

    async def discover_characteristics(self, service: Any, uuid: int) -> List[BleakGATTCharacteristic]:
        wanted = normalize_uuid_16(uuid)
        return [char for char in service.characteristics if char.uuid == wanted]

    async def subscribe(
        self,
        device: BleakClient,
        characteristic: BleakGATTCharacteristic,
        on_value_changed: ValueChangedCallback,
    ) -> bool:
        def _handle_notification(sender: BleakGATTCharacteristic, data: bytearray) -> None:
            on_value_changed(bytes(data))

        # start_notify registers the handler and writes the CCCD
        try:
            await device.start_notify(characteristic, _handle_notification)
        except BleakError as e:
            logger.warning(f"Enabling notifications on {characteristic.uuid} failed: {e}")
            return False
        return True

    async def unsubscribe(self, device: BleakClient, characteristic: BleakGATTCharacteristic) -> None:
        if device.is_connected:
            await device.stop_notify(characteristic)

    async def disconnect(self, device: BleakClient) -> None:
        if device.is_connected:
            await device.disconnect()

    def _handle_detection(self, device: BLEDevice, advertisement_data: AdvertisementData) -> None:
        """Forward a bleak detection to the advertisement callback."""
        callback = self._on_advertisement
        if callback is None:
            return

        try:
            address = parse_address(device.address)
        except ValueError:
            # CoreBluetooth reports per-host UUIDs instead of MAC addresses
            logger.debug(f"Skipping advertisement without MAC address: {device.address}")
            return

        callback(address, advertisement_data.local_name)

    def _on_device_disconnect(self, client: BleakClient) -> None:
        """Handle device disconnection callback from Bleak."""
        logger.warning(f"Device {client.address} disconnected")
