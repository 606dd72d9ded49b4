"""Shared fixtures: an in-memory BLE stack standing in for the radio."""

from types import SimpleNamespace

import pytest

from heart_monitor.ble.stack import BleStack

ADDR_A = 0xA1B2C3D4E5F6
ADDR_B = 0x001122334455
ADDR_C = 0xC0FFEE000001


class FakeStack(BleStack):
    """Scriptable BleStack. Results may be values or exceptions to raise."""

    def __init__(
        self,
        advertisements=(),
        connect_result="device",
        services=("hr-service",),
        characteristics=("hr-measurement",),
        subscribe_result=True,
        scan_error=None,
    ):
        self.advertisements = list(advertisements)
        self.connect_result = connect_result
        self.services = services
        self.characteristics = characteristics
        self.subscribe_result = subscribe_result
        self.scan_error = scan_error

        self.calls = []
        self.handler = None
        self.scanning = False

    @staticmethod
    def _result(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def start_scan(self, on_advertisement):
        self.calls.append(("start_scan",))
        self._result(self.scan_error)
        self.scanning = True
        for address, name in self.advertisements:
            on_advertisement(address, name)

    async def stop_scan(self):
        self.calls.append(("stop_scan",))
        self.scanning = False

    async def connect(self, address):
        self.calls.append(("connect", address))
        return self._result(self.connect_result)

    async def discover_services(self, device, uuid):
        self.calls.append(("discover_services", device, uuid))
        return list(self._result(self.services))

    async def discover_characteristics(self, service, uuid):
        self.calls.append(("discover_characteristics", service, uuid))
        return list(self._result(self.characteristics))

    async def subscribe(self, device, characteristic, on_value_changed):
        self.calls.append(("subscribe", device, characteristic))
        self.handler = on_value_changed
        return self._result(self.subscribe_result)

    async def unsubscribe(self, device, characteristic):
        self.calls.append(("unsubscribe", device, characteristic))
        self.handler = None

    async def disconnect(self, device):
        self.calls.append(("disconnect", device))

    def notify(self, data):
        """Deliver a characteristic value the way the stack would."""
        if self.handler:
            self.handler(bytes(data))

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def stack():
    return FakeStack()


@pytest.fixture
def make_stack():
    return FakeStack


@pytest.fixture
def addresses():
    return SimpleNamespace(A=ADDR_A, B=ADDR_B, C=ADDR_C)
