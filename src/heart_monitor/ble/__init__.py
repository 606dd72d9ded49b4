"""BLE package: capability interface, bleak backend and payload parsing."""

from .hrm_parse import HeartRateMeasurement, decode_heart_rate
from .stack import BleakStack, BleStack

__all__ = ["BleStack", "BleakStack", "HeartRateMeasurement", "decode_heart_rate"]
