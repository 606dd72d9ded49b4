"""Heart Monitor - BLE heart rate discovery and streaming."""

__version__ = "0.1.0"

from .ble.hrm_parse import HeartRateMeasurement, decode_heart_rate
from .config import AppConfig, load_config
from .logs import NdjsonLogger
from .monitor import HeartRateMonitor
from .registry import DiscoveredDevice, DiscoveryRegistry
from .session import HeartRateSession, SessionState

__all__ = [
    "AppConfig",
    "DiscoveredDevice",
    "DiscoveryRegistry",
    "HeartRateMeasurement",
    "HeartRateMonitor",
    "HeartRateSession",
    "NdjsonLogger",
    "SessionState",
    "decode_heart_rate",
    "load_config",
]
