"""Parser for the GATT Heart Rate Measurement characteristic (0x2A37).

Payload layout handled here:
  byte 0      flags; bit 0 selects the heart rate value format
  byte 1      heart rate, uint8            (flags bit 0 clear)
  bytes 1-2   heart rate, uint16 LE        (flags bit 0 set)

Sensor contact, energy expended and RR-interval fields are not decoded;
any bytes after the heart rate value are ignored.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

HR_VALUE_FORMAT_UINT16 = 0x01


@dataclass(frozen=True)
class HeartRateMeasurement:
    """A single decoded heart rate value."""

    bpm: int
    wide_format: bool

    def to_dict(self) -> dict:
        """Convert measurement to dictionary for logging."""
        return {"bpm": self.bpm, "wide": self.wide_format}


def decode_heart_rate(payload: bytes) -> Optional[HeartRateMeasurement]:
    """Decode a Heart Rate Measurement notification value.

    Returns None for an empty payload, and for a payload too short to hold
    the value its flags announce.
    """
    if not payload:
        return None

    flags = payload[0]
    wide = bool(flags & HR_VALUE_FORMAT_UINT16)

    try:
        if wide:
            bpm = struct.unpack_from("<H", payload, 1)[0]
        else:
            bpm = struct.unpack_from("<B", payload, 1)[0]
    except struct.error:
        logger.warning(
            f"Truncated heart rate payload ({len(payload)} bytes, flags=0x{flags:02x}): "
            f"{bytes(payload).hex()}"
        )
        return None

    return HeartRateMeasurement(bpm=bpm, wide_format=wide)


def format_measurement(measurement: HeartRateMeasurement) -> str:
    return f"Heart Rate Measurement: {measurement.bpm} bpm"
