"""Heart rate session: connect, subscribe and stream measurements from one device."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from .ble.hrm_parse import HeartRateMeasurement, decode_heart_rate
from .ble.stack import HEART_RATE_MEASUREMENT, HEART_RATE_SERVICE, BleStack
from .errors import (
    CharacteristicNotFoundError,
    DeviceConnectionError,
    FailureReason,
    HeartMonitorError,
    ServiceNotFoundError,
    SubscriptionRejectedError,
)
from .registry import format_address

logger = logging.getLogger(__name__)

Selector = Callable[[Sequence[Any]], Any]


class SessionState(Enum):
    """Lifecycle of a heart rate session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    SUBSCRIBING_SERVICE = "subscribing_service"
    SUBSCRIBING_CHARACTERISTIC = "subscribing_characteristic"
    SUBSCRIBED = "subscribed"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.STOPPED, SessionState.FAILED})


def select_first(candidates: Sequence[Any]) -> Any:
    """Default policy when a lookup matches several instances: take the first."""
    return candidates[0]


class HeartRateSession:
    """Drives one device from selection to streaming heart rate notifications.

    The session runs its steps strictly in order and ends in FAILED on the
    first step that fails; there is no retry. Once SUBSCRIBED it stays there
    until ``stop()`` is called, which may happen from any thread.
    """

    def __init__(
        self,
        stack: BleStack,
        selector: Selector = select_first,
        release_handler_on_reject: bool = True,
        poll_interval_sec: float = 0.05,
    ) -> None:
        self.stack = stack
        self.selector = selector
        self.release_handler_on_reject = release_handler_on_reject
        self.poll_interval_sec = poll_interval_sec

        self._state = SessionState.IDLE
        self._address: Optional[int] = None
        self._device: Any = None
        self._characteristic: Any = None
        self._handler_registered = False
        self._stop_event = threading.Event()

        self.failure_reason: Optional[FailureReason] = None
        self.error: Optional[HeartMonitorError] = None
        self._measurement_count = 0

        # Callbacks
        self._on_measurement: Optional[Callable[[HeartRateMeasurement], None]] = None
        self._on_state: Optional[Callable[[SessionState, Optional[str]], None]] = None

    def set_measurement_callback(self, callback: Callable[[HeartRateMeasurement], None]) -> None:
        """Set callback for decoded measurements."""
        self._on_measurement = callback

    def set_state_callback(self, callback: Callable[[SessionState, Optional[str]], None]) -> None:
        """Set callback for state changes. Receives the new state and a status line or None."""
        self._on_state = callback

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def address(self) -> Optional[int]:
        return self._address

    @property
    def is_subscribed(self) -> bool:
        return self._state is SessionState.SUBSCRIBED

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def measurement_count(self) -> int:
        return self._measurement_count

    def stop(self) -> None:
        """Signal the session to stop. Safe to call from any thread, more than once."""
        self._stop_event.set()

    async def run(self, address: int) -> SessionState:
        """Connect and subscribe, then stream until stopped. Returns the final state."""
        if await self.start(address):
            await self.wait_until_stopped()
        return self._state

    async def start(self, address: int) -> bool:
        """Run connect through subscribe. True when the session reached SUBSCRIBED."""
        if self._state is not SessionState.IDLE:
            raise RuntimeError(f"Session already started (state={self._state.value})")

        self._address = address
        mac = format_address(address)

        self._set_state(SessionState.CONNECTING, f"Connecting to {mac}...")
        try:
            self._device = await self.stack.connect(address)
        except Exception as e:
            logger.warning(f"Connection to {mac} failed: {e!r}")
            self._device = None
        if not self._device:
            await self._fail(DeviceConnectionError())
            return False

        self._set_state(SessionState.SUBSCRIBING_SERVICE, f"Connected to device: {mac}")
        service = await self._lookup(
            self.stack.discover_services, self._device, HEART_RATE_SERVICE, "service"
        )
        if service is None:
            await self._fail(ServiceNotFoundError())
            return False

        self._set_state(SessionState.SUBSCRIBING_CHARACTERISTIC)
        self._characteristic = await self._lookup(
            self.stack.discover_characteristics, service, HEART_RATE_MEASUREMENT, "characteristic"
        )
        if self._characteristic is None:
            await self._fail(CharacteristicNotFoundError())
            return False

        # The stack registers the handler before writing the descriptor, so a
        # rejected write still leaves it registered.
        self._handler_registered = True
        try:
            accepted = await self.stack.subscribe(self._device, self._characteristic, self.handle_value)
        except Exception as e:
            logger.warning(f"Subscription on {mac} raised: {e!r}")
            accepted = False
        if not accepted:
            if self.release_handler_on_reject:
                await self._unsubscribe()
            await self._fail(SubscriptionRejectedError())
            return False

        self._set_state(SessionState.SUBSCRIBED, "Subscribed to Heart Rate Measurement notifications.")
        return True

    async def wait_until_stopped(self) -> None:
        """Yield to the event loop until ``stop()`` is called, then release the device."""
        if self._state is not SessionState.SUBSCRIBED:
            return

        while not self._stop_event.is_set():
            await asyncio.sleep(self.poll_interval_sec)

        self._set_state(SessionState.STOPPED, "Subscription stopped.")
        await self._unsubscribe()
        await self._release_device()

    def handle_value(self, data: bytes) -> None:
        """Decode one notification value; ignored unless the session is streaming."""
        if self._state is not SessionState.SUBSCRIBED or self._stop_event.is_set():
            return

        measurement = decode_heart_rate(data)
        if measurement is None:
            return

        self._measurement_count += 1
        logger.debug(f"Heart rate {measurement.bpm} bpm (wide={measurement.wide_format})")
        if self._on_measurement:
            self._on_measurement(measurement)

    async def _lookup(self, query: Callable, target: Any, uuid: int, kind: str) -> Any:
        """Run a discovery query and apply the selector. None when nothing matches."""
        try:
            candidates: List[Any] = list(await query(target, uuid))
        except Exception as e:
            logger.warning(f"Discovery of {kind} 0x{uuid:04X} failed: {e!r}")
            return None

        if not candidates:
            logger.warning(f"No {kind} 0x{uuid:04X} found")
            return None
        if len(candidates) > 1:
            logger.info(f"{len(candidates)} instances of {kind} 0x{uuid:04X} found, applying selector")
        return self.selector(candidates)

    async def _fail(self, error: HeartMonitorError) -> None:
        self.error = error
        self.failure_reason = error.reason
        self._set_state(SessionState.FAILED, str(error))
        await self._release_device()

    async def _unsubscribe(self) -> None:
        if not self._handler_registered:
            return

        self._handler_registered = False
        try:
            await self.stack.unsubscribe(self._device, self._characteristic)
        except Exception as e:
            logger.warning(f"Error while unregistering notification handler: {e!r}")

    async def _release_device(self) -> None:
        device, self._device = self._device, None
        if not device:
            return

        try:
            await self.stack.disconnect(device)
        except Exception as e:
            logger.warning(f"Error during disconnect: {e!r}")

    def _set_state(self, state: SessionState, message: Optional[str] = None) -> None:
        previous, self._state = self._state, state
        logger.debug(f"Session state {previous.value} -> {state.value}")
        if self._on_state:
            self._on_state(state, message)
