"""Operator flow: scan, pick a device, stream its heart rate."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from .ble.hrm_parse import HeartRateMeasurement, format_measurement
from .ble.stack import BleStack
from .config import AppConfig
from .errors import HeartMonitorError, InvalidIndexError, StackError
from .logs import NdjsonLogger
from .registry import DiscoveryRegistry, format_address
from .session import HeartRateSession, SessionState

logger = logging.getLogger(__name__)

QUIT_WORDS = ("q", "quit", "exit")


class Console:
    """Line-based operator console.

    Reads run in a daemon thread so the event loop keeps delivering BLE
    callbacks and an unanswered prompt never blocks interpreter exit. A read
    abandoned by a timeout is handed to the next caller instead of being lost.
    """

    def __init__(
        self,
        input_func: Callable[[], str] = input,
        output_func: Callable[..., None] = print,
    ) -> None:
        self._input = input_func
        self._output = output_func
        self._pending: Optional[asyncio.Future] = None

    def write_line(self, text: str) -> None:
        self._output(text, flush=True)

    def write(self, text: str) -> None:
        self._output(text, end="", flush=True)

    async def read_line(self, prompt: str = "") -> Optional[str]:
        """Read one line. Returns None at end of input."""
        if prompt:
            self.write(prompt)
        if self._pending is None:
            self._pending = self._start_read()

        pending = self._pending
        try:
            return await asyncio.shield(pending)
        finally:
            if pending.done() and self._pending is pending:
                self._pending = None

    def _start_read(self) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(result: Optional[str], error: Optional[BaseException]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def reader() -> None:
            result, error = None, None
            try:
                result = self._read()
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(deliver, result, error)
            except RuntimeError:
                # loop already closed
                pass

        threading.Thread(target=reader, name="console-reader", daemon=True).start()
        return future

    def _read(self) -> Optional[str]:
        try:
            return self._input()
        except EOFError:
            return None


class HeartRateMonitor:
    """Coordinates the discovery registry, the BLE stack and one session at a time."""

    def __init__(
        self,
        config: AppConfig,
        stack: BleStack,
        console: Optional[Console] = None,
        event_log: Optional[NdjsonLogger] = None,
    ) -> None:
        self.config = config
        self.stack = stack
        self.console = console or Console()
        self.event_log = event_log

        self.registry = DiscoveryRegistry()
        self.session: Optional[HeartRateSession] = None

    async def run(self) -> bool:
        """Run the whole operator flow. False when scanning could not start."""
        if not await self.scan():
            return False

        while True:
            address = await self.select_device()
            if address is None:
                self.console.write_line("Exiting.")
                return True

            state = await self.run_session(address)
            if state is SessionState.STOPPED:
                return True
            # Failed sessions return to device selection

    async def scan(self) -> bool:
        """Scan until Enter (or the configured timeout). False if the stack failed."""
        try:
            await self.stack.start_scan(self._on_advertisement)
        except Exception as e:
            logger.error(f"Scan start failed: {e!r}")
            self._report_error(StackError(f"Bluetooth stack error: {e}"))
            return False

        self._log_status("Scan started", {"adapter": self.config.scan.adapter})
        self.console.write_line("Scanning for devices. Press Enter to stop scanning.")

        try:
            await self._wait_for_enter(self.config.scan.timeout_sec)
        finally:
            stop_error = await self._stop_scan()
        if stop_error is not None:
            self._report_error(StackError(f"Bluetooth stack error: {stop_error}"))
            return False

        found = len(self.registry)
        self.console.write_line(f"Scan stopped, {found} device(s) found.")
        self._log_status("Scan stopped", {"device_count": found})
        return True

    async def select_device(self) -> Optional[int]:
        """Prompt until a known index is entered. None when the operator quits."""
        while True:
            line = await self.console.read_line("Select a device to connect (enter index): ")
            if line is None:
                return None

            text = line.strip()
            if not text or text.lower() in QUIT_WORDS:
                return None

            try:
                index = int(text)
            except ValueError:
                index = None

            address = self.registry.resolve(index) if index is not None else None
            if address is None:
                self._report_error(InvalidIndexError(), {"input": text})
                continue
            return address

    async def run_session(self, address: int) -> SessionState:
        """Run one heart rate session on ``address`` and return its final state."""
        session = HeartRateSession(
            self.stack,
            release_handler_on_reject=self.config.session.release_handler_on_reject,
            poll_interval_sec=self.config.session.poll_interval_sec,
        )
        session.set_measurement_callback(self._on_measurement)
        session.set_state_callback(self._on_session_state)
        self.session = session

        if not await session.start(address):
            return session.state

        self.console.write_line("Press Enter to stop.")
        watcher = asyncio.create_task(self._stop_on_enter(session))
        try:
            await session.wait_until_stopped()
        finally:
            if not watcher.done():
                watcher.cancel()
                try:
                    await watcher
                except asyncio.CancelledError:
                    pass

        self._log_status("Session ended", {"measurements": session.measurement_count})
        return session.state

    def stop(self) -> None:
        """Stop the active session, if any."""
        if self.session:
            self.session.stop()

    async def _stop_scan(self) -> Optional[Exception]:
        """Stop scanning. Returns the stack error instead of raising it."""
        try:
            await self.stack.stop_scan()
        except Exception as e:
            logger.error(f"Scan stop failed: {e!r}")
            return e
        return None

    async def _wait_for_enter(self, timeout_sec: Optional[float]) -> None:
        try:
            await asyncio.wait_for(self.console.read_line(), timeout=timeout_sec)
        except asyncio.TimeoutError:
            logger.info(f"Scan timeout of {timeout_sec}s reached")

    async def _stop_on_enter(self, session: HeartRateSession) -> None:
        await self.console.read_line()
        session.stop()

    def _on_advertisement(self, address: int, local_name: Optional[str]) -> None:
        """Handle an advertisement from the scanner callback."""
        device = self.registry.observe(address, local_name)
        if device is None:
            return

        self.console.write_line(f"[{device.index}] Device found: {device.display_name} ({device.mac})")
        if self.event_log:
            self.event_log.event("device_found", device.to_dict())

    def _on_measurement(self, measurement: HeartRateMeasurement) -> None:
        self.console.write_line(format_measurement(measurement))
        if self.event_log:
            data = measurement.to_dict()
            if self.session and self.session.address is not None:
                data["address"] = format_address(self.session.address)
            self.event_log.event("measurement", data)

    def _on_session_state(self, state: SessionState, message: Optional[str]) -> None:
        if message:
            self.console.write_line(message)

        if not self.event_log:
            return
        data = {"state": state.value}
        if state is SessionState.FAILED and self.session and self.session.failure_reason:
            data["reason"] = self.session.failure_reason.value
            self.event_log.error(message or "Session failed", data)
        else:
            self.event_log.status("Session state", data)

    def _report_error(self, error: HeartMonitorError, data: Optional[dict] = None) -> None:
        self.console.write_line(str(error))
        if self.event_log:
            record = {"error": type(error).__name__}
            if data:
                record.update(data)
            self.event_log.error(str(error), record)

    def _log_status(self, msg: str, data: Optional[dict] = None) -> None:
        if self.event_log:
            self.event_log.status(msg, data)
