"""Session event log: one JSON object per line, one file per day."""

from __future__ import annotations

import json
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

EVENT = "event"
STATUS = "status"
ERROR = "error"
DEBUG = "debug"


class NdjsonLogger:
    """Appends sequenced records for discovered devices, session states and measurements.

    Records carry ``seq``, ``type``, ``ts_ms`` (since logger creation),
    ``msg``, optional ``data`` and a wall-clock ``hms``. Debug records are
    dropped in regular mode unless their message is whitelisted.
    """

    def __init__(self, log_dir: str, file_prefix: str = "heart_monitor") -> None:
        self.log_dir = Path(log_dir)
        self.file_prefix = file_prefix
        self.mode = "regular"  # regular or verbose
        self.verbose_whitelist: set[str] = set()

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._seq = 0
        self._t0_ns = time.monotonic_ns()
        self._day: Optional[str] = None
        self._stream: Optional[TextIO] = None
        self._closed = False

        self._open_for(datetime.now())

    @property
    def current_path(self) -> Path:
        return self._path_for(self._day)

    def event(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log(EVENT, msg, data)

    def status(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log(STATUS, msg, data)

    def error(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log(ERROR, msg, data)

    def debug(self, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.log(DEBUG, msg, data)

    def log(self, msg_type: str, msg: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Write one record. Silently dropped after ``close()``."""
        if not self._accepts(msg_type, msg):
            return

        now = datetime.now()
        with self._lock:
            if self._closed:
                return
            self._open_for(now)
            self._seq += 1
            line = json.dumps(self._record(msg_type, msg, data, now), separators=(",", ":"), ensure_ascii=False)
            self._stream.write(line + "\n")
            self._stream.flush()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._stream:
                self._stream.close()
                self._stream = None

    def _accepts(self, msg_type: str, msg: str) -> bool:
        if msg_type != DEBUG or self.mode == "verbose":
            return True
        return msg in self.verbose_whitelist

    def _record(self, msg_type: str, msg: str, data: Optional[Dict[str, Any]], now: datetime) -> Dict[str, Any]:
        elapsed_ms = (time.monotonic_ns() - self._t0_ns) / 1_000_000
        record: Dict[str, Any] = {"seq": self._seq, "type": msg_type, "ts_ms": round(elapsed_ms, 3), "msg": msg}
        if data is not None:
            record["data"] = data
        record["hms"] = now.strftime("%H:%M:%S.%f")[:-3]
        return record

    def _path_for(self, day: Optional[str]) -> Path:
        return self.log_dir / f"{self.file_prefix}_{day}.ndjson"

    def _open_for(self, now: datetime) -> None:
        """Switch to the file for ``now``'s date when the day changes."""
        day = now.strftime("%Y%m%d")
        if day == self._day and self._stream:
            return
        if self._stream:
            self._stream.close()
        self._day = day
        self._stream = self._path_for(day).open("a", encoding="utf-8", buffering=1)

    def __enter__(self) -> NdjsonLogger:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
