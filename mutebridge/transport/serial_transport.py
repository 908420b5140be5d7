"""Newline-delimited pyserial transport used by a MuteBridge session."""

from __future__ import annotations

import errno
import logging
import os
import threading
import time
from typing import Optional

import serial

from ..errors import OpenError, PortBusyError, TransportError, TransportTimeout

_DEFAULT_BAUDRATE = 9600
_LOGGER = logging.getLogger(__name__)

_BUSY_MARKERS = ("resource busy", "exclusively lock", "access is denied", "permissionerror")


def _is_busy(exc: BaseException) -> bool:
    if getattr(exc, "errno", None) == errno.EBUSY:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _BUSY_MARKERS)


class SerialTransport:
    """Owns one open serial port and exposes line-oriented reads and writes.

    The port is opened with a short read timeout (``poll_interval``) so that
    :meth:`read_line` can honour deadlines and notice :meth:`close` from
    another thread. Bytes received ahead of a newline are kept in an internal
    buffer across polls.
    """

    def __init__(self, port: str, ser: serial.Serial) -> None:
        self.port = port
        self._serial = ser
        self._buffer = bytearray()
        self._closed = threading.Event()
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        port: str,
        *,
        baudrate: int = _DEFAULT_BAUDRATE,
        poll_interval: float = 0.5,
        write_timeout: float = 1.0,
    ) -> "SerialTransport":
        kwargs = {}
        if os.name == "posix":
            kwargs["exclusive"] = True
        try:
            ser = serial.Serial(
                port,
                baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=poll_interval,
                write_timeout=write_timeout,
                **kwargs,
            )
        except (serial.SerialException, OSError) as exc:
            if _is_busy(exc):
                raise PortBusyError(port, f"port is held by another process ({exc})") from exc
            raise OpenError(port, str(exc)) from exc
        _LOGGER.debug("Opened %s at %d baud (8N1)", port, baudrate)
        return cls(port, ser)

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set() and bool(self._serial.is_open)

    def read_line(self, timeout: Optional[float] = None) -> str:
        """Block until a full line arrives and return it without the newline.

        Raises :class:`TransportTimeout` when *timeout* seconds pass first and
        :class:`TransportError` when the port fails or is closed.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            index = self._buffer.find(b"\n")
            if index >= 0:
                raw = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                return raw.decode("utf-8", errors="ignore").rstrip("\r")
            if self._closed.is_set():
                raise TransportError(f"{self.port} is closed")
            if deadline is not None and time.monotonic() >= deadline:
                raise TransportTimeout(f"no line from {self.port} within {timeout}s")
            try:
                chunk = self._serial.readline()
            except (serial.SerialException, OSError) as exc:
                raise TransportError(f"read from {self.port} failed: {exc}") from exc
            if chunk:
                self._buffer.extend(chunk)

    def write_line(self, text: str) -> None:
        if self._closed.is_set():
            raise TransportError(f"{self.port} is closed")
        payload = f"{text}\n".encode("ascii")
        try:
            with self._write_lock:
                self._serial.write(payload)
                self._serial.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"write to {self.port} failed: {exc}") from exc

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._serial.close()
        except (serial.SerialException, OSError):
            _LOGGER.debug("Error while closing %s", self.port, exc_info=True)
        self._buffer.clear()
