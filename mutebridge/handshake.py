"""Identification handshake proving the peripheral runs the expected firmware."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from .errors import HandshakeTimeout, TransportError, UnexpectedResponse
from .protocol import Command, Response, decode, encode
from .transport import SerialTransport

IDENTIFY_TIMEOUT = 3.0
_LOGGER = logging.getLogger(__name__)

_LINE = "line"
_FAILED = "failed"
_TIMEOUT = "timeout"


class _Outcome:
    """Completion signal that accepts only the first result it is given."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._result: Optional[Tuple[str, object]] = None

    def resolve(self, kind: str, value: object = None) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self._result = (kind, value)
            self._done.set()
            return True

    def wait(self) -> Tuple[str, object]:
        self._done.wait()
        assert self._result is not None
        return self._result


def _read_reply(transport: SerialTransport, outcome: _Outcome) -> None:
    try:
        line = transport.read_line()
    except TransportError as exc:
        if not outcome.resolve(_FAILED, exc):
            _LOGGER.debug("Identification reader on %s retired: %s", transport.port, exc)
        return
    except Exception as exc:
        # pyserial may fail with non-serial errors when the port is closed mid-read.
        error = TransportError(f"read from {transport.port} failed: {exc!r}")
        if not outcome.resolve(_FAILED, error):
            _LOGGER.debug("Identification reader on %s retired: %r", transport.port, exc)
        return
    if not outcome.resolve(_LINE, line):
        _LOGGER.debug("Discarding late identification reply %r from %s", line, transport.port)


def identify(transport: SerialTransport, *, timeout: float = IDENTIFY_TIMEOUT) -> None:
    """Send ``IDENTIFY_ARDUINO`` and wait up to *timeout* for ``IDENTIFY_ACK``.

    The reply read runs on its own thread and races a timer; whichever
    finishes first decides the result. A reply arriving after the timeout is
    dropped, and the caller is expected to close *transport* on any failure,
    which also unblocks the abandoned reader.

    Raises:
        TransportError: the probe could not be written or the read failed.
        HandshakeTimeout: nothing arrived within *timeout* seconds.
        UnexpectedResponse: a line arrived but it was not ``IDENTIFY_ACK``.
    """

    _LOGGER.info("Identifying device on %s...", transport.port)
    transport.write_line(encode(Command.IDENTIFY))

    outcome = _Outcome()
    reader = threading.Thread(
        target=_read_reply,
        args=(transport, outcome),
        name=f"Identify[{transport.port}]",
        daemon=True,
    )
    timer = threading.Timer(timeout, outcome.resolve, args=(_TIMEOUT,))
    timer.daemon = True
    reader.start()
    timer.start()
    try:
        kind, value = outcome.wait()
    finally:
        timer.cancel()

    if kind == _TIMEOUT:
        raise HandshakeTimeout(
            f"no {Response.IDENTIFY_ACK.value} from {transport.port} within {timeout}s"
        )
    if kind == _FAILED:
        assert isinstance(value, TransportError)
        raise value
    line = str(value)
    if decode(line) is not Response.IDENTIFY_ACK:
        raise UnexpectedResponse(line.strip())
    _LOGGER.info("Device on %s identified with %s", transport.port, Response.IDENTIFY_ACK.value)
