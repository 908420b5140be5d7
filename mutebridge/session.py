"""Session state machine for one connection to the peripheral."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import BackendError, HandshakeError, TransportError, TransportTimeout
from .handshake import IDENTIFY_TIMEOUT, identify
from .protocol import Command, Decoded, Response, decode, encode, state_response
from .services.microphone import MicrophoneBackend
from .transport import SerialTransport

_LOGGER = logging.getLogger(__name__)

Identifier = Callable[..., None]


class SessionState(str, Enum):
    OPENED = "opened"
    IDENTIFYING = "identifying"
    SYNCING = "syncing"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionOutcome(str, Enum):
    HANDSHAKE_FAILED = "handshake_failed"
    LINK_LOST = "link_lost"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class SessionResult:
    """How a session ended and whether the fail-safe unmute was attempted."""

    outcome: SessionOutcome
    error: Optional[BaseException] = None
    fail_safe_invoked: bool = False
    fail_safe_ok: bool = False


class Session:
    """Owns one open transport from identification until it is closed.

    A session walks ``OPENED -> IDENTIFYING -> SYNCING -> ACTIVE -> CLOSED``
    exactly once. Leaving ``ACTIVE`` (or failing the initial sync write) for
    any reason forces the microphone unmuted before the transport is closed;
    failing identification closes the transport without touching the
    microphone because the link was never trusted.
    """

    def __init__(
        self,
        transport: SerialTransport,
        backend: MicrophoneBackend,
        *,
        identify_timeout: float = IDENTIFY_TIMEOUT,
        poll_interval: float = 0.5,
        stop_event: Optional[threading.Event] = None,
        identifier: Identifier = identify,
    ) -> None:
        self.transport = transport
        self.backend = backend
        self.identify_timeout = identify_timeout
        self.poll_interval = poll_interval
        self.identified = False
        self._stop_event = stop_event or threading.Event()
        self._identifier = identifier
        self._state = SessionState.OPENED
        self._fail_safe_done = False

    @property
    def state(self) -> SessionState:
        return self._state

    def run(self) -> SessionResult:
        if self._state is not SessionState.OPENED:
            raise RuntimeError("a session cannot be run more than once")

        self._state = SessionState.IDENTIFYING
        try:
            self._identifier(self.transport, timeout=self.identify_timeout)
        except (HandshakeError, TransportError) as exc:
            _LOGGER.warning("Identification on %s failed: %s", self.transport.port, exc)
            self._close()
            return SessionResult(SessionOutcome.HANDSHAKE_FAILED, exc)
        except Exception:
            self._close()
            raise
        self.identified = True

        try:
            self._state = SessionState.SYNCING
            self._sync()
            self._state = SessionState.ACTIVE
            _LOGGER.info("Session on %s active", self.transport.port)
            self._serve()
        except TransportError as exc:
            _LOGGER.error(
                "Link to %s lost (device likely disconnected): %s", self.transport.port, exc
            )
            return self._teardown(SessionOutcome.LINK_LOST, exc)
        except Exception as exc:
            self._teardown(SessionOutcome.LINK_LOST, exc)
            raise
        return self._teardown(SessionOutcome.SHUTDOWN)

    def _sync(self) -> None:
        try:
            muted = self.backend.get_muted()
        except BackendError as exc:
            _LOGGER.warning(
                "Could not read microphone state for initial sync: %s. "
                "Proceeding without initial sync.",
                exc,
            )
            return
        response = state_response(muted)
        self.transport.write_line(encode(response))
        _LOGGER.info("Initial microphone state sent to device: %s", response.value)

    def _serve(self) -> None:
        while not self._stop_event.is_set():
            try:
                line = self.transport.read_line(timeout=self.poll_interval)
            except TransportTimeout:
                continue
            message = decode(line)
            _LOGGER.debug("Received %r from %s", line, self.transport.port)
            response = self.handle(message)
            self.transport.write_line(encode(response))
        _LOGGER.info("Shutdown requested; closing session on %s", self.transport.port)

    def handle(self, message: Decoded) -> Response:
        """Return the reply for one decoded line; backend errors become ``ERROR``."""

        if message is Command.MUTE:
            return self._set_muted(True)
        if message is Command.UNMUTE:
            return self._set_muted(False)
        if message is Command.GET_STATE:
            try:
                muted = self.backend.get_muted()
            except BackendError as exc:
                _LOGGER.error("Error retrieving microphone state for GET_STATE: %s", exc)
                return Response.ERROR
            response = state_response(muted)
            _LOGGER.info("Responding to GET_STATE with %s", response.value)
            return response
        _LOGGER.warning("Unknown command received: %r", getattr(message, "raw", message))
        return Response.UNKNOWN_COMMAND

    def _set_muted(self, muted: bool) -> Response:
        try:
            self.backend.set_muted(muted)
        except BackendError as exc:
            _LOGGER.error("Error %s microphone: %s", "muting" if muted else "unmuting", exc)
            return Response.ERROR
        _LOGGER.info("Microphone %s", "muted" if muted else "unmuted")
        return state_response(muted)

    def _teardown(
        self, outcome: SessionOutcome, error: Optional[BaseException] = None
    ) -> SessionResult:
        fail_safe_ok = self._fail_safe_unmute()
        self._close()
        return SessionResult(outcome, error, fail_safe_invoked=True, fail_safe_ok=fail_safe_ok)

    def _fail_safe_unmute(self) -> bool:
        if self._fail_safe_done:
            return False
        self._fail_safe_done = True
        _LOGGER.warning("Link to %s closing; forcing microphone unmuted", self.transport.port)
        try:
            self.backend.set_muted(False)
        except Exception:
            _LOGGER.error("Fail-safe unmute failed", exc_info=True)
            return False
        _LOGGER.info("Microphone unmuted after link loss")
        return True

    def _close(self) -> None:
        self.transport.close()
        self._state = SessionState.CLOSED
