"""Connection supervisor: discover, open, identify and run sessions forever."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .config import BridgeConfig
from .errors import DiscoveryError, OpenError, PortBusyError
from .services.discovery import DeviceEnumerator
from .services.microphone import MicrophoneBackend
from .session import Session, SessionOutcome, SessionResult
from .transport import SerialTransport

_LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[..., SerialTransport]
SessionFactory = Callable[..., Session]


class ConnectionManager:
    """Run the discover -> open -> session cycle until :meth:`stop` is called.

    Discovery and open failures wait ``discovery_backoff`` seconds before the
    next attempt; handshake and session failures wait ``session_backoff``.
    Only one :class:`Session` exists at a time and a new discovery never starts
    while it is alive.
    """

    def __init__(
        self,
        config: BridgeConfig,
        enumerator: DeviceEnumerator,
        backend: MicrophoneBackend,
        *,
        transport_factory: TransportFactory = SerialTransport.open,
        session_factory: SessionFactory = Session,
    ) -> None:
        self.config = config
        self.enumerator = enumerator
        self.backend = backend
        self._transport_factory = transport_factory
        self._session_factory = session_factory
        self._stop_event = threading.Event()
        self._session_lock = threading.Lock()
        self._session: Optional[Session] = None
        self.last_result: Optional[SessionResult] = None

    @property
    def active_session(self) -> Optional[Session]:
        return self._session

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to finish; safe to call from another thread."""

        self._stop_event.set()

    def run(self) -> None:
        _LOGGER.info("MuteBridge started; looking for %s", self.config.identity)
        while not self._stop_event.is_set():
            delay = self.run_once()
            if self._stop_event.is_set():
                break
            _LOGGER.debug("Next connection attempt in %.1fs", delay)
            self._stop_event.wait(delay)
        _LOGGER.info("MuteBridge stopped")

    def run_once(self) -> float:
        """Perform one connection cycle and return the backoff to apply after it."""

        identity = self.config.identity
        _LOGGER.info("Attempting to connect to device...")
        try:
            port = self.enumerator.find_port(identity)
        except DiscoveryError as exc:
            _LOGGER.warning(
                "Unable to find device: %s. Retrying in %.0f seconds...",
                exc,
                self.config.discovery_backoff,
            )
            return self.config.discovery_backoff

        _LOGGER.info(
            "Opening serial port %s at %d baud...", port.device, self.config.baudrate
        )
        try:
            transport = self._transport_factory(
                port.device,
                baudrate=self.config.baudrate,
                poll_interval=self.config.poll_interval,
                write_timeout=self.config.write_timeout,
            )
        except PortBusyError as exc:
            _LOGGER.warning(
                "Serial port is busy: %s. Retrying in %.0f seconds...",
                exc,
                self.config.discovery_backoff,
            )
            return self.config.discovery_backoff
        except OpenError as exc:
            _LOGGER.error(
                "Error opening serial port: %s. Retrying in %.0f seconds...",
                exc,
                self.config.discovery_backoff,
            )
            return self.config.discovery_backoff

        result = self._run_session(transport)
        self.last_result = result
        if result.outcome is SessionOutcome.SHUTDOWN:
            return 0.0
        _LOGGER.info(
            "Session ended (%s). Reconnecting in %.0f seconds...",
            result.outcome.value,
            self.config.session_backoff,
        )
        return self.config.session_backoff

    def _run_session(self, transport: SerialTransport) -> SessionResult:
        session = self._session_factory(
            transport,
            self.backend,
            identify_timeout=self.config.identify_timeout,
            poll_interval=self.config.poll_interval,
            stop_event=self._stop_event,
        )
        with self._session_lock:
            if self._session is not None:
                raise RuntimeError("a session is already active")
            self._session = session
        try:
            return session.run()
        except Exception as exc:
            _LOGGER.exception("Session on %s failed unexpectedly", transport.port)
            return SessionResult(SessionOutcome.LINK_LOST, exc, fail_safe_invoked=session.identified)
        finally:
            transport.close()
            with self._session_lock:
                self._session = None
