"""Exception hierarchy shared across MuteBridge components."""

from __future__ import annotations


class MuteBridgeError(Exception):
    """Base class for every recoverable MuteBridge failure."""


class DiscoveryError(MuteBridgeError):
    """No serial device matching the configured identity was found."""


class OpenError(MuteBridgeError):
    """The discovered port could not be opened."""

    def __init__(self, port: str, message: str) -> None:
        super().__init__(f"{port}: {message}")
        self.port = port


class PortBusyError(OpenError):
    """The port exists but another process holds it."""


class TransportError(MuteBridgeError):
    """A read or write on an open transport failed."""


class TransportTimeout(TransportError):
    """A bounded read did not complete before its deadline."""


class HandshakeError(MuteBridgeError):
    """The device did not prove it runs the expected firmware."""


class HandshakeTimeout(HandshakeError):
    pass


class UnexpectedResponse(HandshakeError):
    def __init__(self, response: str) -> None:
        super().__init__(f"unexpected identification response {response!r}")
        self.response = response


class BackendError(MuteBridgeError):
    """The microphone backend failed to query or change the mute state."""


class QueryError(BackendError):
    pass


class SetError(BackendError):
    pass
