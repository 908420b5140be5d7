"""Transport layer abstractions for MuteBridge."""

from .serial_transport import SerialTransport

__all__ = ["SerialTransport"]
