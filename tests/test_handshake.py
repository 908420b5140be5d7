import threading
import unittest

from fakes import FakeTransport

from mutebridge.errors import (
    HandshakeTimeout,
    TransportError,
    UnexpectedResponse,
)
import mutebridge.handshake as handshake
from mutebridge.handshake import identify


class _LateReplyTransport(FakeTransport):
    """Answers correctly, but only after the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.delivered = threading.Event()

    def read_line(self, timeout=None):
        self.release.wait(2.0)
        self.delivered.set()
        return "IDENTIFY_ACK"


class _ClosedMidReadTransport(FakeTransport):
    """Fails the way pyserial can when its fd is closed under a blocked read."""

    def read_line(self, timeout=None):
        raise TypeError("'NoneType' object cannot be interpreted as an integer")


class IdentifyTests(unittest.TestCase):
    def test_ack_identifies_device(self) -> None:
        transport = FakeTransport(["identify_ack\r"])
        identify(transport, timeout=1.0)
        self.assertEqual(transport.written, ["IDENTIFY_ARDUINO"])

    def test_other_reply_is_rejected(self) -> None:
        transport = FakeTransport(["UNMUTED"])
        with self.assertRaises(UnexpectedResponse) as ctx:
            identify(transport, timeout=1.0)
        self.assertEqual(ctx.exception.response, "UNMUTED")

    def test_blank_reply_is_rejected(self) -> None:
        transport = FakeTransport([""])
        with self.assertRaises(UnexpectedResponse):
            identify(transport, timeout=1.0)

    def test_silent_device_times_out(self) -> None:
        transport = FakeTransport()
        try:
            with self.assertRaises(HandshakeTimeout):
                identify(transport, timeout=0.05)
        finally:
            transport.close()

    def test_read_error_propagates(self) -> None:
        transport = FakeTransport([TransportError("unplugged")])
        with self.assertRaises(TransportError):
            identify(transport, timeout=1.0)

    def test_probe_write_error_propagates(self) -> None:
        transport = FakeTransport(["IDENTIFY_ACK"], fail_writes={"IDENTIFY_ARDUINO"})
        with self.assertRaises(TransportError):
            identify(transport, timeout=1.0)

    def test_reply_after_timeout_is_discarded(self) -> None:
        transport = _LateReplyTransport()
        with self.assertRaises(HandshakeTimeout):
            identify(transport, timeout=0.05)
        transport.release.set()
        self.assertTrue(transport.delivered.wait(1.0))
        self.assertEqual(transport.written, ["IDENTIFY_ARDUINO"])

    def test_non_serial_read_failure_fails_identification(self) -> None:
        transport = _ClosedMidReadTransport()
        with self.assertRaises(TransportError):
            identify(transport, timeout=1.0)

    def test_abandoned_reader_retires_quietly_on_non_serial_failure(self) -> None:
        outcome = handshake._Outcome()
        outcome.resolve("timeout")

        handshake._read_reply(_ClosedMidReadTransport(), outcome)

        self.assertEqual(outcome.wait(), ("timeout", None))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
