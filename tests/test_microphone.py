import subprocess
import unittest
from unittest import mock

from mutebridge.errors import BackendError, QueryError, SetError
from mutebridge.services.microphone import OsaScriptBackend

SETTINGS = (
    "output volume:40, input volume:{volume}, alert volume:100, "
    "output muted:false"
)


def completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["osascript"], returncode=returncode, stdout=stdout)


class OsaScriptBackendTests(unittest.TestCase):
    def test_zero_input_volume_means_muted(self) -> None:
        runner = mock.Mock(return_value=completed(SETTINGS.format(volume=0)))
        self.assertTrue(OsaScriptBackend(runner=runner).get_muted())
        runner.assert_called_once_with(["osascript", "-e", "get volume settings"])

    def test_nonzero_input_volume_means_unmuted(self) -> None:
        runner = mock.Mock(return_value=completed(SETTINGS.format(volume=65)))
        self.assertFalse(OsaScriptBackend(runner=runner).get_muted())

    def test_missing_input_volume_raises_query_error(self) -> None:
        runner = mock.Mock(return_value=completed("output volume:40"))
        with self.assertRaises(QueryError):
            OsaScriptBackend(runner=runner).get_muted()

    def test_unparseable_input_volume_raises_query_error(self) -> None:
        runner = mock.Mock(return_value=completed(SETTINGS.format(volume="missing value")))
        with self.assertRaises(QueryError):
            OsaScriptBackend(runner=runner).get_muted()

    def test_failed_query_raises_query_error(self) -> None:
        runner = mock.Mock(return_value=completed("execution error", returncode=1))
        with self.assertRaises(QueryError):
            OsaScriptBackend(runner=runner).get_muted()

    def test_mute_sets_input_volume_to_zero(self) -> None:
        runner = mock.Mock(return_value=completed())
        OsaScriptBackend(runner=runner).set_muted(True)
        runner.assert_called_once_with(["osascript", "-e", "set volume input volume 0"])

    def test_unmute_restores_configured_volume(self) -> None:
        runner = mock.Mock(return_value=completed())
        OsaScriptBackend(unmute_volume=75, runner=runner).set_muted(False)
        runner.assert_called_once_with(["osascript", "-e", "set volume input volume 75"])

    def test_failed_set_raises_set_error(self) -> None:
        runner = mock.Mock(return_value=completed("not allowed", returncode=1))
        with self.assertRaises(SetError):
            OsaScriptBackend(runner=runner).set_muted(True)

    def test_missing_osascript_raises_set_error(self) -> None:
        runner = mock.Mock(side_effect=FileNotFoundError("osascript"))
        with self.assertRaises(SetError):
            OsaScriptBackend(runner=runner).set_muted(False)

    def test_failures_surface_as_backend_errors(self) -> None:
        runner = mock.Mock(side_effect=FileNotFoundError("osascript"))
        backend = OsaScriptBackend(runner=runner)
        with self.assertRaises(QueryError) as query_ctx:
            backend.get_muted()
        with self.assertRaises(SetError) as set_ctx:
            backend.set_muted(True)
        for ctx in (query_ctx, set_ctx):
            self.assertIsInstance(ctx.exception, BackendError)
            self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
