import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

from mutebridge.app import build_parser, create_manager, main, resolve_config
from mutebridge.config import BridgeConfig
from mutebridge.services.discovery import ArduinoCliEnumerator
from mutebridge.services.microphone import OsaScriptBackend


class ResolveConfigTests(unittest.TestCase):
    def test_flags_override_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "mutebridge.json"
            path.write_text(json.dumps({"vendor_id": "0x2341", "baudrate": 9600}), encoding="utf-8")
            args = build_parser().parse_args(
                ["--config", str(path), "--vid", "1A86", "--pid", "0x7523", "--enumerator", "arduino-cli"]
            )
            cfg = resolve_config(args)
        self.assertEqual(cfg.vendor_id, "0x1a86")
        self.assertEqual(cfg.product_id, "0x7523")
        self.assertEqual(cfg.enumerator, "arduino-cli")
        self.assertEqual(cfg.baudrate, 9600)

    def test_invalid_vid_is_rejected(self) -> None:
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                build_parser().parse_args(["--vid", "not-hex"])


class CreateManagerTests(unittest.TestCase):
    def test_wires_configured_collaborators(self) -> None:
        cfg = BridgeConfig(enumerator="arduino-cli", unmute_volume=80)
        manager = create_manager(cfg)
        self.assertIs(manager.config, cfg)
        self.assertIsInstance(manager.enumerator, ArduinoCliEnumerator)
        self.assertIsInstance(manager.backend, OsaScriptBackend)
        self.assertEqual(manager.backend.unmute_volume, 80)


class MainTests(unittest.TestCase):
    @mock.patch("mutebridge.app.configure_logging")
    @mock.patch("mutebridge.app.ListPortsEnumerator")
    def test_list_ports_prints_devices(self, enumerator_cls, _logging) -> None:
        enumerator_cls.return_value.list_ports.return_value = ["COM3", "COM4"]
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(main(["--list-ports"]), 0)
        self.assertEqual(out.getvalue().split(), ["COM3", "COM4"])

    @mock.patch("mutebridge.app.signal.signal")
    @mock.patch("mutebridge.app.configure_logging")
    @mock.patch("mutebridge.app.create_manager")
    def test_runs_manager_and_installs_stop_handlers(
        self, create_manager_mock, _logging, signal_mock
    ) -> None:
        manager = create_manager_mock.return_value
        with tempfile.TemporaryDirectory() as tmp:
            code = main(["--config", str(Path(tmp) / "missing.json"), "--pid", "0x0043"])

        self.assertEqual(code, 0)
        manager.run.assert_called_once_with()
        cfg = create_manager_mock.call_args[0][0]
        self.assertEqual(cfg.product_id, "0x0043")
        self.assertEqual(signal_mock.call_count, 2)
        handler = signal_mock.call_args[0][1]
        handler(2, None)
        manager.stop.assert_called_once_with()


class PackageEntryPointTests(unittest.TestCase):
    @mock.patch("mutebridge.app.main", return_value=0)
    def test_package_main_delegates_to_cli(self, app_main) -> None:
        import mutebridge

        self.assertEqual(mutebridge.main(), 0)
        app_main.assert_called_once_with()


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
