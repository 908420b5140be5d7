"""Device enumerators that locate the peripheral's serial port."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

import serial.tools.list_ports

from ..config import DeviceIdentity
from ..errors import DiscoveryError

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


@dataclass(frozen=True)
class DiscoveredPort:
    """A matching serial endpoint that has not been opened yet."""

    device: str
    description: str = ""


class DeviceEnumerator(Protocol):
    def find_port(self, identity: DeviceIdentity) -> DiscoveredPort:
        """Return the first port matching *identity*; raise ``DiscoveryError`` otherwise."""


class ListPortsEnumerator:
    """Enumerate ports with pyserial's ``list_ports``."""

    def list_ports(self) -> List[str]:
        return [port.device for port in serial.tools.list_ports.comports()]

    def find_port(self, identity: DeviceIdentity) -> DiscoveredPort:
        candidates = list(serial.tools.list_ports.comports())
        logger.debug("pyserial reported %d ports", len(candidates))
        for info in candidates:
            vid = getattr(info, "vid", None)
            pid = getattr(info, "pid", None)
            if vid is None or pid is None:
                continue
            if identity.matches(vid, pid):
                description = getattr(info, "description", "") or ""
                logger.info(
                    "Found candidate device %s (%s) on port %s",
                    description or "Unknown device",
                    identity,
                    info.device,
                )
                return DiscoveredPort(device=info.device, description=description)
        raise DiscoveryError(f"no serial device found with {identity}")


def _run(args: Sequence[str]) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(
        list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=30,
        check=False,
    )


class ArduinoCliEnumerator:
    """Enumerate boards with ``arduino-cli board list --format json``."""

    def __init__(self, *, executable: str = "arduino-cli", runner: Runner = _run) -> None:
        self.executable = executable
        self._runner = runner

    def _board_list(self) -> dict:
        args = [self.executable, "board", "list", "--format", "json"]
        try:
            result = self._runner(args)
        except (OSError, subprocess.SubprocessError) as exc:
            raise DiscoveryError(
                f"could not run '{self.executable} board list': {exc}. "
                "Please ensure arduino-cli is installed and on PATH"
            ) from exc
        if result.returncode != 0:
            raise DiscoveryError(
                f"'{self.executable} board list' exited with {result.returncode}: "
                f"{(result.stdout or '').strip()}"
            )
        try:
            payload = json.loads(result.stdout or "")
        except json.JSONDecodeError as exc:
            raise DiscoveryError(f"could not parse arduino-cli JSON output: {exc}") from exc
        if not isinstance(payload, dict):
            raise DiscoveryError("arduino-cli JSON output was not an object")
        return payload

    def find_port(self, identity: DeviceIdentity) -> DiscoveredPort:
        detected = self._board_list().get("detected_ports") or []
        logger.debug("arduino-cli reported %d ports", len(detected))
        for item in detected:
            if not isinstance(item, dict):
                continue
            port = item.get("port") or {}
            properties = port.get("properties") or {}
            address: Optional[str] = port.get("address")
            if not address or not identity.matches(properties.get("vid"), properties.get("pid")):
                continue
            boards = item.get("matching_boards") or []
            name = "Unknown Board"
            if boards and isinstance(boards[0], dict):
                name = boards[0].get("name") or name
            logger.info("Found candidate board %s (%s) on port %s", name, identity, address)
            return DiscoveredPort(device=address, description=name)
        raise DiscoveryError(
            f"no board found with {identity}; ensure it is connected and "
            "arduino-cli can detect it"
        )


def build_enumerator(name: str) -> DeviceEnumerator:
    if name == "arduino-cli":
        return ArduinoCliEnumerator()
    if name == "pyserial":
        return ListPortsEnumerator()
    raise ValueError(f"unknown enumerator: {name!r}")
