"""Microphone mute backends."""

from __future__ import annotations

import logging
import re
import subprocess
from typing import Callable, List, Protocol, Sequence, Type

from ..errors import BackendError, QueryError, SetError

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]

_INPUT_VOLUME = re.compile(r"input volume:\s*(-?\d+|missing value)")


class MicrophoneBackend(Protocol):
    """Capability that reads and changes the system microphone mute state."""

    def get_muted(self) -> bool:
        """Return the current mute flag; raise ``QueryError`` on failure."""

    def set_muted(self, muted: bool) -> None:
        """Apply *muted*; raise ``SetError`` on failure."""


def _run(args: Sequence[str]) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(
        list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=10,
        check=False,
    )


class OsaScriptBackend:
    """macOS backend driving the input volume through ``osascript``.

    macOS exposes no scriptable input mute flag, so an input volume of ``0``
    stands in for "muted" and unmuting restores ``unmute_volume``. Anything
    else that drops the input volume to zero will therefore be reported as
    muted.
    """

    def __init__(self, *, unmute_volume: int = 100, runner: Runner = _run) -> None:
        self.unmute_volume = unmute_volume
        self._runner = runner

    def _osascript(self, script: str, error: Type[BackendError]) -> str:
        args: List[str] = ["osascript", "-e", script]
        try:
            result = self._runner(args)
        except (OSError, subprocess.SubprocessError) as exc:
            raise error(f"could not run osascript: {exc}") from exc
        output = (result.stdout or "").strip()
        if result.returncode != 0:
            raise error(
                f"osascript exited with {result.returncode}; output: {output}"
            )
        return output

    def get_muted(self) -> bool:
        output = self._osascript("get volume settings", QueryError)
        logger.debug("osascript volume settings: %s", output)
        match = _INPUT_VOLUME.search(output)
        if match is None:
            raise QueryError(f"cannot find 'input volume' in osascript output: {output!r}")
        try:
            volume = int(match.group(1))
        except ValueError as exc:
            raise QueryError(f"cannot parse input volume {match.group(1)!r}") from exc
        return volume == 0

    def set_muted(self, muted: bool) -> None:
        volume = 0 if muted else self.unmute_volume
        output = self._osascript(f"set volume input volume {volume}", SetError)
        logger.debug("Microphone set to muted=%s (input volume %d). %s", muted, volume, output)
