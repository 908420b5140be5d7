"""MuteBridge package linking a serial mute button to the system microphone."""

from __future__ import annotations

__all__ = ["main"]


def main() -> int:
    """Run the MuteBridge connection loop."""

    from .app import main as _app_main

    return _app_main()
