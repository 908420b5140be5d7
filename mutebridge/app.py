"""Command-line entry point wiring the MuteBridge components together."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
from typing import Optional, Sequence

from .config import ENUMERATORS, BridgeConfig, load_config, normalize_usb_id
from .manager import ConnectionManager
from .services.discovery import ListPortsEnumerator, build_enumerator
from .services.microphone import OsaScriptBackend
from .settings import CONFIG_FILE, configure_logging

logger = logging.getLogger(__name__)


def _usb_id(value: str) -> str:
    try:
        return normalize_usb_id(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mutebridge",
        description="Bridge a serial mute button to the system microphone.",
    )
    parser.add_argument("--config", default=CONFIG_FILE, help="JSON config file to read")
    parser.add_argument("--vid", type=_usb_id, help="USB vendor id, e.g. 0x2341")
    parser.add_argument("--pid", type=_usb_id, help="USB product id, e.g. 0x1002")
    parser.add_argument("--enumerator", choices=ENUMERATORS, help="device discovery method")
    parser.add_argument("--list-ports", action="store_true", help="print serial ports and exit")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def resolve_config(args: argparse.Namespace) -> BridgeConfig:
    """Load the config file and apply command-line overrides on top of it."""

    config = load_config(args.config)
    overrides = {}
    if args.vid:
        overrides["vendor_id"] = args.vid
    if args.pid:
        overrides["product_id"] = args.pid
    if args.enumerator:
        overrides["enumerator"] = args.enumerator
    return dataclasses.replace(config, **overrides) if overrides else config


def create_manager(config: BridgeConfig) -> ConnectionManager:
    return ConnectionManager(
        config,
        build_enumerator(config.enumerator),
        OsaScriptBackend(unmute_volume=config.unmute_volume),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)

    if args.list_ports:
        for device in ListPortsEnumerator().list_ports():
            print(device)
        return 0

    config = resolve_config(args)
    manager = create_manager(config)

    def _request_stop(signum, _frame) -> None:
        logger.info("Received signal %d; shutting down", signum)
        manager.stop()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    manager.run()
    return 0
