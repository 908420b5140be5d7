"""Configuration helpers for MuteBridge."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any

from .settings import CONFIG_FILE

logger = logging.getLogger(__name__)

ENUMERATORS = ("pyserial", "arduino-cli")


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if result > 0 else default


def normalize_usb_id(value: Any) -> str:
    """Return *value* as a lower-case ``0xNNNN`` string.

    Accepts integers (as reported by pyserial) and strings with or without
    the ``0x`` prefix. Raises ``ValueError`` for anything else.
    """

    if isinstance(value, bool):
        raise ValueError(f"invalid USB id: {value!r}")
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        if not text:
            raise ValueError(f"invalid USB id: {value!r}")
        number = int(text, 16)
    if not 0 <= number <= 0xFFFF:
        raise ValueError(f"USB id out of range: {value!r}")
    return f"0x{number:04x}"


@dataclass(frozen=True)
class DeviceIdentity:
    """Vendor/product pair identifying the peripheral class."""

    vendor_id: str
    product_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "vendor_id", normalize_usb_id(self.vendor_id))
        object.__setattr__(self, "product_id", normalize_usb_id(self.product_id))

    def matches(self, vendor_id: Any, product_id: Any) -> bool:
        try:
            return (
                normalize_usb_id(vendor_id) == self.vendor_id
                and normalize_usb_id(product_id) == self.product_id
            )
        except (TypeError, ValueError):
            return False

    def __str__(self) -> str:
        return f"VID:{self.vendor_id} PID:{self.product_id}"


@dataclass(frozen=True)
class BridgeConfig:
    vendor_id: str = "0x2341"
    product_id: str = "0x1002"
    baudrate: int = 9600
    identify_timeout: float = 3.0
    discovery_backoff: float = 5.0
    session_backoff: float = 1.0
    poll_interval: float = 0.5
    write_timeout: float = 1.0
    enumerator: str = "pyserial"
    unmute_volume: int = 100

    @property
    def identity(self) -> DeviceIdentity:
        return DeviceIdentity(self.vendor_id, self.product_id)


def load_config(path: str | Path = CONFIG_FILE) -> BridgeConfig:
    """Load configuration data from *path* or return defaults on failure."""

    defaults = BridgeConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return defaults

    try:
        raw = json.loads(cfg_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error("Config file %s contains invalid JSON: %s", cfg_path, exc)
        return defaults
    except OSError as exc:
        logger.error("Could not read config file %s: %s", cfg_path, exc)
        return defaults

    if not isinstance(raw, dict):
        logger.error("Config file %s did not contain an object", cfg_path)
        return defaults

    data = asdict(defaults)
    for key in ("vendor_id", "product_id"):
        if key in raw:
            try:
                data[key] = normalize_usb_id(raw[key])
            except (TypeError, ValueError) as exc:
                logger.error("Ignoring %s in %s: %s", key, cfg_path, exc)
    data["baudrate"] = max(1, _coerce_int(raw.get("baudrate"), defaults.baudrate))
    for key in (
        "identify_timeout",
        "discovery_backoff",
        "session_backoff",
        "poll_interval",
        "write_timeout",
    ):
        data[key] = _coerce_float(raw.get(key), getattr(defaults, key))
    enumerator = str(raw.get("enumerator", defaults.enumerator)).strip().lower()
    if enumerator not in ENUMERATORS:
        logger.error("Unknown enumerator %r in %s", enumerator, cfg_path)
        enumerator = defaults.enumerator
    data["enumerator"] = enumerator
    data["unmute_volume"] = min(
        100, max(1, _coerce_int(raw.get("unmute_volume"), defaults.unmute_volume))
    )

    return BridgeConfig(**data)
