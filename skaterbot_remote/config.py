"""
config.py
=========

Runtime configuration for the remote.  Defaults match the SkaterBot
firmware: a 100 ms command tick, 10 s scan and connect timeouts, a 30
unit direction threshold and an HM-10 style BLE UART (service ``FFE0``,
characteristic ``FFE1``) used for both writes and notifications.

Configuration can be saved to and loaded from a JSON file so that a
particular robot's UUIDs or serial baud rate do not have to be passed on
the command line every time.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

TRANSPORTS = ("ble", "serial")

# HM-10 / CC2541 transparent UART
HM10_SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
HM10_CHAR_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"


@dataclass
class RemoteConfig:
    transport: str = "ble"
    tick_interval_s: float = 0.10
    scan_timeout_s: float = 10.0
    connect_timeout_s: float = 10.0
    command_threshold: float = 30.0
    scrollback_limit: int = 20000
    ble_service_uuid: str = HM10_SERVICE_UUID
    ble_char_uuid: str = HM10_CHAR_UUID
    ble_filter_service: bool = True
    serial_baud: int = 9600
    joystick_size: int = 240

    def validate(self) -> "RemoteConfig":
        if self.transport not in TRANSPORTS:
            raise ValueError(f"transport must be one of {TRANSPORTS}, got {self.transport!r}")
        for name in ("tick_interval_s", "scan_timeout_s", "connect_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.command_threshold < 0:
            raise ValueError("command_threshold must be >= 0")
        if self.scrollback_limit <= 0:
            raise ValueError("scrollback_limit must be > 0")
        if self.serial_baud <= 0:
            raise ValueError("serial_baud must be > 0")
        if self.joystick_size < 40:
            raise ValueError("joystick_size must be >= 40")
        return self

    def with_overrides(self, **overrides: Any) -> "RemoteConfig":
        """Copy with the non-``None`` overrides applied (CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validate()


def load_config(path: Union[str, Path]) -> RemoteConfig:
    """Read a JSON config file.  Missing keys keep their defaults."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    known = {f.name for f in fields(RemoteConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown config keys: {', '.join(unknown)}")
    return RemoteConfig(**data).validate()


def save_config(cfg: RemoteConfig, path: Union[str, Path]) -> None:
    payload: Dict[str, Any] = asdict(cfg)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")


__all__ = ["TRANSPORTS", "HM10_SERVICE_UUID", "HM10_CHAR_UUID", "RemoteConfig", "load_config", "save_config"]
