"""Entry point for the SkaterBot remote.

Builds the transport, scheduler, joystick and session, shows the control
window and runs the Qt event loop until the window is closed.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from .config import TRANSPORTS, RemoteConfig, load_config
from .joystick import JoystickInput, Point
from .scheduler import QtScheduler
from .serial_link import SerialLink
from .session import SessionController
from .tuning import TuningChannel
from .ui.joystick_widget import JoystickPad
from .ui.main_window import ControlWindow
from .ui.theme import apply_dark_theme

LOG = logging.getLogger("skaterbot.app")

LOG_MODULES = ("app", "session", "tuning", "ble", "serial")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SkaterBot remote: drive and tune over BLE serial")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--transport", choices=TRANSPORTS, help="link type (default: ble)")
    parser.add_argument("--baud", type=int, help="baud rate for --transport serial")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", default="%(asctime)s %(levelname)s:%(name)s:%(message)s",
                        help="Logging format string")
    parser.add_argument("--debug-modules", nargs="*", default=[],
                        help=f"Modules to set to DEBUG level (any of: {', '.join(LOG_MODULES)})")
    return parser


def configure_logging(level: str, fmt: str, debug_modules: List[str]) -> None:
    logging.basicConfig(level=getattr(logging, level), format=fmt)
    for module in debug_modules:
        logging.getLogger(f"skaterbot.{module}").setLevel(logging.DEBUG)


def resolve_config(args: argparse.Namespace) -> RemoteConfig:
    cfg = load_config(args.config) if args.config else RemoteConfig()
    return cfg.with_overrides(transport=args.transport, serial_baud=args.baud)


def build_link(cfg: RemoteConfig) -> SerialLink:
    # Imported lazily so a serial-only setup does not need a BLE stack and vice versa.
    if cfg.transport == "serial":
        from .serial_port_link import SerialPortLink

        return SerialPortLink(baud=cfg.serial_baud)
    from .ble_link import BleSerialLink

    return BleSerialLink(cfg.ble_service_uuid, cfg.ble_char_uuid, filter_service=cfg.ble_filter_service)


def build_window(cfg: RemoteConfig, link: SerialLink, scheduler: QtScheduler) -> ControlWindow:
    size = cfg.joystick_size
    joystick = JoystickInput(
        background_center=Point(size / 2, size / 2),
        background_height=size * 0.9,
        handle_size=size * 0.3,
    )
    session = SessionController(link, scheduler, joystick, cfg)
    tuning = TuningChannel(session)
    pad = JoystickPad(joystick, size=size)
    return ControlWindow(session, tuning, pad)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format, args.debug_modules)

    try:
        cfg = resolve_config(args)
    except (OSError, ValueError) as exc:
        LOG.error("bad configuration: %s", exc)
        return 2

    app = QApplication(sys.argv[:1])
    apply_dark_theme(app)

    link = build_link(cfg)
    scheduler = QtScheduler()
    window = build_window(cfg, link, scheduler)
    window.resize(480, 760)
    window.show()
    LOG.info("remote running on %s transport", cfg.transport)
    try:
        return app.exec()
    finally:
        scheduler.cancel_all()
        link.close()


__all__ = ["build_parser", "configure_logging", "resolve_config", "build_link", "build_window", "main"]
