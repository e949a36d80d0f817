"""
serial_link.py
==============

The transport seam between the session and whatever actually carries
bytes to the robot.  A :class:`SerialLink` is a ``QObject`` whose public
methods return immediately; all results come back later through Qt
signals, which are safe to emit from a transport's own I/O thread
because Qt queues them onto the thread that owns the receiver.

Concrete links:

* :class:`skaterbot_remote.ble_link.BleSerialLink`: BLE UART via bleak.
* :class:`skaterbot_remote.serial_port_link.SerialPortLink`: a serial
  port (USB or paired Bluetooth SPP) via pyserial.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PySide6.QtCore import QObject, Signal


class PowerState(str, Enum):
    POWERED_ON = "powered_on"
    POWERED_OFF = "powered_off"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Peer:
    """A device reported by a scan."""

    id: str
    name: str


class SerialLink(QObject):
    """Abstract serial transport.

    Subclasses implement the verbs and emit the signals below.  ``send``
    must never block the caller; it raises
    :class:`~skaterbot_remote.errors.SerialLinkError` if the link cannot
    accept data right now.
    """

    # (peer, signal strength in dBm; 0.0 when the transport has no RSSI)
    discovered = Signal(object, float)
    ready = Signal()
    # (peer id, reason)
    disconnected = Signal(str, str)
    failed_to_connect = Signal(str, str)
    power_state_changed = Signal()
    message_received = Signal(str)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)

    # --- verbs ---
    def start_scan(self) -> None:
        raise NotImplementedError

    def stop_scan(self) -> None:
        raise NotImplementedError

    def connect_peer(self, peer_id: str) -> None:
        raise NotImplementedError

    def disconnect_peer(self) -> None:
        raise NotImplementedError

    def send(self, data: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release threads and handles.  Safe to call more than once."""

    # --- state ---
    @property
    def is_ready(self) -> bool:
        raise NotImplementedError

    @property
    def connected_peer_id(self) -> Optional[str]:
        raise NotImplementedError

    @property
    def power_state(self) -> PowerState:
        raise NotImplementedError


__all__ = ["PowerState", "Peer", "SerialLink"]
