"""
serial_port_link.py
===================

A :class:`~skaterbot_remote.serial_link.SerialLink` over an ordinary
serial port.  Useful with a USB cable to the robot's controller, or with
a classic Bluetooth SPP module (HC-05/HC-06) that the operating system
exposes as ``/dev/rfcomm0`` or a ``COMx`` port.

"Scanning" lists the serial ports currently present; there is no signal
strength so every port is reported at 0 dBm.  Opening the port and all
blocking reads and writes happen on a dedicated Python thread.  Outbound
payloads are pushed into a thread-safe queue by :meth:`send` and drained
by that thread, so the GUI thread never waits on the port.  Inbound
bytes are decoded and forwarded chunk by chunk through
``message_received``; the robot's status text is not line-framed.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import List, Optional

import serial
import serial.tools.list_ports
from PySide6.QtCore import QObject

from .errors import SerialLinkError
from .serial_link import Peer, PowerState, SerialLink

LOG = logging.getLogger("skaterbot.serial")

DEFAULT_BAUD = 9600
READ_CHUNK = 256


def available_ports() -> List[Peer]:
    """Return the serial ports on the system as scan results."""
    peers: List[Peer] = []
    for port in serial.tools.list_ports.comports():
        name = port.description if port.description and port.description != "n/a" else port.device
        peers.append(Peer(id=port.device, name=name))
    return peers


class _PortChannel:
    """State owned by one I/O thread.

    A thread that outlives its ``join`` timeout keeps its own channel, so
    it can never write, read or report on behalf of the next connection.
    """

    def __init__(self, port: str) -> None:
        self.port = port
        self.txq: "queue.Queue[bytes]" = queue.Queue()
        self.ser: Optional[serial.Serial] = None
        self.running = True
        self.ready = False
        self.manual_close = False

    def stop(self) -> None:
        self.manual_close = True
        self.running = False
        self.ready = False
        ser = self.ser
        try:
            if ser is not None and ser.is_open:
                ser.close()  # unblock read()
        except (serial.SerialException, OSError) as exc:
            LOG.debug("close %s failed: %s", self.port, exc)


class SerialPortLink(SerialLink):
    def __init__(self, baud: int = DEFAULT_BAUD, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._baud = baud
        self._channel: Optional[_PortChannel] = None
        self._io_thread: Optional[threading.Thread] = None

    # ---- state ----
    @property
    def is_ready(self) -> bool:
        return self._channel is not None and self._channel.ready

    @property
    def connected_peer_id(self) -> Optional[str]:
        return self._channel.port if self.is_ready else None

    @property
    def power_state(self) -> PowerState:
        return PowerState.POWERED_ON

    # ---- scanning ----
    def start_scan(self) -> None:
        for peer in available_ports():
            self.discovered.emit(peer, 0.0)

    def stop_scan(self) -> None:
        pass

    # ---- connection ----
    def connect_peer(self, peer_id: str) -> None:
        """Open ``peer_id`` on the I/O thread; ``ready`` or ``failed_to_connect`` follows."""
        self.disconnect_peer()
        channel = _PortChannel(peer_id)
        self._channel = channel
        self._io_thread = threading.Thread(
            target=self._io_loop, args=(channel,), name="SerialIO", daemon=True
        )
        self._io_thread.start()

    def disconnect_peer(self) -> None:
        """Stop the current I/O loop and wait briefly for its thread to finish."""
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.stop()
        t = self._io_thread
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=1.5)
            if t.is_alive():
                LOG.warning("I/O thread for %s still busy, abandoning it", channel.port if channel else "?")
        self._io_thread = None

    def close(self) -> None:
        self.disconnect_peer()

    def send(self, data: bytes) -> None:
        channel = self._channel
        if channel is None or not channel.ready:
            raise SerialLinkError("serial port not open")
        channel.txq.put_nowait(bytes(data))

    # ---- I/O thread ----
    def _io_loop(self, channel: _PortChannel) -> None:
        port = channel.port
        try:
            ser = serial.Serial(port, self._baud, timeout=0.05)
        except (serial.SerialException, OSError) as exc:
            channel.running = False
            LOG.warning("open %s failed: %s", port, exc)
            if not channel.manual_close:
                self.failed_to_connect.emit(port, str(exc))
            return

        if channel.manual_close:
            # Abandoned while serial.Serial() was still opening.
            ser.close()
            return

        channel.ser = ser
        channel.ready = True
        LOG.info("opened %s at %d baud", port, self._baud)
        self.ready.emit()

        reason = ""
        try:
            while channel.running and ser.is_open:
                # Drain the transmit queue first so commands go out promptly.
                try:
                    while True:
                        payload = channel.txq.get_nowait()
                        ser.write(payload)
                        ser.flush()
                        LOG.debug("TX %s", payload.hex(" "))
                except queue.Empty:
                    pass

                chunk = ser.read(READ_CHUNK)
                if chunk and not channel.manual_close:
                    self.message_received.emit(chunk.decode("utf-8", errors="ignore"))
        except (serial.SerialException, OSError) as exc:
            reason = str(exc)
        finally:
            channel.ready = False
            try:
                if ser.is_open:
                    ser.close()
            except (serial.SerialException, OSError):
                pass
            channel.ser = None
            if not channel.manual_close:
                LOG.warning("%s closed: %s", port, reason or "port went away")
                self.disconnected.emit(port, reason)


__all__ = ["DEFAULT_BAUD", "available_ports", "SerialPortLink"]
