"""
session.py
==========

Connection lifecycle and the periodic command loop.

:class:`SessionController` is the only subscriber to the
:class:`~skaterbot_remote.serial_link.SerialLink` signals.  It turns them
into a small state machine::

    Idle -> Scanning -> Connecting -> Ready <-> Tuning
      ^__________________________________________|   (disconnect / power loss / failure)

and republishes what the UI needs through its own signals.  Screens
never talk to the link directly, so moving between the control window
and the device picker needs no re-registration.

Timeouts are one-shot and are never cancelled.  Each callback checks at
fire time whether the scan or connection it was armed for is still the
current one and returns quietly otherwise, so a late timer is harmless.
Link events name the peer they concern; events about any peer other
than the selected one come from an abandoned attempt and are dropped.

The command tick runs for the lifetime of the control view.  On every
tick in ``Ready`` the joystick displacement is encoded and, if non-zero,
sent as one byte.  A failed send is dropped: the next tick resends the
current level anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from PySide6.QtCore import QObject, Signal, Slot

from .config import RemoteConfig
from .encoder import describe, encode, to_payload
from .errors import (
    ConnectFailed,
    ConnectTimeout,
    Disconnected,
    OperationRejected,
    SerialLinkError,
    SessionError,
    TransportUnavailable,
)
from .joystick import JoystickInput
from .scheduler import Scheduler, TaskHandle
from .serial_link import Peer, PowerState, SerialLink

LOG = logging.getLogger("skaterbot.session")

RUN_MODE = b"R"
SETUP_MODE = b"S"
STATUS_MARKER = "state"


class SessionState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    READY = "ready"
    TUNING = "tuning"


LINKED_STATES = (SessionState.READY, SessionState.TUNING)


@dataclass(frozen=True, slots=True)
class DiscoveredDevice:
    id: str
    name: str
    signal_strength: float


class DeviceList:
    """Scan results: unique by id, ascending by signal strength."""

    def __init__(self) -> None:
        self._items: List[DiscoveredDevice] = []

    def add(self, device: DiscoveredDevice) -> bool:
        """Insert ``device``; returns False for an id already present."""
        if any(existing.id == device.id for existing in self._items):
            return False
        self._items.append(device)
        self._items.sort(key=lambda d: d.signal_strength)
        return True

    def find(self, device_id: str) -> Optional[DiscoveredDevice]:
        for device in self._items:
            if device.id == device_id:
                return device
        return None

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> List[DiscoveredDevice]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class SessionController(QObject):
    state_changed = Signal(object)
    devices_changed = Signal(list)
    scan_settled_changed = Signal(bool)
    scrollback_changed = Signal(str)
    power_state_changed = Signal(object)
    # The selected device is ready; the picker should close.
    device_ready = Signal()
    # Bluetooth went away while the picker was up.
    picker_dismissed = Signal()
    failure = Signal(object)

    def __init__(
        self,
        link: SerialLink,
        scheduler: Scheduler,
        joystick: JoystickInput,
        config: Optional[RemoteConfig] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._link = link
        self._scheduler = scheduler
        self._joystick = joystick
        self._config = config or RemoteConfig()

        self._state = SessionState.IDLE
        self._devices = DeviceList()
        self._selected: Optional[DiscoveredDevice] = None
        self._scan_settled = False
        self._scrollback = ""
        self._tick_handle: Optional[TaskHandle] = None
        # Bumped per scan / per connect; timers compare against them.
        self._scan_generation = 0
        self._connect_attempt = 0

        link.discovered.connect(self._on_discovered)
        link.ready.connect(self._on_ready)
        link.disconnected.connect(self._on_disconnected)
        link.failed_to_connect.connect(self._on_failed_to_connect)
        link.power_state_changed.connect(self._on_power_state_changed)
        link.message_received.connect(self._on_message)

    # ---- read-only views ----
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_linked(self) -> bool:
        return self._state in LINKED_STATES

    @property
    def devices(self) -> List[DiscoveredDevice]:
        return self._devices.items

    @property
    def selected_device(self) -> Optional[DiscoveredDevice]:
        return self._selected

    @property
    def scan_settled(self) -> bool:
        return self._scan_settled

    @property
    def scrollback(self) -> str:
        return self._scrollback

    @property
    def power_state(self) -> PowerState:
        return self._link.power_state

    @property
    def ticking(self) -> bool:
        return self._tick_handle is not None

    # ---- lifetime ----
    def start(self) -> None:
        """Start the command tick.  Called once the control view is shown."""
        if self._tick_handle is not None:
            return
        self._tick_handle = self._scheduler.call_every(self._config.tick_interval_s, self.tick)
        LOG.debug("command tick started (%.3fs)", self._config.tick_interval_s)

    def shutdown(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        self.disconnect_session()

    # ---- scanning ----
    def start_scan(self) -> bool:
        if self._state in (SessionState.CONNECTING,) + LINKED_STATES:
            self._fail(OperationRejected("Disconnect before scanning"))
            return False
        if self._link.power_state is PowerState.POWERED_OFF:
            self._fail(TransportUnavailable("Bluetooth not enabled"))
            return False

        if self._state is SessionState.SCANNING:
            self._link.stop_scan()

        self._scan_generation += 1
        generation = self._scan_generation
        self._devices.clear()
        self.devices_changed.emit(self._devices.items)
        self._set_scan_settled(False)

        # Some links report ports synchronously from start_scan().
        self._set_state(SessionState.SCANNING)
        self._link.start_scan()
        self._scheduler.call_later(
            self._config.scan_timeout_s, lambda: self._on_scan_timeout(generation)
        )
        return True

    def cancel_scan(self) -> None:
        """Leave the device picker: stop scanning or abandon the connect."""
        if self._state in (SessionState.SCANNING, SessionState.CONNECTING):
            self.disconnect_session()

    def _on_scan_timeout(self, generation: int) -> None:
        if self._state is not SessionState.SCANNING or generation != self._scan_generation:
            return
        LOG.info("scan settled with %d device(s)", len(self._devices))
        self._set_scan_settled(True)

    @Slot(object, float)
    def _on_discovered(self, peer: Peer, signal_strength: float) -> None:
        if self._state is not SessionState.SCANNING:
            return
        device = DiscoveredDevice(peer.id, peer.name, float(signal_strength))
        if self._devices.add(device):
            LOG.debug("discovered %s (%s) %.0f dBm", device.name, device.id, device.signal_strength)
            self.devices_changed.emit(self._devices.items)

    # ---- connecting ----
    def select_device(self, device_id: str) -> bool:
        if self._state is not SessionState.SCANNING:
            LOG.warning("select_device(%s) ignored in state %s", device_id, self._state.value)
            return False
        device = self._devices.find(device_id)
        if device is None:
            LOG.warning("select_device: unknown device %s", device_id)
            return False

        self._link.stop_scan()
        self._selected = device
        self._set_state(SessionState.CONNECTING)

        self._connect_attempt += 1
        attempt = self._connect_attempt
        self._link.connect_peer(device.id)
        self._scheduler.call_later(
            self._config.connect_timeout_s, lambda: self._on_connect_timeout(attempt)
        )
        return True

    def _on_connect_timeout(self, attempt: int) -> None:
        if self._state is not SessionState.CONNECTING or attempt != self._connect_attempt:
            return
        if self._is_selected(self._link.connected_peer_id):
            return
        LOG.warning("connect to %s timed out", self._selected.id if self._selected else "?")
        self._link.disconnect_peer()
        self._selected = None
        self._set_state(SessionState.IDLE)
        self._fail(ConnectTimeout("Failed to connect"))

    @Slot()
    def _on_ready(self) -> None:
        if self._state in LINKED_STATES:
            return
        peer_id = self._link.connected_peer_id
        if self._state is not SessionState.CONNECTING or not self._is_selected(peer_id):
            # Came up after we gave up on it, or belongs to an older attempt.
            LOG.info("stale ready from %s in state %s, dropping link", peer_id, self._state.value)
            self._link.disconnect_peer()
            return
        self._clear_scrollback()
        self._set_state(SessionState.READY)
        self.device_ready.emit()

    @Slot(str, str)
    def _on_failed_to_connect(self, peer_id: str, reason: str) -> None:
        if self._state is not SessionState.CONNECTING:
            return
        if not self._is_selected(peer_id):
            LOG.debug("ignoring connect failure from abandoned peer %s: %s", peer_id, reason)
            return
        LOG.warning("failed to connect to %s: %s", peer_id, reason)
        self._selected = None
        self._set_state(SessionState.IDLE)
        self._fail(ConnectFailed("Failed to connect"))

    # ---- dropping ----
    @Slot(str, str)
    def _on_disconnected(self, peer_id: str, reason: str) -> None:
        prior = self._state
        if prior not in (SessionState.CONNECTING,) + LINKED_STATES:
            return
        if not self._is_selected(peer_id):
            LOG.debug("ignoring disconnect of %s, session is on %s", peer_id, self._selected)
            return
        LOG.warning("link to %s dropped: %s", peer_id, reason or "no reason given")
        self._selected = None
        self._set_state(SessionState.IDLE)
        if prior is SessionState.CONNECTING:
            self._fail(ConnectFailed("Failed to connect"))
        else:
            self._fail(Disconnected("Device disconnected"))

    @Slot()
    def _on_power_state_changed(self) -> None:
        power = self._link.power_state
        LOG.info("bluetooth power state: %s", power.value)
        self.power_state_changed.emit(power)
        if power is not PowerState.POWERED_OFF:
            return

        prior = self._state
        self._selected = None
        self._set_state(SessionState.IDLE)
        if prior in (SessionState.SCANNING, SessionState.CONNECTING):
            self.picker_dismissed.emit()
        self._fail(TransportUnavailable("Bluetooth turned off"))

    def disconnect_session(self) -> bool:
        """User-initiated disconnect.  No-op when already idle."""
        prior = self._state
        if prior is SessionState.IDLE:
            return False
        if prior is SessionState.SCANNING:
            self._link.stop_scan()
        else:
            self._link.disconnect_peer()
        self._selected = None
        self._set_state(SessionState.IDLE)
        return True

    # ---- modes ----
    def toggle_tuning(self) -> bool:
        if self._state is SessionState.READY:
            self._clear_scrollback()
            self.send(SETUP_MODE)
            self._set_state(SessionState.TUNING)
            return True
        if self._state is SessionState.TUNING:
            self._clear_scrollback()
            self.send(RUN_MODE)
            self._set_state(SessionState.READY)
            return True
        self._fail(OperationRejected("Device not ready"))
        return False

    # ---- outbound ----
    def send(self, data: bytes) -> bool:
        """Best-effort write; returns False when the link refused it."""
        try:
            self._link.send(data)
        except SerialLinkError as exc:
            LOG.debug("send dropped (%s): %s", data.hex(" "), exc)
            return False
        LOG.debug("TX %s", data.hex(" "))
        return True

    def tick(self) -> None:
        if self._state is not SessionState.READY:
            return
        command = encode(self._joystick.displacement, self._config.command_threshold)
        if not command:
            return
        if self.send(to_payload(command)):
            LOG.debug("drive %s", describe(command))

    # ---- inbound ----
    @Slot(str)
    def _on_message(self, text: str) -> None:
        if text.startswith(STATUS_MARKER):
            self._scrollback = ""
        self._scrollback += text
        limit = self._config.scrollback_limit
        if len(self._scrollback) > limit:
            self._scrollback = self._scrollback[-limit:]
        self.scrollback_changed.emit(self._scrollback)

    def _clear_scrollback(self) -> None:
        self._scrollback = ""
        self.scrollback_changed.emit(self._scrollback)

    # ---- helpers ----
    def _is_selected(self, peer_id: Optional[str]) -> bool:
        return self._selected is not None and peer_id == self._selected.id

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        LOG.info("session %s -> %s", self._state.value, state.value)
        self._state = state
        self.state_changed.emit(state)

    def _set_scan_settled(self, settled: bool) -> None:
        if settled == self._scan_settled:
            return
        self._scan_settled = settled
        self.scan_settled_changed.emit(settled)

    def _fail(self, error: SessionError) -> None:
        LOG.warning("%s: %s", type(error).__name__, error.message)
        self.failure.emit(error)


__all__ = ["SessionState", "DiscoveredDevice", "DeviceList", "SessionController"]
