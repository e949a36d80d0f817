"""Tests for the session state machine and the command tick.

The robot side is played by ``FakeSerialLink`` and time by
``FakeScheduler`` (see ``conftest.py``); every signal is delivered
synchronously on the test thread.
"""

from __future__ import annotations

from typing import List

import pytest

from skaterbot_remote.config import RemoteConfig
from skaterbot_remote.errors import (
    ConnectFailed,
    ConnectTimeout,
    Disconnected,
    OperationRejected,
    TransportUnavailable,
)
from skaterbot_remote.serial_link import PowerState
from skaterbot_remote.session import (
    DeviceList,
    DiscoveredDevice,
    SessionController,
    SessionState,
)

from .conftest import FakeScheduler, FakeSerialLink, Rig, make_joystick


def enter(rig: Rig, state: SessionState) -> None:
    if state is SessionState.IDLE:
        return
    if state is SessionState.SCANNING:
        assert rig.session.start_scan()
        rig.link.discover("AA:01", "SkaterBot", -60)
        return
    if state is SessionState.CONNECTING:
        enter(rig, SessionState.SCANNING)
        assert rig.session.select_device("AA:01")
        return
    rig.connect()
    if state is SessionState.TUNING:
        assert rig.session.toggle_tuning()
    assert rig.session.state is state


# ---- device list ----


def test_device_list_dedups_and_sorts_by_signal() -> None:
    devices = DeviceList()
    assert devices.add(DiscoveredDevice("A", "a", -70))
    assert devices.add(DiscoveredDevice("B", "b", -40))
    assert not devices.add(DiscoveredDevice("A", "a", -30))
    assert [(d.id, d.signal_strength) for d in devices.items] == [("A", -70), ("B", -40)]


def test_device_list_sort_is_stable_for_equal_strength() -> None:
    devices = DeviceList()
    for peer_id in ("X", "Y", "Z"):
        devices.add(DiscoveredDevice(peer_id, peer_id, -50))
    assert [d.id for d in devices.items] == ["X", "Y", "Z"]


# ---- scanning ----


def test_starts_idle(rig: Rig) -> None:
    assert rig.session.state is SessionState.IDLE
    assert not rig.session.is_linked
    assert not rig.session.ticking


def test_start_scan_resets_results(rig: Rig) -> None:
    assert rig.session.start_scan()
    assert rig.session.state is SessionState.SCANNING
    assert rig.link.scans_started == 1
    assert rig.session.devices == []
    assert not rig.session.scan_settled


def test_discovered_devices_are_deduplicated_and_sorted(rig: Rig) -> None:
    seen: List[list] = []
    rig.session.devices_changed.connect(lambda devices: seen.append(devices))
    rig.session.start_scan()
    rig.link.discover("A", "Alpha", -70)
    rig.link.discover("B", "Bravo", -40)
    rig.link.discover("A", "Alpha", -30)
    assert [(d.id, d.signal_strength) for d in rig.session.devices] == [("A", -70.0), ("B", -40.0)]
    # clear + two real additions; the duplicate is not republished
    assert len(seen) == 3


def test_discovery_outside_scanning_is_ignored(rig: Rig) -> None:
    rig.link.discover("A", "Alpha", -70)
    assert rig.session.devices == []


def test_scan_settles_after_timeout(rig: Rig) -> None:
    rig.session.start_scan()
    rig.scheduler.advance(9.9)
    assert not rig.session.scan_settled
    rig.scheduler.advance(0.2)
    assert rig.session.scan_settled
    assert rig.session.state is SessionState.SCANNING


def test_rescan_ignores_previous_scan_timer(rig: Rig) -> None:
    rig.session.start_scan()
    rig.link.discover("A", "Alpha", -70)
    rig.scheduler.advance(5.0)
    assert rig.session.start_scan()
    assert rig.link.scans_stopped == 1
    assert rig.session.devices == []
    rig.scheduler.advance(5.5)  # first scan's timer fires here
    assert not rig.session.scan_settled
    rig.scheduler.advance(5.0)
    assert rig.session.scan_settled


def test_scan_refused_when_bluetooth_off(rig: Rig) -> None:
    rig.link.power = PowerState.POWERED_OFF
    assert not rig.session.start_scan()
    assert rig.session.state is SessionState.IDLE
    assert rig.link.scans_started == 0
    assert isinstance(rig.failures[-1], TransportUnavailable)
    assert rig.failures[-1].message == "Bluetooth not enabled"


def test_scan_allowed_while_power_unknown(rig: Rig) -> None:
    rig.link.power = PowerState.UNKNOWN
    assert rig.session.start_scan()


@pytest.mark.parametrize("state", [SessionState.CONNECTING, SessionState.READY, SessionState.TUNING])
def test_scan_rejected_while_busy(rig: Rig, state: SessionState) -> None:
    enter(rig, state)
    assert not rig.session.start_scan()
    assert rig.session.state is state
    assert isinstance(rig.failures[-1], OperationRejected)


def test_cancel_scan_returns_to_idle(rig: Rig) -> None:
    rig.session.start_scan()
    rig.session.cancel_scan()
    assert rig.session.state is SessionState.IDLE
    assert rig.link.scans_stopped == 1
    assert rig.failures == []


def test_cancel_scan_abandons_connect(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.session.cancel_scan()
    assert rig.session.state is SessionState.IDLE
    assert rig.link.disconnects == 1


def test_cancel_scan_leaves_established_link_alone(rig: Rig) -> None:
    rig.connect()
    rig.session.cancel_scan()
    assert rig.session.state is SessionState.READY


# ---- connecting ----


def test_select_unknown_device_is_ignored(rig: Rig) -> None:
    rig.session.start_scan()
    assert not rig.session.select_device("nope")
    assert rig.session.state is SessionState.SCANNING
    assert rig.link.connects == []


def test_select_outside_scanning_is_ignored(rig: Rig) -> None:
    assert not rig.session.select_device("AA:01")
    assert rig.session.state is SessionState.IDLE


def test_select_stops_scan_and_connects(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    assert rig.link.scans_stopped == 1
    assert rig.link.connects == ["AA:01"]
    assert rig.session.selected_device == DiscoveredDevice("AA:01", "SkaterBot", -60.0)


def test_full_connect_sequence(rig: Rig) -> None:
    ready: List[bool] = []
    rig.session.device_ready.connect(lambda: ready.append(True))
    rig.connect()
    assert rig.states == [SessionState.SCANNING, SessionState.CONNECTING, SessionState.READY]
    assert rig.session.is_linked
    assert ready == [True]
    assert rig.failures == []


def test_connect_timeout(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.scheduler.advance(10.0)
    assert rig.session.state is SessionState.IDLE
    assert rig.session.selected_device is None
    assert rig.link.disconnects == 1
    assert isinstance(rig.failures[-1], ConnectTimeout)
    assert rig.failures[-1].message == "Failed to connect"


def test_connect_timer_after_ready_is_harmless(rig: Rig) -> None:
    rig.connect()
    rig.scheduler.advance(20.0)
    assert rig.session.state is SessionState.READY
    assert rig.failures == []
    assert rig.link.disconnects == 0


def test_stale_connect_timer_does_not_abort_new_attempt(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.link.failed_to_connect.emit("AA:01", "refused")
    assert isinstance(rig.failures[-1], ConnectFailed)
    rig.scheduler.advance(5.0)
    enter(rig, SessionState.CONNECTING)
    rig.scheduler.advance(5.5)  # first attempt's timer fires here
    assert rig.session.state is SessionState.CONNECTING
    assert len(rig.failures) == 1
    rig.scheduler.advance(5.0)
    assert rig.session.state is SessionState.IDLE
    assert isinstance(rig.failures[-1], ConnectTimeout)


def test_failed_to_connect_outside_connecting_is_ignored(rig: Rig) -> None:
    rig.connect()
    rig.link.failed_to_connect.emit("AA:01", "late")
    assert rig.session.state is SessionState.READY
    assert rig.failures == []


def test_late_ready_after_timeout_drops_link(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.scheduler.advance(10.0)
    rig.link.come_ready()
    assert rig.session.state is SessionState.IDLE
    assert rig.link.disconnects == 2
    assert not rig.link.is_ready


def abandon_then_select(rig: Rig, first: str, second: str) -> None:
    """Time out on ``first``, rescan and start connecting to ``second``."""
    rig.session.start_scan()
    rig.link.discover(first, "First", -70)
    rig.link.discover(second, "Second", -50)
    assert rig.session.select_device(first)
    rig.scheduler.advance(10.0)
    assert isinstance(rig.failures[-1], ConnectTimeout)
    rig.session.start_scan()
    rig.link.discover(first, "First", -70)
    rig.link.discover(second, "Second", -50)
    assert rig.session.select_device(second)


def test_failure_from_abandoned_peer_does_not_abort_new_attempt(rig: Rig) -> None:
    abandon_then_select(rig, "AA:01", "BB:02")
    rig.link.failed_to_connect.emit("AA:01", "refused")
    assert rig.session.state is SessionState.CONNECTING
    assert len(rig.failures) == 1
    rig.link.failed_to_connect.emit("BB:02", "refused")
    assert rig.session.state is SessionState.IDLE
    assert isinstance(rig.failures[-1], ConnectFailed)


def test_ready_from_abandoned_peer_drops_that_link(rig: Rig) -> None:
    abandon_then_select(rig, "AA:01", "BB:02")
    disconnects = rig.link.disconnects
    rig.link.come_ready("AA:01")
    assert rig.session.state is SessionState.CONNECTING
    assert rig.link.disconnects == disconnects + 1
    rig.link.come_ready("BB:02")
    assert rig.session.state is SessionState.READY


def test_stale_ready_while_scanning_drops_link(rig: Rig) -> None:
    rig.session.start_scan()
    rig.link.come_ready("AA:01")
    assert rig.session.state is SessionState.SCANNING
    assert rig.link.disconnects == 1


def test_drop_of_other_peer_keeps_session(rig: Rig) -> None:
    rig.connect(peer_id="BB:02")
    rig.link.drop(peer_id="AA:01")
    assert rig.session.state is SessionState.READY
    assert rig.failures == []
    rig.link.drop()
    assert rig.session.state is SessionState.IDLE
    assert isinstance(rig.failures[-1], Disconnected)


def test_ready_clears_scrollback(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.link.receive("junk")
    assert rig.session.scrollback == "junk"
    rig.link.come_ready()
    assert rig.session.scrollback == ""


# ---- dropping ----


@pytest.mark.parametrize("state", [SessionState.READY, SessionState.TUNING])
def test_unexpected_disconnect_while_linked(rig: Rig, state: SessionState) -> None:
    enter(rig, state)
    rig.link.drop()
    assert rig.session.state is SessionState.IDLE
    assert isinstance(rig.failures[-1], Disconnected)
    assert rig.failures[-1].message == "Device disconnected"


def test_disconnect_while_connecting_is_a_connect_failure(rig: Rig) -> None:
    enter(rig, SessionState.CONNECTING)
    rig.link.drop()
    assert rig.session.state is SessionState.IDLE
    assert isinstance(rig.failures[-1], ConnectFailed)


def test_disconnect_event_while_idle_is_ignored(rig: Rig) -> None:
    rig.link.drop()
    assert rig.failures == []
    assert rig.states == []


@pytest.mark.parametrize("state", list(SessionState))
def test_power_loss_returns_to_idle(rig: Rig, state: SessionState) -> None:
    dismissed: List[bool] = []
    powers: List[PowerState] = []
    rig.session.picker_dismissed.connect(lambda: dismissed.append(True))
    rig.session.power_state_changed.connect(lambda power: powers.append(power))
    enter(rig, state)

    rig.link.set_power(PowerState.POWERED_OFF)

    assert rig.session.state is SessionState.IDLE
    assert rig.session.selected_device is None
    assert powers == [PowerState.POWERED_OFF]
    assert isinstance(rig.failures[-1], TransportUnavailable)
    assert rig.failures[-1].message == "Bluetooth turned off"
    assert dismissed == ([True] if state in (SessionState.SCANNING, SessionState.CONNECTING) else [])


def test_power_on_only_republishes(rig: Rig) -> None:
    rig.link.power = PowerState.UNKNOWN
    rig.link.set_power(PowerState.POWERED_ON)
    assert rig.session.power_state is PowerState.POWERED_ON
    assert rig.failures == []
    assert rig.session.state is SessionState.IDLE


def test_manual_disconnect_is_idempotent(rig: Rig) -> None:
    rig.connect()
    assert rig.session.disconnect_session()
    assert rig.session.state is SessionState.IDLE
    assert rig.link.disconnects == 1
    assert not rig.session.disconnect_session()
    assert rig.link.disconnects == 1
    assert rig.failures == []


def test_manual_disconnect_while_scanning_stops_scan(rig: Rig) -> None:
    rig.session.start_scan()
    assert rig.session.disconnect_session()
    assert rig.link.scans_stopped == 1
    assert rig.link.disconnects == 0


# ---- modes ----


def test_toggle_tuning_switches_modes(rig: Rig) -> None:
    rig.connect()
    rig.link.receive("hello")
    assert rig.session.toggle_tuning()
    assert rig.session.state is SessionState.TUNING
    assert rig.session.is_linked
    assert rig.session.scrollback == ""
    assert rig.link.sent == [b"S"]
    assert rig.session.toggle_tuning()
    assert rig.session.state is SessionState.READY
    assert rig.link.sent == [b"S", b"R"]


@pytest.mark.parametrize("state", [SessionState.IDLE, SessionState.SCANNING, SessionState.CONNECTING])
def test_toggle_tuning_needs_a_link(rig: Rig, state: SessionState) -> None:
    enter(rig, state)
    assert not rig.session.toggle_tuning()
    assert rig.session.state is state
    assert isinstance(rig.failures[-1], OperationRejected)
    assert rig.failures[-1].message == "Device not ready"


# ---- command tick ----


def test_tick_sends_held_direction_every_interval(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.drive((100, 60))
    rig.scheduler.advance(0.35)
    assert rig.link.sent == [b"\x04"] * 3


def test_tick_sends_combined_bits_for_diagonal(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.drive((140, 60))
    rig.scheduler.advance(0.15)
    assert rig.link.sent == [b"\x06"]


def test_tick_sends_nothing_at_rest(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.drive((100, 60))
    rig.joystick.touch_end()
    rig.scheduler.advance(0.5)
    assert rig.link.sent == []


def test_tick_is_silent_outside_ready(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.session.toggle_tuning()
    rig.drive((100, 60))
    rig.scheduler.advance(0.5)
    assert rig.link.sent == [b"S"]


def test_no_tick_before_start(rig: Rig) -> None:
    rig.connect()
    rig.drive((100, 60))
    rig.scheduler.advance(0.5)
    assert rig.link.sent == []


def test_start_is_idempotent(rig: Rig) -> None:
    rig.session.start()
    rig.session.start()
    rig.connect()
    rig.drive((100, 60))
    rig.scheduler.advance(0.15)
    assert rig.link.sent == [b"\x04"]


def test_refused_write_is_dropped(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.drive((100, 60))
    rig.link.refuse_writes = True
    rig.scheduler.advance(0.25)
    assert rig.link.sent == []
    assert rig.session.state is SessionState.READY
    rig.link.refuse_writes = False
    rig.scheduler.advance(0.1)
    assert rig.link.sent == [b"\x04"]


def test_shutdown_stops_tick_and_disconnects(rig: Rig) -> None:
    rig.session.start()
    rig.connect()
    rig.session.shutdown()
    assert not rig.session.ticking
    assert rig.session.state is SessionState.IDLE
    assert rig.link.disconnects == 1


# ---- inbound text ----


def test_scrollback_appends_chunks(rig: Rig) -> None:
    rig.link.receive("hello ")
    rig.link.receive("world")
    assert rig.session.scrollback == "hello world"


def test_status_message_clears_scrollback(rig: Rig) -> None:
    rig.link.receive("old text\n")
    rig.link.receive("state: balancing\n")
    assert rig.session.scrollback == "state: balancing\n"


def test_scrollback_keeps_newest_text() -> None:
    link = FakeSerialLink()
    session = SessionController(link, FakeScheduler(), make_joystick(), RemoteConfig(scrollback_limit=10))
    shown: List[str] = []
    session.scrollback_changed.connect(lambda text: shown.append(text))
    link.receive("0123456789")
    link.receive("abc")
    assert session.scrollback == "3456789abc"
    assert shown[-1] == "3456789abc"
