"""Shared fixtures.

Qt runs on the offscreen platform so the suite works without a display.
Time is driven by :class:`FakeScheduler`; the transport is
:class:`FakeSerialLink`, which records what the session asked of it and
lets a test play the robot's side by emitting the link signals.
"""

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from dataclasses import dataclass, field  # noqa: E402
from typing import Callable, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
from PySide6.QtWidgets import QApplication  # noqa: E402

from skaterbot_remote.config import RemoteConfig  # noqa: E402
from skaterbot_remote.errors import SerialLinkError  # noqa: E402
from skaterbot_remote.joystick import JoystickInput, Point  # noqa: E402
from skaterbot_remote.serial_link import Peer, PowerState, SerialLink  # noqa: E402
from skaterbot_remote.session import SessionController, SessionState  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def qapp() -> QApplication:
    app = QApplication.instance() or QApplication([])
    return app  # type: ignore[return-value]


@dataclass
class _Task:
    due: float
    interval: Optional[float]
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    def __init__(self) -> None:
        self.now = 0.0
        self.tasks: List[_Task] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _Task:
        task = _Task(self.now + delay_s, None, callback)
        self.tasks.append(task)
        return task

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> _Task:
        task = _Task(self.now + interval_s, interval_s, callback)
        self.tasks.append(task)
        return task

    def pending(self) -> List[_Task]:
        return [t for t in self.tasks if not t.cancelled]

    def advance(self, dt: float) -> None:
        target = self.now + dt + 1e-9
        while True:
            due = [t for t in self.pending() if t.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self.now = task.due
            if task.interval is None:
                task.cancelled = True
            else:
                task.due += task.interval
            task.callback()
        self.now = target


class FakeSerialLink(SerialLink):
    def __init__(self) -> None:
        super().__init__()
        self.power = PowerState.POWERED_ON
        self.ready_flag = False
        self.peer_id: Optional[str] = None
        self.refuse_writes = False
        self.scans_started = 0
        self.scans_stopped = 0
        self.connects: List[str] = []
        self.disconnects = 0
        self.sent: List[bytes] = []

    # verbs
    def start_scan(self) -> None:
        self.scans_started += 1

    def stop_scan(self) -> None:
        self.scans_stopped += 1

    def connect_peer(self, peer_id: str) -> None:
        self.connects.append(peer_id)

    def disconnect_peer(self) -> None:
        self.disconnects += 1
        self.ready_flag = False
        self.peer_id = None

    def send(self, data: bytes) -> None:
        if not self.ready_flag or self.refuse_writes:
            raise SerialLinkError("not ready")
        self.sent.append(bytes(data))

    # state
    @property
    def is_ready(self) -> bool:
        return self.ready_flag

    @property
    def connected_peer_id(self) -> Optional[str]:
        return self.peer_id if self.ready_flag else None

    @property
    def power_state(self) -> PowerState:
        return self.power

    # robot side
    def discover(self, peer_id: str, name: str, rssi: float) -> None:
        self.discovered.emit(Peer(peer_id, name), float(rssi))

    def come_ready(self, peer_id: Optional[str] = None) -> None:
        self.ready_flag = True
        self.peer_id = peer_id or (self.connects[-1] if self.connects else "?")
        self.ready.emit()

    def drop(self, reason: str = "link lost", peer_id: Optional[str] = None) -> None:
        peer = peer_id or self.peer_id or (self.connects[-1] if self.connects else "")
        if peer == self.peer_id:
            self.ready_flag = False
            self.peer_id = None
        self.disconnected.emit(peer, reason)

    def set_power(self, power: PowerState) -> None:
        self.power = power
        if power is PowerState.POWERED_OFF:
            self.ready_flag = False
            self.peer_id = None
        self.power_state_changed.emit()

    def receive(self, text: str) -> None:
        self.message_received.emit(text)


def make_joystick() -> JoystickInput:
    # radius = 200 / 4 = 50
    return JoystickInput(background_center=Point(100, 100), background_height=200, handle_size=60)


@dataclass
class Rig:
    link: FakeSerialLink
    scheduler: FakeScheduler
    joystick: JoystickInput
    session: SessionController
    failures: List[object] = field(default_factory=list)
    states: List[SessionState] = field(default_factory=list)

    def connect(self, peer_id: str = "AA:01", name: str = "SkaterBot", rssi: float = -60) -> None:
        assert self.session.start_scan()
        self.link.discover(peer_id, name, rssi)
        assert self.session.select_device(peer_id)
        self.link.come_ready()
        assert self.session.state is SessionState.READY

    def drive(self, to: Tuple[float, float]) -> None:
        centre = self.joystick.background_center
        assert self.joystick.touch_begin(centre)
        self.joystick.touch_move(Point(*to))


@pytest.fixture
def rig() -> Rig:
    link = FakeSerialLink()
    scheduler = FakeScheduler()
    joystick = make_joystick()
    session = SessionController(link, scheduler, joystick, RemoteConfig())
    r = Rig(link, scheduler, joystick, session)
    session.failure.connect(lambda error: r.failures.append(error))
    session.state_changed.connect(lambda state: r.states.append(state))
    return r
