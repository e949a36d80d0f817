from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from PySide6.QtCore import QObject, QTimer


class TaskHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Timer abstraction.

    Core logic schedules work through this interface rather than creating
    timers directly, so tests can drive time by hand.
    """

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TaskHandle:
        """Run ``callback`` once after ``delay_s`` seconds."""

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TaskHandle:
        """Run ``callback`` every ``interval_s`` seconds until cancelled."""


class _TimerHandle:
    def __init__(self, owner: "QtScheduler", timer: QTimer) -> None:
        self._owner = owner
        self._timer: Optional[QTimer] = timer

    def cancel(self) -> None:
        timer = self._timer
        if timer is None:
            return
        self._timer = None
        timer.stop()
        self._owner._release(timer)


class QtScheduler(QObject):
    """Production scheduler backed by ``QTimer`` on the GUI thread."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timers: List[QTimer] = []

    def _make(self, interval_s: float, single_shot: bool) -> QTimer:
        timer = QTimer(self)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(0, int(round(interval_s * 1000))))
        self._timers.append(timer)
        return timer

    def _release(self, timer: QTimer) -> None:
        if timer in self._timers:
            self._timers.remove(timer)
            timer.deleteLater()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _TimerHandle:
        timer = self._make(delay_s, single_shot=True)
        handle = _TimerHandle(self, timer)

        def fire() -> None:
            handle.cancel()
            callback()

        timer.timeout.connect(fire)
        timer.start()
        return handle

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> _TimerHandle:
        timer = self._make(interval_s, single_shot=False)
        timer.timeout.connect(callback)
        timer.start()
        return _TimerHandle(self, timer)

    def cancel_all(self) -> None:
        for timer in list(self._timers):
            timer.stop()
            self._release(timer)


__all__ = ["TaskHandle", "Scheduler", "QtScheduler"]
