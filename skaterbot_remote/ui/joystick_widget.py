"""
joystick_widget.py
==================

The on-screen drive pad.  :class:`JoystickPad` paints a background disc
and a draggable handle and forwards mouse/touch presses, drags and
releases to a :class:`~skaterbot_remote.joystick.JoystickInput`, which
owns the actual state.  On release the handle glides back to the centre
over 0.2 s; that animation is purely visual, the command vector is
already zero by then.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QEasingCurve, QPointF, QRectF, QSize, QVariantAnimation, Qt, Signal
from PySide6.QtGui import QBrush, QColor, QMouseEvent, QPainter, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from ..joystick import JoystickInput, Point
from . import theme

RETURN_ANIMATION_MS = 200


class JoystickPad(QWidget):
    # Emitted after every press/drag/release with the current command vector.
    displacement_changed = Signal(float, float)

    def __init__(self, joystick: JoystickInput, size: int = 240, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._joystick = joystick
        self._size = size
        self._drawn_handle = QPointF(joystick.handle_center.x, joystick.handle_center.y)
        self._return = QVariantAnimation(self)
        self._return.setDuration(RETURN_ANIMATION_MS)
        self._return.setEasingCurve(QEasingCurve.OutCubic)
        self._return.valueChanged.connect(self._on_return_step)
        self.setMinimumSize(size, size)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setAttribute(Qt.WA_AcceptTouchEvents, False)

    def sizeHint(self) -> QSize:
        return QSize(self._size, self._size)

    @property
    def joystick(self) -> JoystickInput:
        return self._joystick

    # ---- geometry ----
    def resizeEvent(self, event) -> None:  # type: ignore[override]
        side = min(self.width(), self.height())
        background = side * 0.9
        center = Point(self.width() / 2, self.height() / 2)
        self._return.stop()
        self._joystick.resize(background_center=center, background_height=background, handle_size=background / 3)
        self._sync_handle()
        super().resizeEvent(event)

    def _sync_handle(self) -> None:
        c = self._joystick.handle_center
        self._drawn_handle = QPointF(c.x, c.y)
        self.update()

    # ---- input ----
    def mousePressEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != Qt.LeftButton:
            return
        pos = event.position()
        if self._joystick.touch_begin(Point(pos.x(), pos.y())):
            self._return.stop()
            self._sync_handle()
        self._report()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if not self._joystick.active:
            return
        pos = event.position()
        self._joystick.touch_move(Point(pos.x(), pos.y()))
        self._sync_handle()
        self._report()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != Qt.LeftButton or not self._joystick.active:
            return
        start = QPointF(self._drawn_handle)
        self._joystick.touch_end()
        end = self._joystick.background_center
        self._return.stop()
        self._return.setStartValue(start)
        self._return.setEndValue(QPointF(end.x, end.y))
        self._return.start()
        self._report()

    def _on_return_step(self, value: QPointF) -> None:
        self._drawn_handle = value
        self.update()

    def _report(self) -> None:
        d = self._joystick.displacement
        self.displacement_changed.emit(d.dx, d.dy)

    # ---- painting ----
    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)

        bg = self._joystick.background_center
        bg_radius = self._joystick.radius * 2
        painter.setPen(QPen(QColor(theme.PAD_RING), 3))
        painter.setBrush(QBrush(QColor(theme.PAD_FILL)))
        painter.drawEllipse(QPointF(bg.x, bg.y), bg_radius, bg_radius)

        # Travel limit of the handle centre
        painter.setPen(QPen(QColor(theme.PAD_RING), 1, Qt.DashLine))
        painter.setBrush(Qt.NoBrush)
        painter.drawEllipse(QPointF(bg.x, bg.y), self._joystick.radius, self._joystick.radius)

        half = self._joystick.handle_size / 2
        colour = theme.PAD_HANDLE_ACTIVE if self._joystick.active else theme.PAD_HANDLE
        painter.setPen(Qt.NoPen)
        painter.setBrush(QBrush(QColor(colour)))
        h = self._drawn_handle
        painter.drawEllipse(QRectF(h.x() - half, h.y() - half, half * 2, half * 2))


__all__ = ["JoystickPad", "RETURN_ANIMATION_MS"]
