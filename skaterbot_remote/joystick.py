"""
joystick.py
===========

Turns raw pointer samples from the on-screen joystick into a bounded
command vector.

The pad is a background disc with a draggable handle.  A drag only
starts when the press lands on the handle.  While dragging, the handle
follows the pointer until it reaches the edge of the allowed area, and
the command vector always points along the drag direction with a length
of ``radius`` (a quarter of the background height).  The device only
cares about the direction: :mod:`skaterbot_remote.encoder` thresholds
each component.

The edge test is axis-wise rather than circular: the handle may move
only while *both* ``|v.x| < |clamp.x|`` and ``|v.y| < |clamp.y|``.  This
matches the behaviour the robot firmware was tuned against and is kept
as is.

Usage::

    pad = JoystickInput(background_center=Point(120, 120),
                        background_height=200, handle_size=60)
    pad.touch_begin(Point(120, 120))
    pad.touch_move(Point(160, 120))
    pad.displacement  # DisplacementVector(dx=-50.0, dy=...)
    pad.touch_end()
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class DisplacementVector:
    dx: float = 0.0
    dy: float = 0.0

    @property
    def length(self) -> float:
        return math.hypot(self.dx, self.dy)


ZERO = DisplacementVector(0.0, 0.0)


class JoystickInput:
    """Owns the joystick state; mutated only by the three touch events."""

    def __init__(
        self,
        *,
        background_center: Point,
        background_height: float,
        handle_size: float,
    ) -> None:
        if background_height <= 0:
            raise ValueError("background_height must be > 0")
        if handle_size <= 0:
            raise ValueError("handle_size must be > 0")
        self._background_center = background_center
        self._background_height = float(background_height)
        self._handle_size = float(handle_size)
        self._handle_center = background_center
        self._active = False
        self._last_position = Point(0.0, 0.0)
        self._displacement = ZERO

    # --- geometry ---
    @property
    def radius(self) -> float:
        return self._background_height / 4

    @property
    def background_center(self) -> Point:
        return self._background_center

    @property
    def handle_center(self) -> Point:
        return self._handle_center

    @property
    def handle_size(self) -> float:
        return self._handle_size

    def resize(self, *, background_center: Point, background_height: float, handle_size: float) -> None:
        """Re-lay out the pad (e.g. after a widget resize) and return to rest."""
        if background_height <= 0 or handle_size <= 0:
            raise ValueError("joystick dimensions must be > 0")
        self._background_center = background_center
        self._background_height = float(background_height)
        self._handle_size = float(handle_size)
        self._handle_center = background_center
        self._active = False
        self._displacement = ZERO

    def hit_test(self, point: Point) -> bool:
        """True when ``point`` lies within the handle's square bounds."""
        half = self._handle_size / 2
        return (
            abs(point.x - self._handle_center.x) <= half
            and abs(point.y - self._handle_center.y) <= half
        )

    # --- state ---
    @property
    def active(self) -> bool:
        return self._active

    @property
    def displacement(self) -> DisplacementVector:
        if not self._active:
            return ZERO
        return self._displacement

    # --- touch events ---
    def touch_begin(self, point: Point) -> bool:
        if self.hit_test(point):
            self._active = True
            self._last_position = point
            self._displacement = ZERO
        else:
            self._active = False
        return self._active

    def touch_move(self, point: Point) -> None:
        if not self._active:
            return

        delta_x = point.x - self._last_position.x
        delta_y = point.y - self._last_position.y
        self._last_position = point

        proposed = Point(self._handle_center.x + delta_x, self._handle_center.y + delta_y)
        vx = proposed.x - self._background_center.x
        vy = proposed.y - self._background_center.y
        angle = math.atan2(vy, vx)

        # Quarter-turn rotated edge point; (-cos, sin) of the drag angle.
        clamp_x = math.sin(angle - math.pi / 2) * self.radius
        clamp_y = math.cos(angle - math.pi / 2) * self.radius
        self._displacement = DisplacementVector(clamp_x, clamp_y)

        if abs(vx) < abs(clamp_x) and abs(vy) < abs(clamp_y):
            self._handle_center = proposed
        else:
            self._handle_center = Point(
                self._background_center.x - clamp_x,
                self._background_center.y + clamp_y,
            )

    def touch_end(self) -> None:
        if not self._active:
            return
        self._active = False
        self._displacement = ZERO
        self._handle_center = self._background_center


__all__ = ["Point", "DisplacementVector", "ZERO", "JoystickInput"]
