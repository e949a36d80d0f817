"""Map a joystick displacement to the robot's one-byte direction command.

Each component is thresholded independently, so diagonals combine bits
(FORWARD | LEFT == 0x05).  The result is a level signal: it is recomputed
every tick from the current displacement, and a held stick resends the
same byte each tick.  Zero means "send nothing".
"""

from __future__ import annotations

from typing import List

from .joystick import DisplacementVector

LEFT = 0x01
RIGHT = 0x02
FORWARD = 0x04
BACK = 0x08

DEFAULT_THRESHOLD = 30.0

_NAMES = ((FORWARD, "FORWARD"), (BACK, "BACK"), (LEFT, "LEFT"), (RIGHT, "RIGHT"))


def encode(displacement: DisplacementVector, threshold: float = DEFAULT_THRESHOLD) -> int:
    command = 0

    # Positive dx is LEFT in the firmware's frame.
    if displacement.dx > threshold:
        command |= LEFT
    elif displacement.dx < -threshold:
        command |= RIGHT

    if displacement.dy > threshold:
        command |= BACK
    elif displacement.dy < -threshold:
        command |= FORWARD

    return command


def to_payload(command: int) -> bytes:
    """Wire form of a command: a single ASCII byte."""
    if not 0 < command <= 0x0F:
        raise ValueError(f"not a direction command: {command!r}")
    return bytes([command])


def describe(command: int) -> str:
    """Readable label for logs, e.g. ``FORWARD+LEFT``."""
    parts: List[str] = [name for bit, name in _NAMES if command & bit]
    return "+".join(parts) if parts else "STOP"


__all__ = ["LEFT", "RIGHT", "FORWARD", "BACK", "DEFAULT_THRESHOLD", "encode", "to_payload", "describe"]
