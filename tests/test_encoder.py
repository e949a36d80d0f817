"""Tests for the direction command encoding."""

from __future__ import annotations

import pytest

from skaterbot_remote.encoder import (
    BACK,
    FORWARD,
    LEFT,
    RIGHT,
    describe,
    encode,
    to_payload,
)
from skaterbot_remote.joystick import ZERO, DisplacementVector


def test_rest_encodes_to_nothing() -> None:
    assert encode(ZERO) == 0


@pytest.mark.parametrize(
    "dx, dy, expected",
    [
        (0.0, -50.0, FORWARD),
        (0.0, 50.0, BACK),
        (50.0, 0.0, LEFT),
        (-50.0, 0.0, RIGHT),
        (-35.36, -35.36, FORWARD | RIGHT),
        (35.36, 35.36, BACK | LEFT),
        (-44.72, -22.36, RIGHT),
        (35.0, -40.0, FORWARD | LEFT),
        (10.0, 10.0, 0),
    ],
)
def test_components_are_thresholded_independently(dx: float, dy: float, expected: int) -> None:
    assert encode(DisplacementVector(dx, dy)) == expected


def test_threshold_is_exclusive() -> None:
    assert encode(DisplacementVector(30.0, -30.0)) == 0
    assert encode(DisplacementVector(30.01, -30.01)) == LEFT | FORWARD


def test_custom_threshold() -> None:
    assert encode(DisplacementVector(0.0, -10.0), threshold=5.0) == FORWARD
    assert encode(DisplacementVector(0.0, -10.0), threshold=20.0) == 0


def test_opposing_bits_never_combine() -> None:
    for dx in (-60.0, -31.0, 0.0, 31.0, 60.0):
        for dy in (-60.0, -31.0, 0.0, 31.0, 60.0):
            cmd = encode(DisplacementVector(dx, dy))
            assert not (cmd & LEFT and cmd & RIGHT)
            assert not (cmd & FORWARD and cmd & BACK)


def test_payload_is_single_byte() -> None:
    assert to_payload(FORWARD | LEFT) == b"\x05"
    assert to_payload(BACK | RIGHT) == b"\x0a"


@pytest.mark.parametrize("bad", [0, 0x10, -1])
def test_payload_rejects_non_commands(bad: int) -> None:
    with pytest.raises(ValueError):
        to_payload(bad)


def test_describe() -> None:
    assert describe(0) == "STOP"
    assert describe(FORWARD | LEFT) == "FORWARD+LEFT"
    assert describe(BACK) == "BACK"
