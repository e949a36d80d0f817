"""Forward PID / speed tuning values to the robot.

Values are never stored locally: each accepted edit goes straight to the
device as ``<prefix><text>\\r`` and the device decides whether the value
is in range.  The only local check is that the text is a plain decimal
number.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Union

from .errors import ValidationError
from .session import SessionController

LOG = logging.getLogger("skaterbot.tuning")

SAVE_COMMAND = b"W"
LINE_END = "\r"

_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class TuningParameter(Enum):
    P = "pidP"
    I = "pidI"  # noqa: E741
    D = "pidD"
    DEAD_BAND = "pidDB"
    OUTPUT_MIN = "pidOPMin"
    OUTPUT_MAX = "pidOPMax"
    TURN_SPEED = "turnSpeed"
    MAX_SPEED = "maxSpeed"

    @property
    def prefix(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    TuningParameter.P: "P",
    TuningParameter.I: "I",
    TuningParameter.D: "D",
    TuningParameter.DEAD_BAND: "Dead band",
    TuningParameter.OUTPUT_MIN: "Output min",
    TuningParameter.OUTPUT_MAX: "Output max",
    TuningParameter.TURN_SPEED: "Turn speed",
    TuningParameter.MAX_SPEED: "Max speed",
}


def is_number(text: str) -> bool:
    return _NUMBER.fullmatch(text) is not None


def resolve_parameter(parameter: Union[TuningParameter, str]) -> TuningParameter:
    """Accept a member, its name (``"DEAD_BAND"``) or its prefix (``"pidDB"``)."""
    if isinstance(parameter, TuningParameter):
        return parameter
    try:
        return TuningParameter[parameter]
    except KeyError:
        pass
    try:
        return TuningParameter(parameter)
    except ValueError:
        raise ValidationError(f"Unknown parameter {parameter!r}") from None


def format_command(parameter: TuningParameter, raw_text: str) -> bytes:
    return f"{parameter.prefix}{raw_text}{LINE_END}".encode("ascii")


class TuningChannel:
    def __init__(self, session: SessionController) -> None:
        self._session = session

    def submit(self, parameter: Union[TuningParameter, str], raw_text: str) -> None:
        """Send one tuning value.

        Raises :class:`ValidationError` (and sends nothing) when
        ``raw_text`` is not a number or ``parameter`` is not recognised.
        """
        if not is_number(raw_text):
            raise ValidationError("Try a number")
        target = resolve_parameter(parameter)
        message = format_command(target, raw_text)
        if self._session.send(message):
            LOG.info("%s = %s", target.prefix, raw_text)
        else:
            LOG.warning("%s = %s not sent, link not ready", target.prefix, raw_text)

    def save(self) -> bool:
        """Ask the robot to write its current parameters to EEPROM."""
        if not self._session.is_linked:
            return False
        return self._session.send(SAVE_COMMAND)


__all__ = ["TuningParameter", "TuningChannel", "is_number", "resolve_parameter", "format_command"]
