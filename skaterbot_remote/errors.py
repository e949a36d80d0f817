"""
errors.py
=========

Failures the session surfaces to the operator.  Every subclass of
:class:`SessionError` is shown as a blocking "Problem" dialog by the UI
and leaves the session in a state from which the user can simply try
again (rescan, reconnect, retype).

:class:`SerialLinkError` is not a ``SessionError``: it is
raised by the transports when a write cannot be performed and is only
ever logged by the session.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class for user-visible session failures."""

    title = "Problem"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportUnavailable(SessionError):
    """Bluetooth is switched off or the adapter vanished."""


class ConnectTimeout(SessionError):
    """The selected device did not become ready in time."""


class ConnectFailed(SessionError):
    """The transport reported that the connection attempt failed."""


class Disconnected(SessionError):
    """The link dropped without the user asking for it."""


class ValidationError(SessionError):
    """A tuning value could not be parsed."""


class OperationRejected(SessionError):
    """The requested action needs an established link."""


class SerialLinkError(Exception):
    """A transport could not carry out a request (not ready, write failed)."""


__all__ = [
    "SessionError",
    "TransportUnavailable",
    "ConnectTimeout",
    "ConnectFailed",
    "Disconnected",
    "ValidationError",
    "OperationRejected",
    "SerialLinkError",
]
