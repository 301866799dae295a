"""Errors raised by the SP108E client."""

from __future__ import annotations


class Sp108eError(Exception):
    """Base class for SP108E client errors."""


class InvalidArgument(Sp108eError, ValueError):
    """A command argument was rejected before anything was sent."""


class ConnectError(Sp108eError):
    """The TCP connection could not be established in time."""


class DeviceIOError(Sp108eError):
    """Writing to or reading from an open connection failed."""


class ReadTimeout(DeviceIOError):
    """The device did not answer within the read timeout."""


class DecodeError(Sp108eError):
    """A status payload did not have the expected layout."""


class RetriesExhausted(Sp108eError):
    """Every attempt of a command failed.

    The final underlying error is kept on ``last_error`` and is also the
    exception's ``__cause__``.
    """

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        """Initialize with the attempt count and the last failure."""
        super().__init__(f"Command failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
