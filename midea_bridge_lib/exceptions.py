"""Exceptions raised by the serial bridge library."""


class MideaBridgeError(Exception):
    """Base class for all bridge errors."""


class TransportError(MideaBridgeError):
    """Socket level failure: not connected, write failed or connection dropped."""


class FrameError(MideaBridgeError):
    """A received frame had a bad header or checksum."""

    def __init__(self, message: str, raw: bytes = b""):
        super().__init__(message)
        self.raw = raw


class BridgeTimeoutError(MideaBridgeError, TimeoutError):
    """A request or status wait did not complete in time."""


class ProtocolError(MideaBridgeError):
    """The device answered with an error-flagged response."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class UnknownDatapointError(ValueError):
    """The datapoint id is not part of the request catalog."""


class NotWritableError(ValueError):
    """The datapoint exists but has no set command."""
