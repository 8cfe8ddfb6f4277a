"""Exceptions raised or reported by the AirPlay client."""

from typing import Optional


class AirPlayError(Exception):
    """Base class for all client errors."""


class TransportError(AirPlayError):
    """The connection to the device could not be established or was reset."""


class UnexpectedStatusError(AirPlayError):
    """The device answered with a status other than 200."""

    def __init__(self, status: int, reason: Optional[str] = None):
        super().__init__(f"Unexpected response from device: {status}")
        self.status = status
        self.reason = reason


class BodyDecodeError(AirPlayError, ValueError):
    """A body declared as a property list could not be parsed."""


class ReverseChannelError(AirPlayError):
    """The device refused to open the reverse event channel."""


class ClientDestroyedError(AirPlayError):
    """The client was destroyed and no longer talks to the device."""
