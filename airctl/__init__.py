"""airctl - control AirPlay receivers over HTTP."""

from .client import AirPlayClient
from .codec import Document, Empty, TextParams
from .config import DEFAULT_PORT, ClientConfig
from .connection import Response
from .errors import (
    AirPlayError,
    BodyDecodeError,
    ClientDestroyedError,
    ReverseChannelError,
    TransportError,
    UnexpectedStatusError,
)
from .events import Event

__version__ = "0.1.0"
__all__ = [
    "AirPlayClient",
    "ClientConfig",
    "DEFAULT_PORT",
    "Document",
    "Empty",
    "TextParams",
    "Response",
    "Event",
    "AirPlayError",
    "BodyDecodeError",
    "ClientDestroyedError",
    "ReverseChannelError",
    "TransportError",
    "UnexpectedStatusError",
]
