from dataclasses import dataclass
from typing import Optional

DEFAULT_PORT = 7000
USER_AGENT = "iTunes/11.0.2"


@dataclass
class ClientConfig:
    """Configuration for an AirPlay client."""

    user_agent: str = USER_AGENT
    # The device stops playback when the socket that sent /play goes away,
    # so idle control sockets are kept for a long time.
    connection_keepalive: float = 3600.0
    # Idle timeout of the reverse event channel; None never times out.
    event_keepalive: Optional[float] = None
