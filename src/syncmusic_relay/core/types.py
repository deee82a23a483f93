"""
Common types and constants for the SyncMusic relay.

Event names are shared by the router, the frame handlers and the tests,
so they live here instead of being hardcoded at each use.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Final, Optional, Union

# Client -> server events
EVT_START_STREAM: Final[str] = "start-stream"
EVT_JOIN_STREAM: Final[str] = "join-stream"
EVT_AUDIO_CHUNK: Final[str] = "audio-chunk"
EVT_STOP_STREAM: Final[str] = "stop-stream"
EVT_STOP_LISTENING: Final[str] = "stop-listening"
EVT_GET_STATUS: Final[str] = "get-status"
EVT_PING: Final[str] = "ping"

# Raised by the transport, never sent by clients
EVT_DISCONNECT: Final[str] = "disconnect"

CLIENT_EVENTS: Final[FrozenSet[str]] = frozenset(
    {
        EVT_START_STREAM,
        EVT_JOIN_STREAM,
        EVT_AUDIO_CHUNK,
        EVT_STOP_STREAM,
        EVT_STOP_LISTENING,
        EVT_GET_STATUS,
        EVT_PING,
    }
)

# Server -> client events
EVT_STREAMER_STARTED: Final[str] = "streamer-started"
EVT_STREAMER_STOPPED: Final[str] = "streamer-stopped"
EVT_STREAMER_AVAILABLE: Final[str] = "streamer-available"
EVT_SERVER_STATUS: Final[str] = "server-status"
EVT_PONG: Final[str] = "pong"

# streamer-stopped reasons
STOP_REASON_MANUAL: Final[str] = "manual"
STOP_REASON_DISCONNECT: Final[str] = "disconnect"
STOP_REASON_ROLE_CHANGE: Final[str] = "role-change"

SERVER_VERSION: Final[str] = "1.0.0"


class Role(Enum):
    """Role a connection currently holds."""

    NONE = "none"
    STREAMER = "streamer"
    LISTENER = "listener"


@dataclass(frozen=True)
class OutboundMessage:
    """
    A message the relay wants delivered.

    ``data`` is a JSON-serialisable dict for notifications or raw bytes for
    audio chunks. ``recipients`` is resolved when the message is built, so
    it reflects the registry at that moment.
    """

    event: str
    data: Union[Dict[str, Any], bytes]
    recipients: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_binary(self) -> bool:
        return isinstance(self.data, (bytes, bytearray, memoryview))


@dataclass
class NATMappingState:
    """Process-wide view of how the relay is reachable from outside."""

    enabled: bool = False
    public_address: Optional[str] = None
    local_address: str = "127.0.0.1"
    port: int = 0
    external_port: Optional[int] = None
    method: Optional[str] = None
    lease_duration: int = 0
    last_error: Optional[str] = None


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of the relay, shared by get-status and /status."""

    streamer_count: int
    listener_count: int
    uptime_seconds: float
    nat_enabled: bool
    public_address: Optional[str]
    local_address: str
    port: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "streamerCount": self.streamer_count,
            "listenerCount": self.listener_count,
            "uptimeSeconds": self.uptime_seconds,
            "natEnabled": self.nat_enabled,
            "publicAddress": self.public_address,
            "localAddress": self.local_address,
            "port": self.port,
        }
