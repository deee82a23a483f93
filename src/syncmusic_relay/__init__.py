"""
SyncMusic Relay - real-time audio relay over WebSockets.

One streamer connection pushes binary audio chunks; the relay fans them out
to every subscribed listener and makes itself reachable from behind NAT.

Architecture:
- Core: Session registry, routing state machine, status snapshots
- WebSockets: Relay server, connection registry, frame handlers
- NAT: UPnP port mapping and public address discovery
- API: HTTP status endpoints
- Config: Environment-based configuration
- Infrastructure: Logging and exceptions
"""

__version__ = "1.0.0"
__author__ = "SyncMusic Team"

# Core components
from .core import (
    Role,
    OutboundMessage,
    NATMappingState,
    StatusSnapshot,
    SessionRegistry,
    RelayRouter,
    StatusReporter,
    ConnectionLifecycleHandler,
)

# Configuration
from .config import RelayConfig, RelayConfigManager, config_manager

# Infrastructure
from .infrastructure.logging import setup_logging, get_logger
from .infrastructure.exceptions import (
    RelayError,
    ConfigurationError,
    ProtocolError,
    NetworkError,
    NATTraversalError,
)

# Networking components
from .nat import NATTraversalManager
from .websockets.server import AudioRelayServer

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Core components
    "Role",
    "OutboundMessage",
    "NATMappingState",
    "StatusSnapshot",
    "SessionRegistry",
    "RelayRouter",
    "StatusReporter",
    "ConnectionLifecycleHandler",
    # Configuration
    "RelayConfig",
    "RelayConfigManager",
    "config_manager",
    # Infrastructure
    "setup_logging",
    "get_logger",
    "RelayError",
    "ConfigurationError",
    "ProtocolError",
    "NetworkError",
    "NATTraversalError",
    # Networking components
    "NATTraversalManager",
    "AudioRelayServer",
]
