"""
Core components for the SyncMusic relay.

This package contains the transport-independent relay logic: role
bookkeeping, the routing state machine, status snapshots and the
connection lifecycle glue.
"""

from .types import Role, OutboundMessage, NATMappingState, StatusSnapshot
from .session_registry import SessionRegistry
from .relay_router import RelayRouter
from .status_reporter import StatusReporter
from .connection_lifecycle import ConnectionLifecycleHandler

__all__ = [
    "Role",
    "OutboundMessage",
    "NATMappingState",
    "StatusSnapshot",
    "SessionRegistry",
    "RelayRouter",
    "StatusReporter",
    "ConnectionLifecycleHandler",
]
