"""
NAT traversal for the SyncMusic relay.

This package exposes the relay's port through UPnP port mapping and
discovers the public address, with an external lookup service as fallback.
"""

from .traversal import (
    NATTraversalManager,
    discover_local_address,
    lookup_public_address,
    run_in_daemon_thread,
)

__all__ = [
    "NATTraversalManager",
    "discover_local_address",
    "lookup_public_address",
    "run_in_daemon_thread",
]
