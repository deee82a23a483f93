"""
Shared WebSocket plumbing.
"""

from .connection_manager import ConnectionManager, encode_notification

__all__ = ["ConnectionManager", "encode_notification"]
