"""
HTTP status API for the SyncMusic relay.

This module provides the read-only status endpoints.
"""

from .app import create_app
from .server import build_api_server, EmbeddedServer

__all__ = ["create_app", "build_api_server", "EmbeddedServer"]
