"""
Infrastructure components for the SyncMusic relay.

This package contains cross-cutting concerns:
- Logging configuration with environment-aware levels
- Custom exception definitions
"""

from .logging import setup_logging, get_logger, set_log_level
from .logging_manager import LoggingManager, LogLevel, Environment
from .exceptions import (
    RelayError,
    ConfigurationError,
    ProtocolError,
    NetworkError,
    NATTraversalError,
    PortMappingError,
    ExternalAddressError,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "set_log_level",
    "LoggingManager",
    "LogLevel",
    "Environment",
    # Exceptions
    "RelayError",
    "ConfigurationError",
    "ProtocolError",
    "NetworkError",
    "NATTraversalError",
    "PortMappingError",
    "ExternalAddressError",
]
