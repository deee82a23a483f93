"""
Custom exceptions for the SyncMusic relay.

This module defines the exceptions raised inside the relay, grouped so
callers can catch a whole family (every NAT failure, every network
failure) with a single clause.
"""


class RelayError(Exception):
    """Base exception for all relay related errors."""

    pass


class ConfigurationError(RelayError):
    """Raised when configuration values are missing or malformed."""

    pass


class ProtocolError(RelayError):
    """Raised when a client frame cannot be understood."""

    pass


class NetworkError(RelayError):
    """Raised when there are network communication errors."""

    pass


class NATTraversalError(NetworkError):
    """Raised when a NAT traversal step fails."""

    pass


class PortMappingError(NATTraversalError):
    """Raised when the gateway refuses or never answers a mapping request."""

    pass


class ExternalAddressError(NATTraversalError):
    """Raised when the public address cannot be determined."""

    pass
