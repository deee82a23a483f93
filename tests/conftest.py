"""
Pytest configuration and shared fixtures for the SyncMusic relay test suite.

This module provides common fixtures and configuration for all tests.
"""

import time
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from syncmusic_relay.config.settings import RelayConfig
from syncmusic_relay.core import RelayRouter, SessionRegistry, StatusReporter
from syncmusic_relay.core.types import NATMappingState

FIXED_TIMESTAMP = 1700000000000


class FakeUPnP:
    """Stand-in for miniupnpc.UPnP with scriptable delays and failures."""

    def __init__(
        self,
        devices: int = 1,
        external_ip: str = "203.0.113.7",
        lanaddr: str = "192.168.1.20",
        discover_delay: float = 0.0,
        map_result: bool = True,
        map_error: Optional[Exception] = None,
        map_delay: float = 0.0,
        delete_delay: float = 0.0,
        delete_error: Optional[Exception] = None,
    ) -> None:
        self.discoverdelay = 0
        self.lanaddr = lanaddr
        self._devices = devices
        self._external_ip = external_ip
        self._discover_delay = discover_delay
        self._map_result = map_result
        self._map_error = map_error
        self.map_delay = map_delay
        self._delete_delay = delete_delay
        self._delete_error = delete_error

        self.mappings: Dict[Tuple[int, str], tuple] = {}
        self.add_calls: List[tuple] = []
        self.deleted: List[Tuple[int, str]] = []

    def discover(self) -> int:
        time.sleep(self._discover_delay)
        return self._devices

    def selectigd(self) -> str:
        return "http://192.168.1.1:5000/ctl/IPConn"

    def externalipaddress(self) -> str:
        return self._external_ip

    def addportmapping(self, eport, proto, host, iport, desc, remote, lease):
        time.sleep(self.map_delay)
        self.add_calls.append((eport, proto, host, iport, desc, remote, lease))
        if self._map_error is not None:
            raise self._map_error
        if self._map_result:
            self.mappings[(eport, proto)] = (host, iport, desc, lease)
        return self._map_result

    def deleteportmapping(self, eport, proto):
        time.sleep(self._delete_delay)
        if self._delete_error is not None:
            raise self._delete_error
        self.mappings.pop((eport, proto), None)
        self.deleted.append((eport, proto))
        return True


@pytest.fixture
def relay_config():
    """Configuration with short NAT timeouts so failures resolve quickly."""
    return RelayConfig(
        host="127.0.0.1",
        port=3000,
        api_enabled=False,
        discovery_timeout=0.5,
        mapping_timeout=0.5,
        ip_lookup_timeout=0.5,
        unmap_timeout=0.2,
        lease_duration=7200,
    )


@pytest.fixture
def registry():
    """Create an empty session registry."""
    return SessionRegistry()


@pytest.fixture
def nat_state():
    """Create a NAT mapping state as it looks before traversal runs."""
    return NATMappingState(port=3000, local_address="192.168.1.20")


@pytest.fixture
def status_reporter(registry, nat_state):
    """Create a status reporter over the shared registry and NAT state."""
    return StatusReporter(registry, nat_state)


@pytest.fixture
def router(registry, status_reporter):
    """Create a relay router with a fixed notification clock."""
    return RelayRouter(registry, status_reporter, clock=lambda: FIXED_TIMESTAMP)


@pytest.fixture
def fake_upnp():
    """Create a well-behaved fake UPnP gateway."""
    return FakeUPnP()


@pytest.fixture
def make_upnp():
    """Factory for fake UPnP gateways with custom behaviour."""
    return FakeUPnP


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection for testing."""
    websocket = MagicMock()
    websocket.id = "ws-1"
    websocket.remote_address = ("127.0.0.1", 12345)
    websocket.send = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
