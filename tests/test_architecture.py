#!/usr/bin/env python3
"""
Architecture tests for the SyncMusic relay.

Verifies that every layer can be imported and wired together, and that
configuration is read from the environment as documented.
"""

import logging

import pytest

from syncmusic_relay.config.settings import RelayConfig, RelayConfigManager
from syncmusic_relay.infrastructure.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RELAY_ENV_VARS = (
    "RELAY_HOST",
    "PORT",
    "PING_INTERVAL",
    "MAX_CONNECTIONS",
    "MAX_MESSAGE_SIZE",
    "API_ENABLED",
    "API_HOST",
    "API_PORT",
    "NAT_ENABLED",
    "PUBLIC_ADDRESS",
    "NAT_DISCOVERY_TIMEOUT",
    "NAT_MAPPING_TIMEOUT",
    "NAT_LEASE_DURATION",
    "NAT_UNMAP_TIMEOUT",
    "IP_LOOKUP_URL",
    "IP_LOOKUP_TIMEOUT",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in RELAY_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def manager(tmp_path):
    return RelayConfigManager(env_file_path=str(tmp_path / "missing.env"))


class TestArchitectureImports:
    """Test that all modules can be imported correctly."""

    def test_main_package_import(self):
        """Test that the main package can be imported."""
        import syncmusic_relay

        assert hasattr(syncmusic_relay, "__version__")
        assert hasattr(syncmusic_relay, "__author__")

    def test_core_imports(self):
        """Test core module imports."""
        from syncmusic_relay.core import (
            ConnectionLifecycleHandler,
            RelayRouter,
            SessionRegistry,
            StatusReporter,
        )
        from syncmusic_relay.core.relay_router import RelayRouter as RelayRouterClass
        from syncmusic_relay.core.session_registry import (
            SessionRegistry as SessionRegistryClass,
        )

        assert RelayRouter == RelayRouterClass
        assert SessionRegistry == SessionRegistryClass
        assert StatusReporter is not None
        assert ConnectionLifecycleHandler is not None

    def test_networking_imports(self):
        """Test WebSocket, API and NAT imports."""
        from syncmusic_relay.api import EmbeddedServer, build_api_server, create_app
        from syncmusic_relay.nat import NATTraversalManager
        from syncmusic_relay.websockets.core import ConnectionManager
        from syncmusic_relay.websockets.server import AudioRelayServer

        assert AudioRelayServer is not None
        assert ConnectionManager is not None
        assert NATTraversalManager is not None
        assert callable(create_app)
        assert callable(build_api_server)
        assert EmbeddedServer is not None

    def test_infrastructure_imports(self):
        """Test infrastructure module imports."""
        from syncmusic_relay.infrastructure import (
            NATTraversalError,
            RelayError,
            get_logger,
            setup_logging,
        )

        assert issubclass(NATTraversalError, RelayError)
        assert callable(setup_logging)
        assert isinstance(get_logger("architecture"), logging.Logger)

    def test_exception_hierarchy(self):
        """Only exceptions the relay raises are exported."""
        from syncmusic_relay import infrastructure
        from syncmusic_relay.infrastructure.exceptions import (
            ExternalAddressError,
            NATTraversalError,
            NetworkError,
            PortMappingError,
        )

        assert "WebSocketError" not in infrastructure.__all__
        assert not hasattr(infrastructure, "WebSocketError")
        assert NATTraversalError.__bases__ == (NetworkError,)
        assert issubclass(PortMappingError, NATTraversalError)
        assert issubclass(ExternalAddressError, NATTraversalError)


class TestConfigurationSystem:
    """Test the configuration system."""

    def test_config_defaults(self):
        """Test configuration defaults."""
        config = RelayConfig()

        assert config.port == 3000
        assert config.api_port == 8000
        assert config.nat_enabled is True
        assert config.public_address is None
        assert config.lease_duration == 7200
        assert config.ip_lookup_url == "https://api.ipify.org?format=json"

    def test_config_validation(self):
        """Out-of-range values are rejected."""
        with pytest.raises(ConfigurationError):
            RelayConfig(port=70000)
        with pytest.raises(ConfigurationError):
            RelayConfig(lease_duration=-1)

    def test_config_manager_defaults(self, clean_env, manager):
        """An empty environment yields the defaults."""
        assert manager.get_config() == RelayConfig()

    def test_config_manager_reads_environment(self, clean_env, manager):
        """Environment variables override the defaults."""
        clean_env.setenv("PORT", "4000")
        clean_env.setenv("NAT_ENABLED", "false")
        clean_env.setenv("PUBLIC_ADDRESS", "192.0.2.10")
        clean_env.setenv("NAT_DISCOVERY_TIMEOUT", "2.5")
        clean_env.setenv("API_ENABLED", "no")

        config = manager.get_config()

        assert config.port == 4000
        assert config.nat_enabled is False
        assert config.public_address == "192.0.2.10"
        assert config.discovery_timeout == 2.5
        assert config.api_enabled is False

    def test_empty_public_address_means_unset(self, clean_env, manager):
        """PUBLIC_ADDRESS= is treated as not configured."""
        clean_env.setenv("PUBLIC_ADDRESS", "")

        assert manager.get_config().public_address is None

    @pytest.mark.parametrize(
        "key, value",
        [
            ("PORT", "three thousand"),
            ("PORT", "99999"),
            ("NAT_ENABLED", "maybe"),
            ("NAT_UNMAP_TIMEOUT", "soon"),
        ],
    )
    def test_config_manager_rejects_bad_values(self, clean_env, manager, key, value):
        """Malformed values raise ConfigurationError."""
        clean_env.setenv(key, value)

        with pytest.raises(ConfigurationError):
            manager.get_config()


class TestCoreComponents:
    """Test wiring of the core components."""

    def test_service_wiring(self):
        """RelayService shares one registry and NAT state across components."""
        from syncmusic_relay.service import RelayService

        config = RelayConfig(port=0, api_enabled=False)
        service = RelayService(config)

        assert service.router.registry is service.registry
        assert service.status_reporter.registry is service.registry
        assert service.nat_manager.state is service.nat_state
        assert service.api_server is None

    def test_service_builds_api_server(self):
        """The status API is created when enabled."""
        from syncmusic_relay.api import EmbeddedServer
        from syncmusic_relay.service import RelayService

        service = RelayService(RelayConfig(port=0, api_port=0))

        assert isinstance(service.api_server, EmbeddedServer)


class TestLoggingSystem:
    """Test the logging manager."""

    def test_basic_logging_without_yaml(self, tmp_path):
        """A missing YAML file falls back to console and file handlers."""
        from syncmusic_relay.infrastructure import LoggingManager

        manager = LoggingManager(config_path=tmp_path / "missing.yaml")
        log_file = tmp_path / "component.log"

        component = manager.setup_logging(
            "architecture_basic", log_level="INFO", log_file=str(log_file)
        )
        component.info("hello")

        assert component.level == logging.INFO
        assert len(component.handlers) == 2
        assert log_file.exists()
        assert logging.getLogger("websockets").level == logging.WARNING
        for handler in component.handlers:
            handler.close()

    def test_set_level_applies_to_components(self, tmp_path):
        """LOG_LEVEL pins existing and future component loggers."""
        from syncmusic_relay.infrastructure import LoggingManager

        root = logging.getLogger()
        previous_root_level = root.level
        manager = LoggingManager(config_path=tmp_path / "missing.yaml")
        early = manager.setup_logging("architecture_early", log_level="DEBUG")
        try:
            manager.set_level("error")
            late = manager.setup_logging("architecture_late")

            assert early.level == logging.ERROR
            assert late.level == logging.ERROR
            with pytest.raises(ValueError):
                manager.set_level("chatty")
        finally:
            root.setLevel(previous_root_level)

    def test_log_level_is_validated(self):
        """RelayConfig normalises and validates LOG_LEVEL."""
        assert RelayConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ConfigurationError):
            RelayConfig(log_level="chatty")
