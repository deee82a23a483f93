"""
Configuration management for the SyncMusic relay.

Settings come from environment variables, optionally seeded from a
``.env`` file. Every setting has a default so the relay starts with no
configuration at all.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from ..infrastructure.exceptions import ConfigurationError
from ..infrastructure.logging_manager import LogLevel

logger = logging.getLogger(__name__)

DEFAULT_IP_LOOKUP_URL = "https://api.ipify.org?format=json"


@dataclass
class RelayConfig:
    """Runtime configuration for the relay service."""

    # WebSocket relay
    host: str = "0.0.0.0"
    port: int = 3000
    ping_interval: int = 30
    max_connections: int = 100
    max_message_size: int = 2**20

    # HTTP status API
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # NAT traversal
    nat_enabled: bool = True
    public_address: Optional[str] = None
    discovery_timeout: float = 10.0
    mapping_timeout: float = 15.0
    lease_duration: int = 7200
    unmap_timeout: float = 5.0
    ip_lookup_url: str = DEFAULT_IP_LOOKUP_URL
    ip_lookup_timeout: float = 5.0

    log_level: str = "INFO"

    def __post_init__(self):
        """Post-initialization validation."""
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"Relay port out of range: {self.port}")
        if not 0 <= self.api_port <= 65535:
            raise ConfigurationError(f"API port out of range: {self.api_port}")
        if self.lease_duration < 0:
            raise ConfigurationError("NAT lease duration cannot be negative")
        if self.public_address == "":
            self.public_address = None
        self.log_level = self.log_level.upper()
        if self.log_level not in LogLevel.__members__:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")


class RelayConfigManager:
    """Loads RelayConfig from the process environment."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to environment file
        """
        self.env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self):
        """Load environment variables from file."""
        if os.path.exists(self.env_file_path):
            load_dotenv(dotenv_path=self.env_file_path)
            logger.info(f"Loaded environment from {self.env_file_path}")
        else:
            logger.debug(f"Environment file {self.env_file_path} not found")

    def _get_optional_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get optional environment variable."""
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        """
        Get an integer environment variable.

        Raises:
            ConfigurationError: If the value is not an integer
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")

    def _get_float(self, key: str, default: float) -> float:
        """
        Get a numeric environment variable.

        Raises:
            ConfigurationError: If the value is not a number
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {value!r}")

    def _get_bool(self, key: str, default: bool) -> bool:
        """
        Get a boolean environment variable.

        Raises:
            ConfigurationError: If the value is not a recognised boolean
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}")

    def get_config(self) -> RelayConfig:
        """
        Build the relay configuration.

        Returns:
            RelayConfig: Relay configuration

        Raises:
            ConfigurationError: If a value is malformed
        """
        try:
            config = RelayConfig(
                host=self._get_optional_env("RELAY_HOST", "0.0.0.0"),
                port=self._get_int("PORT", 3000),
                ping_interval=self._get_int("PING_INTERVAL", 30),
                max_connections=self._get_int("MAX_CONNECTIONS", 100),
                max_message_size=self._get_int("MAX_MESSAGE_SIZE", 2**20),
                api_enabled=self._get_bool("API_ENABLED", True),
                api_host=self._get_optional_env("API_HOST", "0.0.0.0"),
                api_port=self._get_int("API_PORT", 8000),
                nat_enabled=self._get_bool("NAT_ENABLED", True),
                public_address=self._get_optional_env("PUBLIC_ADDRESS"),
                discovery_timeout=self._get_float("NAT_DISCOVERY_TIMEOUT", 10.0),
                mapping_timeout=self._get_float("NAT_MAPPING_TIMEOUT", 15.0),
                lease_duration=self._get_int("NAT_LEASE_DURATION", 7200),
                unmap_timeout=self._get_float("NAT_UNMAP_TIMEOUT", 5.0),
                ip_lookup_url=self._get_optional_env(
                    "IP_LOOKUP_URL", DEFAULT_IP_LOOKUP_URL
                ),
                ip_lookup_timeout=self._get_float("IP_LOOKUP_TIMEOUT", 5.0),
                log_level=self._get_optional_env("LOG_LEVEL", "INFO"),
            )

            logger.info("Configuration loaded successfully")
            return config

        except ConfigurationError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise


# Global configuration manager instance
config_manager = RelayConfigManager()
