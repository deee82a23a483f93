"""
Environment-aware logging management for the SyncMusic relay.

Logging is configured from the packaged ``logging.yaml`` when it is
available and falls back to a console/file setup otherwise.

Environment Log Levels:
- Development: DEBUG and above
- Staging: INFO and above
- Production: WARNING and above
"""

import logging
import logging.config
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Set

import yaml

NOISY_LOGGERS = (
    "websockets",
    "websockets.server",
    "aiohttp.access",
    "aiohttp.client",
    "uvicorn.access",
)


class LogLevel(Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(Enum):
    """Environment enumeration."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LoggingManager:
    """Centralized logging management with production controls."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize logging manager.

        Args:
            config_path: Path to YAML configuration file. If None, uses the
                logging.yaml shipped with the package.
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / "logging.yaml"

        self.config_path = config_path
        self._config_cache: Optional[Dict[str, Any]] = None
        self._yaml_applied = False
        self._environment = self._detect_environment()
        self._level_override: Optional[str] = None
        self._components: Set[str] = set()

    def _detect_environment(self) -> Environment:
        """Detect current environment from the ENVIRONMENT variable."""
        env = os.getenv("ENVIRONMENT", "development").lower()

        if env in ["prod", "production"]:
            return Environment.PRODUCTION
        elif env in ["staging", "stage"]:
            return Environment.STAGING
        else:
            return Environment.DEVELOPMENT

    def _load_yaml_config(self) -> Optional[Dict[str, Any]]:
        """Load YAML logging configuration."""
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            return None

        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f)
            self._config_cache = config
            return config
        except (yaml.YAMLError, IOError) as e:
            logging.getLogger(__name__).warning(
                f"Failed to load YAML logging config: {e}"
            )
            return None

    def _get_environment_log_level(self) -> str:
        """Get appropriate log level for current environment."""
        if self._level_override is not None:
            return self._level_override
        if self._environment == Environment.PRODUCTION:
            return "WARNING"
        elif self._environment == Environment.STAGING:
            return "INFO"
        else:
            return "DEBUG"

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Pin application loggers and handlers to the environment's level."""
        if self._environment == Environment.DEVELOPMENT:
            return config

        env_log_level = self._get_environment_log_level()

        if "root" in config:
            config["root"]["level"] = env_log_level

        for logger_name, logger_config in config.get("loggers", {}).items():
            if logger_name in NOISY_LOGGERS:
                continue
            logger_config["level"] = env_log_level

        for handler_name, handler_config in config.get("handlers", {}).items():
            if handler_name.startswith("file_") and handler_config.get("level") == "DEBUG":
                handler_config["level"] = env_log_level

        return config

    def _apply_yaml_config(self, config: Dict[str, Any]) -> None:
        """Run dictConfig once per process; later calls only fetch loggers."""
        if self._yaml_applied:
            return

        config = self._apply_environment_overrides(config)
        os.makedirs("logs", exist_ok=True)
        logging.config.dictConfig(config)
        self._yaml_applied = True

    def setup_logging(
        self,
        component_name: str,
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Set up logging for a component.

        Args:
            component_name: Name of the component
            log_level: Override log level (if None, uses the environment level)
            log_file: Log file used by the fallback configuration

        Returns:
            Configured logger instance
        """
        if log_level is None:
            log_level = self._get_environment_log_level()
        self._components.add(component_name)

        config = self._load_yaml_config()

        if config:
            self._apply_yaml_config(config)
            logger = logging.getLogger(component_name)
            logger.setLevel(getattr(logging, log_level.upper()))
            self._suppress_noisy_loggers()
            return logger

        return self._setup_basic_logging(component_name, log_level, log_file)

    def _setup_basic_logging(
        self,
        component_name: str,
        log_level: str,
        log_file: Optional[str],
    ) -> logging.Logger:
        """Set up basic logging when YAML config is not available."""
        logger = logging.getLogger(component_name)
        logger.setLevel(getattr(logging, log_level.upper()))
        logger.handlers.clear()

        if self._environment == Environment.PRODUCTION:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logger.level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logger.level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        self._suppress_noisy_loggers()
        return logger

    def _suppress_noisy_loggers(self):
        """Keep chatty third-party loggers at WARNING."""
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    def get_environment(self) -> Environment:
        """Get current environment."""
        return self._environment

    def set_level(self, log_level: str) -> None:
        """
        Pin every relay component logger to one level.

        Applies to loggers already set up and to those set up later.
        """
        level = log_level.upper()
        if level not in LogLevel.__members__:
            raise ValueError(f"Unknown log level: {log_level}")
        self._level_override = level
        logging.getLogger().setLevel(level)
        for component_name in self._components:
            logging.getLogger(component_name).setLevel(level)


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Set up logging for a component (convenience function)."""
    return _logging_manager.setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for a component."""
    return logging.getLogger(component_name)


def set_log_level(log_level: str) -> None:
    """Apply the configured LOG_LEVEL to all relay loggers."""
    _logging_manager.set_level(log_level)
