"""
Centralized logging entry points for the SyncMusic relay.

Components call ``setup_logging`` once at import time and keep the
returned logger at module level.
"""

import logging
from typing import Optional

from .logging_manager import (
    get_logger as _get_logger,
    set_log_level,
    setup_logging as _setup_logging,
)


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a relay component.

    Args:
        component_name: Name of the component (e.g., 'relay_router', 'nat_traversal')
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). If None,
                   uses the environment level: Development=DEBUG, Staging=INFO,
                   Production=WARNING
        log_file: Log file path used when the YAML configuration is missing

    Returns:
        logging.Logger: Configured logger instance
    """
    return _setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return _get_logger(component_name)
