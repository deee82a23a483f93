"""
Configuration management for the SyncMusic relay.

This package provides:
- The RelayConfig data structure and its defaults
- Environment variable and .env loading
- Validation of numeric and boolean settings
"""

from .settings import RelayConfig, RelayConfigManager, config_manager

__all__ = [
    "RelayConfig",
    "RelayConfigManager",
    "config_manager",
]
