"""
Test suite for the SyncMusic relay.

This package contains tests organized by type:
- Unit tests for individual components
- Integration tests against a live relay server
- Test fixtures and utilities
"""
