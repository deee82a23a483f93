"""
Session registry for the relay.

Tracks which connections are streamers and which are listeners. The
registry is a plain data structure: it never notifies anyone, the router
decides what a membership change means for other connections.
"""

from typing import FrozenSet, Set, Tuple

from .types import Role


class SessionRegistry:
    """Role membership keyed by connection identity, with O(1) lookups."""

    def __init__(self) -> None:
        self.streamers: Set[str] = set()
        self.listeners: Set[str] = set()

    def mark_streamer(self, connection_id: str) -> bool:
        """Make the connection a streamer. Returns True if it was not one."""
        self.listeners.discard(connection_id)
        if connection_id in self.streamers:
            return False
        self.streamers.add(connection_id)
        return True

    def mark_listener(self, connection_id: str) -> bool:
        """Make the connection a listener. Returns True if it was not one."""
        self.streamers.discard(connection_id)
        if connection_id in self.listeners:
            return False
        self.listeners.add(connection_id)
        return True

    def unmark_streamer(self, connection_id: str) -> bool:
        if connection_id not in self.streamers:
            return False
        self.streamers.discard(connection_id)
        return True

    def unmark_listener(self, connection_id: str) -> bool:
        if connection_id not in self.listeners:
            return False
        self.listeners.discard(connection_id)
        return True

    def is_streamer(self, connection_id: str) -> bool:
        return connection_id in self.streamers

    def is_listener(self, connection_id: str) -> bool:
        return connection_id in self.listeners

    def role_of(self, connection_id: str) -> Role:
        """
        Get the role a connection holds.

        Streamer wins if the sets were ever manipulated into overlapping.
        """
        if connection_id in self.streamers:
            return Role.STREAMER
        if connection_id in self.listeners:
            return Role.LISTENER
        return Role.NONE

    def forget(self, connection_id: str) -> Role:
        """Drop every membership of a connection and return its former role."""
        role = self.role_of(connection_id)
        self.streamers.discard(connection_id)
        self.listeners.discard(connection_id)
        return role

    def listener_ids(self) -> FrozenSet[str]:
        return frozenset(self.listeners)

    def counts(self) -> Tuple[int, int]:
        """Get (streamer_count, listener_count)."""
        return len(self.streamers), len(self.listeners)

    def get_stats(self) -> dict:
        """Get registry statistics."""
        streamers, listeners = self.counts()
        return {"streamers": streamers, "listeners": listeners}
