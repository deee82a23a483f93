"""
Status snapshots for the relay.
"""

import time
from typing import Callable, Optional

from .session_registry import SessionRegistry
from .types import NATMappingState, StatusSnapshot


class StatusReporter:
    """Assembles read-only status snapshots from the registry and NAT state."""

    def __init__(
        self,
        registry: SessionRegistry,
        nat_state: NATMappingState,
        clock: Callable[[], float] = time.monotonic,
        started_at: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.nat_state = nat_state
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at

    def uptime(self) -> float:
        return max(0.0, self._clock() - self.started_at)

    def snapshot(self) -> StatusSnapshot:
        """Read current counts, uptime and connectivity without mutating anything."""
        streamers, listeners = self.registry.counts()
        nat = self.nat_state
        return StatusSnapshot(
            streamer_count=streamers,
            listener_count=listeners,
            uptime_seconds=round(self.uptime(), 3),
            nat_enabled=nat.enabled,
            public_address=nat.public_address,
            local_address=nat.local_address,
            port=nat.port,
        )
