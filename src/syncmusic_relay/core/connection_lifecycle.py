"""
Connection lifecycle handling for the relay.

Bridges transport notifications (connect, event, disconnect) to the relay
router and hands the router's output to a delivery coroutine. Failures
while handling one connection are logged and stay with that connection.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

from .relay_router import RelayRouter
from .types import EVT_DISCONNECT, OutboundMessage

logger = logging.getLogger(__name__)

Deliver = Callable[[OutboundMessage], Awaitable[None]]


class ConnectionLifecycleHandler:
    """Feeds per-connection events into the router and guarantees cleanup."""

    def __init__(self, router: RelayRouter, deliver: Deliver) -> None:
        self.router = router
        self._deliver = deliver
        self._live: Set[str] = set()

    @property
    def live_connections(self) -> int:
        return len(self._live)

    def is_live(self, connection_id: str) -> bool:
        return connection_id in self._live

    def on_connect(self, connection_id: str) -> None:
        self._live.add(connection_id)
        logger.info(f"Connection {connection_id} opened ({len(self._live)} live)")

    async def handle(self, connection_id: str, event: str, payload: Any = None) -> None:
        """Dispatch a client event and deliver whatever it produces."""
        if connection_id not in self._live:
            logger.debug(f"Ignoring {event} from closed connection {connection_id}")
            return

        try:
            outbound = self.router.dispatch(connection_id, event, payload)
            await self._send_all(outbound)
        except Exception as e:
            logger.error(
                f"Error handling {event} from {connection_id}: {e}", exc_info=True
            )

    async def on_disconnect(self, connection_id: str, reason: Optional[str] = None) -> None:
        """
        Run disconnect cleanup once per connection.

        The registry is always cleared for the connection, even when
        delivering the resulting notifications fails.
        """
        if connection_id not in self._live:
            return
        self._live.discard(connection_id)

        outbound: List[OutboundMessage] = []
        try:
            outbound = self.router.dispatch(connection_id, EVT_DISCONNECT, reason=reason)
        except Exception as e:
            logger.error(
                f"Error processing disconnect of {connection_id}: {e}", exc_info=True
            )
        finally:
            self.router.registry.forget(connection_id)

        try:
            await self._send_all(outbound)
        except Exception as e:
            logger.error(
                f"Error notifying peers about {connection_id}: {e}", exc_info=True
            )

    async def _send_all(self, outbound: List[OutboundMessage]) -> None:
        for message in outbound:
            await self._deliver(message)
