"""
Connection registry for the WebSocket relay server.

Maps connection identities to live sockets in both directions and
delivers outbound messages to their recipients.
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from syncmusic_relay.core.types import OutboundMessage

logger = logging.getLogger(__name__)


def encode_notification(message: OutboundMessage) -> str:
    """Render a JSON notification frame."""
    return json.dumps({"type": message.event, "data": message.data})


class ConnectionManager:
    """Two-way lookup between connection ids and sockets, with O(1) access."""

    def __init__(self) -> None:
        self.clients: Dict[str, ServerConnection] = {}
        self._ids: Dict[ServerConnection, str] = {}

        self.stats = {
            "total_connections": 0,
            "messages_sent": 0,
            "send_failures": 0,
        }

    def register(self, websocket: ServerConnection) -> str:
        """Register a socket and return its connection id."""
        connection_id = str(websocket.id)
        self.clients[connection_id] = websocket
        self._ids[websocket] = connection_id
        self.stats["total_connections"] += 1
        return connection_id

    def unregister(self, connection_id: str) -> None:
        websocket = self.clients.pop(connection_id, None)
        if websocket is not None:
            self._ids.pop(websocket, None)

    def get_connection_id(self, websocket: ServerConnection) -> Optional[str]:
        return self._ids.get(websocket)

    def get_client_websocket(self, connection_id: str) -> Optional[ServerConnection]:
        return self.clients.get(connection_id)

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self.clients

    async def deliver(self, message: OutboundMessage) -> None:
        """
        Send a message to all its recipients concurrently.

        Binary payloads go out as binary frames, notifications as JSON text.
        A failed send is logged; closing the connection is left to its own
        handler.
        """
        frame = bytes(message.data) if message.is_binary else encode_notification(message)

        targets: List[str] = []
        sends = []
        for connection_id in message.recipients:
            websocket = self.clients.get(connection_id)
            if websocket is None:
                continue
            targets.append(connection_id)
            sends.append(websocket.send(frame))

        if not sends:
            return

        results = await asyncio.gather(*sends, return_exceptions=True)
        for connection_id, result in zip(targets, results):
            if isinstance(result, ConnectionClosed):
                self.stats["send_failures"] += 1
                logger.debug(f"{connection_id} closed before {message.event} arrived")
            elif isinstance(result, Exception):
                self.stats["send_failures"] += 1
                logger.error(f"Error sending {message.event} to {connection_id}: {result}")
            else:
                self.stats["messages_sent"] += 1

    def get_stats(self) -> Dict[str, int]:
        """Get registry statistics."""
        return {"connected_clients": len(self.clients), **self.stats}
