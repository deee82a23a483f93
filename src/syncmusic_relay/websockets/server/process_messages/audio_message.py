"""
Audio message handler for WebSocket relay server.

Every binary frame is an audio chunk. Whether it is forwarded is up to the
router, which only accepts chunks from active streamers.
"""

import logging

from websockets.asyncio.server import ServerConnection

from syncmusic_relay.core import ConnectionLifecycleHandler
from syncmusic_relay.core.types import EVT_AUDIO_CHUNK

from ...core import ConnectionManager


class AudioMessageHandler:
    """Hands binary frames to the router as audio-chunk events."""

    def __init__(
        self,
        connections: ConnectionManager,
        lifecycle: ConnectionLifecycleHandler,
        logger: logging.Logger,
    ) -> None:
        self.connections = connections
        self.lifecycle = lifecycle
        self.logger = logger

    async def process_audio_message(
        self, websocket: ServerConnection, audio_data: bytes
    ) -> None:
        """Process binary audio messages."""
        connection_id = self.connections.get_connection_id(websocket)
        if connection_id is None:
            self.logger.warning("Received audio from unregistered connection")
            return

        await self.lifecycle.handle(connection_id, EVT_AUDIO_CHUNK, audio_data)
