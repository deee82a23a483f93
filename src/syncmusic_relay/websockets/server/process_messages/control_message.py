"""
Control message handler for WebSocket relay server.

Text frames carry JSON control events such as ``{"type": "start-stream"}``.
Frames that cannot be understood are logged and dropped; the sender is
never told about it.
"""

import json
import logging
from typing import Any, Dict, Tuple

from websockets.asyncio.server import ServerConnection

from syncmusic_relay.core import ConnectionLifecycleHandler
from syncmusic_relay.core.types import CLIENT_EVENTS, EVT_AUDIO_CHUNK
from syncmusic_relay.infrastructure.exceptions import ProtocolError

from ...core import ConnectionManager


def parse_control_frame(message: str) -> Tuple[str, Dict[str, Any]]:
    """
    Decode a control frame into (event, body).

    Raises:
        ProtocolError: If the frame is not a JSON object naming a known
            control event
    """
    try:
        data = json.loads(message)
    except (ValueError, RecursionError) as e:
        raise ProtocolError(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        raise ProtocolError("Control frame must be a JSON object")

    event = data.get("type")
    if not isinstance(event, str):
        raise ProtocolError("Control frame has no 'type'")
    if event == EVT_AUDIO_CHUNK:
        raise ProtocolError("Audio chunks must be sent as binary frames")
    if event not in CLIENT_EVENTS:
        raise ProtocolError(f"Unknown message type: {event}")

    return event, data


class ControlMessageHandler:
    """Handles control messages (role changes, status, ping)."""

    def __init__(
        self,
        connections: ConnectionManager,
        lifecycle: ConnectionLifecycleHandler,
        logger: logging.Logger,
    ) -> None:
        self.connections = connections
        self.lifecycle = lifecycle
        self.logger = logger

    async def process_control_message(
        self, websocket: ServerConnection, message: str
    ) -> None:
        """Process one text frame."""
        connection_id = self.connections.get_connection_id(websocket)
        if connection_id is None:
            self.logger.warning("Received control frame from unregistered connection")
            return

        try:
            event, body = parse_control_frame(message)
        except ProtocolError as e:
            self.logger.warning(f"Ignoring frame from {connection_id}: {e}")
            return

        self.logger.debug(f"[EVENT {event}] from {connection_id}")
        await self.lifecycle.handle(connection_id, event, body)
