"""
WebSocket relay server for SyncMusic.

Accepts streamer and listener connections, feeds their frames to the relay
router through the connection lifecycle handler, and makes sure every
closed connection is cleaned up exactly once.
"""

import asyncio
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from syncmusic_relay.core import ConnectionLifecycleHandler, RelayRouter
from syncmusic_relay.infrastructure import setup_logging
from ..core import ConnectionManager
from .process_messages import (
    ControlMessageHandler,
    AudioMessageHandler,
)

logger = setup_logging(
    component_name="websocket_relay",
    log_file="logs/websocket_relay.log",
)


def describe_close(websocket: ServerConnection) -> str:
    """Human-readable close reason, e.g. '1001 going away'."""
    code = getattr(websocket, "close_code", None)
    reason = getattr(websocket, "close_reason", None) or ""
    if code is None:
        return "transport error"
    return f"{code} {reason}".strip()


class AudioRelayServer:
    """WebSocket server fanning audio from streamers out to listeners."""

    def __init__(
        self,
        router: RelayRouter,
        host: str = "0.0.0.0",
        port: int = 3000,
        ping_interval: Optional[int] = 30,
        max_connections: int = 100,
        max_message_size: int = 2**20,
    ) -> None:
        """
        Initialize the audio relay server.

        Args:
            router: Relay router holding the session state machine
            host: Host address to bind to
            port: Port to listen on (0 picks a free port)
            ping_interval: Keepalive ping interval in seconds, None disables it
            max_connections: Connections served concurrently; extra ones wait
            max_message_size: Largest accepted frame in bytes
        """
        self.host = host
        self.port = port
        self.server: Optional[Server] = None
        self.ping_interval = ping_interval
        self.max_message_size = max_message_size

        self.router = router
        self.connections = ConnectionManager()
        self.lifecycle = ConnectionLifecycleHandler(router, self.connections.deliver)
        self._connection_semaphore = asyncio.Semaphore(max_connections)

        self.control_handler = ControlMessageHandler(
            self.connections, self.lifecycle, logger
        )
        self.audio_handler = AudioMessageHandler(
            self.connections, self.lifecycle, logger
        )

    async def start(self) -> bool:
        """Start the audio relay server."""
        try:
            self.server = await serve(
                self._handle_connection,
                self.host,
                self.port,
                ping_interval=self.ping_interval,
                max_size=self.max_message_size,
                compression=None,  # No compression for low latency
            )
            logger.info(f"Audio relay server started on {self.host}:{self.bound_port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start audio relay server: {e}", exc_info=True)
            return False

    async def stop(self) -> None:
        """Stop the audio relay server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Audio relay server stopped")

    @property
    def bound_port(self) -> int:
        """Port actually listened on, useful when started with port 0."""
        if self.server is not None:
            for sock in self.server.sockets:
                return sock.getsockname()[1]
        return self.port

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Handle one client connection from open to close."""
        client_address = websocket.remote_address

        async with self._connection_semaphore:
            connection_id = self.connections.register(websocket)
            self.lifecycle.on_connect(connection_id)
            logger.info(f"[CONNECT] {connection_id} from {client_address}")

            try:
                async for message in websocket:
                    await self._process_frame(websocket, connection_id, message)
            except ConnectionClosed:
                logger.debug(f"Connection closed: {connection_id}")
            except Exception as e:
                logger.error(
                    f"Error handling connection {connection_id} from {client_address}: {e}",
                    exc_info=True,
                )
            finally:
                reason = describe_close(websocket)
                logger.info(f"[DISCONNECT] {connection_id} | reason: {reason}")
                self.connections.unregister(connection_id)
                await self.lifecycle.on_disconnect(connection_id, reason)

    async def _process_frame(
        self, websocket: ServerConnection, connection_id: str, message
    ) -> None:
        """Handle one frame; a failure is logged and the connection stays open."""
        try:
            if isinstance(message, str):
                await self.control_handler.process_control_message(websocket, message)
            elif isinstance(message, bytes):
                await self.audio_handler.process_audio_message(websocket, message)
        except ConnectionClosed:
            raise
        except Exception as e:
            logger.error(
                f"Error processing frame from {connection_id}: {e}", exc_info=True
            )

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "server_running": self.server is not None,
            "live_connections": self.lifecycle.live_connections,
            "connection_stats": self.connections.get_stats(),
            "routing_stats": self.router.get_stats(),
        }
