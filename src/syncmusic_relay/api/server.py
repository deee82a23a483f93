"""
uvicorn runner for the status API.
"""

import contextlib
import logging

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


class EmbeddedServer(uvicorn.Server):
    """
    uvicorn server hosted inside the relay's event loop.

    SIGINT/SIGTERM are left to the relay service, and a failed startup
    (for example an occupied port) is logged instead of exiting the process.
    """

    startup_failed = False

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass

    async def serve(self, sockets=None) -> None:
        try:
            await super().serve(sockets=sockets)
        except SystemExit as e:
            self.startup_failed = True
            logger.error(
                f"Status API on {self.config.host}:{self.config.port} failed to "
                f"start (exit code {e.code}); relay keeps running without it"
            )


def build_api_server(app: FastAPI, host: str = "0.0.0.0", port: int = 8000) -> EmbeddedServer:
    """
    Build the status API server without starting it.

    Args:
        app: FastAPI application to serve
        host: Host to bind to
        port: Port to bind to
    """
    config = uvicorn.Config(app=app, host=host, port=port, log_level="warning")
    logger.info(f"Status API configured on {host}:{port}")
    return EmbeddedServer(config)
