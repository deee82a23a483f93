"""
Relay service bootstrap.

Wires the registry, router, status reporter, WebSocket relay, status API and
NAT traversal together, runs until SIGINT/SIGTERM, then shuts down in order:
port mapping first (bounded), then the HTTP and WebSocket servers.
"""

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

from .api import build_api_server, create_app
from .config import RelayConfig, config_manager
from .core import RelayRouter, SessionRegistry, StatusReporter
from .core.types import NATMappingState
from .infrastructure import set_log_level, setup_logging
from .infrastructure.exceptions import ConfigurationError
from .nat import NATTraversalManager
from .websockets.server import AudioRelayServer

logger = setup_logging(
    component_name="relay_service",
    log_file="logs/relay_service.log",
)

API_SHUTDOWN_TIMEOUT = 5.0


class RelayService:
    """Owns every long-lived component of a running relay."""

    def __init__(
        self,
        config: RelayConfig,
        nat_manager: Optional[NATTraversalManager] = None,
    ) -> None:
        """
        Initialize the relay service.

        Args:
            config: Relay configuration
            nat_manager: NAT traversal manager; built from config if omitted
        """
        self.config = config

        self.registry = SessionRegistry()
        self.nat_state = NATMappingState(port=config.port)
        self.status_reporter = StatusReporter(self.registry, self.nat_state)
        self.router = RelayRouter(self.registry, self.status_reporter)

        self.relay_server = AudioRelayServer(
            self.router,
            host=config.host,
            port=config.port,
            ping_interval=config.ping_interval or None,
            max_connections=config.max_connections,
            max_message_size=config.max_message_size,
        )

        if nat_manager is None:
            nat_manager = NATTraversalManager(config, self.nat_state)
        self.nat_manager = nat_manager

        self.api_server = None
        if config.api_enabled:
            self.api_server = build_api_server(
                create_app(self.status_reporter), config.api_host, config.api_port
            )

        self._nat_task: Optional[asyncio.Task] = None
        self._api_task: Optional[asyncio.Task] = None

    async def start(self) -> bool:
        """Start serving. NAT negotiation runs in the background."""
        if not await self.relay_server.start():
            return False

        self._nat_task = asyncio.create_task(self.nat_manager.start())

        if self.api_server is not None:
            self._api_task = asyncio.create_task(self.api_server.serve())

        logger.info(
            f"SyncMusic relay listening on {self.config.host}:{self.relay_server.bound_port}"
        )
        return True

    async def stop(self) -> None:
        """Shut everything down. Always completes."""
        logger.info("Shutting down SyncMusic relay...")

        if self._nat_task is not None and not self._nat_task.done():
            self._nat_task.cancel()
            try:
                await self._nat_task
            except asyncio.CancelledError:
                pass

        await self.nat_manager.shutdown()

        if self.api_server is not None and self._api_task is not None:
            self.api_server.should_exit = True
            try:
                await asyncio.wait_for(self._api_task, timeout=API_SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Status API did not stop in time")
            except Exception as e:
                logger.error(f"Status API failed during shutdown: {e}", exc_info=True)

        await self.relay_server.stop()
        logger.info("SyncMusic relay stopped")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "relay": self.relay_server.get_stats(),
            "status": self.status_reporter.snapshot().to_dict(),
        }


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    exception = context.get("exception")
    message = context.get("message", "Unhandled error in event loop")
    if exception is not None:
        logger.error(f"{message}: {exception}", exc_info=exception)
    else:
        logger.error(message)


async def run(config: RelayConfig) -> int:
    """Run the relay until a termination signal arrives. Returns the exit code."""
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_log_loop_exception)

    service = RelayService(config)
    stop_event = asyncio.Event()

    def _stop() -> None:
        logger.info("Received termination signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(_stop))

    if not await service.start():
        logger.critical("Relay server failed to start")
        return 1

    await stop_event.wait()
    await service.stop()
    return 0


def main() -> None:
    """Main entry point."""
    try:
        config = config_manager.get_config()
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(2)

    set_log_level(config.log_level)

    try:
        exit_code = asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Relay shutdown requested")
        exit_code = 0
    except Exception as e:
        logger.critical(f"Relay crashed: {e}", exc_info=True)
        raise

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
