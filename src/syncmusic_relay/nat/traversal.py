"""
NAT traversal for the SyncMusic relay.

Makes the relay reachable from outside the local network:

1. find the local IPv4 address
2. discover a UPnP Internet Gateway Device and ask it for the public address
3. map the relay port on the gateway for a bounded lease
4. when the public address is still unknown, ask an external lookup service

Every step is best-effort and bounded by a timeout. Blocking UPnP calls run
on daemon threads so a gateway that never answers cannot hold up the relay
or keep the interpreter alive at exit.
"""

import asyncio
import ipaddress
import json
import socket
import threading
from typing import Any, Awaitable, Callable, Optional

import aiohttp

from syncmusic_relay.config.settings import RelayConfig
from syncmusic_relay.core.types import NATMappingState
from syncmusic_relay.infrastructure import setup_logging
from syncmusic_relay.infrastructure.exceptions import (
    ExternalAddressError,
    PortMappingError,
)

logger = setup_logging(
    component_name="nat_traversal",
    log_file="logs/nat_traversal.log",
)

LOOPBACK_FALLBACK = "127.0.0.1"
MAPPING_PROTOCOL = "TCP"
MAPPING_DESCRIPTION = "SyncMusic relay"
UPNP_DISCOVER_DELAY_MS = 2000
LOCAL_ADDRESS_TIMEOUT = 2.0

METHOD_UPNP = "upnp"
METHOD_LOOKUP = "lookup"
METHOD_MANUAL = "manual"


async def run_in_daemon_thread(func: Callable[..., Any], *args: Any, timeout: float) -> Any:
    """
    Run a blocking call on a daemon thread and wait at most ``timeout`` seconds.

    On timeout the thread is abandoned: it keeps running until the call
    returns, but its result is discarded and it never blocks interpreter exit.

    Raises:
        asyncio.TimeoutError: If the call does not finish in time
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _resolve(result: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _post(result: Any, error: Optional[BaseException]) -> None:
        try:
            loop.call_soon_threadsafe(_resolve, result, error)
        except RuntimeError:
            # Event loop already closed; the caller gave up on this result.
            logger.debug(f"Discarding late result of {getattr(func, '__name__', func)}")

    def _worker() -> None:
        try:
            result = func(*args)
        except Exception as e:
            _post(None, e)
        else:
            _post(result, None)

    thread = threading.Thread(
        target=_worker,
        name=f"nat-{getattr(func, '__name__', 'call')}",
        daemon=True,
    )
    thread.start()
    return await asyncio.wait_for(future, timeout)


def _is_usable_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.version == 4 and not ip.is_loopback and not ip.is_unspecified


def discover_local_address() -> str:
    """
    Get the first non-loopback IPv4 address of this host.

    Tries the addresses the hostname resolves to, then the source address
    the kernel would pick for an outbound UDP socket (connect() on UDP sends
    nothing). Falls back to 127.0.0.1.
    """
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError as e:
        logger.debug(f"Hostname resolution failed: {e}")
        infos = []

    for info in infos:
        address = info[4][0]
        if _is_usable_ipv4(address):
            return address

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            address = sock.getsockname()[0]
            if _is_usable_ipv4(address):
                return address
    except OSError as e:
        logger.debug(f"UDP source-address lookup failed: {e}")

    return LOOPBACK_FALLBACK


def _default_upnp_factory() -> Any:
    import miniupnpc

    return miniupnpc.UPnP()


def _parse_lookup_body(body: str) -> str:
    """Accept either {"ip": "..."} JSON or a bare address."""
    body = body.strip()
    candidate = body
    if body.startswith("{"):
        try:
            candidate = str(json.loads(body).get("ip", ""))
        except (ValueError, AttributeError):
            raise ExternalAddressError(f"Unexpected lookup response: {body[:80]!r}")
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        raise ExternalAddressError(f"Lookup returned no address: {body[:80]!r}")
    return candidate


async def lookup_public_address(url: str, timeout: float) -> str:
    """
    Ask an external service for this host's public address.

    Raises:
        ExternalAddressError: On any HTTP, network or parsing failure
    """
    try:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise ExternalAddressError(
                        f"Lookup service answered HTTP {response.status}"
                    )
                body = await response.text()
    except ExternalAddressError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ExternalAddressError(f"Lookup request to {url} failed: {e!r}")

    return _parse_lookup_body(body)


class NATTraversalManager:
    """
    Best-effort port mapping and public address discovery.

    The manager is the only writer of the shared NATMappingState. After
    ``start`` returns, the state is final for the startup sequence even if
    every step failed.
    """

    def __init__(
        self,
        config: RelayConfig,
        state: Optional[NATMappingState] = None,
        upnp_factory: Callable[[], Any] = _default_upnp_factory,
        ip_lookup: Optional[Callable[[], Awaitable[str]]] = None,
        local_address_resolver: Callable[[], str] = discover_local_address,
    ) -> None:
        """
        Initialize the NAT traversal manager.

        Args:
            config: Relay configuration (port, timeouts, lease, lookup URL)
            state: Shared mapping state; a fresh one is created if omitted
            upnp_factory: Builds the UPnP client (miniupnpc.UPnP by default)
            ip_lookup: Coroutine returning the public address; defaults to
                an HTTP query of config.ip_lookup_url
            local_address_resolver: Returns the local IPv4 address
        """
        self.config = config
        self.state = state if state is not None else NATMappingState()
        self._upnp_factory = upnp_factory
        self._ip_lookup = ip_lookup or self._lookup_via_http
        self._resolve_local_address = local_address_resolver

        self._upnp: Any = None
        self._mapping_requested = False
        # Serializes gateway add/delete calls, including abandoned ones.
        self._mapping_lock = threading.Lock()
        self._closing = False
        self._renewal_task: Optional[asyncio.Task] = None

    async def start(self) -> NATMappingState:
        """Run the startup sequence. Never raises."""
        state = self.state
        self._closing = False
        state.port = self.config.port
        state.lease_duration = self.config.lease_duration

        try:
            await self._resolve_local()

            if self.config.public_address:
                state.public_address = self.config.public_address
                state.method = METHOD_MANUAL
                logger.info(f"Using configured public address {state.public_address}")

            if not self.config.nat_enabled:
                logger.info("Automatic NAT traversal disabled by configuration")
                return state

            upnp = await self._discover_gateway()
            if upnp is not None:
                await self._map_port(upnp)

            if state.public_address is None:
                await self._fallback_lookup()

            if state.public_address is None:
                logger.warning(
                    "Automatic address discovery unavailable; configure "
                    "PUBLIC_ADDRESS and forward the relay port manually"
                )

            if state.enabled and self.config.lease_duration > 0:
                self._renewal_task = asyncio.create_task(self._renewal_loop())
        except Exception as e:
            state.last_error = str(e)
            logger.error(f"Unexpected NAT traversal failure: {e}", exc_info=True)

        logger.info(
            f"NAT state: enabled={state.enabled}, public={state.public_address}, "
            f"local={state.local_address}, port={state.port}, method={state.method}"
        )
        return state

    async def _resolve_local(self) -> None:
        try:
            address = await run_in_daemon_thread(
                self._resolve_local_address, timeout=LOCAL_ADDRESS_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.warning("Local address lookup timed out")
            address = LOOPBACK_FALLBACK
        except Exception as e:
            logger.warning(f"Local address lookup failed: {e}")
            address = LOOPBACK_FALLBACK
        self.state.local_address = address or LOOPBACK_FALLBACK
        logger.debug(f"Local address: {self.state.local_address}")

    def _discover_gateway_blocking(self) -> Any:
        upnp = self._upnp_factory()
        upnp.discoverdelay = UPNP_DISCOVER_DELAY_MS
        found = int(upnp.discover() or 0)
        if found <= 0:
            raise ExternalAddressError("No UPnP gateway discovered")
        upnp.selectigd()
        public = str(upnp.externalipaddress() or "").strip()
        return upnp, public or None

    async def _discover_gateway(self) -> Any:
        """Find the gateway and its public address. Returns the UPnP client or None."""
        try:
            upnp, public = await run_in_daemon_thread(
                self._discover_gateway_blocking, timeout=self.config.discovery_timeout
            )
        except asyncio.TimeoutError:
            self._record_failure(
                f"Gateway discovery timed out after {self.config.discovery_timeout}s"
            )
            return None
        except Exception as e:
            self._record_failure(f"Gateway discovery failed: {e}")
            return None

        self._upnp = upnp
        if public is None:
            # Double NAT or a gateway without a WAN address; mapping may still work.
            self._record_failure("Gateway did not report a public address")
        elif self.state.method != METHOD_MANUAL:
            self.state.public_address = public
            self.state.method = METHOD_UPNP
        lan = str(getattr(upnp, "lanaddr", "") or "").strip()
        if _is_usable_ipv4(lan):
            self.state.local_address = lan
        if public is not None:
            logger.info(f"UPnP gateway reports public address {public}")
        return upnp

    def _add_mapping_blocking(self, upnp: Any) -> int:
        port = self.config.port
        with self._mapping_lock:
            if self._closing:
                raise PortMappingError("Shutting down, mapping not requested")
            ok = upnp.addportmapping(
                port,
                MAPPING_PROTOCOL,
                self.state.local_address,
                port,
                MAPPING_DESCRIPTION,
                "",
                self.config.lease_duration,
            )
        if ok is False:
            raise PortMappingError(f"Gateway refused mapping for port {port}")
        return port

    async def _map_port(self, upnp: Any) -> bool:
        """Request the port mapping. Returns True when it is active."""
        self._mapping_requested = True
        try:
            external_port = await run_in_daemon_thread(
                self._add_mapping_blocking, upnp, timeout=self.config.mapping_timeout
            )
        except asyncio.TimeoutError:
            self._record_failure(
                f"Port mapping timed out after {self.config.mapping_timeout}s"
            )
            return False
        except Exception as e:
            self._record_failure(f"Port mapping failed: {e}")
            return False

        self.state.enabled = True
        self.state.external_port = external_port
        self.state.last_error = None
        logger.info(
            f"Mapped {MAPPING_PROTOCOL} port {external_port} -> "
            f"{self.state.local_address}:{self.config.port} "
            f"(lease {self.config.lease_duration}s)"
        )
        return True

    async def _lookup_via_http(self) -> str:
        return await lookup_public_address(
            self.config.ip_lookup_url, self.config.ip_lookup_timeout
        )

    async def _fallback_lookup(self) -> None:
        try:
            address = await asyncio.wait_for(
                self._ip_lookup(), timeout=self.config.ip_lookup_timeout
            )
        except asyncio.TimeoutError:
            self._record_failure(
                f"External IP lookup timed out after {self.config.ip_lookup_timeout}s"
            )
            return
        except Exception as e:
            self._record_failure(f"External IP lookup failed: {e}")
            return

        self.state.public_address = address
        self.state.method = METHOD_LOOKUP
        logger.info(f"External IP lookup reports public address {address}")

    async def _renewal_loop(self) -> None:
        """Re-issue the mapping every half lease so it never expires."""
        interval = max(1.0, self.config.lease_duration / 2)
        while True:
            await asyncio.sleep(interval)
            if self._upnp is None:
                return
            if await self._map_port(self._upnp):
                logger.debug("Port mapping lease renewed")
            else:
                self.state.enabled = False
                logger.warning("Port mapping lease renewal failed; will retry")

    def _delete_mapping_blocking(self, upnp: Any, port: int) -> Any:
        # Waits for an in-flight add so the mapping is not recreated afterwards.
        with self._mapping_lock:
            return upnp.deleteportmapping(port, MAPPING_PROTOCOL)

    async def shutdown(self) -> bool:
        """
        Remove the port mapping, best-effort. Never raises.

        Returns:
            True if the gateway confirmed the removal
        """
        self._closing = True
        if self._renewal_task is not None:
            self._renewal_task.cancel()
            try:
                await self._renewal_task
            except asyncio.CancelledError:
                pass
            self._renewal_task = None

        if self._upnp is None or not self._mapping_requested:
            self.state.enabled = False
            return False

        removed = False
        port = self.state.external_port or self.config.port
        try:
            await run_in_daemon_thread(
                self._delete_mapping_blocking,
                self._upnp,
                port,
                timeout=self.config.unmap_timeout,
            )
            removed = True
            logger.info(f"Removed {MAPPING_PROTOCOL} port mapping {port}")
        except asyncio.TimeoutError:
            logger.warning(
                f"Unmapping port {port} timed out after {self.config.unmap_timeout}s"
            )
        except Exception as e:
            logger.warning(f"Unmapping port {port} failed: {e}")
        finally:
            self.state.enabled = False
            self.state.external_port = None
            self._mapping_requested = False

        return removed

    def _record_failure(self, message: str) -> None:
        self.state.last_error = message
        logger.warning(message)

