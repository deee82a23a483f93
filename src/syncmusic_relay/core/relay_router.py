"""
Relay router for the SyncMusic relay.

The router is the state machine behind every client event. ``dispatch``
applies one event to the session registry and returns the messages that
should go out because of it, each with its recipients already resolved.
Nothing here touches the network, so the whole transition table can be
exercised without a transport.

Per-connection states:

    Idle --start-stream--> Streaming --stop-stream/disconnect--> Idle
    Idle --join-stream---> Listening --stop-listening/disconnect--> Idle
"""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from syncmusic_relay.infrastructure import setup_logging

from .session_registry import SessionRegistry
from .status_reporter import StatusReporter
from .types import (
    EVT_AUDIO_CHUNK,
    EVT_DISCONNECT,
    EVT_GET_STATUS,
    EVT_JOIN_STREAM,
    EVT_PING,
    EVT_PONG,
    EVT_SERVER_STATUS,
    EVT_START_STREAM,
    EVT_STOP_LISTENING,
    EVT_STOP_STREAM,
    EVT_STREAMER_AVAILABLE,
    EVT_STREAMER_STARTED,
    EVT_STREAMER_STOPPED,
    STOP_REASON_DISCONNECT,
    STOP_REASON_MANUAL,
    STOP_REASON_ROLE_CHANGE,
    OutboundMessage,
)

logger = setup_logging(
    component_name="relay_router",
    log_file="logs/relay_router.log",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RelayRouter:
    """
    Routes role transitions and audio chunks between connections.

    Only connections currently marked as streamers may publish. Fanout
    always targets the listener group as it stands when the event is
    dispatched, minus an explicit exclusion set.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        status_reporter: Optional[StatusReporter] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """
        Initialize the relay router.

        Args:
            registry: Session registry holding role membership
            status_reporter: Source of get-status snapshots
            clock: Returns the timestamp (ms since epoch) put on notifications
        """
        self.registry = registry
        self.status_reporter = status_reporter
        self._clock = clock

        self._handlers: Dict[str, Callable[..., List[OutboundMessage]]] = {
            EVT_START_STREAM: self._on_start_stream,
            EVT_JOIN_STREAM: self._on_join_stream,
            EVT_AUDIO_CHUNK: self._on_audio_chunk,
            EVT_STOP_STREAM: self._on_stop_stream,
            EVT_STOP_LISTENING: self._on_stop_listening,
            EVT_DISCONNECT: self._on_disconnect,
            EVT_GET_STATUS: self._on_get_status,
            EVT_PING: self._on_ping,
        }

        self.stats = {
            "chunks_forwarded": 0,
            "chunks_dropped": 0,
            "bytes_forwarded": 0,
        }

    def dispatch(
        self,
        connection_id: str,
        event: str,
        payload: Any = None,
        reason: Optional[str] = None,
    ) -> List[OutboundMessage]:
        """
        Apply one event from a connection.

        Args:
            connection_id: Identity of the connection the event came from
            event: Event name (see core.types)
            payload: Audio bytes for audio-chunk, optional dict for ping
            reason: Transport close reason for disconnect events

        Returns:
            Messages to deliver, possibly empty. Unknown events and protocol
            misuse yield an empty list.
        """
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Ignoring unknown event {event!r} from {connection_id}")
            return []
        if event == EVT_DISCONNECT:
            return handler(connection_id, reason)
        if event in (EVT_AUDIO_CHUNK, EVT_PING):
            return handler(connection_id, payload)
        return handler(connection_id)

    def fanout(
        self,
        event: str,
        data: Any,
        exclude: Iterable[str] = (),
    ) -> List[OutboundMessage]:
        """
        Address a message to every listener except the excluded connections.

        Returns an empty list when nobody would receive it.
        """
        recipients = self.registry.listener_ids().difference(exclude)
        if not recipients:
            return []
        return [OutboundMessage(event=event, data=data, recipients=recipients)]

    def reply(self, connection_id: str, event: str, data: Any) -> List[OutboundMessage]:
        """Address a message to a single connection."""
        return [
            OutboundMessage(
                event=event, data=data, recipients=frozenset({connection_id})
            )
        ]

    def _stopped(self, streamer_id: str, reason: str) -> List[OutboundMessage]:
        return self.fanout(
            EVT_STREAMER_STOPPED,
            {
                "streamerId": streamer_id,
                "reason": reason,
                "timestamp": self._clock(),
            },
            exclude={streamer_id},
        )

    def _on_start_stream(self, connection_id: str) -> List[OutboundMessage]:
        if self.registry.is_streamer(connection_id):
            logger.debug(f"{connection_id} is already streaming, ignoring start-stream")
            return []

        was_listener = self.registry.is_listener(connection_id)
        self.registry.mark_streamer(connection_id)
        streamers, listeners = self.registry.counts()
        logger.info(
            f"{connection_id} started streaming "
            f"(streamers={streamers}, listeners={listeners}"
            f"{', left listener group' if was_listener else ''})"
        )

        return self.fanout(
            EVT_STREAMER_STARTED,
            {"streamerId": connection_id, "timestamp": self._clock()},
            exclude={connection_id},
        )

    def _on_join_stream(self, connection_id: str) -> List[OutboundMessage]:
        outbound: List[OutboundMessage] = []

        was_streamer = self.registry.is_streamer(connection_id)
        self.registry.mark_listener(connection_id)
        if was_streamer:
            outbound.extend(self._stopped(connection_id, STOP_REASON_ROLE_CHANGE))

        streamers, listeners = self.registry.counts()
        logger.info(
            f"{connection_id} joined as listener "
            f"(streamers={streamers}, listeners={listeners})"
        )

        if streamers > 0:
            outbound.extend(
                self.reply(
                    connection_id,
                    EVT_STREAMER_AVAILABLE,
                    {"streamersCount": streamers},
                )
            )
        return outbound

    def _on_audio_chunk(self, connection_id: str, payload: Any) -> List[OutboundMessage]:
        if not self.registry.is_streamer(connection_id):
            self.stats["chunks_dropped"] += 1
            logger.debug(f"Dropping audio chunk from non-streamer {connection_id}")
            return []

        if not isinstance(payload, (bytes, bytearray, memoryview)):
            self.stats["chunks_dropped"] += 1
            logger.debug(f"Dropping non-binary audio chunk from {connection_id}")
            return []

        chunk = bytes(payload)
        outbound = self.fanout(EVT_AUDIO_CHUNK, chunk, exclude={connection_id})
        if outbound:
            self.stats["chunks_forwarded"] += 1
            self.stats["bytes_forwarded"] += len(chunk) * len(outbound[0].recipients)
        return outbound

    def _on_stop_stream(self, connection_id: str) -> List[OutboundMessage]:
        if not self.registry.unmark_streamer(connection_id):
            logger.debug(f"Ignoring stop-stream from non-streamer {connection_id}")
            return []

        logger.info(
            f"{connection_id} stopped streaming "
            f"(streamers={self.registry.counts()[0]})"
        )
        return self._stopped(connection_id, STOP_REASON_MANUAL)

    def _on_stop_listening(self, connection_id: str) -> List[OutboundMessage]:
        if not self.registry.unmark_listener(connection_id):
            logger.debug(f"Ignoring stop-listening from non-listener {connection_id}")
            return []

        logger.info(
            f"{connection_id} stopped listening "
            f"(listeners={self.registry.counts()[1]})"
        )
        return []

    def _on_disconnect(
        self, connection_id: str, reason: Optional[str]
    ) -> List[OutboundMessage]:
        outbound: List[OutboundMessage] = []

        if self.registry.unmark_streamer(connection_id):
            outbound.extend(self._stopped(connection_id, STOP_REASON_DISCONNECT))
        self.registry.unmark_listener(connection_id)

        streamers, listeners = self.registry.counts()
        logger.info(
            f"{connection_id} disconnected ({reason or 'no reason'}); "
            f"streamers={streamers}, listeners={listeners}"
        )
        return outbound

    def _on_get_status(self, connection_id: str) -> List[OutboundMessage]:
        if self.status_reporter is None:
            streamers, listeners = self.registry.counts()
            data = {"streamerCount": streamers, "listenerCount": listeners}
        else:
            data = self.status_reporter.snapshot().to_dict()
        return self.reply(connection_id, EVT_SERVER_STATUS, data)

    def _on_ping(self, connection_id: str, payload: Any) -> List[OutboundMessage]:
        timestamp = None
        if isinstance(payload, dict):
            timestamp = payload.get("timestamp")
        return self.reply(connection_id, EVT_PONG, {"timestamp": timestamp})

    def get_stats(self) -> dict:
        """Get routing statistics."""
        return {**self.stats, **self.registry.get_stats()}
