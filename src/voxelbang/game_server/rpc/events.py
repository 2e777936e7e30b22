"""Runtime event dispatcher for the world server."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
import logging
from typing import Iterable, Protocol

from voxelbang.game_server.rpc.rpc import event_frame
from voxelbang.game_server.server_logging.event_log import EventLogger, EventRecord, utc_now


class EventSink(Protocol):
    """Protocol implemented by WebSocket connections that can receive events.

    Each EventSink represents a single player's connection.
    """

    async def send_event(self, envelope: dict) -> None:
        """Send an event to this connection."""
        ...

    def match_player(self, username: str) -> bool:
        """Check if this connection is for the given player."""
        ...


logger = logging.getLogger("voxelbang.server.events")


class EventDispatcher:
    """Dispatches packets to logged-in sinks with optional filtering."""

    def __init__(self) -> None:
        self._sinks: set[EventSink] = set()
        self._lock = asyncio.Lock()
        self._event_logger: EventLogger | None = None

    def set_event_logger(self, event_logger: EventLogger | None) -> None:
        """Attach an EventLogger instance for structured logging."""
        self._event_logger = event_logger

    @property
    def event_logger(self) -> EventLogger | None:
        return self._event_logger

    async def register(self, sink: EventSink) -> None:
        async with self._lock:
            self._sinks.add(sink)

    async def unregister(self, sink: EventSink) -> None:
        async with self._lock:
            self._sinks.discard(sink)

    async def sinks(self) -> list[EventSink]:
        async with self._lock:
            return list(self._sinks)

    async def emit(
        self,
        event: str,
        payload: dict,
        *,
        player_filter: Iterable[str] | None = None,
        exclude: Iterable[str] | None = None,
        sender: str | None = None,
    ) -> int:
        """Send ``event`` to every logged-in sink matching the filters.

        Args:
            event: Packet name (e.g. "block_change", "chat")
            payload: Packet data
            player_filter: Only send to these players. If None, send to all.
            exclude: Never send to these players.
            sender: Player responsible for the event, for the event log.

        Returns:
            Number of sinks the event was delivered to.
        """
        wanted = set(player_filter) if player_filter is not None else None
        skipped = set(exclude or ())
        envelope = event_frame(event, payload)

        coros: list[Awaitable[None]] = []
        receivers: list[str | None] = []
        for sink in await self.sinks():
            username = getattr(sink, "username", None)
            if username is None or username in skipped:
                continue
            if wanted is not None and not any(sink.match_player(name) for name in wanted):
                continue
            coros.append(sink.send_event(envelope))
            receivers.append(username)

        logger.debug("Event %s queued for %s sink(s)", event, len(coros))
        delivered = 0
        if coros:
            results = await asyncio.gather(*coros, return_exceptions=True)
            for receiver, result in zip(receivers, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, Exception):
                    # A dead sink must not stop delivery to the others.
                    logger.warning(
                        "Error delivering event=%s to %s: %r", event, receiver, result
                    )
                    continue
                delivered += 1

        self._log(event, payload, sender=sender, receivers=receivers)
        return delivered

    async def send_to(self, sink: EventSink, event: str, payload: dict) -> None:
        """Send directly to one sink, bypassing the login filter."""
        await sink.send_event(event_frame(event, payload))
        self._log(event, payload, sender=None, receivers=[getattr(sink, "username", None)])

    def _log(
        self,
        event: str,
        payload: dict,
        *,
        sender: str | None,
        receivers: list[str | None],
    ) -> None:
        if self._event_logger is None:
            return
        timestamp = utc_now()
        for receiver in receivers or [None]:
            self._event_logger.append(
                EventRecord(
                    timestamp=timestamp,
                    direction="event_out",
                    event=event,
                    payload=payload,
                    sender=sender,
                    receiver=receiver,
                )
            )
