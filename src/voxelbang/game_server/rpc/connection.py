"""WebSocket connection management for the world server."""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket

from voxelbang.game_server.rpc.events import EventSink

logger = logging.getLogger("voxelbang.server.connection")


class Connection(EventSink):
    """Represents a connected WebSocket client for a single player.

    The player is set once, on login, and cannot change afterwards.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.connection_id = str(uuid.uuid4())
        self.username: Optional[str] = None
        self._send_lock = asyncio.Lock()

    async def send_event(self, envelope: dict) -> None:
        """Send an event envelope to the WebSocket client.

        Events and RPC responses share one lock so frames leave in the order
        they were produced.
        """
        logger.debug(
            "Connection %s sending event %s", self.connection_id, envelope.get("event")
        )
        await self.send_json(envelope)

    async def send_json(self, frame: Dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame)

    async def close(self, code: int = 1001) -> None:
        async with self._send_lock:
            await self.websocket.close(code=code)

    @property
    def logged_in(self) -> bool:
        return self.username is not None

    def match_player(self, username: str) -> bool:
        return self.username == username

    def set_player(self, username: str) -> None:
        """Associate this connection with ``username``.

        Raises:
            ValueError: If the connection already belongs to another player
        """
        if self.username is not None and self.username != username:
            raise ValueError(
                f"Connection already associated with player '{self.username}', "
                f"cannot change to '{username}'"
            )
        self.username = str(username)
