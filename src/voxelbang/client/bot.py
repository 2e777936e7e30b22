"""Websocket protocol client that plays one simulated actor."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from voxelbang.client import physics
from voxelbang.client.state import (
    Block,
    ChatMessage,
    ChunkColumn,
    Entity,
    Experience,
    Item,
    Window,
    WorldView,
)
from voxelbang.utils.events import BotEvent, EventEmitter, Packet, block_update_at
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import get_version_data

logger = logging.getLogger(__name__)

ENTITY_STATUS_DEAD = 3
GAME_STATE_CHANGE_MODE = 3

PacketHandler = Callable[[Dict[str, Any]], None]


class RPCError(RuntimeError):
    """Raised when the server responds with an RPC error frame."""

    def __init__(self, endpoint: str, status: int, detail: str) -> None:
        super().__init__(f"{endpoint} failed with status {status}: {detail}")
        self.endpoint = endpoint
        self.status = status
        self.detail = detail


class LoginError(RPCError):
    """The server refused the login request."""


class BotClient(EventEmitter):
    """One player connection with a local view of the world.

    Domain events are emitted on the bot itself (see :class:`BotEvent`). Every
    server packet is also re-emitted unchanged on :attr:`protocol`, keyed by
    :class:`Packet`, for expectations that need raw payloads.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        version: str,
        *,
        physics_enabled: bool = True,
    ) -> None:
        super().__init__()
        if not username:
            raise ValueError("BotClient requires a non-empty username")
        self.host = host
        self.port = port
        self.username = username
        self.version = version
        self.data = get_version_data(version)
        self.protocol = EventEmitter()
        self.inventory = Window()
        self.world = WorldView(self.data)
        self.experience = Experience()
        self.entity: Optional[Entity] = None
        self.entities: Dict[int, Entity] = {}
        self.players: Dict[str, Entity] = {}
        self.spawn_point: Optional[Vec3] = None
        self.game_mode: Optional[int] = None
        self.quick_bar_slot = 0
        self.end_reason: Optional[str] = None

        self._physics_enabled = physics_enabled
        self._physics_state = physics.PhysicsState()
        self._teleport_id = 0
        self._spawned = False
        self._ws = None
        self._ws_reader_task: Optional[asyncio.Task] = None
        self._physics_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._ended = False

        self._packet_handlers: Dict[Packet, PacketHandler] = {
            Packet.LOGIN: self._on_login,
            Packet.MAP_CHUNK: self._on_map_chunk,
            Packet.SPAWN_POSITION: self._on_spawn_position,
            Packet.POSITION: self._on_position,
            Packet.BLOCK_CHANGE: self._on_block_change,
            Packet.SET_SLOT: self._on_set_slot,
            Packet.SPAWN_ENTITY: self._on_spawn_entity,
            Packet.ENTITY_TELEPORT: self._on_entity_teleport,
            Packet.ENTITY_STATUS: self._on_entity_status,
            Packet.ENTITY_DESTROY: self._on_entity_destroy,
            Packet.CHAT: self._on_chat,
            Packet.NAMED_SOUND_EFFECT: self._on_named_sound_effect,
            Packet.EXPERIENCE: self._on_experience,
            Packet.GAME_STATE_CHANGE: self._on_game_state_change,
            Packet.KICK_DISCONNECT: self._on_kick_disconnect,
        }

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}/ws"

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ended

    def __repr__(self) -> str:
        return f"<BotClient {self.username} {self.host}:{self.port} v{self.version}>"

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> Dict[str, Any]:
        """Open the websocket and log in. ``LOGIN`` is emitted before this returns.

        Raises:
            LoginError: If the server rejects the login.
            OSError: If the server cannot be reached.
        """
        if self._ws is not None:
            raise RuntimeError(f"{self.username} is already connected")
        self._ws = await websockets.connect(self.url)
        self._ws_reader_task = asyncio.create_task(self._ws_reader())
        try:
            return await self._request(
                "login", {"username": self.username, "version": self.version}
            )
        except RPCError as exc:
            await self.quit()
            raise LoginError(exc.endpoint, exc.status, exc.detail) from exc

    def start(self) -> asyncio.Task:
        """Connect in the background; failures are reported as ``BotEvent.ERROR``."""
        if self._connect_task is None:
            self._connect_task = asyncio.create_task(self._connect_and_report())
        return self._connect_task

    async def _connect_and_report(self) -> None:
        try:
            await self.connect()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Bot %s failed to connect: %s", self.username, exc)
            self.emit(BotEvent.ERROR, exc)

    async def quit(self, reason: str = "disconnect.quitting") -> None:
        """Disconnect. Safe to call more than once or before connecting."""
        if self._physics_task is not None:
            self._physics_task.cancel()
            self._physics_task = None
        connect_task = self._connect_task
        if connect_task is not None and connect_task is not asyncio.current_task():
            connect_task.cancel()
        if not self._ended and self.end_reason is None:
            self.end_reason = reason
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except Exception:  # noqa: BLE001
                logger.debug("Error closing websocket for %s", self.username, exc_info=True)
        reader = self._ws_reader_task
        if reader is not None and reader is not asyncio.current_task():
            try:
                await reader
            except asyncio.CancelledError:
                pass
        self._finish(reason)

    def _finish(self, reason: str) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(RuntimeError("WebSocket connection lost"))
        self._pending.clear()
        if self._ended:
            return
        self._ended = True
        if self._physics_task is not None:
            self._physics_task.cancel()
            self._physics_task = None
        self.end_reason = self.end_reason or reason
        self.emit(BotEvent.END, self.end_reason)

    async def _ws_reader(self) -> None:
        reason = "socketClosed"
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.warning("Dropping malformed frame for %s", self.username)
                    continue
                frame_type = msg.get("frame_type")
                if frame_type == "event":
                    self._dispatch_packet(msg.get("event"), msg.get("payload") or {})
                    continue
                fut = self._pending.pop(msg.get("id"), None)
                if fut and not fut.done():
                    fut.set_result(msg)
        except ConnectionClosed as exc:
            logger.debug("Connection for %s closed: %s", self.username, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Reader for %s failed", self.username)
            reason = str(exc)
            self.emit(BotEvent.ERROR, exc)
        finally:
            self._finish(reason)

    def _dispatch_packet(self, name: Optional[str], payload: Dict[str, Any]) -> None:
        try:
            packet = Packet(name)
        except ValueError:
            logger.debug("Ignoring unknown packet %r", name)
            return
        handler = self._packet_handlers.get(packet)
        if handler is not None:
            handler(payload)
        self.protocol.emit(packet, payload)

    async def _request(self, endpoint: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        if self._ws is None or self._ended:
            raise RuntimeError(f"{self.username} is not connected")
        req_id = str(uuid.uuid4())
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        frame = {
            "id": req_id,
            "type": "rpc",
            "endpoint": endpoint,
            "payload": dict(payload),
        }
        try:
            await self._ws.send(json.dumps(frame))
        except ConnectionClosed as exc:
            self._pending.pop(req_id, None)
            raise RuntimeError("WebSocket connection lost") from exc
        msg = await fut
        if not msg.get("ok"):
            err = msg.get("error", {})
            raise RPCError(
                endpoint,
                int(err.get("status", 500)),
                str(err.get("detail", "Unknown error")),
            )
        return msg.get("result", {})

    # ------------------------------------------------------------------ #
    # Physics
    # ------------------------------------------------------------------ #

    async def _physics_loop(self) -> None:
        while True:
            await asyncio.sleep(physics.TICK_SECONDS)
            entity = self.entity
            if entity is None or not self._spawned:
                continue
            if not physics.step(entity, self.world, self._physics_state):
                continue
            try:
                await self._send_position()
            except RPCError as exc:
                logger.warning("Position update for %s rejected: %s", self.username, exc.detail)
            except RuntimeError:
                return
            self.emit(BotEvent.MOVE, entity.position)

    async def _send_position(self) -> None:
        entity = self.entity
        await self._request(
            "position",
            {
                **entity.position.to_payload(),
                "on_ground": entity.on_ground,
                "teleport_id": self._teleport_id,
            },
        )

    # ------------------------------------------------------------------ #
    # Packet handlers
    # ------------------------------------------------------------------ #

    def _on_login(self, payload: Dict[str, Any]) -> None:
        self.entity = Entity(
            id=int(payload["entity_id"]),
            type="player",
            name="player",
            username=self.username,
            position=Vec3(0, 0, 0),
        )
        self.game_mode = payload.get("game_mode")
        if self._physics_enabled and self._physics_task is None:
            self._physics_task = asyncio.create_task(self._physics_loop())
        self.emit(BotEvent.LOGIN)

    def _on_map_chunk(self, payload: Dict[str, Any]) -> None:
        column = ChunkColumn.from_payload(payload)
        self.world.load_column(column)
        self.emit(BotEvent.CHUNK_COLUMN_LOAD, Vec3(column.x * 16, 0, column.z * 16))

    def _on_spawn_position(self, payload: Dict[str, Any]) -> None:
        self.spawn_point = Vec3.from_payload(payload["location"])

    def _on_position(self, payload: Dict[str, Any]) -> None:
        if self.entity is None:
            return
        self._teleport_id = int(payload.get("teleport_id", self._teleport_id))
        self._physics_state = physics.PhysicsState()
        self.entity.position = Vec3.from_payload(payload)
        self.entity.on_ground = False
        self._spawned = True
        self.emit(BotEvent.FORCED_MOVE, self.entity.position)
        self.emit(BotEvent.MOVE, self.entity.position)

    def _on_block_change(self, payload: Dict[str, Any]) -> None:
        position = Vec3.from_payload(payload["location"])
        old, new = self.world.set_block(position, int(payload["type"]))
        if new is None:
            return
        self.emit(BotEvent.BLOCK_UPDATE, old, new)
        self.emit(block_update_at(position), old, new)

    def _on_set_slot(self, payload: Dict[str, Any]) -> None:
        self.inventory.update_slot(int(payload["slot"]), Item.from_payload(payload.get("item")))

    def _on_spawn_entity(self, payload: Dict[str, Any]) -> None:
        entity = Entity(
            id=int(payload["entity_id"]),
            type=payload.get("type", "mob"),
            name=payload["name"],
            username=payload.get("username"),
            position=Vec3.from_payload(payload["position"]),
        )
        self.entities[entity.id] = entity
        if entity.username:
            self.players[entity.username] = entity
        self.emit(BotEvent.ENTITY_SPAWN, entity)

    def _on_entity_teleport(self, payload: Dict[str, Any]) -> None:
        entity = self.entities.get(int(payload["entity_id"]))
        if entity is None:
            return
        entity.position = Vec3.from_payload(payload["position"])
        entity.on_ground = bool(payload.get("on_ground", False))
        self.emit(BotEvent.ENTITY_MOVED, entity)

    def _on_entity_status(self, payload: Dict[str, Any]) -> None:
        entity = self.entities.get(int(payload["entity_id"]))
        if entity is None or int(payload["status"]) != ENTITY_STATUS_DEAD:
            return
        entity.alive = False
        self.emit(BotEvent.ENTITY_DEAD, entity)

    def _on_entity_destroy(self, payload: Dict[str, Any]) -> None:
        for entity_id in payload.get("entity_ids", ()):
            entity = self.entities.pop(int(entity_id), None)
            if entity is None:
                continue
            if entity.username:
                self.players.pop(entity.username, None)
            self.emit(BotEvent.ENTITY_GONE, entity)

    def _on_chat(self, payload: Dict[str, Any]) -> None:
        self.emit(BotEvent.MESSAGE, ChatMessage(payload["message"]))

    def _on_named_sound_effect(self, payload: Dict[str, Any]) -> None:
        self.emit(
            BotEvent.SOUND_EFFECT_HEARD,
            payload["sound_name"],
            Vec3(payload["x"], payload["y"], payload["z"]),
            float(payload.get("volume", 1.0)),
            float(payload.get("pitch", 1.0)),
        )

    def _on_experience(self, payload: Dict[str, Any]) -> None:
        self.experience.level = int(payload["level"])
        self.experience.points = int(payload["total_experience"])
        self.experience.progress = float(payload["experience_bar"])
        self.emit(BotEvent.EXPERIENCE)

    def _on_game_state_change(self, payload: Dict[str, Any]) -> None:
        if int(payload.get("reason", -1)) == GAME_STATE_CHANGE_MODE:
            self.game_mode = int(payload["game_mode"])

    def _on_kick_disconnect(self, payload: Dict[str, Any]) -> None:
        self.end_reason = str(payload.get("reason", "kicked"))

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #

    def block_at(self, position: Vec3) -> Optional[Block]:
        return self.world.block_at(position)

    async def chat(self, message: str) -> Dict[str, Any]:
        return await self._request("chat", {"message": message})

    async def dig(self, block: Block) -> Dict[str, Any]:
        """Break ``block``. Creative-mode digging completes immediately."""
        if block is None:
            raise ValueError("Cannot dig an unloaded block")
        return await self._request("dig", {"location": block.position.to_payload()})

    async def place_block(self, reference_block: Block, face: Vec3) -> Dict[str, Any]:
        """Place the held item against ``face`` of ``reference_block``."""
        if reference_block is None:
            raise ValueError("Cannot place against an unloaded block")
        return await self._request(
            "place_block",
            {
                "location": reference_block.position.to_payload(),
                "face": face.to_payload(),
                "hand_slot": self.quick_bar_slot,
            },
        )

    async def set_creative_slot(self, slot: int, item: Optional[Item]) -> Dict[str, Any]:
        return await self._request(
            "set_creative_slot",
            {"slot": slot, "item": item.to_payload() if item else None},
        )


def create_bot(
    host: str,
    port: int,
    username: str,
    version: str,
    *,
    connect: bool = True,
    physics_enabled: bool = True,
) -> BotClient:
    """Build a bot; with ``connect`` it starts logging in without waiting.

    Listen for ``BotEvent.LOGIN`` (or ``BotEvent.ERROR``) to know when it is in.
    """
    bot = BotClient(host, port, username, version, physics_enabled=physics_enabled)
    if connect:
        bot.start()
    return bot

