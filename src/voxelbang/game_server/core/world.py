import asyncio
import itertools
from typing import Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from voxelbang.game_server.core import packets
from voxelbang.game_server.core.terrain import HeightMap, create_terrain
from voxelbang.game_server.rpc.events import EventDispatcher
from voxelbang.game_server.settings import ServerSettings
from voxelbang.utils.events import Packet
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import AIR, VersionData, get_version_data, terrain_block

if TYPE_CHECKING:
    from voxelbang.game_server.rpc.connection import Connection

CHUNK_SIZE = 16
MAX_BUILD_HEIGHT = 256
INVENTORY_SIZE = 46
QUICK_BAR_START = 36
GAME_MODES = {"survival": 0, "creative": 1, "adventure": 2, "spectator": 3}
Coords = Tuple[int, int, int]


def chunk_coords(x: float, z: float) -> Tuple[int, int]:
    return int(x // CHUNK_SIZE), int(z // CHUNK_SIZE)


def experience_for_level(level: int) -> int:
    """Total experience points needed to reach ``level``."""
    if level <= 16:
        return level * level + 6 * level
    if level <= 31:
        return int(2.5 * level * level - 40.5 * level + 360)
    return int(4.5 * level * level - 162.5 * level + 2220)


def experience_to_next(level: int) -> int:
    if level <= 15:
        return 2 * level + 7
    if level <= 30:
        return 5 * level - 38
    return 9 * level - 158


class Player:
    def __init__(
        self,
        username: str,
        entity_id: int,
        connection: "Connection",
        position: Vec3,
        *,
        op: bool = False,
        game_mode: int = 0,
    ) -> None:
        self.username = username
        self.entity_id = entity_id
        self.connection = connection
        self.position = position
        self.on_ground = False
        self.op = op
        self.game_mode = game_mode
        self.inventory: Dict[int, Dict[str, int]] = {}
        self.quick_bar_slot = 0
        self.total_experience = 0
        self.teleport_id = 0

    @property
    def experience_level(self) -> int:
        level = 0
        while experience_for_level(level + 1) <= self.total_experience:
            level += 1
        return level

    @property
    def experience_progress(self) -> float:
        level = self.experience_level
        return (self.total_experience - experience_for_level(level)) / experience_to_next(level)

    def experience_payload(self) -> dict:
        return packets.experience(
            self.experience_progress, self.experience_level, self.total_experience
        )

    def spawn_payload(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "type": "player",
            "name": "player",
            "username": self.username,
            "position": self.position.to_payload(),
        }

    def __repr__(self) -> str:
        return f"<Player {self.username} #{self.entity_id} at {self.position}>"


class MobEntity:
    def __init__(self, entity_id: int, name: str, position: Vec3) -> None:
        self.entity_id = entity_id
        self.name = name
        self.position = position
        self.alive = True

    def spawn_payload(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "type": "mob",
            "name": self.name,
            "position": self.position.to_payload(),
        }


class World:
    """In-memory state of one server instance.

    Blocks are the generated terrain plus a sparse map of changed blocks,
    grouped per chunk column so a column packet can carry its own changes.
    """

    def __init__(self, settings: ServerSettings, *, terrain: Optional[HeightMap] = None) -> None:
        self.settings = settings
        self.data: VersionData = get_version_data(settings.version)
        self.terrain = terrain or create_terrain(settings.generation)
        self.events = EventDispatcher()
        self.players: Dict[str, Player] = {}
        self.entities: Dict[int, MobEntity] = {}
        self.login_lock = asyncio.Lock()
        self._changes: Dict[Tuple[int, int], Dict[Coords, int]] = {}
        self._entity_ids = itertools.count(1)

    # ------------------------------------------------------------------ #
    # Blocks
    # ------------------------------------------------------------------ #

    def surface_height(self, x: int, z: int) -> int:
        return self.terrain.height(x, z)

    def block_at(self, x: int, y: int, z: int) -> int:
        changed = self._changes.get(chunk_coords(x, z), {}).get((x, y, z))
        if changed is not None:
            return changed
        return terrain_block(y, self.surface_height(x, z))

    def set_block(self, x: int, y: int, z: int, block_type: int) -> int:
        """Store a block change and return the previous block id.

        Raises:
            ValueError: If the position is outside the build height or the id is unknown
        """
        if not 0 <= y < MAX_BUILD_HEIGHT:
            raise ValueError(f"y={y} is outside the world")
        if self.data.block(block_type) is None:
            raise ValueError(f"Unknown block id {block_type}")
        previous = self.block_at(x, y, z)
        self._changes.setdefault(chunk_coords(x, z), {})[(x, y, z)] = block_type
        return previous

    def is_solid(self, x: int, y: int, z: int) -> bool:
        return self.data.is_solid(self.block_at(x, y, z))

    def spawn_point(self) -> Vec3:
        return Vec3(0.5, self.surface_height(0, 0) + 1, 0.5)

    def column_payload(self, cx: int, cz: int) -> dict:
        heights = [
            self.surface_height(cx * CHUNK_SIZE + lx, cz * CHUNK_SIZE + lz)
            for lz in range(CHUNK_SIZE)
            for lx in range(CHUNK_SIZE)
        ]
        overrides = [
            [x, y, z, block_type]
            for (x, y, z), block_type in self._changes.get((cx, cz), {}).items()
        ]
        return {"x": cx, "z": cz, "heights": heights, "overrides": overrides}

    def columns_around(self, position: Vec3) -> List[Tuple[int, int]]:
        """Columns streamed to a player standing at ``position``: a square of side 2*view."""
        radius = self.settings.view_distance
        center_x, center_z = chunk_coords(position.x, position.z)
        return [
            (cx, cz)
            for cx in range(center_x - radius, center_x + radius)
            for cz in range(center_z - radius, center_z + radius)
        ]

    # ------------------------------------------------------------------ #
    # Entities
    # ------------------------------------------------------------------ #

    def next_entity_id(self) -> int:
        return next(self._entity_ids)

    def add_player(self, username: str, connection: "Connection") -> Player:
        if username in self.players:
            raise ValueError(f"Player '{username}' is already online")
        player = Player(
            username,
            self.next_entity_id(),
            connection,
            self.spawn_point(),
            op=self.settings.everybody_op,
            game_mode=self.settings.game_mode,
        )
        self.players[username] = player
        logger.info("{} joined at {}", username, player.position)
        return player

    def remove_player(self, username: str) -> Optional[Player]:
        player = self.players.pop(username, None)
        if player is not None:
            logger.info("{} left the game", username)
        return player

    def get_player(self, username: str) -> Optional[Player]:
        return self.players.get(username)

    def spawn_mob(self, name: str, position: Vec3) -> MobEntity:
        """Create a mob by entity type name.

        Raises:
            ValueError: If the type is unknown or the entity cap is reached
        """
        if name not in self.data.entities_by_name:
            raise ValueError(f"Unknown entity type {name}")
        if len(self.entities) >= self.settings.max_entities:
            raise ValueError("Too many entities")
        mob = MobEntity(self.next_entity_id(), name, position)
        self.entities[mob.entity_id] = mob
        return mob

    def mobs_named(self, name: Optional[str]) -> List[MobEntity]:
        return [mob for mob in self.entities.values() if name is None or mob.name == name]

    def remove_entities(self, mobs: Iterable[MobEntity]) -> List[MobEntity]:
        removed = []
        for mob in mobs:
            if self.entities.pop(mob.entity_id, None) is not None:
                mob.alive = False
                removed.append(mob)
        return removed

    # ------------------------------------------------------------------ #
    # Outgoing packets
    # ------------------------------------------------------------------ #

    async def broadcast(
        self,
        packet: Packet,
        payload: dict,
        *,
        to: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        sender: Optional[str] = None,
    ) -> int:
        return await self.events.emit(
            packet.value, payload, player_filter=to, exclude=exclude, sender=sender
        )

    async def send(self, player: Player, packet: Packet, payload: dict) -> None:
        await self.events.send_to(player.connection, packet.value, payload)

    async def tell(self, player: Player, text: str) -> None:
        await self.send(player, Packet.CHAT, packets.chat(text))

    async def announce(self, text: str, *, exclude: Optional[Iterable[str]] = None) -> int:
        return await self.broadcast(Packet.CHAT, packets.chat(text), exclude=exclude)

    async def change_block(
        self, x: int, y: int, z: int, block_type: int, *, sender: Optional[str] = None
    ) -> int:
        previous = self.set_block(x, y, z, block_type)
        await self.broadcast(
            Packet.BLOCK_CHANGE, packets.block_change(x, y, z, block_type), sender=sender
        )
        return previous

    async def teleport(self, player: Player, destination: Vec3) -> None:
        """Move ``player``; its client gets a forced move, everybody else an entity teleport."""
        player.position = destination
        player.on_ground = False
        player.teleport_id += 1
        await self.send(player, Packet.POSITION, packets.position(destination, player.teleport_id))
        await self.broadcast(
            Packet.ENTITY_TELEPORT,
            packets.entity_teleport(player.entity_id, destination),
            exclude=[player.username],
        )

    async def send_experience(self, player: Player) -> None:
        await self.send(player, Packet.EXPERIENCE, player.experience_payload())
