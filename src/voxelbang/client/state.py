"""Client-side view of the world: blocks, items, entities, inventory and chat."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from voxelbang.utils.events import EventEmitter, WindowEvent
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import AIR, VersionData, terrain_block

CHUNK_SIZE = 16


@dataclass(frozen=True, slots=True)
class Block:
    type: int
    position: Vec3
    name: str = ""

    @property
    def is_air(self) -> bool:
        return self.type == AIR


@dataclass(frozen=True, slots=True)
class Item:
    type: int
    count: int = 1

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> Optional["Item"]:
        if not data:
            return None
        return cls(int(data["block_id"]), int(data.get("item_count", 1)))

    def to_payload(self) -> Dict[str, int]:
        return {"block_id": self.type, "item_count": self.count}


@dataclass
class Entity:
    id: int
    type: str
    name: str
    position: Vec3
    username: Optional[str] = None
    on_ground: bool = False
    alive: bool = True


@dataclass(frozen=True)
class ChatMessage:
    """A chat component as sent by the server: ``{"text": "", "extra": [{"text": ...}]}``."""

    raw: Mapping[str, Any]

    @property
    def extra(self) -> List[Mapping[str, Any]]:
        return list(self.raw.get("extra") or [])

    @property
    def text(self) -> str:
        extra = self.extra
        if extra:
            return str(extra[0].get("text", ""))
        return str(self.raw.get("text", ""))

    def __str__(self) -> str:
        return self.text


@dataclass
class Experience:
    level: int = 0
    points: int = 0
    progress: float = 0.0


class Window(EventEmitter):
    """Player inventory. Emits ``WINDOW_UPDATE(slot, old, new)`` on every slot change."""

    QUICK_BAR_START = 36
    SIZE = 46

    def __init__(self) -> None:
        super().__init__()
        self.slots: List[Optional[Item]] = [None] * self.SIZE

    def update_slot(self, slot: int, item: Optional[Item]) -> None:
        if not 0 <= slot < self.SIZE:
            raise IndexError(f"Slot {slot} out of range")
        old = self.slots[slot]
        self.slots[slot] = item
        self.emit(WindowEvent.WINDOW_UPDATE, slot, old, item)

    def held_item(self, quick_bar_slot: int) -> Optional[Item]:
        return self.slots[self.QUICK_BAR_START + quick_bar_slot]


@dataclass
class ChunkColumn:
    x: int
    z: int
    heights: List[int]
    overrides: Dict[Tuple[int, int, int], int] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChunkColumn":
        overrides = {(int(x), int(y), int(z)): int(t) for x, y, z, t in data.get("overrides", ())}
        return cls(int(data["x"]), int(data["z"]), [int(h) for h in data["heights"]], overrides)

    def height(self, x: int, z: int) -> int:
        return self.heights[(z - self.z * CHUNK_SIZE) * CHUNK_SIZE + (x - self.x * CHUNK_SIZE)]

    def block_type(self, x: int, y: int, z: int) -> int:
        override = self.overrides.get((x, y, z))
        if override is not None:
            return override
        return terrain_block(y, self.height(x, z))


class WorldView:
    """Blocks the client knows about, one :class:`ChunkColumn` per loaded column."""

    def __init__(self, data: VersionData) -> None:
        self.data = data
        self.columns: Dict[Tuple[int, int], ChunkColumn] = {}

    def load_column(self, column: ChunkColumn) -> None:
        self.columns[(column.x, column.z)] = column

    def column_at(self, x: int, z: int) -> Optional[ChunkColumn]:
        return self.columns.get((x // CHUNK_SIZE, z // CHUNK_SIZE))

    def block_at(self, position: Vec3) -> Optional[Block]:
        x, y, z = position.block_coords()
        column = self.column_at(x, z)
        if column is None:
            return None
        block_type = column.block_type(x, y, z)
        info = self.data.block(block_type)
        return Block(block_type, Vec3(x, y, z), info.name if info else "")

    def set_block(self, position: Vec3, block_type: int) -> Tuple[Optional[Block], Optional[Block]]:
        """Apply a block change; returns ``(old, new)`` or ``(None, None)`` if unloaded."""
        old = self.block_at(position)
        if old is None:
            return None, None
        x, y, z = position.block_coords()
        self.columns[(x // CHUNK_SIZE, z // CHUNK_SIZE)].overrides[(x, y, z)] = block_type
        return old, self.block_at(position)

    def is_solid(self, position: Vec3) -> Optional[bool]:
        block = self.block_at(position)
        if block is None:
            return None
        return self.data.is_solid(block.type)
