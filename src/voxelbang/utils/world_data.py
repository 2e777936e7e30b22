"""Read-only block, item and entity tables for each supported protocol version."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Optional

AIR = 0
STONE = 1
GRASS = 2
DIRT = 3
BEDROCK = 7

SUPPORTED_VERSIONS: tuple[str, ...] = ("1.8.9", "1.12.2")

_PROTOCOL_VERSIONS = {"1.8.9": 47, "1.12.2": 340}

# Versions before 1.11 used CamelCase entity type names.
_CAMEL_CASE_ENTITY_VERSIONS = {"1.8.9"}


@dataclass(frozen=True, slots=True)
class BlockInfo:
    id: int
    name: str
    display_name: str
    solid: bool = True


@dataclass(frozen=True, slots=True)
class EntityInfo:
    id: int
    name: str
    kind: str = "mob"


@dataclass(frozen=True)
class VersionData:
    """Lookup tables for one protocol version."""

    minecraft_version: str
    protocol_version: int
    features: FrozenSet[str]
    blocks: Dict[int, BlockInfo]
    entities: Dict[int, EntityInfo] = field(default_factory=dict)

    @property
    def blocks_by_name(self) -> Dict[str, BlockInfo]:
        return {block.name: block for block in self.blocks.values()}

    @property
    def entities_by_name(self) -> Dict[str, EntityInfo]:
        return {entity.name: entity for entity in self.entities.values()}

    @property
    def items_by_id(self) -> Dict[int, BlockInfo]:
        # Every block doubles as a placeable item.
        return {block_id: block for block_id, block in self.blocks.items() if block_id != AIR}

    def supports_feature(self, feature: str) -> bool:
        return feature in self.features

    def block(self, block_id: int) -> Optional[BlockInfo]:
        return self.blocks.get(block_id)

    def is_solid(self, block_id: int) -> bool:
        info = self.blocks.get(block_id)
        return info.solid if info else block_id != AIR


_BLOCKS = (
    BlockInfo(AIR, "air", "Air", solid=False),
    BlockInfo(STONE, "stone", "Stone"),
    BlockInfo(GRASS, "grass", "Grass Block"),
    BlockInfo(DIRT, "dirt", "Dirt"),
    BlockInfo(4, "cobblestone", "Cobblestone"),
    BlockInfo(5, "planks", "Wood Planks"),
    BlockInfo(BEDROCK, "bedrock", "Bedrock"),
    BlockInfo(8, "flowing_water", "Flowing Water", solid=False),
    BlockInfo(9, "water", "Water", solid=False),
    BlockInfo(12, "sand", "Sand"),
    BlockInfo(13, "gravel", "Gravel"),
    BlockInfo(17, "log", "Wood"),
    BlockInfo(20, "glass", "Glass"),
    BlockInfo(54, "chest", "Chest"),
    BlockInfo(58, "crafting_table", "Crafting Table"),
    BlockInfo(95, "stained_glass", "Stained Glass"),
    BlockInfo(130, "ender_chest", "Ender Chest"),
)

_ENTITY_NAMES = (
    # (id, modern name, legacy CamelCase name)
    (50, "creeper", "Creeper"),
    (51, "skeleton", "Skeleton"),
    (54, "zombie", "Zombie"),
    (63, "ender_dragon", "EnderDragon"),
    (90, "pig", "Pig"),
    (91, "sheep", "Sheep"),
    (92, "cow", "Cow"),
)


@lru_cache(maxsize=None)
def get_version_data(version: str) -> VersionData:
    """Return the tables for ``version``.

    Raises:
        ValueError: If the version is not supported.
    """
    if version not in _PROTOCOL_VERSIONS:
        raise ValueError(
            f"Unsupported version {version!r}; expected one of {', '.join(SUPPORTED_VERSIONS)}"
        )
    features = set()
    camel_case = version in _CAMEL_CASE_ENTITY_VERSIONS
    if camel_case:
        features.add("entityCamelCase")
    entities = {
        entity_id: EntityInfo(entity_id, legacy if camel_case else modern)
        for entity_id, modern, legacy in _ENTITY_NAMES
    }
    return VersionData(
        minecraft_version=version,
        protocol_version=_PROTOCOL_VERSIONS[version],
        features=frozenset(features),
        blocks={block.id: block for block in _BLOCKS},
        entities=entities,
    )


def terrain_block(y: int, height: int) -> int:
    """Block id generated at altitude ``y`` in a column whose surface is ``height``."""
    if y < 0 or y > height:
        return AIR
    if y == 0:
        return BEDROCK
    if y == height:
        return GRASS
    if y > height - 4:
        return DIRT
    return STONE
