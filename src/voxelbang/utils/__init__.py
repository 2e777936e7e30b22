"""Shared helpers used by both the world server and the bot client."""

from voxelbang.utils.events import (
    BotEvent,
    EventEmitter,
    Packet,
    ServerEvent,
    Subscription,
    WindowEvent,
    block_update_at,
)
from voxelbang.utils.vec3 import Vec3, positions_equal
from voxelbang.utils.world_data import SUPPORTED_VERSIONS, get_version_data

__all__ = [
    "BotEvent",
    "EventEmitter",
    "Packet",
    "ServerEvent",
    "Subscription",
    "WindowEvent",
    "block_update_at",
    "Vec3",
    "positions_equal",
    "SUPPORTED_VERSIONS",
    "get_version_data",
]
