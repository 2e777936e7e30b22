from typing import Any, Dict, Tuple

from fastapi import HTTPException

from voxelbang.game_server.core.world import Player, World
from voxelbang.game_server.rpc.connection import Connection
from voxelbang.utils.vec3 import Vec3


def require_player(world: World, connection: Connection) -> Player:
    """Return the player logged in on ``connection`` or reject with 401."""
    if connection.username is None:
        raise HTTPException(status_code=401, detail="Not logged in")
    player = world.get_player(connection.username)
    if player is None:
        raise HTTPException(status_code=401, detail="Player is no longer online")
    return player


def parse_vec3(request: Dict[str, Any], key: str) -> Vec3:
    raw = request.get(key)
    if not isinstance(raw, dict):
        raise HTTPException(status_code=422, detail=f"Invalid or missing {key}")
    try:
        return Vec3.from_payload(raw)
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=422, detail=f"Invalid {key}: {raw!r}")


def parse_block_coords(request: Dict[str, Any], key: str = "location") -> Tuple[int, int, int]:
    return parse_vec3(request, key).block_coords()
