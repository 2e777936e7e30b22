from fastapi import HTTPException

from voxelbang.game_server.core.world import World
from voxelbang.game_server.rpc.connection import Connection
from voxelbang.utils.world_data import AIR

from .utils import parse_block_coords, require_player


async def handle(request: dict, world: World, connection: Connection) -> dict:
    player = require_player(world, connection)
    x, y, z = parse_block_coords(request)
    if world.block_at(x, y, z) == AIR:
        raise HTTPException(status_code=400, detail=f"No block to dig at {x} {y} {z}")
    try:
        previous = await world.change_block(x, y, z, AIR, sender=player.username)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"location": {"x": x, "y": y, "z": z}, "previous": previous}
