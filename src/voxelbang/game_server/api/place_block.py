from fastapi import HTTPException

from voxelbang.game_server.core.world import QUICK_BAR_START, World
from voxelbang.game_server.rpc.connection import Connection

from .utils import parse_block_coords, parse_vec3, require_player

FACES = {(0, 1, 0), (0, -1, 0), (1, 0, 0), (-1, 0, 0), (0, 0, 1), (0, 0, -1)}


async def handle(request: dict, world: World, connection: Connection) -> dict:
    player = require_player(world, connection)
    ref_x, ref_y, ref_z = parse_block_coords(request)
    face = parse_vec3(request, "face").block_coords()
    if face not in FACES:
        raise HTTPException(status_code=422, detail=f"Invalid face {face}")

    if not world.is_solid(ref_x, ref_y, ref_z):
        raise HTTPException(status_code=400, detail="Cannot place against a non-solid block")

    hand_slot = int(request.get("hand_slot", player.quick_bar_slot))
    if not 0 <= hand_slot <= 8:
        raise HTTPException(status_code=422, detail=f"Invalid hand slot {hand_slot}")
    player.quick_bar_slot = hand_slot
    item = player.inventory.get(QUICK_BAR_START + hand_slot)
    if not item:
        raise HTTPException(status_code=400, detail="Nothing in hand to place")

    x, y, z = ref_x + face[0], ref_y + face[1], ref_z + face[2]
    if world.is_solid(x, y, z):
        raise HTTPException(status_code=409, detail=f"Block at {x} {y} {z} is occupied")
    try:
        await world.change_block(x, y, z, item["block_id"], sender=player.username)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"location": {"x": x, "y": y, "z": z}, "type": item["block_id"]}
