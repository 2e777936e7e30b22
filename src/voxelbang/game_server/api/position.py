from fastapi import HTTPException

from voxelbang.game_server.core import packets
from voxelbang.game_server.core.world import World
from voxelbang.game_server.rpc.connection import Connection
from voxelbang.utils.events import Packet
from voxelbang.utils.vec3 import Vec3

from .utils import require_player


async def handle(request: dict, world: World, connection: Connection) -> dict:
    player = require_player(world, connection)
    try:
        position = Vec3.from_payload(request)
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=422, detail="Invalid position")

    # Updates sent before the client saw our last teleport are stale.
    teleport_id = int(request.get("teleport_id", 0))
    if teleport_id < player.teleport_id:
        return {"accepted": False, "teleport_id": player.teleport_id}

    player.position = position
    player.on_ground = bool(request.get("on_ground", False))
    await world.broadcast(
        Packet.ENTITY_TELEPORT,
        packets.entity_teleport(player.entity_id, position, player.on_ground),
        exclude=[player.username],
        sender=player.username,
    )
    return {"accepted": True, "teleport_id": player.teleport_id}
