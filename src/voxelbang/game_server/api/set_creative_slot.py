from fastapi import HTTPException

from voxelbang.game_server.core import packets
from voxelbang.game_server.core.world import INVENTORY_SIZE, World
from voxelbang.game_server.rpc.connection import Connection
from voxelbang.utils.events import Packet

from .utils import require_player

CREATIVE = 1


async def handle(request: dict, world: World, connection: Connection) -> dict:
    player = require_player(world, connection)
    if player.game_mode != CREATIVE:
        raise HTTPException(status_code=403, detail="Creative inventory requires creative mode")

    slot = request.get("slot")
    if not isinstance(slot, int) or not 0 <= slot < INVENTORY_SIZE:
        raise HTTPException(status_code=422, detail=f"Invalid slot {slot!r}")

    raw_item = request.get("item")
    item = None
    if raw_item:
        block_id = raw_item.get("block_id")
        if block_id not in world.data.items_by_id:
            raise HTTPException(status_code=400, detail=f"Unknown item id {block_id!r}")
        count = int(raw_item.get("item_count", 1))
        if not 1 <= count <= 64:
            raise HTTPException(status_code=422, detail=f"Invalid item count {count}")
        item = {"block_id": block_id, "item_count": count}

    if item is None:
        player.inventory.pop(slot, None)
    else:
        player.inventory[slot] = item
    await world.send(player, Packet.SET_SLOT, packets.set_slot(slot, item))
    return {"slot": slot, "item": item}
