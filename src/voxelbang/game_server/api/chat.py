from fastapi import HTTPException

from voxelbang.game_server import commands
from voxelbang.game_server.core.world import World
from voxelbang.game_server.rpc.connection import Connection

from .utils import require_player

MAX_MESSAGE_LENGTH = 256


async def handle(request: dict, world: World, connection: Connection) -> dict:
    player = require_player(world, connection)
    message = request.get("message")
    if not isinstance(message, str) or not message.strip():
        raise HTTPException(status_code=422, detail="Invalid or missing message")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise HTTPException(status_code=422, detail="Message too long")

    if message.startswith("/"):
        handled = await commands.execute(world, player, message[1:])
        return {"command": True, "handled": handled}

    await world.announce(f"<{player.username}> {message}")
    return {"command": False}
