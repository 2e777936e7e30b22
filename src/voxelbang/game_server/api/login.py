import logging

from fastapi import HTTPException

from voxelbang.game_server.core import packets
from voxelbang.game_server.core.world import Player, World
from voxelbang.game_server.rpc.connection import Connection
from voxelbang.utils.events import Packet

logger = logging.getLogger("voxelbang.server.api.login")


def join_message(username: str) -> str:
    return f"{username} joined the game."


async def _send_world(world: World, player: Player) -> None:
    """Everything a client needs before it can play, in protocol order."""
    await world.send(
        player,
        Packet.LOGIN,
        {
            "entity_id": player.entity_id,
            "username": player.username,
            "game_mode": player.game_mode,
            "dimension": 0,
            "max_players": world.settings.max_players,
            "view_distance": world.settings.view_distance,
            "version": world.settings.version,
        },
    )
    for cx, cz in world.columns_around(player.position):
        await world.send(player, Packet.MAP_CHUNK, world.column_payload(cx, cz))
    spawn = world.spawn_point()
    await world.send(
        player,
        Packet.SPAWN_POSITION,
        {"location": packets.location(*spawn.block_coords())},
    )
    player.teleport_id += 1
    await world.send(player, Packet.POSITION, packets.position(player.position, player.teleport_id))
    await world.send_experience(player)
    for other in world.players.values():
        if other is not player:
            await world.send(player, Packet.SPAWN_ENTITY, other.spawn_payload())
    for mob in world.entities.values():
        await world.send(player, Packet.SPAWN_ENTITY, mob.spawn_payload())


async def handle(request: dict, world: World, connection: Connection) -> dict:
    username = request.get("username")
    if not username or not isinstance(username, str):
        raise HTTPException(status_code=422, detail="Invalid or missing username")

    version = request.get("version")
    if version != world.settings.version:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported protocol version {version!r}; server runs {world.settings.version}",
        )
    if world.settings.online_mode:
        raise HTTPException(status_code=401, detail="Online mode requires session authentication")
    if connection.username is not None:
        raise HTTPException(status_code=400, detail="Connection is already logged in")

    # Logins are serialized so every player sees each join announcement once.
    async with world.login_lock:
        if username in world.players:
            raise HTTPException(status_code=409, detail=f"Player '{username}' is already online")
        if len(world.players) >= world.settings.max_players:
            raise HTTPException(status_code=503, detail="The server is full")

        already_online = list(world.players)
        player = world.add_player(username, connection)
        connection.set_player(username)
        logger.info("Login %s as entity %s", username, player.entity_id)

        await _send_world(world, player)
        await world.broadcast(
            Packet.SPAWN_ENTITY, player.spawn_payload(), exclude=[username], sender=username
        )
        for other in already_online:
            await world.tell(player, join_message(other))
        await world.announce(join_message(username))

    return {
        "entity_id": player.entity_id,
        "username": username,
        "position": player.position.to_payload(),
    }


async def handle_disconnect(world: World, connection: Connection) -> None:
    """Despawn the player behind a closed connection and tell everyone else."""
    if connection.username is None:
        return
    player = world.get_player(connection.username)
    if player is None or player.connection is not connection:
        return
    world.remove_player(player.username)
    await world.broadcast(Packet.ENTITY_DESTROY, packets.entity_destroy(player.entity_id))
    await world.announce(f"{player.username} left the game.")
