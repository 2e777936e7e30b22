"""Slash commands typed in chat.

Every command is a coroutine registered with :func:`command`. It receives the
world, the issuing player and the whitespace-split arguments, and may return a
reply that is sent back to the issuer as a chat message.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from loguru import logger

from voxelbang.game_server.core import packets
from voxelbang.game_server.core.world import GAME_MODES, Player, World, experience_for_level
from voxelbang.utils.events import Packet
from voxelbang.utils.vec3 import Vec3

PERMISSION_DENIED = "You do not have permission to use this command"
UNKNOWN_COMMAND = "Unknown command. Type /help for a list of commands."

CommandHandler = Callable[[World, Player, List[str]], Awaitable[Optional[str]]]

_SELECTOR = re.compile(r"^@e(?:\[type=(?P<type>[A-Za-z_]+)\])?$")


class CommandError(Exception):
    """Reported to the issuing player as a chat message."""


class UsageError(CommandError):
    pass


@dataclass(frozen=True)
class Command:
    name: str
    usage: str
    description: str
    handler: CommandHandler
    op_required: bool = True


COMMANDS: Dict[str, Command] = {}


def command(name: str, usage: str, description: str, *, op_required: bool = True):
    def decorator(fn: CommandHandler) -> CommandHandler:
        COMMANDS[name] = Command(name, usage, description, fn, op_required)
        return fn

    return decorator


async def execute(world: World, player: Player, line: str) -> bool:
    """Run one command line (without the leading slash). Returns True if it succeeded."""
    parts = line.split()
    spec = COMMANDS.get(parts[0].lower()) if parts else None
    if spec is None:
        await world.tell(player, UNKNOWN_COMMAND)
        return False
    if spec.op_required and not player.op:
        await world.tell(player, PERMISSION_DENIED)
        return False

    logger.debug("{} issued /{}", player.username, line)
    try:
        reply = await spec.handler(world, player, parts[1:])
    except UsageError as exc:
        await world.tell(player, str(exc) or f"Usage: /{spec.usage}")
        return False
    except CommandError as exc:
        await world.tell(player, str(exc))
        return False
    if reply:
        await world.tell(player, reply)
    return True


# ---------------------------------------------------------------------- #
# Argument parsing
# ---------------------------------------------------------------------- #


def _number(token: str, kind=float):
    try:
        return kind(token)
    except ValueError:
        raise UsageError()


def coordinate(token: str, base: float) -> float:
    """Parse an absolute coordinate or a ``~`` offset from ``base``."""
    if token.startswith("~"):
        offset = token[1:]
        return base + (_number(offset) if offset else 0.0)
    return _number(token)


def coordinates(tokens: List[str], base: Vec3) -> Vec3:
    x, y, z = tokens
    return Vec3(coordinate(x, base.x), coordinate(y, base.y), coordinate(z, base.z))


def block_coordinates(tokens: List[str], base: Vec3):
    return coordinates(tokens, base).block_coords()


def _online(world: World, username: str) -> Player:
    player = world.get_player(username)
    if player is None:
        raise CommandError(f"Player {username} is not online")
    return player


def _block_id(world: World, token: str) -> int:
    if token.isdigit():
        block_id = int(token)
    else:
        info = world.data.blocks_by_name.get(token.removeprefix("minecraft:"))
        if info is None:
            raise CommandError(f"Unknown block {token}")
        block_id = info.id
    if world.data.block(block_id) is None:
        raise CommandError(f"Unknown block {token}")
    return block_id


# ---------------------------------------------------------------------- #
# Commands
# ---------------------------------------------------------------------- #


@command("help", "help", "List the available commands", op_required=False)
async def help_command(world: World, player: Player, args: List[str]) -> Optional[str]:
    await world.tell(player, "Available commands:")
    for spec in sorted(COMMANDS.values(), key=lambda each: each.name):
        await world.tell(player, f"/{spec.usage} - {spec.description}")
    return None


@command("particle", "particle <id> <amount> <sizeX> <sizeY> <sizeZ>", "Emit particles around you")
async def particle(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) != 5:
        raise UsageError()
    particle_id, amount = _number(args[0], int), _number(args[1], int)
    size_x, size_y, size_z = (_number(each) for each in args[2:])
    payload = {
        "particle_id": particle_id,
        "long_distance": False,
        **player.position.to_payload(),
        "offset_x": size_x,
        "offset_y": size_y,
        "offset_z": size_z,
        "particle_data": 0.0,
        "particles": amount,
    }
    await world.broadcast(Packet.WORLD_PARTICLES, payload, sender=player.username)
    return None


@command("playsound", "playsound <sound> [volume] [pitch]", "Play a sound where you stand")
async def playsound(world: World, player: Player, args: List[str]) -> Optional[str]:
    if not 1 <= len(args) <= 3:
        raise UsageError()
    volume = _number(args[1]) if len(args) > 1 else 1.0
    pitch = _number(args[2]) if len(args) > 2 else 1.0
    payload = {
        "sound_name": args[0],
        "sound_category": 0,
        **player.position.to_payload(),
        "volume": volume,
        "pitch": pitch,
    }
    await world.send(player, Packet.NAMED_SOUND_EFFECT, payload)
    return None


@command("summon", "summon <entity> [x] [y] [z]", "Spawn an entity")
async def summon(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) not in (1, 4):
        raise UsageError()
    position = coordinates(args[1:], player.position) if len(args) == 4 else player.position
    try:
        mob = world.spawn_mob(args[0], position)
    except ValueError as exc:
        raise CommandError(str(exc))
    await world.broadcast(Packet.SPAWN_ENTITY, mob.spawn_payload(), sender=player.username)
    return None


@command("kill", "kill @e[type=<entity>]", "Kill entities")
async def kill(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) != 1:
        raise UsageError()
    match = _SELECTOR.match(args[0])
    if match is None:
        raise CommandError("Only entity selectors (@e, @e[type=...]) can be killed")
    victims = world.remove_entities(world.mobs_named(match.group("type")))
    for mob in victims:
        await world.broadcast(
            Packet.ENTITY_STATUS,
            packets.entity_status(mob.entity_id, packets.ENTITY_STATUS_DEAD),
            sender=player.username,
        )
        await world.broadcast(Packet.ENTITY_DESTROY, packets.entity_destroy(mob.entity_id))
    if not victims:
        raise CommandError("No entity was found")
    return None


@command("tp", "tp [player] <x> <y> <z> | tp [player] <target>", "Teleport a player")
async def tp(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) == 1:
        await world.teleport(player, _online(world, args[0]).position)
    elif len(args) == 2:
        subject, target = _online(world, args[0]), _online(world, args[1])
        await world.teleport(subject, target.position)
    elif len(args) == 3:
        await world.teleport(player, coordinates(args, player.position))
    elif len(args) == 4:
        subject = _online(world, args[0])
        await world.teleport(subject, coordinates(args[1:], subject.position))
    else:
        raise UsageError()
    return None


@command("op", "op <player>", "Grant operator status")
async def op(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) != 1:
        raise UsageError()
    _online(world, args[0]).op = True
    return f"{args[0]} is opped"


@command("deop", "deop <player>", "Revoke operator status")
async def deop(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) != 1:
        raise UsageError()
    _online(world, args[0]).op = False
    return f"{args[0]} is deopped"


@command("setblock", "setblock <x> <y> <z> <block> [data]", "Change a block")
async def setblock(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) not in (4, 5):
        raise UsageError()
    x, y, z = block_coordinates(args[:3], player.position)
    block_id = _block_id(world, args[3])
    if len(args) == 5:
        _number(args[4], int)
    try:
        await world.change_block(x, y, z, block_id, sender=player.username)
    except ValueError as exc:
        raise CommandError(str(exc))
    return None


@command("setblockaction", "setblockaction <x> <y> <z> <byte1> <byte2>", "Trigger a block action")
async def setblockaction(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) != 5:
        raise UsageError()
    x, y, z = block_coordinates(args[:3], player.position)
    byte1, byte2 = _number(args[3], int), _number(args[4], int)
    payload = packets.block_action(x, y, z, byte1, byte2, world.block_at(x, y, z))
    await world.broadcast(Packet.BLOCK_ACTION, payload, sender=player.username)
    return None


@command("xp", "xp <amount>[L] [player]", "Give experience points or levels")
async def xp(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) not in (1, 2):
        raise UsageError()
    target = _online(world, args[1]) if len(args) == 2 else player
    amount = args[0]
    if amount.upper().endswith("L"):
        level = max(0, target.experience_level + _number(amount[:-1], int))
        target.total_experience = experience_for_level(level)
    else:
        target.total_experience = max(0, target.total_experience + _number(amount, int))
    await world.send_experience(target)
    return None


@command("gamemode", "gamemode <mode> [player]", "Change game mode")
async def gamemode(world: World, player: Player, args: List[str]) -> Optional[str]:
    if len(args) not in (1, 2):
        raise UsageError()
    mode = GAME_MODES.get(args[0].lower())
    if mode is None:
        mode = _number(args[0], int)
        if mode not in GAME_MODES.values():
            raise CommandError(f"Unknown game mode {args[0]}")
    target = _online(world, args[1]) if len(args) == 2 else player
    target.game_mode = mode
    await world.send(
        target,
        Packet.GAME_STATE_CHANGE,
        packets.game_state_change(packets.GAME_STATE_CHANGE_MODE, mode),
    )
    return f"Set {target.username}'s game mode to {mode}"
