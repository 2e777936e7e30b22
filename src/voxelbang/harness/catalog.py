"""The scenario catalog: one action and its expected observations per scenario.

Every body registers its waits before issuing the action that triggers them.
Waits that must exist before the bots log in (join messages, chunk loads) are
armed by a ``prepare`` hook and fetched with ``ctx.armed``.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from voxelbang.client.state import Item
from voxelbang.game_server.api.login import join_message
from voxelbang.game_server.commands import PERMISSION_DENIED
from voxelbang.harness.assertions import assert_block_type, assert_equal, assert_pos_equal
from voxelbang.harness.runner import PrepareHook, Scenario, ScenarioBody, ScenarioContext
from voxelbang.harness.waits import (
    gather_payloads,
    on_ground,
    once,
    wait_entity,
    wait_for,
    wait_message,
    wait_messages,
    wait_spawn_zone,
)
from voxelbang.utils.events import BotEvent, Packet, WindowEvent, block_update_at
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import AIR, STONE, get_version_data

SCENARIOS: Dict[str, Scenario] = {}


def scenario(group: str, *, prepare: Optional[PrepareHook] = None):
    def decorator(body: ScenarioBody) -> ScenarioBody:
        name = body.__name__
        SCENARIOS[name] = Scenario(
            name=name,
            group=group,
            body=body,
            prepare=prepare,
            description=(body.__doc__ or "").strip(),
        )
        return body

    return decorator


def scenarios_in(group: Optional[str] = None) -> List[Scenario]:
    return [each for each in SCENARIOS.values() if group is None or each.group == group]


# ---------------------------------------------------------------------- #
# Prepare hooks
# ---------------------------------------------------------------------- #


def arm_spawn_zones(ctx: ScenarioContext) -> None:
    for bot in ctx.actors:
        ctx.arm(f"{bot.username}.spawn_zone", wait_spawn_zone(bot, ctx.settings.view_distance))


def arm_join_messages(ctx: ScenarioContext) -> None:
    first = ctx.actors[0]
    expected = [join_message(username) for username in ctx.bots]
    ctx.arm(f"{first.username}.joins", wait_messages(first, expected))


async def settle(ctx: ScenarioContext, *bots) -> None:
    """Wait until every given bot loaded its spawn zone and stands on the ground."""
    waits = [ctx.armed(f"{bot.username}.spawn_zone") for bot in bots]
    waits += [on_ground(bot) for bot in bots]
    await gather_payloads(*waits)


# ---------------------------------------------------------------------- #
# Actions
# ---------------------------------------------------------------------- #


@scenario("actions", prepare=arm_spawn_zones)
async def can_dig(ctx: ScenarioContext) -> None:
    """Digging the block under one bot is seen by the other."""
    bot, bot2 = ctx.actors
    await settle(ctx, bot, bot2)

    pos = bot.entity.position.offset(0, -1, 0).floored()
    update = once(bot2, BotEvent.BLOCK_UPDATE)
    await bot.dig(bot.block_at(pos))

    _, new_block = await update
    assert_pos_equal(new_block.position, pos)
    assert_block_type(new_block, AIR)


@scenario("actions", prepare=arm_spawn_zones)
async def can_place_block(ctx: ScenarioContext) -> None:
    """A block placed from the creative inventory is seen by the other bot."""
    bot, bot2 = ctx.actors
    await settle(ctx, bot, bot2)

    pos = bot.entity.position.offset(0, -2, 0).floored()
    update = once(bot2, BotEvent.BLOCK_UPDATE)
    await bot.dig(bot.block_at(pos))
    _, new_block = await update
    assert_pos_equal(new_block.position, pos)
    assert_block_type(new_block, AIR)

    slot_filled = wait_for(
        bot.inventory,
        WindowEvent.WINDOW_UPDATE,
        lambda slot, old, new: slot == 36 and new is not None and new.type == STONE,
    )
    await bot.set_creative_slot(36, Item(STONE, 1))
    await slot_filled

    update = once(bot2, BotEvent.BLOCK_UPDATE)
    await bot.place_block(bot.block_at(pos.offset(0, -1, 0)), Vec3(0, 1, 0))
    _, new_block = await update
    assert_pos_equal(new_block.position, pos)
    assert_block_type(new_block, STONE)


@scenario("actions", prepare=arm_spawn_zones)
async def can_open_and_close_chest(ctx: ScenarioContext) -> None:
    """Both bots see the chest open, then close."""
    bot, bot2 = ctx.actors
    await settle(ctx, bot, bot2)

    chest_id = get_version_data(ctx.settings.version).blocks_by_name["chest"].id
    x, y, z = 1, 2, 3

    placed = once(bot, BotEvent.BLOCK_UPDATE)
    await bot.chat(f"/setblock {x} {y} {z} {chest_id} 2")  # a chest facing north
    await placed

    for state, byte2 in (("open", 1), ("closed", 0)):
        expected = {"location": {"x": x, "y": y, "z": z}, "byte1": 1, "byte2": byte2, "blockId": chest_id}
        actions = [once(each.protocol, Packet.BLOCK_ACTION) for each in (bot, bot2)]
        await bot.chat(f"/setblockaction {x} {y} {z} 1 {byte2}")
        for each, (payload,) in zip((bot, bot2), await gather_payloads(*actions)):
            assert_equal(f"block_action seen by {each.username} ({state})", payload, expected)


# ---------------------------------------------------------------------- #
# Commands
# ---------------------------------------------------------------------- #


@scenario("commands", prepare=arm_join_messages)
async def has_help_command(ctx: ScenarioContext) -> None:
    """/help answers with a chat message."""
    bot = ctx.actors[0]
    await ctx.armed(f"{bot.username}.joins")
    reply = once(bot, BotEvent.MESSAGE)
    await bot.chat("/help")
    await reply


@scenario("commands")
async def can_use_particle(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    particles = once(bot.protocol, Packet.WORLD_PARTICLES)
    await bot.chat("/particle 5 10 100 100 100")
    await particles


@scenario("commands")
async def can_use_playsound(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    heard = once(bot, BotEvent.SOUND_EFFECT_HEARD)
    await bot.chat("/playsound ambient.weather.rain")
    await heard


@scenario("commands")
async def can_use_summon(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    spawned = wait_entity(bot, ctx.entity_name)
    await bot.chat(f"/summon {ctx.entity_name}")
    await spawned


@scenario("commands")
async def can_use_kill(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    spawned = wait_entity(bot, ctx.entity_name)
    await bot.chat(f"/summon {ctx.entity_name}")
    await spawned

    dead = once(bot, BotEvent.ENTITY_DEAD)
    await bot.chat(f"/kill @e[type={ctx.entity_name}]")
    (entity,) = await dead
    assert_equal("dead entity", entity.name, ctx.entity_name)


@scenario("tp")
async def can_tp_myself(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    moved = once(bot, BotEvent.FORCED_MOVE)
    await bot.chat("/tp 2 3 4")
    await moved
    assert_pos_equal(bot.entity.position, Vec3(2, 3, 4))


@scenario("tp")
async def can_tp_somebody_else(ctx: ScenarioContext) -> None:
    bot, bot2 = ctx.actors
    moved = once(bot2, BotEvent.FORCED_MOVE)
    await bot.chat(f"/tp {bot2.username} 2 3 4")
    await moved
    assert_pos_equal(bot2.entity.position, Vec3(2, 3, 4))


@scenario("tp")
async def can_tp_to_somebody_else(ctx: ScenarioContext) -> None:
    bot, bot2 = ctx.actors
    await on_ground(bot)
    moved = once(bot2, BotEvent.FORCED_MOVE)
    await bot.chat(f"/tp {bot2.username} {bot.username}")
    await moved
    assert_pos_equal(bot2.entity.position, bot.entity.position)


@scenario("tp")
async def can_tp_with_relative_positions(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    await on_ground(bot)
    initial = bot.entity.position
    moved = once(bot, BotEvent.FORCED_MOVE)
    await bot.chat("/tp ~1 ~-2 ~3")
    await moved
    assert_pos_equal(bot.entity.position, initial.offset(1, -2, 3))


@scenario("tp")
async def can_tp_somebody_else_with_relative_positions(ctx: ScenarioContext) -> None:
    bot, bot2 = ctx.actors
    await gather_payloads(on_ground(bot), on_ground(bot2))
    initial = bot2.entity.position
    moved = once(bot2, BotEvent.FORCED_MOVE)
    await bot.chat(f"/tp {bot2.username} ~1 ~-2 ~3")
    await moved
    assert_pos_equal(bot2.entity.position, initial.offset(1, -2, 3))


@scenario("commands", prepare=arm_join_messages)
async def can_use_deop(ctx: ScenarioContext) -> None:
    """A deopped player can no longer run operator commands."""
    bot = ctx.actors[0]
    await ctx.armed(f"{bot.username}.joins")
    try:
        deopped = wait_message(bot, f"{bot.username} is deopped")
        await bot.chat(f"/deop {bot.username}")
        await deopped

        denied = wait_message(bot, PERMISSION_DENIED)
        await bot.chat(f"/op {bot.username}")
        await denied
    finally:
        player = ctx.server.get_player(bot.username)
        if player is not None:
            player.op = True


@scenario("commands", prepare=arm_spawn_zones)
async def can_use_setblock(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    await gather_payloads(ctx.armed(f"{bot.username}.spawn_zone"), on_ground(bot))
    update = once(bot, block_update_at(Vec3(1, 2, 3)))
    await bot.chat("/setblock 1 2 3 95 0")
    _, new_block = await update
    assert_block_type(new_block, 95)


@scenario("commands")
async def can_use_xp(ctx: ScenarioContext) -> None:
    bot = ctx.actors[0]
    gained = once(bot, BotEvent.EXPERIENCE)
    await bot.chat("/xp 100")
    await gained
    assert_equal("experience points", bot.experience.points, 100)
