import asyncio

import pytest

from voxelbang.client import physics
from voxelbang.client.bot import BotClient, create_bot
from voxelbang.client.state import ChatMessage, ChunkColumn, Entity, Item, Window, WorldView
from voxelbang.game_server.core import packets
from voxelbang.harness.waits import once
from voxelbang.utils.events import BotEvent, Packet, WindowEvent, block_update_at
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import AIR, GRASS, STONE, get_version_data

FLAT = [4] * 256


def _flat_view(*columns):
    view = WorldView(get_version_data("1.12.2"))
    for cx, cz in columns or [(0, 0)]:
        view.load_column(ChunkColumn(cx, cz, list(FLAT)))
    return view


def _bot():
    return BotClient("127.0.0.1", 1, "bot", "1.12.2", physics_enabled=False)


def test_chunk_column_indexes_heights_by_local_coordinates():
    heights = [0] * 256
    heights[3 * 16 + 2] = 9  # local x=2, z=3
    column = ChunkColumn(1, -1, heights)
    assert column.height(18, -13) == 9
    assert column.block_type(18, 9, -13) == GRASS


def test_world_view_unloaded_and_updates():
    view = _flat_view()
    assert view.block_at(Vec3(40, 4, 0)) is None
    assert view.is_solid(Vec3(40, 4, 0)) is None
    assert view.set_block(Vec3(40, 4, 0), STONE) == (None, None)

    old, new = view.set_block(Vec3(1.5, 4.2, 1.5), AIR)
    assert old.type == GRASS and old.position == Vec3(1, 4, 1)
    assert new.is_air
    assert view.is_solid(Vec3(1, 4, 1)) is False


def test_window_emits_slot_updates():
    window = Window()
    seen = []
    window.on(WindowEvent.WINDOW_UPDATE, lambda *args: seen.append(args))

    window.update_slot(36, Item(STONE, 1))

    assert seen == [(36, None, Item(STONE, 1))]
    assert window.held_item(0) == Item(STONE, 1)
    with pytest.raises(IndexError):
        window.update_slot(46, None)


def test_item_payload_conversion():
    assert Item.from_payload({"block_id": 1, "item_count": 3}) == Item(1, 3)
    assert Item.from_payload(None) is None
    assert Item(1, 3).to_payload() == {"block_id": 1, "item_count": 3}


def test_chat_message_text_prefers_first_extra():
    assert ChatMessage({"text": "", "extra": [{"text": "hello"}, {"text": "!"}]}).text == "hello"
    assert ChatMessage({"text": "plain"}).text == "plain"


def test_physics_falls_until_landing():
    view = _flat_view()
    entity = Entity(1, "player", "player", Vec3(0.5, 12, 0.5))
    state = physics.PhysicsState()

    for _ in range(200):
        physics.step(entity, view, state)
        if entity.on_ground:
            break

    assert entity.on_ground
    assert entity.position == Vec3(0.5, 5, 0.5)
    assert physics.step(entity, view, state) is False


def test_physics_waits_for_column():
    view = _flat_view()
    entity = Entity(1, "player", "player", Vec3(100.5, 12, 0.5))
    assert physics.step(entity, view, physics.PhysicsState()) is False
    assert entity.position == Vec3(100.5, 12, 0.5)


def test_gravity_caps_at_terminal_velocity():
    state = physics.PhysicsState()
    for _ in range(1000):
        physics.apply_gravity(state)
        assert state.y_vel >= -physics.TERMINAL_VELOCITY
    assert state.y_vel == pytest.approx(-physics.TERMINAL_VELOCITY)


def test_bot_tracks_login_chunks_and_forced_moves():
    bot = _bot()
    events = []
    bot.on(BotEvent.LOGIN, lambda: events.append("login"))
    bot.on(BotEvent.CHUNK_COLUMN_LOAD, lambda corner: events.append(corner))
    bot.on(BotEvent.FORCED_MOVE, lambda pos: events.append(("forced", pos)))

    bot._dispatch_packet("login", {"entity_id": 7, "game_mode": 1})
    bot._dispatch_packet("map_chunk", {"x": -1, "z": 0, "heights": FLAT, "overrides": []})
    bot._dispatch_packet("position", packets.position(Vec3(0.5, 5, 0.5), 3))

    assert bot.entity.id == 7
    assert bot.game_mode == 1
    assert bot._teleport_id == 3
    assert events == ["login", Vec3(-16, 0, 0), ("forced", Vec3(0.5, 5, 0.5))]


def test_bot_block_updates_are_keyed_by_position():
    bot = _bot()
    bot._dispatch_packet("map_chunk", {"x": 0, "z": 0, "heights": FLAT, "overrides": []})
    anywhere, here = [], []
    bot.on(BotEvent.BLOCK_UPDATE, lambda old, new: anywhere.append(new))
    bot.on(block_update_at((1, 2, 3)), lambda old, new: here.append(new))

    bot._dispatch_packet("block_change", packets.block_change(1, 2, 3, 95))
    bot._dispatch_packet("block_change", packets.block_change(4, 2, 3, 95))

    assert [block.position for block in anywhere] == [Vec3(1, 2, 3), Vec3(4, 2, 3)]
    assert [block.type for block in here] == [95]


def test_bot_entity_lifecycle():
    bot = _bot()
    dead, gone = [], []
    bot.on(BotEvent.ENTITY_DEAD, dead.append)
    bot.on(BotEvent.ENTITY_GONE, gone.append)

    bot._dispatch_packet(
        "spawn_entity",
        {"entity_id": 5, "type": "mob", "name": "ender_dragon", "position": {"x": 0, "y": 9, "z": 0}},
    )
    bot._dispatch_packet("entity_status", packets.entity_status(5, packets.ENTITY_STATUS_DEAD))
    bot._dispatch_packet("entity_destroy", packets.entity_destroy(5))

    assert [entity.name for entity in dead] == ["ender_dragon"]
    assert dead[0].alive is False
    assert gone == dead
    assert bot.entities == {}


def test_bot_messages_sounds_and_experience():
    bot = _bot()
    messages, sounds = [], []
    bot.on(BotEvent.MESSAGE, messages.append)
    bot.on(BotEvent.SOUND_EFFECT_HEARD, lambda *args: sounds.append(args))

    bot._dispatch_packet("chat", packets.chat("bot joined the game."))
    bot._dispatch_packet(
        "named_sound_effect",
        {"sound_name": "ambient.weather.rain", "x": 1, "y": 2, "z": 3, "volume": 1, "pitch": 1},
    )
    bot._dispatch_packet("experience", packets.experience(0.5, 7, 100))

    assert messages[0].text == "bot joined the game."
    assert sounds == [("ambient.weather.rain", Vec3(1, 2, 3), 1.0, 1.0)]
    assert bot.experience.points == 100
    assert bot.experience.level == 7


def test_bot_reemits_raw_packets_and_ignores_unknown_ones():
    bot = _bot()
    raw = []
    bot.protocol.on(Packet.BLOCK_ACTION, raw.append)

    payload = packets.block_action(1, 2, 3, 1, 1, 54)
    bot._dispatch_packet("block_action", payload)
    bot._dispatch_packet("no_such_packet", {})

    assert raw == [payload]


def test_bot_inventory_follows_set_slot():
    bot = _bot()
    bot._dispatch_packet("set_slot", packets.set_slot(36, {"block_id": 1, "item_count": 1}))
    assert bot.inventory.held_item(0) == Item(1, 1)


def test_bot_requires_username():
    with pytest.raises(ValueError):
        BotClient("127.0.0.1", 1, "", "1.12.2")


@pytest.mark.asyncio
async def test_background_connect_failure_is_reported_as_error_event():
    bot = create_bot("127.0.0.1", 1, "bot", "1.12.2")
    failed = once(bot, BotEvent.ERROR)

    (exc,) = await asyncio.wait_for(failed, 5)

    assert isinstance(exc, OSError)
    assert not bot.connected
    ended = once(bot, BotEvent.END)
    await bot.quit()
    assert await asyncio.wait_for(ended, 5) == ("disconnect.quitting",)
