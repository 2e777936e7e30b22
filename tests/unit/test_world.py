import pytest

from voxelbang.game_server.core.terrain import (
    DiamondSquareTerrain,
    SuperflatTerrain,
    create_terrain,
)
from voxelbang.game_server.core.world import experience_for_level
from voxelbang.game_server.settings import GenerationSettings
from voxelbang.utils.vec3 import Vec3
from voxelbang.utils.world_data import (
    AIR,
    BEDROCK,
    DIRT,
    GRASS,
    STONE,
    get_version_data,
    terrain_block,
)


def test_diamond_square_is_deterministic_per_seed():
    first = DiamondSquareTerrain(seed=42, world_height=80)
    second = DiamondSquareTerrain(seed=42, world_height=80)
    other = DiamondSquareTerrain(seed=43, world_height=80)

    samples = [(x, z) for x in range(0, 128, 9) for z in range(0, 128, 11)]
    assert [first.height(x, z) for x, z in samples] == [second.height(x, z) for x, z in samples]
    assert [first.height(x, z) for x, z in samples] != [other.height(x, z) for x, z in samples]


def test_diamond_square_heights_stay_in_range_and_tile():
    terrain = DiamondSquareTerrain(seed=7, world_height=80)
    heights = [terrain.height(x, z) for x in range(128) for z in range(0, 128, 4)]
    assert min(heights) >= 26
    assert max(heights) <= 78
    assert terrain.height(5, -3) == terrain.height(133, 125)


def test_create_terrain_picks_generator():
    assert isinstance(create_terrain(GenerationSettings(name="superflat")), SuperflatTerrain)
    seeded = create_terrain(GenerationSettings(name="diamond_square", options={"seed": 3}))
    assert isinstance(seeded, DiamondSquareTerrain)
    assert seeded.seed == 3


def test_superflat_layers(world):
    assert world.block_at(0, 0, 0) == BEDROCK
    assert world.block_at(0, 1, 0) == DIRT
    assert world.block_at(0, 4, 0) == GRASS
    assert world.block_at(0, 5, 0) == AIR
    assert world.spawn_point() == Vec3(0.5, 5, 0.5)


def test_deep_terrain_is_stone():
    assert terrain_block(10, 40) == STONE
    assert terrain_block(-1, 40) == AIR


def test_set_block_overrides_terrain_and_reaches_column_payload(world):
    previous = world.set_block(1, 2, 3, 95)

    assert previous == DIRT
    assert world.block_at(1, 2, 3) == 95
    payload = world.column_payload(0, 0)
    assert payload["overrides"] == [[1, 2, 3, 95]]
    assert len(payload["heights"]) == 256


def test_set_block_rejects_bad_input(world):
    with pytest.raises(ValueError):
        world.set_block(0, 256, 0, STONE)
    with pytest.raises(ValueError):
        world.set_block(0, 10, 0, 999)


def test_columns_around_spawn_form_square_of_side_twice_view(world):
    columns = world.columns_around(world.spawn_point())
    assert len(columns) == 16
    assert len(set(columns)) == 16
    assert (0, 0) in columns


def test_spawn_and_remove_mobs(world):
    name = "ender_dragon"
    mob = world.spawn_mob(name, Vec3(0, 10, 0))
    assert world.mobs_named(name) == [mob]
    assert world.remove_entities([mob]) == [mob]
    assert mob.alive is False
    assert world.mobs_named(None) == []

    with pytest.raises(ValueError):
        world.spawn_mob("EnderDragon", Vec3(0, 10, 0))


def test_legacy_versions_use_camel_case_entities():
    legacy = get_version_data("1.8.9")
    assert legacy.supports_feature("entityCamelCase")
    assert "EnderDragon" in legacy.entities_by_name
    assert not get_version_data("1.12.2").supports_feature("entityCamelCase")


@pytest.mark.asyncio
async def test_experience_levels(join):
    player, _ = await join("alice")
    player.total_experience = experience_for_level(2)
    assert player.experience_level == 2
    assert player.experience_progress == 0
    assert experience_for_level(17) == 2.5 * 17 * 17 - 40.5 * 17 + 360


@pytest.mark.asyncio
async def test_teleport_sends_forced_move_to_target_only(world, join):
    alice, alice_sink = await join("alice")
    _, bob_sink = await join("bob")

    await world.teleport(alice, Vec3(2, 3, 4))

    assert alice.teleport_id == 1
    assert alice_sink.payloads("position")[-1]["teleport_id"] == 1
    assert "position" not in bob_sink.events()
    assert bob_sink.payloads("entity_teleport") == [
        {"entity_id": alice.entity_id, "position": {"x": 2, "y": 3, "z": 4}, "on_ground": False}
    ]


@pytest.mark.asyncio
async def test_broadcast_skips_connections_without_a_player(world, join, make_sink):
    _, alice_sink = await join("alice")
    anonymous = make_sink(None)
    await world.events.register(anonymous)

    delivered = await world.announce("hello")

    assert delivered == 1
    assert alice_sink.messages() == ["hello"]
    assert anonymous.envelopes == []
