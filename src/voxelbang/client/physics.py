"""Vertical-only physics for the bot's own entity.

The bot never walks; the only motion it simulates is falling until its feet
rest on a solid block. Each call to :func:`step` advances one 50 ms tick.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from voxelbang.client.state import Entity, WorldView
from voxelbang.utils.vec3 import Vec3

TICK_SECONDS = 0.05
GRAVITY = 0.08
DRAG = 0.98
TERMINAL_VELOCITY = 3.92
FEET_EPSILON = 1e-3
VOID_FLOOR = -64.0


@dataclass
class PhysicsState:
    y_vel: float = 0.0


def _feet_block(position: Vec3) -> Vec3:
    return Vec3(position.x, position.y - FEET_EPSILON, position.z)


def apply_gravity(state: PhysicsState) -> None:
    state.y_vel = max((state.y_vel - GRAVITY) * DRAG, -TERMINAL_VELOCITY)


def step(entity: Entity, world: WorldView, state: PhysicsState) -> bool:
    """Advance ``entity`` one tick. Returns True when position or ``on_ground`` changed.

    Nothing moves while the column under the entity is not loaded yet.
    """
    below = world.is_solid(_feet_block(entity.position))
    if below is None:
        return False

    if below:
        state.y_vel = 0.0
        if entity.on_ground:
            return False
        entity.on_ground = True
        return True

    apply_gravity(state)
    position = entity.position
    target_y = max(position.y + state.y_vel, VOID_FLOOR)

    # Scan every block the feet cross this tick; land on the first solid one.
    y = math.floor(position.y - FEET_EPSILON)
    while y >= math.floor(target_y):
        if world.is_solid(Vec3(position.x, y, position.z)):
            entity.position = Vec3(position.x, y + 1, position.z)
            entity.on_ground = True
            state.y_vel = 0.0
            return True
        y -= 1

    entity.position = Vec3(position.x, target_y, position.z)
    entity.on_ground = False
    return True
