"""Seeded heightmap generators.

Both generators map a column ``(x, z)`` to the altitude of its surface block;
the block layers below the surface follow :func:`terrain_block`.
"""

import random
from typing import List, Optional, Protocol

from loguru import logger

from voxelbang.game_server.settings import GenerationSettings

GRID_EXPONENT = 7
GRID_SIZE = (1 << GRID_EXPONENT) + 1
TILE = GRID_SIZE - 1
SUPERFLAT_HEIGHT = 4
MIN_SURFACE = 8


class HeightMap(Protocol):
    def height(self, x: int, z: int) -> int:
        ...


class SuperflatTerrain:
    def __init__(self, surface: int = SUPERFLAT_HEIGHT) -> None:
        self.surface = surface

    def height(self, x: int, z: int) -> int:
        return self.surface


class DiamondSquareTerrain:
    """Diamond-square heightmap on a 129x129 grid, tiled across the world.

    The same seed always yields the same terrain.
    """

    def __init__(self, seed: int, world_height: int, roughness: float = 0.5) -> None:
        self.seed = seed
        self.world_height = world_height
        self.roughness = roughness
        self._grid = self._generate()

    def _generate(self) -> List[List[int]]:
        rng = random.Random(self.seed)
        grid = [[0.0] * GRID_SIZE for _ in range(GRID_SIZE)]
        for x, z in ((0, 0), (0, TILE), (TILE, 0), (TILE, TILE)):
            grid[x][z] = rng.random()

        step = TILE
        scale = 1.0
        while step > 1:
            half = step // 2
            # Diamond step: centre of every square.
            for x in range(half, TILE, step):
                for z in range(half, TILE, step):
                    average = (
                        grid[x - half][z - half]
                        + grid[x - half][z + half]
                        + grid[x + half][z - half]
                        + grid[x + half][z + half]
                    ) / 4
                    grid[x][z] = average + rng.uniform(-scale, scale) * 0.5
            # Square step: midpoint of every edge, wrapping so tiles join.
            for x in range(0, GRID_SIZE, half):
                for z in range((x + half) % step, GRID_SIZE, step):
                    average = (
                        grid[(x - half) % TILE][z]
                        + grid[(x + half) % TILE][z]
                        + grid[x][(z + half) % TILE]
                        + grid[x][(z - half) % TILE]
                    ) / 4
                    grid[x][z] = average + rng.uniform(-scale, scale) * 0.5
            step = half
            scale *= self.roughness

        low = min(min(row) for row in grid)
        high = max(max(row) for row in grid)
        span = (high - low) or 1.0
        floor_height = max(MIN_SURFACE, self.world_height // 3)
        ceiling = max(floor_height, self.world_height - 2)
        return [
            [floor_height + round((value - low) / span * (ceiling - floor_height)) for value in row]
            for row in grid
        ]

    def height(self, x: int, z: int) -> int:
        return self._grid[x % TILE][z % TILE]


def create_terrain(generation: GenerationSettings, seed: Optional[int] = None) -> HeightMap:
    """Build the heightmap named by ``generation``; an unseeded world picks a random seed."""
    if generation.name == "superflat":
        return SuperflatTerrain()
    if seed is None:
        seed = generation.options.seed
    if seed is None:
        seed = random.randrange(1 << 31)
        logger.info("No generation seed configured; using {}", seed)
    return DiamondSquareTerrain(seed, generation.options.world_height)
