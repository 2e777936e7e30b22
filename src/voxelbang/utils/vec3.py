"""Immutable 3D vector used for block and entity positions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

POSITION_TOLERANCE = 1.0


@dataclass(frozen=True, slots=True)
class Vec3:
    x: float
    y: float
    z: float

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | Iterable[float]) -> "Vec3":
        """Build a vector from a ``{"x","y","z"}`` mapping or a 3-item sequence."""
        if isinstance(data, Mapping):
            return cls(float(data["x"]), float(data["y"]), float(data["z"]))
        x, y, z = data
        return cls(float(x), float(y), float(z))

    def offset(self, dx: float, dy: float, dz: float) -> "Vec3":
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def floored(self) -> "Vec3":
        return Vec3(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def block_coords(self) -> tuple[int, int, int]:
        """Integer coordinates of the block containing this point."""
        return (math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def to_payload(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


def positions_equal(
    actual: Vec3, expected: Vec3, tolerance: float = POSITION_TOLERANCE
) -> bool:
    """Two positions compare equal when they are strictly closer than ``tolerance``."""
    return actual.distance_to(expected) < tolerance
