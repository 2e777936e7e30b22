"""Immutable server settings loaded from the YAML base template."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from voxelbang.utils.world_data import SUPPORTED_VERSIONS

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "config" / "default_settings.yaml"

GENERATORS = ("diamond_square", "superflat")


class GenerationOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    seed: Optional[int] = None
    world_height: int = Field(80, alias="worldHeight", ge=8, le=250)


class GenerationSettings(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = "diamond_square"
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    @field_validator("name")
    @classmethod
    def _known_generator(cls, value: str) -> str:
        if value not in GENERATORS:
            raise ValueError(f"Unknown generation algorithm {value!r}")
        return value


class ServerSettings(BaseModel):
    """Configuration for one world server instance.

    Instances are frozen; derive variants with :meth:`with_overrides`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    motd: str = "A voxel-bang server"
    host: str = "127.0.0.1"
    port: int = Field(25565, ge=0, le=65535)
    max_players: int = Field(10, alias="max-players", ge=1)
    online_mode: bool = Field(True, alias="online-mode")
    logging: bool = True
    game_mode: int = Field(1, alias="gameMode", ge=0, le=3)
    world_folder: Optional[Path] = Field(None, alias="worldFolder")
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    view_distance: int = Field(10, alias="view-distance", ge=1, le=32)
    everybody_op: bool = Field(True, alias="everybody-op")
    max_entities: int = Field(100, alias="max-entities", ge=0)
    version: str = "1.12.2"

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: str) -> str:
        if value not in SUPPORTED_VERSIONS:
            raise ValueError(
                f"Unsupported version {value!r}; expected one of {', '.join(SUPPORTED_VERSIONS)}"
            )
        return value

    def with_overrides(self, **overrides: Any) -> "ServerSettings":
        """Return a validated copy with ``overrides`` applied (field names, not aliases)."""
        data = self.model_dump()
        data.update(overrides)
        return ServerSettings.model_validate(data)


def load_default_settings(path: Path = DEFAULT_SETTINGS_PATH) -> ServerSettings:
    """Load the base settings template."""
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return ServerSettings.model_validate(raw)
