"""Shared fixtures: an in-memory world and recording sinks standing in for websockets."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from voxelbang.game_server.core.world import World
from voxelbang.harness.runner import scenario_settings


class RecordingSink:
    """EventSink that keeps every envelope instead of writing to a socket."""

    def __init__(self, username: Optional[str]) -> None:
        self.username = username
        self.connection_id = f"conn-{username}"
        self.envelopes: List[Dict[str, Any]] = []
        self.closed = False

    async def send_event(self, envelope: dict) -> None:
        self.envelopes.append(envelope)

    async def close(self, code: int = 1001) -> None:
        self.closed = True

    def match_player(self, username: str) -> bool:
        return self.username == username

    def events(self, name: Optional[str] = None) -> List[str]:
        return [e["event"] for e in self.envelopes if name is None or e["event"] == name]

    def payloads(self, name: str) -> List[Dict[str, Any]]:
        return [e["payload"] for e in self.envelopes if e["event"] == name]

    def messages(self) -> List[str]:
        return [p["message"]["extra"][0]["text"] for p in self.payloads("chat")]

    def clear(self) -> None:
        self.envelopes.clear()


@pytest.fixture
def settings():
    return scenario_settings("1.12.2").with_overrides(generation={"name": "superflat"})


@pytest.fixture
def world(settings):
    return World(settings)


@pytest.fixture
def join(world):
    """Factory putting a player with a recording sink into ``world``."""

    async def _join(username: str, *, op: bool = True):
        sink = RecordingSink(username)
        await world.events.register(sink)
        player = world.add_player(username, sink)
        player.op = op
        return player, sink

    return _join


@pytest.fixture
def make_sink():
    return RecordingSink
