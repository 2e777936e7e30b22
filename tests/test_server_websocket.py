import json

import pytest
from fastapi.testclient import TestClient

from voxelbang.game_server.api.login import join_message
from voxelbang.game_server.core.world import World
from voxelbang.game_server.server import build_app
from voxelbang.harness.runner import scenario_settings


@pytest.fixture
def world():
    settings = scenario_settings("1.12.2").with_overrides(generation={"name": "superflat"})
    return World(settings)


@pytest.fixture
def ws_client(world):
    # One portal for every socket so all connections share the world's loop.
    with TestClient(build_app(world)) as client:
        yield client


def _rpc(ws, frame_id, endpoint, payload=None, limit=100):
    """Send one RPC and collect the events that precede its response."""
    ws.send_text(json.dumps({"id": frame_id, "type": "rpc", "endpoint": endpoint, "payload": payload or {}}))
    events = []
    for _ in range(limit):
        msg = ws.receive_json()
        if msg.get("frame_type") == "rpc" and msg.get("id") == frame_id:
            return msg, events
        events.append(msg)
    raise AssertionError(f"Did not receive response to {endpoint}")


def _recv_until(ws, predicate, limit=20):
    for _ in range(limit):
        msg = ws.receive_json()
        if predicate(msg):
            return msg
    raise AssertionError("Did not receive expected frame")


def _chat_texts(events):
    return [
        e["payload"]["message"]["extra"][0]["text"]
        for e in events
        if e.get("frame_type") == "event" and e["event"] == "chat"
    ]


def _login(ws, username, frame_id="login"):
    return _rpc(ws, frame_id, "login", {"username": username, "version": "1.12.2"})


def test_status_endpoint(ws_client):
    response = ws_client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert body["game_version"] == "1.12.2"
    assert body["online"] == 0


def test_login_streams_world_before_ack(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        response, events = _login(ws, "bot")

    assert response["ok"] is True
    assert response["endpoint"] == "login"
    assert response["result"]["username"] == "bot"

    names = [e["event"] for e in events]
    assert names[0] == "login"
    assert names.count("map_chunk") == 16
    assert names.index("position") > names.index("spawn_position")
    assert _chat_texts(events) == [join_message("bot")]
    position = next(e["payload"] for e in events if e["event"] == "position")
    assert position["teleport_id"] == 1
    assert position["y"] == 5


def test_second_player_sees_each_join_once(ws_client):
    with ws_client.websocket_connect("/ws") as first:
        _login(first, "bot")
        with ws_client.websocket_connect("/ws") as second:
            _, second_events = _login(second, "bot2")
            assert sorted(_chat_texts(second_events)) == sorted([join_message("bot"), join_message("bot2")])
            spawned = [e["payload"]["username"] for e in second_events if e["event"] == "spawn_entity"]
            assert spawned == ["bot"]

        seen = _recv_until(first, lambda m: m.get("event") == "chat")
        assert seen["payload"]["message"]["extra"][0]["text"] == join_message("bot2")


def test_login_errors(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        response, _ = _rpc(ws, "1", "login", {"username": "bot", "version": "1.8.9"})
        assert response["ok"] is False
        assert response["error"]["status"] == 400

        response, _ = _rpc(ws, "2", "login", {"version": "1.12.2"})
        assert response["error"]["status"] == 422

        _login(ws, "bot", frame_id="3")
        response, _ = _login(ws, "bot", frame_id="4")
        assert response["error"]["status"] == 400

        with ws_client.websocket_connect("/ws") as other:
            response, _ = _login(other, "bot")
            assert response["error"]["status"] == 409


def test_transport_errors(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        bad = ws.receive_json()
        assert bad["ok"] is False
        assert bad["error"] == {"status": 400, "detail": "Invalid JSON"}

        response, _ = _rpc(ws, "1", "teleport_everyone")
        assert response["error"]["status"] == 404

        response, _ = _rpc(ws, "2", "chat", {"message": "hi"})
        assert response["error"]["status"] == 401


def test_chat_and_commands(ws_client):
    with ws_client.websocket_connect("/ws") as ws:
        _login(ws, "bot")
        response, events = _rpc(ws, "1", "chat", {"message": "hello"})
        assert response["result"] == {"command": False}
        assert _chat_texts(events) == ["<bot> hello"]

        response, events = _rpc(ws, "2", "chat", {"message": "/setblock 1 2 3 95 0"})
        assert response["result"] == {"command": True, "handled": True}
        assert [e["payload"] for e in events if e["event"] == "block_change"] == [
            {"location": {"x": 1, "y": 2, "z": 3}, "type": 95}
        ]


def test_stale_position_updates_are_ignored(ws_client, world):
    with ws_client.websocket_connect("/ws") as ws:
        _login(ws, "bot")
        _rpc(ws, "1", "chat", {"message": "/tp 2 3 4"})

        response, _ = _rpc(ws, "2", "position", {"x": 0.5, "y": 5, "z": 0.5, "teleport_id": 1})
        assert response["result"]["accepted"] is False
        assert world.get_player("bot").position.x == 2

        response, _ = _rpc(ws, "3", "position", {"x": 2, "y": 3, "z": 4, "on_ground": True, "teleport_id": 2})
        assert response["result"]["accepted"] is True
        assert world.get_player("bot").on_ground is True


def test_dig_and_place_block(ws_client, world):
    with ws_client.websocket_connect("/ws") as ws:
        _login(ws, "bot")

        response, events = _rpc(ws, "1", "dig", {"location": {"x": 0, "y": 3, "z": 0}})
        assert response["ok"] is True
        assert world.block_at(0, 3, 0) == 0
        assert events[-1]["event"] == "block_change"

        response, _ = _rpc(ws, "2", "dig", {"location": {"x": 0, "y": 3, "z": 0}})
        assert response["error"]["status"] == 400

        response, events = _rpc(
            ws, "3", "set_creative_slot", {"slot": 36, "item": {"block_id": 1, "item_count": 1}}
        )
        assert response["ok"] is True
        assert events[-1]["event"] == "set_slot"

        response, _ = _rpc(
            ws,
            "4",
            "place_block",
            {"location": {"x": 0, "y": 2, "z": 0}, "face": {"x": 0, "y": 1, "z": 0}, "hand_slot": 0},
        )
        assert response["ok"] is True
        assert world.block_at(0, 3, 0) == 1

        response, _ = _rpc(
            ws,
            "5",
            "place_block",
            {"location": {"x": 0, "y": 2, "z": 0}, "face": {"x": 0, "y": 1, "z": 0}, "hand_slot": 0},
        )
        assert response["error"]["status"] == 409

