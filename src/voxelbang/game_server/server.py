"""voxel-bang WebSocket server: one websocket per player, RPC frames in, packets out."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from voxelbang import __version__
from voxelbang.game_server.api import (
    chat as api_chat,
    dig as api_dig,
    login as api_login,
    place_block as api_place_block,
    position as api_position,
    set_creative_slot as api_set_creative_slot,
)
from voxelbang.game_server.core.world import World
from voxelbang.game_server.rpc import Connection, RPCHandler, rpc_error, rpc_success

logger = logging.getLogger("voxelbang.server")

RPC_HANDLERS: Dict[str, RPCHandler] = {
    "login": api_login.handle,
    "chat": api_chat.handle,
    "position": api_position.handle,
    "dig": api_dig.handle,
    "place_block": api_place_block.handle,
    "set_creative_slot": api_set_creative_slot.handle,
}


def status_payload(world: World) -> Dict[str, Any]:
    return {
        "name": "voxel-bang",
        "version": __version__,
        "status": "running",
        "motd": world.settings.motd,
        "game_version": world.settings.version,
        "online": len(world.players),
        "max_players": world.settings.max_players,
        "players": sorted(world.players),
    }


def build_app(world: World) -> FastAPI:
    """Create the FastAPI application serving ``world``."""
    app = FastAPI(title="voxel-bang", version=__version__)
    app.state.world = world

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return status_payload(world)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        connection = Connection(websocket)
        await world.events.register(connection)
        logger.info("WebSocket connected id=%s", connection.connection_id)

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = json.loads(raw)
                except json.JSONDecodeError:
                    await connection.send_json(
                        rpc_error(
                            str(uuid.uuid4()),
                            "unknown",
                            HTTPException(status_code=400, detail="Invalid JSON"),
                        )
                    )
                    continue

                frame_id = str(frame.get("id") or uuid.uuid4())
                message_type = frame.get("type", "rpc")
                endpoint = frame.get("endpoint")

                if message_type != "rpc":
                    await connection.send_json(
                        rpc_error(
                            frame_id,
                            message_type,
                            HTTPException(
                                status_code=400,
                                detail=f"Unknown frame type: {message_type}",
                            ),
                        )
                    )
                    continue

                raw_payload = frame.get("payload")
                if raw_payload is None:
                    payload: Dict[str, Any] = {}
                elif isinstance(raw_payload, dict):
                    payload = dict(raw_payload)
                else:
                    await connection.send_json(
                        rpc_error(
                            frame_id,
                            endpoint or "unknown",
                            HTTPException(
                                status_code=400,
                                detail="Invalid payload type; expected object",
                            ),
                        )
                    )
                    continue

                payload["request_id"] = frame_id
                handler = RPC_HANDLERS.get(endpoint)
                if not handler:
                    await connection.send_json(
                        rpc_error(
                            frame_id,
                            endpoint or "unknown",
                            HTTPException(
                                status_code=404, detail=f"Unknown endpoint: {endpoint}"
                            ),
                        )
                    )
                    continue

                # Packets emitted by the handler go out before its response.
                try:
                    result = await handler(payload, world, connection)
                    await connection.send_json(rpc_success(frame_id, endpoint, result))
                except HTTPException as exc:
                    await connection.send_json(rpc_error(frame_id, endpoint, exc))
                except Exception as exc:  # noqa: BLE001
                    logger.exception("RPC handler error endpoint=%s", endpoint)
                    await connection.send_json(rpc_error(frame_id, endpoint, exc))
        except WebSocketDisconnect:
            logger.info("WebSocket disconnected id=%s", connection.connection_id)
        except RuntimeError as exc:
            # Raised by starlette once the server side closed the socket.
            logger.info("WebSocket closed id=%s: %s", connection.connection_id, exc)
        finally:
            await world.events.unregister(connection)
            await api_login.handle_disconnect(world, connection)

    return app
