"""Builders for server-to-client packet payloads."""

from typing import Any, Dict, Optional

from voxelbang.utils.vec3 import Vec3

ENTITY_STATUS_DEAD = 3
GAME_STATE_CHANGE_MODE = 3


def location(x: int, y: int, z: int) -> Dict[str, int]:
    return {"x": x, "y": y, "z": z}


def chat(text: str, position: int = 0) -> Dict[str, Any]:
    return {"message": {"text": "", "extra": [{"text": text}]}, "position": position}


def block_change(x: int, y: int, z: int, block_type: int) -> Dict[str, Any]:
    return {"location": location(x, y, z), "type": block_type}


def block_action(x: int, y: int, z: int, byte1: int, byte2: int, block_id: int) -> Dict[str, Any]:
    return {"location": location(x, y, z), "byte1": byte1, "byte2": byte2, "blockId": block_id}


def position(pos: Vec3, teleport_id: int, yaw: float = 0.0, pitch: float = 0.0) -> Dict[str, Any]:
    return {**pos.to_payload(), "yaw": yaw, "pitch": pitch, "teleport_id": teleport_id}


def experience(progress: float, level: int, total: int) -> Dict[str, Any]:
    return {"experience_bar": progress, "level": level, "total_experience": total}


def set_slot(slot: int, item: Optional[Dict[str, int]]) -> Dict[str, Any]:
    return {"window_id": 0, "slot": slot, "item": item}


def entity_teleport(entity_id: int, pos: Vec3, on_ground: bool = False) -> Dict[str, Any]:
    return {"entity_id": entity_id, "position": pos.to_payload(), "on_ground": on_ground}


def entity_status(entity_id: int, status: int) -> Dict[str, Any]:
    return {"entity_id": entity_id, "status": status}


def entity_destroy(*entity_ids: int) -> Dict[str, Any]:
    return {"entity_ids": list(entity_ids)}


def game_state_change(reason: int, game_mode: int) -> Dict[str, Any]:
    return {"reason": reason, "game_mode": game_mode}

