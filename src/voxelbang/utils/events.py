"""Event vocabulary and a small emitter with explicit subscription handles.

Every event source in voxel-bang (the world server instance, a bot, a bot's
inventory window and a bot's raw protocol stream) is an :class:`EventEmitter`
keyed by members of the closed enumerations below. Payloads are positional;
the documented arity of each kind is what waits receive as a tuple.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple, Union

from loguru import logger


class ServerEvent(str, Enum):
    LISTENING = "listening"  # ()
    ERROR = "error"  # (exception,)
    CLOSE = "close"  # ()


class BotEvent(str, Enum):
    LOGIN = "login"  # ()
    END = "end"  # (reason,)
    ERROR = "error"  # (exception,)
    MOVE = "move"  # (position,)
    FORCED_MOVE = "forced_move"  # (position,)
    CHUNK_COLUMN_LOAD = "chunk_column_load"  # (corner position,)
    BLOCK_UPDATE = "block_update"  # (old block | None, new block)
    ENTITY_SPAWN = "entity_spawn"  # (entity,)
    ENTITY_MOVED = "entity_moved"  # (entity,)
    ENTITY_DEAD = "entity_dead"  # (entity,)
    ENTITY_GONE = "entity_gone"  # (entity,)
    MESSAGE = "message"  # (chat message,)
    SOUND_EFFECT_HEARD = "sound_effect_heard"  # (name, position, volume, pitch)
    EXPERIENCE = "experience"  # ()


class WindowEvent(str, Enum):
    WINDOW_UPDATE = "window_update"  # (slot, old item | None, new item | None)


class Packet(str, Enum):
    """Raw server-to-client packet names, re-emitted by ``bot.protocol``."""

    LOGIN = "login"
    MAP_CHUNK = "map_chunk"
    SPAWN_POSITION = "spawn_position"
    POSITION = "position"
    BLOCK_CHANGE = "block_change"
    BLOCK_ACTION = "block_action"
    SET_SLOT = "set_slot"
    SPAWN_ENTITY = "spawn_entity"
    ENTITY_TELEPORT = "entity_teleport"
    ENTITY_STATUS = "entity_status"
    ENTITY_DESTROY = "entity_destroy"
    CHAT = "chat"
    WORLD_PARTICLES = "world_particles"
    NAMED_SOUND_EFFECT = "named_sound_effect"
    EXPERIENCE = "experience"
    GAME_STATE_CHANGE = "game_state_change"
    KICK_DISCONNECT = "kick_disconnect"


EventKind = Union[ServerEvent, BotEvent, WindowEvent, Packet]
EventKey = Union[EventKind, Tuple[EventKind, Hashable]]
Listener = Callable[..., Any]


def block_update_at(position: Any) -> Tuple[BotEvent, Tuple[int, int, int]]:
    """Key for block updates addressed to one block position."""
    x, y, z = position
    return (BotEvent.BLOCK_UPDATE, (math.floor(x), math.floor(y), math.floor(z)))


class Subscription:
    """Handle for one registered listener.

    ``unregister`` detaches the listener the first time it is called and is a
    no-op afterwards.
    """

    __slots__ = ("_emitter", "key", "listener", "_active")

    def __init__(self, emitter: "EventEmitter", key: EventKey, listener: Listener) -> None:
        self._emitter = emitter
        self.key = key
        self.listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unregister(self) -> bool:
        if not self._active:
            return False
        self._active = False
        self._emitter._detach(self)
        return True

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"<Subscription {self.key!r} {state}>"


class EventEmitter:
    """Synchronous publish/subscribe over a closed set of event keys."""

    def __init__(self) -> None:
        self._subscriptions: Dict[EventKey, List[Subscription]] = {}

    def on(self, key: EventKey, listener: Listener) -> Subscription:
        if not callable(listener):
            raise TypeError("Event listener must be callable")
        subscription = Subscription(self, key, listener)
        self._subscriptions.setdefault(key, []).append(subscription)
        return subscription

    def once(self, key: EventKey, listener: Listener) -> Subscription:
        """Register a listener that is released after its first call."""
        holder: List[Subscription] = []

        def _fire(*args: Any) -> None:
            holder[0].unregister()
            listener(*args)

        subscription = self.on(key, _fire)
        holder.append(subscription)
        return subscription

    def emit(self, key: EventKey, *args: Any) -> int:
        """Deliver ``args`` to current listeners of ``key``; return how many ran."""
        subscriptions = self._subscriptions.get(key)
        if not subscriptions:
            return 0
        delivered = 0
        for subscription in list(subscriptions):
            # A listener may release others while we iterate.
            if not subscription.active:
                continue
            delivered += 1
            try:
                subscription.listener(*args)
            except Exception:  # noqa: BLE001
                logger.exception("Unhandled error in {} listener", _describe(key))
        return delivered

    def listener_count(self, key: EventKey) -> int:
        return len(self._subscriptions.get(key, ()))

    def remove_all_listeners(self, key: Optional[EventKey] = None) -> None:
        keys = [key] if key is not None else list(self._subscriptions)
        for each in keys:
            for subscription in list(self._subscriptions.get(each, ())):
                subscription.unregister()

    def _detach(self, subscription: Subscription) -> None:
        bucket = self._subscriptions.get(subscription.key)
        if not bucket:
            return
        try:
            bucket.remove(subscription)
        except ValueError:
            return
        if not bucket:
            self._subscriptions.pop(subscription.key, None)


def _describe(key: EventKey) -> str:
    if isinstance(key, tuple):
        kind, qualifier = key
        return f"{kind.value}:{qualifier}"
    return key.value
