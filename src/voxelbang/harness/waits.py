"""Event wait primitives.

Each primitive is a plain function, not a coroutine: the listener is attached
before the function returns, so the caller can register a wait, trigger the
action that produces the event, and only then ``await`` the returned future.
Nothing emitted after the call can be missed.

Every returned future resolves at most once. The underlying subscription is
released synchronously on resolution or failure and through a done-callback
on cancellation. None of the primitives time out on their own; the scenario
runner owns the only timeout.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Optional, Tuple

from voxelbang.harness.errors import AssertionMismatch, DuplicateEvent, UnexpectedEvent
from voxelbang.utils.events import BotEvent, EventEmitter, EventKey, Subscription

Predicate = Callable[..., bool]


def _release_on_done(future: asyncio.Future, subscription: Subscription) -> None:
    future.add_done_callback(lambda _: subscription.unregister())


def _resolved(value: Any) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


def message_text(message: Any) -> str:
    """Text of the first chat component, falling back to the plain text."""
    if isinstance(message, str):
        return message
    return message.text


def once(source: EventEmitter, key: EventKey) -> asyncio.Future:
    """Resolve with the payload tuple of the next ``key`` event from ``source``."""
    future = asyncio.get_running_loop().create_future()

    def _listener(*args: Any) -> None:
        subscription.unregister()
        if not future.done():
            future.set_result(args)

    subscription = source.on(key, _listener)
    _release_on_done(future, subscription)
    return future


def wait_for(
    source: EventEmitter,
    key: EventKey,
    predicate: Predicate,
    *,
    current: Optional[Callable[[], bool]] = None,
) -> asyncio.Future:
    """Resolve with the first ``key`` payload for which ``predicate(*payload)`` holds.

    ``current`` is checked before subscribing. When it already reports the
    condition, the future resolves immediately with an empty tuple and no
    listener is registered. A predicate that raises fails the wait.
    """
    if current is not None and current():
        return _resolved(())

    future = asyncio.get_running_loop().create_future()

    def _listener(*args: Any) -> None:
        if future.done():
            subscription.unregister()
            return
        try:
            matched = predicate(*args)
        except Exception as exc:  # noqa: BLE001
            subscription.unregister()
            future.set_exception(exc)
            return
        if matched:
            subscription.unregister()
            future.set_result(args)

    subscription = source.on(key, _listener)
    _release_on_done(future, subscription)
    return future


def wait_count(
    source: EventEmitter,
    key: EventKey,
    count: int,
    *,
    predicate: Optional[Predicate] = None,
) -> asyncio.Future:
    """Resolve with ``count`` once exactly ``count`` qualifying events were seen.

    Events after the ``count``-th are never observed because the listener is
    released on the spot. ``count == 0`` resolves immediately without
    subscribing.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if count == 0:
        return _resolved(0)

    future = asyncio.get_running_loop().create_future()
    seen = 0

    def _listener(*args: Any) -> None:
        nonlocal seen
        if future.done():
            subscription.unregister()
            return
        if predicate is not None:
            try:
                matched = predicate(*args)
            except Exception as exc:  # noqa: BLE001
                subscription.unregister()
                future.set_exception(exc)
                return
            if not matched:
                return
        seen += 1
        if seen == count:
            subscription.unregister()
            future.set_result(seen)

    subscription = source.on(key, _listener)
    _release_on_done(future, subscription)
    return future


def wait_messages(
    source: EventEmitter,
    messages: Iterable[str],
    *,
    text: Callable[[Any], str] = message_text,
) -> asyncio.Future:
    """Resolve once every message in ``messages`` arrived exactly once, in any order.

    A message outside the set fails the wait with :class:`UnexpectedEvent`; a
    repeated one fails it with :class:`DuplicateEvent`. Messages arriving after
    the wait resolved are ignored since its listener is already gone.
    """
    expected = list(messages)
    expected_set = frozenset(expected)
    if len(expected_set) != len(expected):
        raise ValueError(f"Expected messages must be distinct: {expected}")
    if not expected_set:
        return _resolved(None)

    future = asyncio.get_running_loop().create_future()
    received: set[str] = set()

    def _fail(exc: Exception) -> None:
        subscription.unregister()
        future.set_exception(exc)

    def _listener(message: Any, *_: Any) -> None:
        if future.done():
            subscription.unregister()
            return
        body = text(message)
        if body not in expected_set:
            _fail(UnexpectedEvent(body, expected_set))
            return
        if body in received:
            _fail(DuplicateEvent(body))
            return
        received.add(body)
        if len(received) == len(expected_set):
            subscription.unregister()
            future.set_result(None)

    subscription = source.on(BotEvent.MESSAGE, _listener)
    _release_on_done(future, subscription)
    return future


def wait_message(source: EventEmitter, expected: str) -> asyncio.Future:
    """Resolve with the next message, failing with AssertionMismatch if its text differs."""
    loop = asyncio.get_running_loop()
    received = once(source, BotEvent.MESSAGE)
    result = loop.create_future()

    def _check(done: asyncio.Future) -> None:
        if result.done():
            return
        if done.cancelled():
            result.cancel()
            return
        exc = done.exception()
        if exc is not None:
            result.set_exception(exc)
            return
        (message,) = done.result()
        body = message_text(message)
        if body != expected:
            result.set_exception(AssertionMismatch("message", body, expected))
        else:
            result.set_result(message)

    received.add_done_callback(_check)
    result.add_done_callback(lambda done: received.cancel() if done.cancelled() else None)
    return result


def spawn_zone_size(view_distance: int) -> int:
    """Number of chunk columns streamed for a square view of ``view_distance``."""
    return (view_distance * 2) * (view_distance * 2)


def wait_spawn_zone(bot: Any, view_distance: int) -> asyncio.Future:
    """Resolve when ``bot`` has loaded every column of its spawn zone."""
    return wait_count(bot, BotEvent.CHUNK_COLUMN_LOAD, spawn_zone_size(view_distance))


def on_ground(bot: Any) -> asyncio.Future:
    """Resolve when ``bot`` stands on a solid block (immediately if it already does)."""

    def _grounded(*_: Any) -> bool:
        return bot.entity is not None and bot.entity.on_ground

    return wait_for(bot, BotEvent.MOVE, _grounded, current=_grounded)


def wait_entity(bot: Any, name: str) -> asyncio.Future:
    """Resolve with ``(entity,)`` when an entity called ``name`` spawns for ``bot``."""
    return wait_for(bot, BotEvent.ENTITY_SPAWN, lambda entity: entity.name == name)


async def gather_payloads(*waits: asyncio.Future) -> Tuple[Any, ...]:
    """Join on several waits; fail fast, cancelling the rest, if any of them fails."""
    try:
        return tuple(await asyncio.gather(*waits))
    except BaseException:
        for wait in waits:
            wait.cancel()
        raise
