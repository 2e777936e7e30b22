from voxelbang.utils.events import BotEvent, EventEmitter, block_update_at


def test_emit_delivers_payload_to_every_listener():
    emitter = EventEmitter()
    seen = []
    emitter.on(BotEvent.MOVE, lambda pos: seen.append(("a", pos)))
    emitter.on(BotEvent.MOVE, lambda pos: seen.append(("b", pos)))

    assert emitter.emit(BotEvent.MOVE, 1) == 2
    assert seen == [("a", 1), ("b", 1)]


def test_unregister_is_idempotent():
    emitter = EventEmitter()
    subscription = emitter.on(BotEvent.LOGIN, lambda: None)

    assert subscription.unregister() is True
    assert subscription.unregister() is False
    assert emitter.listener_count(BotEvent.LOGIN) == 0
    assert emitter.emit(BotEvent.LOGIN) == 0


def test_once_fires_a_single_time():
    emitter = EventEmitter()
    calls = []
    emitter.once(BotEvent.MESSAGE, calls.append)

    emitter.emit(BotEvent.MESSAGE, "first")
    emitter.emit(BotEvent.MESSAGE, "second")

    assert calls == ["first"]


def test_listener_released_during_emit_is_skipped():
    emitter = EventEmitter()
    calls = []
    second = None

    def first(*_):
        calls.append("first")
        second.unregister()

    emitter.on(BotEvent.END, first)
    second = emitter.on(BotEvent.END, lambda *_: calls.append("second"))

    emitter.emit(BotEvent.END, "bye")
    assert calls == ["first"]


def test_failing_listener_does_not_stop_delivery():
    emitter = EventEmitter()
    calls = []

    def broken(*_):
        raise RuntimeError("boom")

    emitter.on(BotEvent.EXPERIENCE, broken)
    emitter.on(BotEvent.EXPERIENCE, lambda: calls.append("ok"))

    assert emitter.emit(BotEvent.EXPERIENCE) == 2
    assert calls == ["ok"]


def test_block_update_key_is_per_block():
    assert block_update_at((1.7, 2.2, -0.5)) == (BotEvent.BLOCK_UPDATE, (1, 2, -1))
    emitter = EventEmitter()
    seen = []
    emitter.on(block_update_at((1, 2, 3)), lambda old, new: seen.append(new))

    emitter.emit(block_update_at((1, 2, 4)), None, "other")
    emitter.emit(block_update_at((1, 2, 3)), None, "mine")

    assert seen == ["mine"]


def test_remove_all_listeners():
    emitter = EventEmitter()
    emitter.on(BotEvent.MOVE, lambda *_: None)
    emitter.on(BotEvent.LOGIN, lambda *_: None)

    emitter.remove_all_listeners()

    assert emitter.listener_count(BotEvent.MOVE) == 0
    assert emitter.listener_count(BotEvent.LOGIN) == 0
