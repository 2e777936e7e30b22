import asyncio
from types import SimpleNamespace

import pytest

from voxelbang.harness.errors import ScenarioTimeout, SetupFailure
from voxelbang.harness.runner import Scenario, execute, run_scenario, scenario_settings
from voxelbang.harness.waits import once
from voxelbang.utils.events import BotEvent, EventEmitter, ServerEvent


class FakeServer(EventEmitter):
    def __init__(self, settings, *, fail: bool = False) -> None:
        super().__init__()
        self.settings = settings
        self.host = "127.0.0.1"
        self.port = 45678
        self.listening = False
        self.quit_calls = 0
        loop = asyncio.get_running_loop()
        loop.call_soon(self._fail if fail else self._listen)

    def _listen(self) -> None:
        self.listening = True
        self.emit(ServerEvent.LISTENING)

    def _fail(self) -> None:
        self.emit(ServerEvent.ERROR, OSError("address in use"))

    def supports_feature(self, feature: str) -> bool:
        return False

    async def quit(self) -> None:
        self.quit_calls += 1


class FakeBot(EventEmitter):
    def __init__(
        self, server, username: str, *, refuse: bool = False, stall: bool = False, quit_delay: float = 0.0
    ) -> None:
        super().__init__()
        self.username = username
        self.entity = None
        self.server_was_listening = server.listening
        self.refuse = refuse
        self.stall = stall
        self.quit_delay = quit_delay
        self.connect_cancelled = False
        self.connected = False
        self.quit_calls = 0

    async def connect(self) -> None:
        if self.refuse:
            raise ConnectionRefusedError("nope")
        if self.stall:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.connect_cancelled = True
                raise
        self.connected = True
        self.entity = SimpleNamespace(on_ground=True)
        self.emit(BotEvent.LOGIN)

    async def quit(self) -> None:
        self.quit_calls += 1
        if self.quit_delay:
            await asyncio.sleep(self.quit_delay)


class Harness:
    """Factories that remember what they built."""

    def __init__(
        self,
        *,
        server_fails: bool = False,
        refuse: tuple = (),
        stall: tuple = (),
        quit_delay: float = 0.0,
    ) -> None:
        self.server_fails = server_fails
        self.refuse = refuse
        self.stall = stall
        self.quit_delay = quit_delay
        self.servers: list = []
        self.bots: list = []

    def server_factory(self, settings):
        server = FakeServer(settings, fail=self.server_fails)
        self.servers.append(server)
        return server

    def client_factory(self, host, port, username, version):
        bot = FakeBot(
            self.servers[-1],
            username,
            refuse=username in self.refuse,
            stall=username in self.stall,
            quit_delay=self.quit_delay,
        )
        self.bots.append(bot)
        return bot

    @property
    def options(self):
        return {"server_factory": self.server_factory, "client_factory": self.client_factory}


@pytest.fixture
def settings():
    return scenario_settings("1.12.2")


@pytest.mark.asyncio
async def test_successful_run_quits_server_once(settings):
    harness = Harness()
    seen = {}

    def prepare(ctx):
        seen["connected_during_prepare"] = [bot.connected for bot in ctx.actors]

    async with run_scenario(settings, prepare=prepare, **harness.options) as ctx:
        assert list(ctx.bots) == ["bot", "bot2"]
        assert all(bot.connected for bot in ctx.actors)
        assert all(bot.entity.on_ground is False for bot in ctx.actors)

    (server,) = harness.servers
    assert server.quit_calls == 1
    assert seen["connected_during_prepare"] == [False, False]
    assert all(bot.server_was_listening for bot in harness.bots)
    assert all(bot.quit_calls == 1 for bot in harness.bots)


@pytest.mark.asyncio
async def test_failing_body_still_tears_down(settings):
    harness = Harness()

    async def body(ctx):
        raise RuntimeError("expectation blew up")

    with pytest.raises(RuntimeError, match="blew up"):
        await execute(Scenario("broken", "test", body), "1.12.2", settings=settings, **harness.options)

    assert harness.servers[0].quit_calls == 1
    assert all(bot.quit_calls == 1 for bot in harness.bots)


@pytest.mark.asyncio
async def test_timeout_raises_scenario_timeout_and_tears_down(settings):
    harness = Harness()

    async def body(ctx):
        await once(ctx["bot"], BotEvent.MESSAGE)

    with pytest.raises(ScenarioTimeout) as excinfo:
        await execute(
            Scenario("stuck", "test", body),
            "1.12.2",
            timeout=0.05,
            settings=settings,
            **harness.options,
        )

    assert excinfo.value.scenario == "stuck"
    assert harness.servers[0].quit_calls == 1
    assert harness.bots[0].listener_count(BotEvent.MESSAGE) == 0


@pytest.mark.asyncio
async def test_server_startup_failure_creates_no_clients(settings):
    harness = Harness(server_fails=True)

    with pytest.raises(SetupFailure) as excinfo:
        async with run_scenario(settings, **harness.options):
            pass

    assert excinfo.value.stage == "server startup"
    assert isinstance(excinfo.value.__cause__, OSError)
    assert harness.bots == []
    assert harness.servers[0].quit_calls == 1


@pytest.mark.asyncio
async def test_login_failure_is_setup_failure(settings):
    harness = Harness(refuse=("bot2",))

    with pytest.raises(SetupFailure, match="login of bot2"):
        async with run_scenario(settings, **harness.options):
            pass

    assert harness.servers[0].quit_calls == 1
    assert all(bot.quit_calls == 1 for bot in harness.bots)


@pytest.mark.asyncio
async def test_armed_waits_are_cancelled_on_teardown(settings):
    harness = Harness()
    armed = {}

    def prepare(ctx):
        armed["wait"] = ctx.arm("bot.joins", once(ctx["bot"], BotEvent.MESSAGE))

    async with run_scenario(settings, prepare=prepare, **harness.options) as ctx:
        assert ctx.armed("bot.joins") is armed["wait"]
        with pytest.raises(ValueError):
            ctx.arm("bot.joins", once(ctx["bot"], BotEvent.MESSAGE))

    assert armed["wait"].cancelled()


@pytest.mark.asyncio
async def test_entity_name_follows_version_naming(settings):
    harness = Harness()
    async with run_scenario(settings, usernames=("solo",), **harness.options) as ctx:
        assert ctx.actors == [ctx["solo"]]
        assert ctx.entity_name == "ender_dragon"


@pytest.mark.asyncio
async def test_timeout_during_teardown_still_quits_server_and_every_bot(settings):
    harness = Harness(quit_delay=0.3)

    async def body(ctx):
        pass

    with pytest.raises(ScenarioTimeout):
        await execute(
            Scenario("slow teardown", "test", body),
            "1.12.2",
            timeout=0.1,
            settings=settings,
            **harness.options,
        )

    assert harness.servers[0].quit_calls == 1
    assert [bot.quit_calls for bot in harness.bots] == [1, 1]


@pytest.mark.asyncio
async def test_failed_login_cancels_pending_logins(settings):
    harness = Harness(refuse=("bot2",), stall=("bot",))

    with pytest.raises(SetupFailure, match="login of bot2"):
        async with run_scenario(settings, **harness.options):
            pass

    stalled, refused = harness.bots
    assert stalled.connect_cancelled
    assert not refused.connect_cancelled
    assert harness.servers[0].quit_calls == 1
