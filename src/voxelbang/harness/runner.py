"""Scenario lifecycle: one fresh server and N logged-in bots per scenario.

Setup order is fixed: the server must report ``LISTENING`` before any bot is
built; the scenario's ``prepare`` hook then arms waits on bots that are
constructed but not yet connected; finally every bot connects concurrently
and the runner joins on all ``LOGIN`` events. Teardown always runs and quits
the server exactly once.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from voxelbang.client.bot import create_bot
from voxelbang.game_server.instance import create_server
from voxelbang.game_server.settings import ServerSettings, load_default_settings
from voxelbang.harness.errors import ScenarioTimeout, SetupFailure
from voxelbang.harness.waits import once
from voxelbang.utils.config import env_int
from voxelbang.utils.events import BotEvent, ServerEvent
from voxelbang.utils.world_data import SUPPORTED_VERSIONS

DEFAULT_SEED = 2116746182
SCENARIO_VIEW_DISTANCE = 2
DEFAULT_TIMEOUT = 100.0
USERNAMES: Tuple[str, ...] = ("bot", "bot2")

ServerFactory = Callable[[ServerSettings], Any]
ClientFactory = Callable[..., Any]
PrepareHook = Callable[["ScenarioContext"], None]
ScenarioBody = Callable[["ScenarioContext"], Awaitable[None]]


def scenario_settings(
    version: str,
    *,
    seed: int = DEFAULT_SEED,
    view_distance: int = SCENARIO_VIEW_DISTANCE,
    base: Optional[ServerSettings] = None,
) -> ServerSettings:
    """Settings for one scenario: offline, ephemeral port, no persistence, fixed seed."""
    base = base or load_default_settings()
    return base.with_overrides(
        online_mode=False,
        port=0,
        view_distance=view_distance,
        world_folder=None,
        logging=False,
        version=version,
        generation={"name": "diamond_square", "options": {"seed": seed}},
    )


def selected_versions() -> List[str]:
    """Versions whose index lies in [VOXELBANG_FIRST_VERSION, VOXELBANG_LAST_VERSION]."""
    first = env_int("VOXELBANG_FIRST_VERSION", 0)
    last = env_int("VOXELBANG_LAST_VERSION", len(SUPPORTED_VERSIONS) - 1)
    return [version for index, version in enumerate(SUPPORTED_VERSIONS) if first <= index <= last]


def default_timeout() -> float:
    return float(env_int("VOXELBANG_SCENARIO_TIMEOUT", int(DEFAULT_TIMEOUT)))


def _default_client_factory(host: str, port: int, username: str, version: str) -> Any:
    return create_bot(host, port, username, version, connect=False)


@dataclass(frozen=True)
class Scenario:
    name: str
    group: str
    body: ScenarioBody
    prepare: Optional[PrepareHook] = None
    usernames: Tuple[str, ...] = USERNAMES
    description: str = ""


@dataclass
class ScenarioContext:
    """What a scenario body sees: the server, its settings and the bots by username."""

    server: Any
    settings: ServerSettings
    bots: Dict[str, Any] = field(default_factory=dict)
    _armed: Dict[str, asyncio.Future] = field(default_factory=dict)

    @property
    def actors(self) -> List[Any]:
        return list(self.bots.values())

    def __getitem__(self, username: str) -> Any:
        return self.bots[username]

    @property
    def entity_name(self) -> str:
        """Registry name of the ender dragon in this server's version."""
        if self.server.supports_feature("entityCamelCase"):
            return "EnderDragon"
        return "ender_dragon"

    def arm(self, name: str, wait: asyncio.Future) -> asyncio.Future:
        """Keep a wait registered before login so the body can await it later."""
        if name in self._armed:
            raise ValueError(f"A wait named {name!r} is already armed")
        self._armed[name] = wait
        return wait

    def armed(self, name: str) -> asyncio.Future:
        return self._armed[name]

    def cancel_armed(self) -> None:
        for wait in self._armed.values():
            if not wait.done():
                wait.cancel()


async def _await_listening(server: Any) -> None:
    if getattr(server, "listening", False):
        return
    listening = once(server, ServerEvent.LISTENING)
    failed = once(server, ServerEvent.ERROR)
    try:
        await asyncio.wait({listening, failed}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        listening.cancel()
        failed.cancel()
    if failed.done() and not failed.cancelled():
        (exc,) = failed.result()
        raise SetupFailure("server startup", str(exc)) from exc


async def _login(bot: Any) -> None:
    logged_in = once(bot, BotEvent.LOGIN)
    try:
        await bot.connect()
        await logged_in
    except Exception as exc:
        raise SetupFailure(f"login of {bot.username}", str(exc)) from exc
    finally:
        logged_in.cancel()


async def _login_all(bots: Sequence[Any]) -> None:
    """Log every bot in concurrently; one failure cancels the logins still pending."""
    logins = [asyncio.create_task(_login(bot)) for bot in bots]
    try:
        await asyncio.gather(*logins)
    except BaseException:
        for task in logins:
            task.cancel()
        await asyncio.gather(*logins, return_exceptions=True)
        raise


async def _quit_all(bots: Sequence[Any]) -> None:
    """Quit every bot even if teardown itself is cancelled; the cancellation is re-raised last."""
    cancelled: Optional[asyncio.CancelledError] = None
    for bot in bots:
        try:
            await bot.quit()
        except asyncio.CancelledError as exc:
            cancelled = exc
        except Exception:  # noqa: BLE001
            logger.exception("Failed to quit bot {}", getattr(bot, "username", bot))
    if cancelled is not None:
        raise cancelled


@asynccontextmanager
async def run_scenario(
    settings: ServerSettings,
    *,
    usernames: Sequence[str] = USERNAMES,
    prepare: Optional[PrepareHook] = None,
    server_factory: ServerFactory = create_server,
    client_factory: ClientFactory = _default_client_factory,
) -> AsyncIterator[ScenarioContext]:
    """Start a server and log in one bot per username; tear everything down on exit."""
    server = None
    context: Optional[ScenarioContext] = None
    try:
        server = server_factory(settings)
        await _await_listening(server)
        logger.debug("Scenario server listening on port {}", server.port)

        context = ScenarioContext(server=server, settings=settings)
        for username in usernames:
            context.bots[username] = client_factory(server.host, server.port, username, settings.version)
        if prepare is not None:
            prepare(context)

        await _login_all(context.actors)
        # Ground waits in the body must observe a fresh landing.
        for bot in context.actors:
            if bot.entity is not None:
                bot.entity.on_ground = False
        yield context
    finally:
        try:
            if context is not None:
                context.cancel_armed()
                await _quit_all(context.actors)
        finally:
            if server is not None:
                await server.quit()


async def execute(
    scenario: Scenario,
    version: str,
    *,
    timeout: Optional[float] = None,
    settings: Optional[ServerSettings] = None,
    **runner_options: Any,
) -> None:
    """Run ``scenario`` against ``version`` with one wall-clock bound over setup, body and teardown.

    Raises:
        ScenarioTimeout: If the bound elapses.
        SetupFailure: If the server or a bot never came up.
        HarnessError: Any other failed expectation.
    """
    timeout = timeout if timeout is not None else default_timeout()
    settings = settings or scenario_settings(version)

    async def _run() -> None:
        async with run_scenario(
            settings,
            usernames=scenario.usernames,
            prepare=scenario.prepare,
            **runner_options,
        ) as context:
            await scenario.body(context)

    logger.info("Running scenario {} on {}", scenario.name, version)
    try:
        await asyncio.wait_for(_run(), timeout)
    except asyncio.TimeoutError as exc:
        raise ScenarioTimeout(scenario.name, timeout) from exc
