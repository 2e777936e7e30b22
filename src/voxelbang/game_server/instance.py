"""In-process world server: uvicorn serving the FastAPI app on the running loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Optional

import uvicorn

from voxelbang.game_server.core.world import Player, World
from voxelbang.game_server.server import build_app
from voxelbang.game_server.server_logging import EVENT_LOG_FILENAME, EventLogger
from voxelbang.game_server.settings import ServerSettings
from voxelbang.utils.events import EventEmitter, ServerEvent

logger = logging.getLogger("voxelbang.server.instance")

GRACEFUL_SHUTDOWN_SECONDS = 2


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host process."""

    def __init__(self, config: uvicorn.Config, on_started: Callable[["_EmbeddedServer"], None]) -> None:
        super().__init__(config)
        self._on_started = on_started

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started(self)


class WorldServer(EventEmitter):
    """A running server instance.

    Emits ``ServerEvent.LISTENING`` once the socket is bound (``port`` is then
    the real port, even when the settings asked for port 0), ``ServerEvent.ERROR``
    if startup fails and ``ServerEvent.CLOSE`` after :meth:`quit`.
    """

    def __init__(self, settings: ServerSettings, *, world: Optional[World] = None) -> None:
        super().__init__()
        self.settings = settings
        self.world = world or World(settings)
        self.app = build_app(self.world)
        if settings.logging and settings.world_folder is not None:
            self.world.events.set_event_logger(
                EventLogger(settings.world_folder / EVENT_LOG_FILENAME)
            )
        self._uvicorn: Optional[_EmbeddedServer] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._quit_task: Optional[asyncio.Task] = None
        self._port: Optional[int] = None
        self.listening = False
        self.closed = False

    @property
    def port(self) -> int:
        if self._port is None:
            raise RuntimeError("Server is not listening yet")
        return self._port

    @property
    def host(self) -> str:
        return self.settings.host

    def supports_feature(self, feature: str) -> bool:
        return self.world.data.supports_feature(feature)

    def get_player(self, username: str) -> Optional[Player]:
        return self.world.get_player(username)

    def start(self) -> asyncio.Task:
        if self._serve_task is None:
            self._serve_task = asyncio.create_task(self._serve())
        return self._serve_task

    def _on_started(self, server: _EmbeddedServer) -> None:
        self._port = server.servers[0].sockets[0].getsockname()[1]
        self.listening = True
        logger.info("World server listening on %s:%s", self.host, self._port)
        self.emit(ServerEvent.LISTENING)

    async def _serve(self) -> None:
        config = uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_level="info" if self.settings.logging else "warning",
            access_log=self.settings.logging,
            lifespan="off",
            ws="websockets",
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
        self._uvicorn = _EmbeddedServer(config, self._on_started)
        try:
            await self._uvicorn.serve()
        except SystemExit as exc:
            # uvicorn exits the process when it cannot bind.
            self._fail(OSError(f"Could not bind {self.host}:{self.settings.port} (exit {exc.code})"))
        except Exception as exc:  # noqa: BLE001
            logger.exception("World server crashed")
            self._fail(exc)

    def _fail(self, exc: BaseException) -> None:
        if not self.listening:
            logger.error("World server failed to start: %s", exc)
        self.emit(ServerEvent.ERROR, exc)

    async def quit(self) -> None:
        """Close every connection, stop serving and emit ``CLOSE``. Idempotent."""
        if self._quit_task is None:
            self._quit_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._quit_task)

    async def _shutdown(self) -> None:
        for sink in await self.world.events.sinks():
            try:
                await sink.close()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Ignoring error while closing %s: %r", sink, exc)
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
        if self._serve_task is not None:
            await asyncio.gather(self._serve_task, return_exceptions=True)
        self.listening = False
        self.closed = True
        logger.info("World server on port %s closed", self._port)
        self.emit(ServerEvent.CLOSE)


def create_server(settings: ServerSettings) -> WorldServer:
    """Build a server and start it on the running loop.

    Listen for ``ServerEvent.LISTENING`` before connecting clients.
    """
    server = WorldServer(settings)
    server.start()
    return server


async def serve_forever(settings: ServerSettings) -> None:
    """Run a server until it fails or the surrounding task is cancelled (Ctrl-C)."""
    server = create_server(settings)
    stopped = asyncio.get_running_loop().create_future()

    def _stop(*args) -> None:
        if not stopped.done():
            stopped.set_result(args)

    server.once(ServerEvent.ERROR, _stop)
    server.once(ServerEvent.CLOSE, _stop)
    try:
        result = await stopped
    finally:
        await server.quit()
    if result and isinstance(result[0], BaseException):
        raise result[0]
