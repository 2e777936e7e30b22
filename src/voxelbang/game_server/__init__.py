"""Block-world server: settings, world state, websocket transport and chat commands."""

from voxelbang.game_server.instance import WorldServer, create_server, serve_forever
from voxelbang.game_server.settings import ServerSettings, load_default_settings

__all__ = [
    "WorldServer",
    "create_server",
    "serve_forever",
    "ServerSettings",
    "load_default_settings",
]
