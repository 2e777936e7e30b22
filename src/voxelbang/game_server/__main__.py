#!/usr/bin/env python3
"""Entry point for running a voxel-bang world server.

Run with: python -m voxelbang.game_server
The ``vb serve`` command offers the same with more options.
"""

import asyncio
import os

from voxelbang.game_server.instance import serve_forever
from voxelbang.game_server.settings import load_default_settings
from voxelbang.utils.config import get_world_data_path

if __name__ == "__main__":
    settings = load_default_settings().with_overrides(
        port=int(os.environ.get("PORT", "25565")),
        online_mode=False,
        world_folder=get_world_data_path(),
    )
    try:
        asyncio.run(serve_forever(settings))
    except KeyboardInterrupt:
        pass
