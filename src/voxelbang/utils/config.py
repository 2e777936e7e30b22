import os
from pathlib import Path
from typing import Optional

def env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def get_world_data_path(ensure_exists: bool = False) -> Path:
    """Get the world folder used by ``vb serve`` (set VOXELBANG_WORLD_DIR to override).

    Args:
        ensure_exists: If True, raises error if directory doesn't exist.
                      If False, returns path even if it doesn't exist (for creation).
    """
    env_path = os.getenv("VOXELBANG_WORLD_DIR")
    if env_path:
        return Path(env_path)

    world_data = Path.cwd() / "world"

    if ensure_exists and not world_data.exists():
        raise RuntimeError(
            f"world folder not found at {world_data}. "
            f"Please run from repo root or set VOXELBANG_WORLD_DIR environment variable."
        )

    return world_data
