"""Configuration constants for nodespace."""

import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


# Idle period before a scheduled auto-save is written.
AUTO_SAVE_DELAY_MS: int = _env_int("NODESPACE_AUTOSAVE_DELAY_MS", 2000)

# Title defaults.
DEFAULT_TITLE = "Untitled"
NEW_NODE_TITLE = "New Text Node"
NEW_CHILD_TITLE = "New Child Node"

DEFAULT_EDITOR = "user"

# Node ids longer than this are rejected by save().
MAX_NODE_ID_LENGTH = 128

# Directory with data. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/nodespace").expanduser(),
    Path("~/.nodespace").expanduser(),
]

DATABASE_FILENAME = "nodespace.db"


def resolve_data_directory() -> Path:
    """Return the data directory: $NODESPACE_DATA_DIR, else the first existing candidate."""
    env_dir = os.environ.get("NODESPACE_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
