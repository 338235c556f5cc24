"""Locate and load the ``.env`` file used by the ``jepcrawl`` command.

Files are tried in order and only the first one found is loaded:

1. ``.env`` in the current working directory
2. ``~/.config/jepcrawl/.env``

When neither exists, the ``.env.example`` shipped beside the package is
copied to the user config location and loaded from there.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "jepcrawl"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"
EXAMPLE_ENV_FILE = Path(__file__).resolve().parent.parent / ".env.example"


def env_candidates(cwd: Path, config_env_file: Path = CONFIG_ENV_FILE) -> List[Path]:
    """Return the ``.env`` paths to try, in priority order."""
    return [cwd / ".env", config_env_file]


def seed_config(
    example_file: Path,
    config_env_file: Path,
    copy_file: Callable[[Path, Path], object],
) -> bool:
    """Copy ``example_file`` to ``config_env_file``; ``False`` if that failed."""
    try:
        config_env_file.parent.mkdir(parents=True, exist_ok=True)
        copy_file(example_file, config_env_file)
    except OSError as exc:
        LOGGER.warning("Could not create %s: %s", config_env_file, exc)
        return False
    LOGGER.info(
        "Created %s from %s; edit it to set JEPCRAWL_USER_AGENT or the delay",
        config_env_file,
        example_file.name,
    )
    return True


def load_config(
    *,
    cwd: Path,
    load_env: Callable[[Path], object],
    copy_file: Callable[[Path, Path], object],
    config_env_file: Path = CONFIG_ENV_FILE,
    example_file: Path = EXAMPLE_ENV_FILE,
) -> Optional[Path]:
    """Load the first ``.env`` found, seeding one from the example if needed.

    Returns:
        The file that was loaded, or ``None`` when nothing was loaded.
    """
    for candidate in env_candidates(cwd, config_env_file):
        if candidate.is_file():
            LOGGER.debug("Loading configuration from %s", candidate)
            load_env(candidate)
            return candidate

    if not example_file.is_file():
        LOGGER.debug("No .env file found and no %s to copy", example_file)
        return None

    if not seed_config(example_file, config_env_file, copy_file):
        return None
    load_env(config_env_file)
    return config_env_file
