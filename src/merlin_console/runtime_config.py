"""
Runtime configuration for the operator console.

This module provides:
- load_envs(): load MERLIN_DEBUG, MERLIN_DATA_DIR and MERLIN_MODULES_DIR from a .env file
  (or the one in the config directory) if they are not already present in the environment.
- RuntimeConfig: a dataclass holding runtime settings (debug flags, directories, bus sizing).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from merlin_console.message_bus import DEFAULT_PUBLISH_TIMEOUT, DEFAULT_QUEUE_SIZE

# Environment variable names
DEBUG_ENV: str = "MERLIN_DEBUG"
DATA_DIR_ENV: str = "MERLIN_DATA_DIR"
MODULES_DIR_ENV: str = "MERLIN_MODULES_DIR"


def load_envs(env_file: Optional[str] = None) -> None:
    """
    Load MERLIN_DEBUG, MERLIN_DATA_DIR and MERLIN_MODULES_DIR from a .env file
    into the process environment if they are not already set.

    Without ``env_file`` the project .env is read first and
    ``<config dir>/.env`` fills whatever it leaves out.
    """
    if env_file:
        env_values = dotenv_values(env_file)
    else:
        env_values = {**dotenv_values(get_config_dir() / ".env"), **dotenv_values()}
    for key in (DEBUG_ENV, DATA_DIR_ENV, MODULES_DIR_ENV):
        if not os.environ.get(key):
            val = env_values.get(key)
            if val:
                os.environ[key] = str(val)


def get_config_dir() -> Path:
    """
    Return the console config directory under XDG_CONFIG_HOME or fallback to ~/.config.
    """
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "merlin_console"


def get_data_dir() -> Path:
    """
    Return the console data directory: MERLIN_DATA_DIR if set, otherwise under
    XDG_DATA_HOME or fallback to ~/.local/share.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override)
    data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return data_home / "merlin_console"


def _default_modules_dir() -> Path:
    override = os.environ.get(MODULES_DIR_ENV)
    if override:
        return Path(override)
    return get_data_dir() / "modules"


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Holds runtime configuration for the operator console.

    Attributes:
        debug: Render DEBUG-level messages and log at DEBUG.
        verbose: Enable verbose output from collaborators.
        data_dir: Directory for the history file and logs.
        modules_dir: Directory holding module definitions (``<name>.json``).
        history_file: Line history file; defaults to ``<data_dir>/history``.
        queue_size: Capacity of each message-bus inbox and of the render queue.
        publish_timeout: Seconds a publish may wait on a full inbox.
    """

    debug: bool = False
    verbose: bool = False
    data_dir: Path = field(default_factory=get_data_dir)
    modules_dir: Path = field(default_factory=_default_modules_dir)
    history_file: Optional[Path] = None
    queue_size: int = DEFAULT_QUEUE_SIZE
    publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT

    @property
    def history_path(self) -> Path:
        return self.history_file or self.data_dir / "history"

    @property
    def log_path(self) -> Path:
        return self.data_dir / "merlin-console.log"
