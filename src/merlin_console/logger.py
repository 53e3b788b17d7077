"""
Logging setup.

The console owns the terminal, so log records go to a file under the data
directory instead of stderr.
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_path: Optional[Path] = None, debug: bool = False) -> None:
    """Configure the root logger to write to ``log_path`` (no-op without one)."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    if log_path is None:
        return

    for handler in root.handlers:
        if (
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename) == log_path.resolve()
        ):
            return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
