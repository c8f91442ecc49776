"""
Logging helpers shared by every MarketGate module.

Modules call get_logger(__name__); entry points (CLI, app factory) call
setup_logging() once to attach a handler and pick the level.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# verbosity 0-4 as used by the CLI
VERBOSITY_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
}

_ROOT_NAME = "marketgate"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the MarketGate root logger."""
    if name.startswith(_ROOT_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_NAME}.{name}")


def _level_from_env() -> Optional[int]:
    level_name = os.environ.get("LOG_LEVEL", "").upper()
    if not level_name:
        return None
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else None


def setup_logging(verbosity: int = 3) -> logging.Logger:
    """
    Configure the MarketGate root logger.

    Args:
        verbosity: 0 (critical only) through 4 (debug). LOG_LEVEL in the
                   environment wins when set.

    Returns:
        The configured root logger
    """
    level = _level_from_env()
    if level is None:
        level = VERBOSITY_LEVELS.get(verbosity, logging.INFO)

    root = logging.getLogger(_ROOT_NAME)
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            handler.setLevel(level)

    return root


def setup_cli_logging(verbosity: int = 3) -> logging.Logger:
    return setup_logging(verbosity=verbosity)
