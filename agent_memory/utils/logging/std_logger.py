"""Standard library logger factory.

Every module obtains its logger through `get_logger(__name__)`. The package
root logger gets a single stream handler, with its level taken from
`settings.LOG_LEVEL`.
"""

import logging
import sys

from agent_memory.core.config import settings

ROOT_LOGGER_NAME = "agent_memory"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(logging.getLevelName(settings.LOG_LEVEL.upper()))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger configured with the package handler and level."""
    _configure_root()
    return logging.getLogger(name)
