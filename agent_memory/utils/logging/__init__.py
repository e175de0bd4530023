__all__ = [
    "Logger",
    "get_logger",
]

from agent_memory.utils.logging.default import Logger
from agent_memory.utils.logging.std_logger import get_logger
