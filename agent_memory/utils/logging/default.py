import logging

from agent_memory.utils.logging.std_logger import get_logger


class Logger:
    """
    Logger that stamps a fixed context onto every record.

    Wraps a standard library logger and merges the context (for example the
    agent id of an ingestion run) into the `extra` mapping of each call.

    Args:
        name (str): The name of the logger instance
        context (dict, optional): Values attached to every log record
    """

    def __init__(self, name: str, context: dict = None):
        self.base_logger: logging.Logger = get_logger(name)
        self.context = context

    def __add_context_to_extra(self, extra: dict) -> dict:
        """
        Merges the fixed context with per-call extra information.

        Args:
            extra (dict): Additional context information to be added to the log

        Returns:
            dict: Merged dictionary of context and extra information
        """
        if not extra:
            return self.context

        if not self.context:
            return extra

        extra = extra.copy()
        extra.update(self.context)
        return extra

    def _format(self, message) -> str:
        if not self.context:
            return message
        tags = " ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{message} [{tags}]"

    def debug(self, message, extra=None):
        self.base_logger.debug(
            self._format(message), extra=self.__add_context_to_extra(extra)
        )

    def info(self, message, extra=None):
        self.base_logger.info(
            self._format(message), extra=self.__add_context_to_extra(extra)
        )

    def warning(self, message, extra=None):
        self.base_logger.warning(
            self._format(message), extra=self.__add_context_to_extra(extra)
        )

    def error(self, message, extra=None, exc_info=False):
        """
        Log a message with ERROR level.

        Args:
            message: The message to be logged
            extra (dict, optional): Additional context information for this log entry
            exc_info (bool): Attach the active exception traceback
        """
        self.base_logger.error(
            self._format(message),
            extra=self.__add_context_to_extra(extra),
            exc_info=exc_info,
        )

    def critical(self, message, extra=None):
        self.base_logger.critical(
            self._format(message), extra=self.__add_context_to_extra(extra)
        )
