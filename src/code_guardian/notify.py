"""
User-visible notifications. The host surface (editor, CLI) supplies its own;
the default just logs.
"""

import logging
from typing import Protocol

logger = logging.getLogger("code_guardian")


class Notifier(Protocol):
    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)
