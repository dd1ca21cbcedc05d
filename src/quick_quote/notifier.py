from __future__ import annotations

import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LoggingNotifier:
    def info(self, message: str) -> None:
        logger.info(message, extra={"notification": "info"})

    def error(self, message: str) -> None:
        logger.warning(message, extra={"notification": "error"})


class CollectingNotifier:
    """Keeps messages until the presentation layer drains them."""

    def __init__(self) -> None:
        self._messages: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def info(self, message: str) -> None:
        with self._lock:
            self._messages.append(("info", message))

    def error(self, message: str) -> None:
        with self._lock:
            self._messages.append(("error", message))

    @property
    def messages(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._messages)

    def drain(self) -> list[tuple[str, str]]:
        with self._lock:
            messages, self._messages = self._messages, []
            return messages


__all__ = ["Notifier", "LoggingNotifier", "CollectingNotifier"]
