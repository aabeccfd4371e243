# freshcart/notifications.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

logger = logging.getLogger(__name__)


class Level(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str


class Notifier:
    """User-visible notifications (toasts). Subscribers get every notification in order."""

    def __init__(self):
        self._subscribers: List[Callable[[Notification], None]] = []
        self.history: List[Notification] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, level: Level, message: str) -> Notification:
        note = Notification(Level(level), message)
        if note.level is Level.ERROR:
            logger.warning("notify[%s]: %s", note.level.value, message)
        else:
            logger.info("notify[%s]: %s", note.level.value, message)
        self.history.append(note)
        for cb in list(self._subscribers):
            cb(note)
        return note

    def success(self, message: str) -> Notification:
        return self.notify(Level.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.notify(Level.ERROR, message)

    def info(self, message: str) -> Notification:
        return self.notify(Level.INFO, message)
