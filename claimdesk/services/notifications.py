"""
User-facing notifications emitted by store operations
"""
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Literal

from pydantic import BaseModel, Field

from claimdesk.core.logging_config import LoggingConfig
from claimdesk.models.entities import utcnow

logger = LoggingConfig.get_logger(__name__)


class Notification(BaseModel):
    """A transient message shown to the user"""
    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"


NotificationListener = Callable[[Notification], None]


class Notifier:
    """Keeps a bounded history of notifications and forwards them to listeners"""

    def __init__(self, history_size: int = 50):
        self._history: Deque[Notification] = deque(maxlen=history_size)
        self._listeners: List[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, title: str, description: str = "", error: bool = False) -> Notification:
        notification = Notification(
            title=title,
            description=description,
            variant="destructive" if error else "default",
        )
        self._history.append(notification)
        if error:
            logger.warning(f"{title}: {description}")
        else:
            logger.info(f"{title}: {description}")
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def success(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description)

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, error=True)

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    @property
    def last(self):
        return self._history[-1] if self._history else None

    def clear(self):
        self._history.clear()
