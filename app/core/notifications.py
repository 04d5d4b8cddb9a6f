# app/core/notifications.py
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    """A user-facing toast message."""

    title: str
    description: str
    variant: Variant = "default"
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class Notifier:
    """
    Collects user-facing notifications for the UI to pick up.

    `history` keeps the last `maxlen` notifications for inspection,
    `drain()` hands the not-yet-delivered ones to the caller.
    """

    def __init__(self, maxlen: int = 50):
        self._history: deque[Notification] = deque(maxlen=maxlen)
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def success(self, title: str, description: str) -> Notification:
        logger.info("%s: %s", title, description)
        return self._push(Notification(title=title, description=description))

    def error(self, title: str, description: str) -> Notification:
        logger.warning("%s: %s", title, description)
        return self._push(
            Notification(title=title, description=description, variant="destructive")
        )

    def drain(self) -> list[Notification]:
        items = list(self._pending)
        self._pending.clear()
        return items

    def _push(self, notification: Notification) -> Notification:
        self._history.append(notification)
        self._pending.append(notification)
        return notification
