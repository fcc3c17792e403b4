"""
Transient in-app notifications and the mounted-view guard.

A mutation result may arrive after the calendar view that started it was
closed or switched to another target. Views register themselves and hand a
ViewToken to the mutation; the notification is only pushed while that token
is still current.
"""
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Hashable, List, Optional

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ViewToken:
    view_id: str
    generation: int
    target: Optional[Hashable] = None


class ViewRegistry:
    """Tracks which calendar views are mounted and what they currently show"""

    def __init__(self):
        self._current: Dict[str, ViewToken] = {}
        self._generations = itertools.count(1)

    def mount(self, view_id: str, target: Optional[Hashable] = None) -> ViewToken:
        token = ViewToken(view_id=view_id, generation=next(self._generations), target=target)
        self._current[view_id] = token
        return token

    def retarget(self, view_id: str, target: Hashable) -> ViewToken:
        return self.mount(view_id, target)

    def unmount(self, view_id: str) -> None:
        self._current.pop(view_id, None)

    def is_current(self, token: Optional[ViewToken]) -> bool:
        if token is None:
            return True
        return self._current.get(token.view_id) == token


class NotificationCenter:
    def __init__(self, views: Optional[ViewRegistry] = None):
        self.views = views or ViewRegistry()
        self._items: List[Notification] = []

    def push(
        self,
        level: NotificationLevel,
        message: str,
        token: Optional[ViewToken] = None,
    ) -> Optional[Notification]:
        """Queue a notification unless the originating view is gone"""
        if not self.views.is_current(token):
            logger.debug("Dropping notification for stale view %s: %s", token, message)
            return None
        notification = Notification(level=level, message=message)
        self._items.append(notification)
        return notification

    def success(self, message: str, token: Optional[ViewToken] = None) -> Optional[Notification]:
        return self.push(NotificationLevel.SUCCESS, message, token)

    def error(self, message: str, token: Optional[ViewToken] = None) -> Optional[Notification]:
        return self.push(NotificationLevel.ERROR, message, token)

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    def drain(self) -> List[Notification]:
        items, self._items = self._items, []
        return items
