from __future__ import annotations

import logging

from notifsync.core.errors import MutationError
from notifsync.services.api import NotificationApi
from notifsync.services.store import NotificationStore

logger = logging.getLogger(__name__)


class MutationGateway:
    """Mark-as-read requests with one in-flight request per target."""

    def __init__(self, api: NotificationApi, store: NotificationStore) -> None:
        self.api = api
        self.store = store
        self._pending: set[int] = set()
        self.mark_all_pending = False

    def is_pending(self, notification_id: int) -> bool:
        return notification_id in self._pending

    async def mark_as_read(self, notification_id: int) -> bool:
        """Return False when a request for this id is already in flight."""
        if notification_id in self._pending:
            return False
        self._pending.add(notification_id)
        try:
            await self.api.mark_as_read(notification_id)
        except MutationError:
            logger.warning("Marking notification %s as read failed", notification_id)
            raise
        finally:
            self._pending.discard(notification_id)
        self.store.apply_read_mark(notification_id)
        return True

    async def mark_all_as_read(self) -> bool:
        if self.mark_all_pending:
            return False
        self.mark_all_pending = True
        try:
            await self.api.mark_all_as_read()
        except MutationError:
            logger.warning("Marking all notifications as read failed")
            raise
        finally:
            self.mark_all_pending = False
        self.store.apply_mark_all_read()
        return True
