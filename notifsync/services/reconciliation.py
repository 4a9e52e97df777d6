from __future__ import annotations

import logging
import warnings

from notifsync.core.errors import StaleDataWarning
from notifsync.schemas.notification import ConnectionState, NotificationPage, NotificationRecord, UnreadCount
from notifsync.services.permissions import PermissionOracle, visible_records
from notifsync.services.store import NotificationStore

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Merges realtime pushes and poll responses into the store.

    Pushed counts always win: the push channel is the only source that sees
    unread notifications across every session of the user. Writes that carry
    a ``version`` older than the last applied one for the same stream are
    dropped; unversioned writes apply in arrival order.
    """

    def __init__(self, store: NotificationStore) -> None:
        self.store = store
        self.connection_state = ConnectionState.DISCONNECTED
        self._list_version: int | None = None
        self._counter_version: int | None = None

    def _is_stale(self, stream: str, last: int | None, version: int | None) -> bool:
        if version is None or last is None or version >= last:
            return False
        warnings.warn(
            f"Discarded stale {stream} update (version {version} < {last})",
            StaleDataWarning,
            stacklevel=3,
        )
        return True

    def _push_counter(self, count: int, version: int | None) -> None:
        if self._is_stale("counter", self._counter_version, version):
            return
        if version is not None:
            self._counter_version = version
        self.store.apply_counter_push(count)

    def on_count_push(self, count: int, version: int | None = None) -> None:
        self._push_counter(count, version)

    def on_list_fetched(self, page: NotificationPage) -> None:
        if self._is_stale("list", self._list_version, page.version):
            return
        if page.version is not None:
            self._list_version = page.version
        self.store.apply_fetched_list(page.records)
        if page.unread_count is not None:
            self._push_counter(page.unread_count, page.unread_version)

    def on_count_fetched(self, unread: UnreadCount) -> None:
        self._push_counter(unread.count, unread.version)

    def on_list_failed(self, exc: Exception) -> None:
        logger.warning("Notification list poll failed: %s", exc)
        self.store.apply_list_error(str(exc) or "Could not load notifications")

    def on_connection_state(self, state: ConnectionState) -> None:
        if state is not self.connection_state:
            logger.info("Notification channel %s", state.value)
        self.connection_state = state

    def visible(self, oracle: PermissionOracle) -> list[NotificationRecord]:
        return visible_records(self.store.state.records, oracle)

    def displayed_unread(self, oracle: PermissionOracle) -> int:
        # The server tally is not permission-filtered; only the fallback is.
        state = self.store.state
        if state.unread_count is not None:
            return state.unread_count
        return sum(1 for record in self.visible(oracle) if not record.read)
