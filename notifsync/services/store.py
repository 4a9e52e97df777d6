from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from notifsync.schemas.notification import NotificationRecord

logger = logging.getLogger(__name__)

StoreListener = Callable[["NotificationState"], None]


@dataclass(frozen=True, slots=True)
class NotificationState:
    records: tuple[NotificationRecord, ...] = ()
    # None until a server-declared count arrives; the displayed count is derived meanwhile.
    unread_count: int | None = None
    loading: bool = False
    list_error: str | None = None

    def get(self, notification_id: int) -> NotificationRecord | None:
        for record in self.records:
            if record.id == notification_id:
                return record
        return None


def _most_recent_first(records: Iterable[NotificationRecord]) -> tuple[NotificationRecord, ...]:
    by_id: dict[int, NotificationRecord] = {}
    for record in records:
        by_id[record.id] = record
    return tuple(sorted(by_id.values(), key=lambda r: (r.created_at, r.id), reverse=True))


def reduce_fetched_list(state: NotificationState, records: Iterable[NotificationRecord]) -> NotificationState:
    return replace(state, records=_most_recent_first(records), loading=False, list_error=None)


def reduce_read_mark(state: NotificationState, notification_id: int) -> NotificationState:
    current = state.get(notification_id)
    if current is None or current.read:
        return state
    records = tuple(r.model_copy(update={"read": True}) if r.id == notification_id else r for r in state.records)
    unread = state.unread_count
    if unread is not None:
        unread = max(unread - 1, 0)
    return replace(state, records=records, unread_count=unread)


def reduce_mark_all_read(state: NotificationState) -> NotificationState:
    records = tuple(r if r.read else r.model_copy(update={"read": True}) for r in state.records)
    return replace(state, records=records, unread_count=0)


def reduce_counter_push(state: NotificationState, count: int) -> NotificationState:
    return replace(state, unread_count=max(int(count), 0))


def reduce_list_error(state: NotificationState, message: str) -> NotificationState:
    return replace(state, loading=False, list_error=message)


def reduce_loading(state: NotificationState) -> NotificationState:
    return replace(state, loading=True)


class NotificationStore:
    """Single source of truth for the consumer; every change goes through a reducer."""

    def __init__(self, initial: NotificationState | None = None) -> None:
        self._state = initial or NotificationState()
        self._listeners: list[StoreListener] = []

    @property
    def state(self) -> NotificationState:
        return self._state

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_state: NotificationState) -> NotificationState:
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Notification store listener failed")
        return new_state

    def apply_fetched_list(self, records: Iterable[NotificationRecord]) -> NotificationState:
        return self._commit(reduce_fetched_list(self._state, records))

    def apply_read_mark(self, notification_id: int) -> NotificationState:
        return self._commit(reduce_read_mark(self._state, notification_id))

    def apply_mark_all_read(self) -> NotificationState:
        return self._commit(reduce_mark_all_read(self._state))

    def apply_counter_push(self, count: int) -> NotificationState:
        return self._commit(reduce_counter_push(self._state, count))

    def apply_list_error(self, message: str) -> NotificationState:
        return self._commit(reduce_list_error(self._state, message))

    def apply_loading(self) -> NotificationState:
        return self._commit(reduce_loading(self._state))
