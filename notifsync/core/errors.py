from __future__ import annotations


class NotificationSyncError(RuntimeError):
    pass


class TransientFetchError(NotificationSyncError):
    """A poll failed; the next interval retries it."""


class MutationError(NotificationSyncError):
    def __init__(self, message: str, *, notification_id: int | None = None) -> None:
        super().__init__(message)
        self.notification_id = notification_id


class ChannelError(NotificationSyncError):
    pass


class SessionError(NotificationSyncError):
    pass


class StaleDataWarning(UserWarning):
    pass
