from notifsync.services.api import NotificationApi
from notifsync.services.center import NotificationCenter
from notifsync.services.mutations import MutationGateway
from notifsync.services.permissions import PermissionOracle, StaticPermissions, is_visible, visible_records
from notifsync.services.polling import PollingFetcher
from notifsync.services.reconciliation import ReconciliationEngine
from notifsync.services.session import SessionContext, session_from_token
from notifsync.services.store import NotificationState, NotificationStore

__all__ = [
    "MutationGateway",
    "NotificationApi",
    "NotificationCenter",
    "NotificationState",
    "NotificationStore",
    "PermissionOracle",
    "PollingFetcher",
    "ReconciliationEngine",
    "SessionContext",
    "StaticPermissions",
    "is_visible",
    "session_from_token",
    "visible_records",
]
