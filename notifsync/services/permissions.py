from __future__ import annotations

from typing import Iterable, Protocol

from notifsync.schemas.notification import NotificationRecord

# Categories that require a capability to be shown.
RESTRICTED_CATEGORIES: dict[str, str] = {"stock_bajo": "view_inventario"}


class PermissionOracle(Protocol):
    def has_permission(self, capability: str) -> bool: ...


class StaticPermissions:
    def __init__(self, capabilities: Iterable[str] = ()) -> None:
        self.capabilities = frozenset(str(c).strip() for c in capabilities if str(c).strip())

    def has_permission(self, capability: str) -> bool:
        return capability in self.capabilities


def is_visible(record: NotificationRecord, oracle: PermissionOracle) -> bool:
    capability = RESTRICTED_CATEGORIES.get(record.category)
    if capability is None:
        return True
    return oracle.has_permission(capability)


def visible_records(records: Iterable[NotificationRecord], oracle: PermissionOracle) -> list[NotificationRecord]:
    return [record for record in records if is_visible(record, oracle)]
