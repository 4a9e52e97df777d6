from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

NOTIFICATION_CATEGORIES = ("movimiento", "caducidad", "stock_bajo", "nuevo_material")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class NotificationRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: int
    category: str = Field(validation_alias=AliasChoices("category", "tipo", "kind"))
    message: str = Field(default="", validation_alias=AliasChoices("message", "mensaje", "body"))
    owner_user_id: int = Field(validation_alias=AliasChoices("owner_user_id", "ownerUserId", "usuarioId", "user_id"))
    read: bool = Field(default=False, validation_alias=AliasChoices("read", "leida", "is_read"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt", "fecha"))
    related_entity_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("related_entity_id", "relatedEntityId", "relacionadoId"),
    )

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Backends mix offset and naive timestamps; naive ones are UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class NotificationPage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    records: list[NotificationRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("records", "data"),
    )
    total_count: int | None = Field(default=None, validation_alias=AliasChoices("total_count", "totalCount", "total"))
    page: int = 1
    limit: int | None = None
    unread_count: int | None = Field(default=None, ge=0, validation_alias=AliasChoices("unread_count", "unreadCount"))
    version: int | None = None
    # The carried unread count belongs to the counter stream and has its own sequence.
    unread_version: int | None = Field(default=None, validation_alias=AliasChoices("unread_version", "unreadVersion"))

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, value: Any) -> Any:
        # Older backends answer with a plain JSON array.
        if isinstance(value, list):
            return {"records": value}
        return value


class UnreadCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)
    version: int | None = None
