from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from notifsync.core.config import Settings, get_settings
from notifsync.core.errors import MutationError, TransientFetchError
from notifsync.schemas.notification import NotificationPage, NotificationRecord, UnreadCount


def _headers(settings: Settings, credential: str | None) -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "User-Agent": settings.user_agent,
    }
    if credential:
        headers["Authorization"] = f"Bearer {credential}"
    return headers


class NotificationApi:
    """REST client for the notification backend, one per session."""

    def __init__(
        self,
        credential: str | None = None,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            headers=_headers(self.settings, credential),
            timeout=self.settings.http_timeout_seconds,
            transport=transport,
        )

    def set_credential(self, credential: str | None) -> None:
        self._client.headers.pop("Authorization", None)
        if credential:
            self._client.headers["Authorization"] = f"Bearer {credential}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            res = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"GET {path} failed: {exc}") from exc
        if not res.is_success:
            raise TransientFetchError(f"GET {path} error ({res.status_code})")
        try:
            return res.json()
        except ValueError as exc:
            raise TransientFetchError(f"GET {path} returned invalid JSON") from exc

    async def _patch(self, path: str, notification_id: int | None = None) -> Any:
        try:
            res = await self._client.patch(path)
        except httpx.HTTPError as exc:
            raise MutationError(f"PATCH {path} failed: {exc}", notification_id=notification_id) from exc
        if not res.is_success:
            raise MutationError(f"PATCH {path} error ({res.status_code})", notification_id=notification_id)
        if not res.content:
            return None
        try:
            return res.json()
        except ValueError:
            return None

    async def list_notifications(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        category: str | None = None,
        read: bool | None = None,
    ) -> NotificationPage:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if category:
            params["tipo"] = category
        if read is not None:
            params["leida"] = "true" if read else "false"
        payload = await self._get(self.settings.notifications_path, params=params)
        try:
            return NotificationPage.model_validate(payload)
        except ValidationError as exc:
            raise TransientFetchError("Malformed notification list") from exc

    async def unread_count(self) -> UnreadCount:
        payload = await self._get(self.settings.unread_count_path)
        try:
            return UnreadCount.model_validate(payload)
        except ValidationError as exc:
            raise TransientFetchError("Malformed unread count") from exc

    async def mark_as_read(self, notification_id: int) -> NotificationRecord | None:
        path = f"{self.settings.notifications_path.rstrip('/')}/{notification_id}/read"
        payload = await self._patch(path, notification_id)
        if not isinstance(payload, dict):
            return None
        try:
            return NotificationRecord.model_validate(payload)
        except ValidationError:
            # The backend may answer with a status message instead of the record.
            return None

    async def mark_all_as_read(self) -> int:
        payload = await self._patch(self.settings.mark_all_read_path)
        if isinstance(payload, dict) and isinstance(payload.get("count"), int):
            return payload["count"]
        return 0
