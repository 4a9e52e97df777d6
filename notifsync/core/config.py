from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_base_url: str = Field(default="http://localhost:3000", alias="NOTIFSYNC_API_BASE_URL")
    ws_base_url: str = Field(default="", alias="NOTIFSYNC_WS_BASE_URL")
    user_agent: str = Field(default="notifsync/0.1", alias="NOTIFSYNC_USER_AGENT")

    notifications_path: str = Field(default="/notifications", alias="NOTIFSYNC_NOTIFICATIONS_PATH")
    unread_count_path: str = Field(default="/notifications/unread-count", alias="NOTIFSYNC_UNREAD_COUNT_PATH")
    mark_all_read_path: str = Field(default="/notifications/mark-all-read", alias="NOTIFSYNC_MARK_ALL_READ_PATH")
    notifications_ws_path: str = Field(default="/notifications", alias="NOTIFSYNC_NOTIFICATIONS_WS_PATH")

    poll_interval_seconds: float = Field(default=30.0, gt=0, alias="NOTIFSYNC_POLL_INTERVAL_SECONDS")
    poll_page: int = Field(default=1, ge=1, alias="NOTIFSYNC_POLL_PAGE")
    page_size: int = Field(default=20, ge=1, le=200, alias="NOTIFSYNC_PAGE_SIZE")
    http_timeout_seconds: float = Field(default=20.0, gt=0, alias="NOTIFSYNC_HTTP_TIMEOUT_SECONDS")
    ws_open_timeout_seconds: float = Field(default=10.0, gt=0, alias="NOTIFSYNC_WS_OPEN_TIMEOUT_SECONDS")

    @property
    def websocket_url(self) -> str:
        base = self.ws_base_url.strip()
        if not base:
            base = self.api_base_url.strip()
            if base.startswith("https://"):
                base = base.replace("https://", "wss://", 1)
            elif base.startswith("http://"):
                base = base.replace("http://", "ws://", 1)
        return f"{base.rstrip('/')}{self.notifications_ws_path}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
