from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

import httpx

from notifsync.core.config import Settings, get_settings
from notifsync.core.errors import ChannelError
from notifsync.schemas.notification import ConnectionState, NotificationRecord
from notifsync.services.api import NotificationApi
from notifsync.services.mutations import MutationGateway
from notifsync.services.permissions import PermissionOracle, StaticPermissions
from notifsync.services.polling import PollingFetcher, Sleep
from notifsync.services.reconciliation import ReconciliationEngine
from notifsync.services.session import SessionContext
from notifsync.services.store import NotificationState, NotificationStore, StoreListener
from notifsync.websockets.channel import Connector, RealtimeChannel

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Session-scoped notification sync.

    Use as ``async with NotificationCenter(context) as center:``; leaving the
    block stops polling and closes the channel and the HTTP client.
    """

    def __init__(
        self,
        context: SessionContext,
        *,
        settings: Settings | None = None,
        oracle: PermissionOracle | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Connector | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.context = context
        self.settings = settings or get_settings()
        self.oracle = oracle or StaticPermissions(context.permissions)
        self.store = NotificationStore()
        self.engine = ReconciliationEngine(self.store)
        self.api = NotificationApi(context.credential, settings=self.settings, transport=transport)
        self.fetcher = PollingFetcher(self.api, self.engine, settings=self.settings, sleep=sleep)
        self.channel = RealtimeChannel(settings=self.settings, connector=connector)
        self.mutations = MutationGateway(self.api, self.store)
        self._started = False

    @property
    def state(self) -> NotificationState:
        return self.store.state

    @property
    def notifications(self) -> list[NotificationRecord]:
        return self.engine.visible(self.oracle)

    @property
    def unread_count(self) -> int:
        return self.engine.displayed_unread(self.oracle)

    @property
    def connection_state(self) -> ConnectionState:
        return self.engine.connection_state

    @property
    def error(self) -> str | None:
        return self.store.state.list_error

    @property
    def loading(self) -> bool:
        return self.store.state.loading

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def _on_channel_error(self, exc: ChannelError) -> None:
        logger.warning("Falling back to polling for user %s: %s", self.context.user_id, exc)
        self.engine.on_connection_state(ConnectionState.DISCONNECTED)

    async def _connect_channel(self) -> None:
        connection = await self.channel.connect(
            self.context.credential,
            {
                "connected": lambda: self.engine.on_connection_state(ConnectionState.CONNECTED),
                "disconnected": lambda: self.engine.on_connection_state(ConnectionState.DISCONNECTED),
                "error": self._on_channel_error,
                "count": self.engine.on_count_push,
            },
        )
        if connection is None:
            self.engine.on_connection_state(ConnectionState.DISCONNECTED)
        else:
            self.engine.on_connection_state(ConnectionState.CONNECTING)

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        try:
            self.fetcher.start()
            await self._connect_channel()
        except BaseException:
            await self.stop()
            raise

    async def stop(self) -> None:
        self._started = False
        try:
            await self.fetcher.stop()
        finally:
            try:
                await self.channel.close()
            finally:
                await self.api.aclose()
                self.engine.on_connection_state(ConnectionState.DISCONNECTED)

    async def __aenter__(self) -> NotificationCenter:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def refresh(self) -> None:
        await self.fetcher.poll_once()

    async def mark_as_read(self, notification_id: int) -> bool:
        return await self.mutations.mark_as_read(notification_id)

    async def mark_all_as_read(self) -> bool:
        return await self.mutations.mark_all_as_read()

    async def update_credential(self, credential: str | None) -> None:
        if credential == self.context.credential:
            return
        self.context = replace(self.context, credential=credential)
        self.api.set_credential(credential)
        if self._started:
            await self._connect_channel()
