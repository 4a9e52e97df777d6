from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from notifsync.core.config import Settings, get_settings
from notifsync.core.errors import TransientFetchError
from notifsync.services.api import NotificationApi
from notifsync.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PollingFetcher:
    """Pulls the list and the unread count on a fixed interval.

    Each endpoint has at most one request outstanding; a tick that finds the
    previous fetch of an endpoint still running skips that endpoint.
    """

    def __init__(
        self,
        api: NotificationApi,
        engine: ReconciliationEngine,
        *,
        settings: Settings | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.api = api
        self.engine = engine
        self.settings = settings or get_settings()
        self._sleep = sleep or asyncio.sleep
        self._timer: asyncio.Task | None = None
        self._list_task: asyncio.Task | None = None
        self._count_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def list_busy(self) -> bool:
        return self._list_task is not None and not self._list_task.done()

    @property
    def count_busy(self) -> bool:
        return self._count_task is not None and not self._count_task.done()

    async def _fetch_list(self) -> None:
        self.engine.store.apply_loading()
        try:
            page = await self.api.list_notifications(page=self.settings.poll_page, limit=self.settings.page_size)
        except TransientFetchError as exc:
            self.engine.on_list_failed(exc)
            return
        try:
            self.engine.on_list_fetched(page)
        except Exception as exc:
            logger.exception("Applying notification list failed")
            self.engine.on_list_failed(exc)

    async def _fetch_count(self) -> None:
        try:
            unread = await self.api.unread_count()
        except TransientFetchError as exc:
            logger.debug("Unread count poll failed: %s", exc)
            return
        try:
            self.engine.on_count_fetched(unread)
        except Exception:
            logger.exception("Applying unread count failed")

    def tick(self) -> list[asyncio.Task]:
        started: list[asyncio.Task] = []
        if not self.list_busy:
            self._list_task = asyncio.create_task(self._fetch_list())
            started.append(self._list_task)
        if not self.count_busy:
            self._count_task = asyncio.create_task(self._fetch_count())
            started.append(self._count_task)
        return started

    async def poll_once(self) -> None:
        self.tick()
        pending = [t for t in (self._list_task, self._count_task) if t is not None]
        await asyncio.gather(*pending)

    async def _run(self) -> None:
        while True:
            self.tick()
            await self._sleep(self.settings.poll_interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.create_task(self._run())

    async def stop(self) -> None:
        tasks = [t for t in (self._timer, self._list_task, self._count_task) if t is not None and not t.done()]
        self._timer = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
