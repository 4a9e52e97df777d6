from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, AsyncIterable, Callable, Mapping
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed

from notifsync.core.config import Settings, get_settings
from notifsync.core.errors import ChannelError
from notifsync.schemas.notification import ConnectionState

logger = logging.getLogger(__name__)

CHANNEL_EVENTS = frozenset({"connected", "disconnected", "error", "count"})

Listener = Callable[..., None]
Connector = Callable[..., AsyncIterable[Any]]


def _parse_count_frame(raw: str | bytes) -> tuple[int, int | None] | None:
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict):
        return None
    event = message.get("event") or message.get("type")
    if event != "count":
        return None
    data = message.get("data") if isinstance(message.get("data"), dict) else message
    try:
        count = int(data["count"])
    except (KeyError, TypeError, ValueError):
        return None
    version = data.get("version")
    return count, version if isinstance(version, int) else None


class ChannelConnection:
    def __init__(self, url: str, credential: str, *, connector: Connector, open_timeout: float) -> None:
        self.url = url
        self.credential = credential
        self.state = ConnectionState.DISCONNECTED
        self._connector = connector
        self._open_timeout = open_timeout
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._task: asyncio.Task | None = None
        self._socket: Any = None

    @property
    def closed(self) -> bool:
        return self._task is None or self._task.done()

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        if event not in CHANNEL_EVENTS:
            raise ValueError(f"Unknown channel event: {event}")
        self._listeners[event].append(callback)

        def off() -> None:
            if callback in self._listeners.get(event, []):
                self._listeners[event].remove(callback)

        return off

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args)
            except Exception:
                logger.exception("Notification channel listener for %s failed", event)

    def open(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        self._listeners.clear()
        socket = self._socket
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if socket is not None:
            try:
                await socket.close()
            except Exception:
                logger.debug("Notification socket close failed", exc_info=True)
        self.state = ConnectionState.DISCONNECTED

    async def _run(self) -> None:
        url = f"{self.url}?{urlencode({'token': self.credential})}"
        self.state = ConnectionState.CONNECTING
        try:
            # The websockets iterator reconnects with its own backoff.
            async for socket in self._connector(url, open_timeout=self._open_timeout):
                self._socket = socket
                self.state = ConnectionState.CONNECTED
                self._emit("connected")
                try:
                    async for raw in socket:
                        self._dispatch(raw)
                except ConnectionClosed as exc:
                    logger.info("Notification channel closed: %s", exc)
                finally:
                    self._socket = None
                self.state = ConnectionState.CONNECTING
                self._emit("disconnected")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Notification channel failed: %s", exc)
            self._emit("error", ChannelError(str(exc) or exc.__class__.__name__))
        finally:
            self.state = ConnectionState.DISCONNECTED

    def _dispatch(self, raw: str | bytes) -> None:
        parsed = _parse_count_frame(raw)
        if parsed is None:
            logger.debug("Ignoring notification frame: %r", raw)
            return
        count, version = parsed
        self._emit("count", count, version)


class RealtimeChannel:
    """Keeps at most one live connection for the session credential."""

    def __init__(self, *, settings: Settings | None = None, connector: Connector | None = None) -> None:
        self.settings = settings or get_settings()
        self._connector = connector or websockets.connect
        self.current: ChannelConnection | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        if self.current is None:
            return ConnectionState.DISCONNECTED
        return self.current.state

    async def connect(
        self,
        credential: str | None,
        listeners: Mapping[str, Listener] | None = None,
    ) -> ChannelConnection | None:
        # Close-then-open runs under the lock: at most one live connection at any time.
        async with self._lock:
            if self.current is not None and self.current.credential == credential and not self.current.closed:
                return self.current
            await self._close_current()
            if not credential:
                return None

            connection = ChannelConnection(
                self.settings.websocket_url,
                credential,
                connector=self._connector,
                open_timeout=self.settings.ws_open_timeout_seconds,
            )
            for event, callback in (listeners or {}).items():
                connection.on(event, callback)
            self.current = connection
            connection.open()
            return connection

    async def _close_current(self) -> None:
        connection, self.current = self.current, None
        if connection is not None:
            await connection.close()

    async def close(self) -> None:
        async with self._lock:
            await self._close_current()
