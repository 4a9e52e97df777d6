from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Query

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_row(notification_id: int, *, tipo: str = "movimiento", leida: bool = False) -> dict[str, Any]:
    return {
        "id": notification_id,
        "tipo": tipo,
        "mensaje": f"Notificacion {notification_id}",
        "usuarioId": 1,
        "leida": leida,
        "fecha": (BASE_TIME + timedelta(minutes=notification_id)).isoformat(),
    }


class Backend:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.unread_counts: list[int] = []
        self.list_calls = 0
        self.count_calls = 0
        self.read_calls: list[int] = []
        self.mark_all_calls = 0
        self.fail_list = False
        self.fail_count = False
        self.fail_reads: set[int] = set()
        self.gate: asyncio.Event | None = None

    async def _wait_gate(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    def unread(self) -> int:
        if self.unread_counts:
            return self.unread_counts.pop(0)
        return sum(1 for row in self.rows if not row["leida"])


def build_app(backend: Backend) -> FastAPI:
    app = FastAPI()

    @app.get("/notifications")
    async def list_notifications(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=200),
    ) -> dict[str, Any]:
        backend.list_calls += 1
        await backend._wait_gate()
        if backend.fail_list:
            raise HTTPException(status_code=503, detail="Unavailable")
        start = (page - 1) * limit
        return {"data": backend.rows[start : start + limit], "total": len(backend.rows), "page": page, "limit": limit}

    @app.get("/notifications/unread-count")
    async def unread_count() -> dict[str, int]:
        backend.count_calls += 1
        if backend.fail_count:
            raise HTTPException(status_code=500, detail="Boom")
        return {"count": backend.unread()}

    @app.patch("/notifications/mark-all-read")
    async def mark_all_read() -> dict[str, int]:
        backend.mark_all_calls += 1
        await backend._wait_gate()
        for row in backend.rows:
            row["leida"] = True
        return {"count": 0}

    @app.patch("/notifications/{notification_id}/read")
    async def mark_read(notification_id: int) -> dict[str, Any]:
        backend.read_calls.append(notification_id)
        await backend._wait_gate()
        if notification_id in backend.fail_reads:
            backend.fail_reads.discard(notification_id)
            raise HTTPException(status_code=502, detail="Network error")
        for row in backend.rows:
            if row["id"] == notification_id:
                row["leida"] = True
                return row
        raise HTTPException(status_code=404, detail="Notification not found")

    return app


class FakeSocket:
    def __init__(self, *frames: str) -> None:
        self.queue: asyncio.Queue[str | None] = asyncio.Queue()
        self.closed = False
        for frame in frames:
            self.queue.put_nowait(frame)

    def push(self, frame: str) -> None:
        self.queue.put_nowait(frame)

    def drop(self) -> None:
        self.queue.put_nowait(None)

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        while True:
            frame = await self.queue.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        self.closed = True
        self.queue.put_nowait(None)


class FakeConnector:
    """Hands out one queued socket per ``connect`` call."""

    def __init__(self, *sockets: FakeSocket) -> None:
        self.sockets = list(sockets)
        self.urls: list[str] = []
        self.kwargs: list[dict[str, Any]] = []

    def __call__(self, url: str, **kwargs: Any):
        self.urls.append(url)
        self.kwargs.append(kwargs)
        return self._connections()

    async def _connections(self):
        if self.sockets:
            yield self.sockets.pop(0)


class VirtualClock:
    def __init__(self) -> None:
        self.delays: list[float] = []
        self._waiters: list[asyncio.Future] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    def advance(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.001)
