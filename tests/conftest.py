from __future__ import annotations

import httpx
import pytest

from notifsync.core.config import Settings
from notifsync.services.api import NotificationApi

from tests.support import Backend, build_app


@pytest.fixture
def settings() -> Settings:
    return Settings(NOTIFSYNC_API_BASE_URL="http://testserver", NOTIFSYNC_WS_BASE_URL="ws://testserver")


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def transport(backend: Backend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=build_app(backend))


@pytest.fixture
async def api(settings: Settings, transport: httpx.ASGITransport):
    client = NotificationApi("token-1", settings=settings, transport=transport)
    yield client
    await client.aclose()
