# tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import timedelta
from itertools import count
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from letitout.api.deps import get_engine
from letitout.core.errors import RemoteUnavailable
from letitout.db.session import create_engine, create_session_factory, create_tables
from letitout.db.time import utcnow
from letitout.main import app as fastapi_app
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteVent
from letitout.services.connectivity import ConnectivityMonitor
from letitout.services.engine import SyncEngine
from letitout.services.gateway import CircuitState, RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.rooms import RoomDirectory

_REMOTE_VENT_COUNTER = count(1)


@pytest_asyncio.fixture()
async def db_engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'letitout.db'}")
    await create_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def store(db_engine: AsyncEngine) -> LocalStore:
    return LocalStore(create_session_factory(db_engine))


@pytest.fixture()
def gateway() -> AsyncMock:
    """Gateway double that behaves like an unreachable backend until told otherwise."""
    client = AsyncMock(spec=RemoteGateway)
    client.enabled = True
    client.circuit_state = CircuitState.CLOSED
    client.ping.return_value = False
    offline = RemoteUnavailable("backend unreachable")
    for name in (
        "list_vents",
        "get_vent",
        "create_vent",
        "create_comment",
        "list_comments",
        "list_reactions",
        "toggle_reaction",
        "create_report",
        "list_rooms",
        "get_mood_logs",
        "save_mood_log",
    ):
        getattr(client, name).side_effect = offline
    return client


@pytest.fixture()
def identity(store: LocalStore) -> IdentityProvider:
    return IdentityProvider(store)


@pytest.fixture()
def connectivity(gateway: AsyncMock) -> ConnectivityMonitor:
    return ConnectivityMonitor(gateway)


@pytest.fixture()
def rooms(store: LocalStore, gateway: AsyncMock) -> RoomDirectory:
    return RoomDirectory(store, gateway)


@pytest.fixture()
def make_remote_vent() -> Callable[..., RemoteVent]:
    def factory(**overrides: Any) -> RemoteVent:
        index = next(_REMOTE_VENT_COUNTER)
        data: dict[str, Any] = {
            "id": f"remote-{index}",
            "roomId": "default-work",
            "room": {"id": "default-work", "name": "Work Frustrations"},
            "text": f"remote vent {index}",
            "anonymousHandle": f"Remote{index}",
            "deviceId": "other-device",
            "moodBefore": 3,
            "moodAfter": 6,
            "createdAt": (utcnow() - timedelta(minutes=index)).isoformat(),
            "reflection": None,
        }
        data.update(overrides)
        return RemoteVent.model_validate(data)

    return factory


@pytest_asyncio.fixture()
async def sync_engine(store: LocalStore, gateway: AsyncMock) -> AsyncIterator[SyncEngine]:
    engine = SyncEngine(store, gateway, run_worker=False)
    try:
        yield engine
    finally:
        await engine.stop()


@pytest_asyncio.fixture()
async def client(sync_engine: SyncEngine) -> AsyncIterator[httpx.AsyncClient]:
    fastapi_app.dependency_overrides[get_engine] = lambda: sync_engine
    transport = httpx.ASGITransport(app=fastapi_app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        fastapi_app.dependency_overrides.clear()
