"""Shared test fixtures for CineVault."""

import json
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cinevault.core.database import Base, get_db
from cinevault.core.exceptions import ProbeFailure
from cinevault.core.storage import VideoStorage
from cinevault.main import app as main_app
from cinevault.media.geocode import GeocodeResolver
from cinevault.services import IngestionService, get_ingestion_service

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_ffprobe_fixture(name: str) -> dict:
    """Load an ffprobe JSON fixture by name (without .json extension)."""
    fixture_path = FIXTURES_DIR / "ffprobe" / f"{name}.json"
    return json.loads(fixture_path.read_text())


@pytest.fixture
def ffprobe_fixture():
    return load_ffprobe_fixture


class FakeProbeInvoker:
    """Stands in for ProbeInvoker; returns canned output or raises."""

    def __init__(self):
        self.output: dict = {"format": {}, "streams": []}
        self.error: Exception | None = None
        self.probed: list[Path] = []

    async def probe(self, path: Path) -> dict:
        self.probed.append(Path(path))
        if self.error is not None:
            raise self.error
        return self.output

    def fail(self, message: str = "ffprobe not found") -> None:
        self.error = ProbeFailure(message)


class GeocodeStub:
    """httpx handler recording reverse-geocoding requests."""

    def __init__(self):
        self.status_code = 200
        self.payload: object = {"address": {}}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def fake_probe() -> FakeProbeInvoker:
    return FakeProbeInvoker()


@pytest.fixture
def geocode_stub() -> GeocodeStub:
    return GeocodeStub()


@pytest.fixture
def geocoder(geocode_stub: GeocodeStub) -> GeocodeResolver:
    return GeocodeResolver(
        base_url="https://geocoder.test",
        user_agent="CineVault-Test/1.0",
        transport=httpx.MockTransport(geocode_stub),
    )


@pytest.fixture
def video_storage(tmp_path: Path) -> VideoStorage:
    return VideoStorage(root=tmp_path / "videos", url_prefix="/static/videos")


@pytest.fixture
def sync_engine(tmp_path: Path):
    """Synchronous engine on a throwaway SQLite file, used for schema setup."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine):
    """Async sessions on the same SQLite file.

    NullPool keeps connections from being shared between the event loops of
    async tests and the TestClient.
    """
    engine = create_async_engine(
        sync_engine.url.set(drivername="sqlite+aiosqlite"), poolclass=NullPool
    )
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def ingestion_service(video_storage, fake_probe, geocoder) -> IngestionService:
    return IngestionService(
        storage=video_storage,
        probe=fake_probe,
        geocoder=geocoder,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def client(session_factory, ingestion_service):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_ingestion_service] = lambda: ingestion_service
    yield TestClient(main_app, raise_server_exceptions=False)
    main_app.dependency_overrides.clear()


def register_and_login(client: TestClient, email: str, username: str) -> dict[str, str]:
    password = "s3cret-pass"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": username, "password": password},
    )
    assert response.status_code == 201, response.text
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client: TestClient) -> dict[str, str]:
    return register_and_login(client, "owner@example.com", "owner")


@pytest.fixture
def other_auth_headers(client: TestClient) -> dict[str, str]:
    return register_and_login(client, "other@example.com", "other")


@pytest.fixture
def create_video(client: TestClient, auth_headers: dict[str, str]):
    """Create a pending video owned by the default user and return its JSON."""

    def _create(title: str = "Beach day", headers: dict[str, str] | None = None) -> dict:
        response = client.post(
            "/api/v1/videos/",
            json={"title": title},
            headers=headers or auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
