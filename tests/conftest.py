from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import reset_cached_dependencies
from backend.app.main import create_app
from backend.app.repositories.database import Database
from tests.youtube_fakes import TEST_ACCESS_TOKEN, FakeYouTubeApi


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch) -> FakeYouTubeApi:
    fake = FakeYouTubeApi()

    class _RefreshingCredentials:
        def __init__(self, **kwargs: Any) -> None:
            self.kwargs = kwargs
            self.token: str | None = None

        def refresh(self, _request: object) -> None:
            fake.token_refreshes += 1
            self.token = TEST_ACCESS_TOKEN

    monkeypatch.setattr("backend.app.services.youtube_service.Credentials", _RefreshingCredentials)
    monkeypatch.setattr("backend.app.services.youtube_service.import_module", fake.import_module)
    return fake


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    runtime_dir = tmp_path / "runtime-data"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    return runtime_dir


@pytest.fixture
def database(data_dir: Path) -> Database:
    db = Database(data_dir / "state.db")
    db.initialize()
    return db


@pytest.fixture
def client(
    data_dir: Path,
    database: Database,
    upstream: FakeYouTubeApi,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[TestClient]:
    _ = (database, upstream)
    monkeypatch.setenv("VIDEO_INFO_DATA_DIR", str(data_dir))
    monkeypatch.setenv("VIDEO_INFO_YOUTUBE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("VIDEO_INFO_YOUTUBE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("VIDEO_INFO_YOUTUBE_REFRESH_TOKEN", "test-refresh-token")
    monkeypatch.setenv("VIDEO_INFO_TELEMETRY_SINK", "none")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
