"""Pytest configuration and fixtures for course vault tests.

Test isolation strategy:
- Every test gets its own SQLite database file (tmp_path), schema created
  from the ORM metadata, so background pipelines and request handlers see
  the same committed data through independent connections
- TEST_DATABASE_URL overrides the database (e.g. a disposable PostgreSQL)
- Settings come from environment variables set per test via monkeypatch
- No network, no provider credentials, no yt-dlp: collaborators are fakes
"""

import base64
import os
from collections.abc import Generator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from coursevault.app import create_app
from coursevault.config import TranscriptionConfig, VaultConfig, clear_settings_cache
from coursevault.db.engine import create_db_engine
from coursevault.db.models import Base
from coursevault.db.session import create_session_factory
from coursevault.services.analysis import AnalysisJobManager, TranscriptionService
from coursevault.services.crypto import CredentialVault
from tests.fakes import FakeDownloader, FakeTranscriber
from tests.helpers import TEST_JWT_SECRET, create_test_user_id

# Deterministic 32-byte test key
TEST_ENCRYPTION_KEY = base64.b64encode(b"test_vault_key_for_encryption!!!").decode("ascii")


@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path) -> Generator[str, None, None]:
    """Set a complete test environment and reset the settings cache."""
    database_url = os.environ.get("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'test.db'}"

    monkeypatch.setenv("VAULT_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setenv("DOWNLOAD_DIR", str(tmp_path / "downloads"))
    for name in (
        "TRANSCRIPTION_API_KEY",
        "TRANSCRIPTION_ACCESS_KEY_ID",
        "TRANSCRIPTION_ACCESS_KEY_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)

    clear_settings_cache()
    yield database_url
    clear_settings_cache()


@pytest.fixture
def engine(test_env: str) -> Generator[Engine, None, None]:
    """Fresh schema per test."""
    engine = create_db_engine(test_env)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """A plain session on the per-test database. Commit to make data visible."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(VaultConfig(encryption_key=TEST_ENCRYPTION_KEY))


@pytest.fixture
def fake_downloader(tmp_path) -> FakeDownloader:
    return FakeDownloader(tmp_path / "downloads")


@pytest.fixture
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def unconfigured_transcription_config() -> TranscriptionConfig:
    return TranscriptionConfig(
        api_url="https://tingwu.example.test",
        api_key=None,
        access_key_id=None,
        access_key_secret=None,
        app_key=None,
        poll_interval_s=0.0,
        max_polls=3,
    )


@pytest.fixture
def job_manager(session_factory, fake_downloader, fake_transcriber) -> AnalysisJobManager:
    return AnalysisJobManager(session_factory, fake_downloader, fake_transcriber)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """FastAPI test client without authentication, for public endpoints."""
    app = create_app(skip_auth_middleware=True)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authenticated_app(session_factory, vault, fake_downloader, unconfigured_transcription_config):
    """App with the real shared-secret verifier and per-test collaborators.

    The transcriber is the real service with the provider unconfigured, so
    analyses complete through the placeholder fallback.
    """
    from coursevault.api.deps import get_db

    app = create_app(
        session_factory=session_factory,
        vault=vault,
        downloader=fake_downloader,
        transcriber=TranscriptionService(None, unconfigured_transcription_config),
    )

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def authenticated_client(authenticated_app) -> Generator[TestClient, None, None]:
    """Test client with auth middleware. Use auth_headers() for requests."""
    with TestClient(authenticated_app) as client:
        yield client


@pytest.fixture
def test_user_id() -> UUID:
    return create_test_user_id()
