from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.config import settings
from app.database import Base, get_db
from app.main import app as fastapi_app
from app.services.result import Result


@pytest.fixture
def db_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_factory):
    session = db_factory()
    yield session
    session.close()


@pytest.fixture
def client(db_factory):
    def _get_db():
        db = db_factory()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def mock_env(monkeypatch):
    """Credentials and endpoints pointing nowhere real."""
    monkeypatch.setattr(settings, "meta_wa_token", "test-token")
    monkeypatch.setattr(settings, "meta_wa_phone_number_id", "123456789")
    monkeypatch.setattr(settings, "whatsapp_verify_token", "verify-secret")
    monkeypatch.setattr(settings, "whatsapp_allowed_senders", "542604123456,5492604000001")
    monkeypatch.setattr(settings, "gemini_api_key", "test-key")
    monkeypatch.setattr(settings, "provider_service_url", "http://providers.test")
    monkeypatch.setattr(settings, "api_gateway_url", None)
    monkeypatch.setattr(settings, "geocoding_service_url", None)
    monkeypatch.setattr(settings, "frontend_url", "https://miservicio.ar")
    monkeypatch.setattr(settings, "terms_version", "1.1")


@pytest.fixture
def messenger():
    """WhatsAppService double; every send succeeds."""
    mock = Mock()
    for method in ("send_text", "send_buttons", "send_terms_prompt", "send_match_results", "send_no_matches"):
        getattr(mock, method).return_value = Result.success("wamid.TEST")
    return mock
