"""Shared fixtures: per-test SQLite database, fake transcription provider, Supabase-style tokens."""

import os
import time

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-supabase-jwt-secret-0123456789abcdef"

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.services.transcription import get_transcription_client

TEST_JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]


def make_token(user_id="user-1", secret=TEST_JWT_SECRET, **overrides):
    """Mint an HS256 token shaped like the ones Supabase Auth issues."""
    payload = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    payload.update(overrides)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(user_id="user-1"):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


class FakeTranscriptionClient:
    """Stands in for the OpenAI client; records calls and can be told to fail."""

    def __init__(self):
        self.calls = []
        self.text = "hello from the microphone"
        self.error = None

    async def transcribe(self, filename, content, content_type):
        self.calls.append({"filename": filename, "size": len(content), "content_type": content_type})
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def transcriber():
    return FakeTranscriptionClient()


@pytest.fixture
def client(session_factory, transcriber):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transcription_client] = lambda: transcriber
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers():
    return auth_header("owner-1")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def auth():
    """auth(user_id) -> Authorization header for that user."""
    return auth_header
