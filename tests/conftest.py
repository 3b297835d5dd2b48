"""
tests/conftest.py -- Shared test fixtures for ParkSpot.

This module provides:
  - engine / user_store / records: an isolated named shared-memory SQLite DB
    per test, with the real schema
  - codec: a TokenCodec using the same secret as the app under test
  - make_user: create an account directly in the store, return its Identity
  - client: TestClient over the full ASGI app (API + web routes) with a
    patched lifespan wired to the per-test stores
  - rate_limited: switch the shared limiter on with a limit of 2/minute

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The client talks to https://localhost: "localhost" passes TrustedHostMiddleware
and https lets the cookie jar send back the Secure session cookie.

Environment variables must be set before any app import because core.config,
core.limiter, and api.main read settings at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any app import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from asgi import app
from auth.models import Identity, User
from auth.store import UserStore
from auth.tokens import COOKIE_NAME, TokenCodec, hash_password
from core.config import get_settings
from core.database import create_db_engine
from core.limiter import limiter
from records.store import RecordStore

DEFAULT_PASSWORD = "correcthorsebattery"


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_db_engine(f"sqlite:///file:test_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def records(engine: Engine) -> RecordStore:
    return RecordStore(engine)


@pytest.fixture
def codec() -> TokenCodec:
    settings = get_settings()
    return TokenCodec(settings.secret_key, settings.token_expire_seconds)


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., Identity]:
    """Return a factory that inserts a user and returns its Identity."""

    def _make(username: str = "alice", password: str = DEFAULT_PASSWORD) -> Identity:
        uid = user_store.create_user(User(username=username, hashed_password=hash_password(password)))
        return Identity(user_id=uid, username=username)

    return _make


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, user_store: UserStore, records: RecordStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan.

    Wires the per-test stores into app.state so routes see the isolated test DB
    rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.records = records
        app.state.codec = codec
        yield

    return test_lifespan


@pytest.fixture
def client(
    engine: Engine,
    user_store: UserStore,
    records: RecordStore,
    codec: TokenCodec,
) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the full app.

    follow_redirects=False is essential: tests assert on redirect locations
    and Set-Cookie headers, both invisible once the redirect is followed.
    """
    app.router.lifespan_context = _patch_lifespan(engine, user_store, records, codec)
    with TestClient(
        app,
        base_url="https://localhost",
        follow_redirects=False,
        raise_server_exceptions=True,
    ) as test_client:
        yield test_client


@pytest.fixture
def rate_limited(monkeypatch) -> Generator[str, None, None]:
    """Enable the limiter for one test with a tight login limit.

    The suite runs with RATE_LIMIT_ENABLED=false. Counters live in the
    limiter's in-memory store, so they are cleared on the way in and out.
    """
    monkeypatch.setattr(limiter, "enabled", True)
    monkeypatch.setattr(get_settings(), "login_rate_limit", "2/minute")
    limiter.reset()
    yield "2/minute"
    limiter.reset()


def login_as(client: TestClient, codec: TokenCodec, identity: Identity) -> str:
    """Put a session cookie for identity into the client's cookie jar."""
    token = codec.sign(identity.user_id, identity.username)
    client.cookies.set(COOKIE_NAME, token)
    return token


def session_cookie_headers(resp) -> list[str]:
    """Return every Set-Cookie header on resp that touches the session cookie."""
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie" and COOKIE_NAME in v]
