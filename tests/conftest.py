"""
tests/conftest.py -- Shared test fixtures for WordLists tests.

This module provides:
  - stores: isolated in-memory UserStore + ListStore per test module
  - api_client: TestClient wired to those stores through a patched lifespan
  - client: api_client with its cookie jar emptied before each test
  - make_user: registers a user directly in the store and mints a token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. The test
module name is part of the DB name so modules never see each other's rows.

Environment must be set before any auth/core import:
  DEBUG=true                -- get_settings() auto-generates SECRET_KEY
  RATE_LIMIT_ENABLED=false  -- login tests log in more than 10 times a minute
  *_PASSWORD_ROUNDS=4       -- bcrypt minimum cost keeps the suite fast
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set these before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("USER_PASSWORD_ROUNDS", "4")
os.environ.setdefault("LIST_PASSWORD_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from wordbank.store import ListStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(kind: str, suffix: str) -> str:
    return f"sqlite:///file:test_{kind}_{suffix}?mode=memory&cache=shared&uri=true"


def _patch_lifespan(user_store: UserStore, list_store: ListStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.list_store = list_store
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@dataclass
class TestUser:
    """A registered user plus a valid session token for it."""

    __test__ = False  # not a test class, despite the name

    id: int
    name: str
    password: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def credentials(self) -> dict[str, str]:
        return {"name": self.name, "password": self.password}


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one DB pair and one TestClient per test module
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def stores(request) -> Generator[tuple[UserStore, ListStore], None, None]:
    """Yield (user_store, list_store) backed by this module's in-memory DBs."""
    suffix = request.module.__name__.replace(".", "_")
    user_store = UserStore(db_url=_memory_url("auth", suffix))
    list_store = ListStore(db_url=_memory_url("lists", suffix))
    yield user_store, list_store
    list_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def api_client(stores) -> Generator[TestClient, None, None]:
    """TestClient on the real FastAPI app with a patched lifespan.

    Tests hit real route handlers, middleware and exception handlers but use
    the isolated in-memory stores.
    """
    user_store, list_store = stores
    app.router.lifespan_context = _patch_lifespan(user_store, list_store)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def client(api_client: TestClient) -> TestClient:
    """api_client with no cookies carried over from earlier tests.

    Login sets the auth cookie on the client; without this, a later test
    that means to be anonymous would silently be authenticated.
    """
    api_client.cookies.clear()
    return api_client


@pytest.fixture(scope="module")
def make_user(stores) -> Callable[..., TestUser]:
    """Factory: make_user("alice") -> TestUser registered in this module's user store."""
    user_store, _ = stores

    def _make(name: str, password: str = "secret123") -> TestUser:
        result = user_store.create_user(
            User(name=name, name_lower=name.lower(), password_hash=hash_password(password))
        )
        assert result.ok, f"could not create {name}: {result.detail}"
        token = create_access_token(result.value, name)
        return TestUser(id=result.value, name=name, password=password, token=token)

    return _make
