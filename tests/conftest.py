"""
tests/conftest.py -- Shared test fixtures for Todo API unit and integration tests.

This module provides:
  - FixedClock: a settable Clock so expiry can be tested without sleeping
  - clock / codec / user_store / token_store / todo_store / issuer / gate / scope:
    function-scoped unit-test building blocks on fresh in-memory databases
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient plus raw tokens for alice, bob and an admin

Design: the API fixture uses named shared-memory SQLite URIs (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.gate import AuthenticationGate
from auth.issuer import TokenIssuer
from auth.models import ROLE_ADMIN, ROLE_USER, User
from auth.store import TokenStore, UserStore
from auth.tokens import TokenCodec, hash_password
from todos.scope import OwnershipScope
from todos.store import TodoStore

TEST_SECRET_KEY = "test-signing-key-0123456789abcdef0123456789abcdef"
START = datetime(2026, 1, 15, 9, 30, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


def _shared_memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-test fixtures -- fresh stores per test
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def codec(clock: FixedClock) -> TokenCodec:
    return TokenCodec(TEST_SECRET_KEY, clock)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def token_store(clock: FixedClock) -> Generator[TokenStore, None, None]:
    store = TokenStore("sqlite:///:memory:", clock=clock)
    yield store
    store.close()


@pytest.fixture
def todo_store() -> Generator[TodoStore, None, None]:
    store = TodoStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def issuer(codec: TokenCodec, token_store: TokenStore, clock: FixedClock) -> TokenIssuer:
    return TokenIssuer(codec, token_store, clock)


@pytest.fixture
def gate(codec: TokenCodec, token_store: TokenStore, user_store: UserStore, clock: FixedClock) -> AuthenticationGate:
    return AuthenticationGate(codec, token_store, user_store, clock)


@pytest.fixture
def scope(todo_store: TodoStore) -> OwnershipScope:
    return OwnershipScope(todo_store)


@pytest.fixture
def alice(user_store: UserStore) -> User:
    uid = user_store.create_user(User(username="alice", hashed_password=hash_password("alice-pass")))
    return user_store.get_by_id(uid)


@pytest.fixture
def bob(user_store: UserStore) -> User:
    uid = user_store.create_user(User(username="bob", hashed_password=hash_password("bob-pass")))
    return user_store.get_by_id(uid)


# ---------------------------------------------------------------------------
# API integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(
    clock: FixedClock,
    user_store: UserStore,
    token_store: TokenStore,
    todo_store: TodoStore,
    codec: TokenCodec,
    issuer: TokenIssuer,
):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test services into app.state so TestClient routes see
    isolated test DBs and the test's FixedClock.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.clock = clock
        app.state.user_store = user_store
        app.state.token_store = token_store
        app.state.todo_store = todo_store
        app.state.codec = codec
        app.state.issuer = issuer
        app.state.gate = AuthenticationGate(codec, token_store, user_store, clock)
        app.state.scope = OwnershipScope(todo_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, dict[str, str], FixedClock], None, None]:
    """Yield (client, tokens, clock) for API integration tests.

    tokens maps "alice", "bob" and "admin" to raw API tokens issued before the
    client starts. Passwords are "<username>-pass". The rate limiter is
    switched off so repeated logins across tests never trip it.
    """
    clock = FixedClock()
    user_store = UserStore(_shared_memory_url("test_users"))
    token_store = TokenStore(_shared_memory_url("test_tokens"), clock=clock)
    todo_store = TodoStore(_shared_memory_url("test_todos"))
    codec = TokenCodec(TEST_SECRET_KEY, clock)
    issuer = TokenIssuer(codec, token_store, clock)

    tokens: dict[str, str] = {}
    for username, roles in (("alice", {ROLE_USER}), ("bob", {ROLE_USER}), ("admin", {ROLE_USER, ROLE_ADMIN})):
        uid = user_store.create_user(
            User(username=username, hashed_password=hash_password(f"{username}-pass"), roles=roles)
        )
        tokens[username] = issuer.issue(user_store.get_by_id(uid)).token

    app.router.lifespan_context = _patch_lifespan(clock, user_store, token_store, todo_store, codec, issuer)
    limiter.enabled = False

    # TrustedHostMiddleware only accepts localhost-style Host headers.
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, tokens, clock

    limiter.enabled = True
    todo_store.close()
    token_store.close()
    user_store.close()