"""
tests/conftest.py -- Shared test fixtures for CronoCodex.

This module provides:
  - make_test_stores(): isolated shared-memory SQLite stores (auth + hr)
  - seed_hierarchy(): the canonical chain G -> M -> H -> W plus a second
    HR admin H2 under the same manager
  - hierarchy: module-scoped seeded store + gate for unit tests of the gate
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool, and because the
principal store and the HR store open separate engines on one database.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

TESTING must be set before any api/ import so get_settings() auto-generates
SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# Set before any import that reads Settings.
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gate import AuthGate
from auth.models import Principal, Role
from auth.passwords import derive
from auth.store import PrincipalStore
from auth.tokens import TokenCodec
from hr.store import HRStore

TEST_SECRET = "test-signing-secret-0123456789abcdef"
PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def shared_memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def make_test_stores(db_suffix: str) -> tuple[PrincipalStore, HRStore]:
    """Create a principal store and an HR store over one shared-memory DB."""
    url = shared_memory_url(f"test_cronocodex_{db_suffix}")
    return PrincipalStore(url), HRStore(url)


@dataclass
class Hierarchy:
    """Ids of the seeded chain. All accounts share PASSWORD."""

    store: PrincipalStore
    g: int
    m: int
    h: int
    w: int
    h2: int

    def principal(self, principal_id: int) -> Principal:
        found = self.store.find_by_id(principal_id)
        assert found is not None
        return found


def _add(store: PrincipalStore, email: str, role: Role, supervisor_id: int | None) -> int:
    return store.create_user(
        Principal(email=email, full_name=email.split("@")[0].upper(), role=role, supervisor_id=supervisor_id),
        derive(PASSWORD),
    )


def seed_hierarchy(store: PrincipalStore) -> Hierarchy:
    """G (GENERAL_ADMIN) -> M (AREA_MANAGER) -> H (HR_ADMIN) -> W (WORKER); H2 is a second HR admin under M."""
    g = _add(store, "g@cronocodex.test", Role.GENERAL_ADMIN, None)
    m = _add(store, "m@cronocodex.test", Role.AREA_MANAGER, g)
    h = _add(store, "h@cronocodex.test", Role.HR_ADMIN, m)
    w = _add(store, "w@cronocodex.test", Role.WORKER, h)
    h2 = _add(store, "h2@cronocodex.test", Role.HR_ADMIN, m)
    return Hierarchy(store=store, g=g, m=m, h=h, w=w, h2=h2)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def hierarchy() -> Generator[Hierarchy, None, None]:
    store = PrincipalStore(shared_memory_url("test_hierarchy"))
    seeded = seed_hierarchy(store)
    yield seeded
    store.close()


@pytest.fixture
def gate(hierarchy: Hierarchy) -> AuthGate:
    return AuthGate(hierarchy.store, TokenCodec(TEST_SECRET))


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: PrincipalStore, hr_store: HRStore, gate: AuthGate):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.hr_store = hr_store
        app.state.gate = gate
        yield

    return test_lifespan


@dataclass
class ApiContext:
    client: TestClient
    ids: Hierarchy
    gate: AuthGate

    def token_for(self, principal_id: int) -> str:
        principal = self.ids.principal(principal_id)
        return self.gate.codec.issue(principal.id, principal.role)

    def headers_for(self, principal_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(principal_id)}"}


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    """
    user_store, hr_store = make_test_stores("api")
    ids = seed_hierarchy(user_store)
    api_gate = AuthGate(user_store, TokenCodec(TEST_SECRET))

    app.router.lifespan_context = _patch_lifespan(user_store, hr_store, api_gate)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, ids=ids, gate=api_gate)

    hr_store.close()
    user_store.close()
