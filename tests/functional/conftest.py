"""Functional test bootstrap.

Server-side tests share one file-backed SQLite database migrated once per
session, before any test builds the FastAPI app through TestClient. Offline
client tests get a fresh local store per test. Async tests run on anyio's
pytest plugin with the asyncio backend.
"""

from __future__ import annotations

import os
import pathlib

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Disable app startup auto-migrations; we apply migrations explicitly
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


def _apply_sqlite_migrations() -> None:
    from fieldsync.db.base import get_engine
    from fieldsync.db.migrations_runner import apply_migrations

    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, _ROOT / "migrations")


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    _apply_sqlite_migrations()
    yield


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def server_engine():
    from fieldsync.db.base import get_engine

    return get_engine(os.environ["TEST_DATABASE_URL"])


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from fieldsync.main import create_app

    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def store_path(tmp_path) -> pathlib.Path:
    return tmp_path / "local_store.db"


@pytest.fixture
def local_store(store_path):
    from fieldsync.db.base import create_store_engine
    from fieldsync.offline.local_store import LocalStore

    engine = create_store_engine(f"sqlite:///{store_path}")
    yield LocalStore(engine)
    engine.dispose()
