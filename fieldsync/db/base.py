"""Engine construction for the two fieldsync databases.

The server half (claims, inspections, mutation receipts) runs on one shared
Engine per database URL, normally PostgreSQL, with SQLite accepted for local
runs and tests. Each offline client instance owns a separate, uncached Engine
over its local SQLite file, built through `create_store_engine`, so client
storage never shares a pool with the server.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "sqlite+pysqlite:///:memory:"

_server_engine: Engine | None = None
_server_url: str | None = None


def server_database_url() -> str:
    """Resolve the server database URL; the test URL wins over the runtime one."""
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL") or DEFAULT_SERVER_URL


def _engine_options(url: str) -> dict:
    options: dict = {"future": True, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        return options
    # Offline store calls run on anyio worker threads
    options["connect_args"] = {"check_same_thread": False}
    if ":memory:" in url:
        # One connection, otherwise every checkout sees an empty database
        options["poolclass"] = StaticPool
    return options


def get_engine(url: str | None = None) -> Engine:
    """Return the server Engine for `url` (default: `server_database_url()`).

    The Engine is cached per process and rebuilt only when a different URL
    is requested, so route handlers, the claim coordinator and the mutation
    receiver all share one pool.
    """
    global _server_engine, _server_url
    wanted = url or server_database_url()
    if _server_engine is not None and _server_url == wanted:
        return _server_engine
    _server_engine = create_engine(wanted, **_engine_options(wanted))
    _server_url = wanted
    logger.info("server_engine_created dialect=%s", _server_engine.dialect.name)
    return _server_engine


def create_store_engine(url: str) -> Engine:
    """Build a dedicated Engine for one offline client's local store."""
    logger.info("local_store_engine_created url=%s", url)
    return create_engine(url, **_engine_options(url))


__all__ = ["DEFAULT_SERVER_URL", "server_database_url", "get_engine", "create_store_engine"]
