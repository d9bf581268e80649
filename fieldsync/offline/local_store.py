"""Durable key/value blob store for the offline client.

Backed by a SQLite file through SQLAlchemy Core. Records are JSON blobs keyed
by `(namespace, key)`; drafts, the field log and the mutation queue each use
their own namespace. Blocking database calls are offloaded to worker threads
so callers on the event loop suspend instead of blocking it.

Capacity is finite: a write that would push the total stored body size above
`max_bytes` fails with `StorageQuotaExceeded` and leaves the store unchanged.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import anyio
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from fieldsync.models.offline import utc_now

logger = logging.getLogger(__name__)


_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS local_blob ("
    " namespace TEXT NOT NULL,"
    " key TEXT NOT NULL,"
    " body TEXT NOT NULL,"
    " updated_at TEXT NOT NULL,"
    " PRIMARY KEY (namespace, key)"
    ")"
)


class StorageError(RuntimeError):
    """Base error for local store failures."""


class StorageQuotaExceeded(StorageError):
    def __init__(self, requested: int, limit: int) -> None:
        super().__init__(f"local store quota exceeded: {requested} > {limit} bytes")
        self.requested = requested
        self.limit = limit


class StorageUnavailable(StorageError):
    """The backing store could not be read or written."""


class LocalStore:
    def __init__(self, engine: Engine, max_bytes: Optional[int] = None) -> None:
        self._engine = engine
        self._max_bytes = max_bytes
        self._ready = False

    # Synchronous primitives (run in worker threads)

    def _ensure_schema(self) -> None:
        if self._ready:
            return
        with self._engine.begin() as conn:
            conn.exec_driver_sql(_CREATE_TABLE)
        self._ready = True

    def _put_sync(self, namespace: str, key: str, blob: Any) -> None:
        body = json.dumps(blob, ensure_ascii=False, separators=(",", ":"))
        try:
            self._ensure_schema()
            with self._engine.begin() as conn:
                if self._max_bytes is not None:
                    others = conn.execute(
                        sql_text(
                            "SELECT COALESCE(SUM(LENGTH(body)), 0) FROM local_blob "
                            "WHERE NOT (namespace = :ns AND key = :k)"
                        ),
                        {"ns": namespace, "k": key},
                    ).scalar_one()
                    requested = int(others or 0) + len(body)
                    if requested > self._max_bytes:
                        logger.warning(
                            "local_store_quota_exceeded namespace=%s key=%s requested=%s limit=%s",
                            namespace,
                            key,
                            requested,
                            self._max_bytes,
                        )
                        raise StorageQuotaExceeded(requested, self._max_bytes)
                conn.execute(
                    sql_text(
                        "INSERT INTO local_blob (namespace, key, body, updated_at) "
                        "VALUES (:ns, :k, :body, :ts) "
                        "ON CONFLICT (namespace, key) DO UPDATE SET "
                        "body = excluded.body, updated_at = excluded.updated_at"
                    ),
                    {"ns": namespace, "k": key, "body": body, "ts": utc_now().isoformat()},
                )
        except SQLAlchemyError as exc:
            logger.error("local_store_write_failed namespace=%s key=%s", namespace, key, exc_info=True)
            raise StorageUnavailable(str(exc)) from exc

    def _get_sync(self, namespace: str, key: str) -> Optional[Any]:
        try:
            self._ensure_schema()
            with self._engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT body FROM local_blob WHERE namespace = :ns AND key = :k"),
                    {"ns": namespace, "k": key},
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("local_store_read_failed namespace=%s key=%s", namespace, key, exc_info=True)
            raise StorageUnavailable(str(exc)) from exc
        if row is None:
            return None
        return _decode(namespace, key, row[0])

    def _list_sync(self, namespace: str) -> list[Any]:
        try:
            self._ensure_schema()
            with self._engine.connect() as conn:
                # rowid keeps first-insert order; upserts do not move a row
                rows = conn.execute(
                    sql_text("SELECT key, body FROM local_blob WHERE namespace = :ns ORDER BY rowid"),
                    {"ns": namespace},
                ).fetchall()
        except SQLAlchemyError as exc:
            logger.error("local_store_read_failed namespace=%s", namespace, exc_info=True)
            raise StorageUnavailable(str(exc)) from exc
        return [_decode(namespace, str(k), body) for k, body in rows]

    def _delete_sync(self, namespace: str, key: Optional[str]) -> int:
        try:
            self._ensure_schema()
            with self._engine.begin() as conn:
                if key is None:
                    result = conn.execute(
                        sql_text("DELETE FROM local_blob WHERE namespace = :ns"), {"ns": namespace}
                    )
                else:
                    result = conn.execute(
                        sql_text("DELETE FROM local_blob WHERE namespace = :ns AND key = :k"),
                        {"ns": namespace, "k": key},
                    )
                return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            logger.error("local_store_delete_failed namespace=%s key=%s", namespace, key, exc_info=True)
            raise StorageUnavailable(str(exc)) from exc

    # Async surface

    async def put(self, namespace: str, key: str, blob: Any) -> None:
        await anyio.to_thread.run_sync(self._put_sync, namespace, key, blob)

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        return await anyio.to_thread.run_sync(self._get_sync, namespace, key)

    async def values(self, namespace: str) -> list[Any]:
        return await anyio.to_thread.run_sync(self._list_sync, namespace)

    async def delete(self, namespace: str, key: str) -> bool:
        return bool(await anyio.to_thread.run_sync(self._delete_sync, namespace, key))

    async def clear(self, namespace: str) -> int:
        return await anyio.to_thread.run_sync(self._delete_sync, namespace, None)


def _decode(namespace: str, key: str, body: str) -> Any:
    try:
        return json.loads(body)
    except (TypeError, json.JSONDecodeError) as exc:
        logger.error("local_store_corrupt_record namespace=%s key=%s", namespace, key)
        raise StorageError(f"corrupt record {namespace}/{key}") from exc


__all__ = [
    "LocalStore",
    "StorageError",
    "StorageQuotaExceeded",
    "StorageUnavailable",
]
