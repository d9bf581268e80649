"""Task claim data access helpers.

Encapsulates the SQL for the `task_claim` and `app_user` tables so the claim
coordinator holds no inline SQL. Functions take an open connection; the
caller owns the transaction. Timestamps are stored as ISO-8601 UTC text.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from fieldsync.models.claims import TaskClaim


def _row_to_claim(row) -> TaskClaim:  # type: ignore[no-untyped-def]
    return TaskClaim(
        task_id=str(row[0]),
        user_id=str(row[1]),
        acquired_at=datetime.fromisoformat(str(row[2])),
        expires_at=datetime.fromisoformat(str(row[3])),
    )


def insert_claim(conn: Connection, task_id: str, user_id: str, acquired_at: datetime, expires_at: datetime) -> None:
    """Insert a claim row; raises IntegrityError when the task is already claimed."""
    conn.execute(
        sql_text(
            "INSERT INTO task_claim (claim_id, task_id, user_id, acquired_at, expires_at) "
            "VALUES (:cid, :tid, :uid, :acq, :exp)"
        ),
        {
            "cid": str(uuid.uuid4()),
            "tid": task_id,
            "uid": user_id,
            "acq": acquired_at.isoformat(),
            "exp": expires_at.isoformat(),
        },
    )


def get_claim(conn: Connection, task_id: str) -> Optional[TaskClaim]:
    row = conn.execute(
        sql_text("SELECT task_id, user_id, acquired_at, expires_at FROM task_claim WHERE task_id = :tid"),
        {"tid": task_id},
    ).fetchone()
    return _row_to_claim(row) if row is not None else None


def refresh_claim(conn: Connection, task_id: str, user_id: str, acquired_at: datetime, expires_at: datetime) -> int:
    """Extend the caller's own claim; returns the number of rows touched."""
    result = conn.execute(
        sql_text(
            "UPDATE task_claim SET acquired_at = :acq, expires_at = :exp "
            "WHERE task_id = :tid AND user_id = :uid"
        ),
        {"tid": task_id, "uid": user_id, "acq": acquired_at.isoformat(), "exp": expires_at.isoformat()},
    )
    return int(result.rowcount or 0)


def take_over_expired_claim(
    conn: Connection,
    task_id: str,
    previous: TaskClaim,
    user_id: str,
    acquired_at: datetime,
    expires_at: datetime,
) -> int:
    """Replace an expired claim, only if it is still the row that was read."""
    result = conn.execute(
        sql_text(
            "UPDATE task_claim SET user_id = :uid, acquired_at = :acq, expires_at = :exp "
            "WHERE task_id = :tid AND user_id = :prev_uid AND expires_at = :prev_exp"
        ),
        {
            "tid": task_id,
            "uid": user_id,
            "acq": acquired_at.isoformat(),
            "exp": expires_at.isoformat(),
            "prev_uid": previous.user_id,
            "prev_exp": previous.expires_at.isoformat(),
        },
    )
    return int(result.rowcount or 0)


def delete_claim(conn: Connection, task_id: str, user_id: str) -> int:
    result = conn.execute(
        sql_text("DELETE FROM task_claim WHERE task_id = :tid AND user_id = :uid"),
        {"tid": task_id, "uid": user_id},
    )
    return int(result.rowcount or 0)


def get_display_name(conn: Connection, user_id: str) -> Optional[str]:
    row = conn.execute(
        sql_text("SELECT display_name FROM app_user WHERE user_id = :uid"),
        {"uid": user_id},
    ).fetchone()
    if row is None or not row[0]:
        return None
    return str(row[0])


def upsert_user(conn: Connection, user_id: str, display_name: str) -> None:
    conn.execute(
        sql_text(
            "INSERT INTO app_user (user_id, display_name) VALUES (:uid, :name) "
            "ON CONFLICT (user_id) DO UPDATE SET display_name = excluded.display_name"
        ),
        {"uid": user_id, "name": display_name},
    )


__all__ = [
    "insert_claim",
    "get_claim",
    "refresh_claim",
    "take_over_expired_claim",
    "delete_claim",
    "get_display_name",
    "upsert_user",
]
