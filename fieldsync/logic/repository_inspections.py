"""Inspection and mutation receipt data access helpers.

Writes performed by the mutation receiver. Functions take an open connection
so the inspection write and its receipt commit in one transaction.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from fieldsync.models.sync import InspectionPayload


def upsert_inspection(conn: Connection, payload: InspectionPayload, updated_at: datetime) -> None:
    conn.execute(
        sql_text(
            "INSERT INTO inspection "
            "(inspection_id, task_id, status, answers, score, max_score, percentage, updated_at) "
            "VALUES (:iid, :tid, :status, :answers, :score, :max_score, :pct, :ts) "
            "ON CONFLICT (inspection_id) DO UPDATE SET "
            "task_id = COALESCE(excluded.task_id, inspection.task_id), "
            "status = excluded.status, answers = excluded.answers, score = excluded.score, "
            "max_score = excluded.max_score, percentage = excluded.percentage, "
            "updated_at = excluded.updated_at"
        ),
        {
            "iid": payload.inspection_id,
            "tid": payload.task_id,
            "status": payload.status,
            "answers": json.dumps(payload.answers, ensure_ascii=False),
            "score": payload.score,
            "max_score": payload.max_score,
            "pct": payload.percentage,
            "ts": updated_at.isoformat(),
        },
    )


def delete_inspection(conn: Connection, inspection_id: str) -> int:
    result = conn.execute(
        sql_text("DELETE FROM inspection WHERE inspection_id = :iid"),
        {"iid": inspection_id},
    )
    return int(result.rowcount or 0)


def get_inspection(conn: Connection, inspection_id: str) -> Optional[dict[str, Any]]:
    row = conn.execute(
        sql_text(
            "SELECT inspection_id, task_id, status, answers, score, max_score, percentage, updated_at "
            "FROM inspection WHERE inspection_id = :iid"
        ),
        {"iid": inspection_id},
    ).fetchone()
    if row is None:
        return None
    return {
        "inspectionId": row[0],
        "taskId": row[1],
        "status": row[2],
        "answers": json.loads(row[3]) if row[3] else {},
        "score": row[4],
        "maxScore": row[5],
        "percentage": row[6],
        "updatedAt": row[7],
    }


def get_receipt(conn: Connection, mutation_id: str) -> Optional[dict[str, Any]]:
    """Return the stored response body for an applied mutation id."""
    row = conn.execute(
        sql_text("SELECT response FROM mutation_receipt WHERE mutation_id = :mid"),
        {"mid": mutation_id},
    ).fetchone()
    return json.loads(row[0]) if row is not None else None


def insert_receipt(
    conn: Connection,
    mutation_id: str,
    resource: str,
    mutation_type: str,
    response: dict[str, Any],
    applied_at: datetime,
) -> None:
    conn.execute(
        sql_text(
            "INSERT INTO mutation_receipt (mutation_id, resource, mutation_type, response, applied_at) "
            "VALUES (:mid, :res, :mtype, :body, :ts)"
        ),
        {
            "mid": mutation_id,
            "res": resource,
            "mtype": mutation_type,
            "body": json.dumps(response, ensure_ascii=False),
            "ts": applied_at.isoformat(),
        },
    )


__all__ = [
    "upsert_inspection",
    "delete_inspection",
    "get_inspection",
    "get_receipt",
    "insert_receipt",
]
