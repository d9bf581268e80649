"""fieldsync: offline inspection forms, sync queue and task claims.

This package exposes a FastAPI application factory for the server half
(task claims, template evaluation and the idempotent mutation receiver).
The pure form engine lives in `fieldsync/logic/`, the offline client in
`fieldsync/offline/`.
"""

from __future__ import annotations

from fieldsync.main import create_app

__all__ = ["create_app"]
