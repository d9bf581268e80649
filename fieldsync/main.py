"""FastAPI application factory for the fieldsync server.

The server half hosts advisory task claims, one-shot template evaluation and
the idempotent receiver that offline clients drain their mutation queues
into. All routes are mounted under `/api/v1`; `/health` sits at the root so
the client connectivity probe can reach it without knowing the API version.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fieldsync.config import AppConfig, load_config
from fieldsync.db.base import get_engine
from fieldsync.db.migrations_runner import apply_migrations
from fieldsync.http.problem import (
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from fieldsync.http.request_id import RequestIdMiddleware
from fieldsync.logging_setup import configure_logging
from fieldsync.logic.task_claims import TaskClaimCoordinator
from fieldsync.routes import api_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
_CORE_TABLES = ("task_claim", "inspection", "mutation_receipt")


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _schema_missing(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            for table in _CORE_TABLES:
                conn.execute(sql_text(f"SELECT 1 FROM {table} LIMIT 1"))
    except SQLAlchemyError:
        return True
    return False


def _migrate_on_startup(engine: Engine) -> None:
    # A database without the core tables cannot serve any route
    if not _schema_missing(engine) and not _flag("AUTO_APPLY_MIGRATIONS"):
        logger.info("startup_migrations_skipped")
        return
    applied = apply_migrations(engine, os.getenv("MIGRATIONS_DIR", "migrations"))
    logger.info("startup_migrations_applied count=%s", len(applied))


def create_app(config: Optional[AppConfig] = None, engine: Optional[Engine] = None) -> FastAPI:
    configure_logging()
    cfg = config or load_config()
    eng = engine or get_engine(os.getenv("TEST_DATABASE_URL") or cfg.database.dsn)

    app = FastAPI(title="fieldsync")
    app.state.config = cfg
    app.state.engine = eng
    app.state.claims = TaskClaimCoordinator(eng, enabled=cfg.claims.enabled, ttl_minutes=cfg.claims.ttl_minutes)

    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    @app.on_event("startup")
    def _startup() -> None:
        _migrate_on_startup(eng)

    app.include_router(api_router, prefix=API_PREFIX)

    @app.get("/health")
    def health() -> dict:
        try:
            with eng.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("health_db_check_failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(exc)}
        return {"status": "ok", "db": True}

    return app


__all__ = ["API_PREFIX", "create_app"]
