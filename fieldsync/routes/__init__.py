"""APIRouter registration for the fieldsync service."""

from __future__ import annotations

from fastapi import APIRouter

from fieldsync.routes.claims import router as claims_router
from fieldsync.routes.sync import router as sync_router
from fieldsync.routes.templates import router as templates_router

api_router = APIRouter()
api_router.include_router(claims_router, tags=["Claims"])
api_router.include_router(templates_router, tags=["Templates"])
api_router.include_router(sync_router, tags=["Sync"])

__all__ = ["api_router"]
