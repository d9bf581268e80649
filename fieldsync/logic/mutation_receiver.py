"""Server-side application of queued client mutations.

Each mutation is applied at most once per mutation id (the client's
`Idempotency-Key`). The inspection write and its receipt commit together; a
repeat of the same id returns the stored response without touching data.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from fieldsync.db.base import get_engine
from fieldsync.logic.repository_inspections import (
    delete_inspection,
    get_inspection,
    get_receipt,
    insert_receipt,
    upsert_inspection,
)
from fieldsync.models.offline import MutationType, utc_now
from fieldsync.models.sync import InspectionPayload, MutationRequest

logger = logging.getLogger(__name__)

SUPPORTED_RESOURCES = frozenset({"inspection"})


class MutationRejected(ValueError):
    """The mutation can never be applied as sent (unknown type, resource or shape)."""

    def __init__(self, message: str, errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def _validate(request: MutationRequest) -> Tuple[str, InspectionPayload]:
    mtype = request.normalized_type()
    if not mtype:
        raise MutationRejected(f"unknown mutation type {request.type!r}")
    if request.resource not in SUPPORTED_RESOURCES:
        raise MutationRejected(f"unsupported resource {request.resource!r}")
    try:
        payload = InspectionPayload.model_validate(request.payload)
    except PydanticValidationError as exc:
        errors = [{"loc": list(e.get("loc", ())), "msg": str(e.get("msg", ""))} for e in exc.errors()]
        raise MutationRejected("invalid inspection payload", errors) from exc
    return mtype, payload


def apply_mutation(
    mutation_id: str,
    request: MutationRequest,
    engine: Optional[Engine] = None,
) -> Tuple[dict[str, Any], bool]:
    """Apply `request` once; return `(response_body, replayed)`."""
    eng = engine or get_engine()
    with eng.connect() as conn:
        stored = get_receipt(conn, mutation_id)
    if stored is not None:
        logger.info("mutation_replayed id=%s", mutation_id)
        return stored, True

    mtype, payload = _validate(request)
    now = utc_now()
    try:
        with eng.begin() as conn:
            if mtype == MutationType.DELETE:
                delete_inspection(conn, payload.inspection_id)
                result: Optional[dict[str, Any]] = {"inspectionId": payload.inspection_id, "deleted": True}
            else:
                upsert_inspection(conn, payload, now)
                result = get_inspection(conn, payload.inspection_id)
            body = {"id": mutation_id, "status": "applied", "result": result}
            insert_receipt(conn, mutation_id, request.resource, mtype, body, now)
    except IntegrityError:
        # Same id applied concurrently; the winner's receipt is authoritative
        with eng.connect() as conn:
            stored = get_receipt(conn, mutation_id)
        if stored is None:
            raise
        logger.info("mutation_replayed id=%s", mutation_id)
        return stored, True

    logger.info(
        "mutation_applied id=%s type=%s resource=%s inspection_id=%s",
        mutation_id,
        mtype,
        request.resource,
        payload.inspection_id,
    )
    return body, False


__all__ = ["SUPPORTED_RESOURCES", "MutationRejected", "apply_mutation"]
