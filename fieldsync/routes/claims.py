"""Task claim routes.

A conflict is a normal 200 outcome with `success: false` naming the holder;
only a storage failure is an error (503 problem+json).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response

from fieldsync.logic.problem_factory import problem_claim_unavailable
from fieldsync.logic.task_claims import ClaimUnavailable, TaskClaimCoordinator
from fieldsync.models.claims import ClaimRequest, ClaimResult

router = APIRouter()
logger = logging.getLogger(__name__)


def _coordinator(request: Request) -> TaskClaimCoordinator:
    return request.app.state.claims


@router.post(
    "/tasks/{task_id}/claim",
    summary="Claim a task for editing",
    response_model=ClaimResult,
    response_model_by_alias=True,
)
def claim_task(task_id: str, body: ClaimRequest, request: Request) -> ClaimResult:
    try:
        return _coordinator(request).claim(task_id, body.user_id)
    except ClaimUnavailable:
        raise HTTPException(status_code=503, detail=problem_claim_unavailable(task_id))


@router.delete("/tasks/{task_id}/claim", summary="Release a task claim", status_code=204)
def release_task(task_id: str, request: Request, user_id: str = Query(..., min_length=1)) -> Response:
    try:
        _coordinator(request).release(task_id, user_id)
    except ClaimUnavailable:
        raise HTTPException(status_code=503, detail=problem_claim_unavailable(task_id))
    return Response(status_code=204)


__all__ = ["router"]
