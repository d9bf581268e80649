"""Mutation receiver route: the write API drained by offline clients."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response

from fieldsync.logic.mutation_receiver import MutationRejected, apply_mutation
from fieldsync.logic.problem_factory import problem_mutation_rejected
from fieldsync.logic.request_replay import mark_replayed, resolve_mutation_id
from fieldsync.models.sync import MutationRequest

router = APIRouter()


@router.post("/sync/mutations", summary="Apply a queued client mutation once")
def receive_mutation(body: MutationRequest, request: Request, response: Response) -> dict:
    mutation_id = resolve_mutation_id(request)
    try:
        result, replayed = apply_mutation(mutation_id, body, engine=request.app.state.engine)
    except MutationRejected as exc:
        raise HTTPException(status_code=422, detail=problem_mutation_rejected(str(exc), exc.errors))
    if replayed:
        mark_replayed(response)
    return result


__all__ = ["router"]
