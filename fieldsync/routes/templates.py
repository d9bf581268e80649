"""Template evaluation route.

Evaluates a template against partial answers in one call and returns the
per-item state, the score, the submission gating verdict and any structural
issues of the template.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from fieldsync.logic.gating import evaluate_gating
from fieldsync.logic.problem_factory import problem_template_invalid
from fieldsync.logic.scoring import calculate_score
from fieldsync.logic.template_loader import TemplateError, parse_template, validate_template
from fieldsync.logic.visibility_rules import evaluate
from fieldsync.models.sync import EvaluateRequest

router = APIRouter()


@router.post("/templates/evaluate", summary="Evaluate visibility, requirement and score")
def evaluate_template(body: EvaluateRequest) -> dict:
    try:
        template = parse_template(body.template)
    except TemplateError as exc:
        raise HTTPException(status_code=422, detail=problem_template_invalid(str(exc), exc.errors))
    states = evaluate(template, body.answers)
    score = calculate_score(template, body.answers, states)
    gating = evaluate_gating(template, body.answers, states)
    return {
        "items": {iid: state.model_dump() for iid, state in states.items()},
        "score": score.model_dump(by_alias=True),
        "gating": gating.model_dump(),
        "issues": validate_template(template),
    }


__all__ = ["router"]
