"""Gating verdict computation.

Computes a submission gating verdict with the shape `{ ok: bool,
blocking_items: [] }`. An item is blocking when it is currently visible and
required but has no answer. Hidden items never block.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fieldsync.logic.answer_canonical import answer_value, is_unanswered
from fieldsync.logic.visibility_rules import evaluate
from fieldsync.models.template import Template
from fieldsync.models.visibility import BlockingItem, GatingVerdict, ItemState


def evaluate_gating(
    template: Template,
    answers: Mapping[str, Any],
    states: Optional[Mapping[str, ItemState]] = None,
) -> GatingVerdict:
    if states is None:
        states = evaluate(template, answers)
    items = [
        BlockingItem(question_id=iid, reason="missing_required_answer")
        for iid, state in states.items()
        if state.visible and state.required and is_unanswered(answer_value(answers, iid))
    ]
    return GatingVerdict(ok=not items, blocking_items=items)


__all__ = ["evaluate_gating"]
