"""Score calculation over evaluated item states.

Only visible items with scorable options contribute. Hidden items add nothing
to either the achieved score or the achievable maximum, so the denominator
reflects only the questions that applied to this inspection.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from fieldsync.logic.answer_canonical import (
    answer_value,
    canonicalize_answer_value,
    canonicalize_yes_no,
    is_unanswered,
)
from fieldsync.logic.visibility_rules import evaluate
from fieldsync.models.question_kind import ItemType
from fieldsync.models.template import Item, Option, Template
from fieldsync.models.visibility import ItemState


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    score: float
    max_score: float = Field(alias="maxScore")
    percentage: int


def _option_score(opt: Option) -> float:
    # Negative scores clamp to zero so that 0 <= score <= max_score holds
    return max(float(opt.score or 0.0), 0.0)


def _matches(item: Item, opt: Option, value: Any) -> bool:
    if item.type == ItemType.YES_NO:
        return canonicalize_yes_no(opt.value) == canonicalize_yes_no(value)
    return canonicalize_answer_value(opt.value) == canonicalize_answer_value(value)


def _find_option(item: Item, value: Any) -> Optional[Option]:
    for opt in item.options:
        if _matches(item, opt, value):
            return opt
    return None


def item_contribution(item: Item, value: Any) -> tuple[float, float]:
    """Return `(achieved, maximum)` for one visible item, before weighting."""
    if not item.scorable:
        return 0.0, 0.0
    if item.type == ItemType.MULTI_SELECT:
        maximum = sum(_option_score(opt) for opt in item.options)
        if is_unanswered(value):
            return 0.0, maximum
        selected = value if isinstance(value, (list, tuple)) else [value]
        achieved = 0.0
        for opt in item.options:
            if any(_matches(item, opt, v) for v in selected):
                achieved += _option_score(opt)
        return min(achieved, maximum), maximum

    maximum = max(_option_score(opt) for opt in item.options)
    if is_unanswered(value):
        return 0.0, maximum
    opt = _find_option(item, value)
    return (_option_score(opt) if opt is not None else 0.0), maximum


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def calculate_score(
    template: Template,
    answers: Mapping[str, Any],
    states: Optional[Mapping[str, ItemState]] = None,
) -> ScoreResult:
    """Compute score, max_score and percentage for the current answers.

    `states` may be passed when the caller already evaluated the rules for the
    same answers; otherwise the rule evaluator runs first.
    """
    if states is None:
        states = evaluate(template, answers)
    score = 0.0
    max_score = 0.0
    for item in template.iter_items():
        state = states.get(item.id)
        if state is None or not state.visible:
            continue
        weight = max(float(item.weight), 0.0)
        achieved, maximum = item_contribution(item, answer_value(answers, item.id))
        score += weight * achieved
        max_score += weight * maximum
    percentage = _round_half_up(100.0 * score / max_score) if max_score > 0 else 0
    return ScoreResult(score=score, max_score=max_score, percentage=percentage)


__all__ = ["ScoreResult", "item_contribution", "calculate_score"]
