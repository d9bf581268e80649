"""Rule evaluation for conditional visibility and requirement.

Computes the per-item `{visible, required}` state of a template for a set of
(possibly partial) answers. Evaluation is pure and synchronous: no I/O, no
logging, no mutation of its inputs. Malformed rules (unknown operator, unknown
action, unknown target or question) never raise; they simply do not fire.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from fieldsync.logic.answer_canonical import (
    answer_value,
    canonicalize_answer_value,
    canonicalize_yes_no,
    is_unanswered,
    to_number,
)
from fieldsync.models.question_kind import ConditionOperator, RuleAction
from fieldsync.models.template import Condition, LogicRule, Template
from fieldsync.models.visibility import ItemState


def _scalar_equals(answer: Any, expected: Any) -> bool:
    if isinstance(answer, bool) or isinstance(expected, bool):
        return canonicalize_yes_no(answer) == canonicalize_yes_no(expected)
    a_num, e_num = to_number(answer), to_number(expected)
    if a_num is not None and e_num is not None:
        return a_num == e_num
    return canonicalize_answer_value(answer) == canonicalize_answer_value(expected)


def _equals(answer: Any, expected: Any) -> bool:
    """Canonical equality between an answer and a condition value.

    - list answer vs list value: same members, order ignored
    - list answer vs scalar: the list holds exactly that value
    - scalar answer vs list value: the answer is one of the listed values
    """
    if isinstance(answer, (list, tuple)):
        if isinstance(expected, (list, tuple)):
            got = {canonicalize_answer_value(x) for x in answer}
            want = {canonicalize_answer_value(x) for x in expected}
            return got == want
        return len(answer) == 1 and _scalar_equals(answer[0], expected)
    if isinstance(expected, (list, tuple)):
        return any(_scalar_equals(answer, x) for x in expected)
    return _scalar_equals(answer, expected)


def _contains(answer: Any, expected: Any) -> bool:
    if isinstance(answer, (list, tuple)):
        return any(_scalar_equals(x, expected) for x in answer)
    if isinstance(answer, str) and expected is not None:
        return str(canonicalize_answer_value(expected)).lower() in answer.lower()
    return False


def _compare(answer: Any, expected: Any, greater: bool) -> bool:
    a_num, e_num = to_number(answer), to_number(expected)
    if a_num is None or e_num is None:
        return False
    return a_num > e_num if greater else a_num < e_num


def condition_holds(condition: Condition, answers: Mapping[str, Any]) -> bool:
    """Return True when a single condition matches the current answers.

    An unanswered question makes the condition false unless the operator is
    one of the unanswered-aware operators (`is_empty`, `is_not_empty`).
    """
    op = condition.operator
    if op not in ConditionOperator.ALL:
        return False
    value = answer_value(answers, condition.question_id)
    if is_unanswered(value):
        return op == ConditionOperator.IS_EMPTY
    if op == ConditionOperator.IS_EMPTY:
        return False
    if op == ConditionOperator.IS_NOT_EMPTY:
        return True
    if op == ConditionOperator.EQUALS:
        return _equals(value, condition.value)
    if op == ConditionOperator.NOT_EQUALS:
        return not _equals(value, condition.value)
    if op == ConditionOperator.CONTAINS:
        return _contains(value, condition.value)
    if op == ConditionOperator.GREATER_THAN:
        return _compare(value, condition.value, greater=True)
    return _compare(value, condition.value, greater=False)


def rule_matches(rule: LogicRule, answers: Mapping[str, Any]) -> bool:
    """AND over all conditions; a rule without conditions always matches."""
    return all(condition_holds(c, answers) for c in rule.conditions)


def ordered_rules(rules: Iterable[LogicRule]) -> list[LogicRule]:
    """Evaluation order: priority ascending, then declaration order."""
    indexed = list(enumerate(rules))
    indexed.sort(key=lambda pair: (pair[1].priority, pair[0]))
    return [rule for _idx, rule in indexed]


def visibility_controlled_ids(template: Template) -> set[str]:
    """Ids targeted by at least one show/hide rule; these start hidden."""
    return {r.target_id for r in template.logic if r.action in RuleAction.VISIBILITY}


def evaluate(template: Template, answers: Mapping[str, Any]) -> dict[str, ItemState]:
    """Compute `{item_id: ItemState}` for every item of the template.

    Items start `{visible: True, required: item.required}`; items targeted by
    any show/hide rule start hidden. Matching rules then overwrite the prior
    value of their own dimension (show/hide or require/optional) for their
    target, so the last matching rule in evaluation order wins.
    """
    controlled = visibility_controlled_ids(template)
    visible: dict[str, bool] = {}
    required: dict[str, bool] = {}
    for item in template.iter_items():
        visible[item.id] = item.id not in controlled
        required[item.id] = bool(item.required)

    for rule in ordered_rules(template.logic):
        target = rule.target_id
        if target not in visible or rule.action not in RuleAction.ALL:
            continue
        if not rule_matches(rule, answers):
            continue
        if rule.action == RuleAction.SHOW:
            visible[target] = True
        elif rule.action == RuleAction.HIDE:
            visible[target] = False
        elif rule.action == RuleAction.REQUIRE:
            required[target] = True
        else:
            required[target] = False

    return {iid: ItemState(visible=visible[iid], required=required[iid]) for iid in visible}


def compute_visible_set(template: Template, answers: Mapping[str, Any]) -> set[str]:
    """Return the set of currently visible item ids."""
    return {iid for iid, state in evaluate(template, answers).items() if state.visible}


__all__ = [
    "condition_holds",
    "rule_matches",
    "ordered_rules",
    "visibility_controlled_ids",
    "evaluate",
    "compute_visible_set",
]
