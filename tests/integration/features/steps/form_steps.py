"""Template evaluation integration steps."""

from __future__ import annotations

from behave import given, then, when


def follow_up_template(trigger: str, target: str, value: str) -> dict:
    """A yes/no select `trigger` (yes=10) whose `value` answer reveals and requires `target`."""
    when_value = [{"questionId": trigger, "operator": "equals", "value": value}]
    return {
        "id": "tpl-it",
        "name": "Site inspection",
        "pages": [
            {
                "id": "p1",
                "sections": [
                    {
                        "id": "s1",
                        "items": [
                            {
                                "id": trigger,
                                "label": "Is the site safe?",
                                "type": "select",
                                "options": [
                                    {"label": "Yes", "value": "yes", "score": 10},
                                    {"label": "No", "value": "no", "score": 0},
                                ],
                            },
                            {"id": target, "label": "Describe the hazard", "type": "text"},
                        ],
                    }
                ],
            }
        ],
        "logic": [
            {"conditions": when_value, "action": "show", "targetId": target},
            {"conditions": when_value, "action": "require", "targetId": target},
        ],
    }


@given('an inspection template where "{target}" is shown and required when "{trigger}" equals "{value}"')
def step_template(context, target: str, trigger: str, value: str) -> None:
    context.vars["template"] = follow_up_template(trigger, target, value)


@when("the form is evaluated with answers:")
def step_evaluate(context) -> None:
    answers = {row["question"]: row["value"] for row in context.table}
    resp = context.client.post(
        "/api/v1/templates/evaluate",
        json={"template": context.vars["template"], "answers": answers},
    )
    assert resp.status_code == 200, resp.text
    context.vars["evaluation"] = resp.json()


@then('item "{item_id}" is visible and required')
def step_visible_required(context, item_id: str) -> None:
    state = context.vars["evaluation"]["items"][item_id]
    assert state == {"visible": True, "required": True}, state


@then('item "{item_id}" is hidden')
def step_hidden(context, item_id: str) -> None:
    state = context.vars["evaluation"]["items"][item_id]
    assert state["visible"] is False, state


@then("the score is {score:d} of {max_score:d} ({percentage:d}%)")
def step_score(context, score: int, max_score: int, percentage: int) -> None:
    got = context.vars["evaluation"]["score"]
    assert (got["score"], got["maxScore"], got["percentage"]) == (score, max_score, percentage), got


@then('submission is blocked by "{item_id}"')
def step_blocked(context, item_id: str) -> None:
    gating = context.vars["evaluation"]["gating"]
    assert gating["ok"] is False
    assert [b["question_id"] for b in gating["blocking_items"]] == [item_id], gating


@then("submission is allowed")
def step_allowed(context) -> None:
    assert context.vars["evaluation"]["gating"]["ok"] is True
