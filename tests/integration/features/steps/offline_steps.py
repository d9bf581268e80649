"""Offline capture and sync integration steps.

Each step builds a fresh coordinator over the scenario's local store and
runs it under `anyio.run`; drafts and queued mutations persist between steps
through the store. Mutations reach the in-process API through httpx's ASGI
transport.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

import anyio
import httpx
from behave import given, then, when

from fieldsync.db.base import create_store_engine
from fieldsync.logic.repository_inspections import get_inspection
from fieldsync.logic.template_loader import parse_template
from fieldsync.offline.connectivity import ConnectivityMonitor
from fieldsync.offline.drafts import DraftStore
from fieldsync.offline.field_log import FieldLog
from fieldsync.offline.local_store import LocalStore
from fieldsync.offline.mutation_queue import MutationQueue
from fieldsync.offline.sender import HttpMutationSender
from fieldsync.offline.sync_coordinator import SyncCoordinator

T = TypeVar("T")


def _run(context, task_id: str, action: Callable[[SyncCoordinator], Awaitable[T]], monitor=None) -> T:
    async def main() -> T:
        transport = httpx.ASGITransport(app=context.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            store = LocalStore(context.store_engine)
            coord = SyncCoordinator(
                DraftStore(store),
                MutationQueue(store),
                HttpMutationSender("http://testserver/api/v1", client=http),
                FieldLog(store),
                connectivity=monitor,
            )
            try:
                await coord.load_draft(task_id)
                return await action(coord)
            finally:
                coord.close()

    return anyio.run(main)


@given("an offline client")
def step_offline_client(context) -> None:
    context.store_engine = create_store_engine(f"sqlite:///{context.store_dir / 'local.db'}")
    context.vars["task_id"] = ""


@given('the inspector answers "{question_id}" with "{value}" on task "{task_id}"')
def step_answer(context, question_id: str, value: str, task_id: str) -> None:
    template = parse_template(context.vars["template"])
    outcome = _run(context, task_id, lambda c: c.record_answer(template, task_id, question_id, value))
    assert outcome.saved is True, outcome.save_error
    context.vars["task_id"] = task_id


@when('the inspector submits task "{task_id}"')
def step_submit(context, task_id: str) -> None:
    template = parse_template(context.vars["template"])
    item = _run(context, task_id, lambda c: c.submit(template, task_id))
    context.vars["inspection_id"] = item.payload["inspectionId"]


@when("connectivity is restored")
def step_reconnect(context) -> None:
    async def go_online(coord: SyncCoordinator) -> bool:
        return await monitor.set_online(True)

    monitor = ConnectivityMonitor(online=False)
    assert _run(context, context.vars["task_id"], go_online, monitor=monitor) is True


@then("{count:d} mutation is pending")
@then("{count:d} mutations are pending")
def step_pending(context, count: int) -> None:
    async def pending(coord: SyncCoordinator) -> int:
        return len(await coord.queue.get_pending())

    assert _run(context, context.vars["task_id"], pending) == count


@then('the server holds a completed inspection for task "{task_id}" scoring {percentage:d}%')
def step_server_inspection(context, task_id: str, percentage: int) -> None:
    with context.engine.connect() as conn:
        row = get_inspection(conn, context.vars["inspection_id"])
    assert row is not None
    assert row["taskId"] == task_id
    assert row["status"] == "COMPLETED"
    assert row["percentage"] == percentage


@then('no draft remains for task "{task_id}"')
def step_no_draft(context, task_id: str) -> None:
    async def draft(coord: SyncCoordinator):
        return await coord.drafts.get_draft(task_id)

    assert _run(context, task_id, draft) is None


@given('a mutation "{mutation_id}" completing inspection "{inspection_id}" for task "{task_id}" was applied')
def step_applied_mutation(context, mutation_id: str, inspection_id: str, task_id: str) -> None:
    body = {
        "type": "update",
        "resource": "inspection",
        "payload": {"inspectionId": inspection_id, "taskId": task_id, "status": "COMPLETED", "answers": {"q1": "yes"}},
    }
    resp = context.client.post("/api/v1/sync/mutations", json=body, headers={"Idempotency-Key": mutation_id})
    assert resp.status_code == 200, resp.text
    context.vars["mutation_body"] = body
    context.vars["first_response"] = resp.json()


@when('mutation "{mutation_id}" is sent again')
def step_send_again(context, mutation_id: str) -> None:
    context.vars["replay"] = context.client.post(
        "/api/v1/sync/mutations",
        json=context.vars["mutation_body"],
        headers={"Idempotency-Key": mutation_id},
    )


@then("the server reports the mutation as replayed")
def step_replayed(context) -> None:
    resp = context.vars["replay"]
    assert resp.status_code == 200, resp.text
    assert resp.headers.get("Idempotency-Replayed") == "true"
    assert resp.json() == context.vars["first_response"]
