"""Functional tests for advisory task claims (coordinator and routes)."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from fieldsync.db.base import create_store_engine
from fieldsync.logic.repository_claims import upsert_user
from fieldsync.logic.task_claims import ClaimUnavailable, TaskClaimCoordinator
from fieldsync.models.offline import utc_now


def _task() -> str:
    # The functional DB is shared across tests
    return f"task-{uuid.uuid4().hex[:8]}"


def _user(server_engine, display_name: str) -> str:
    user_id = f"user-{uuid.uuid4().hex[:8]}"
    with server_engine.begin() as conn:
        upsert_user(conn, user_id, display_name)
    return user_id


def test_claim_is_idempotent_for_the_holder(server_engine) -> None:
    coord = TaskClaimCoordinator(server_engine)
    task = _task()
    first = coord.claim(task, "u1")
    again = coord.claim(task, "u1")
    assert (first.success, first.claimed) == (True, True)
    assert (again.success, again.claimed, again.claimed_by) == (True, True, None)
    assert coord.current_claim(task).user_id == "u1"


def test_second_user_is_refused_with_holder_display_name(server_engine) -> None:
    coord = TaskClaimCoordinator(server_engine)
    task = _task()
    alice = _user(server_engine, "Alice Inspector")
    assert coord.claim(task, alice).claimed is True

    result = coord.claim(task, "someone-else")
    assert result.success is False
    assert result.claimed is False
    assert result.claimed_by == "Alice Inspector"
    assert coord.current_claim(task).user_id == alice


def test_holder_without_profile_is_named_by_id(server_engine) -> None:
    coord = TaskClaimCoordinator(server_engine)
    task = _task()
    coord.claim(task, "anon-7")
    assert coord.claim(task, "u2").claimed_by == "anon-7"


def test_expired_claim_is_taken_over(server_engine) -> None:
    task = _task()
    start = utc_now()
    early = TaskClaimCoordinator(server_engine, ttl_minutes=30, clock=lambda: start)
    late = TaskClaimCoordinator(server_engine, ttl_minutes=30, clock=lambda: start + timedelta(minutes=31))

    assert early.claim(task, "u1").claimed is True
    assert early.claim(task, "u2").success is False

    taken = late.claim(task, "u2")
    assert (taken.success, taken.claimed) == (True, True)
    claim = late.current_claim(task)
    assert claim.user_id == "u2"
    assert claim.expires_at == start + timedelta(minutes=61)


def test_release_only_removes_own_claim(server_engine) -> None:
    coord = TaskClaimCoordinator(server_engine)
    task = _task()
    coord.claim(task, "u1")
    assert coord.release(task, "u2") is False
    assert coord.current_claim(task).user_id == "u1"
    assert coord.release(task, "u1") is True
    assert coord.current_claim(task) is None
    assert coord.claim(task, "u2").claimed is True


def test_disabled_claims_never_lock(server_engine) -> None:
    coord = TaskClaimCoordinator(server_engine, enabled=False)
    task = _task()
    result = coord.claim(task, "u1")
    assert (result.success, result.claimed) == (True, False)
    assert coord.claim(task, "u2").success is True
    assert coord.current_claim(task) is None


def test_storage_failure_is_unavailable_not_conflict(tmp_path) -> None:
    engine = create_store_engine(f"sqlite:///{tmp_path}")
    with pytest.raises(ClaimUnavailable):
        TaskClaimCoordinator(engine).claim("t", "u1")


def test_claim_routes(client, server_engine) -> None:
    task = _task()
    bob = _user(server_engine, "Bob")

    resp = client.post(f"/api/v1/tasks/{task}/claim", json={"user_id": bob})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "claimed": True, "claimedBy": None}

    conflict = client.post(f"/api/v1/tasks/{task}/claim", json={"user_id": "u9"})
    assert conflict.status_code == 200
    assert conflict.json() == {"success": False, "claimed": False, "claimedBy": "Bob"}

    released = client.delete(f"/api/v1/tasks/{task}/claim", params={"user_id": bob})
    assert released.status_code == 204
    assert client.post(f"/api/v1/tasks/{task}/claim", json={"user_id": "u9"}).json()["claimed"] is True


def test_claim_route_requires_user_id(client) -> None:
    resp = client.post(f"/api/v1/tasks/{_task()}/claim", json={})
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")


def test_claim_route_reports_storage_failure_as_503(client, tmp_path) -> None:
    client.app.state.claims = TaskClaimCoordinator(create_store_engine(f"sqlite:///{tmp_path}"))
    resp = client.post("/api/v1/tasks/t-broken/claim", json={"user_id": "u1"})
    assert resp.status_code == 503
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == "CLAIM_UNAVAILABLE"
