"""Functional tests for the local store, draft store and field log."""

from __future__ import annotations

import anyio
import pytest

from fieldsync.db.base import create_store_engine
from fieldsync.models.offline import Draft, FieldLogLevel
from fieldsync.offline.drafts import DraftStore
from fieldsync.offline.field_log import FieldLog
from fieldsync.offline.local_store import LocalStore, StorageQuotaExceeded, StorageUnavailable

pytestmark = pytest.mark.anyio


async def test_draft_round_trip(local_store) -> None:
    drafts = DraftStore(local_store)
    draft = Draft(task_id="task-1", answers={"q1": "no", "q2": ["a", "b"], "q3": 4.5, "q4": True})
    saved = await drafts.save_draft(draft)

    loaded = await drafts.get_draft("task-1")
    assert loaded is not None
    assert loaded.id == "task-1"
    assert loaded.model_dump(exclude={"updated_at"}) == draft.model_dump(exclude={"updated_at"})
    assert loaded.updated_at == saved.updated_at
    assert saved.updated_at >= draft.updated_at


async def test_missing_draft_is_none(local_store) -> None:
    assert await DraftStore(local_store).get_draft("nope") is None


async def test_save_overwrites_per_task(local_store) -> None:
    drafts = DraftStore(local_store)
    await drafts.save_draft(Draft(task_id="t", answers={"a": 1, "b": 2}))
    await drafts.save_draft(Draft(task_id="t", answers={"a": 3}))
    loaded = await drafts.get_draft("t")
    assert {k: v.value for k, v in loaded.answers.items()} == {"a": 3}
    assert len(await drafts.list_drafts()) == 1


async def test_concurrent_same_key_saves_apply_in_submission_order(local_store) -> None:
    drafts = DraftStore(local_store)
    async with anyio.create_task_group() as tg:
        for n in range(10):
            tg.start_soon(drafts.save_draft, Draft(task_id="t", answers={"n": n}))
    loaded = await drafts.get_draft("t")
    assert loaded.answers["n"].value == 9


async def test_drafts_survive_a_new_store_instance(store_path) -> None:
    url = f"sqlite:///{store_path}"
    first = create_store_engine(url)
    await DraftStore(LocalStore(first)).save_draft(Draft(task_id="t", answers={"q": "kept"}))
    first.dispose()

    second = create_store_engine(url)
    try:
        loaded = await DraftStore(LocalStore(second)).get_draft("t")
    finally:
        second.dispose()
    assert loaded is not None and loaded.answers["q"].value == "kept"


async def test_delete_clear_and_mark_synced(local_store) -> None:
    drafts = DraftStore(local_store)
    for tid in ("a", "b", "c"):
        await drafts.save_draft(Draft(task_id=tid))
    marked = await drafts.mark_synced("b")
    assert marked is not None and marked.synced is True
    assert (await drafts.get_draft("b")).synced is True
    assert await drafts.mark_synced("zzz") is None

    assert await drafts.delete_draft("a") is True
    assert await drafts.delete_draft("a") is False
    assert [d.task_id for d in await drafts.list_drafts()] == ["b", "c"]
    assert await drafts.clear_drafts() == 2
    assert await drafts.list_drafts() == []
    assert drafts._locks == {}


async def test_quota_exceeded_leaves_previous_draft_intact(store_path) -> None:
    engine = create_store_engine(f"sqlite:///{store_path}")
    drafts = DraftStore(LocalStore(engine, max_bytes=400))
    await drafts.save_draft(Draft(task_id="t", answers={"q": "short"}))
    with pytest.raises(StorageQuotaExceeded):
        await drafts.save_draft(Draft(task_id="t", answers={"q": "x" * 1000}))
    loaded = await drafts.get_draft("t")
    engine.dispose()
    assert loaded.answers["q"].value == "short"


async def test_backing_store_errors_surface_as_unavailable(tmp_path) -> None:
    # A directory path cannot be opened as a SQLite database file
    engine = create_store_engine(f"sqlite:///{tmp_path}")
    with pytest.raises(StorageUnavailable):
        await DraftStore(LocalStore(engine)).save_draft(Draft(task_id="t"))


async def test_field_log_appends_in_order_and_clears(local_store) -> None:
    log = FieldLog(local_store)
    await log.info("sync started")
    await log.error("sync failed", {"mutationId": "m1", "error": "timeout"})
    await log.append(FieldLogLevel.INFO, "sync done")

    entries = await log.entries()
    assert [e.message for e in entries] == ["sync started", "sync failed", "sync done"]
    assert [e.level for e in entries] == ["info", "error", "info"]
    assert entries[1].details == {"mutationId": "m1", "error": "timeout"}
    assert await log.clear() == 3
    assert await log.entries() == []


async def test_field_log_rejects_unknown_levels(local_store) -> None:
    with pytest.raises(ValueError):
        await FieldLog(local_store).append("debug", "nope")
