"""Local draft persistence: exactly one draft per in-progress task.

Saves fully overwrite the stored draft for the task and refresh `updated_at`
from the client clock. Saves for the same task are serialized so they land in
the order they were submitted (last write wins).
"""

from __future__ import annotations

import logging
from typing import Optional

import anyio

from fieldsync.models.offline import Draft, utc_now
from fieldsync.offline.local_store import LocalStore

logger = logging.getLogger(__name__)

DRAFT_NAMESPACE = "draft"


class DraftStore:
    def __init__(self, store: LocalStore) -> None:
        self._store = store
        self._locks: dict[str, anyio.Lock] = {}

    def _lock_for(self, task_id: str) -> anyio.Lock:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = anyio.Lock()
            self._locks[task_id] = lock
        return lock

    async def save_draft(self, draft: Draft) -> Draft:
        """Persist `draft`, replacing any previous draft for the same task."""
        saved = draft.model_copy(update={"updated_at": utc_now()})
        async with self._lock_for(saved.task_id):
            await self._store.put(DRAFT_NAMESPACE, saved.task_id, saved.to_blob())
        logger.debug("draft_saved task_id=%s answers=%s", saved.task_id, len(saved.answers))
        return saved

    async def get_draft(self, task_id: str) -> Optional[Draft]:
        async with self._lock_for(task_id):
            blob = await self._store.get(DRAFT_NAMESPACE, task_id)
        return Draft.from_blob(blob) if blob is not None else None

    def _prune_lock(self, task_id: str) -> None:
        lock = self._locks.get(task_id)
        if lock is not None and not lock.locked():
            del self._locks[task_id]

    async def delete_draft(self, task_id: str) -> bool:
        async with self._lock_for(task_id):
            removed = await self._store.delete(DRAFT_NAMESPACE, task_id)
        self._prune_lock(task_id)
        if removed:
            logger.info("draft_deleted task_id=%s", task_id)
        return removed

    async def list_drafts(self) -> list[Draft]:
        return [Draft.from_blob(b) for b in await self._store.values(DRAFT_NAMESPACE)]

    async def clear_drafts(self) -> int:
        removed = await self._store.clear(DRAFT_NAMESPACE)
        for task_id in list(self._locks):
            self._prune_lock(task_id)
        logger.info("drafts_cleared count=%s", removed)
        return removed

    async def mark_synced(self, task_id: str) -> Optional[Draft]:
        async with self._lock_for(task_id):
            blob = await self._store.get(DRAFT_NAMESPACE, task_id)
            if blob is None:
                return None
            draft = Draft.from_blob(blob).model_copy(update={"synced": True})
            await self._store.put(DRAFT_NAMESPACE, task_id, draft.to_blob())
        return draft


__all__ = ["DRAFT_NAMESPACE", "DraftStore"]
