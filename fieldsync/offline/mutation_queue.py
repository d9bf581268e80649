"""Persisted FIFO queue of server write intents.

Items stay queued until the write API acknowledges them or the user removes
them explicitly. A failed attempt keeps the item with `error` set and bumps
its attempt counter; once `max_attempts` is reached the item moves to the
`error` status and is only attempted again after an explicit retry.

Order is `(created_at, sequence)`: `sequence` is a per-queue monotonic counter
that breaks ties between items enqueued within the same clock tick.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import anyio

from fieldsync.models.offline import MutationQueueItem, MutationStatus, utc_now
from fieldsync.offline.local_store import LocalStore

logger = logging.getLogger(__name__)

QUEUE_NAMESPACE = "mutation_queue"


def backoff_delay(attempts: int, base_seconds: float, max_seconds: float) -> float:
    """Delay before the next timer-driven attempt: `min(base * 2^(attempts-1), max)`."""
    if attempts <= 0:
        return 0.0
    return float(min(base_seconds * (2 ** (attempts - 1)), max_seconds))


class MutationQueue:
    def __init__(
        self,
        store: LocalStore,
        *,
        max_attempts: int = 5,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 300.0,
    ) -> None:
        self._store = store
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._lock = anyio.Lock()
        self._next_sequence: Optional[int] = None

    async def _allocate_sequence(self) -> int:
        if self._next_sequence is None:
            items = await self._load_all()
            self._next_sequence = max((i.sequence for i in items), default=0) + 1
        seq = self._next_sequence
        self._next_sequence += 1
        return seq

    async def _load_all(self) -> list[MutationQueueItem]:
        return [MutationQueueItem.from_blob(b) for b in await self._store.values(QUEUE_NAMESPACE)]

    async def _save(self, item: MutationQueueItem) -> None:
        await self._store.put(QUEUE_NAMESPACE, item.id, item.to_blob())

    async def enqueue(
        self,
        type: str,
        resource: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> MutationQueueItem:
        async with self._lock:
            item = MutationQueueItem(
                type=type,
                resource=resource,
                payload=dict(payload or {}),
                sequence=await self._allocate_sequence(),
            )
            await self._save(item)
        logger.info(
            "mutation_enqueued id=%s type=%s resource=%s seq=%s",
            item.id,
            item.type,
            item.resource,
            item.sequence,
        )
        return item

    async def get_pending(self) -> list[MutationQueueItem]:
        """Return every queued item (pending and error) in attempt order."""
        items = await self._load_all()
        items.sort(key=lambda i: (i.created_at, i.sequence))
        return items

    async def get(self, item_id: str) -> Optional[MutationQueueItem]:
        blob = await self._store.get(QUEUE_NAMESPACE, item_id)
        return MutationQueueItem.from_blob(blob) if blob is not None else None

    async def record_failure(self, item: MutationQueueItem, error: str) -> Optional[MutationQueueItem]:
        """Count a failed attempt; None when the item was removed meanwhile."""
        async with self._lock:
            if await self.get(item.id) is None:
                logger.info("mutation_failure_ignored id=%s reason=removed", item.id)
                return None
            attempts = item.attempts + 1
            status = MutationStatus.ERROR if attempts >= self.max_attempts else MutationStatus.PENDING
            updated = item.model_copy(
                update={
                    "attempts": attempts,
                    "last_attempt_at": utc_now(),
                    "error": error,
                    "status": status,
                }
            )
            await self._save(updated)
        logger.warning(
            "mutation_attempt_failed id=%s attempts=%s status=%s error=%s",
            item.id,
            attempts,
            status,
            error,
        )
        return updated

    async def remove(self, item_id: str) -> bool:
        async with self._lock:
            removed = await self._store.delete(QUEUE_NAMESPACE, item_id)
        if removed:
            logger.info("mutation_removed id=%s", item_id)
        return removed

    async def reset_for_retry(self, item_id: str) -> Optional[MutationQueueItem]:
        """Return an item to `pending` with a fresh attempt budget."""
        async with self._lock:
            item = await self.get(item_id)
            if item is None:
                return None
            item = item.model_copy(update={"status": MutationStatus.PENDING, "attempts": 0})
            await self._save(item)
        logger.info("mutation_retry_requested id=%s", item_id)
        return item

    def next_attempt_at(self, item: MutationQueueItem) -> Optional[datetime]:
        if item.attempts <= 0 or item.last_attempt_at is None:
            return None
        delay = backoff_delay(item.attempts, self.backoff_base_seconds, self.backoff_max_seconds)
        return item.last_attempt_at + timedelta(seconds=delay)

    def is_due(self, item: MutationQueueItem, now: Optional[datetime] = None) -> bool:
        """True when a timer-driven drain may attempt `item` now."""
        if item.status != MutationStatus.PENDING:
            return False
        due = self.next_attempt_at(item)
        return due is None or (now or utc_now()) >= due


__all__ = ["QUEUE_NAMESPACE", "backoff_delay", "MutationQueue"]
