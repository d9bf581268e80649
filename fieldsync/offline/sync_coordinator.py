"""Sync Coordinator: load draft, allow edits, flush on reconnect.

The coordinator is the only writer of drafts and queue items. It keeps the
current answers of every open task in memory so a failed save never loses
what the inspector typed, persists drafts on each change, and drains the
mutation queue when connectivity returns, on explicit user retry, or from a
periodic timer.

Only an explicit `submit()` enqueues a write for the server; reconnecting
with an unsynced draft and nothing queued for its task produces a notice for
the user instead of an automatic submission.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
from pydantic import BaseModel

from fieldsync.logic.answer_canonical import is_unanswered
from fieldsync.logic.gating import evaluate_gating
from fieldsync.logic.scoring import ScoreResult, calculate_score
from fieldsync.logic.visibility_delta import compute_visibility_delta
from fieldsync.logic.visibility_rules import evaluate
from fieldsync.models.offline import (
    Draft,
    DrainResult,
    InspectionStatus,
    MutationQueueItem,
    MutationStatus,
    MutationType,
    SyncStatus,
    new_id,
    utc_now,
)
from fieldsync.models.template import Template
from fieldsync.models.visibility import GatingVerdict, ItemState
from fieldsync.offline.connectivity import ConnectivityMonitor
from fieldsync.offline.drafts import DraftStore
from fieldsync.offline.field_log import FieldLog
from fieldsync.offline.local_store import StorageError
from fieldsync.offline.mutation_queue import MutationQueue
from fieldsync.offline.sender import MutationSendError, MutationSender

logger = logging.getLogger(__name__)

INSPECTION_RESOURCE = "inspection"

Notifier = Callable[[Draft], Awaitable[None]]


class SubmissionBlocked(Exception):
    """Raised by `submit()` while required visible items are unanswered."""

    def __init__(self, verdict: GatingVerdict) -> None:
        ids = ", ".join(b.question_id for b in verdict.blocking_items)
        super().__init__(f"required items unanswered: {ids}")
        self.verdict = verdict


class AnswerOutcome(BaseModel):
    """What changed after recording one answer."""

    states: Dict[str, ItemState]
    score: ScoreResult
    now_visible: list[str]
    now_hidden: list[str]
    suppressed_answers: list[str]
    saved: bool
    save_error: Optional[str] = None


class SyncCoordinator:
    def __init__(
        self,
        drafts: DraftStore,
        queue: MutationQueue,
        sender: MutationSender,
        field_log: FieldLog,
        connectivity: Optional[ConnectivityMonitor] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._drafts = drafts
        self._queue = queue
        self._sender = sender
        self._field_log = field_log
        self._connectivity = connectivity
        self._notifier = notifier
        self._answers: Dict[str, Dict[str, Any]] = {}
        self._inflight: Optional[tuple[anyio.Event, dict]] = None
        self._last_sync_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._dismissed = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        if connectivity is not None:
            self._unsubscribe = connectivity.subscribe(self.on_connectivity_change)

    # Read access for diagnostics surfaces

    @property
    def drafts(self) -> DraftStore:
        return self._drafts

    @property
    def queue(self) -> MutationQueue:
        return self._queue

    @property
    def field_log(self) -> FieldLog:
        return self._field_log

    # Drafts and answers

    async def load_draft(self, task_id: str) -> Optional[Draft]:
        """Load the stored draft for `task_id` into memory; None when there is none."""
        draft = await self._drafts.get_draft(task_id)
        if draft is not None:
            self._answers[task_id] = {qid: a.value for qid, a in draft.answers.items()}
        else:
            self._answers.setdefault(task_id, {})
        return draft

    def current_answers(self, task_id: str) -> Dict[str, Any]:
        return dict(self._answers.get(task_id, {}))

    async def save_draft(self, task_id: str, answers: Optional[Dict[str, Any]] = None) -> Draft:
        """Persist the answers for `task_id` as its draft.

        The answers are kept in memory before the write, so on a storage
        failure the form stays editable; the error is re-raised to the caller.
        """
        if answers is not None:
            self._answers[task_id] = dict(answers)
        current = self._answers.setdefault(task_id, {})
        draft = Draft(task_id=task_id, answers=current)
        try:
            return await self._drafts.save_draft(draft)
        except StorageError as exc:
            logger.error("draft_save_failed task_id=%s error=%s", task_id, exc)
            await self._log_error("draft_save_failed", {"taskId": task_id, "error": str(exc)})
            raise

    async def discard_draft(self, task_id: str) -> bool:
        """Delete the stored draft for `task_id` and forget its answers."""
        self._answers.pop(task_id, None)
        return await self._drafts.delete_draft(task_id)

    async def clear_drafts(self) -> int:
        self._answers.clear()
        return await self._drafts.clear_drafts()

    async def record_answer(
        self,
        template: Template,
        task_id: str,
        question_id: str,
        value: Any,
    ) -> AnswerOutcome:
        """Apply one answer change, re-evaluate the form and persist the draft.

        Storage failures do not block data entry: the outcome reports
        `saved=False` and the answer stays in memory.
        """
        answers = self._answers.setdefault(task_id, {})
        pre_states = evaluate(template, answers)
        answers[question_id] = value
        states = evaluate(template, answers)
        now_visible, now_hidden, suppressed = compute_visibility_delta(
            [iid for iid, s in pre_states.items() if s.visible],
            [iid for iid, s in states.items() if s.visible],
            lambda qid: not is_unanswered(answers.get(qid)),
        )
        score = calculate_score(template, answers, states)
        saved, save_error = True, None
        try:
            await self.save_draft(task_id)
        except StorageError as exc:
            saved, save_error = False, str(exc)
        return AnswerOutcome(
            states=states,
            score=score,
            now_visible=now_visible,
            now_hidden=now_hidden,
            suppressed_answers=suppressed,
            saved=saved,
            save_error=save_error,
        )

    async def submit(
        self,
        template: Template,
        task_id: str,
        inspection_id: Optional[str] = None,
    ) -> MutationQueueItem:
        """Queue the user-confirmed final answers of `task_id` for the server.

        Refuses while visible required items are unanswered. The draft is
        saved first and deleted once the server acknowledges the submission.
        """
        answers = self.current_answers(task_id)
        states = evaluate(template, answers)
        verdict = evaluate_gating(template, answers, states)
        if not verdict.ok:
            raise SubmissionBlocked(verdict)
        result = calculate_score(template, answers, states)
        await self.save_draft(task_id)
        item = await self._queue.enqueue(
            MutationType.UPDATE,
            INSPECTION_RESOURCE,
            {
                "inspectionId": inspection_id or new_id(),
                "taskId": task_id,
                "status": InspectionStatus.COMPLETED,
                "answers": answers,
                "score": result.score,
                "maxScore": result.max_score,
                "percentage": result.percentage,
            },
        )
        logger.info("inspection_submitted task_id=%s mutation_id=%s", task_id, item.id)
        if self._connectivity is not None and self._connectivity.online:
            await self.drain()
        return item

    # Queue draining

    async def drain(self, respect_backoff: bool = False) -> DrainResult:
        """Attempt queued mutations in enqueue order.

        A call made while another drain is in flight does not start a second
        pass; it waits for the running one and returns its result.
        """
        if self._inflight is not None:
            done, holder = self._inflight
            await done.wait()
            return holder.get("result") or DrainResult()

        done, holder = anyio.Event(), {}
        self._inflight = (done, holder)
        try:
            result = await self._drain_once(respect_backoff)
            holder["result"] = result
        finally:
            self._inflight = None
            done.set()
        return result

    async def _drain_once(self, respect_backoff: bool) -> DrainResult:
        result = DrainResult()
        now = utc_now()
        for item in await self._queue.get_pending():
            if item.status == MutationStatus.ERROR:
                result.skipped.append(item.id)
                continue
            if respect_backoff and not self._queue.is_due(item, now):
                result.skipped.append(item.id)
                continue
            try:
                await self._sender.send(item)
            except MutationSendError as exc:
                updated = await self._queue.record_failure(item, str(exc))
                if updated is None:
                    # discarded by the user while the send was in flight
                    result.skipped.append(item.id)
                    continue
                result.failed.append(item.id)
                self._last_error = str(exc)
                self._dismissed = False
                await self._log_error(
                    "sync_failed",
                    {
                        "mutationId": item.id,
                        "resource": item.resource,
                        "attempts": updated.attempts,
                        "status": updated.status,
                        "error": str(exc),
                    },
                )
                continue
            await self._queue.remove(item.id)
            result.succeeded.append(item.id)
            await self._on_acknowledged(item)

        if result.succeeded and not result.failed:
            self._last_error = None
        if result.succeeded or not result.failed:
            self._last_sync_at = utc_now()
        logger.info(
            "drain_completed succeeded=%s failed=%s skipped=%s",
            len(result.succeeded),
            len(result.failed),
            len(result.skipped),
        )
        return result

    async def _on_acknowledged(self, item: MutationQueueItem) -> None:
        task_id = item.task_id
        if item.resource != INSPECTION_RESOURCE or not task_id:
            return
        if item.payload.get("status") != InspectionStatus.COMPLETED:
            await self._drafts.mark_synced(task_id)
            return
        await self.discard_draft(task_id)
        logger.info("submission_acknowledged task_id=%s mutation_id=%s", task_id, item.id)

    async def retry(self, item_id: str) -> DrainResult:
        """User-triggered retry of one item, followed by a full drain.

        A drain already in flight may have passed the item before it was
        reset, so the retry waits for it and then runs its own pass.
        """
        await self._queue.reset_for_retry(item_id)
        if self._inflight is not None:
            await self._inflight[0].wait()
        return await self.drain()

    async def remove(self, item_id: str) -> bool:
        """Explicitly discard a queued mutation; the only way items are dropped."""
        removed = await self._queue.remove(item_id)
        if removed:
            await self._log_info("mutation_discarded", {"mutationId": item_id})
        return removed

    # Connectivity

    async def on_connectivity_change(self, online: bool) -> None:
        if not online:
            return
        await self.drain()
        await self.check_unsynced_drafts()

    async def check_unsynced_drafts(self) -> list[Draft]:
        """Notify about unsynced drafts whose task has nothing queued."""
        queued = {item.task_id for item in await self._queue.get_pending() if item.task_id}
        orphaned = [d for d in await self._drafts.list_drafts() if not d.synced and d.task_id not in queued]
        for draft in orphaned:
            logger.info("unsynced_draft_detected task_id=%s", draft.task_id)
            await self._log_info("unsynced_draft", {"taskId": draft.task_id})
            if self._notifier is not None:
                await self._notifier(draft)
        return orphaned

    async def run_periodic(self, interval_seconds: float) -> None:
        """Drain on a timer while online, honouring per-item backoff."""
        while True:
            await anyio.sleep(interval_seconds)
            if self._connectivity is not None and not self._connectivity.online:
                continue
            try:
                await self.drain(respect_backoff=True)
            except StorageError:
                logger.error("periodic_drain_failed", exc_info=True)

    # Status indicator

    async def status(self) -> SyncStatus:
        items = await self._queue.get_pending()
        return SyncStatus(
            online=bool(self._connectivity.online) if self._connectivity is not None else True,
            syncing=self._inflight is not None,
            pending_count=len(items),
            failed_count=sum(1 for i in items if i.error),
            last_sync_at=self._last_sync_at,
            last_error=self._last_error,
            dismissed=self._dismissed,
        )

    def dismiss(self) -> None:
        self._dismissed = True

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # Field log writes never raise over the failure being reported

    async def _log_error(self, message: str, details: Any) -> None:
        try:
            await self._field_log.error(message, details)
        except StorageError:
            logger.warning("field_log_write_failed message=%s", message)

    async def _log_info(self, message: str, details: Any) -> None:
        try:
            await self._field_log.info(message, details)
        except StorageError:
            logger.warning("field_log_write_failed message=%s", message)


__all__ = [
    "INSPECTION_RESOURCE",
    "Notifier",
    "SubmissionBlocked",
    "AnswerOutcome",
    "SyncCoordinator",
]
