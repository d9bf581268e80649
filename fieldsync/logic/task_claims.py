"""Task Claim Coordinator: advisory per-task edit lock.

A claim row in `task_claim` (unique on `task_id`) is the lock. Acquisition
inserts first and only reads the existing row when the insert conflicts, so
there is a narrow window between the failed insert and the read in which the
holder may release. That window is handled by retrying the insert once; a
second conflict is reported as `ClaimUnavailable` rather than guessed at.

Claims expire after the configured TTL. An expired claim held by someone else
no longer blocks: the caller takes it over.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fieldsync.db.base import get_engine
from fieldsync.logic.repository_claims import (
    delete_claim,
    get_claim,
    get_display_name,
    insert_claim,
    refresh_claim,
    take_over_expired_claim,
)
from fieldsync.models.claims import ClaimResult, TaskClaim
from fieldsync.models.offline import utc_now

logger = logging.getLogger(__name__)


class ClaimUnavailable(RuntimeError):
    """Claim storage failed; distinct from a claim held by another user."""


class TaskClaimCoordinator:
    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        enabled: bool = True,
        ttl_minutes: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._engine = engine
        self.enabled = enabled
        self.ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def claim(self, task_id: str, user_id: str) -> ClaimResult:
        if not self.enabled:
            return ClaimResult(success=True, claimed=False)
        now = self._clock()
        expires = now + self.ttl

        if self._try_insert(task_id, user_id, now, expires):
            logger.info("claim_acquired task_id=%s user_id=%s", task_id, user_id)
            return ClaimResult(success=True, claimed=True)

        try:
            with self.engine.begin() as conn:
                existing = get_claim(conn, task_id)
                if existing is None:
                    # Released between the failed insert and this read
                    insert_claim(conn, task_id, user_id, now, expires)
                    logger.info("claim_acquired_after_release task_id=%s user_id=%s", task_id, user_id)
                    return ClaimResult(success=True, claimed=True)
                if existing.user_id == user_id:
                    refresh_claim(conn, task_id, user_id, now, expires)
                    logger.info("claim_refreshed task_id=%s user_id=%s", task_id, user_id)
                    return ClaimResult(success=True, claimed=True)
                if existing.expires_at <= now:
                    if take_over_expired_claim(conn, task_id, existing, user_id, now, expires) == 1:
                        logger.info(
                            "claim_taken_over task_id=%s user_id=%s previous=%s",
                            task_id,
                            user_id,
                            existing.user_id,
                        )
                        return ClaimResult(success=True, claimed=True)
                    existing = get_claim(conn, task_id) or existing
                holder = get_display_name(conn, existing.user_id) or existing.user_id
        except IntegrityError as exc:
            logger.warning("claim_contention task_id=%s user_id=%s", task_id, user_id)
            raise ClaimUnavailable(f"task {task_id} is being claimed concurrently") from exc
        except SQLAlchemyError as exc:
            logger.error("claim_storage_failed task_id=%s", task_id, exc_info=True)
            raise ClaimUnavailable(str(exc)) from exc

        logger.info("claim_conflict task_id=%s user_id=%s holder=%s", task_id, user_id, existing.user_id)
        return ClaimResult(success=False, claimed=False, claimed_by=holder)

    def _try_insert(self, task_id: str, user_id: str, now: datetime, expires: datetime) -> bool:
        try:
            with self.engine.begin() as conn:
                insert_claim(conn, task_id, user_id, now, expires)
            return True
        except IntegrityError:
            return False
        except SQLAlchemyError as exc:
            logger.error("claim_storage_failed task_id=%s", task_id, exc_info=True)
            raise ClaimUnavailable(str(exc)) from exc

    def release(self, task_id: str, user_id: str) -> bool:
        """Delete the caller's claim; other users' claims are left untouched."""
        if not self.enabled:
            return False
        try:
            with self.engine.begin() as conn:
                removed = delete_claim(conn, task_id, user_id)
        except SQLAlchemyError as exc:
            logger.error("claim_storage_failed task_id=%s", task_id, exc_info=True)
            raise ClaimUnavailable(str(exc)) from exc
        if removed:
            logger.info("claim_released task_id=%s user_id=%s", task_id, user_id)
        return bool(removed)

    def current_claim(self, task_id: str) -> Optional[TaskClaim]:
        try:
            with self.engine.connect() as conn:
                return get_claim(conn, task_id)
        except SQLAlchemyError as exc:
            raise ClaimUnavailable(str(exc)) from exc


__all__ = ["ClaimUnavailable", "TaskClaimCoordinator"]
