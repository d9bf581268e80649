"""Client-side persisted records: drafts, field log entries and queue items.

All records serialize to JSON blobs for the local store using their camelCase
wire names, and timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fieldsync.models.template import Answer


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_blob(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_blob(cls, blob: dict):
        return cls.model_validate(blob)


class Draft(_Record):
    id: str = ""
    task_id: str = Field(alias="taskId")
    answers: Dict[str, Answer] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    synced: bool = False

    @field_validator("answers", mode="before")
    @classmethod
    def answers_keyed_by_question(cls, v: object) -> object:
        # Accept plain {questionId: value} maps from form surfaces
        if not isinstance(v, dict):
            return v
        out: dict = {}
        for qid, raw in v.items():
            if isinstance(raw, Answer):
                out[qid] = raw
            elif isinstance(raw, dict) and "value" in raw:
                out[qid] = {"questionId": raw.get("questionId") or raw.get("question_id") or qid, "value": raw["value"]}
            else:
                out[qid] = {"questionId": qid, "value": raw}
        return out

    @model_validator(mode="after")
    def id_defaults_to_task(self) -> "Draft":
        if not self.id:
            self.id = self.task_id
        return self


class FieldLogLevel:
    INFO = "info"
    ERROR = "error"


class FieldLogEntry(_Record):
    id: str = Field(default_factory=new_id)
    level: str = FieldLogLevel.INFO
    message: str
    details: Optional[Any] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        if v not in {FieldLogLevel.INFO, FieldLogLevel.ERROR}:
            raise ValueError("level must be 'info' or 'error'")
        return v


class MutationType:
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    ALL = frozenset({CREATE, UPDATE, DELETE})


class MutationStatus:
    PENDING = "pending"
    ERROR = "error"


class InspectionStatus:
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class MutationQueueItem(_Record):
    id: str = Field(default_factory=new_id)
    type: str
    resource: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    status: str = MutationStatus.PENDING
    error: Optional[str] = None
    sequence: int = 0
    attempts: int = 0
    last_attempt_at: Optional[datetime] = Field(default=None, alias="lastAttemptAt")

    @field_validator("type", mode="before")
    @classmethod
    def type_must_be_known(cls, v: object) -> str:
        token = str(v or "").strip().lower()
        if token not in MutationType.ALL:
            raise ValueError(f"mutation type must be one of {sorted(MutationType.ALL)}")
        return token

    @property
    def task_id(self) -> Optional[str]:
        tid = self.payload.get("taskId") or self.payload.get("task_id")
        return str(tid) if tid else None


class DrainResult(BaseModel):
    """Ids processed by one drain pass, in attempt order."""

    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class SyncStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    online: bool
    syncing: bool
    pending_count: int = Field(alias="pendingCount")
    failed_count: int = Field(alias="failedCount")
    last_sync_at: Optional[datetime] = Field(default=None, alias="lastSyncAt")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    dismissed: bool = False


__all__ = [
    "utc_now",
    "new_id",
    "Draft",
    "FieldLogLevel",
    "FieldLogEntry",
    "MutationType",
    "MutationStatus",
    "InspectionStatus",
    "MutationQueueItem",
    "DrainResult",
    "SyncStatus",
]
