"""Task claim records and claim outcomes."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskClaim(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    user_id: str = Field(alias="userId")
    acquired_at: datetime = Field(alias="acquiredAt")
    expires_at: datetime = Field(alias="expiresAt")


class ClaimResult(BaseModel):
    """Outcome of a claim attempt.

    `claimed=False` with `success=True` means no lock was taken because the
    feature is disabled; callers proceed without a lock. A conflict is
    `success=False` with `claimed_by` naming the current holder.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    claimed: bool = False
    claimed_by: Optional[str] = Field(default=None, alias="claimedBy")


class ClaimRequest(BaseModel):
    user_id: str = Field(min_length=1)


__all__ = ["TaskClaim", "ClaimResult", "ClaimRequest"]
