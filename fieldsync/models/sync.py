"""Payload models for the mutation receiver and template evaluation API.

Extracted from route modules to keep request shapes independent of the
route implementation files.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from fieldsync.models.offline import InspectionStatus, MutationType


class MutationRequest(BaseModel):
    type: str
    resource: str = Field(min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    def normalized_type(self) -> str:
        token = self.type.strip().lower()
        return token if token in MutationType.ALL else ""


class InspectionPayload(BaseModel):
    """Payload of a mutation on the `inspection` resource."""

    model_config = ConfigDict(populate_by_name=True)

    inspection_id: str = Field(alias="inspectionId", min_length=1)
    task_id: Optional[str] = Field(default=None, alias="taskId")
    status: str = InspectionStatus.IN_PROGRESS
    answers: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None
    max_score: Optional[float] = Field(default=None, alias="maxScore")
    percentage: Optional[int] = Field(default=None, ge=0, le=100)


class EvaluateRequest(BaseModel):
    template: Dict[str, Any]
    answers: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["MutationRequest", "InspectionPayload", "EvaluateRequest"]
