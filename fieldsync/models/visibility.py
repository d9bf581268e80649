"""Visibility-related reusable types."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ItemState(BaseModel):
    model_config = ConfigDict(frozen=True)

    visible: bool
    required: bool


class BlockingItem(BaseModel):
    question_id: str
    reason: str


class GatingVerdict(BaseModel):
    ok: bool
    blocking_items: list[BlockingItem] = []


__all__ = ["ItemState", "BlockingItem", "GatingVerdict"]
